"""
Event Dispatcher - the engine's single logical thread.

User triggers (emit A, emit B, reset) arrive from HTTP handler threads and
animation completions arrive from timer threads. All of them are posted here
and executed one at a time, in posting order, on one worker thread. That is
what lets the drain coordinator run without locks.
"""

import logging
import queue
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger('zip-visualizer.engine')

_STOP = object()


class EventDispatcher:
    """FIFO event loop running on a dedicated thread."""

    def __init__(
        self,
        name: str = "ZipDispatcher",
        on_event_processed: Optional[Callable[[], None]] = None
    ):
        """
        Args:
            name: Worker thread name
            on_event_processed: Called on the worker thread after every event
        """
        self.name = name
        self.on_event_processed = on_event_processed
        self.running = False
        self.thread: Optional[threading.Thread] = None
        self.error: Optional[BaseException] = None
        self.events_processed = 0
        self._events: "queue.Queue" = queue.Queue()
        self._unfinished = 0
        self._count_lock = threading.Lock()

    def post(self, fn: Callable[..., Any], *args):
        """Queue fn(*args) for execution on the dispatcher thread."""
        with self._count_lock:
            self._unfinished += 1
        self._events.put((fn, args))

    @property
    def pending(self) -> int:
        """Events posted but not yet fully handled (including the one running)."""
        with self._count_lock:
            return self._unfinished

    def process_pending(self) -> int:
        """
        Run every queued event in the calling thread.

        Used when the dispatcher thread is not started (tests, headless
        drivers). Exceptions propagate to the caller.

        Returns:
            Number of events processed
        """
        count = 0
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                return count
            if event is _STOP:
                continue
            fn, args = event
            self._execute(fn, args)
            count += 1

    def _execute(self, fn: Callable[..., Any], args: tuple):
        try:
            fn(*args)
        finally:
            self.events_processed += 1
            try:
                if self.on_event_processed:
                    self.on_event_processed()
            finally:
                with self._count_lock:
                    self._unfinished -= 1

    def start(self):
        if self.running:
            logger.warning("Dispatcher already running")
            return
        self.running = True
        self.error = None
        self.thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self.thread.start()
        logger.info(f"{self.name} thread started")

    def _loop(self):
        while self.running:
            event = self._events.get()
            if event is _STOP:
                # Left over from an earlier stop() if we have been restarted
                if self.running:
                    continue
                break
            fn, args = event
            try:
                self._execute(fn, args)
            except RuntimeError as e:
                # A broken invariant means the coordinator state can no longer be trusted
                logger.exception(f"Fatal error in {self.name}: {e}")
                self.error = e
                self.running = False
            except Exception as e:
                logger.exception(f"Error handling event in {self.name}: {e}")
        logger.info(f"{self.name} thread stopped")

    def stop(self, timeout: float = 2.0):
        self.running = False
        self._events.put(_STOP)
        if self.thread:
            self.thread.join(timeout=timeout)
            self.thread = None
