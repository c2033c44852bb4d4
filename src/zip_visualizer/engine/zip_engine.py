#!/usr/bin/env python3
"""
Zip Engine - the interactive zip demo, minus the drawing.

Wires the pieces together and exposes the three user actions:

    ┌──────────┐
    │ Source A │──┐
    └──────────┘  │   ┌───────────────┐   ┌─────────────┐   ┌───────────────────┐
                  ├──▶│ ZipCombinator │──▶│ Pair Buffer │──▶│ Drain Coordinator │──▶ DisplayState
    ┌──────────┐  │   └───────────────┘   └─────────────┘   └───────────────────┘
    │ Source B │──┘                                                 │  ▲
    └──────────┘                                                    ▼  │ completions
                                                                 Animator

Threading:
    emit_a(), emit_b() and reset() may be called from any thread. They only
    post to the dispatcher; the sources, combinator, coordinator and display
    state are touched exclusively on the dispatcher thread. Animation timers
    post their completions to the same dispatcher.

    After every dispatcher event a fresh DisplaySnapshot is published, which
    is what snapshot() returns and what on_state_change receives.
"""

import logging
import threading
import time
from dataclasses import replace
from typing import Callable, Dict, Optional

from ..animation.animator import Animator, TimerAnimator, MOVE_DISTANCE_PX
from ..interfaces.display_state import DisplaySnapshot, DisplayState, Pair, Side
from .dispatcher import EventDispatcher
from .drain_coordinator import DrainCoordinator
from .event_source import EventSource
from .zip_combinator import ZipCombinator

logger = logging.getLogger('zip-visualizer.engine')


class ZipEngine:
    """
    Zip demo engine with a single-worker drain coordinator.
    """

    def __init__(
        self,
        highlight_ms: float = 500.0,
        move_ms: float = 500.0,
        move_distance_px: float = MOVE_DISTANCE_PX,
        animator: Optional[Animator] = None
    ):
        """
        Initialize the zip engine.

        Args:
            highlight_ms: Highlight delay before a pair starts moving
            move_ms: Duration of the move into the output slot
            move_distance_px: translateY distance reported to renderers
            animator: Animation collaborator; defaults to a TimerAnimator that
                      posts completions to this engine's dispatcher
        """
        self.highlight_ms = highlight_ms
        self.move_ms = move_ms

        self.display = DisplayState()
        self.dispatcher = EventDispatcher(on_event_processed=self._publish_snapshot)
        self.animator = animator or TimerAnimator(
            post=self.dispatcher.post,
            move_distance_px=move_distance_px
        )

        self.sources: Dict[Side, EventSource] = {
            side: EventSource(side, self.display) for side in Side
        }
        self.coordinator = DrainCoordinator(
            self.display,
            self.animator,
            highlight_ms=highlight_ms,
            move_ms=move_ms,
            on_commit=self._on_commit
        )
        self.combinator: Optional[ZipCombinator] = None
        self._setup_operator()

        self.running = False

        # Statistics
        self.stats = {
            'emitted_a': 0,
            'emitted_b': 0,
            'pairs_zipped': 0,
            'pairs_committed': 0,
            'resets': 0,
            'start_time': time.time()
        }

        # Callbacks (used by the web server and headless mode)
        self.on_state_change: Optional[Callable[[DisplaySnapshot], None]] = None
        self.on_commit: Optional[Callable[[Pair], None]] = None

        self._snapshot_lock = threading.Lock()
        self._version = 0
        self._snapshot = self._build_snapshot()

    def _setup_operator(self):
        self.combinator = ZipCombinator(
            self.sources[Side.A],
            self.sources[Side.B],
            self._on_pair
        )

    # =========================================================================
    # User triggers (any thread)
    # =========================================================================

    def emit_a(self):
        self.emit(Side.A)

    def emit_b(self):
        self.emit(Side.B)

    def emit(self, side: Side):
        """Trigger the event source for `side`."""
        self.dispatcher.post(self._emit, Side(side))

    def reset(self):
        """Cancel everything in flight and start over with empty state."""
        self.dispatcher.post(self._reset)

    # =========================================================================
    # Dispatcher-thread handlers
    # =========================================================================

    def _emit(self, side: Side):
        self.sources[side].emit()
        self.stats[f'emitted_{side.value}'] += 1

    def _on_pair(self, pair: Pair):
        self.stats['pairs_zipped'] += 1
        self.coordinator.push(pair)

    def _on_commit(self, pair: Pair):
        self.stats['pairs_committed'] += 1
        if self.on_commit:
            try:
                self.on_commit(pair)
            except Exception as e:
                logger.exception(f"Commit callback error: {e}")

    def _reset(self):
        self.coordinator.reset()
        self.display.clear()
        self.combinator.dispose()
        self._setup_operator()
        self.stats['resets'] += 1
        logger.info("Reset: buffer, queues and output cleared")

    # =========================================================================
    # Display collaborator
    # =========================================================================

    def _build_snapshot(self) -> DisplaySnapshot:
        self._version += 1
        return self.display.snapshot(
            phase=self.coordinator.phase.value,
            buffered_pairs=len(self.coordinator.buffer),
            version=self._version
        )

    def _publish_snapshot(self):
        snapshot = self._build_snapshot()
        with self._snapshot_lock:
            self._snapshot = snapshot
        if self.on_state_change:
            try:
                self.on_state_change(snapshot)
            except Exception as e:
                logger.exception(f"State change callback error: {e}")

    def snapshot(self) -> DisplaySnapshot:
        """Latest display state, with live animation progress filled in."""
        with self._snapshot_lock:
            snapshot = self._snapshot
        return replace(snapshot, animations=self.animator.describe_active())

    @property
    def state_version(self) -> int:
        with self._snapshot_lock:
            return self._snapshot.version

    def is_idle(self) -> bool:
        """True when nothing is queued, buffered or animating."""
        return (
            self.dispatcher.pending == 0 and
            not self.coordinator.busy and
            len(self.coordinator.buffer) == 0 and
            not self.animator.active()
        )

    def wait_until_idle(self, timeout: float = 10.0) -> bool:
        """
        Block until the engine has drained everything.

        Returns:
            True if idle, False on timeout

        Raises:
            RuntimeError: if the dispatcher stopped on a fatal error
        """
        deadline = time.time() + timeout
        while time.time() < deadline:
            if self.dispatcher.error is not None:
                raise RuntimeError(f"Dispatcher failed: {self.dispatcher.error}")
            if self.is_idle():
                return True
            time.sleep(0.01)
        return False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self):
        """Start the engine's dispatcher thread."""
        if self.running:
            logger.warning("Engine already running")
            return

        logger.info("Starting ZipEngine...")
        self.stats['start_time'] = time.time()
        self.running = True
        self.dispatcher.start()

        logger.info("ZipEngine started")
        logger.info(f"  Highlight: {self.highlight_ms:.0f} ms")
        logger.info(f"  Move: {self.move_ms:.0f} ms")

    def stop(self):
        """Stop the engine, cancelling any in-flight animation."""
        logger.info("Stopping ZipEngine...")
        self.running = False
        self.animator.cancel_all(self.coordinator.scope)
        self.dispatcher.stop()

        uptime = time.time() - self.stats['start_time']
        logger.info("ZipEngine stopped")
        logger.info(f"  Uptime: {uptime:.1f}s")
        logger.info(f"  Emitted: A={self.stats['emitted_a']} B={self.stats['emitted_b']}")
        logger.info(f"  Pairs committed: {self.stats['pairs_committed']}")
        logger.info(f"  Resets: {self.stats['resets']}")

    def run(self):
        """Run the engine (blocking)."""
        import signal

        # Handle shutdown signals
        def handle_signal(signum, frame):
            logger.info(f"Received signal {signum}")
            self.running = False

        signal.signal(signal.SIGTERM, handle_signal)
        signal.signal(signal.SIGINT, handle_signal)

        self.start()

        # Block until stopped
        try:
            while self.running and self.dispatcher.running:
                time.sleep(0.5)
        except KeyboardInterrupt:
            pass
        finally:
            self.stop()
