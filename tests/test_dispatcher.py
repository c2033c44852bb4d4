"""
Tests for the engine's event dispatcher.
"""

import threading
import pytest


class TestEventDispatcher:
    """Ordering, synchronous pumping and fatal errors."""

    def test_events_run_in_posting_order(self):
        """process_pending runs everything queued, oldest first."""
        from zip_visualizer.engine.dispatcher import EventDispatcher

        dispatcher = EventDispatcher()
        seen = []
        for n in range(5):
            dispatcher.post(seen.append, n)

        assert dispatcher.pending == 5
        assert dispatcher.process_pending() == 5
        assert seen == [0, 1, 2, 3, 4]
        assert dispatcher.pending == 0

    def test_events_posted_while_processing_are_run(self):
        """An event that posts another is followed by it in the same pump."""
        from zip_visualizer.engine.dispatcher import EventDispatcher

        dispatcher = EventDispatcher()
        seen = []
        dispatcher.post(lambda: (seen.append('first'), dispatcher.post(seen.append, 'second')))
        dispatcher.process_pending()

        assert seen == ['first', 'second']

    def test_callback_after_each_event(self):
        """on_event_processed runs once per event."""
        from zip_visualizer.engine.dispatcher import EventDispatcher

        calls = []
        dispatcher = EventDispatcher(on_event_processed=lambda: calls.append(1))
        dispatcher.post(lambda: None)
        dispatcher.post(lambda: None)
        dispatcher.process_pending()

        assert len(calls) == 2

    def test_process_pending_propagates_errors(self):
        """Synchronous pumping surfaces invariant violations to the caller."""
        from zip_visualizer.engine.dispatcher import EventDispatcher

        def broken():
            raise RuntimeError("invariant")

        dispatcher = EventDispatcher()
        dispatcher.post(broken)
        with pytest.raises(RuntimeError):
            dispatcher.process_pending()
        assert dispatcher.pending == 0

    def test_thread_stops_on_fatal_error(self):
        """The worker thread records the error and stops."""
        from zip_visualizer.engine.dispatcher import EventDispatcher

        def broken():
            raise RuntimeError("invariant")

        dispatcher = EventDispatcher(name="TestDispatcher")
        dispatcher.start()
        dispatcher.post(broken)
        dispatcher.thread.join(timeout=2.0)

        assert isinstance(dispatcher.error, RuntimeError)
        assert dispatcher.running is False
        dispatcher.stop()

    def test_thread_survives_non_invariant_error(self):
        """Errors other than RuntimeError are logged and the loop keeps going."""
        from zip_visualizer.engine.dispatcher import EventDispatcher

        def broken():
            raise ValueError("bad event")

        done = threading.Event()
        dispatcher = EventDispatcher(name="TestDispatcher")
        dispatcher.start()
        try:
            dispatcher.post(broken)
            dispatcher.post(done.set)
            assert done.wait(timeout=2.0)
            assert dispatcher.running is True
            assert dispatcher.error is None
        finally:
            dispatcher.stop()

    def test_thread_runs_events(self):
        """Events posted from another thread run on the worker thread."""
        from zip_visualizer.engine.dispatcher import EventDispatcher

        done = threading.Event()
        names = []

        def record():
            names.append(threading.current_thread().name)
            done.set()

        dispatcher = EventDispatcher(name="TestDispatcher")
        dispatcher.start()
        try:
            dispatcher.post(record)
            assert done.wait(timeout=2.0)
        finally:
            dispatcher.stop()

        assert names == ["TestDispatcher"]
