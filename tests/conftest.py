"""
Pytest configuration and fixtures for zip-visualizer tests.
"""

import pytest
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from zip_visualizer.animation.animator import (
    DEFAULT_SCOPE,
    AnimationHandle,
    Animator,
)


class ManualAnimator(Animator):
    """
    Animator that never completes on its own.

    Requests are recorded in order; tests complete them explicitly, which
    makes every interleaving of completions reproducible.
    """

    def __init__(self, post=None):
        self.post = post         # deliver completions through a dispatcher when set
        self.requests = []       # every handle ever requested, in order
        self._callbacks = {}     # active handle -> on_complete

    def animate(self, target, phase, duration_ms, on_complete, scope=DEFAULT_SCOPE):
        handle = AnimationHandle(target=target, phase=phase, duration_ms=duration_ms, scope=scope)
        self.requests.append(handle)
        self._callbacks[handle] = on_complete
        return handle

    def cancel_all(self, scope=DEFAULT_SCOPE):
        doomed = [h for h in self._callbacks if h.scope == scope]
        for handle in doomed:
            handle.cancelled = True
            del self._callbacks[handle]
        return len(doomed)

    def active(self):
        return list(self._callbacks)

    def complete(self, handle):
        """Fire one handle's completion."""
        on_complete = self._callbacks.pop(handle)
        handle.completed = True
        if self.post is not None:
            self.post(on_complete)
        else:
            on_complete()

    def complete_all(self):
        """Fire every currently active handle, oldest first."""
        for handle in list(self._callbacks):
            if handle in self._callbacks:
                self.complete(handle)

    def run_until_idle(self, process=None, limit=1000):
        """
        Keep completing animations until none are left.

        Args:
            process: Called after each round to deliver posted completions
                     (e.g. a dispatcher's process_pending)
        """
        rounds = 0
        if process:
            process()
        while self._callbacks:
            self.complete_all()
            if process:
                process()
            rounds += 1
            assert rounds < limit, "animations never settled"


@pytest.fixture
def animator():
    """Deterministic animator driven by the test."""
    return ManualAnimator()


@pytest.fixture
def display():
    from zip_visualizer.interfaces.display_state import DisplayState
    return DisplayState()


@pytest.fixture
def engine(animator):
    """
    ZipEngine whose dispatcher is never started.

    Triggers and animation completions pile up on the dispatcher queue until
    the test calls engine.dispatcher.process_pending().
    """
    from zip_visualizer.engine.zip_engine import ZipEngine
    eng = ZipEngine(highlight_ms=500, move_ms=500, animator=animator)
    animator.post = eng.dispatcher.post
    return eng


@pytest.fixture
def settle(engine, animator):
    """Process queued triggers and run every animation to completion."""
    def _settle():
        animator.run_until_idle(process=engine.dispatcher.process_pending)
    return _settle
