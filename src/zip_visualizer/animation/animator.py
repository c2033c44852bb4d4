"""
Animation collaborator for the drain coordinator.

The coordinator only needs "schedule a timed effect on this item and tell me
when it is done", plus a way to cancel everything at once for reset.
TimerAnimator provides that with one threading.Timer per request. Completion
callbacks are handed to a `post` function (normally the engine dispatcher) so
they run on the engine's single logical thread, never on the timer thread.

Renderers can ask for the current progress of every active animation; the
eased values are computed with numpy so a page can interpolate positions
without knowing the durations.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from ..interfaces.display_state import Item

logger = logging.getLogger('zip-visualizer.animation')

DEFAULT_SCOPE = "zip"

# Fill applied to an item's rect while it is highlighted
HIGHLIGHT_COLOR = "#fae560"

# Distance the queued items travel toward the output during the move phase
MOVE_DISTANCE_PX = 80.0


class AnimationPhase(str, Enum):
    """The two timed effects applied to each item of a pair."""
    HIGHLIGHT = "highlight"
    MOVE = "move"


@dataclass(eq=False)
class AnimationHandle:
    """One scheduled effect on one item."""
    target: Item
    phase: AnimationPhase
    duration_ms: float
    scope: str = DEFAULT_SCOPE
    started_at: float = field(default_factory=time.monotonic)
    cancelled: bool = False
    completed: bool = False

    def progress(self, now: Optional[float] = None) -> float:
        """Linear progress in [0, 1]."""
        if self.completed:
            return 1.0
        if self.duration_ms <= 0:
            return 1.0
        now = time.monotonic() if now is None else now
        elapsed_ms = (now - self.started_at) * 1000.0
        return float(np.clip(elapsed_ms / self.duration_ms, 0.0, 1.0))


class Animator(ABC):
    """
    Interface consumed by the drain coordinator.

    Subclasses must call `on_complete` exactly once per handle unless the
    handle is cancelled first, in which case it must never be called.
    """

    @abstractmethod
    def animate(
        self,
        target: Item,
        phase: AnimationPhase,
        duration_ms: float,
        on_complete: Callable[[], None],
        scope: str = DEFAULT_SCOPE
    ) -> AnimationHandle:
        pass

    @abstractmethod
    def cancel_all(self, scope: str = DEFAULT_SCOPE) -> int:
        """Cancel every active animation in scope. Returns how many were cancelled."""
        pass

    @abstractmethod
    def active(self) -> List[AnimationHandle]:
        pass

    def describe_active(self) -> List[Dict[str, Any]]:
        """Render-friendly description of each active animation."""
        now = time.monotonic()
        return [describe(handle, now) for handle in self.active()]


def describe(
    handle: AnimationHandle,
    now: Optional[float] = None,
    move_distance_px: float = MOVE_DISTANCE_PX
) -> Dict[str, Any]:
    """Map a handle to the visual parameters a renderer needs."""
    progress = handle.progress(now)
    info = {
        'target': handle.target.text,
        'side': handle.target.side.value,
        'phase': handle.phase.value,
        'progress': round(progress, 4),
        'fill': HIGHLIGHT_COLOR,
        'translate_y': 0.0,
    }
    if handle.phase is AnimationPhase.MOVE:
        # easeLinear over the move distance
        info['translate_y'] = float(np.interp(progress, [0.0, 1.0], [0.0, move_distance_px]))
    return info


class TimerAnimator(Animator):
    """
    Animator backed by threading.Timer.

    The highlight phase is a pure delay and the move phase a fixed-duration
    translate; both simply complete after `duration_ms`.
    """

    def __init__(
        self,
        post: Optional[Callable[..., None]] = None,
        move_distance_px: float = MOVE_DISTANCE_PX
    ):
        """
        Args:
            post: Function used to deliver completion callbacks, called as
                  post(on_complete). If None, callbacks run on the timer thread.
            move_distance_px: translateY distance reported for the move phase
        """
        self.post = post
        self.move_distance_px = move_distance_px
        self._lock = threading.Lock()
        self._timers: Dict[AnimationHandle, threading.Timer] = {}
        self.stats = {
            'started': 0,
            'completed': 0,
            'cancelled': 0,
        }

    def animate(
        self,
        target: Item,
        phase: AnimationPhase,
        duration_ms: float,
        on_complete: Callable[[], None],
        scope: str = DEFAULT_SCOPE
    ) -> AnimationHandle:
        handle = AnimationHandle(
            target=target,
            phase=phase,
            duration_ms=duration_ms,
            scope=scope
        )
        timer = threading.Timer(
            max(duration_ms, 0.0) / 1000.0,
            self._fire,
            args=(handle, on_complete)
        )
        timer.daemon = True
        timer.name = f"Animate-{target.text}-{phase.value}"

        with self._lock:
            self._timers[handle] = timer
            self.stats['started'] += 1
        timer.start()

        logger.debug(f"{phase.value} {target.text} for {duration_ms:.0f} ms")
        return handle

    def _fire(self, handle: AnimationHandle, on_complete: Callable[[], None]):
        with self._lock:
            if handle.cancelled or handle not in self._timers:
                return
            del self._timers[handle]
            handle.completed = True
            self.stats['completed'] += 1

        if self.post is not None:
            self.post(on_complete)
        else:
            on_complete()

    def cancel_all(self, scope: str = DEFAULT_SCOPE) -> int:
        with self._lock:
            doomed = [h for h in self._timers if h.scope == scope]
            for handle in doomed:
                handle.cancelled = True
                self._timers.pop(handle).cancel()
            self.stats['cancelled'] += len(doomed)

        if doomed:
            logger.debug(f"Cancelled {len(doomed)} animation(s) in scope '{scope}'")
        return len(doomed)

    def active(self) -> List[AnimationHandle]:
        with self._lock:
            return list(self._timers)

    def describe_active(self) -> List[Dict[str, Any]]:
        now = time.monotonic()
        return [describe(h, now, self.move_distance_px) for h in self.active()]
