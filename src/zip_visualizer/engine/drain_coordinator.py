"""
Drain Coordinator - serializes the animation and commit of zipped pairs.

Pairs arrive from the zip combinator whenever both sides have an item, which
has nothing to do with animation timing. The coordinator buffers them and
walks exactly one pair at a time through:

    IDLE ──push──▶ HIGHLIGHTING ──both done──▶ MOVING ──both done──▶ commit ──▶ IDLE
      ▲                                                                 │
      └──────────────────── buffer non-empty? next pair ◀───────────────┘

Each phase issues one animation per item (side A and side B run in
parallel). The phase only advances when *both* completions have arrived, so
commit happens exactly once per pair no matter which side finishes first.

Reset bumps a generation counter. Any completion carrying an older
generation is ignored, which covers callbacks that were already queued on
the dispatcher when the timers were cancelled.
"""

import logging
from collections import deque
from enum import Enum
from typing import Callable, Deque, List, Optional, Set

from ..animation.animator import DEFAULT_SCOPE, AnimationPhase, Animator
from ..interfaces.display_state import DisplayState, Pair, Side

logger = logging.getLogger('zip-visualizer.coordinator')


class DrainPhase(Enum):
    """Coordinator state. Anything other than IDLE counts as busy."""
    IDLE = "IDLE"
    HIGHLIGHTING = "HIGHLIGHTING"
    MOVING = "MOVING"


class PairBuffer:
    """Unbounded FIFO of pairs waiting to be drained."""

    def __init__(self):
        self._pairs: Deque[Pair] = deque()

    def __len__(self) -> int:
        return len(self._pairs)

    def push(self, pair: Pair):
        self._pairs.append(pair)

    def pop(self) -> Pair:
        """Remove the head pair. Popping an empty buffer is a coordinator bug."""
        if not self._pairs:
            raise RuntimeError("Pop from empty pair buffer")
        return self._pairs.popleft()

    def clear(self):
        self._pairs.clear()

    def pairs(self) -> List[Pair]:
        return list(self._pairs)


class DrainCoordinator:
    """
    Single worker that drains the pair buffer to completion.

    All methods must be called from the engine's dispatcher thread (or from
    a test driving everything synchronously).
    """

    def __init__(
        self,
        display: DisplayState,
        animator: Animator,
        highlight_ms: float = 500.0,
        move_ms: float = 500.0,
        on_commit: Optional[Callable[[Pair], None]] = None,
        scope: str = DEFAULT_SCOPE
    ):
        """
        Args:
            display: Display state mutated by the commit step
            animator: Animation collaborator
            highlight_ms: Delay of the highlight phase
            move_ms: Duration of the move phase
            on_commit: Called after each commit, before the next pair starts
            scope: Animation scope cancelled by reset
        """
        self.display = display
        self.animator = animator
        self.highlight_ms = highlight_ms
        self.move_ms = move_ms
        self.on_commit = on_commit
        self.scope = scope

        self.buffer = PairBuffer()
        self.phase = DrainPhase.IDLE
        self.current: Optional[Pair] = None
        self.commits = 0
        self._waiting_on: Set[Side] = set()
        self._generation = 0

    @property
    def busy(self) -> bool:
        return self.phase is not DrainPhase.IDLE

    def push(self, pair: Pair):
        """Buffer a pair; start draining if nothing is in flight."""
        self.buffer.push(pair)
        if self.busy:
            logger.debug(f"Buffered {pair.text} behind {self.current.text} ({len(self.buffer)} waiting)")
            return
        self._drain_next()

    def _drain_next(self):
        if self.busy:
            raise RuntimeError(f"Drain started while {self.phase.value} on {self.current.text}")
        if not len(self.buffer):
            return

        pair = self.buffer.pop()
        self.current = pair
        self.display.mark_active(pair)
        self._begin(DrainPhase.HIGHLIGHTING, pair)

    def _begin(self, phase: DrainPhase, pair: Pair):
        self.phase = phase
        self._waiting_on = {Side.A, Side.B}
        generation = self._generation

        if phase is DrainPhase.HIGHLIGHTING:
            animation, duration = AnimationPhase.HIGHLIGHT, self.highlight_ms
        else:
            animation, duration = AnimationPhase.MOVE, self.move_ms

        logger.debug(f"{pair.text}: {phase.value}")
        for item in pair.items():
            self.animator.animate(
                item,
                animation,
                duration,
                self._completion(generation, pair, phase, item.side),
                scope=self.scope
            )

    def _completion(self, generation: int, pair: Pair, phase: DrainPhase, side: Side) -> Callable[[], None]:
        def on_complete():
            self._on_phase_complete(generation, pair, phase, side)
        return on_complete

    def _on_phase_complete(self, generation: int, pair: Pair, phase: DrainPhase, side: Side):
        if generation != self._generation or pair is not self.current or phase is not self.phase:
            logger.debug(f"Ignoring stale {phase.value} completion for {pair.text}")
            return

        self._waiting_on.discard(side)
        if self._waiting_on:
            return

        if phase is DrainPhase.HIGHLIGHTING:
            self._begin(DrainPhase.MOVING, pair)
        else:
            self._commit(pair)

    def _commit(self, pair: Pair):
        self.display.commit(pair)
        self.current = None
        self.phase = DrainPhase.IDLE
        self.commits += 1
        logger.info(f"Committed {pair.text} ({len(self.buffer)} pair(s) still buffered)")

        if self.on_commit:
            self.on_commit(pair)

        # Re-check unconditionally so draining does not depend on new arrivals
        self._drain_next()

    def reset(self):
        """Cancel in-flight animation, drop buffered pairs and return to IDLE."""
        self._generation += 1
        cancelled = self.animator.cancel_all(self.scope)
        dropped = len(self.buffer)
        self.buffer.clear()
        self.current = None
        self.phase = DrainPhase.IDLE
        self._waiting_on = set()
        logger.debug(f"Coordinator reset: {cancelled} animation(s) cancelled, {dropped} pair(s) dropped")
