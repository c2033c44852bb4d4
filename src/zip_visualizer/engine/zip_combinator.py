"""
Zip Combinator - pairs the Nth item of side A with the Nth item of side B.

Standard zip semantics: each side has a FIFO of items still waiting for a
partner. An arriving item either takes the oldest waiting item from the other
side and forms a Pair, or joins its own side's FIFO. Because a pair is formed
as soon as both FIFOs are non-empty, at most one FIFO is ever non-empty, which
is what guarantees Nth-with-Nth matching regardless of arrival timing.

There is no size limit; the faster side simply accumulates.
"""

import logging
from collections import deque
from typing import Callable, Deque, Dict, List

from ..interfaces.display_state import Item, Pair, Side
from .event_source import EventSource

logger = logging.getLogger('zip-visualizer.engine')


class ZipCombinator:
    """
    Live zip subscription over two event sources.

    One instance is one subscription. Reset disposes it and builds a new one
    so no item seen before the reset can ever be matched with one after it.
    """

    def __init__(
        self,
        source_a: EventSource,
        source_b: EventSource,
        on_pair: Callable[[Pair], None]
    ):
        """
        Args:
            source_a: Event source for side A
            source_b: Event source for side B
            on_pair: Called with each Pair as soon as it is formed
        """
        self.on_pair = on_pair
        self.pairs_emitted = 0
        self.closed = False
        self._pending: Dict[Side, Deque[Item]] = {Side.A: deque(), Side.B: deque()}
        self._unsubscribers = [
            source_a.subscribe(self._on_item),
            source_b.subscribe(self._on_item),
        ]

    def pending(self, side: Side) -> List[Item]:
        """Items on this side still waiting for a partner, oldest first."""
        return list(self._pending[side])

    def _on_item(self, item: Item):
        if self.closed:
            return

        waiting = self._pending[item.side.other]
        if not waiting:
            self._pending[item.side].append(item)
            return

        partner = waiting.popleft()
        if item.side is Side.A:
            pair = Pair(a=item, b=partner)
        else:
            pair = Pair(a=partner, b=item)

        self.pairs_emitted += 1
        logger.debug(f"Zipped {pair.text} (#{self.pairs_emitted})")
        self.on_pair(pair)

    def dispose(self):
        """Unsubscribe from both sources and drop pending items."""
        if self.closed:
            return
        self.closed = True
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        for side in Side:
            self._pending[side].clear()
