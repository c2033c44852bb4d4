"""
Event Source - one externally triggered input stream.

Each trigger creates a new Item with the next key for its side, shows it as
waiting in the side's display queue and then publishes it to subscribers
(the zip combinator).
"""

import logging
from typing import Callable, List

from ..interfaces.display_state import DisplayState, Item, Side

logger = logging.getLogger('zip-visualizer.engine')


class EventSource:
    """Producer of discrete labeled items for one side."""

    def __init__(self, side: Side, display: DisplayState):
        """
        Args:
            side: Which input stream this source drives
            display: Display state that receives the queued item
        """
        self.side = side
        self.display = display
        self._subscribers: List[Callable[[Item], None]] = []

    def subscribe(self, callback: Callable[[Item], None]) -> Callable[[], None]:
        """
        Register a subscriber for items emitted from now on.

        Returns:
            Function that removes this subscription. Calling it twice is harmless.
        """
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def emit(self) -> Item:
        """Create the next item, enqueue it for display, then publish it."""
        key = self.display.last_key(self.side) + 1
        item = Item(side=self.side, key=key, text=f"{self.side.value}{key}")
        self.display.enqueue(item)
        logger.debug(f"Emitted {item.text}")

        for callback in list(self._subscribers):
            callback(item)
        return item
