"""
zip-visualizer: Interactive zip operator demo

This package animates the "zip" stream combinator. Two independently
triggered input streams are paired Nth-with-Nth, and every pair is walked
through a highlight/move animation into a single output slot, one pair at a
time and strictly in arrival order.

Architecture:
    Emit A / Emit B → ZipCombinator → Pair Buffer → Drain Coordinator → Display State

The interesting part is the drain coordinator: pairs are produced whenever
both sides have an item, but they are consumed only as fast as the
animations allow. The coordinator buffers them and drains exhaustively with a
single worker, so only one pair is ever in flight.

Version: 1.0.0
"""

__version__ = "1.0.0"

from .interfaces.display_state import (
    Side,
    Item,
    Pair,
    DisplaySnapshot,
    QueueUpdateMode,
)

__all__ = [
    "Side",
    "Item",
    "Pair",
    "DisplaySnapshot",
    "QueueUpdateMode",
    "__version__",
]
