"""Data contract between the zip engine and its renderers."""

from .display_state import (
    Side,
    QueueUpdateMode,
    Item,
    Pair,
    DisplaySnapshot,
    DisplayState,
)

__all__ = ['Side', 'QueueUpdateMode', 'Item', 'Pair', 'DisplaySnapshot', 'DisplayState']
