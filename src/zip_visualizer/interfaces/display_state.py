"""
Display State Data Models

These dataclasses define the contract between the zip engine and whatever
renders it (the web page, a terminal, a test). The engine owns a single
mutable DisplayState; renderers only ever see DisplaySnapshot copies.

Lifecycle of an Item:
    emit → Display Queue (waiting) → committed as part of a Pair → Output Slot

Only the drain coordinator's commit step removes items from a queue or
writes the output slot. Event sources only append.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, List, Any
import json
import time


class Side(str, Enum):
    """Input stream identifier."""
    A = "a"
    B = "b"

    @property
    def other(self) -> "Side":
        return Side.B if self is Side.A else Side.A


class QueueUpdateMode(str, Enum):
    """Hint to the renderer about how the queues last changed."""
    NONE = "none"      # Steady state, or a commit just happened
    ENTER = "enter"    # An item was just enqueued


@dataclass(frozen=True, eq=False)
class Item:
    """
    One labeled element produced by an event source.

    Equality is identity: two items are the same only if they are the same
    object, so removal from a queue can never match a different item that
    happens to carry the same key.
    """
    side: Side
    key: int
    text: str

    def to_dict(self) -> dict:
        return {'side': self.side.value, 'key': self.key, 'text': self.text}


@dataclass(frozen=True, eq=False)
class Pair:
    """Zipped (a, b) tuple; a is always from side A, b from side B."""
    a: Item
    b: Item

    def __post_init__(self):
        if self.a.side is not Side.A or self.b.side is not Side.B:
            raise ValueError(f"Pair sides out of order: {self.a.text}, {self.b.text}")

    @property
    def text(self) -> str:
        return f"[{self.a.text}, {self.b.text}]"

    def items(self) -> tuple:
        return (self.a, self.b)

    def to_dict(self) -> dict:
        return {'a': self.a.to_dict(), 'b': self.b.to_dict(), 'text': self.text}


@dataclass(frozen=True)
class DisplaySnapshot:
    """
    Read-only view of the display state at one instant.

    This is what the web server serializes for /api/state and the SSE stream.
    """
    queue_a: List[Item] = field(default_factory=list)
    queue_b: List[Item] = field(default_factory=list)
    ticks_a: List[Item] = field(default_factory=list)
    ticks_b: List[Item] = field(default_factory=list)
    output: Optional[Pair] = None
    active: Optional[Pair] = None
    queue_update_mode: QueueUpdateMode = QueueUpdateMode.NONE
    phase: str = "IDLE"
    buffered_pairs: int = 0
    animations: List[Dict[str, Any]] = field(default_factory=list)
    version: int = 0
    generated_at: float = field(default_factory=time.time)

    @property
    def output_text(self) -> str:
        """Text shown in the output box ('Empty' until the first commit)."""
        return self.output.text if self.output else "Empty"

    def to_dict(self) -> dict:
        return {
            'queue_a': [item.to_dict() for item in self.queue_a],
            'queue_b': [item.to_dict() for item in self.queue_b],
            'ticks_a': [item.to_dict() for item in self.ticks_a],
            'ticks_b': [item.to_dict() for item in self.ticks_b],
            'output': self.output.to_dict() if self.output else None,
            'output_text': self.output_text,
            'active': self.active.to_dict() if self.active else None,
            'queue_update_mode': self.queue_update_mode.value,
            'phase': self.phase,
            'buffered_pairs': self.buffered_pairs,
            'animations': list(self.animations),
            'version': self.version,
            'generated_at': self.generated_at,
        }

    def to_json(self) -> str:
        """Serialize for the web API."""
        return json.dumps(self.to_dict(), indent=2)


class DisplayState:
    """
    Mutable on-screen state: two display queues, the stream ticks, the
    output slot and the queue update mode.

    Not thread-safe. The engine only touches it from its dispatcher thread.
    """

    def __init__(self):
        self.queues: Dict[Side, List[Item]] = {Side.A: [], Side.B: []}
        self.ticks: Dict[Side, List[Item]] = {Side.A: [], Side.B: []}
        self.output: Optional[Pair] = None
        self.active: Optional[Pair] = None
        self.queue_update_mode = QueueUpdateMode.NONE

    def last_key(self, side: Side) -> int:
        """Key of the most recent item emitted on this side, or -1."""
        ticks = self.ticks[side]
        return ticks[-1].key if ticks else -1

    def enqueue(self, item: Item):
        """Record a freshly emitted item as waiting in its side's queue."""
        self.ticks[item.side].append(item)
        self.queues[item.side].append(item)
        self.queue_update_mode = QueueUpdateMode.ENTER

    def mark_active(self, pair: Pair):
        self.active = pair

    def commit(self, pair: Pair):
        """
        Finalize a pair as the output.

        Both items are removed from their queues by reference and the output
        slot is replaced in the same step.

        Raises:
            RuntimeError: if either item is no longer queued. That can only
                happen if the coordinator committed a pair twice.
        """
        for item in pair.items():
            queue = self.queues[item.side]
            index = next((i for i, queued in enumerate(queue) if queued is item), None)
            if index is None:
                raise RuntimeError(f"Commit of {pair.text}: {item.text} is not queued")
            del queue[index]
        self.output = pair
        self.active = None
        self.queue_update_mode = QueueUpdateMode.NONE

    def clear(self):
        """Drop everything; used by reset."""
        for side in Side:
            self.queues[side] = []
            self.ticks[side] = []
        self.output = None
        self.active = None
        self.queue_update_mode = QueueUpdateMode.NONE

    def snapshot(self, **extra) -> DisplaySnapshot:
        """Copy the current state into an immutable snapshot."""
        return DisplaySnapshot(
            queue_a=list(self.queues[Side.A]),
            queue_b=list(self.queues[Side.B]),
            ticks_a=list(self.ticks[Side.A]),
            ticks_b=list(self.ticks[Side.B]),
            output=self.output,
            active=self.active,
            queue_update_mode=self.queue_update_mode,
            **extra
        )
