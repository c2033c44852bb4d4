"""Core zip engine - pairing, buffering and serialized draining.

Contains:
- ZipEngine: wires two event sources through the zip combinator into the drain coordinator
- DrainCoordinator: single-worker state machine that animates and commits one pair at a time
"""

from .event_source import EventSource
from .zip_combinator import ZipCombinator
from .drain_coordinator import DrainCoordinator, DrainPhase, PairBuffer
from .dispatcher import EventDispatcher
from .zip_engine import ZipEngine

__all__ = [
    'ZipEngine', 'DrainCoordinator', 'DrainPhase', 'PairBuffer',
    'ZipCombinator', 'EventSource', 'EventDispatcher',
]
