"""SegCache Events - Cache Events and Listener Interface.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable


class EventType(Enum):
    """Segment cache event types."""

    ENTRY_CREATED = "ENTRY_CREATED"
    ENTRY_DELETED = "ENTRY_DELETED"


@dataclass(frozen=True)
class SegmentCacheEvent:
    """A segment appeared in or disappeared from the shared cache.

    Attributes:
        event_type: Created or deleted
        source: Decoded segment header
        is_local: Whether this process originated the change
    """

    event_type: EventType
    source: Any
    is_local: bool = False

    @property
    def is_created(self) -> bool:
        return self.event_type is EventType.ENTRY_CREATED

    @property
    def is_deleted(self) -> bool:
        return self.event_type is EventType.ENTRY_DELETED

    def __str__(self) -> str:
        return f"SegmentCacheEvent({self.event_type.value}, {self.source!r})"


class SegmentCacheListener(ABC):
    """Observer of segment cache events.

    Events are delivered at least once: a listener may see the same
    transition more than once and must tolerate duplicates.
    """

    @abstractmethod
    def handle(self, event: SegmentCacheEvent) -> None:
        """Called for every created or deleted segment."""
        pass


class FunctionSegmentCacheListener(SegmentCacheListener):
    """Listener that delegates to a function."""

    def __init__(self, callback: Callable[[SegmentCacheEvent], None]):
        self._callback = callback

    def handle(self, event: SegmentCacheEvent) -> None:
        self._callback(event)

    def __repr__(self) -> str:
        name = getattr(self._callback, "__name__", type(self._callback).__name__)
        return f"FunctionSegmentCacheListener({name})"


__all__ = [
    "EventType",
    "SegmentCacheEvent",
    "SegmentCacheListener",
    "FunctionSegmentCacheListener",
]
