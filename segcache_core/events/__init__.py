"""Events module - Cache events, listeners and dispatch."""

from segcache_core.events.event import (
    EventType,
    SegmentCacheEvent,
    SegmentCacheListener,
    FunctionSegmentCacheListener,
)
from segcache_core.events.dispatcher import (
    EventDispatcher,
    ListenerRegistry,
    DispatchStats,
)

__all__ = [
    "EventType",
    "SegmentCacheEvent",
    "SegmentCacheListener",
    "FunctionSegmentCacheListener",
    "EventDispatcher",
    "ListenerRegistry",
    "DispatchStats",
]
