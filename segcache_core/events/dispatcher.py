"""SegCache Dispatcher - Listener Registry and Event Delivery.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from segcache_core.events.event import EventType, SegmentCacheEvent, SegmentCacheListener
from segcache_core.exceptions import DecodeError
from segcache_core.protocol.codec import Codec

logger = logging.getLogger(__name__)


class ListenerRegistry:
    """Thread-safe set of listeners.

    Listeners are keyed by identity. Iteration works on a snapshot, so
    listeners may be added or removed while a dispatch is running.
    """

    def __init__(self) -> None:
        self._listeners: Dict[int, SegmentCacheListener] = {}
        self._lock = threading.Lock()

    def add(self, listener: SegmentCacheListener) -> bool:
        """Register a listener.

        Returns:
            True if it was not already registered
        """
        with self._lock:
            if id(listener) in self._listeners:
                return False
            self._listeners[id(listener)] = listener
            return True

    def remove(self, listener: SegmentCacheListener) -> bool:
        """Unregister a listener.

        Returns:
            True if it was registered
        """
        with self._lock:
            if id(listener) not in self._listeners:
                return False
            del self._listeners[id(listener)]
            return True

    def snapshot(self) -> List[SegmentCacheListener]:
        """Get a copy of the current listeners."""
        with self._lock:
            return list(self._listeners.values())

    def clear(self) -> None:
        with self._lock:
            self._listeners.clear()

    def __contains__(self, listener: object) -> bool:
        with self._lock:
            return id(listener) in self._listeners

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)


@dataclass
class DispatchStats:
    """Dispatcher statistics.

    Attributes:
        created: Created events delivered
        deleted: Deleted events delivered
        dropped: Keys dropped because they did not decode
        listener_failures: Listener calls that raised
    """

    created: int = 0
    deleted: int = 0
    dropped: int = 0
    listener_failures: int = 0


class EventDispatcher:
    """Turns encoded keys into events and delivers them to listeners.

    Keys that do not decode are dropped silently: they come from corrupt
    or foreign-format entries, which listeners cannot act on. Listener
    failures are logged and do not affect delivery to other listeners.

    Example:
        dispatcher = EventDispatcher(codec, registry)
        dispatcher.dispatch_created(encoded_key)
    """

    def __init__(self, codec: Codec, registry: Optional[ListenerRegistry] = None):
        self.codec = codec
        self.registry = registry or ListenerRegistry()
        self._stats = DispatchStats()
        self._stats_lock = threading.Lock()

    def dispatch_created(self, key: str) -> int:
        """Deliver a created event for key to every listener.

        Returns:
            Number of listeners that handled the event
        """
        return self._dispatch(key, EventType.ENTRY_CREATED)

    def dispatch_deleted(self, key: str) -> int:
        """Deliver a deleted event for key to every listener.

        Returns:
            Number of listeners that handled the event
        """
        return self._dispatch(key, EventType.ENTRY_DELETED)

    def deliver(
        self,
        listener: SegmentCacheListener,
        key: str,
        event_type: EventType = EventType.ENTRY_CREATED,
    ) -> bool:
        """Deliver one event to a single listener.

        Returns:
            True if the key decoded and the listener handled it
        """
        header = self._decode(key)
        if header is None:
            return False
        delivered = self._call(listener, SegmentCacheEvent(event_type, header))
        if delivered:
            self._count(event_type)
        return delivered

    def _dispatch(self, key: str, event_type: EventType) -> int:
        header = self._decode(key)
        if header is None:
            return 0

        delivered = 0
        for listener in self.registry.snapshot():
            if self._call(listener, SegmentCacheEvent(event_type, header)):
                delivered += 1

        if delivered:
            self._count(event_type, delivered)
        logger.debug(f"Dispatched {event_type.value} for {key!r} to {delivered} listeners")
        return delivered

    def _decode(self, key: str) -> Optional[Any]:
        try:
            return self.codec.decode_header(key)
        except DecodeError as e:
            with self._stats_lock:
                self._stats.dropped += 1
            logger.debug(f"Dropping undecodable key {key!r}: {e}")
            return None

    def _call(self, listener: SegmentCacheListener, event: SegmentCacheEvent) -> bool:
        try:
            listener.handle(event)
            return True
        except Exception:
            with self._stats_lock:
                self._stats.listener_failures += 1
            logger.exception(f"Listener {listener!r} failed on {event}")
            return False

    def _count(self, event_type: EventType, n: int = 1) -> None:
        with self._stats_lock:
            if event_type is EventType.ENTRY_CREATED:
                self._stats.created += n
            else:
                self._stats.deleted += n

    def get_stats(self) -> DispatchStats:
        """Get dispatcher statistics."""
        with self._stats_lock:
            return DispatchStats(**vars(self._stats))


__all__ = ["ListenerRegistry", "EventDispatcher", "DispatchStats"]
