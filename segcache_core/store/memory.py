"""SegCache Memory Store - In-Process Entry Store.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Set, Tuple

from segcache_core.store.backend import (
    EntryStore,
    MessageHandler,
    StorageConfig,
    Subscription,
    TransitionKind,
)

logger = logging.getLogger(__name__)


@dataclass
class MemoryConfig(StorageConfig):
    """In-process store configuration.

    Attributes:
        notify_keyspace_events: Publish key events on set/del/expiry/eviction
    """

    name: str = "memory"
    notify_keyspace_events: bool = True


class MemorySubscription(Subscription):
    """Subscription handle for MemoryStore."""

    def __init__(self, store: "MemoryStore", channel: str, handler: MessageHandler):
        self._store = store
        self._channel = channel
        self._handler = handler
        self._active = True

    @property
    def channel(self) -> str:
        return self._channel

    @property
    def is_active(self) -> bool:
        return self._active

    def deliver(self, message: str) -> None:
        """Hand one message to the handler."""
        if not self._active:
            return
        try:
            self._handler(self._channel, message)
        except Exception as e:
            logger.error(f"Subscriber on {self._channel} failed: {e}")

    def close(self) -> None:
        if self._active:
            self._active = False
            self._store._unsubscribe(self)


class MemoryStore(EntryStore):
    """In-process entry store.

    Behaves like a single Redis database: string entries with native
    expiry, one index set, and key-event notifications. Suited to
    single-process deployments and tests.

    Features:
    - Thread-safe with RLock
    - Lazy expiry on access, plus expire_due() for a full sweep
    - evict() to simulate memory-pressure eviction
    - Key-event messages delivered synchronously, outside the lock

    Example:
        store = MemoryStore()
        store.add_to_index("k")
        store.set_with_expiry("k", "v", ttl_seconds=60)
        assert store.exists("k")
    """

    def __init__(self, config: Optional[MemoryConfig] = None):
        """Initialize memory store.

        Args:
            config: Store configuration
        """
        super().__init__(config or MemoryConfig())
        self.config: MemoryConfig
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._index: Set[str] = set()
        self._subscribers: Dict[str, List[MemorySubscription]] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[str]:
        events: List[Tuple[TransitionKind, str]] = []
        with self._lock:
            self._stats.reads += 1
            value = self._live_value(key, events)
        self._notify(events)
        return value

    def set(self, key: str, value: str) -> bool:
        return self._store(key, value, None)

    def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> bool:
        if ttl_seconds <= 0:
            return False
        return self._store(key, value, time.time() + ttl_seconds)

    def delete(self, key: str) -> int:
        events: List[Tuple[TransitionKind, str]] = []
        with self._lock:
            self._stats.deletes += 1
            if key == self.index_key:
                removed = 1 if self._index else 0
                self._index.clear()
            elif self._live_value(key, events) is not None:
                del self._data[key]
                removed = 1
            else:
                removed = 0
            if removed:
                events.append((TransitionKind.DELETED, key))
        self._notify(events)
        return removed

    def exists(self, key: str) -> bool:
        events: List[Tuple[TransitionKind, str]] = []
        with self._lock:
            if key == self.index_key:
                return bool(self._index)
            found = self._live_value(key, events) is not None
        self._notify(events)
        return found

    def add_to_index(self, key: str) -> bool:
        with self._lock:
            self._stats.index_updates += 1
            if key in self._index:
                return False
            self._index.add(key)
            return True

    def remove_from_index(self, key: str) -> bool:
        with self._lock:
            self._stats.index_updates += 1
            if key not in self._index:
                return False
            self._index.discard(key)
            return True

    def scan_index(self) -> Iterator[str]:
        with self._lock:
            self._stats.scans += 1
            members = list(self._index)
        return iter(members)

    def clear_index(self) -> int:
        return self.delete(self.index_key)

    def index_size(self) -> int:
        with self._lock:
            return len(self._index)

    @property
    def supports_pubsub(self) -> bool:
        return True

    def publish(self, channel: str, message: str) -> int:
        with self._lock:
            targets = list(self._subscribers.get(channel, ()))
        for subscription in targets:
            subscription.deliver(message)
        return len(targets)

    def subscribe(self, channel: str, on_message: MessageHandler) -> Subscription:
        subscription = MemorySubscription(self, channel, on_message)
        with self._lock:
            self._subscribers.setdefault(channel, []).append(subscription)
        logger.debug(f"Subscribed to {channel}")
        return subscription

    def evict(self, key: str) -> bool:
        """Drop an entry the way memory-pressure eviction would.

        The index set is left untouched.

        Args:
            key: Entry key

        Returns:
            True if an entry was evicted
        """
        with self._lock:
            if self._data.pop(key, None) is None:
                return False
        self._notify([(TransitionKind.EVICTED, key)])
        return True

    def expire_due(self) -> int:
        """Expire every entry whose TTL has elapsed.

        Returns:
            Number of entries expired
        """
        events: List[Tuple[TransitionKind, str]] = []
        with self._lock:
            for key in list(self._data.keys()):
                self._live_value(key, events)
        self._notify(events)
        return len(events)

    def ttl(self, key: str) -> Optional[float]:
        """Get remaining TTL in seconds, or None without expiry."""
        with self._lock:
            item = self._data.get(key)
            if item is None or item[1] is None:
                return None
            return max(0.0, item[1] - time.time())

    def keys(self) -> List[str]:
        """Get all live entry keys."""
        self.expire_due()
        with self._lock:
            return list(self._data.keys())

    def _store(self, key: str, value: str, expires_at: Optional[float]) -> bool:
        with self._lock:
            self._data[key] = (value, expires_at)
            self._stats.writes += 1
        self._notify([(TransitionKind.CREATED, key)])
        return True

    def _live_value(
        self,
        key: str,
        events: List[Tuple[TransitionKind, str]],
    ) -> Optional[str]:
        """Return the value if present and unexpired. Caller holds the lock."""
        item = self._data.get(key)
        if item is None:
            return None

        value, expires_at = item
        if expires_at is not None and time.time() >= expires_at:
            del self._data[key]
            events.append((TransitionKind.EXPIRED, key))
            return None

        return value

    def _notify(self, events: List[Tuple[TransitionKind, str]]) -> None:
        if not self.config.notify_keyspace_events:
            return
        for kind, key in events:
            self.publish(self.channel_name(kind), key)

    def _unsubscribe(self, subscription: MemorySubscription) -> None:
        with self._lock:
            subscribers = self._subscribers.get(subscription.channel, [])
            if subscription in subscribers:
                subscribers.remove(subscription)

    def close(self) -> None:
        with self._lock:
            subscriptions = [s for subs in self._subscribers.values() for s in subs]
        for subscription in subscriptions:
            subscription.close()

    def __len__(self) -> int:
        return len(self.keys())

    def __repr__(self) -> str:
        return f"MemoryStore(entries={len(self._data)}, indexed={len(self._index)})"


__all__ = ["MemoryStore", "MemoryConfig", "MemorySubscription"]
