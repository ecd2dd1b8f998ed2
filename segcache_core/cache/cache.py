"""SegCache Cache - Shared Segment Cache Facade.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, time as time_of_day
from typing import Any, Dict, Iterator, List, Optional, Set, Union

from segcache_core.cache.expiry import (
    ExpiryCallback,
    ExpiryPolicy,
    parse_time_of_day,
    resolve_expiry_policy,
)
from segcache_core.events.dispatcher import EventDispatcher, ListenerRegistry
from segcache_core.events.event import SegmentCacheListener
from segcache_core.exceptions import ConfigurationError, DecodeError
from segcache_core.protocol.codec import Codec, SerializerCodec
from segcache_core.store.backend import EntryStore, TransitionKind
from segcache_core.sync.feed import (
    ChangeFeed,
    FeedMode,
    KeyTransition,
    build_change_feed,
    transitions_from,
)
from segcache_core.sync.local_view import LocalView
from segcache_core.sync.synchronizer import IndexSynchronizer, ReconciliationResult

logger = logging.getLogger(__name__)


class SegmentCacheSpi(ABC):
    """Contract a host engine uses to talk to a segment cache."""

    @abstractmethod
    def get(self, header: Any) -> Optional[Any]:
        pass

    @abstractmethod
    def put(self, header: Any, body: Any) -> bool:
        pass

    @abstractmethod
    def remove(self, header: Any) -> bool:
        pass

    @abstractmethod
    def contains(self, header: Any) -> bool:
        pass

    @abstractmethod
    def get_all_headers(self) -> List[Any]:
        pass

    @abstractmethod
    def add_listener(self, listener: SegmentCacheListener) -> None:
        pass

    @abstractmethod
    def remove_listener(self, listener: SegmentCacheListener) -> None:
        pass

    @abstractmethod
    def tear_down(self) -> None:
        pass

    @abstractmethod
    def supports_rich_index(self) -> bool:
        pass


@dataclass(frozen=True)
class SegmentCacheConfig:
    """Segment cache configuration.

    At most one expiry option is honoured, in the order listed; with
    none set, entries never expire through this layer.

    Attributes:
        name: Cache name
        ttl_seconds: Fixed TTL for every put
        expires_at: Daily expiry time ("HH:MM" or time)
        expires_hourly: Expire shortly before the next top of the hour
        expires_callback: Function (header, body) -> TTL
        delete_all_on_teardown: Purge every indexed entry on tear_down()
        feed_mode: How changes are observed
        reconcile_interval: Seconds between reconciliation passes
        reconcile_timeout: Seconds one pass may take
        eager_load: Replay existing entries to newly added listeners
        reconcile_on_scan: Reconcile before get_all_headers()
    """

    name: str = "segments"
    ttl_seconds: Optional[float] = None
    expires_at: Union[str, time_of_day, None] = None
    expires_hourly: bool = False
    expires_callback: Optional[ExpiryCallback] = None
    delete_all_on_teardown: bool = False
    feed_mode: FeedMode = FeedMode.HYBRID
    reconcile_interval: float = 360.0
    reconcile_timeout: float = 45.0
    eager_load: bool = True
    reconcile_on_scan: bool = False

    def __post_init__(self) -> None:
        if self.ttl_seconds is not None and self.ttl_seconds <= 0:
            raise ConfigurationError(f"ttl_seconds must be positive, got {self.ttl_seconds}")
        if self.expires_at is not None:
            parse_time_of_day(self.expires_at)
        if self.expires_callback is not None and not callable(self.expires_callback):
            raise ConfigurationError("expires_callback must be callable")
        if self.reconcile_interval <= 0:
            raise ConfigurationError(
                f"reconcile_interval must be positive, got {self.reconcile_interval}"
            )
        if self.reconcile_timeout <= 0:
            raise ConfigurationError(
                f"reconcile_timeout must be positive, got {self.reconcile_timeout}"
            )
        if not isinstance(self.feed_mode, FeedMode):
            raise ConfigurationError(f"Unknown feed mode: {self.feed_mode!r}")


@dataclass
class SegmentCacheStats:
    """Segment cache statistics.

    Attributes:
        hits: get() calls that returned a body
        misses: get() calls that returned None
        puts: put() calls acknowledged by the store
        removes: remove() calls that deleted something
        decode_failures: Bodies or headers that did not decode
        reconciliations: Reconciliation passes run through this cache
        started_at: When the cache was created
    """

    hits: int = 0
    misses: int = 0
    puts: int = 0
    removes: int = 0
    decode_failures: int = 0
    reconciliations: int = 0
    started_at: Optional[datetime] = None

    @property
    def hit_rate(self) -> float:
        """Calculate hit rate."""
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "puts": self.puts,
            "removes": self.removes,
            "decode_failures": self.decode_failures,
            "reconciliations": self.reconciliations,
            "hit_rate": self.hit_rate,
        }


class SegmentCache(SegmentCacheSpi):
    """Segment cache shared by every engine instance on one store.

    Entries live in the shared store under their encoded header, and
    every encoded header is also a member of a shared index set. Writes
    go straight to the store; listeners hear about them only once a
    change feed observes them, so notifications reflect what actually
    happened in the store, whichever process did it.

    Features:
    - Push (key-event channels), pull (periodic reconciliation) or both
    - Self-healing index: dead members are pruned during reconciliation
    - Corrupt or foreign entries read as absent instead of failing
    - Fixed, daily, hourly or computed expiry
    - Eager load: new listeners are replayed every indexed entry

    Example:
        store = RedisStore(RedisConfig(host="redis.local"))
        cache = SegmentCache(store, SerializerCodec())

        with cache:
            cache.add_listener(FunctionSegmentCacheListener(on_event))
            cache.put(header, body)
            body = cache.get(header)
    """

    def __init__(
        self,
        store: EntryStore,
        codec: Optional[Codec] = None,
        config: Optional[SegmentCacheConfig] = None,
        feed: Optional[ChangeFeed] = None,
    ):
        """Initialize cache.

        Args:
            store: Shared entry store
            codec: Header/body codec
            config: Cache configuration
            feed: Change feed overriding the one built from config
        """
        self.config = config or SegmentCacheConfig()
        self.store = store
        self.codec = codec or SerializerCodec()

        self._expiry: Optional[ExpiryPolicy] = resolve_expiry_policy(
            ttl_seconds=self.config.ttl_seconds,
            expires_at=self.config.expires_at,
            expires_hourly=self.config.expires_hourly,
            expires_callback=self.config.expires_callback,
        )

        self._registry = ListenerRegistry()
        self._dispatcher = EventDispatcher(self.codec, self._registry)
        self._view = LocalView()
        self._synchronizer = IndexSynchronizer(store, self._view)
        self._feed = feed or build_change_feed(
            self.config.feed_mode,
            store,
            self._synchronizer,
            interval=self.config.reconcile_interval,
            timeout=self.config.reconcile_timeout,
            name=self.config.name,
        )

        self._lock = threading.RLock()
        self._stats_lock = threading.Lock()
        self._started = False
        self._stats = SegmentCacheStats(started_at=datetime.now())

    @property
    def expiry_policy(self) -> Optional[ExpiryPolicy]:
        return self._expiry

    @property
    def feed(self) -> ChangeFeed:
        return self._feed

    @property
    def local_view(self) -> LocalView:
        return self._view

    @property
    def dispatcher(self) -> EventDispatcher:
        return self._dispatcher

    @property
    def listeners(self) -> List[SegmentCacheListener]:
        return self._registry.snapshot()

    @property
    def is_started(self) -> bool:
        return self._started

    def start(self) -> None:
        """Start observing changes."""
        with self._lock:
            if self._started:
                return
            self._feed.start(self._on_transition)
            self._started = True
        logger.info(f"Segment cache {self.config.name} started ({self.config.feed_mode.name})")

    def get(self, header: Any) -> Optional[Any]:
        """Get the body stored for a header.

        Args:
            header: Segment header

        Returns:
            Decoded body, or None if absent or undecodable

        Raises:
            StoreUnavailable: If the store could not be read
        """
        if header is None:
            return None

        key = self.codec.encode_header(header)
        blob = self.store.get(key)
        if blob is None:
            self._record("misses")
            return None

        try:
            body = self.codec.decode_body(blob)
        except DecodeError as e:
            self._record("decode_failures")
            self._record("misses")
            logger.debug(f"Treating undecodable body for {key!r} as absent: {e}")
            return None

        self._record("hits")
        return body

    def put(self, header: Any, body: Any) -> bool:
        """Store a body for a header.

        The key joins the index before the blob is written; readers
        treat an indexed key without a blob as absent. The key is indexed
        again once the write is acknowledged.

        Returns:
            True if the store acknowledged the write

        Raises:
            StoreUnavailable: If the store could not be written
        """
        if header is None or body is None:
            return False

        key = self.codec.encode_header(header)
        blob = self.codec.encode_body(body)

        self.store.add_to_index(key)

        ttl = self._expiry.ttl_for(header, body) if self._expiry else None
        if ttl:
            stored = self.store.set_with_expiry(key, blob, ttl)
        else:
            stored = self.store.set(key, blob)

        if stored:
            # A reconciliation pass between the two writes may have pruned the key
            self.store.add_to_index(key)
            self._record("puts")
        else:
            logger.warning(f"Store did not acknowledge write of {key!r}")
        return stored

    def remove(self, header: Any) -> bool:
        """Remove the entry for a header.

        Returns:
            True if an entry was deleted

        Raises:
            StoreUnavailable: If the store could not be updated
        """
        if header is None:
            return False

        key = self.codec.encode_header(header)
        self.store.remove_from_index(key)
        removed = self.store.delete(key) >= 1

        if removed:
            self._record("removes")
        return removed

    def contains(self, header: Any) -> bool:
        """Check whether the store holds an entry for a header."""
        if header is None:
            return False
        return self.store.exists(self.codec.encode_header(header))

    def get_all_headers(self) -> List[Any]:
        """Get every indexed header that decodes.

        Returns:
            List of headers
        """
        if self.config.reconcile_on_scan:
            self.reconcile()

        headers = []
        for key in self._indexed_keys():
            try:
                headers.append(self.codec.decode_header(key))
            except DecodeError:
                self._record("decode_failures")
                logger.debug(f"Skipping undecodable index member {key!r}")
        return headers

    def add_listener(self, listener: SegmentCacheListener) -> None:
        """Register a listener.

        With eager_load, the new listener is immediately sent a created
        event for every indexed entry.
        """
        if not isinstance(listener, SegmentCacheListener):
            raise TypeError(
                f"Expected SegmentCacheListener, got {type(listener).__name__}; "
                "wrap plain functions in FunctionSegmentCacheListener"
            )

        if not self._registry.add(listener):
            return

        logger.debug(f"Added listener {listener!r}")
        if self.config.eager_load:
            replayed = 0
            for key in self._indexed_keys():
                if self._dispatcher.deliver(listener, key):
                    replayed += 1
            logger.debug(f"Replayed {replayed} entries to {listener!r}")

    def remove_listener(self, listener: SegmentCacheListener) -> None:
        """Unregister a listener."""
        if self._registry.remove(listener):
            logger.debug(f"Removed listener {listener!r}")

    def reconcile(self) -> Optional[ReconciliationResult]:
        """Run one reconciliation pass now and dispatch its changes.

        Returns:
            ReconciliationResult, or None if a pass was already running

        Raises:
            ReconciliationTimeout: If the pass ran past reconcile_timeout
            StoreUnavailable: If the store failed mid-pass
        """
        result = self._synchronizer.reconcile(
            deadline=time.monotonic() + self.config.reconcile_timeout
        )
        if result is None:
            return None

        self._record("reconciliations")
        for transition in transitions_from(result):
            self._on_transition(transition)
        return result

    def tear_down(self) -> None:
        """Stop observing changes and, if configured, purge the cache.

        Safe to call more than once.
        """
        with self._lock:
            self._feed.stop()
            was_started = self._started
            self._started = False

            if self.config.delete_all_on_teardown:
                purged = 0
                for key in list(self._indexed_keys()):
                    purged += self.store.delete(key)
                self.store.clear_index()
                logger.info(f"Segment cache {self.config.name} purged {purged} entries")

            self._view.clear()

        if was_started:
            logger.info(f"Segment cache {self.config.name} torn down")

    def supports_rich_index(self) -> bool:
        """Headers from get_all_headers() are fully decoded, not tokens."""
        return True

    def health_check(self) -> bool:
        """Check store connectivity."""
        return self.store.ping()

    def get_stats(self) -> SegmentCacheStats:
        """Get cache statistics.

        Returns:
            SegmentCacheStats instance
        """
        return self._stats

    def _on_transition(self, transition: KeyTransition) -> None:
        """Route an observed transition to listeners."""
        if transition.kind is TransitionKind.CREATED:
            if not transition.from_scan:
                self._view.mark_present(transition.key)
            self._dispatcher.dispatch_created(transition.key)
        else:
            if not transition.from_scan:
                self._view.mark_absent(transition.key)
            self._dispatcher.dispatch_deleted(transition.key)

    def _indexed_keys(self) -> Iterator[str]:
        """Iterate index members once each; scans may repeat members."""
        seen: Set[str] = set()
        for key in self.store.scan_index():
            if key not in seen:
                seen.add(key)
                yield key

    def _record(self, counter: str) -> None:
        with self._stats_lock:
            setattr(self._stats, counter, getattr(self._stats, counter) + 1)

    def __enter__(self) -> "SegmentCache":
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.tear_down()

    def __repr__(self) -> str:
        return (
            f"SegmentCache(name={self.config.name!r}, store={self.store!r}, "
            f"listeners={len(self._registry)})"
        )


__all__ = ["SegmentCache", "SegmentCacheConfig", "SegmentCacheStats", "SegmentCacheSpi"]
