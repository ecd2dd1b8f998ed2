"""SegCache - Shared Segment Cache over Redis.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

A segment cache shared by every analytics engine pointed at the same
store, with:
- Entries keyed by encoded segment header, plus a shared index set
- Created/deleted notifications driven by what the store observed
- Push (key-event channels), pull (reconciliation) or hybrid feeds
- Self-healing index that prunes expired and evicted members
- Fixed, daily, hourly or computed expiry
- Pluggable header/body codecs (pickle, JSON, MessagePack)

Architecture:
    ┌─────────────────────────────────────────────────────────────────┐
    │                        SegCache System                          │
    ├─────────────────────────────────────────────────────────────────┤
    │  ┌─────────────┐  ┌─────────────┐  ┌─────────────┐             │
    │  │ SegmentCache│  │   Expiry    │  │   Codec     │   CACHE     │
    │  │ get/put/... │  │  policies   │  │ header/body │   LAYER     │
    │  └──────┬──────┘  └─────────────┘  └─────────────┘             │
    │         │                                                       │
    │  ┌──────┴────────────────────────────────────────┐             │
    │  │              Change Feeds                      │             │
    │  │   ┌──────────┐  ┌────────────┐  ┌──────────┐  │   SYNC      │
    │  │   │ KeyEvent │  │ Reconcile  │  │Composite │  │   LAYER     │
    │  │   └──────────┘  └────────────┘  └──────────┘  │             │
    │  └──────────────────────┬────────────────────────┘             │
    │                         │                                       │
    │  ┌──────────────────────┴────────────────────────┐             │
    │  │   LocalView  →  EventDispatcher  →  Listeners  │   EVENTS    │
    │  └──────────────────────┬────────────────────────┘   LAYER     │
    │                         │                                       │
    │  ┌──────────────────────┴────────────────────────┐             │
    │  │              Entry Stores                      │             │
    │  │   ┌────────┐  ┌────────┐                      │   STORAGE   │
    │  │   │ Memory │  │ Redis  │                      │   LAYER     │
    │  │   └────────┘  └────────┘                      │             │
    │  └──────────────────────────────────────────────┘             │
    └─────────────────────────────────────────────────────────────────┘

Example Usage:
    from segcache_core import (
        FunctionSegmentCacheListener,
        RedisConfig,
        RedisStore,
        SegmentCache,
        SegmentCacheConfig,
    )

    store = RedisStore(RedisConfig(url="redis://cache.local:6379/2"))
    cache = SegmentCache(store, config=SegmentCacheConfig(expires_at="03:30"))

    with cache:
        cache.add_listener(FunctionSegmentCacheListener(print))
        cache.put(header, body)
        body = cache.get(header)
"""

__version__ = "1.0.0"
__author__ = "BlackRoad OS"

from segcache_core.exceptions import (
    SegmentCacheError,
    StoreUnavailable,
    DecodeError,
    ReconciliationTimeout,
    ConfigurationError,
)
from segcache_core.cache.cache import (
    SegmentCache,
    SegmentCacheConfig,
    SegmentCacheStats,
    SegmentCacheSpi,
)
from segcache_core.cache.expiry import (
    ExpiryPolicy,
    FixedTtl,
    DailyExpiry,
    HourlyExpiry,
    CallbackExpiry,
)
from segcache_core.events.event import (
    EventType,
    SegmentCacheEvent,
    SegmentCacheListener,
    FunctionSegmentCacheListener,
)
from segcache_core.store.backend import (
    EntryStore,
    StorageStats,
    TransitionKind,
)
from segcache_core.store.memory import MemoryStore
from segcache_core.store.redis import RedisStore, RedisConfig
from segcache_core.sync.feed import FeedMode
from segcache_core.protocol.codec import (
    Codec,
    SerializerCodec,
    Serializer,
    JSONSerializer,
    PickleSerializer,
    MsgPackSerializer,
)

__all__ = [
    # Errors
    "SegmentCacheError",
    "StoreUnavailable",
    "DecodeError",
    "ReconciliationTimeout",
    "ConfigurationError",
    # Cache
    "SegmentCache",
    "SegmentCacheConfig",
    "SegmentCacheStats",
    "SegmentCacheSpi",
    "ExpiryPolicy",
    "FixedTtl",
    "DailyExpiry",
    "HourlyExpiry",
    "CallbackExpiry",
    # Events
    "EventType",
    "SegmentCacheEvent",
    "SegmentCacheListener",
    "FunctionSegmentCacheListener",
    # Storage
    "EntryStore",
    "StorageStats",
    "TransitionKind",
    "MemoryStore",
    "RedisStore",
    "RedisConfig",
    # Sync
    "FeedMode",
    # Protocol
    "Codec",
    "SerializerCodec",
    "Serializer",
    "JSONSerializer",
    "PickleSerializer",
    "MsgPackSerializer",
]
