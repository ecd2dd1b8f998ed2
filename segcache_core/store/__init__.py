"""Store module - Shared entry store clients."""

from segcache_core.store.backend import (
    EntryStore,
    StorageConfig,
    StorageStats,
    Subscription,
    TransitionKind,
)
from segcache_core.store.memory import MemoryStore, MemoryConfig
from segcache_core.store.redis import RedisStore, RedisConfig

__all__ = [
    "EntryStore",
    "StorageConfig",
    "StorageStats",
    "Subscription",
    "TransitionKind",
    "MemoryStore",
    "MemoryConfig",
    "RedisStore",
    "RedisConfig",
]
