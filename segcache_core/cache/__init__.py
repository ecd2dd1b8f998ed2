"""Cache module - Segment cache facade and expiry policies."""

from segcache_core.cache.expiry import (
    ExpiryPolicy,
    FixedTtl,
    DailyExpiry,
    HourlyExpiry,
    CallbackExpiry,
    resolve_expiry_policy,
)
from segcache_core.cache.cache import (
    SegmentCache,
    SegmentCacheConfig,
    SegmentCacheStats,
    SegmentCacheSpi,
)

__all__ = [
    "ExpiryPolicy",
    "FixedTtl",
    "DailyExpiry",
    "HourlyExpiry",
    "CallbackExpiry",
    "resolve_expiry_policy",
    "SegmentCache",
    "SegmentCacheConfig",
    "SegmentCacheStats",
    "SegmentCacheSpi",
]
