"""Sync module - Index reconciliation and change feeds."""

from segcache_core.sync.local_view import LocalView
from segcache_core.sync.synchronizer import (
    IndexSynchronizer,
    ReconciliationResult,
    SynchronizerStats,
)
from segcache_core.sync.periodic import PeriodicTask, TaskStats
from segcache_core.sync.feed import (
    FeedMode,
    KeyTransition,
    ChangeFeed,
    KeyEventFeed,
    ReconciliationFeed,
    CompositeFeed,
    build_change_feed,
)

__all__ = [
    "LocalView",
    "IndexSynchronizer",
    "ReconciliationResult",
    "SynchronizerStats",
    "PeriodicTask",
    "TaskStats",
    "FeedMode",
    "KeyTransition",
    "ChangeFeed",
    "KeyEventFeed",
    "ReconciliationFeed",
    "CompositeFeed",
    "build_change_feed",
]
