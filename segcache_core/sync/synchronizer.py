"""SegCache Index Synchronizer - Index/Store Reconciliation.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

The index set can drift from the store: entries expire or get evicted
without anyone removing them from the index, and a crash between the
index update and the blob write leaves a dangling member. A
reconciliation pass walks the whole index, prunes members whose entry
is gone, and diffs what is left against the local view.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import List, Optional, Set

from segcache_core.exceptions import ReconciliationTimeout
from segcache_core.store.backend import EntryStore
from segcache_core.sync.local_view import LocalView

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    """Outcome of one reconciliation pass.

    Attributes:
        created: Keys alive now but absent from the previous view
        deleted: Keys in the previous view that are no longer alive
        pruned: Index members removed because their entry was gone
        scanned: Index members examined
        duration_seconds: Wall time of the pass
    """

    created: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    pruned: List[str] = field(default_factory=list)
    scanned: int = 0
    duration_seconds: float = 0.0

    @property
    def has_changes(self) -> bool:
        return bool(self.created or self.deleted)


@dataclass
class SynchronizerStats:
    """Synchronizer statistics."""

    passes: int = 0
    skipped: int = 0
    timeouts: int = 0
    failures: int = 0
    pruned: int = 0
    last_duration_seconds: float = 0.0


class IndexSynchronizer:
    """Reconciles the shared index set, store reality and the local view.

    Only one pass runs at a time per instance; a call that overlaps a
    running pass returns None immediately.

    Example:
        synchronizer = IndexSynchronizer(store, LocalView())
        result = synchronizer.reconcile(deadline=time.monotonic() + 45)
        for key in result.created:
            ...
    """

    def __init__(self, store: EntryStore, view: Optional[LocalView] = None):
        """Initialize synchronizer.

        Args:
            store: Shared entry store
            view: Local view to diff against
        """
        self.store = store
        self.view = view or LocalView()
        self._running = threading.Lock()
        self._stats = SynchronizerStats()

    @property
    def is_running(self) -> bool:
        return self._running.locked()

    def reconcile(self, deadline: Optional[float] = None) -> Optional[ReconciliationResult]:
        """Run one reconciliation pass.

        Args:
            deadline: time.monotonic() value after which the pass gives up

        Returns:
            ReconciliationResult, or None if another pass is running

        Raises:
            ReconciliationTimeout: If the deadline passed mid-scan; the
                local view is left untouched
            StoreUnavailable: If the store failed mid-scan
        """
        if not self._running.acquire(blocking=False):
            self._stats.skipped += 1
            logger.warning("Reconciliation already running, skipping")
            return None

        try:
            return self._reconcile(deadline)
        except ReconciliationTimeout:
            self._stats.timeouts += 1
            raise
        except Exception:
            self._stats.failures += 1
            raise
        finally:
            self._running.release()

    def _reconcile(self, deadline: Optional[float]) -> ReconciliationResult:
        started = time.monotonic()
        result = ReconciliationResult()
        observed: Set[str] = set()

        for key in self.store.scan_index():
            if deadline is not None and time.monotonic() > deadline:
                raise ReconciliationTimeout(
                    f"Reconciliation abandoned after {result.scanned} keys"
                )

            result.scanned += 1
            if key in observed:
                continue

            if self.store.exists(key):
                observed.add(key)
                continue

            self.store.remove_from_index(key)
            if self.store.exists(key):
                # Written between the check and the prune
                self.store.add_to_index(key)
                observed.add(key)
            else:
                result.pruned.append(key)

        result.created, result.deleted = self.view.replace(observed)
        result.duration_seconds = time.monotonic() - started

        self._stats.passes += 1
        self._stats.pruned += len(result.pruned)
        self._stats.last_duration_seconds = result.duration_seconds

        logger.info(
            f"Reconciled {result.scanned} index members in "
            f"{result.duration_seconds:.3f}s: {len(result.created)} created, "
            f"{len(result.deleted)} deleted, {len(result.pruned)} pruned"
        )
        return result

    def get_stats(self) -> SynchronizerStats:
        return self._stats


__all__ = ["IndexSynchronizer", "ReconciliationResult", "SynchronizerStats"]
