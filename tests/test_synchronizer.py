"""Tests for IndexSynchronizer.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import threading
import time

import pytest

from segcache_core.exceptions import ReconciliationTimeout, StoreUnavailable
from segcache_core.store.memory import MemoryStore
from segcache_core.sync.local_view import LocalView
from segcache_core.sync.synchronizer import IndexSynchronizer


def add_entry(store, key, value="blob"):
    store.add_to_index(key)
    store.set(key, value)


class BlockingStore(MemoryStore):
    """MemoryStore whose scans wait until released."""

    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def scan_index(self):
        self.entered.set()
        self.release.wait(5.0)
        return super().scan_index()


class BrokenScanStore(MemoryStore):
    """MemoryStore whose scans fail."""

    def scan_index(self):
        raise StoreUnavailable("connection reset")


class LateWriteStore(MemoryStore):
    """MemoryStore where a put's blob lands just as the pass prunes its key."""

    def remove_from_index(self, key):
        self.set(key, "blob")
        return super().remove_from_index(key)


class TestIndexSynchronizer:
    """Tests for IndexSynchronizer."""

    def test_first_pass_reports_everything(self, store):
        """Test the first pass turns every live entry into created."""
        add_entry(store, "a")
        add_entry(store, "b")
        synchronizer = IndexSynchronizer(store)

        result = synchronizer.reconcile()

        assert result.created == ["a", "b"]
        assert result.deleted == []
        assert result.scanned == 2
        assert result.has_changes

    def test_second_pass_is_quiet(self, store):
        """Test an unchanged store yields no changes."""
        add_entry(store, "a")
        synchronizer = IndexSynchronizer(store)
        synchronizer.reconcile()

        result = synchronizer.reconcile()
        assert not result.has_changes

    def test_vanished_entry_is_deleted_and_pruned(self, store):
        """Test an entry gone behind the index's back."""
        add_entry(store, "a")
        add_entry(store, "b")
        synchronizer = IndexSynchronizer(store)
        synchronizer.reconcile()

        store.evict("a")
        result = synchronizer.reconcile()

        assert result.deleted == ["a"]
        assert result.pruned == ["a"]
        assert list(store.scan_index()) == ["b"]

    def test_dangling_member_pruned_without_event(self, store):
        """Test an index member that never had an entry."""
        store.add_to_index("dangling")
        synchronizer = IndexSynchronizer(store)

        result = synchronizer.reconcile()

        assert result.created == []
        assert result.pruned == ["dangling"]
        assert store.index_size() == 0
        assert synchronizer.get_stats().pruned == 1

    def test_member_written_during_prune_kept(self):
        """Test a key whose blob lands mid-prune stays indexed."""
        store = LateWriteStore()
        store.add_to_index("late")
        synchronizer = IndexSynchronizer(store)

        result = synchronizer.reconcile()

        assert result.pruned == []
        assert result.created == ["late"]
        assert list(store.scan_index()) == ["late"]

    def test_view_tracks_live_keys(self, store):
        """Test the local view holds exactly the live keys."""
        add_entry(store, "a")
        store.add_to_index("dangling")
        view = LocalView()

        IndexSynchronizer(store, view).reconcile()
        assert view.snapshot() == frozenset({"a"})

    def test_timeout_leaves_view_untouched(self, store):
        """Test an abandoned pass does not publish a partial view."""
        add_entry(store, "a")
        view = LocalView()
        synchronizer = IndexSynchronizer(store, view)
        synchronizer.reconcile()

        add_entry(store, "b")
        with pytest.raises(ReconciliationTimeout):
            synchronizer.reconcile(deadline=time.monotonic() - 1)

        assert view.snapshot() == frozenset({"a"})
        assert synchronizer.get_stats().timeouts == 1
        assert not synchronizer.is_running

    def test_store_failure_propagates(self):
        """Test store errors surface and release the pass."""
        synchronizer = IndexSynchronizer(BrokenScanStore())

        with pytest.raises(StoreUnavailable):
            synchronizer.reconcile()

        assert synchronizer.get_stats().failures == 1
        assert not synchronizer.is_running

    def test_single_flight(self):
        """Test overlapping passes are skipped, not queued."""
        store = BlockingStore()
        add_entry(store, "a")
        synchronizer = IndexSynchronizer(store)
        results = []

        worker = threading.Thread(target=lambda: results.append(synchronizer.reconcile()))
        worker.start()
        try:
            assert store.entered.wait(2.0)
            assert synchronizer.is_running
            assert synchronizer.reconcile() is None
        finally:
            store.release.set()
            worker.join(2.0)

        assert results[0].created == ["a"]
        assert synchronizer.get_stats().skipped == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
