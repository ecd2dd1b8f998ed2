"""Tests for MemoryStore.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import pytest

from segcache_core.store.backend import TransitionKind
from segcache_core.store.memory import MemoryConfig, MemoryStore


def record(store, kind):
    """Subscribe to one key-event channel and collect its messages."""
    messages = []
    store.subscribe(store.channel_name(kind), lambda channel, key: messages.append(key))
    return messages


class TestMemoryStore:
    """Tests for MemoryStore."""

    def test_basic_operations(self, store):
        """Test get/set/delete."""
        assert store.set("k", "v")
        assert store.get("k") == "v"
        assert store.exists("k")

        assert store.delete("k") == 1
        assert store.delete("k") == 0
        assert store.get("k") is None

    def test_expiry(self, store, clock):
        """Test entries vanish once their TTL elapses."""
        assert store.set_with_expiry("k", "v", 10)
        assert store.ttl("k") == pytest.approx(10)

        clock.advance(9)
        assert store.get("k") == "v"

        clock.advance(2)
        assert store.get("k") is None
        assert not store.exists("k")

    def test_non_positive_ttl_rejected(self, store):
        """Test zero TTL is not written."""
        assert not store.set_with_expiry("k", "v", 0)
        assert not store.exists("k")

    def test_index(self, store):
        """Test index set operations."""
        assert store.add_to_index("a")
        assert not store.add_to_index("a")
        store.add_to_index("b")

        assert sorted(store.scan_index()) == ["a", "b"]
        assert store.index_size() == 2

        assert store.remove_from_index("a")
        assert not store.remove_from_index("a")
        assert list(store.scan_index()) == ["b"]

    def test_clear_index(self, store):
        """Test deleting the index set itself."""
        store.add_to_index("a")

        assert store.clear_index() == 1
        assert store.index_size() == 0
        assert store.clear_index() == 0

    def test_index_independent_of_entries(self, store):
        """Test deleting an entry leaves its index member alone."""
        store.add_to_index("k")
        store.set("k", "v")
        store.delete("k")

        assert list(store.scan_index()) == ["k"]


class TestMemoryKeyEvents:
    """Tests for MemoryStore key-event notifications."""

    def test_set_and_delete_events(self, store):
        """Test writes and deletes are announced."""
        created = record(store, TransitionKind.CREATED)
        deleted = record(store, TransitionKind.DELETED)

        store.set("k", "v")
        store.delete("k")
        store.delete("missing")

        assert created == ["k"]
        assert deleted == ["k"]

    def test_expired_events(self, store, clock):
        """Test expire_due announces expirations."""
        expired = record(store, TransitionKind.EXPIRED)
        store.set_with_expiry("a", "1", 5)
        store.set_with_expiry("b", "2", 50)

        clock.advance(10)
        assert store.expire_due() == 1
        assert expired == ["a"]

    def test_evicted_events(self, store):
        """Test eviction is announced and leaves the index alone."""
        evicted = record(store, TransitionKind.EVICTED)
        store.add_to_index("k")
        store.set("k", "v")

        assert store.evict("k")
        assert not store.evict("k")
        assert evicted == ["k"]
        assert not store.exists("k")
        assert store.index_size() == 1

    def test_closed_subscription(self, store):
        """Test closed subscriptions receive nothing."""
        messages = []
        subscription = store.subscribe(
            store.channel_name(TransitionKind.CREATED),
            lambda channel, key: messages.append(key),
        )

        subscription.close()
        store.set("k", "v")

        assert messages == []
        assert not subscription.is_active

    def test_failing_subscriber_isolated(self, store):
        """Test one failing subscriber does not block another."""
        channel = store.channel_name(TransitionKind.CREATED)
        messages = []

        def broken(channel, key):
            raise RuntimeError("boom")

        store.subscribe(channel, broken)
        store.subscribe(channel, lambda channel, key: messages.append(key))
        store.set("k", "v")

        assert messages == ["k"]

    def test_notifications_disabled(self):
        """Test stores can run without key events."""
        store = MemoryStore(MemoryConfig(notify_keyspace_events=False))
        created = record(store, TransitionKind.CREATED)

        store.set("k", "v")
        assert created == []

    def test_channel_names(self):
        """Test channel names follow the database number."""
        store = MemoryStore(MemoryConfig(db=3))

        assert store.channel_name(TransitionKind.CREATED) == "__keyevent@3__:set"
        assert store.channel_name(TransitionKind.EVICTED) == "__keyevent@3__:evicted"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
