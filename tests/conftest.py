"""Shared test fixtures.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

import pytest

from segcache_core.events.event import SegmentCacheListener
from segcache_core.protocol.codec import JSONSerializer, SerializerCodec
from segcache_core.store.memory import MemoryStore


class RecordingListener(SegmentCacheListener):
    """Listener that keeps every event it is handed."""

    def __init__(self):
        self.events = []

    def handle(self, event):
        self.events.append(event)

    @property
    def created(self):
        return [e.source for e in self.events if e.is_created]

    @property
    def deleted(self):
        return [e.source for e in self.events if e.is_deleted]

    def clear(self):
        self.events.clear()


class FakeClock:
    """Stand-in for the time module inside MemoryStore."""

    def __init__(self, start=1_000_000.0):
        self.now = start

    def time(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def store():
    memory_store = MemoryStore()
    yield memory_store
    memory_store.close()


@pytest.fixture
def codec():
    return SerializerCodec(JSONSerializer())


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def make_listener():
    return RecordingListener


@pytest.fixture
def clock(monkeypatch):
    fake = FakeClock()
    monkeypatch.setattr("segcache_core.store.memory.time", fake)
    return fake
