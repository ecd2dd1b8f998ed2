"""SegCache Store Backend - Abstract Entry Store Interface.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Iterator, Optional

logger = logging.getLogger(__name__)

DEFAULT_INDEX_KEY = "SEGMENT_HEADERS_SET"


class TransitionKind(Enum):
    """Key transitions a store can announce.

    Values are the Redis keyspace notification event names.
    """

    CREATED = "set"
    DELETED = "del"
    EXPIRED = "expired"
    EVICTED = "evicted"

    @property
    def is_removal(self) -> bool:
        """Deleted, expired and evicted all mean "entry gone"."""
        return self is not TransitionKind.CREATED


def keyevent_channel(db: int, kind: TransitionKind) -> str:
    """Build the key-event channel name for a database and transition.

    Args:
        db: Logical database number
        kind: Transition kind

    Returns:
        Channel name, e.g. ``__keyevent@0__:set``
    """
    return f"__keyevent@{db}__:{kind.value}"


MessageHandler = Callable[[str, str], None]


@dataclass
class StorageConfig:
    """Entry store configuration.

    Attributes:
        name: Backend name
        db: Logical database, used to derive channel names
        index_key: Name of the shared index set
    """

    name: str = "storage"
    db: int = 0
    index_key: str = DEFAULT_INDEX_KEY


@dataclass
class StorageStats:
    """Entry store statistics.

    Attributes:
        reads: Number of read operations
        writes: Number of write operations
        deletes: Number of delete operations
        index_updates: Number of index set mutations
        scans: Number of index scans started
        errors: Number of errors
    """

    reads: int = 0
    writes: int = 0
    deletes: int = 0
    index_updates: int = 0
    scans: int = 0
    errors: int = 0
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None

    def record_error(self, error: str) -> None:
        """Record an error."""
        self.errors += 1
        self.last_error = error
        self.last_error_at = datetime.now()


class Subscription(ABC):
    """Handle for a live channel subscription."""

    @property
    @abstractmethod
    def channel(self) -> str:
        """Subscribed channel name."""
        pass

    @property
    @abstractmethod
    def is_active(self) -> bool:
        """True until close() has been called."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Stop receiving messages. Safe to call more than once."""
        pass


class EntryStore(ABC):
    """Abstract client for the shared key/value store.

    Every operation is atomic per key; nothing here spans keys. Any
    operation may raise StoreUnavailable, which callers must treat as
    "state unknown" and never as "absent".

    Implementations:
    - MemoryStore: In-process store with keyspace notification emulation
    - RedisStore: Redis backend with pooled connections
    """

    def __init__(self, config: Optional[StorageConfig] = None):
        """Initialize backend.

        Args:
            config: Storage configuration
        """
        self.config = config or StorageConfig()
        self._stats = StorageStats()

    @property
    def index_key(self) -> str:
        """Name of the shared index set."""
        return self.config.index_key

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Get stored value.

        Args:
            key: Entry key

        Returns:
            Stored value or None
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> bool:
        """Store value without expiry.

        Args:
            key: Entry key
            value: Value to store

        Returns:
            True if the store acknowledged the write
        """
        pass

    @abstractmethod
    def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Store value with a native expiry.

        Args:
            key: Entry key
            value: Value to store
            ttl_seconds: Seconds until the store drops the entry

        Returns:
            True if the store acknowledged the write
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> int:
        """Delete entry.

        Args:
            key: Entry key

        Returns:
            Number of keys removed
        """
        pass

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Check if a live entry exists.

        Args:
            key: Entry key

        Returns:
            True if exists
        """
        pass

    @abstractmethod
    def add_to_index(self, key: str) -> bool:
        """Add key to the index set.

        Returns:
            True if the key was not already a member
        """
        pass

    @abstractmethod
    def remove_from_index(self, key: str) -> bool:
        """Remove key from the index set.

        Returns:
            True if the key was a member
        """
        pass

    @abstractmethod
    def scan_index(self) -> Iterator[str]:
        """Iterate over index set members.

        Each call starts a fresh, finite scan. Members added or removed
        during the scan may or may not be seen.

        Yields:
            Index set members
        """
        pass

    @abstractmethod
    def clear_index(self) -> int:
        """Delete the index set itself.

        Returns:
            Number of keys removed (0 or 1)
        """
        pass

    @abstractmethod
    def index_size(self) -> int:
        """Get number of index set members."""
        pass

    def channel_name(self, kind: TransitionKind) -> str:
        """Get the key-event channel for a transition kind.

        Args:
            kind: Transition kind

        Returns:
            Channel name shared by every process on the same database
        """
        return keyevent_channel(self.config.db, kind)

    @property
    def supports_pubsub(self) -> bool:
        """Whether publish/subscribe is available."""
        return False

    def publish(self, channel: str, message: str) -> int:
        """Publish a message.

        Args:
            channel: Channel name
            message: Message payload

        Returns:
            Number of subscribers that received it
        """
        raise NotImplementedError(f"{type(self).__name__} does not support pub/sub")

    def subscribe(self, channel: str, on_message: MessageHandler) -> Subscription:
        """Subscribe to a channel.

        Args:
            channel: Channel name
            on_message: Called with (channel, message) for each message

        Returns:
            Subscription handle
        """
        raise NotImplementedError(f"{type(self).__name__} does not support pub/sub")

    def ping(self) -> bool:
        """Check store connectivity.

        Returns:
            True if healthy
        """
        try:
            self.exists(self.index_key)
            return True
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return False

    def close(self) -> None:
        """Release store resources."""
        pass

    def get_stats(self) -> StorageStats:
        """Get storage statistics.

        Returns:
            StorageStats instance
        """
        return self._stats

    def reset_stats(self) -> None:
        """Reset statistics."""
        self._stats = StorageStats()

    def __contains__(self, key: str) -> bool:
        """Check if key exists."""
        return self.exists(key)


__all__ = [
    "EntryStore",
    "StorageConfig",
    "StorageStats",
    "Subscription",
    "TransitionKind",
    "MessageHandler",
    "DEFAULT_INDEX_KEY",
    "keyevent_channel",
]
