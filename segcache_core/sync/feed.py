"""SegCache Change Feed - Push, Pull and Hybrid Change Observation.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

A change feed turns "something changed in the shared store" into a
stream of KeyTransition values handed to a sink:

- KeyEventFeed: push, via the store's key-event channels
- ReconciliationFeed: pull, via periodic full-index reconciliation
- CompositeFeed: several feeds at once (push and pull together)
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Iterator, List, Optional, Sequence

from segcache_core.exceptions import StoreUnavailable
from segcache_core.store.backend import EntryStore, Subscription, TransitionKind
from segcache_core.sync.periodic import PeriodicTask
from segcache_core.sync.synchronizer import IndexSynchronizer, ReconciliationResult

logger = logging.getLogger(__name__)


class FeedMode(Enum):
    """How a cache learns about changes."""

    PUSH = auto()     # Key-event channels only
    PULL = auto()     # Periodic reconciliation only
    HYBRID = auto()   # Both


@dataclass(frozen=True)
class KeyTransition:
    """One observed change to an encoded key.

    Attributes:
        key: Encoded key
        kind: What happened to it
        from_scan: Observed by a reconciliation pass rather than a channel
    """

    key: str
    kind: TransitionKind
    from_scan: bool = False


TransitionSink = Callable[[KeyTransition], None]


def transitions_from(result: ReconciliationResult) -> Iterator[KeyTransition]:
    """Turn a reconciliation result into transitions, created first."""
    for key in result.created:
        yield KeyTransition(key, TransitionKind.CREATED, from_scan=True)
    for key in result.deleted:
        yield KeyTransition(key, TransitionKind.DELETED, from_scan=True)


class ChangeFeed(ABC):
    """Source of key transitions."""

    @abstractmethod
    def start(self, sink: TransitionSink) -> None:
        """Begin observing and hand every transition to sink."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop observing. Safe to call more than once."""
        pass

    @property
    @abstractmethod
    def is_running(self) -> bool:
        pass

    def _emit(self, sink: Optional[TransitionSink], transition: KeyTransition) -> None:
        if sink is None:
            return
        try:
            sink(transition)
        except Exception as e:
            logger.error(f"Transition sink failed on {transition}: {e}")


class KeyEventFeed(ChangeFeed):
    """Push feed over the store's key-event channels.

    One independent subscription per transition kind. Removal kinds also
    drop the key from the index set, tolerating it being gone already.
    """

    def __init__(
        self,
        store: EntryStore,
        kinds: Sequence[TransitionKind] = tuple(TransitionKind),
    ):
        """Initialize feed.

        Args:
            store: Entry store with pub/sub support
            kinds: Transition kinds to subscribe to
        """
        self.store = store
        self.kinds = tuple(kinds)
        self._sink: Optional[TransitionSink] = None
        self._subscriptions: List[Subscription] = []
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return bool(self._subscriptions)

    @property
    def channels(self) -> List[str]:
        return [self.store.channel_name(kind) for kind in self.kinds]

    def start(self, sink: TransitionSink) -> None:
        with self._lock:
            if self._subscriptions:
                return

            self._sink = sink
            for kind in self.kinds:
                channel = self.store.channel_name(kind)
                handler = self._handler_for(kind)
                self._subscriptions.append(self.store.subscribe(channel, handler))

        logger.info(f"Key event feed started on {len(self.kinds)} channels")

    def stop(self) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)
            self._subscriptions.clear()

        for subscription in subscriptions:
            subscription.close()

        if subscriptions:
            logger.info("Key event feed stopped")

    def _handler_for(self, kind: TransitionKind) -> Callable[[str, str], None]:
        def on_message(channel: str, message: str) -> None:
            self.on_message(kind, message)

        return on_message

    def on_message(self, kind: TransitionKind, key: str) -> None:
        """Handle one key-event message."""
        if kind.is_removal:
            try:
                self.store.remove_from_index(key)
            except StoreUnavailable as e:
                logger.warning(f"Could not drop {key!r} from index after {kind.value}: {e}")

        self._emit(self._sink, KeyTransition(key, kind))


class ReconciliationFeed(ChangeFeed):
    """Pull feed that reconciles the index on a fixed interval.

    Each pass is bounded by ``timeout``; a pass that overstays stops
    scanning and leaves the local view as it was.
    """

    def __init__(
        self,
        synchronizer: IndexSynchronizer,
        interval: float = 360.0,
        timeout: float = 45.0,
        name: str = "SegCache-reconcile",
    ):
        self.synchronizer = synchronizer
        self.interval = interval
        self.timeout = timeout
        self._sink: Optional[TransitionSink] = None
        self._task = PeriodicTask(
            self._tick,
            interval=interval,
            timeout=timeout,
            name=name,
        )

    @property
    def is_running(self) -> bool:
        return self._task.is_running

    @property
    def task(self) -> PeriodicTask:
        return self._task

    def start(self, sink: TransitionSink) -> None:
        self._sink = sink
        self._task.start()

    def stop(self) -> None:
        self._task.stop()

    def run_once(self) -> Optional[ReconciliationResult]:
        """Reconcile now on the calling thread and emit the delta.

        Returns:
            ReconciliationResult, or None if a pass was already running
        """
        result = self.synchronizer.reconcile(deadline=time.monotonic() + self.timeout)
        if result is not None:
            for transition in transitions_from(result):
                self._emit(self._sink, transition)
        return result

    def _tick(self) -> None:
        self.run_once()


class CompositeFeed(ChangeFeed):
    """Runs several feeds as one."""

    def __init__(self, feeds: Sequence[ChangeFeed]):
        self.feeds = list(feeds)

    @property
    def is_running(self) -> bool:
        return any(feed.is_running for feed in self.feeds)

    def start(self, sink: TransitionSink) -> None:
        for feed in self.feeds:
            feed.start(sink)

    def stop(self) -> None:
        for feed in self.feeds:
            try:
                feed.stop()
            except Exception as e:
                logger.error(f"Failed to stop {type(feed).__name__}: {e}")

    def find(self, feed_type: type) -> Optional[ChangeFeed]:
        """Get the first member feed of a type."""
        for feed in self.feeds:
            if isinstance(feed, feed_type):
                return feed
        return None


def build_change_feed(
    mode: FeedMode,
    store: EntryStore,
    synchronizer: IndexSynchronizer,
    interval: float = 360.0,
    timeout: float = 45.0,
    name: str = "segments",
) -> ChangeFeed:
    """Build the feed for a mode.

    Push needs store pub/sub; without it, push falls back to pull and
    hybrid degrades to pull only.
    """
    pull = ReconciliationFeed(
        synchronizer,
        interval=interval,
        timeout=timeout,
        name=f"SegCache-{name}-reconcile",
    )

    if mode is FeedMode.PULL:
        return pull

    if not store.supports_pubsub:
        logger.warning(f"{type(store).__name__} has no pub/sub, using reconciliation only")
        return pull

    push = KeyEventFeed(store)
    if mode is FeedMode.PUSH:
        return push

    return CompositeFeed([push, pull])


__all__ = [
    "FeedMode",
    "KeyTransition",
    "TransitionSink",
    "ChangeFeed",
    "KeyEventFeed",
    "ReconciliationFeed",
    "CompositeFeed",
    "build_change_feed",
    "transitions_from",
]
