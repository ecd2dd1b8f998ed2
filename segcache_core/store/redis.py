"""SegCache Redis Store - Redis Entry Store.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Optional, TypeVar

import redis
from redis.connection import parse_url
from redis.exceptions import RedisError, ResponseError

from segcache_core.exceptions import StoreUnavailable
from segcache_core.store.backend import (
    EntryStore,
    MessageHandler,
    StorageConfig,
    Subscription,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Keyevent notifications for string writes ($), generic commands (g),
# expirations (x) and evictions (e)
KEYSPACE_EVENT_FLAGS = "E$gxe"


@dataclass
class RedisConfig(StorageConfig):
    """Redis-specific configuration.

    Attributes:
        url: Redis URL; overrides host/port/db/password when set
        host: Redis host
        port: Redis port
        password: Redis password
        socket_timeout: Socket timeout
        socket_connect_timeout: Connection timeout
        max_connections: Connection pool size
        scan_count: SSCAN batch size hint
        configure_keyspace_events: Enable keyevent notifications on connect
        poll_timeout: Seconds a subscriber blocks per read
        reconnect_delay: Initial subscriber reconnect delay
        max_reconnect_delay: Cap for subscriber reconnect backoff
    """

    name: str = "redis"
    url: Optional[str] = None
    host: str = "localhost"
    port: int = 6379
    password: Optional[str] = None
    socket_timeout: float = 5.0
    socket_connect_timeout: float = 5.0
    max_connections: int = 10
    scan_count: int = 500
    configure_keyspace_events: bool = False
    poll_timeout: float = 1.0
    reconnect_delay: float = 1.0
    max_reconnect_delay: float = 30.0


def is_ok(result: Any) -> bool:
    """Normalize a Redis write reply to a boolean.

    Depending on client version and command, success comes back as
    ``True``, ``"OK"``, ``b"OK"`` or ``1``.
    """
    if isinstance(result, bytes):
        result = result.decode("utf-8", errors="replace")
    if isinstance(result, str):
        return result.upper() == "OK"
    if isinstance(result, bool):
        return result
    if isinstance(result, int):
        return result > 0
    return False


def _to_str(value: Any) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value


class RedisSubscription(Subscription):
    """Channel subscription on a dedicated pub/sub connection.

    A daemon thread blocks on the channel and hands each message to the
    handler. Connection loss triggers a resubscribe with capped
    exponential backoff; the thread only exits on close().
    """

    def __init__(
        self,
        store: "RedisStore",
        channel: str,
        handler: MessageHandler,
    ):
        self._store = store
        self._channel = channel
        self._handler = handler
        self._stop_event = threading.Event()
        self._connected = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.reconnects = 0

    @property
    def channel(self) -> str:
        return self._channel

    @property
    def is_active(self) -> bool:
        return not self._stop_event.is_set()

    @property
    def is_connected(self) -> bool:
        """True while subscribed on a live connection."""
        return self._connected.is_set()

    def start(self) -> None:
        """Start the listener thread."""
        if self._thread is not None:
            return

        self._thread = threading.Thread(
            target=self._listen_loop,
            daemon=True,
            name=f"SegCache-sub-{self._channel}",
        )
        self._thread.start()

    def wait_connected(self, timeout: Optional[float] = None) -> bool:
        """Block until the first successful subscribe."""
        return self._connected.wait(timeout)

    def close(self) -> None:
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=self._store.config.poll_timeout + 5.0)
        self._thread = None

    def _listen_loop(self) -> None:
        """Subscribe, read until stopped, resubscribe after failures."""
        config = self._store.config
        delay = config.reconnect_delay

        while not self._stop_event.is_set():
            pubsub = None
            try:
                pubsub = self._store.pubsub_client.pubsub(ignore_subscribe_messages=True)
                pubsub.subscribe(self._channel)
                self._connected.set()
                delay = config.reconnect_delay
                logger.info(f"Subscribed to {self._channel}")

                while not self._stop_event.is_set():
                    message = pubsub.get_message(timeout=config.poll_timeout)
                    if message is None:
                        continue
                    if message.get("type") == "message":
                        self._dispatch(message.get("data"))

            except Exception as e:
                self._connected.clear()
                if self._stop_event.is_set():
                    break
                self.reconnects += 1
                logger.warning(
                    f"Subscription to {self._channel} lost ({e}), "
                    f"resubscribing in {delay:.1f}s"
                )
                self._stop_event.wait(delay)
                delay = min(delay * 2, config.max_reconnect_delay)

            finally:
                self._connected.clear()
                if pubsub is not None:
                    try:
                        pubsub.close()
                    except RedisError as e:
                        logger.debug(f"Error closing pub/sub for {self._channel}: {e}")

        logger.info(f"Unsubscribed from {self._channel}")

    def _dispatch(self, data: Any) -> None:
        if data is None:
            return
        try:
            self._handler(self._channel, _to_str(data))
        except Exception as e:
            logger.error(f"Subscriber on {self._channel} failed: {e}")

    def __repr__(self) -> str:
        return f"RedisSubscription(channel={self._channel!r}, active={self.is_active})"


class RedisStore(EntryStore):
    """Redis entry store.

    Uses a pooled redis-py client: each command checks a connection out
    of the pool and returns it when the command completes, whatever the
    outcome. Redis errors surface as StoreUnavailable.

    Example:
        store = RedisStore(RedisConfig(host="redis.local", db=2))
        store.add_to_index(key)
        store.set(key, blob)
        for member in store.scan_index():
            ...
    """

    def __init__(
        self,
        config: Optional[RedisConfig] = None,
        client: Optional[redis.Redis] = None,
        pubsub_client: Optional[redis.Redis] = None,
    ):
        """Initialize Redis store.

        Args:
            config: Redis configuration
            client: Existing client to use instead of building a pool
            pubsub_client: Client for subscriptions; by default one is
                built on its own pool from the command client's settings
        """
        super().__init__(config or RedisConfig())
        self.config: RedisConfig
        self._client: Optional[redis.Redis] = client
        self._pool: Optional[redis.ConnectionPool] = None
        self._pubsub_client: Optional[redis.Redis] = pubsub_client
        self._pubsub_pool: Optional[redis.ConnectionPool] = None
        self._subscriptions: List[RedisSubscription] = []
        self._lock = threading.Lock()
        self._keyspace_configured = False

        if self.config.url:
            db = parse_url(self.config.url).get("db")
            if db is not None:
                self.config.db = int(db)

        # Channel names must follow the database the client really selected
        if client is not None:
            connection_kwargs = getattr(client.connection_pool, "connection_kwargs", None)
            if isinstance(connection_kwargs, dict) and connection_kwargs.get("db") is not None:
                self.config.db = int(connection_kwargs["db"])

    @property
    def client(self) -> redis.Redis:
        """Get the Redis client, connecting on first use."""
        return self._ensure_connected()

    @property
    def pubsub_client(self) -> redis.Redis:
        """Get the client subscriptions listen on.

        Subscriptions hold their connection for as long as they live, so
        they get a pool of their own and never starve command traffic.
        """
        command_pool = self.client.connection_pool
        with self._lock:
            if self._pubsub_client is None:
                self._pubsub_pool = redis.ConnectionPool(
                    connection_class=command_pool.connection_class,
                    **command_pool.connection_kwargs,
                )
                self._pubsub_client = redis.Redis(connection_pool=self._pubsub_pool)
            return self._pubsub_client

    def _ensure_connected(self) -> redis.Redis:
        """Ensure a Redis client exists.

        Returns:
            Redis client
        """
        with self._lock:
            if self._client is None:
                if self.config.url:
                    self._pool = redis.ConnectionPool.from_url(
                        self.config.url,
                        socket_timeout=self.config.socket_timeout,
                        socket_connect_timeout=self.config.socket_connect_timeout,
                        max_connections=self.config.max_connections,
                        decode_responses=True,
                    )
                else:
                    self._pool = redis.ConnectionPool(
                        host=self.config.host,
                        port=self.config.port,
                        db=self.config.db,
                        password=self.config.password,
                        socket_timeout=self.config.socket_timeout,
                        socket_connect_timeout=self.config.socket_connect_timeout,
                        max_connections=self.config.max_connections,
                        decode_responses=True,
                    )
                self._client = redis.Redis(connection_pool=self._pool)
                logger.info(f"Connecting to Redis at {self._describe()}")

            client = self._client

            if self.config.configure_keyspace_events and not self._keyspace_configured:
                self._keyspace_configured = True
                try:
                    client.config_set("notify-keyspace-events", KEYSPACE_EVENT_FLAGS)
                except ResponseError as e:
                    logger.warning(f"Could not enable keyspace notifications: {e}")
                except RedisError as e:
                    self._keyspace_configured = False
                    raise StoreUnavailable(f"Redis unavailable: {e}", cause=e) from e

        return client

    def _execute(self, operation: str, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run one Redis command, translating failures.

        Args:
            operation: Operation name for logs
            func: Bound client method
            *args: Command arguments

        Returns:
            Raw Redis reply

        Raises:
            StoreUnavailable: On any Redis error
        """
        try:
            return func(*args, **kwargs)
        except RedisError as e:
            logger.error(f"Redis {operation} error: {e}")
            self._stats.record_error(str(e))
            raise StoreUnavailable(f"Redis {operation} failed: {e}", cause=e) from e

    def get(self, key: str) -> Optional[str]:
        client = self._ensure_connected()
        self._stats.reads += 1
        value = self._execute("get", client.get, key)
        return None if value is None else _to_str(value)

    def set(self, key: str, value: str) -> bool:
        client = self._ensure_connected()
        result = self._execute("set", client.set, key, value)
        self._stats.writes += 1
        return is_ok(result)

    def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> bool:
        if ttl_seconds <= 0:
            logger.warning(f"Refusing to write {key!r} with non-positive TTL {ttl_seconds}")
            return False

        client = self._ensure_connected()
        result = self._execute("setex", client.set, key, value, ex=int(ttl_seconds))
        self._stats.writes += 1
        return is_ok(result)

    def delete(self, key: str) -> int:
        client = self._ensure_connected()
        self._stats.deletes += 1
        return int(self._execute("delete", client.delete, key))

    def exists(self, key: str) -> bool:
        client = self._ensure_connected()
        return int(self._execute("exists", client.exists, key)) > 0

    def add_to_index(self, key: str) -> bool:
        client = self._ensure_connected()
        self._stats.index_updates += 1
        return int(self._execute("sadd", client.sadd, self.index_key, key)) > 0

    def remove_from_index(self, key: str) -> bool:
        client = self._ensure_connected()
        self._stats.index_updates += 1
        return int(self._execute("srem", client.srem, self.index_key, key)) > 0

    def scan_index(self) -> Iterator[str]:
        client = self._ensure_connected()
        self._stats.scans += 1
        members = client.sscan_iter(self.index_key, count=self.config.scan_count)

        try:
            for member in members:
                yield _to_str(member)
        except RedisError as e:
            logger.error(f"Redis sscan error: {e}")
            self._stats.record_error(str(e))
            raise StoreUnavailable(f"Redis sscan failed: {e}", cause=e) from e

    def clear_index(self) -> int:
        client = self._ensure_connected()
        return int(self._execute("delete", client.delete, self.index_key))

    def index_size(self) -> int:
        client = self._ensure_connected()
        return int(self._execute("scard", client.scard, self.index_key))

    @property
    def supports_pubsub(self) -> bool:
        return True

    def publish(self, channel: str, message: str) -> int:
        client = self._ensure_connected()
        return int(self._execute("publish", client.publish, channel, message))

    def subscribe(self, channel: str, on_message: MessageHandler) -> Subscription:
        subscription = RedisSubscription(self, channel, on_message)
        with self._lock:
            self._subscriptions = [s for s in self._subscriptions if s.is_active]
            self._subscriptions.append(subscription)
        subscription.start()
        return subscription

    def ping(self) -> bool:
        try:
            client = self._ensure_connected()
            return bool(client.ping())
        except (RedisError, StoreUnavailable) as e:
            logger.error(f"Redis ping failed: {e}")
            return False

    def close(self) -> None:
        """Close subscriptions and the connection pool."""
        with self._lock:
            subscriptions = list(self._subscriptions)
            self._subscriptions.clear()

        for subscription in subscriptions:
            subscription.close()

        if self._pubsub_pool is not None:
            self._pubsub_pool.disconnect()
            self._pubsub_pool = None
            self._pubsub_client = None

        if self._pool is not None:
            self._pool.disconnect()
            self._pool = None
            self._client = None

    def _describe(self) -> str:
        if self.config.url:
            return parse_url(self.config.url).get("host", "?")
        return f"{self.config.host}:{self.config.port}/{self.config.db}"

    def __repr__(self) -> str:
        return f"RedisStore({self._describe()}, index={self.index_key!r})"


__all__ = ["RedisStore", "RedisConfig", "RedisSubscription", "is_ok", "KEYSPACE_EVENT_FLAGS"]
