"""SegCache Expiry - Entry Expiry Policies.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from datetime import datetime, time, timedelta
from typing import Any, Callable, Optional, Union

from segcache_core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Hourly expiry lands this far ahead of the top of the hour
HOURLY_BIAS = timedelta(minutes=10)

ExpiryCallback = Callable[[Any, Any], Union[None, int, float, datetime, timedelta]]


def _to_ttl(seconds: float) -> int:
    """Round a positive duration up to whole seconds, never below 1."""
    return max(1, int(math.ceil(seconds)))


def parse_time_of_day(value: Union[str, time]) -> time:
    """Parse ``"HH:MM"`` or ``"HH:MM:SS"`` into a time.

    Args:
        value: String or time

    Returns:
        time of day

    Raises:
        ConfigurationError: If the string is not a valid time of day
    """
    if isinstance(value, time):
        return value

    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(value.strip(), fmt).time()
        except (ValueError, AttributeError):
            continue

    raise ConfigurationError(f"Invalid time of day: {value!r} (expected HH:MM)")


class ExpiryPolicy(ABC):
    """Computes the TTL for an entry at write time."""

    @abstractmethod
    def ttl_for(
        self,
        header: Any,
        body: Any,
        now: Optional[datetime] = None,
    ) -> Optional[int]:
        """Get TTL in seconds for an entry.

        Args:
            header: Segment header
            body: Segment body
            now: Current local time (defaults to datetime.now())

        Returns:
            Seconds until expiry (at least 1), or None for no expiry
        """
        pass


class FixedTtl(ExpiryPolicy):
    """Same absolute TTL for every entry."""

    def __init__(self, seconds: float):
        if seconds <= 0:
            raise ConfigurationError(f"ttl_seconds must be positive, got {seconds}")
        self.seconds = seconds

    def ttl_for(self, header: Any, body: Any, now: Optional[datetime] = None) -> Optional[int]:
        return _to_ttl(self.seconds)

    def __repr__(self) -> str:
        return f"FixedTtl({self.seconds})"


class DailyExpiry(ExpiryPolicy):
    """Expire at a wall-clock time each day.

    If that time has already passed today, entries expire at the same
    time tomorrow.

    Example:
        policy = DailyExpiry("03:30")
    """

    def __init__(self, at: Union[str, time]):
        self.at = parse_time_of_day(at)

    def next_expiry(self, now: datetime) -> datetime:
        target = datetime.combine(now.date(), self.at, tzinfo=now.tzinfo)
        if target <= now:
            target += timedelta(days=1)
        return target

    def ttl_for(self, header: Any, body: Any, now: Optional[datetime] = None) -> Optional[int]:
        now = now or datetime.now()
        return _to_ttl((self.next_expiry(now) - now).total_seconds())

    def __repr__(self) -> str:
        return f"DailyExpiry({self.at.isoformat()})"


class HourlyExpiry(ExpiryPolicy):
    """Expire shortly before the top of the next hour.

    The expiry lands ``bias`` ahead of the hour boundary, so entries are
    gone before anything keyed to the new hour starts. When the biased
    time has already passed, the following hour is used.
    """

    def __init__(self, bias: timedelta = HOURLY_BIAS):
        if bias < timedelta(0) or bias >= timedelta(hours=1):
            raise ConfigurationError(f"Hourly bias must be within one hour, got {bias}")
        self.bias = bias

    def next_expiry(self, now: datetime) -> datetime:
        top = now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
        target = top - self.bias
        if target <= now:
            target += timedelta(hours=1)
        return target

    def ttl_for(self, header: Any, body: Any, now: Optional[datetime] = None) -> Optional[int]:
        now = now or datetime.now()
        return _to_ttl((self.next_expiry(now) - now).total_seconds())

    def __repr__(self) -> str:
        return f"HourlyExpiry(bias={self.bias})"


class CallbackExpiry(ExpiryPolicy):
    """Expiry computed by a caller-supplied function.

    The callback receives (header, body) and returns seconds, a
    timedelta, an absolute datetime, or None for no expiry.
    """

    def __init__(self, callback: ExpiryCallback):
        if not callable(callback):
            raise ConfigurationError("expires_callback must be callable")
        self.callback = callback

    def ttl_for(self, header: Any, body: Any, now: Optional[datetime] = None) -> Optional[int]:
        result = self.callback(header, body)
        if result is None:
            return None

        if isinstance(result, datetime):
            now = now or datetime.now(result.tzinfo)
            return _to_ttl((result - now).total_seconds())

        if isinstance(result, timedelta):
            return _to_ttl(result.total_seconds())

        if isinstance(result, (int, float)) and not isinstance(result, bool):
            return _to_ttl(result)

        raise TypeError(
            f"Expiry callback returned {type(result).__name__}, "
            "expected seconds, timedelta, datetime or None"
        )

    def __repr__(self) -> str:
        return f"CallbackExpiry({getattr(self.callback, '__name__', self.callback)!r})"


def resolve_expiry_policy(
    ttl_seconds: Optional[float] = None,
    expires_at: Union[str, time, None] = None,
    expires_hourly: bool = False,
    expires_callback: Optional[ExpiryCallback] = None,
) -> Optional[ExpiryPolicy]:
    """Pick the single expiry policy honoured by a cache.

    Precedence: ttl_seconds, expires_at, expires_hourly, expires_callback.

    Returns:
        The chosen policy, or None when entries never expire
    """
    candidates = []
    if ttl_seconds is not None:
        candidates.append(("ttl_seconds", lambda: FixedTtl(ttl_seconds)))
    if expires_at is not None:
        candidates.append(("expires_at", lambda: DailyExpiry(expires_at)))
    if expires_hourly:
        candidates.append(("expires_hourly", lambda: HourlyExpiry()))
    if expires_callback is not None:
        candidates.append(("expires_callback", lambda: CallbackExpiry(expires_callback)))

    if not candidates:
        return None

    if len(candidates) > 1:
        ignored = ", ".join(name for name, _ in candidates[1:])
        logger.warning(f"Several expiry options set; using {candidates[0][0]}, ignoring {ignored}")

    return candidates[0][1]()


__all__ = [
    "ExpiryPolicy",
    "FixedTtl",
    "DailyExpiry",
    "HourlyExpiry",
    "CallbackExpiry",
    "resolve_expiry_policy",
    "parse_time_of_day",
    "HOURLY_BIAS",
]
