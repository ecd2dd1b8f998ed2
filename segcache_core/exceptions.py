"""SegCache Exceptions - Error Taxonomy.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.

All exceptions raised by the package inherit from SegmentCacheError, so
callers that only care about "the cache failed" can catch one type.

Example:
    from segcache_core.exceptions import StoreUnavailable

    try:
        body = cache.get(header)
    except StoreUnavailable:
        body = recompute(header)
"""

from __future__ import annotations

from typing import Optional


class SegmentCacheError(Exception):
    """Base class for all segment cache errors.

    Args:
        message: Error message
        cause: Underlying exception, if any

    Attributes:
        cause: The underlying cause of this error
    """

    def __init__(self, message: str = "", cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class StoreUnavailable(SegmentCacheError):
    """The shared store could not complete an operation.

    The state of the affected key is unknown. Read paths must not
    interpret this as a cache miss.
    """


class DecodeError(SegmentCacheError):
    """A header, body or key could not be decoded.

    Read paths treat this as "value absent".
    """


class ReconciliationTimeout(SegmentCacheError):
    """A reconciliation pass ran past its deadline and was abandoned."""


class ConfigurationError(SegmentCacheError):
    """Invalid cache configuration."""


__all__ = [
    "SegmentCacheError",
    "StoreUnavailable",
    "DecodeError",
    "ReconciliationTimeout",
    "ConfigurationError",
]
