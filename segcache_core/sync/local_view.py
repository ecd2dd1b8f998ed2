"""SegCache Local View - Last Observed Index Membership.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import threading
from typing import FrozenSet, Iterable, List, Tuple


class LocalView:
    """What this process last observed as present in the shared cache.

    Never authoritative; only used to turn observations into created and
    deleted deltas. The whole membership is replaced in a single swap,
    so readers never see a half-applied reconciliation.
    """

    def __init__(self) -> None:
        self._keys: FrozenSet[str] = frozenset()
        self._lock = threading.Lock()

    def replace(self, observed: Iterable[str]) -> Tuple[List[str], List[str]]:
        """Swap in a freshly observed membership.

        Args:
            observed: Keys seen alive in the latest full scan

        Returns:
            (created, deleted): keys new since the last view, and keys
            that vanished from it
        """
        fresh = frozenset(observed)
        with self._lock:
            previous = self._keys
            self._keys = fresh

        created = sorted(fresh - previous)
        deleted = sorted(previous - fresh)
        return created, deleted

    def mark_present(self, key: str) -> bool:
        """Record a key observed outside a full scan.

        Returns:
            True if the key was not already known
        """
        with self._lock:
            if key in self._keys:
                return False
            self._keys = self._keys | {key}
            return True

    def mark_absent(self, key: str) -> bool:
        """Record a key observed gone outside a full scan.

        Returns:
            True if the key was known
        """
        with self._lock:
            if key not in self._keys:
                return False
            self._keys = self._keys - {key}
            return True

    def snapshot(self) -> FrozenSet[str]:
        """Get the current membership."""
        return self._keys

    def clear(self) -> None:
        with self._lock:
            self._keys = frozenset()

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def __repr__(self) -> str:
        return f"LocalView(keys={len(self._keys)})"


__all__ = ["LocalView"]
