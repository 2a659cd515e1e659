"""
Failure Cache

Remembers which files already failed a read (checksum decode, tag read or
tag write) so each failure is logged once until the owner clears the cache.
"""

from __future__ import annotations

import threading
from typing import Set

from .utils import CacheStats


class FailureCache:
    """
    Set of keys that have already been reported.

    Usage:
        if failures.should_log(path):
            logger.warning("Failed to decode %s", path)
    """

    def __init__(self, name: str = "failures"):
        self.name = name
        self._seen: Set[str] = set()
        self._lock = threading.Lock()
        self.stats = CacheStats()

    def should_log(self, key: str) -> bool:
        """True the first time ``key`` is seen, False afterwards."""
        with self._lock:
            if key in self._seen:
                self.stats.record_hit()
                return False
            self._seen.add(key)
            self.stats.record_miss()
            return True

    def __contains__(self, key: str) -> bool:
        return key in self._seen

    def __len__(self) -> int:
        return len(self._seen)

    def clear(self) -> None:
        with self._lock:
            self._seen.clear()
            self.stats.record_clear()
