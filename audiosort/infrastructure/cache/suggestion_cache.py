"""
Suggestion Cache

Aggregated metadata values (authors) shown as suggestions. The cache has no
expiry; callers reset it after scans, tag writes and deletes.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

from .utils import CacheStats

logger = logging.getLogger(__name__)


class SuggestionCache:
    """Lazily computed, explicitly invalidated list of suggestion values."""

    def __init__(self, loader: Callable[[], List[str]]):
        self._loader = loader
        self._values: Optional[List[str]] = None
        self._lock = threading.Lock()
        self.stats = CacheStats()

    def get(self) -> List[str]:
        with self._lock:
            if self._values is None:
                self.stats.record_miss()
                self._values = sorted(set(self._loader()), key=str.casefold)
                logger.debug("Suggestion cache rebuilt with %d values", len(self._values))
            else:
                self.stats.record_hit()
            return list(self._values)

    def reset(self) -> None:
        with self._lock:
            self._values = None
            self.stats.record_clear()

    @property
    def is_loaded(self) -> bool:
        return self._values is not None
