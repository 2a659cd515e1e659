"""
Cache Module

Explicitly invalidated in-process caches.
"""

from .failure_cache import FailureCache
from .suggestion_cache import SuggestionCache
from .utils import CacheStats

__all__ = ["CacheStats", "FailureCache", "SuggestionCache"]
