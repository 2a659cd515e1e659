"""
Batch Processor Module

Embedded metadata merge and write.
"""

from .metadata_sync import MetadataSynchronizer, normalize_values, split_list

__all__ = ["MetadataSynchronizer", "normalize_values", "split_list"]
