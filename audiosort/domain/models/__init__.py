"""
Domain Models Module

Contains all domain models for AudioSort.
"""

from .file_record import CategoryRecord, DuplicateGroup, FileRecord
from .metadata import (
    UNSET,
    EmbeddedMetadata,
    FailedImport,
    ImportResult,
    MetadataUpdate,
    ScanSummary,
    SkippedImport,
    is_set,
)

__all__ = [
    # Records
    "FileRecord",
    "CategoryRecord",
    "DuplicateGroup",
    # Metadata
    "UNSET",
    "is_set",
    "EmbeddedMetadata",
    "MetadataUpdate",
    # Summaries
    "ScanSummary",
    "SkippedImport",
    "FailedImport",
    "ImportResult",
]
