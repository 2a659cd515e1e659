"""
Domain Exceptions Module

Contains domain-specific exceptions:
- FileRecordNotFoundError: No record with the requested id
- CategoryNotAssignedError: Organize requested for a file without a primary category
- LibraryNotConfiguredError: No library root configured
- LibraryPathError: Target path is outside the library root
- InvalidFileNameError: Rejected file name
- InvalidMetadataError: Rejected metadata value (rating, parent id)
- ReorganizeError: A move could not be committed
- RollbackError: A staged file could not be restored
- CatalogImportError: Taxonomy CSV could not be read
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class AudioSortError(Exception):
    """Base class for all AudioSort errors."""
    pass


class FileRecordNotFoundError(AudioSortError):
    """Raised when a file id is not in the database."""

    def __init__(self, file_id: int):
        super().__init__(f"File record not found: {file_id}")
        self.file_id = file_id


class CategoryNotAssignedError(AudioSortError):
    """Raised when organizing a file that has no primary category."""

    def __init__(self, file_id: int, category_id: Optional[str] = None):
        if category_id:
            message = f"Category {category_id!r} of file {file_id} is not in the catalog"
        else:
            message = f"File {file_id} has no category assigned"
        super().__init__(message)
        self.file_id = file_id
        self.category_id = category_id


class LibraryNotConfiguredError(AudioSortError):
    """Raised when an operation needs a library root and none is set."""

    def __init__(self):
        super().__init__("Library root is not configured")


class LibraryPathError(AudioSortError):
    """Raised when a path lies outside the library root."""

    def __init__(self, path: Path | str, root: Path | str):
        super().__init__(f"Path {path} is outside the library root {root}")
        self.path = str(path)
        self.root = str(root)


class InvalidFileNameError(AudioSortError):
    """Raised for empty names or unsupported extensions."""
    pass


class InvalidMetadataError(AudioSortError):
    """Raised when a supplied metadata value cannot be used."""

    def __init__(self, field_name: str, value):
        super().__init__(f"Invalid {field_name}: {value!r}")
        self.field_name = field_name
        self.value = value


class ReorganizeError(AudioSortError):
    """Raised when a file could not be moved into its target location."""

    def __init__(self, file_id: int, message: str):
        super().__init__(f"File {file_id}: {message}")
        self.file_id = file_id


class RollbackError(AudioSortError):
    """Raised when a staged rename could be neither rolled back nor completed."""

    def __init__(self, staged_path: str, original_path: str, final_path: str):
        super().__init__(
            f"Could not restore staged file {staged_path} to {original_path} or {final_path}"
        )
        self.staged_path = staged_path
        self.original_path = original_path
        self.final_path = final_path


class CatalogImportError(AudioSortError):
    """Raised when the taxonomy catalog cannot be imported."""
    pass


__all__ = [
    "AudioSortError",
    "FileRecordNotFoundError",
    "CategoryNotAssignedError",
    "LibraryNotConfiguredError",
    "LibraryPathError",
    "InvalidFileNameError",
    "InvalidMetadataError",
    "ReorganizeError",
    "RollbackError",
    "CatalogImportError",
]
