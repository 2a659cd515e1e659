"""
Metadata Domain Models

Embedded tag snapshot, caller-supplied metadata updates and the summaries
returned by scan and import.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

from audiosort.domain.exceptions import InvalidMetadataError


class _Unset:
    """Marker for a field the caller did not supply."""

    _instance: Optional["_Unset"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


def is_set(value: Any) -> bool:
    return value is not UNSET


def _coerce_int(field_name: str, value: Any) -> Any:
    """UNSET and None pass through, "" clears, anything else must be an integer."""
    if not is_set(value) or value is None:
        return value
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    if isinstance(value, bool):
        raise InvalidMetadataError(field_name, value)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidMetadataError(field_name, value) from None


@dataclass
class EmbeddedMetadata:
    """Metadata as stored in the file's tag block."""

    title: Optional[str] = None
    author: Optional[str] = None
    copyright: Optional[str] = None
    rating: Optional[int] = None  # 1-5
    tags: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    parent_file_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "author": self.author,
            "copyright": self.copyright,
            "rating": self.rating,
            "tags": list(self.tags),
            "categories": list(self.categories),
            "parent_file_id": self.parent_file_id,
        }


@dataclass
class MetadataUpdate:
    """
    Caller-supplied metadata.

    A field left at ``UNSET`` is preserved from the file's existing tags;
    ``None`` (or an empty string) explicitly clears it.
    """

    custom_name: Any = UNSET
    author: Any = UNSET
    copyright: Any = UNSET
    rating: Any = UNSET
    parent_file_id: Any = UNSET

    def __post_init__(self):
        self.rating = _coerce_int("rating", self.rating)
        self.parent_file_id = _coerce_int("parent_file_id", self.parent_file_id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> MetadataUpdate:
        """Only keys present in ``data`` are considered supplied."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def supplied(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if is_set(getattr(self, f.name))}


@dataclass
class ScanSummary:
    """Counts produced by a library scan."""

    added: int = 0
    updated: int = 0
    removed: int = 0
    total: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"added": self.added, "updated": self.updated, "removed": self.removed, "total": self.total}


@dataclass
class SkippedImport:
    path: str
    reason: str  # duplicate | checksum | unsupported | inside-library


@dataclass
class FailedImport:
    path: str
    message: str


@dataclass
class ImportResult:
    """Outcome of importing external files into the library."""

    imported: List[str] = field(default_factory=list)
    skipped: List[SkippedImport] = field(default_factory=list)
    failed: List[FailedImport] = field(default_factory=list)
    destination: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "imported": list(self.imported),
            "skipped": [{"path": s.path, "reason": s.reason} for s in self.skipped],
            "failed": [{"path": f.path, "message": f.message} for f in self.failed],
            "destination": self.destination,
        }
