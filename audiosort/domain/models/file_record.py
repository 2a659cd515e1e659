"""
FileRecord Domain Model

Represents one tracked audio file, independent of the database layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional


@dataclass
class FileRecord:
    """
    Domain model representing an audio file in the library.

    ``categories`` is ordered: the first entry is the primary category and
    the only one that drives folder and file naming.
    """

    # Identity
    id: int
    absolute_path: str
    relative_path: str
    file_name: str

    # Naming
    custom_name: Optional[str] = None
    checksum: Optional[str] = None

    # Classification
    tags: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    parent_file_id: Optional[int] = None

    # Descriptive
    size: int = 0
    duration_ms: Optional[int] = None
    sample_rate: Optional[int] = None
    bit_depth: Optional[int] = None
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        """File name without extension."""
        stem, dot, _ = self.file_name.rpartition(".")
        return stem if dot else self.file_name

    @property
    def primary_category(self) -> Optional[str]:
        return self.categories[0] if self.categories else None

    @property
    def folder(self) -> str:
        """Folder part of ``relative_path`` with forward slashes, '' at the root."""
        parent = PurePosixPath(self.relative_path.replace("\\", "/")).parent
        return "" if str(parent) == "." else str(parent)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "absolute_path": self.absolute_path,
            "relative_path": self.relative_path,
            "file_name": self.file_name,
            "display_name": self.display_name,
            "custom_name": self.custom_name,
            "checksum": self.checksum,
            "tags": list(self.tags),
            "categories": list(self.categories),
            "parent_file_id": self.parent_file_id,
            "size": self.size,
            "duration_ms": self.duration_ms,
            "sample_rate": self.sample_rate,
            "bit_depth": self.bit_depth,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "modified_at": self.modified_at.isoformat() if self.modified_at else None,
        }


@dataclass
class CategoryRecord:
    """Taxonomy catalog entry."""

    id: str
    category: str
    sub_category: str
    short_code: str
    explanation: str = ""
    synonyms: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "sub_category": self.sub_category,
            "short_code": self.short_code,
            "explanation": self.explanation,
            "synonyms": list(self.synonyms),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CategoryRecord:
        return cls(
            id=data["id"],
            category=data.get("category", ""),
            sub_category=data.get("sub_category", ""),
            short_code=data.get("short_code", ""),
            explanation=data.get("explanation", ""),
            synonyms=list(data.get("synonyms", [])),
        )


@dataclass
class DuplicateGroup:
    """Files sharing one audio checksum."""

    checksum: str
    files: List[FileRecord] = field(default_factory=list)
