"""
Library Repository

Data access for file records, taxonomy categories and operation history.
Every public method runs in its own ``session_scope`` so each call is one
committed unit of work.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import delete, func, select

from audiosort.domain.exceptions import FileRecordNotFoundError
from audiosort.domain.models import CategoryRecord, DuplicateGroup, FileRecord

from .connection import DatabaseManager
from .models import AudioFile, Category, FileOperation

logger = logging.getLogger(__name__)


@dataclass
class FileUpsert:
    """Values discovered for one file during a scan or import."""

    absolute_path: str
    relative_path: str
    file_name: str
    size: int = 0
    checksum: Optional[str] = None
    duration_ms: Optional[int] = None
    sample_rate: Optional[int] = None
    bit_depth: Optional[int] = None
    tags: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    parent_file_id: Optional[int] = None
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None


def _to_record(row: AudioFile) -> FileRecord:
    return FileRecord(
        id=row.id,
        absolute_path=row.file_path,
        relative_path=row.relative_path,
        file_name=row.filename,
        custom_name=row.custom_name,
        checksum=row.content_hash,
        tags=list(row.tags or []),
        categories=list(row.categories or []),
        parent_file_id=row.parent_file_id,
        size=row.file_size,
        duration_ms=row.duration_ms,
        sample_rate=row.sample_rate,
        bit_depth=row.bit_depth,
        created_at=row.created_at,
        modified_at=row.modified_at,
    )


def _to_category(row: Category) -> CategoryRecord:
    return CategoryRecord(
        id=row.id,
        category=row.category,
        sub_category=row.sub_category,
        short_code=row.short_code,
        explanation=row.explanation or "",
        synonyms=list(row.synonyms or []),
    )


class LibraryRepository:
    """Repository over the ``audio_files``, ``categories`` and ``file_operations`` tables."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def upsert_file(self, entry: FileUpsert) -> FileRecord:
        """
        Insert a file or refresh the row already stored at its path.

        On refresh the stored tags/categories win unless they are empty,
        ``created_at`` is kept once set and a null parent never clears a
        stored one.
        """
        with self.db.session_scope() as session:
            row = session.scalars(
                select(AudioFile).where(AudioFile.file_path == entry.absolute_path)
            ).first()

            if row is None:
                row = AudioFile(
                    file_path=entry.absolute_path,
                    tags=list(entry.tags),
                    categories=list(entry.categories),
                    parent_file_id=entry.parent_file_id,
                    created_at=entry.created_at,
                )
                session.add(row)
            else:
                if not row.tags:
                    row.tags = list(entry.tags)
                if not row.categories:
                    row.categories = list(entry.categories)
                if row.created_at is None:
                    row.created_at = entry.created_at
                if entry.parent_file_id is not None:
                    row.parent_file_id = entry.parent_file_id

            row.relative_path = entry.relative_path
            row.filename = entry.file_name
            row.file_size = entry.size
            row.content_hash = entry.checksum
            row.duration_ms = entry.duration_ms
            row.sample_rate = entry.sample_rate
            row.bit_depth = entry.bit_depth
            row.modified_at = entry.modified_at
            session.flush()
            return _to_record(row)

    def update_file_location(
        self,
        file_id: int,
        absolute_path: str,
        relative_path: str,
        file_name: str,
    ) -> FileRecord:
        """
        Point a record at a new path.

        Raises:
            sqlalchemy.exc.IntegrityError: another record already owns the path.
        """
        with self.db.session_scope() as session:
            row = self._require(session, file_id)
            row.file_path = absolute_path
            row.relative_path = relative_path
            row.filename = file_name
            row.modified_at = datetime.now()
            session.flush()
            return _to_record(row)

    def relocate_many(self, moves: List[Tuple[int, str, str, str]]) -> List[FileRecord]:
        """
        Apply several ``(file_id, absolute_path, relative_path, file_name)``
        moves in one transaction.

        Rows are first parked on unique placeholder paths so a permutation
        of paths never trips the unique constraint half way through.
        """
        with self.db.session_scope() as session:
            rows = [self._require(session, file_id) for file_id, _, _, _ in moves]
            for row in rows:
                row.file_path = f"{row.file_path}.relocating-{row.id}"
            session.flush()

            now = datetime.now()
            for row, (_, absolute_path, relative_path, file_name) in zip(rows, moves):
                row.file_path = absolute_path
                row.relative_path = relative_path
                row.filename = file_name
                row.modified_at = now
            session.flush()
            return [_to_record(row) for row in rows]

    def update_custom_name(self, file_id: int, custom_name: Optional[str]) -> FileRecord:
        with self.db.session_scope() as session:
            row = self._require(session, file_id)
            row.custom_name = custom_name or None
            return _to_record(row)

    def update_tagging(self, file_id: int, tags: List[str], categories: List[str]) -> FileRecord:
        with self.db.session_scope() as session:
            row = self._require(session, file_id)
            row.tags = list(tags)
            row.categories = list(categories)
            return _to_record(row)

    def update_parent(self, file_id: int, parent_file_id: Optional[int]) -> FileRecord:
        with self.db.session_scope() as session:
            row = self._require(session, file_id)
            row.parent_file_id = parent_file_id
            return _to_record(row)

    def get_file_by_id(self, file_id: int) -> Optional[FileRecord]:
        with self.db.session_scope() as session:
            row = session.get(AudioFile, file_id)
            return _to_record(row) if row else None

    def get_file_by_path(self, absolute_path: str) -> Optional[FileRecord]:
        with self.db.session_scope() as session:
            row = session.scalars(
                select(AudioFile).where(AudioFile.file_path == absolute_path)
            ).first()
            return _to_record(row) if row else None

    def list_files(self) -> List[FileRecord]:
        with self.db.session_scope() as session:
            rows = session.scalars(select(AudioFile).order_by(AudioFile.relative_path)).all()
            return [_to_record(row) for row in rows]

    def delete_file(self, file_id: int) -> None:
        with self.db.session_scope() as session:
            session.execute(delete(AudioFile).where(AudioFile.id == file_id))

    def remove_files_outside(self, keep_paths: Iterable[str]) -> int:
        """Delete every record whose path is not in ``keep_paths``; returns the count."""
        keep = set(keep_paths)
        with self.db.session_scope() as session:
            stale = [
                row_id
                for row_id, path in session.execute(select(AudioFile.id, AudioFile.file_path))
                if path not in keep
            ]
            if stale:
                session.execute(delete(AudioFile).where(AudioFile.id.in_(stale)))
            return len(stale)

    def list_duplicate_groups(self) -> List[DuplicateGroup]:
        """Checksums shared by more than one record, oldest file first in each group."""
        with self.db.session_scope() as session:
            checksums = session.scalars(
                select(AudioFile.content_hash)
                .where(AudioFile.content_hash.is_not(None))
                .group_by(AudioFile.content_hash)
                .having(func.count(AudioFile.id) > 1)
                .order_by(AudioFile.content_hash)
            ).all()

            groups = []
            for checksum in checksums:
                rows = session.scalars(
                    select(AudioFile)
                    .where(AudioFile.content_hash == checksum)
                    .order_by(AudioFile.created_at, AudioFile.modified_at, AudioFile.id)
                ).all()
                groups.append(DuplicateGroup(checksum=checksum, files=[_to_record(r) for r in rows]))
            return groups

    @staticmethod
    def _require(session, file_id: int) -> AudioFile:
        row = session.get(AudioFile, file_id)
        if row is None:
            raise FileRecordNotFoundError(file_id)
        return row

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def upsert_category(self, category: CategoryRecord) -> None:
        with self.db.session_scope() as session:
            row = session.get(Category, category.id)
            if row is None:
                row = Category(id=category.id)
                session.add(row)
            row.category = category.category
            row.sub_category = category.sub_category
            row.short_code = category.short_code
            row.explanation = category.explanation
            row.synonyms = list(category.synonyms)

    def get_category_by_id(self, category_id: str) -> Optional[CategoryRecord]:
        with self.db.session_scope() as session:
            row = session.get(Category, category_id)
            return _to_category(row) if row else None

    def list_categories(self) -> List[CategoryRecord]:
        with self.db.session_scope() as session:
            rows = session.scalars(
                select(Category).order_by(Category.category, Category.sub_category)
            ).all()
            return [_to_category(row) for row in rows]

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def record_operation(self, file_id: int, operation: str, old_path: str, new_path: str) -> None:
        with self.db.session_scope() as session:
            session.add(FileOperation(
                audio_file_id=file_id,
                operation=operation,
                old_path=old_path,
                new_path=new_path,
                performed_at=datetime.now(),
            ))

    def list_operations(self, file_id: int) -> List[FileOperation]:
        with self.db.session_scope() as session:
            return list(session.scalars(
                select(FileOperation)
                .where(FileOperation.audio_file_id == file_id)
                .order_by(FileOperation.id)
            ).all())
