"""
Library Service - 音效库服务

整合数据库、扫描器、命名器和重组器的统一服务层。
Entry point for every library operation; holds one set of collaborators
per library and resets its caches explicitly after each change.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from audiosort.application.batch_processor import MetadataSynchronizer, normalize_values
from audiosort.application.naming_manager import ConflictSequencer, TaxonomyNamer
from audiosort.core.config import LibrarySettings
from audiosort.core.utils import is_within
from audiosort.domain.exceptions import (
    FileRecordNotFoundError,
    InvalidFileNameError,
    LibraryNotConfiguredError,
    LibraryPathError,
)
from audiosort.domain.models import (
    DuplicateGroup,
    EmbeddedMetadata,
    FileRecord,
    ImportResult,
    MetadataUpdate,
    ScanSummary,
    is_set,
)
from audiosort.infrastructure.audio_engine import WaveCodec
from audiosort.infrastructure.cache import FailureCache, SuggestionCache
from audiosort.infrastructure.database import DatabaseManager, LibraryRepository

from .catalog import load_catalog
from .checksum import ChecksumResolver
from .importer import ExternalImporter
from .reorganizer import OrganizePlanner, Reorganizer
from .scanner import LibraryScanner, ScanProgress

logger = logging.getLogger(__name__)

INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
WAV_EXTENSION = ".wav"

ReindexListener = Callable[[List[int]], None]
Overrides = Union[MetadataUpdate, Dict[str, Any], None]


def _as_update(overrides: Overrides) -> MetadataUpdate:
    if overrides is None:
        return MetadataUpdate()
    if isinstance(overrides, MetadataUpdate):
        return overrides
    return MetadataUpdate.from_dict(overrides)


class LibraryService:
    """
    音效库服务

    功能：
    - 扫描与身份识别（路径 / 音频校验和）
    - 分类整理：目标路径、冲突序号、原子移动
    - 重命名、移动、删除、导入
    - 元数据读写与作者建议
    """

    _instance: Optional['LibraryService'] = None

    def __init__(
        self,
        db: Optional[DatabaseManager] = None,
        settings: Optional[LibrarySettings] = None,
        codec: Optional[WaveCodec] = None,
        rename: Callable[[str, str], None] = os.rename,
    ):
        if db is None:
            from audiosort.infrastructure.database import get_db_manager
            db = get_db_manager()
        db.init_db()

        self.db = db
        self.settings = settings or LibrarySettings()
        self.repository = LibraryRepository(db)
        self.codec = codec or WaveCodec()

        self.checksum_failures = FailureCache("checksum")
        self.metadata_failures = FailureCache("metadata")
        self.checksums = ChecksumResolver(self.codec, self.checksum_failures)
        self.synchronizer = MetadataSynchronizer(self.codec, self.metadata_failures)

        self.namer = TaxonomyNamer()
        self.sequencer = ConflictSequencer(
            self.repository, self.namer, max_probe_attempts=self.settings.max_probe_attempts
        )
        self.planner = OrganizePlanner(self.repository, self.sequencer, self.namer)
        self.reorganizer = Reorganizer(self.repository, self.sequencer, self.synchronizer, rename=rename)

        formats = self.settings.supported_formats
        self.scanner = LibraryScanner(
            self.repository, self.checksums, self.synchronizer, self.codec, supported_formats=formats
        )
        self.importer = ExternalImporter(
            self.repository, self.checksums, self.synchronizer, self.namer, supported_formats=formats
        )

        self.author_suggestions = SuggestionCache(self._collect_authors)
        self._reindex_listeners: List[ReindexListener] = []

    @classmethod
    def instance(cls) -> 'LibraryService':
        """获取单例实例"""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        cls._instance = None

    # ═══════════════════════════════════════════════════════════
    # 基础
    # ═══════════════════════════════════════════════════════════

    def require_library_root(self) -> Path:
        root = self.settings.library_root()
        if root is None:
            raise LibraryNotConfiguredError()
        return root

    def get_file(self, file_id: int) -> FileRecord:
        record = self.repository.get_file_by_id(file_id)
        if record is None:
            raise FileRecordNotFoundError(file_id)
        return record

    def list_files(self) -> List[FileRecord]:
        return self.repository.list_files()

    def add_reindex_listener(self, listener: ReindexListener) -> None:
        """Register a callback receiving the ids of files that changed."""
        self._reindex_listeners.append(listener)

    def remove_reindex_listener(self, listener: ReindexListener) -> None:
        if listener in self._reindex_listeners:
            self._reindex_listeners.remove(listener)

    def _emit_reindex(self, file_ids: Iterable[int]) -> None:
        ids = sorted(set(file_ids))
        for listener in list(self._reindex_listeners):
            try:
                listener(ids)
            except Exception as e:
                logger.error(f"Reindex listener failed: {e}", exc_info=True)

    def reset_caches(self) -> None:
        """Drop cached suggestions; failure caches are cleared by scans."""
        self.author_suggestions.reset()

    # ═══════════════════════════════════════════════════════════
    # 扫描、目录与导入
    # ═══════════════════════════════════════════════════════════

    def scan_library(
        self,
        progress_callback: Optional[Callable[[ScanProgress], None]] = None,
    ) -> ScanSummary:
        """
        Rescan the library root.

        Returns:
            ScanSummary with added/updated/removed/total counts.
        """
        root = self.require_library_root()
        self.checksum_failures.clear()
        self.metadata_failures.clear()

        summary = self.scanner.scan(root, progress_callback)
        self.reset_caches()
        self._emit_reindex(r.id for r in self.repository.list_files())
        return summary

    def load_catalog_csv(self, csv_path: str | Path) -> int:
        """Load the UCS category catalog; returns the number of categories."""
        return load_catalog(self.repository, csv_path)

    def list_categories(self):
        return self.repository.list_categories()

    def import_external(self, sources: Iterable[str | Path]) -> ImportResult:
        """
        Copy external WAV files or folders into the dated import folder.

        Args:
            sources: Files and/or folders outside the library root.
        """
        root = self.require_library_root()
        result = self.importer.import_paths(sources, root, self.settings.imports_folder)
        if result.imported:
            self.reset_caches()
            imported = [self.repository.get_file_by_path(path) for path in result.imported]
            self._emit_reindex(r.id for r in imported if r is not None)
        return result

    # ═══════════════════════════════════════════════════════════
    # 分类整理
    # ═══════════════════════════════════════════════════════════

    def organize_file(self, file_id: int, overrides: Overrides = None) -> FileRecord:
        """
        Move a file to its taxonomy location and sync its embedded tags.

        Args:
            file_id: Record to organize.
            overrides: ``MetadataUpdate`` or dict with any of ``custom_name``,
                ``author``, ``copyright``, ``rating``, ``parent_file_id``.
                Omitted keys keep their current values.

        Raises:
            CategoryNotAssignedError: The file has no usable primary category.
            InvalidMetadataError: An override such as ``rating`` is not an integer.
            ReorganizeError: The move could not be committed.
        """
        root = self.require_library_root()
        update = _as_update(overrides)
        record = self.get_file(file_id)

        plan = self.planner.plan(record, root, update.custom_name)
        result = self.reorganizer.execute(plan, record, update)
        organized = result.unwrap()

        self.reset_caches()
        self._emit_reindex([organized.id, *(c.id for c in plan.conflicts)])
        return organized

    def list_duplicate_groups(self) -> List[DuplicateGroup]:
        return self.repository.list_duplicate_groups()

    # ═══════════════════════════════════════════════════════════
    # 重命名、移动、删除
    # ═══════════════════════════════════════════════════════════

    def normalize_file_name(self, requested: str) -> str:
        """
        Clean a user-supplied file name; ``.wav`` is appended when missing.

        Raises:
            InvalidFileNameError: Empty name or an extension other than .wav.
        """
        text = (requested or "").strip()
        if not text:
            raise InvalidFileNameError("File name cannot be empty.")

        stem, extension = os.path.splitext(text)
        if extension and extension.lower() != WAV_EXTENSION:
            raise InvalidFileNameError(f"Only WAV files are supported: {requested}")

        stem = INVALID_FILENAME_CHARS.sub("_", stem).strip(" .")
        if not stem:
            raise InvalidFileNameError(f"File name has no usable characters: {requested}")
        return f"{stem}{extension or WAV_EXTENSION}"

    def rename_file(self, file_id: int, new_name: str) -> FileRecord:
        """Rename a file inside its current folder."""
        root = self.require_library_root()
        record = self.get_file(file_id)
        file_name = self.normalize_file_name(new_name)
        if file_name == record.file_name:
            return record

        target_directory = Path(record.absolute_path).parent
        updated = self.reorganizer.relocate(record, target_directory, file_name, root, "rename")
        logger.info("Renamed file %s: %s -> %s", file_id, record.file_name, updated.file_name)

        self.reset_caches()
        self._emit_reindex([file_id])
        return updated

    def move_file(self, file_id: int, target_relative_directory: str) -> FileRecord:
        """
        Move a file to another folder under the library root, keeping its name.

        Raises:
            LibraryPathError: The target resolves outside the library root.
        """
        root = self.require_library_root()
        record = self.get_file(file_id)
        target_directory = (root / (target_relative_directory or "").strip()).resolve()
        if not is_within(root, target_directory):
            raise LibraryPathError(target_directory, root)
        if target_directory == Path(record.absolute_path).parent.resolve():
            return record

        updated = self.reorganizer.relocate(record, target_directory, record.file_name, root, "move")
        logger.info("Moved file %s: %s -> %s", file_id, record.relative_path, updated.relative_path)

        self.reset_caches()
        self._emit_reindex([file_id])
        return updated

    def delete_files(self, file_ids: Iterable[int]) -> int:
        """
        Delete files from disk and the database.

        A file that is already gone from disk still has its row removed.

        Returns:
            int: Number of records deleted.
        """
        deleted = []
        for file_id in file_ids:
            record = self.get_file(file_id)
            try:
                os.unlink(record.absolute_path)
            except FileNotFoundError:
                logger.warning(f"File already missing on disk: {record.absolute_path}")
            self.repository.delete_file(file_id)
            deleted.append(file_id)
            logger.info("Deleted file %s (%s)", file_id, record.relative_path)

        if deleted:
            self.reset_caches()
            self._emit_reindex(deleted)
        return len(deleted)

    # ═══════════════════════════════════════════════════════════
    # 标签与元数据
    # ═══════════════════════════════════════════════════════════

    def update_tagging(self, file_id: int, tags: Iterable[str], categories: Iterable[str]) -> FileRecord:
        """
        Replace a file's tags and categories.

        Category ids are never kept as tags. When the file ends up with a
        category it is organized right away.
        """
        record = self.get_file(file_id)
        clean_categories = normalize_values(categories)
        category_ids = {c.id for c in self.repository.list_categories()} | set(clean_categories)
        clean_tags = [t for t in normalize_values(tags) if t not in category_ids]

        updated = self.repository.update_tagging(record.id, clean_tags, clean_categories)
        self.synchronizer.merge_and_write(updated.absolute_path, updated)

        if updated.categories:
            return self.organize_file(file_id)

        self.reset_caches()
        self._emit_reindex([file_id])
        return updated

    def update_custom_name(self, file_id: int, custom_name: Optional[str]) -> FileRecord:
        """Store a custom name without moving the file."""
        self.get_file(file_id)
        updated = self.repository.update_custom_name(file_id, (custom_name or "").strip() or None)
        self._emit_reindex([file_id])
        return updated

    def read_file_metadata(self, file_id: int) -> EmbeddedMetadata:
        record = self.get_file(file_id)
        return self.synchronizer.read(record.absolute_path)

    def update_file_metadata(self, file_id: int, overrides: Overrides) -> EmbeddedMetadata:
        """
        Write author/copyright/rating/parent into the file without moving it.

        Returns:
            EmbeddedMetadata: The merged values that were written.
        """
        update = _as_update(overrides)
        record = self.get_file(file_id)
        if is_set(update.parent_file_id) and update.parent_file_id != record.parent_file_id:
            record = self.repository.update_parent(file_id, update.parent_file_id)

        merged = self.synchronizer.merge_and_write(record.absolute_path, record, update)
        self.reset_caches()
        return merged

    def list_author_suggestions(self) -> List[str]:
        """Distinct authors embedded across the library, cached until reset."""
        return self.author_suggestions.get()

    def _collect_authors(self) -> List[str]:
        authors = []
        for record in self.repository.list_files():
            author = self.synchronizer.read(record.absolute_path).author
            if author:
                authors.append(author)
        return authors

    def list_operations(self, file_id: int):
        return self.repository.list_operations(file_id)

    # ═══════════════════════════════════════════════════════════
    # 异步包装
    # ═══════════════════════════════════════════════════════════

    async def organize_file_async(self, file_id: int, overrides: Overrides = None) -> FileRecord:
        return await asyncio.to_thread(self.organize_file, file_id, overrides)

    async def rename_file_async(self, file_id: int, new_name: str) -> FileRecord:
        return await asyncio.to_thread(self.rename_file, file_id, new_name)

    async def move_file_async(self, file_id: int, target_relative_directory: str) -> FileRecord:
        return await asyncio.to_thread(self.move_file, file_id, target_relative_directory)

    async def scan_library_async(
        self,
        progress_callback: Optional[Callable[[ScanProgress], None]] = None,
    ) -> ScanSummary:
        return await asyncio.to_thread(self.scan_library, progress_callback)

    async def import_external_async(self, sources: Iterable[str | Path]) -> ImportResult:
        return await asyncio.to_thread(self.import_external, list(sources))
