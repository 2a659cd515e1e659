"""
Library Scanner Module

Walks the library root, resolves each file's identity (path, then audio
checksum, then new) and brings the database in line with the disk.
Orphaned staging files from an interrupted renumbering are swept first.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Set

from audiosort.application.batch_processor import MetadataSynchronizer
from audiosort.core.utils import natural_sort_key
from audiosort.domain.models import FileRecord, MetadataUpdate, ScanSummary
from audiosort.infrastructure.audio_engine import AudioProperties, WaveCodec
from audiosort.infrastructure.database import FileUpsert, LibraryRepository

from .checksum import ChecksumResolver

logger = logging.getLogger(__name__)

# Supported audio formats
SUPPORTED_FORMATS = {".wav", ".wave"}

STAGING_FILE_PATTERN = re.compile(r"^(.+)\.\d+-\d+-[a-f0-9]+\.tmp$")
SEGMENT_PATTERN = re.compile(r"^(.*)_segment\d+(\.[^.]+)$", re.IGNORECASE)


@dataclass
class ScanProgress:
    """Progress information for a scan operation."""
    total_files: int = 0
    scanned_files: int = 0
    current_file: str = ""
    errors: List[str] = field(default_factory=list)

    @property
    def progress_percent(self) -> float:
        if self.total_files == 0:
            return 0.0
        return (self.scanned_files / self.total_files) * 100


@dataclass
class _ScanIndex:
    """Lookups kept current while the scan runs."""
    by_path: Dict[str, FileRecord]
    by_checksum: Dict[str, FileRecord]
    discovered: Dict[str, FileRecord] = field(default_factory=dict)
    seen: Set[str] = field(default_factory=set)


class LibraryScanner:
    """
    Scans the library root for audio files.

    Features:
    - Staging file sweep
    - Identity resolution by path, then checksum
    - Embedded tag merge (tags, categories, title, parent)
    - Progress callbacks
    """

    def __init__(
        self,
        repository: LibraryRepository,
        checksums: ChecksumResolver,
        synchronizer: MetadataSynchronizer,
        codec: Optional[WaveCodec] = None,
        supported_formats: Optional[Set[str]] = None,
    ):
        self.repository = repository
        self.checksums = checksums
        self.synchronizer = synchronizer
        self.codec = codec or checksums.codec
        self.supported_formats = supported_formats or SUPPORTED_FORMATS

    def scan(
        self,
        library_root: Path,
        progress_callback: Optional[Callable[[ScanProgress], None]] = None,
    ) -> ScanSummary:
        """
        Scan the library and return added/updated/removed/total counts.

        Records whose files were not found are deleted.
        """
        library_root = Path(library_root)
        start_time = datetime.now()
        self.sweep_staging_files(library_root)

        existing = self.repository.list_files()
        index = _ScanIndex(
            by_path={r.absolute_path: r for r in existing},
            by_checksum={r.checksum: r for r in existing if r.checksum},
        )
        category_ids = {c.id for c in self.repository.list_categories()}

        audio_files = sorted(self.discover_files(library_root), key=lambda p: natural_sort_key(str(p)))
        summary = ScanSummary()
        progress = ScanProgress(total_files=len(audio_files))

        for file_path in audio_files:
            progress.current_file = str(file_path)
            try:
                was_known = self._scan_file(library_root, file_path, index, category_ids)
                if was_known:
                    summary.updated += 1
                else:
                    summary.added += 1
            except OSError as e:
                error_msg = f"Error processing {file_path}: {e}"
                progress.errors.append(error_msg)
                summary.errors.append(error_msg)
                logger.warning(error_msg)

            progress.scanned_files += 1
            if progress_callback:
                progress_callback(progress)

        summary.removed = self.repository.remove_files_outside(index.seen)
        summary.total = len(self.repository.list_files())

        duration = (datetime.now() - start_time).total_seconds()
        logger.info(
            "Scan of %s finished in %.2fs: %d added, %d updated, %d removed, %d total",
            library_root, duration, summary.added, summary.updated, summary.removed, summary.total,
        )
        return summary

    def _scan_file(
        self,
        library_root: Path,
        file_path: Path,
        index: _ScanIndex,
        category_ids: Set[str],
    ) -> bool:
        stats = file_path.stat()
        absolute_path = str(file_path)
        relative_path = file_path.relative_to(library_root).as_posix()
        properties = self._read_properties(file_path)
        checksum = self.checksums.compute(file_path)

        known_by_path = index.by_path.get(absolute_path)
        known_by_checksum = index.by_checksum.get(checksum) if checksum else None
        known = known_by_path or known_by_checksum

        if known_by_path is None and known_by_checksum is not None and self._was_moved(known_by_checksum, index):
            # Moved or renamed outside the tool: keep the record and its id
            index.by_path.pop(known_by_checksum.absolute_path, None)
            known = self.repository.update_file_location(
                known_by_checksum.id, absolute_path, relative_path, file_path.name
            )
            logger.info("Recognized moved file %s -> %s", known_by_checksum.relative_path, relative_path)

        embedded = self.synchronizer.read(file_path)
        categories = [c for c in embedded.categories if c in category_ids]
        tags = [t for t in embedded.tags if t not in category_ids]

        parent_file_id = known.parent_file_id if known else None
        if parent_file_id is None:
            parent_file_id = embedded.parent_file_id
        if parent_file_id is None:
            parent_file_id = self._segment_parent(file_path, index)

        upserted = self.repository.upsert_file(FileUpsert(
            absolute_path=absolute_path,
            relative_path=relative_path,
            file_name=file_path.name,
            size=stats.st_size,
            checksum=checksum,
            duration_ms=properties.duration_ms,
            sample_rate=properties.sample_rate,
            bit_depth=properties.bit_depth,
            tags=tags or (list(known.tags) if known else []),
            categories=categories or (list(known.categories) if known else []),
            parent_file_id=parent_file_id,
            created_at=self._created_at(stats),
            modified_at=datetime.fromtimestamp(stats.st_mtime),
        ))

        custom_name = embedded.title or (known.custom_name if known else None) or None
        record = upserted
        if custom_name != upserted.custom_name:
            record = self.repository.update_custom_name(upserted.id, custom_name)

        if parent_file_id is not None and embedded.parent_file_id != parent_file_id:
            self.synchronizer.merge_and_write(file_path, record, MetadataUpdate(parent_file_id=parent_file_id))

        index.by_path[absolute_path] = record
        if checksum:
            index.by_checksum[checksum] = record
        index.discovered[absolute_path] = record
        index.seen.add(absolute_path)
        return known is not None

    @staticmethod
    def _was_moved(candidate: FileRecord, index: _ScanIndex) -> bool:
        """The checksum match's old path is gone and not claimed in this scan."""
        return candidate.absolute_path not in index.seen and not os.path.exists(candidate.absolute_path)

    @staticmethod
    def _segment_parent(file_path: Path, index: _ScanIndex) -> Optional[int]:
        match = SEGMENT_PATTERN.match(file_path.name)
        if not match:
            return None
        parent_path = str(file_path.parent / f"{match.group(1)}{match.group(2)}")
        parent = index.by_path.get(parent_path) or index.discovered.get(parent_path)
        return parent.id if parent else None

    @staticmethod
    def _created_at(stats: os.stat_result) -> Optional[datetime]:
        birth = getattr(stats, "st_birthtime", None)
        return datetime.fromtimestamp(birth if birth is not None else stats.st_ctime)

    def _read_properties(self, file_path: Path) -> AudioProperties:
        try:
            return self.codec.read_properties(file_path)
        except Exception as e:
            if self.checksums.failures.should_log(f"properties:{file_path}"):
                logger.warning(f"Failed to read audio properties from {file_path}: {e}")
            return AudioProperties()

    def discover_files(self, path: Path) -> Iterator[Path]:
        """
        Discover audio files below ``path``.

        Yields:
            Path: Audio file paths
        """
        path = Path(path)

        if not path.exists():
            logger.warning(f"Path does not exist: {path}")
            return

        if not path.is_dir():
            logger.warning(f"Path is not a directory: {path}")
            return

        for root, dirs, files in os.walk(path):
            dirs.sort()
            for filename in files:
                file_path = Path(root) / filename
                if self._is_audio_file(file_path):
                    yield file_path

    def _is_audio_file(self, path: Path) -> bool:
        """Check if a file is a supported audio format."""
        return path.suffix.lower() in self.supported_formats

    def sweep_staging_files(self, library_root: Path) -> int:
        """
        Resolve ``*.tmp`` files left by an interrupted renumbering.

        A staging file is deleted when its intended final name exists,
        otherwise it is renamed to that name.

        Returns:
            int: Number of staging files handled.
        """
        library_root = Path(library_root)
        if not library_root.is_dir():
            return 0

        cleaned = 0
        for temp_file in sorted(library_root.rglob("*.tmp")):
            match = STAGING_FILE_PATTERN.match(str(temp_file))
            if not match:
                logger.warning(f"Found temp file with unknown pattern: {temp_file}")
                continue

            intended = Path(match.group(1))
            try:
                if intended.exists():
                    temp_file.unlink()
                    logger.info("Removed orphaned staging file %s", temp_file)
                else:
                    os.rename(temp_file, intended)
                    logger.info("Restored staging file %s -> %s", temp_file, intended.name)
                cleaned += 1
            except OSError as e:
                logger.error(f"Failed to clean up temp file {temp_file}: {e}")

        return cleaned
