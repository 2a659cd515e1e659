"""
External Importer

Copies WAV files from outside the library into a dated import folder
(``<root>/_Imports/YYYY-MM-DD``) and registers the copies. Files already
known by path or by audio checksum are skipped.
"""

from __future__ import annotations

import logging
import os
import shutil
from datetime import date, datetime
from pathlib import Path
from typing import Iterable, List, Optional, Set, Tuple

from audiosort.application.batch_processor import MetadataSynchronizer
from audiosort.application.naming_manager import TaxonomyNamer, format_sequence
from audiosort.core.utils import is_within, natural_sort_key
from audiosort.domain.models import FailedImport, FileRecord, ImportResult, SkippedImport
from audiosort.infrastructure.audio_engine import AudioProperties
from audiosort.infrastructure.database import FileUpsert, LibraryRepository

from .checksum import ChecksumResolver
from .scanner import SUPPORTED_FORMATS

logger = logging.getLogger(__name__)

MAX_NAME_ATTEMPTS = 9999
FALLBACK_NAME = "Imported"


class ExternalImporter:
    """Imports external files or folders into the library root."""

    def __init__(
        self,
        repository: LibraryRepository,
        checksums: ChecksumResolver,
        synchronizer: MetadataSynchronizer,
        namer: Optional[TaxonomyNamer] = None,
        supported_formats: Optional[Set[str]] = None,
    ):
        self.repository = repository
        self.checksums = checksums
        self.synchronizer = synchronizer
        self.codec = checksums.codec
        self.namer = namer or TaxonomyNamer()
        self.supported_formats = supported_formats or SUPPORTED_FORMATS

    def import_paths(
        self,
        sources: Iterable[str | Path],
        library_root: Path,
        imports_folder: str = "_Imports",
        today: Optional[date] = None,
    ) -> ImportResult:
        """
        Import ``sources`` (files or folders) below ``library_root``.

        Skip reasons: ``unsupported``, ``inside-library``, ``duplicate``
        (path or content already known) and ``checksum`` (not decodable).
        """
        library_root = Path(library_root).resolve()
        day = (today or date.today()).isoformat()
        destination = library_root / imports_folder / day
        result = ImportResult(destination=str(destination))

        candidates, failures = self.collect_candidates(sources)
        result.failed.extend(failures)
        if not candidates:
            return result

        existing = self.repository.list_files()
        known_paths = {os.path.normcase(r.absolute_path) for r in existing}
        known_checksums = {r.checksum for r in existing if r.checksum}
        category_ids = {c.id for c in self.repository.list_categories()}
        used_names: Set[str] = set()

        logger.info("Importing %d candidate file(s) into %s", len(candidates), destination)

        for candidate in candidates:
            if candidate.suffix.lower() not in self.supported_formats:
                result.skipped.append(SkippedImport(str(candidate), "unsupported"))
                continue
            if is_within(library_root, candidate):
                result.skipped.append(SkippedImport(str(candidate), "inside-library"))
                continue
            if os.path.normcase(str(candidate)) in known_paths:
                result.skipped.append(SkippedImport(str(candidate), "duplicate"))
                continue

            checksum = self.checksums.compute(candidate)
            if not checksum:
                result.skipped.append(SkippedImport(str(candidate), "checksum"))
                continue
            if checksum in known_checksums:
                logger.debug(f"Skipping {candidate}: duplicate checksum {checksum}")
                result.skipped.append(SkippedImport(str(candidate), "duplicate"))
                continue

            try:
                record = self._copy_and_register(
                    candidate, checksum, library_root, destination, used_names, category_ids
                )
            except OSError as e:
                logger.error(f"Failed to import {candidate}: {e}")
                result.failed.append(FailedImport(str(candidate), str(e)))
                continue

            result.imported.append(record.absolute_path)
            known_checksums.add(checksum)
            known_paths.add(os.path.normcase(record.absolute_path))

        logger.info(
            "Import finished: %d imported, %d skipped, %d failed",
            len(result.imported), len(result.skipped), len(result.failed),
        )
        return result

    def collect_candidates(self, sources: Iterable[str | Path]) -> Tuple[List[Path], List[FailedImport]]:
        """Expand folders recursively; missing or special entries become failures."""
        discovered: Set[Path] = set()
        failures: List[FailedImport] = []

        unique_sources = {str(s).strip() for s in sources if s is not None and str(s).strip()}
        for raw in sorted(unique_sources):
            source = Path(raw).resolve()
            if source.is_dir():
                for root, _dirs, files in os.walk(source):
                    for filename in files:
                        path = Path(root) / filename
                        if path.suffix.lower() in self.supported_formats:
                            discovered.add(path)
            elif source.is_file():
                discovered.add(source)
            elif source.exists():
                failures.append(FailedImport(str(source), "Unsupported file system entry."))
            else:
                failures.append(FailedImport(str(source), "No such file or directory"))

        return sorted(discovered, key=lambda p: natural_sort_key(str(p))), failures

    def _allocate_name(self, source: Path, destination: Path, used_names: Set[str]) -> str:
        base = self.namer.sanitize_custom_name(source.stem) or FALLBACK_NAME
        for attempt in range(MAX_NAME_ATTEMPTS + 1):
            name = f"{base}.wav" if attempt == 0 else f"{base}_{format_sequence(attempt)}.wav"
            if name.lower() not in used_names and not (destination / name).exists():
                used_names.add(name.lower())
                return name
        raise OSError(f"Unable to allocate a unique filename for {source.name}")

    def _copy_and_register(
        self,
        source: Path,
        checksum: str,
        library_root: Path,
        destination: Path,
        used_names: Set[str],
        category_ids: Set[str],
    ) -> FileRecord:
        destination.mkdir(parents=True, exist_ok=True)
        name = self._allocate_name(source, destination, used_names)
        target = destination / name

        shutil.copy2(source, target)
        try:
            stats = target.stat()
            embedded = self.synchronizer.read(target)
            record = self.repository.upsert_file(FileUpsert(
                absolute_path=str(target),
                relative_path=target.relative_to(library_root).as_posix(),
                file_name=name,
                size=stats.st_size,
                checksum=checksum,
                **self._properties(target),
                tags=[t for t in embedded.tags if t not in category_ids],
                categories=[c for c in embedded.categories if c in category_ids],
                created_at=datetime.now(),
                modified_at=datetime.fromtimestamp(stats.st_mtime),
            ))
            if embedded.title:
                record = self.repository.update_custom_name(record.id, embedded.title)
        except Exception:
            target.unlink(missing_ok=True)
            raise

        logger.info("Imported %s as %s", source, record.relative_path)
        return record

    def _properties(self, path: Path) -> dict:
        try:
            properties = self.codec.read_properties(path)
        except Exception as e:
            if self.checksums.failures.should_log(f"properties:{path}"):
                logger.warning(f"Failed to read audio properties from {path}: {e}")
            properties = AudioProperties()
        return {
            "duration_ms": properties.duration_ms,
            "sample_rate": properties.sample_rate,
            "bit_depth": properties.bit_depth,
        }
