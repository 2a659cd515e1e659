"""
Conflict Sequencer

Finds records sharing a base name inside a folder and hands out the next
free sequence number. The database gives the starting point; the live
filesystem is probed afterwards because another writer may have taken a
slot between the query and the rename.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Optional, Pattern

from audiosort.core.utils import to_posix_relative
from audiosort.domain.models import FileRecord
from audiosort.infrastructure.database import LibraryRepository

from .taxonomy_namer import TaxonomyNamer

logger = logging.getLogger(__name__)

DEFAULT_MAX_PROBE_ATTEMPTS = 100


def conflict_pattern(base_name: str) -> Pattern[str]:
    """``base.wav`` or ``base_<digits>.wav``, case-insensitive."""
    return re.compile(rf"^{re.escape(base_name)}(?:_(\d+))?\.wav$", re.IGNORECASE)


def numbered_pattern(base_name: str) -> Pattern[str]:
    """Strictly ``base_<digits>.wav``, case-insensitive."""
    return re.compile(rf"^{re.escape(base_name)}_(\d+)\.wav$", re.IGNORECASE)


class ConflictSequencer:
    """
    Conflict detection and sequence numbering for one library.

    Args:
        repository: Source of the known file records.
        namer: Builds the numbered file names.
        max_probe_attempts: Upper bound on filesystem probes per lookup.
    """

    def __init__(
        self,
        repository: LibraryRepository,
        namer: Optional[TaxonomyNamer] = None,
        max_probe_attempts: int = DEFAULT_MAX_PROBE_ATTEMPTS,
    ):
        self.repository = repository
        self.namer = namer or TaxonomyNamer()
        self.max_probe_attempts = max(1, int(max_probe_attempts))

    def list_conflicts(
        self,
        folder: str,
        base_name: str,
        exclude_id: Optional[int] = None,
    ) -> List[FileRecord]:
        target_folder = to_posix_relative(folder).strip("/")
        pattern = conflict_pattern(base_name)
        return [
            record
            for record in self.repository.list_files()
            if record.id != exclude_id
            and record.folder == target_folder
            and pattern.match(record.file_name)
        ]

    def database_next_number(
        self,
        folder: str,
        base_name: str,
        exclude_id: Optional[int] = None,
    ) -> int:
        """Next number from database state alone."""
        pattern = numbered_pattern(base_name)
        numbers = []
        for record in self.list_conflicts(folder, base_name, exclude_id):
            match = pattern.match(record.file_name)
            if match and int(match.group(1)) > 0:
                numbers.append(int(match.group(1)))
        return max(numbers) + 1 if numbers else 1

    def next_available_number(
        self,
        folder: str,
        base_name: str,
        target_directory: Path,
        exclude_id: Optional[int] = None,
    ) -> int:
        """
        Next number that is free in both the database and on disk.

        When every probe hits an existing file the last candidate is
        returned anyway; the caller's existence check and commit retry
        deal with a collision.
        """
        number = self.database_next_number(folder, base_name, exclude_id)
        for _ in range(self.max_probe_attempts):
            candidate = Path(target_directory) / self.namer.file_name(base_name, number)
            if not candidate.exists():
                return number
            logger.debug("Sequence slot taken on disk: %s", candidate)
            number += 1

        logger.warning(
            "No free slot for %s in %s after %d probes, using %d",
            base_name, folder, self.max_probe_attempts, number,
        )
        return number

    def numbered_file_name(self, base_name: str, number: int) -> str:
        return self.namer.file_name(base_name, number)

    @staticmethod
    def is_numbered(file_name: str, base_name: str) -> bool:
        return numbered_pattern(base_name).match(file_name) is not None
