"""
Atomic Reorganizer

Moves a file into its taxonomy-derived location. Work is split into a
pure planning step (``OrganizePlanner`` -> ``OrganizePlan``) and an
executor (``Reorganizer``) that walks a small state machine:

    RESOLVE_CATEGORY -> DERIVE_NAME -> DETECT_CONFLICTS
        -> PATCH_METADATA                                   (no move)
        -> RESOLVE_NUMBERING -> STAGE_MOVE -> COMMIT_DATABASE -> SYNC_METADATA
    -> COMMITTED | FAILED

After FAILED the file, its row and its tags are at their previous values.
"""

from __future__ import annotations

import logging
import os
import secrets
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from audiosort.application.batch_processor import MetadataSynchronizer
from audiosort.application.naming_manager import (
    ConflictSequencer,
    RenameLedger,
    RenameStep,
    StepPhase,
    TaxonomyNamer,
)
from audiosort.core.utils import is_within, natural_sort_key
from audiosort.domain.exceptions import (
    CategoryNotAssignedError,
    LibraryPathError,
    ReorganizeError,
    RollbackError,
)
from audiosort.domain.models import UNSET, FileRecord, MetadataUpdate, is_set
from audiosort.infrastructure.database import LibraryRepository

logger = logging.getLogger(__name__)

RenameFn = Callable[[str, str], None]


class OrganizeState(Enum):
    """States of one organize request."""
    RESOLVE_CATEGORY = "resolve_category"
    DERIVE_NAME = "derive_name"
    DETECT_CONFLICTS = "detect_conflicts"
    PATCH_METADATA = "patch_metadata"
    RESOLVE_NUMBERING = "resolve_numbering"
    STAGE_MOVE = "stage_move"
    COMMIT_DATABASE = "commit_database"
    SYNC_METADATA = "sync_metadata"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass(frozen=True)
class OrganizePlan:
    """Everything the executor needs, computed before touching the disk."""

    file_id: int
    source_path: str
    folder: str
    target_directory: str
    base_name: str
    target_file_name: str
    custom_name: Optional[str]
    require_numbering: bool
    needs_move: bool
    conflicts: Tuple[FileRecord, ...] = ()

    @property
    def target_path(self) -> str:
        return os.path.join(self.target_directory, self.target_file_name)

    @property
    def target_relative_path(self) -> str:
        return f"{self.folder}/{self.target_file_name}" if self.folder else self.target_file_name

    @property
    def needs_renumber(self) -> bool:
        """
        True when a moving, numbered file shares its base with records in
        the target folder that are not numbered yet. The whole conflict set
        is then renumbered 1..N.
        """
        if not (self.needs_move and self.require_numbering and self.conflicts):
            return False
        return any(not ConflictSequencer.is_numbered(r.file_name, self.base_name) for r in self.conflicts)

    def with_target(self, file_name: str) -> "OrganizePlan":
        return replace(self, target_file_name=file_name)


@dataclass(frozen=True)
class PathConflict:
    """The target path was already taken, on disk or in the database."""

    file_id: int
    attempted_path: str
    reason: str


@dataclass
class OrganizeResult:
    """Either the committed record or the conflict that stopped the move."""

    record: Optional[FileRecord] = None
    error: Optional[PathConflict] = None
    states: List[OrganizeState] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.record is not None and self.error is None

    def unwrap(self) -> FileRecord:
        if self.record is None:
            reason = self.error.reason if self.error else "no result"
            file_id = self.error.file_id if self.error else -1
            raise ReorganizeError(file_id, reason)
        return self.record


def resolve_custom_name(requested, existing: Optional[str]) -> Optional[str]:
    """
    Omitted (``UNSET``) keeps the existing name, blank or ``None`` clears it.
    """
    if not is_set(requested):
        return existing or None
    if requested is None:
        return None
    text = str(requested).strip()
    return text or None


def _same_path(a: str, b: str) -> bool:
    return os.path.normcase(os.path.abspath(a)) == os.path.normcase(os.path.abspath(b))


class OrganizePlanner:
    """Derives an ``OrganizePlan``; reads the database and probes the disk, never writes."""

    def __init__(
        self,
        repository: LibraryRepository,
        sequencer: ConflictSequencer,
        namer: Optional[TaxonomyNamer] = None,
    ):
        self.repository = repository
        self.sequencer = sequencer
        self.namer = namer or sequencer.namer

    def plan(self, record: FileRecord, library_root: Path, custom_name=UNSET) -> OrganizePlan:
        # RESOLVE_CATEGORY
        category_id = record.primary_category
        if not category_id:
            raise CategoryNotAssignedError(record.id)
        category = self.repository.get_category_by_id(category_id)
        if category is None:
            raise CategoryNotAssignedError(record.id, category_id)

        # DERIVE_NAME
        effective_name = resolve_custom_name(custom_name, record.custom_name)
        folder = self.namer.folder_path(category)
        base = self.namer.base_name(category, effective_name)
        target_directory = Path(library_root) / folder
        if not is_within(Path(library_root), target_directory):
            raise LibraryPathError(target_directory, library_root)

        # DETECT_CONFLICTS
        conflicts = self.sequencer.list_conflicts(folder, base, exclude_id=record.id)
        has_name_component = bool(effective_name and self.namer.sanitize_custom_name(effective_name))
        require_numbering = not has_name_component or bool(conflicts)
        changes_folder = record.folder != folder

        if require_numbering:
            if not changes_folder and self.sequencer.is_numbered(record.file_name, base):
                target_name = record.file_name
            else:
                number = self.sequencer.next_available_number(folder, base, target_directory)
                target_name = self.sequencer.numbered_file_name(base, number)
        else:
            target_name = self.namer.file_name(base)

        needs_move = changes_folder or record.file_name != target_name

        if needs_move:
            target_path = target_directory / target_name
            if target_path.exists() and not _same_path(str(target_path), record.absolute_path):
                number = self.sequencer.next_available_number(folder, base, target_directory)
                target_name = self.sequencer.numbered_file_name(base, number)

        return OrganizePlan(
            file_id=record.id,
            source_path=record.absolute_path,
            folder=folder,
            target_directory=str(target_directory),
            base_name=base,
            target_file_name=target_name,
            custom_name=effective_name,
            require_numbering=require_numbering,
            needs_move=needs_move,
            conflicts=tuple(conflicts),
        )


@dataclass
class _RenumberEntry:
    record: FileRecord
    final_name: str
    final_path: str
    relative_path: str
    temp_path: str


class Reorganizer:
    """
    Executes organize plans and single-file relocations.

    Args:
        repository: Database access.
        sequencer: Numbering for retries and renumbering.
        synchronizer: Embedded metadata writer.
        rename: Filesystem rename, ``os.rename`` unless a test injects one.
    """

    MAX_COMMIT_ATTEMPTS = 2  # first try + one retry

    def __init__(
        self,
        repository: LibraryRepository,
        sequencer: ConflictSequencer,
        synchronizer: MetadataSynchronizer,
        rename: RenameFn = os.rename,
    ):
        self.repository = repository
        self.sequencer = sequencer
        self.synchronizer = synchronizer
        self._rename = rename

    # ------------------------------------------------------------------
    # Organize
    # ------------------------------------------------------------------

    def execute(
        self,
        plan: OrganizePlan,
        record: FileRecord,
        update: Optional[MetadataUpdate] = None,
    ) -> OrganizeResult:
        states = [OrganizeState.RESOLVE_CATEGORY, OrganizeState.DERIVE_NAME, OrganizeState.DETECT_CONFLICTS]
        metadata_update = replace(update or MetadataUpdate(), custom_name=plan.custom_name)

        if not plan.needs_move:
            states.append(OrganizeState.PATCH_METADATA)
            updated = self._apply_parent(self._apply_custom_name(record, plan.custom_name), metadata_update)
            self.synchronizer.merge_and_write(updated.absolute_path, updated, metadata_update)
            states.append(OrganizeState.COMMITTED)
            logger.debug("File %s already in place at %s", record.id, record.relative_path)
            return OrganizeResult(record=updated, states=states)

        states.append(OrganizeState.RESOLVE_NUMBERING)
        if plan.needs_renumber:
            try:
                self.renumber(list(plan.conflicts), plan.folder, plan.base_name, Path(plan.target_directory))
            except (OSError, SQLAlchemyError, RollbackError) as e:
                states.append(OrganizeState.FAILED)
                logger.error("Renumbering for file %s failed: %s", record.id, e)
                raise ReorganizeError(record.id, f"renumbering conflicts failed: {e}") from e
            number = self.sequencer.next_available_number(
                plan.folder, plan.base_name, Path(plan.target_directory)
            )
            plan = plan.with_target(self.sequencer.numbered_file_name(plan.base_name, number))

        states.extend([OrganizeState.STAGE_MOVE, OrganizeState.COMMIT_DATABASE])
        result = self._commit_move(record, plan)
        if not result.ok:
            states.append(OrganizeState.FAILED)
            result.states = states
            return result

        states.append(OrganizeState.SYNC_METADATA)
        moved = self._apply_parent(self._apply_custom_name(result.record, plan.custom_name), metadata_update)
        self.synchronizer.merge_and_write(moved.absolute_path, moved, metadata_update)
        self.repository.record_operation(moved.id, "organize", record.absolute_path, moved.absolute_path)

        states.append(OrganizeState.COMMITTED)
        logger.info("Organized file %s: %s -> %s", record.id, record.relative_path, moved.relative_path)
        return OrganizeResult(record=moved, states=states)

    def _apply_custom_name(self, record: FileRecord, custom_name: Optional[str]) -> FileRecord:
        if (record.custom_name or None) == custom_name:
            return record
        return self.repository.update_custom_name(record.id, custom_name)

    def _apply_parent(self, record: FileRecord, update: MetadataUpdate) -> FileRecord:
        """Parent overrides reach the row only once the move is committed."""
        if not is_set(update.parent_file_id) or update.parent_file_id == record.parent_file_id:
            return record
        return self.repository.update_parent(record.id, update.parent_file_id)

    def _commit_move(self, record: FileRecord, plan: OrganizePlan) -> OrganizeResult:
        """Move then commit, retrying once with a fresh number on a path conflict."""
        conflict: Optional[PathConflict] = None
        for attempt in range(1, self.MAX_COMMIT_ATTEMPTS + 1):
            outcome = self._try_relocate(record, plan.target_directory, plan.target_file_name, plan.target_relative_path)
            if isinstance(outcome, FileRecord):
                return OrganizeResult(record=outcome)

            conflict = outcome
            logger.warning(
                "Path conflict for file %s (attempt %d/%d): %s at %s",
                record.id, attempt, self.MAX_COMMIT_ATTEMPTS, outcome.reason, outcome.attempted_path,
            )
            number = self.sequencer.next_available_number(
                plan.folder, plan.base_name, Path(plan.target_directory)
            )
            plan = plan.with_target(self.sequencer.numbered_file_name(plan.base_name, number))

        return OrganizeResult(error=conflict)

    def _try_relocate(
        self,
        record: FileRecord,
        target_directory: str,
        file_name: str,
        relative_path: str,
    ) -> Union[FileRecord, PathConflict]:
        """
        One move-and-commit attempt.

        Returns the updated record, or a ``PathConflict`` with the file back
        at its source when the target was taken.
        """
        source = record.absolute_path
        target = os.path.join(target_directory, file_name)

        Path(target_directory).mkdir(parents=True, exist_ok=True)
        if os.path.exists(target) and not _same_path(target, source):
            return PathConflict(record.id, target, "target exists on disk")

        self._rename(source, target)
        try:
            return self.repository.update_file_location(record.id, target, relative_path, file_name)
        except IntegrityError:
            self._move_back(record.id, target, source)
            return PathConflict(record.id, target, "path already recorded in database")
        except SQLAlchemyError as e:
            logger.error("Database update for file %s failed, moving it back: %s", record.id, e)
            self._move_back(record.id, target, source)
            raise ReorganizeError(record.id, f"database update for {target} failed: {e}") from e

    def _move_back(self, file_id: int, target: str, source: str) -> None:
        try:
            self._rename(target, source)
        except OSError as e:
            raise ReorganizeError(
                file_id, f"database rejected {target} and moving back to {source} failed: {e}"
            ) from e

    def relocate(
        self,
        record: FileRecord,
        target_directory: Path,
        file_name: str,
        library_root: Path,
        operation: str,
    ) -> FileRecord:
        """
        Move ``record`` to an explicit location (rename/move requests).

        Unlike organize, an occupied target is an error rather than a reason
        to renumber.
        """
        target_directory = Path(target_directory)
        relative = target_directory.joinpath(file_name).relative_to(library_root).as_posix()
        outcome = self._try_relocate(record, str(target_directory), file_name, relative)
        if isinstance(outcome, PathConflict):
            raise ReorganizeError(record.id, f"{outcome.reason}: {outcome.attempted_path}")
        self.repository.record_operation(record.id, operation, record.absolute_path, outcome.absolute_path)
        return outcome

    # ------------------------------------------------------------------
    # Batch renumbering
    # ------------------------------------------------------------------

    def renumber(
        self,
        conflicts: List[FileRecord],
        folder: str,
        base_name: str,
        target_directory: Path,
    ) -> List[FileRecord]:
        """
        Two-phase staged renumbering of ``conflicts`` to ``base_01..base_NN``.

        Phase 1 moves every file to a unique temporary name in the target
        directory, phase 2 moves each to its final name, then all rows are
        updated in one transaction. Any failure rolls the ledger back and
        re-raises.

        Raises:
            RollbackError: a staged file could be put back neither at its
                original nor at its final path.
        """
        fresh = [r for r in (self.repository.get_file_by_id(c.id) for c in conflicts) if r is not None]
        if not fresh:
            return []

        ordered = sorted(fresh, key=lambda r: natural_sort_key(r.file_name))
        stamp = int(time.time() * 1000)
        entries = []
        for index, rec in enumerate(ordered, start=1):
            final_name = self.sequencer.numbered_file_name(base_name, index)
            final_path = str(target_directory / final_name)
            entries.append(_RenumberEntry(
                record=rec,
                final_name=final_name,
                final_path=final_path,
                relative_path=f"{folder}/{final_name}" if folder else final_name,
                temp_path=f"{final_path}.{stamp}-{rec.id}-{secrets.token_hex(4)}.tmp",
            ))

        logger.info("Renumbering %d file(s) for %s in %s", len(entries), base_name, folder)
        target_directory.mkdir(parents=True, exist_ok=True)
        ledger = RenameLedger(self._rename)

        try:
            for entry in entries:
                ledger.apply(RenameStep(
                    entry.record.id, entry.record.absolute_path, entry.temp_path,
                    StepPhase.STAGE, entry.final_path,
                ))

            for entry in entries:
                if os.path.exists(entry.final_path):
                    raise FileExistsError(f"Renumber target already exists: {entry.final_path}")
                ledger.apply(RenameStep(
                    entry.record.id, entry.temp_path, entry.final_path,
                    StepPhase.FINALIZE, entry.final_path,
                ))

            updated = self.repository.relocate_many([
                (e.record.id, e.final_path, e.relative_path, e.final_name) for e in entries
            ])
        except (OSError, SQLAlchemyError) as e:
            logger.error("Batch renumber failed, rolling back %d step(s): %s", len(ledger), e)
            report = ledger.rollback()
            self._record_fallback_locations(report.placed_at_final, entries)
            if not report.complete:
                failure = report.failures[0]
                entry = next(x for x in entries if x.record.id == failure.record_id)
                raise RollbackError(failure.location, entry.record.absolute_path, entry.final_path) from e
            raise

        for entry in entries:
            if entry.record.absolute_path != entry.final_path:
                self.repository.record_operation(
                    entry.record.id, "renumber", entry.record.absolute_path, entry.final_path
                )
        return updated

    def _record_fallback_locations(self, record_ids: List[int], entries: List[_RenumberEntry]) -> None:
        """Point rows at the final path for files the rollback left there."""
        by_id = {entry.record.id: entry for entry in entries}
        for record_id in record_ids:
            entry = by_id[record_id]
            try:
                self.repository.update_file_location(
                    record_id, entry.final_path, entry.relative_path, entry.final_name
                )
            except SQLAlchemyError as e:
                logger.error(
                    "Could not record fallback location %s for file %s: %s",
                    entry.final_path, record_id, e,
                )
