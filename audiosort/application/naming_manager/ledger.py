"""
Rename Ledger

暂存重命名的操作账本：按顺序记录每一步已完成的重命名，失败时倒序撤销。
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

RenameFn = Callable[[str, str], None]


class StepPhase(Enum):
    """Which phase produced a step."""
    STAGE = "stage"      # original -> temporary
    FINALIZE = "final"   # temporary -> final


@dataclass(frozen=True)
class RenameStep:
    """一次已完成的重命名"""

    record_id: int
    source: str
    target: str
    phase: StepPhase
    final_path: str  # fallback destination when the undo fails


@dataclass
class RollbackFailure:
    record_id: int
    location: str
    error: str


@dataclass
class RollbackReport:
    restored: List[int] = field(default_factory=list)
    placed_at_final: List[int] = field(default_factory=list)
    failures: List[RollbackFailure] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failures


class RenameLedger:
    """
    重命名账本

    功能：
    - 记录每一步完成的重命名
    - 倒序撤销
    - 撤销失败时把文件放到目标位置，而不是丢失它
    """

    def __init__(self, rename: RenameFn = os.rename):
        self._rename = rename
        self._steps: List[RenameStep] = []

    def apply(self, step: RenameStep) -> None:
        """Perform ``step`` and record it once the rename has succeeded."""
        self._rename(step.source, step.target)
        self._steps.append(step)

    @property
    def steps(self) -> List[RenameStep]:
        return self._steps.copy()

    def __len__(self) -> int:
        return len(self._steps)

    def rollback(self) -> RollbackReport:
        """
        Undo every recorded step, newest first.

        An undone FINALIZE step moves the file back to its temporary name;
        an undone STAGE step moves it back to its original name. If a
        STAGE undo fails the file is moved to its final name instead.
        """
        report = RollbackReport()
        location: Dict[int, str] = {}
        for step in self._steps:
            location[step.record_id] = step.target

        for step in reversed(self._steps):
            current = location[step.record_id]
            if current != step.target:
                # An earlier undo failed and left the file elsewhere
                continue

            try:
                self._rename(step.target, step.source)
                location[step.record_id] = step.source
                if step.phase is StepPhase.STAGE:
                    report.restored.append(step.record_id)
                continue
            except OSError as e:
                logger.error("Rollback of %s -> %s failed: %s", step.target, step.source, e)
                undo_error = e

            if step.phase is StepPhase.FINALIZE:
                # Already sits at its final name, a known location
                report.placed_at_final.append(step.record_id)
                continue

            if current == step.final_path:
                report.failures.append(RollbackFailure(step.record_id, current, str(undo_error)))
                continue

            try:
                if os.path.exists(step.final_path):
                    raise FileExistsError(step.final_path)
                self._rename(current, step.final_path)
                location[step.record_id] = step.final_path
                report.placed_at_final.append(step.record_id)
                logger.warning("Placed %s at final path %s during rollback", current, step.final_path)
            except OSError as e:
                logger.error("Recovery of %s failed, file left at %s: %s", step.record_id, current, e)
                report.failures.append(RollbackFailure(step.record_id, current, str(e)))

        self._steps.clear()
        return report
