"""
Naming Manager Module

分类命名模块：目标路径推导、冲突检测与序号分配、暂存重命名账本。
"""

from .ledger import RenameLedger, RenameStep, RollbackReport, StepPhase
from .sequencer import ConflictSequencer, conflict_pattern, numbered_pattern
from .taxonomy_namer import (
    TaxonomyNamer,
    base_name,
    folder_path,
    format_sequence,
    sanitize_custom_name,
)

__all__ = [
    # Namer
    'TaxonomyNamer',
    'base_name',
    'folder_path',
    'format_sequence',
    'sanitize_custom_name',
    # Sequencer
    'ConflictSequencer',
    'conflict_pattern',
    'numbered_pattern',
    # Ledger
    'RenameLedger',
    'RenameStep',
    'RollbackReport',
    'StepPhase',
]
