"""
Library Manager Module

音效库管理模块：扫描、身份识别、分类整理、导入与服务层。
"""

from .catalog import load_catalog, parse_catalog
from .checksum import ChecksumResolver
from .importer import ExternalImporter
from .library_service import LibraryService
from .reorganizer import (
    OrganizePlan,
    OrganizePlanner,
    OrganizeResult,
    OrganizeState,
    PathConflict,
    Reorganizer,
)
from .scanner import LibraryScanner, ScanProgress

__all__ = [
    # Service
    'LibraryService',
    # Identity and scanning
    'ChecksumResolver',
    'LibraryScanner',
    'ScanProgress',
    'ExternalImporter',
    # Catalog
    'load_catalog',
    'parse_catalog',
    # Reorganize
    'OrganizePlan',
    'OrganizePlanner',
    'OrganizeResult',
    'OrganizeState',
    'PathConflict',
    'Reorganizer',
]
