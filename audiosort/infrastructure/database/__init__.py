"""
Database Infrastructure Module

SQLAlchemy models, connection management and the library repository.
"""

from .connection import DatabaseManager, default_database_path, get_db_manager
from .models import AudioFile, Base, Category, FileOperation
from .repository import FileUpsert, LibraryRepository

__all__ = [
    "Base",
    "AudioFile",
    "Category",
    "FileOperation",
    "DatabaseManager",
    "get_db_manager",
    "default_database_path",
    "FileUpsert",
    "LibraryRepository",
]
