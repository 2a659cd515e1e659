"""
SQLAlchemy Database Models

Defines the database models for audio files, taxonomy categories and the
file operation history.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class AudioFile(Base):
    """
    Represents an audio file in the library.

    ``file_path`` is unique; the uniqueness violation raised by SQLite is
    the signal the reorganizer uses to detect a concurrent writer.
    """
    __tablename__ = 'audio_files'

    # Primary key (AUTOINCREMENT so ids are never reused)
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # File information
    file_path: Mapped[str] = mapped_column(String(1024), unique=True, nullable=False)
    relative_path: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    filename: Mapped[str] = mapped_column(String(512), nullable=False, index=True)
    custom_name: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    content_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)

    # Audio properties
    duration_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    sample_rate: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    bit_depth: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Classification
    tags: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    categories: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    parent_file_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)

    # Timestamps
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    modified_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index('idx_audio_files_relative_path', 'relative_path'),
        {'sqlite_autoincrement': True},
    )

    def __repr__(self) -> str:
        return f"<AudioFile(id={self.id}, filename='{self.filename}')>"


class Category(Base):
    """
    Taxonomy catalog entry (UCS category/subcategory).
    """
    __tablename__ = 'categories'

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    category: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    sub_category: Mapped[str] = mapped_column(String(128), nullable=False)
    short_code: Mapped[str] = mapped_column(String(32), nullable=False)
    explanation: Mapped[str] = mapped_column(Text, nullable=False, default="")
    synonyms: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    def __repr__(self) -> str:
        return f"<Category(id='{self.id}', category='{self.category}', sub='{self.sub_category}')>"


class FileOperation(Base):
    """
    History of rename/move/organize operations.
    """
    __tablename__ = 'file_operations'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    audio_file_id: Mapped[int] = mapped_column(
        Integer, ForeignKey('audio_files.id', ondelete='CASCADE'), nullable=False, index=True
    )
    operation: Mapped[str] = mapped_column(String(32), nullable=False)  # rename/move/organize/renumber
    old_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    new_path: Mapped[str] = mapped_column(String(1024), nullable=False)

    # Timestamps
    performed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<FileOperation(id={self.id}, op='{self.operation}', new='{self.new_path}')>"
