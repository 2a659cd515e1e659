"""
Database Connection Manager

One SQLite engine per library database. ``:memory:`` databases share a
single connection so every session sees the same tables.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base

logger = logging.getLogger(__name__)

MEMORY = ":memory:"
DEFAULT_DB_FILENAME = "audiosort.db"


class DatabaseManager:
    """
    SQLite engine and session factory.

    The unique index on ``audio_files.absolute_path`` is what the
    reorganizer relies on to detect concurrent claims on a path, so
    foreign keys and constraints stay on for every connection.
    """

    def __init__(self, db_path: str | Path = MEMORY):
        if str(db_path).strip() == MEMORY:
            self.db_path: Optional[Path] = None
            self.db_url = f"sqlite:///{MEMORY}"
        else:
            self.db_path = Path(db_path)
            self.db_url = f"sqlite:///{self.db_path}"

        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None
        self._initialized = False

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._create_engine()
        return self._engine

    def _create_engine(self) -> None:
        kwargs = {"connect_args": {"check_same_thread": False, "timeout": 30}}
        if self.db_path is None:
            kwargs["poolclass"] = StaticPool
        else:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            kwargs["pool_pre_ping"] = True

        self._engine = create_engine(self.db_url, **kwargs)
        on_disk = self.db_path is not None

        @event.listens_for(self._engine, "connect")
        def _configure(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            if on_disk:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        self._session_factory = sessionmaker(bind=self._engine, autoflush=False, expire_on_commit=False)
        logger.info("Database engine created: %s", self.db_path or MEMORY)

    def init_db(self) -> None:
        """Create missing tables; safe to call more than once."""
        if self._initialized:
            return
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        Base.metadata.create_all(self.engine)
        self._initialized = True
        logger.info("Database tables initialized")

    def get_session(self) -> Session:
        if self._session_factory is None:
            self._create_engine()
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Transactional scope: commits on success, rolls back and re-raises
        on any exception (``IntegrityError`` included).
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def close(self) -> None:
        if self._engine:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None
            self._initialized = False
            logger.info("Database connection closed")


def default_database_path() -> Path:
    """``database.path`` from the config, else ``database.sqlite_filename`` in the runtime database directory."""
    from audiosort.core.config import AppConfig
    from audiosort.runtime.runtime_config import get_runtime_config

    configured = str(AppConfig.get("database.path", "") or "").strip()
    if configured:
        return Path(configured).expanduser()
    filename = str(AppConfig.get("database.sqlite_filename", "") or "").strip() or DEFAULT_DB_FILENAME
    return get_runtime_config().paths.database_dir / filename


_db_manager: Optional[DatabaseManager] = None
_db_init_lock = threading.Lock()


def get_db_manager() -> DatabaseManager:
    """获取全局数据库管理器"""
    global _db_manager

    if _db_manager is None:
        with _db_init_lock:
            if _db_manager is None:
                _db_manager = DatabaseManager(default_database_path())
                _db_manager.init_db()

    return _db_manager
