"""
Bootstrap Module

Prepares the runtime before the services start: data directories,
console logging and the rotating log file.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


class BootstrapError(Exception):
    """Exception raised during bootstrap process."""
    pass


class RuntimeBootstrap:
    """
    Handles the bootstrap process.

    This class is responsible for:
    - Python version check
    - Data directory creation
    - Logging initialization
    """

    def __init__(self):
        self._initialized = False
        self._warnings: list[str] = []

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def warnings(self) -> list[str]:
        return self._warnings.copy()

    def bootstrap(self, level: Optional[str] = None) -> bool:
        """
        Perform the bootstrap process.

        Args:
            level: Console log level name, overrides ``logging.level``.

        Returns:
            bool: True if bootstrap was successful.

        Raises:
            BootstrapError: If the interpreter is too old or the data
                directories cannot be created.
        """
        if self._initialized:
            logger.debug("Bootstrap already completed")
            return True

        from .runtime_config import get_runtime_config

        config = get_runtime_config()
        if sys.version_info[:2] < config.min_python_version:
            raise BootstrapError(
                "Python %d.%d+ required, running %d.%d"
                % (*config.min_python_version, *sys.version_info[:2])
            )

        try:
            config.paths.ensure()
        except OSError as e:
            raise BootstrapError(f"Cannot create data directories: {e}") from e

        self._initialize_logging(level)
        self._initialized = True
        logger.info("Bootstrap completed, data dir: %s", config.paths.data_dir)
        return True

    def _initialize_logging(self, level: Optional[str]) -> None:
        """Initialize application logging."""
        from audiosort.core.config import AppConfig
        from .runtime_config import get_runtime_config

        level_name = str(level or AppConfig.get("logging.level", "INFO") or "INFO").upper()
        logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)

        if not AppConfig.get("logging.file_enabled", True):
            return

        logs_dir = get_runtime_config().paths.logs_dir
        logs_dir.mkdir(parents=True, exist_ok=True)
        log_file = logs_dir / "audiosort.log"

        try:
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,  # 10 MB
                backupCount=5,
                encoding="utf-8"
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            logging.getLogger().addHandler(file_handler)
            logger.debug(f"Log file: {log_file}")
        except OSError as e:
            self._warnings.append(f"Could not set up file logging: {e}")


# Global bootstrap instance
_bootstrap: Optional[RuntimeBootstrap] = None


def get_bootstrap() -> RuntimeBootstrap:
    global _bootstrap
    if _bootstrap is None:
        _bootstrap = RuntimeBootstrap()
    return _bootstrap


def bootstrap(level: Optional[str] = None) -> bool:
    """
    Perform the runtime bootstrap.

    Call this at the very start of the application, before the services
    are created.
    """
    return get_bootstrap().bootstrap(level)
