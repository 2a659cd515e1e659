"""
Runtime Configuration Module

Resolves the per-user data directories (configuration, logs, database).
The base directory is ``$AUDIOSORT_HOME`` when set, else ``~/.audiosort``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class RuntimePaths:
    """Container for all runtime-related paths."""

    # Application data paths
    data_dir: Path
    config_dir: Path
    logs_dir: Path
    database_dir: Path

    def ensure(self) -> None:
        """Create every directory that does not exist yet."""
        for path in (self.data_dir, self.config_dir, self.logs_dir, self.database_dir):
            path.mkdir(parents=True, exist_ok=True)


@dataclass
class RuntimeConfig:
    """Paths and environment for the running process."""

    paths: RuntimePaths
    min_python_version: tuple[int, int] = (3, 10)

    @classmethod
    def detect(cls, base_dir: Optional[Path] = None) -> "RuntimeConfig":
        if base_dir is None:
            env_home = (os.environ.get("AUDIOSORT_HOME") or "").strip()
            base_dir = Path(env_home) if env_home else Path.home() / ".audiosort"
        base_dir = Path(base_dir)
        return cls(
            paths=RuntimePaths(
                data_dir=base_dir,
                config_dir=base_dir / "config",
                logs_dir=base_dir / "logs",
                database_dir=base_dir / "database",
            )
        )


# Global runtime configuration
_runtime_config: Optional[RuntimeConfig] = None


def get_runtime_config() -> RuntimeConfig:
    """
    Get the global runtime configuration.

    Returns:
        RuntimeConfig: The runtime configuration instance.
    """
    global _runtime_config
    if _runtime_config is None:
        _runtime_config = RuntimeConfig.detect()
    return _runtime_config


def reset_runtime_config() -> None:
    """Forget the cached runtime configuration (used when AUDIOSORT_HOME changes)."""
    global _runtime_config
    _runtime_config = None
