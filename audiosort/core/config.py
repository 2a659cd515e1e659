"""
Configuration Management Module

Provides configuration management with JSON storage for AudioSort.
Holds the library root, database location and organize behaviour.
"""

from __future__ import annotations

import json
import logging
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


# Default configuration values
DEFAULT_CONFIG = {
    # Library settings
    "library": {
        "root": "",
        "imports_folder": "_Imports",
        "supported_formats": ["wav", "wave"],
    },

    # Database settings
    "database": {
        "path": "",
        "sqlite_filename": "audiosort.db",
    },

    # Organize behaviour
    "organize": {
        "max_probe_attempts": 100,
    },

    # Logging
    "logging": {
        "level": "INFO",
        "file_enabled": True,
    },
}


@dataclass
class ConfigManager:
    """
    Manages application configuration with JSON storage.

    Features:
    - Load/save configuration from JSON files
    - Default value fallback
    - Dot-notation access
    """

    config_dir: Path
    config_file: str = "config.json"
    _config: dict = field(default_factory=dict)
    _defaults: dict = field(default_factory=lambda: deepcopy(DEFAULT_CONFIG))
    _loaded: bool = False

    def __post_init__(self):
        self.config_dir = Path(self.config_dir)
        self._config = deepcopy(self._defaults)

    @property
    def config_path(self) -> Path:
        """Get the full path to the configuration file."""
        return self.config_dir / self.config_file

    def load(self) -> bool:
        """
        Load configuration from file.

        Returns:
            bool: True if loaded successfully, False otherwise.
        """
        try:
            if self.config_path.exists():
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    loaded = json.load(f)

                # Merge with defaults (loaded values override defaults)
                self._config = self._merge_config(self._defaults, loaded)
                logger.info(f"Configuration loaded from {self.config_path}")
            else:
                self._config = deepcopy(self._defaults)
                self.save()
                logger.info("Using default configuration")

            self._loaded = True
            return True

        except json.JSONDecodeError as e:
            logger.error(f"Invalid configuration file: {e}")
            self._config = deepcopy(self._defaults)
            self._loaded = True
            return False

        except OSError as e:
            logger.error(f"Failed to load configuration: {e}")
            self._config = deepcopy(self._defaults)
            self._loaded = True
            return False

    def save(self) -> bool:
        """
        Save configuration to file.

        Returns:
            bool: True if saved successfully.
        """
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(self._config, f, indent=2, ensure_ascii=False)
            logger.debug(f"Configuration saved to {self.config_path}")
            return True
        except PermissionError as e:
            logger.error(f"Permission denied saving configuration to {self.config_path}: {e}")
            return False
        except OSError as e:
            logger.error(f"Failed to save configuration to {self.config_path}: {e}", exc_info=True)
            return False

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key: Configuration key (e.g., "library.root")
            default: Default value if key not found

        Returns:
            The configuration value or default.
        """
        if not self._loaded:
            self.load()

        value = self._config
        try:
            for part in key.split('.'):
                value = value[part]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any, save: bool = True) -> None:
        """
        Set a configuration value using dot notation.

        Args:
            key: Configuration key (e.g., "library.root")
            value: Value to set
            save: Whether to save immediately
        """
        if not self._loaded:
            self.load()

        parts = key.split('.')
        config = self._config

        # Navigate to the parent
        for part in parts[:-1]:
            if part not in config:
                config[part] = {}
            config = config[part]

        config[parts[-1]] = value

        if save:
            self.save()

    def _merge_config(self, base: dict, override: dict) -> dict:
        """
        Deep merge two configuration dictionaries.

        Args:
            base: Base configuration
            override: Override values

        Returns:
            dict: Merged configuration
        """
        result = deepcopy(base)

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = deepcopy(value)

        return result


# Global configuration instance
_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """
    Get the global configuration manager.

    Returns:
        ConfigManager: The configuration manager instance.
    """
    global _config_manager

    if _config_manager is None:
        from audiosort.runtime.runtime_config import get_runtime_config

        runtime_config = get_runtime_config()
        _config_manager = ConfigManager(config_dir=runtime_config.paths.config_dir)
        _config_manager.load()

    return _config_manager


def reset_config_manager() -> None:
    """Drop the global configuration manager so the next access reloads it."""
    global _config_manager
    _config_manager = None


class AppConfig:
    """
    Convenience class for accessing configuration values.

    Usage:
        root = AppConfig.get("library.root")
        db_path = AppConfig.get("database.path")
    """

    @staticmethod
    def get(key: str, default: Any = None) -> Any:
        return get_config_manager().get(key, default)


class LibrarySettings:
    """
    Settings provider consumed by the library services.

    Reads the library root and organize options from a ``ConfigManager``;
    tests hand in their own manager to avoid touching the user profile.
    """

    def __init__(self, config: Optional[ConfigManager] = None):
        self._config = config

    @property
    def config(self) -> ConfigManager:
        return self._config or get_config_manager()

    def library_root(self) -> Optional[Path]:
        raw = str(self.config.get("library.root", "") or "").strip()
        return Path(raw).resolve() if raw else None

    def set_library_root(self, root: str | Path) -> None:
        self.config.set("library.root", str(Path(root).resolve()))

    @property
    def imports_folder(self) -> str:
        return str(self.config.get("library.imports_folder", "_Imports") or "_Imports")

    @property
    def supported_formats(self) -> set[str]:
        formats = self.config.get("library.supported_formats", ["wav", "wave"]) or ["wav"]
        return {f".{str(fmt).lower().lstrip('.')}" for fmt in formats}

    @property
    def max_probe_attempts(self) -> int:
        try:
            return max(1, int(self.config.get("organize.max_probe_attempts", 100)))
        except (TypeError, ValueError):
            return 100
