"""
Core Module

Configuration and shared helpers.
"""

from .config import AppConfig, ConfigManager, LibrarySettings, get_config_manager

__all__ = ["AppConfig", "ConfigManager", "LibrarySettings", "get_config_manager"]
