"""
Runtime Module

Runtime paths and bootstrap for AudioSort.
"""

from .runtime_config import RuntimeConfig, RuntimePaths, get_runtime_config

__all__ = ["RuntimeConfig", "RuntimePaths", "get_runtime_config"]
