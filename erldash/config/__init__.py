"""Runtime configuration."""
from __future__ import annotations

from .runtime_config import RuntimeConfig, build_runtime_config, get_runtime_config

__all__ = ["RuntimeConfig", "build_runtime_config", "get_runtime_config"]
