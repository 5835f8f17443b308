"""Environment flag helpers.

Interprets environment variables as boolean feature flags using the canonical
truthy set {"1","true","yes","on"} (case-insensitive).

Usage:
    from erldash.utils.env_flags import is_truthy_env
    if is_truthy_env('ERLDASH_METRICS_ENABLED'):
        ...
"""
from __future__ import annotations

import os

TRUTHY_SET: set[str] = {"1","true","yes","on"}

def is_truthy(value: str | None) -> bool:
    if not value:
        return False
    return value.strip().lower() in TRUTHY_SET

def is_truthy_env(name: str, default: str | None = None) -> bool:
    return is_truthy(os.getenv(name, default or ''))

def env_str(name: str, default: str | None = None) -> str | None:
    """Return a stripped env value, treating blank values as unset."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()

__all__ = [
    'TRUTHY_SET',
    'is_truthy',
    'is_truthy_env',
    'env_str',
]
