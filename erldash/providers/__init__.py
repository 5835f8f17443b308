"""Runtime client contract, connection factory and the synthetic runtime."""
from __future__ import annotations

from .factory import connect, find_cookie, resolve_factory
from .interface import MSAccThread, RuntimeClient

__all__ = ["MSAccThread", "RuntimeClient", "connect", "find_cookie", "resolve_factory"]
