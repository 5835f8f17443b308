"""erldash: a terminal dashboard for a remote Erlang runtime."""
from __future__ import annotations

from .version import __version__, get_version

__all__ = ["__version__", "get_version"]
