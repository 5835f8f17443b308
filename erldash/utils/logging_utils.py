"""Unified logging utilities for erldash."""
from __future__ import annotations

import logging
from pathlib import Path

DEFAULT_FORMAT = '%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s'

def setup_logging(level: str = 'INFO', log_file: str | Path | None = None, *,
                  truncate: bool = False, fmt: str = DEFAULT_FORMAT) -> logging.Logger:
    """Configure root logging.

    The terminal is owned by the dashboard, so there is no console handler.
    With a log file every record goes there (appending unless ``truncate``);
    without one the root logger only gets a NullHandler.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(log_level)
    # Remove existing handlers to avoid duplication on re-init
    for h in root.handlers[:]:
        root.removeHandler(h)
        h.close()

    if log_file is None:
        root.addHandler(logging.NullHandler())
        return root

    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, mode='w' if truncate else 'a', encoding='utf-8')
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(fmt))
    root.addHandler(handler)
    logging.getLogger(__name__).debug("logging initialised level=%s file=%s", level, path)
    return root

__all__ = ["setup_logging", "DEFAULT_FORMAT"]
