"""Per-cycle snapshot collection."""
from __future__ import annotations

from .snapshot_collector import SnapshotCollector

__all__ = ["SnapshotCollector"]
