"""Snapshot hand-off between the poll scheduler and the consumer."""
from __future__ import annotations

from .snapshot_queue import SnapshotQueue

__all__ = ["SnapshotQueue"]
