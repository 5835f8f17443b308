"""Durable record/replay of the snapshot stream."""
from __future__ import annotations

from .replay_store import ReplayEntry, ReplayHeader, ReplayRecorder, ReplayStore

__all__ = ["ReplayEntry", "ReplayHeader", "ReplayRecorder", "ReplayStore"]
