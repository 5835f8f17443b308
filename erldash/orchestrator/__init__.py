"""Poll scheduler and its supporting pieces."""
from __future__ import annotations

from .context import PollContext
from .flag_guard import RemoteFlagGuard
from .scheduler import PollScheduler, SchedulerState

__all__ = ["PollContext", "PollScheduler", "RemoteFlagGuard", "SchedulerState"]
