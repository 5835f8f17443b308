"""Loop context carried by the poll scheduler between cycles.

Holds what used to be implicit global state: the previous Snapshot (needed by
the rate calculator) and the session start used to compute elapsed times.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field

from erldash.domain.snapshot import Snapshot


@dataclass(slots=True)
class PollContext:
    start_monotonic: float
    start_wall_time: float = field(default_factory=time.time)
    previous: Snapshot | None = None
    cycle_count: int = 0
    remote_version: str = ""

    def elapsed(self, snapshot: Snapshot) -> float:
        return snapshot.monotonic_timestamp - self.start_monotonic

__all__ = ["PollContext"]
