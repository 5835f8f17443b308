"""Sliding time-window averages per metric name.

Each name keeps an ``AverageAccumulator`` (running sum + member count) that is
updated in O(1) when a Snapshot enters or leaves the window. Eviction always
subtracts the projection recorded when the Snapshot was inserted, never a
recomputed one, so ``running_sum`` equals the sum of the current members up to
the precision of repeated add/subtract.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field

from erldash.domain.snapshot import Snapshot
from erldash.utils.exceptions import InvariantViolation

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AverageAccumulator:
    running_sum: float = 0.0
    member_count: int = 0

    def insert(self, value: float) -> None:
        self.running_sum += value
        self.member_count += 1

    def evict(self, value: float) -> None:
        if self.member_count == 0:
            raise InvariantViolation("evict on an accumulator with no members")
        self.member_count -= 1
        if self.member_count == 0:
            # drop accumulated float error once the window is empty
            self.running_sum = 0.0
        else:
            self.running_sum -= value

    def average(self) -> float | None:
        if self.member_count == 0:
            return None
        return self.running_sum / self.member_count


@dataclass(slots=True)
class _WindowMember:
    snapshot: Snapshot
    projections: dict[str, float] = field(default_factory=dict)

    @property
    def timestamp(self) -> float:
        return self.snapshot.monotonic_timestamp


class WindowedAggregator:
    """Average of each metric's projected value over a trailing time window.

    A Snapshot stays in the window while ``newest_ts - its_ts < window_seconds``.
    With ``require_full_window`` (default) averages are withheld until the
    observed stream spans the whole window.
    """

    def __init__(self, window_seconds: float, *, require_full_window: bool = True):
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self.window_seconds = float(window_seconds)
        self.require_full_window = require_full_window
        self._accumulators: dict[str, AverageAccumulator] = {}
        self._members: deque[_WindowMember] = deque()
        self._first_ts: float | None = None
        self._newest_ts: float | None = None

    # ---------------- core operations ----------------
    def on_insert(self, snapshot: Snapshot) -> dict[str, float]:
        member = _WindowMember(snapshot)
        for name, value in snapshot:
            projected = value.projection()
            if projected is None:
                continue
            member.projections[name] = projected
            self._accumulators.setdefault(name, AverageAccumulator()).insert(projected)
        self._members.append(member)
        ts = snapshot.monotonic_timestamp
        if self._first_ts is None:
            self._first_ts = ts
        if self._newest_ts is None or ts > self._newest_ts:
            self._newest_ts = ts
        return member.projections

    def on_evict(self, snapshot: Snapshot) -> None:
        member = self._take_member(snapshot)
        for name, projected in member.projections.items():
            acc = self._accumulators.get(name)
            if acc is None:
                raise InvariantViolation(f"evict of {name!r} which was never counted")
            acc.evict(projected)

    def push(self, snapshot: Snapshot) -> list[Snapshot]:
        """Insert ``snapshot`` then evict everything that aged out; returns the evicted."""
        self.on_insert(snapshot)
        evicted: list[Snapshot] = []
        newest = self._newest_ts
        while self._members and newest is not None and newest - self._members[0].timestamp >= self.window_seconds:
            old = self._members[0].snapshot
            self.on_evict(old)
            evicted.append(old)
        if evicted:
            logger.debug("Evicted %d snapshot(s) from %.1fs window", len(evicted), self.window_seconds)
        return evicted

    def average(self, name: str) -> float | None:
        acc = self._accumulators.get(name)
        if acc is None or acc.member_count == 0:
            return None
        if self.require_full_window and not self.window_full:
            return None
        return acc.average()

    # ---------------- introspection ----------------
    @property
    def window_full(self) -> bool:
        if self._first_ts is None or self._newest_ts is None:
            return False
        return self._newest_ts - self._first_ts >= self.window_seconds

    def member_count(self, name: str) -> int:
        acc = self._accumulators.get(name)
        return acc.member_count if acc else 0

    def running_sum(self, name: str) -> float:
        acc = self._accumulators.get(name)
        return acc.running_sum if acc else 0.0

    def names(self) -> list[str]:
        return sorted(self._accumulators)

    def members(self) -> list[Snapshot]:
        return [m.snapshot for m in self._members]

    def __len__(self) -> int:
        return len(self._members)

    def reset(self) -> None:
        self._accumulators.clear()
        self._members.clear()
        self._first_ts = None
        self._newest_ts = None

    def _take_member(self, snapshot: Snapshot) -> _WindowMember:
        if self._members and self._members[0].snapshot is snapshot:
            return self._members.popleft()
        for i, member in enumerate(self._members):
            if member.snapshot is snapshot:
                del self._members[i]
                return member
        raise InvariantViolation(
            f"evict of a snapshot not in the window (ts={snapshot.monotonic_timestamp})"
        )


__all__ = ["AverageAccumulator", "WindowedAggregator"]
