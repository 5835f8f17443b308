"""Consumer-side read model for the dashboard.

Defines the structures the presentation layer renders from, independent of any
terminal library: the latest Snapshot, window averages, a bounded per-metric
chart history and the replay cursor. Everything here is owned by the consumer
thread and needs no locking.
"""
from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field

from erldash.analytics.window import WindowedAggregator
from erldash.domain.models import MetricValue
from erldash.domain.snapshot import Snapshot
from erldash.storage.replay_store import ReplayStore

__all__ = [
    "ChartHistory",
    "DashboardState",
    "MetricRow",
    "ReplayCursor",
]


class ChartHistory:
    """Bounded trend points ``(elapsed, projected value)`` per metric name."""

    def __init__(self, maxlen: int = 300):
        if maxlen < 1:
            raise ValueError("maxlen must be >= 1")
        self.maxlen = maxlen
        self._series: dict[str, deque[tuple[float, float]]] = {}

    def append(self, elapsed: float, snapshot: Snapshot) -> None:
        for name, value in snapshot:
            projected = value.projection()
            if projected is None:
                continue
            series = self._series.get(name)
            if series is None:
                series = self._series[name] = deque(maxlen=self.maxlen)
            series.append((elapsed, projected))

    def points(self, name: str) -> list[tuple[float, float]]:
        return list(self._series.get(name, ()))

    def values(self, name: str) -> list[float]:
        return [v for _, v in self._series.get(name, ())]

    def clear(self) -> None:
        self._series.clear()


@dataclass(frozen=True, slots=True)
class MetricRow:
    name: str
    depth: int
    value: MetricValue
    average: float | None
    trend: list[float] = field(default_factory=list)

    @property
    def is_root(self) -> bool:
        return self.depth == 0


class DashboardState:
    def __init__(self, window_seconds: float = 60.0, history_len: int = 300, *,
                 require_full_window: bool = True):
        self.aggregator = WindowedAggregator(window_seconds, require_full_window=require_full_window)
        self.history = ChartHistory(history_len)
        self.latest: Snapshot | None = None
        self.origin: float | None = None
        self.snapshots_seen = 0

    @classmethod
    def from_snapshots(cls, snapshots: Iterable[Snapshot], window_seconds: float,
                       history_len: int = 300, *, origin: float | None = None) -> DashboardState:
        """Rebuild state from a recorded slice (replay); averages are not withheld."""
        state = cls(window_seconds, history_len, require_full_window=False)
        state.origin = origin
        for snapshot in snapshots:
            state.feed(snapshot)
        return state

    def feed(self, snapshot: Snapshot) -> None:
        if self.origin is None:
            self.origin = snapshot.monotonic_timestamp
        self.aggregator.push(snapshot)
        self.history.append(snapshot.monotonic_timestamp - self.origin, snapshot)
        self.latest = snapshot
        self.snapshots_seen += 1

    def average(self, name: str) -> float | None:
        return self.aggregator.average(name)

    def rows(self) -> list[MetricRow]:
        """Depth-first enumeration: each root followed by its children.

        Entries whose parent is not present in the Snapshot are listed as roots.
        """
        snapshot = self.latest
        if snapshot is None:
            return []
        out: list[MetricRow] = []
        for root in snapshot.roots():
            out.append(self._row(snapshot, root, 0))
            for child in snapshot.children(root):
                out.append(self._row(snapshot, child, 1))
        return out

    def _row(self, snapshot: Snapshot, name: str, depth: int) -> MetricRow:
        return MetricRow(
            name=name,
            depth=depth,
            value=snapshot.items[name],
            average=self.average(name),
            trend=self.history.values(name),
        )


class ReplayCursor:
    """Externally driven position inside a recorded session.

    ``visible()`` recomputes the displayed slice on every call:
    ``[cursor, cursor + display_window)`` intersected with the recorded data.
    """

    def __init__(self, store: ReplayStore, display_window: float = 60.0, start: float = 0.0):
        if display_window <= 0:
            raise ValueError("display_window must be > 0")
        self.store = store
        self.display_window = float(display_window)
        self.position = 0.0
        self.seek(start)

    def seek(self, t: float) -> float:
        self.position = min(max(0.0, float(t)), self.store.last_elapsed())
        return self.position

    def step(self, delta: float) -> float:
        return self.seek(self.position + delta)

    @property
    def at_end(self) -> bool:
        return self.position >= self.store.last_elapsed()

    def visible(self) -> list[Snapshot]:
        return self.store.range(self.position, self.position + self.display_window)
