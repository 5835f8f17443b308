"""Rich-based terminal dashboard.

Thin presentation adapter over ``erldash.summary.state``: it drains the
snapshot queue (live) or follows a replay cursor (replay) and redraws a
header, the metric tree with window averages and trends, and a help line.
Ctrl-C is the user quit and propagates as ``KeyboardInterrupt``.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from erldash.bus.snapshot_queue import SnapshotQueue
from erldash.domain.models import Counter, Gauge, MetricValue, Utilization
from erldash.storage.replay_store import ReplayStore
from erldash.summary.state import DashboardState, MetricRow, ReplayCursor
from erldash.utils.output import fmt_bytes, fmt_number, sparkline

logger = logging.getLogger(__name__)

PALETTE = ("magenta", "yellow", "cyan", "green", "blue", "red", "bright_green")


def format_value(name: str, value: MetricValue | None) -> str:
    if value is None:
        return "-"
    if isinstance(value, Gauge):
        return _fmt_quantity(name, value.value)
    if isinstance(value, Counter):
        if value.rate_per_sec is None:
            return "-"
        return f"{_fmt_quantity(name, value.rate_per_sec)}/s"
    return f"{value.percent:.1f} %"


def format_average(row: MetricRow) -> str:
    """Format a window average in the unit of the row's metric kind."""
    if row.average is None:
        return "-"
    if isinstance(row.value, Utilization):
        return f"{row.average:.1f} %"
    text = _fmt_quantity(row.name, row.average)
    return f"{text}/s" if isinstance(row.value, Counter) else text


def _fmt_quantity(name: str, value: float) -> str:
    if name.endswith("_bytes"):
        return fmt_bytes(value)
    return fmt_number(round(value, 2))


def metrics_table(rows: list[MetricRow], window_seconds: float, *, trend_width: int = 24) -> Table:
    table = Table(box=None, expand=True)
    table.add_column("Metric", style="bold", no_wrap=True)
    table.add_column("Value", justify="right")
    table.add_column(f"Avg {window_seconds:g}s", justify="right")
    table.add_column("Trend", no_wrap=True)
    color_idx = -1
    for row in rows:
        if row.is_root:
            color_idx += 1
        color = PALETTE[color_idx % len(PALETTE)]
        label = row.name if row.is_root else f"  └ {row.name.rsplit('.', 1)[-1]}"
        table.add_row(
            Text(label, style=color if row.is_root else "dim"),
            format_value(row.name, row.value),
            format_average(row),
            Text(sparkline(row.trend, trend_width), style=color),
        )
    return table


def render_dashboard(state: DashboardState, title: str, subtitle: str, help_text: str) -> Group:
    header = Panel(Text(subtitle, style="bold cyan"), title=title, title_align="left")
    rows = state.rows()
    body: Panel
    if rows:
        body = Panel(metrics_table(rows, state.aggregator.window_seconds), title="Metrics")
    else:
        body = Panel(Text("Waiting for the first snapshot...", style="dim"), title="Metrics")
    return Group(header, body, Text(help_text, style="dim"))


class DashboardApp:
    """Live session: drain the queue with a short timeout and redraw."""

    def __init__(self, queue: SnapshotQueue, state: DashboardState, *,
                 target: str, remote_version: Callable[[], str | None],
                 refresh_hz: int = 10, console: Console | None = None):
        self.queue = queue
        self.state = state
        self.target = target
        self._remote_version = remote_version
        self.refresh_interval = 1.0 / max(1, refresh_hz)
        self.console = console or Console()

    def drain(self, timeout: float) -> int:
        """Feed every queued snapshot into the state; raises QueueDisconnected."""
        batch = self.queue.poll(timeout=timeout)
        for snapshot in batch:
            self.state.feed(snapshot)
        return len(batch)

    def render(self) -> Group:
        version = self._remote_version() or "connecting..."
        subtitle = f"{self.target}  |  {version}  |  snapshots={self.state.snapshots_seen}"
        if self.queue.dropped:
            subtitle += f"  dropped={self.queue.dropped}"
        return render_dashboard(self.state, "erldash", subtitle, "Quit: Ctrl-C")

    def run(self) -> None:
        logger.debug("Dashboard started target=%s refresh=%.2fs", self.target, self.refresh_interval)
        with Live(self.render(), console=self.console, auto_refresh=False, screen=False) as live:
            while True:
                self.drain(self.refresh_interval)
                live.update(self.render(), refresh=True)


class ReplayApp:
    """Replay session: advance the cursor in real time x ``speed``."""

    def __init__(self, store: ReplayStore, cursor: ReplayCursor, *,
                 history_len: int = 300, speed: float = 1.0, refresh_hz: int = 10,
                 console: Console | None = None, clock: Callable[[], float] = time.monotonic):
        self.store = store
        self.cursor = cursor
        self.history_len = history_len
        self.speed = speed
        self.refresh_interval = 1.0 / max(1, refresh_hz)
        self.console = console or Console()
        self._clock = clock

    def current_state(self) -> DashboardState:
        visible = self.cursor.visible()
        return DashboardState.from_snapshots(
            visible, self.cursor.display_window, self.history_len,
            origin=visible[0].monotonic_timestamp if visible else None,
        )

    def render(self) -> Group:
        started = datetime.fromtimestamp(self.store.start_wall_time).strftime("%Y-%m-%d %H:%M:%S")
        subtitle = (
            f"{self.store.path or 'replay'}  |  {self.store.remote_version}  |  recorded {started}  |  "
            f"t={self.cursor.position:.1f}s / {self.store.last_elapsed():.1f}s"
        )
        return render_dashboard(self.current_state(), "erldash replay", subtitle, "Quit: Ctrl-C")

    def run(self) -> None:
        last = self._clock()
        with Live(self.render(), console=self.console, auto_refresh=False, screen=False) as live:
            while True:
                time.sleep(self.refresh_interval)
                now = self._clock()
                if not self.cursor.at_end:
                    self.cursor.step((now - last) * self.speed)
                last = now
                live.update(self.render(), refresh=True)


__all__ = ["DashboardApp", "ReplayApp", "format_average", "format_value", "metrics_table", "render_dashboard"]
