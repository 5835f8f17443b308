"""Snapshot collector.

Issues a fixed, ordered sequence of runtime client calls once per cycle and
maps the replies into named metric values. Calls are strictly sequential: the
microstate accounting reset must be the last call of the cycle so it cannot
perturb the counters read just before it.

Any failed call aborts the whole cycle with ``CollectError``; no partial
Snapshot is returned.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from erldash.domain.models import Counter, Gauge, MetricValue, Utilization
from erldash.domain.snapshot import Snapshot
from erldash.providers.interface import MSAccThread, RuntimeClient
from erldash.utils.exceptions import CollectError, InvariantViolation, RpcError

logger = logging.getLogger(__name__)

MSACC_FLAG = "microstate_accounting"

SYSTEM_INFO_KEYS: tuple[str, ...] = ("process_count", "port_count", "atom_count", "ets_count")
# statistics key -> metric name
STATISTICS_COUNTERS: tuple[tuple[str, str], ...] = (
    ("context_switches", "statistics.context_switches"),
    ("exact_reductions", "statistics.exact_reductions"),
    ("garbage_collection", "statistics.garbage_collection.count"),
    ("runtime", "statistics.runtime"),
    ("wall_clock", "statistics.wall_clock"),
)

RUN_QUEUE_ROOT = "statistics.run_queue_lengths.total"
IO_ROOT = "statistics.io.total_bytes"
MEMORY_ROOT = "memory.total_bytes"
MSACC_ROOT = "microstate_accounting.total"
MSACC_IDLE_STATE = "sleep"


class SnapshotCollector:
    """Produce exactly one Snapshot per ``collect()`` call."""

    def __init__(self, client: RuntimeClient, *,
                 clock: Callable[[], float] = time.monotonic,
                 wall_clock: Callable[[], float] = time.time):
        self.client = client
        self._clock = clock
        self._wall_clock = wall_clock

    def _call(self, label: str, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return fn(*args)
        except RpcError as e:
            raise CollectError(f"{label} failed: {e}") from e

    def collect(self) -> Snapshot:
        monotonic_ts = self._clock()
        wall_ts = self._wall_clock()
        items: dict[str, MetricValue] = {}
        c = self.client

        for key in SYSTEM_INFO_KEYS:
            items[f"system_info.{key}"] = Gauge(self._call(f"system_info({key})", c.get_system_info_u64, key))

        for key, name in STATISTICS_COUNTERS:
            items[name] = Counter(self._call(f"statistics({key})", c.get_statistics_first_u64, key))

        lengths = self._call("statistics(run_queue_lengths)", c.get_statistics_u64_list, "run_queue_lengths")
        items.update(run_queue_items(lengths))

        in_bytes, out_bytes = self._call("statistics(io)", c.get_statistics_io)
        items.update(io_items(in_bytes, out_bytes))

        memory = self._call("memory()", c.get_memory)
        items.update(memory_items(memory))

        threads = self._call("statistics(microstate_accounting)", c.get_microstate_accounting)
        items.update(msacc_items(threads))

        # Must stay last: resets the counters read above.
        self._call("system_flag(microstate_accounting, reset)", c.set_flag_bool, MSACC_FLAG, "reset")

        logger.debug("Collected %d metrics", len(items))
        return Snapshot(wall_clock_time=wall_ts, monotonic_timestamp=monotonic_ts, items=items)


def run_queue_items(lengths: Sequence[int]) -> dict[str, MetricValue]:
    items: dict[str, MetricValue] = {RUN_QUEUE_ROOT: Gauge(sum(lengths))}
    for i, length in enumerate(lengths):
        items[f"statistics.run_queue_lengths.{i}"] = Gauge(length, parent=RUN_QUEUE_ROOT)
    return items


def io_items(in_bytes: int, out_bytes: int) -> dict[str, MetricValue]:
    return {
        IO_ROOT: Counter(in_bytes + out_bytes),
        "statistics.io.input_bytes": Counter(in_bytes, parent=IO_ROOT),
        "statistics.io.output_bytes": Counter(out_bytes, parent=IO_ROOT),
    }


def memory_items(memory: Mapping[str, int]) -> dict[str, MetricValue]:
    if "total" not in memory:
        raise InvariantViolation(f"memory reply has no 'total' entry: {sorted(memory)}")
    items: dict[str, MetricValue] = {MEMORY_ROOT: Gauge(memory["total"])}
    for category, size in memory.items():
        if category == "total":
            continue
        items[f"memory.{category}_bytes"] = Gauge(size, parent=MEMORY_ROOT)
    return items


def _busy_share(busy: int, total: int) -> float:
    return 100.0 * busy / total if total else 0.0


def msacc_items(threads: Sequence[MSAccThread]) -> dict[str, MetricValue]:
    """Busy percentage overall and per thread type (busy = every state but sleep)."""
    per_type: dict[str, list[int]] = {}
    for thread in threads:
        total = sum(thread.counters.values())
        busy = total - thread.counters.get(MSACC_IDLE_STATE, 0)
        acc = per_type.setdefault(thread.thread_type, [0, 0])
        acc[0] += busy
        acc[1] += total
    all_busy = sum(busy for busy, _ in per_type.values())
    all_total = sum(total for _, total in per_type.values())
    items: dict[str, MetricValue] = {MSACC_ROOT: Utilization(_busy_share(all_busy, all_total))}
    for thread_type, (busy, total) in per_type.items():
        items[f"microstate_accounting.{thread_type}"] = Utilization(_busy_share(busy, total), parent=MSACC_ROOT)
    return items


__all__ = [
    "SnapshotCollector",
    "MSACC_FLAG",
    "SYSTEM_INFO_KEYS",
    "STATISTICS_COUNTERS",
    "run_queue_items",
    "io_items",
    "memory_items",
    "msacc_items",
]
