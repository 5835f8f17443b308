"""Counter -> per-second rate conversion.

Pure functions over two Snapshots of the same session. A counter that went
backwards (reset or wrap) gets no rate rather than a negative one, and the
first Snapshot of a session has no rates at all.
"""
from __future__ import annotations

import logging

from erldash.domain.models import Counter, MetricValue
from erldash.domain.snapshot import Snapshot
from erldash.utils.exceptions import InvariantViolation

logger = logging.getLogger(__name__)


def counter_rate(prev_raw: int, new_raw: int, dt_seconds: float) -> float | None:
    if new_raw < prev_raw:
        return None
    return (new_raw - prev_raw) / dt_seconds


def apply_rates(new: Snapshot, prev: Snapshot | None) -> Snapshot:
    """Return ``new`` with ``rate_per_sec`` filled in on every Counter.

    Counters absent from ``prev`` (or of another kind there) keep ``None``.
    """
    updates: dict[str, MetricValue] = {}
    if prev is None:
        for name, value in new:
            if isinstance(value, Counter) and value.rate_per_sec is not None:
                updates[name] = value.with_rate(None)
        return new.with_items(updates) if updates else new

    dt = new.monotonic_timestamp - prev.monotonic_timestamp
    if dt <= 0:
        raise InvariantViolation(
            f"snapshots out of order: dt={dt:.6f}s "
            f"(prev={prev.monotonic_timestamp}, new={new.monotonic_timestamp})"
        )
    for name, value in new:
        if not isinstance(value, Counter):
            continue
        before = prev.get(name)
        rate = None
        if isinstance(before, Counter):
            rate = counter_rate(before.raw_value, value.raw_value, dt)
            if rate is None:
                logger.debug("Counter %s went backwards (%d -> %d); rate withheld",
                             name, before.raw_value, value.raw_value)
        if rate != value.rate_per_sec:
            updates[name] = value.with_rate(rate)
    return new.with_items(updates) if updates else new


__all__ = ["apply_rates", "counter_rate"]
