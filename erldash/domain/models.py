"""Metric value dataclasses.

A metric reading is one of three kinds:

* ``Gauge``       - an instantaneous quantity (process count, byte size)
* ``Counter``     - a monotonic cumulative counter; ``rate_per_sec`` is derived
                    from the previous Snapshot and stays ``None`` until one exists
* ``Utilization`` - a pre-normalised 0-100 percentage

Every kind may name a ``parent`` metric in the same Snapshot. Parents are
referenced by name only; no value ever holds another value.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from erldash.utils.exceptions import SerializationError


@dataclass(frozen=True, slots=True)
class Gauge:
    value: int
    parent: str | None = None

    kind = "gauge"

    def projection(self) -> float | None:
        return float(self.value)

    def as_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "value": self.value, "parent": self.parent}


@dataclass(frozen=True, slots=True)
class Counter:
    raw_value: int
    rate_per_sec: float | None = None
    parent: str | None = None

    kind = "counter"

    def projection(self) -> float | None:
        return self.rate_per_sec

    def with_rate(self, rate: float | None) -> Counter:
        return replace(self, rate_per_sec=rate)

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "raw_value": self.raw_value,
            "rate_per_sec": self.rate_per_sec,
            "parent": self.parent,
        }


@dataclass(frozen=True, slots=True)
class Utilization:
    percent: float
    parent: str | None = None

    kind = "utilization"

    def projection(self) -> float | None:
        return float(self.percent)

    def as_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "percent": self.percent, "parent": self.parent}


MetricValue = Gauge | Counter | Utilization


def metric_from_dict(data: dict[str, Any]) -> MetricValue:
    """Decode the tagged-union form produced by ``as_dict``."""
    try:
        kind = data["kind"]
        parent = data.get("parent")
        if kind == Gauge.kind:
            return Gauge(value=int(data["value"]), parent=parent)
        if kind == Counter.kind:
            rate = data.get("rate_per_sec")
            return Counter(
                raw_value=int(data["raw_value"]),
                rate_per_sec=None if rate is None else float(rate),
                parent=parent,
            )
        if kind == Utilization.kind:
            return Utilization(percent=float(data["percent"]), parent=parent)
    except (KeyError, TypeError, ValueError) as e:
        raise SerializationError(f"malformed metric value {data!r}: {e}") from e
    raise SerializationError(f"unknown metric kind {kind!r}")


__all__ = ["Gauge", "Counter", "Utilization", "MetricValue", "metric_from_dict"]
