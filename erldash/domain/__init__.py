"""Metric model: value types and the per-cycle Snapshot."""
from __future__ import annotations

from .models import Counter, Gauge, MetricValue, Utilization, metric_from_dict
from .snapshot import Snapshot

__all__ = [
    "Counter",
    "Gauge",
    "MetricValue",
    "Snapshot",
    "Utilization",
    "metric_from_dict",
]
