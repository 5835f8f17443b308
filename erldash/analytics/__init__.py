"""Derived analytics over snapshot streams (rates, windowed averages)."""
from __future__ import annotations

from .rates import apply_rates, counter_rate
from .window import AverageAccumulator, WindowedAggregator

__all__ = ["AverageAccumulator", "WindowedAggregator", "apply_rates", "counter_rate"]
