"""Presentation read model (independent of any rendering)."""
from __future__ import annotations

from .state import ChartHistory, DashboardState, MetricRow, ReplayCursor

__all__ = ["ChartHistory", "DashboardState", "MetricRow", "ReplayCursor"]
