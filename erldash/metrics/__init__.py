"""Prometheus self-instrumentation of the metrics pipeline."""
from __future__ import annotations

from .pipeline import PipelineMetrics, get_pipeline_metrics

__all__ = ["PipelineMetrics", "get_pipeline_metrics"]
