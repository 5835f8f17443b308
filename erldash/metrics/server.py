"""Metrics server bootstrap.

Starts the Prometheus HTTP endpoint for the pipeline registry. Idempotent per
process: a second call with the same host/port reuses the running server.
"""
from __future__ import annotations

import logging

from prometheus_client import start_http_server  # type: ignore

from .pipeline import PipelineMetrics, get_pipeline_metrics

logger = logging.getLogger(__name__)

_STARTED: tuple[str, int] | None = None


def start_metrics_server(port: int = 9109, host: str = "127.0.0.1",
                         metrics: PipelineMetrics | None = None) -> PipelineMetrics:
    global _STARTED  # noqa: PLW0603
    metrics = metrics or get_pipeline_metrics()
    if _STARTED is not None:
        if _STARTED != (host, port):
            logger.warning(
                "start_metrics_server called again with different host/port (%s:%s) != (%s:%s); reusing existing server",
                host, port, *_STARTED,
            )
        return metrics
    start_http_server(port, addr=host, registry=metrics.registry)
    _STARTED = (host, port)
    logger.info("Metrics available at http://%s:%s/metrics", host, port)
    return metrics


__all__ = ["start_metrics_server"]
