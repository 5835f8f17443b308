"""Pipeline metrics registry.

All collectors live on a private ``CollectorRegistry`` so tests can build
isolated instances and repeated construction never trips the duplicate
timeseries check of the default registry.
"""
from __future__ import annotations

import threading

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram  # type: ignore

STATE_CODES: dict[str, int] = {"connecting": 0, "polling": 1, "terminated": 2}


class PipelineMetrics:
    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or CollectorRegistry()
        self.poll_cycles = Counter(
            'erldash_poll_cycles_total', 'Poll cycles that produced a snapshot',
            registry=self.registry,
        )
        self.poll_cycle_failures = Counter(
            'erldash_poll_cycle_failures_total', 'Poll cycles aborted by an error',
            ['error'], registry=self.registry,
        )
        self.poll_cycle_seconds = Histogram(
            'erldash_poll_cycle_seconds', 'Duration of collect + rate computation',
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
            registry=self.registry,
        )
        self.queue_dropped = Counter(
            'erldash_queue_dropped_total', 'Snapshots dropped because the consumer lagged',
            registry=self.registry,
        )
        self.queue_depth = Gauge(
            'erldash_queue_depth', 'Snapshots waiting in the hand-off queue',
            registry=self.registry,
        )
        self.replay_entries_written = Counter(
            'erldash_replay_entries_written_total', 'Snapshots appended to the replay file',
            registry=self.registry,
        )
        self.scheduler_state = Gauge(
            'erldash_scheduler_state', 'Poll scheduler state (0=connecting,1=polling,2=terminated)',
            registry=self.registry,
        )

    def set_state(self, state: str) -> None:
        self.scheduler_state.set(STATE_CODES[state])


_singleton: PipelineMetrics | None = None
_lock = threading.Lock()


def get_pipeline_metrics(reset: bool = False) -> PipelineMetrics:
    """Return the process-wide PipelineMetrics instance."""
    global _singleton
    with _lock:
        if _singleton is None or reset:
            _singleton = PipelineMetrics()
        return _singleton


__all__ = ["PipelineMetrics", "STATE_CODES", "get_pipeline_metrics"]
