r"""Poll scheduler.

A small state machine run on one background thread:

    CONNECTING -> POLLING -> TERMINATED
         \____________________/

``CONNECTING`` connects, reads the remote version and switches microstate
accounting on through a ``RemoteFlagGuard``; any failure there ends the session
with ``ConnectError``. ``POLLING`` repeats collect -> rates -> publish ->
(record) -> sleep for ``max(0, interval - elapsed)``. A failed cycle ends the
session with its error; a consumer that went away ends it gracefully. On the
way to ``TERMINATED`` the flag is restored, the replay file sealed and the
queue closed so the consumer observes the disconnection.
"""
from __future__ import annotations

import enum
import logging
import threading
import time
from collections.abc import Callable
from pathlib import Path

from erldash.analytics.rates import apply_rates
from erldash.bus.snapshot_queue import SnapshotQueue
from erldash.collectors.snapshot_collector import MSACC_FLAG, SnapshotCollector
from erldash.metrics.pipeline import PipelineMetrics
from erldash.providers.interface import RuntimeClient
from erldash.storage.replay_store import ReplayHeader, ReplayRecorder
from erldash.utils.exceptions import (
    ConnectError,
    ErldashError,
    ReceiverClosed,
    RpcError,
    SerializationError,
)

from .context import PollContext
from .flag_guard import RemoteFlagGuard

logger = logging.getLogger(__name__)


class SchedulerState(enum.Enum):
    CONNECTING = "connecting"
    POLLING = "polling"
    TERMINATED = "terminated"


class PollScheduler:
    def __init__(
        self,
        connector: Callable[[], RuntimeClient],
        queue: SnapshotQueue,
        *,
        interval: float = 1.0,
        record_path: str | Path | None = None,
        max_cycles: int | None = None,
        metrics: PipelineMetrics | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ):
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self._connector = connector
        self.queue = queue
        self.interval = float(interval)
        self.record_path = Path(record_path) if record_path is not None else None
        self.max_cycles = max_cycles
        self.metrics = metrics
        self._clock = clock
        self._wall_clock = wall_clock
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._state_lock = threading.Lock()
        self._state = SchedulerState.CONNECTING
        self._connected = threading.Event()
        self.error: BaseException | None = None
        self.remote_version: str | None = None
        self.context: PollContext | None = None

    # ---------------- lifecycle ----------------
    @property
    def state(self) -> SchedulerState:
        with self._state_lock:
            return self._state

    def _set_state(self, state: SchedulerState) -> None:
        with self._state_lock:
            self._state = state
        if self.metrics is not None:
            self.metrics.set_state(state.value)
        logger.info("Poll scheduler state -> %s", state.value)

    def start(self) -> PollScheduler:
        """Run the scheduler on a daemon thread."""
        if self._thread is not None:
            return self
        self._thread = threading.Thread(target=self.run, name="erldash-poller", daemon=True)
        self._thread.start()
        return self

    def stop(self) -> None:
        """Request termination; honoured between cycles (sleep interruption)."""
        self._stop.set()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def wait_connected(self, timeout: float | None = None) -> bool:
        """Block until the session left CONNECTING (either way)."""
        return self._connected.wait(timeout)

    # ---------------- main body ----------------
    def run(self) -> None:
        self._set_state(SchedulerState.CONNECTING)
        client: RuntimeClient | None = None
        guard: RemoteFlagGuard | None = None
        recorder: ReplayRecorder | None = None
        try:
            client = self._connector()
            try:
                self.remote_version = client.get_version()
            except RpcError as e:
                raise ConnectError(f"failed to read remote version: {e}") from e
            guard = RemoteFlagGuard.acquire(client, MSACC_FLAG)
            ctx = PollContext(
                start_monotonic=self._clock(),
                start_wall_time=self._wall_clock(),
                remote_version=self.remote_version,
            )
            self.context = ctx
            if self.record_path is not None:
                recorder = ReplayRecorder.create(
                    self.record_path,
                    ReplayHeader(ctx.start_wall_time, self.remote_version),
                    metrics=self.metrics,
                )
            self._set_state(SchedulerState.POLLING)
            self._connected.set()
            self._poll_loop(client, ctx, recorder)
        except ErldashError as e:
            self.error = e
            logger.error("Poll scheduler terminating: %s: %s", type(e).__name__, e)
        except Exception as e:  # noqa: BLE001 - surfaced to the consumer via the queue
            self.error = e
            logger.exception("Poll scheduler crashed")
        finally:
            if guard is not None:
                guard.release()
            if recorder is not None:
                self._seal(recorder)
            if client is not None:
                self._close_client(client)
            self.queue.close(self.error)
            self._set_state(SchedulerState.TERMINATED)
            self._connected.set()

    def _poll_loop(self, client: RuntimeClient, ctx: PollContext, recorder: ReplayRecorder | None) -> None:
        collector = SnapshotCollector(client, clock=self._clock, wall_clock=self._wall_clock)
        while not self._stop.is_set():
            started = self._clock()
            try:
                snapshot = apply_rates(collector.collect(), ctx.previous)
            except ErldashError as e:
                if self.metrics is not None:
                    self.metrics.poll_cycle_failures.labels(error=type(e).__name__).inc()
                raise
            ctx.previous = snapshot
            ctx.cycle_count += 1
            if self.metrics is not None:
                self.metrics.poll_cycles.inc()
                self.metrics.poll_cycle_seconds.observe(max(0.0, self._clock() - started))

            try:
                self.queue.publish(snapshot)
            except ReceiverClosed:
                logger.info("Snapshot consumer went away; stopping after %d cycles", ctx.cycle_count)
                return
            if recorder is not None:
                recorder.append(ctx.elapsed(snapshot), snapshot)

            if self.max_cycles is not None and ctx.cycle_count >= self.max_cycles:
                logger.info("Reached max cycles (%s) -> terminating", self.max_cycles)
                return
            sleep_for = max(0.0, self.interval - (self._clock() - started))
            if sleep_for and self._stop.wait(sleep_for):
                break
        logger.info("Poll loop stopped on request after %d cycles", ctx.cycle_count)

    def _seal(self, recorder: ReplayRecorder) -> None:
        try:
            recorder.close()
        except SerializationError as e:
            logger.error("Failed to seal replay file: %s", e)
            if self.error is None:
                self.error = e

    @staticmethod
    def _close_client(client: RuntimeClient) -> None:
        try:
            client.close()
        except Exception as e:  # noqa: BLE001 - the session is over either way
            logger.warning("Error while closing runtime client: %s", e)


__all__ = ["PollScheduler", "SchedulerState"]
