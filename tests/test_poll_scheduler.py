import pytest

from erldash.bus.snapshot_queue import SnapshotQueue
from erldash.orchestrator.scheduler import PollScheduler, SchedulerState
from erldash.storage.replay_store import ReplayStore
from erldash.utils.exceptions import (
    CollectError,
    ConnectError,
    NetworkError,
    QueueDisconnected,
    RemoteError,
)

from tests._helpers import FakeRuntimeClient


def _drain(queue):
    out = []
    while True:
        try:
            out.extend(queue.poll(timeout=1.0))
        except QueueDisconnected as e:
            return out, e.error


def _scheduler(client, queue, **kw):
    kw.setdefault("interval", 0.01)
    return PollScheduler(lambda: client, queue, **kw)


def test_runs_max_cycles_then_terminates(fake_client, metrics):
    q = SnapshotQueue()
    sched = _scheduler(fake_client, q, max_cycles=3, metrics=metrics)
    sched.run()
    snapshots, error = _drain(q)
    assert error is None
    assert len(snapshots) == 3
    assert sched.state is SchedulerState.TERMINATED
    assert sched.remote_version == fake_client.version
    assert sched.context.cycle_count == 3
    assert metrics.registry.get_sample_value("erldash_poll_cycles_total") == 3.0
    assert metrics.registry.get_sample_value("erldash_scheduler_state") == 2.0


def test_rates_follow_the_previous_snapshot(fake_client):
    q = SnapshotQueue()
    _scheduler(fake_client, q, max_cycles=2).run()
    first, second = _drain(q)[0]
    assert first.get("statistics.runtime").rate_per_sec is None
    assert second.get("statistics.runtime").rate_per_sec > 0
    assert second.monotonic_timestamp > first.monotonic_timestamp


def test_flag_enabled_for_session_and_restored(fake_client):
    q = SnapshotQueue()
    _scheduler(fake_client, q, max_cycles=2).run()
    values = fake_client.flag_values()
    assert values[0] == "true"
    assert values[-1] == "false"
    assert values.count("reset") == 2
    assert fake_client.flags["microstate_accounting"] is False
    assert fake_client.closed


def test_connect_failure_closes_queue_with_error():
    def connector():
        raise ConnectError("nodedown")

    q = SnapshotQueue()
    sched = PollScheduler(connector, q, interval=0.01)
    sched.run()
    snapshots, error = _drain(q)
    assert snapshots == []
    assert isinstance(error, ConnectError)
    assert sched.state is SchedulerState.TERMINATED


def test_version_failure_is_connect_error():
    client = FakeRuntimeClient(failures={"get_version": NetworkError("timeout")})
    q = SnapshotQueue()
    sched = _scheduler(client, q)
    sched.run()
    assert isinstance(sched.error, ConnectError)
    assert client.flag_values() == []
    assert client.closed


def test_collect_failure_ends_session_and_restores_flag(metrics):
    client = FakeRuntimeClient(failures={"get_memory": RemoteError("badarg")})
    q = SnapshotQueue()
    sched = _scheduler(client, q, metrics=metrics)
    sched.run()
    snapshots, error = _drain(q)
    assert snapshots == []
    assert isinstance(error, CollectError)
    assert client.flag_values() == ["true", "false"]
    assert metrics.registry.get_sample_value(
        "erldash_poll_cycle_failures_total", {"error": "CollectError"}
    ) == 1.0


def test_restore_failure_does_not_fail_the_session():
    client = FakeRuntimeClient(restore_failure=NetworkError("connection reset"))
    q = SnapshotQueue()
    sched = _scheduler(client, q, max_cycles=1)
    sched.run()
    assert sched.error is None
    assert client.closed


def test_gone_consumer_stops_gracefully(fake_client):
    q = SnapshotQueue()
    q.close_receiver()
    sched = _scheduler(fake_client, q)
    sched.run()
    assert sched.error is None
    assert sched.context.cycle_count == 1
    assert fake_client.flags["microstate_accounting"] is False


def test_stop_interrupts_the_sleep(fake_client):
    q = SnapshotQueue()
    sched = _scheduler(fake_client, q, interval=30.0).start()
    assert sched.wait_connected(timeout=5.0)
    assert len(q.poll(timeout=5.0)) == 1
    sched.stop()
    sched.join(timeout=5.0)
    assert sched.state is SchedulerState.TERMINATED
    snapshots, error = _drain(q)
    assert error is None
    assert snapshots == []


def test_recording_writes_every_published_snapshot(fake_client, tmp_path, metrics):
    path = tmp_path / "session.jsonl"
    q = SnapshotQueue()
    sched = _scheduler(fake_client, q, max_cycles=3, record_path=path, metrics=metrics)
    sched.run()
    published, _ = _drain(q)
    store = ReplayStore.open(path)
    assert store.remote_version == fake_client.version
    assert [e.snapshot for e in store.entries()] == published
    elapsed = [e.elapsed for e in store.entries()]
    assert elapsed == sorted(elapsed)
    assert elapsed[0] >= 0.0
    assert metrics.registry.get_sample_value("erldash_replay_entries_written_total") == 3.0


def test_interval_must_be_positive(fake_client):
    with pytest.raises(ValueError):
        _scheduler(fake_client, SnapshotQueue(), interval=0)


def test_module_source_compiles_without_warnings():
    import warnings
    from pathlib import Path

    from erldash.orchestrator import scheduler

    source = Path(scheduler.__file__).read_text(encoding="utf-8")
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        compile(source, scheduler.__file__, "exec")
