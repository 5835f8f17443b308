import pytest

from erldash.collectors.snapshot_collector import (
    IO_ROOT,
    MEMORY_ROOT,
    MSACC_ROOT,
    RUN_QUEUE_ROOT,
    SnapshotCollector,
    memory_items,
    msacc_items,
)
from erldash.domain.models import Counter, Gauge, Utilization
from erldash.providers.interface import MSAccThread
from erldash.utils.exceptions import CollectError, InvariantViolation, RemoteError

from tests._helpers import FakeRuntimeClient, ManualClock


def _collector(client):
    return SnapshotCollector(client, clock=ManualClock(50.0), wall_clock=lambda: 1_700_000_000.0)


def test_calls_are_issued_in_order_with_reset_last(fake_client):
    _collector(fake_client).collect()
    assert fake_client.call_names() == (
        ["get_system_info_u64"] * 4
        + ["get_statistics_first_u64"] * 5
        + ["get_statistics_u64_list", "get_statistics_io", "get_memory",
           "get_microstate_accounting", "set_flag_bool"]
    )
    assert fake_client.calls[-1] == ("set_flag_bool", "microstate_accounting", "reset")


def test_snapshot_shape_and_timestamps(fake_client):
    s = _collector(fake_client).collect()
    assert s.monotonic_timestamp == 50.0
    assert s.wall_clock_time == 1_700_000_000.0
    assert s.get("system_info.process_count") == Gauge(42)
    assert s.get("statistics.garbage_collection.count") == Counter(300)
    assert isinstance(s.get("statistics.wall_clock"), Counter)
    assert s.get("statistics.runtime").rate_per_sec is None


def test_run_queue_and_io_hierarchy(fake_client):
    s = _collector(fake_client).collect()
    assert s.get(RUN_QUEUE_ROOT) == Gauge(3)
    assert s.children(RUN_QUEUE_ROOT) == [
        "statistics.run_queue_lengths.0",
        "statistics.run_queue_lengths.1",
        "statistics.run_queue_lengths.2",
    ]
    assert s.get(IO_ROOT) == Counter(500)
    assert s.get("statistics.io.input_bytes") == Counter(300, parent=IO_ROOT)
    assert s.get("statistics.io.output_bytes") == Counter(200, parent=IO_ROOT)


def test_memory_categories_hang_off_total(fake_client):
    s = _collector(fake_client).collect()
    assert s.get(MEMORY_ROOT) == Gauge(1000)
    assert set(s.children(MEMORY_ROOT)) == {
        "memory.processes_bytes", "memory.system_bytes", "memory.ets_bytes",
    }


def test_msacc_busy_percentages(fake_client):
    s = _collector(fake_client).collect()
    # scheduler: busy 40 + 50 of 200; aux: 0 of 0
    assert s.get("microstate_accounting.scheduler") == Utilization(45.0, parent=MSACC_ROOT)
    assert s.get("microstate_accounting.aux") == Utilization(0.0, parent=MSACC_ROOT)
    assert s.get(MSACC_ROOT).percent == pytest.approx(45.0)


def test_failed_call_aborts_cycle_with_collect_error():
    client = FakeRuntimeClient(failures={"get_memory": RemoteError("badarg")})
    with pytest.raises(CollectError, match="memory"):
        _collector(client).collect()
    # nothing after the failing call was issued
    assert "get_microstate_accounting" not in client.call_names()


def test_failed_reset_is_a_collect_error():
    client = FakeRuntimeClient(failures={"reset": RemoteError("noproc")})
    with pytest.raises(CollectError, match="reset"):
        _collector(client).collect()


def test_memory_without_total_is_invariant_violation():
    with pytest.raises(InvariantViolation):
        memory_items({"processes": 1})


def test_msacc_without_threads_is_zero():
    items = msacc_items([])
    assert items == {MSACC_ROOT: Utilization(0.0)}


def test_msacc_counts_every_non_sleep_state_as_busy():
    items = msacc_items([MSAccThread(0, "poll", {"check_io": 10, "other": 15, "sleep": 75})])
    assert items["microstate_accounting.poll"].percent == 25.0
