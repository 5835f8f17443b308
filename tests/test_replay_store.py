import gzip
import json
import shutil

import pytest

from erldash.domain.models import Counter, Gauge, Utilization
from erldash.storage.replay_store import ReplayEntry, ReplayHeader, ReplayRecorder, ReplayStore
from erldash.summary.state import ReplayCursor
from erldash.utils.exceptions import SerializationError

from tests._helpers import snap

HEADER = ReplayHeader(start_wall_time=1_700_000_000.0, remote_version="Erlang/OTP 26")


def _record(path, count, step=1.0):
    with ReplayRecorder.create(path, HEADER) as rec:
        for i in range(count):
            rec.append(
                i * step,
                snap(
                    100.0 + i * step,
                    **{
                        "memory.total_bytes": Gauge(1000 + i),
                        "memory.ets_bytes": Gauge(10, parent="memory.total_bytes"),
                        "statistics.runtime": Counter(i * 50, rate_per_sec=None if i == 0 else 50.0),
                        "microstate_accounting.total": Utilization(12.5),
                    },
                ),
            )
    return path


def test_recorded_session_reads_back(tmp_path):
    path = _record(tmp_path / "s.jsonl", 5)
    store = ReplayStore.open(path)
    assert len(store) == 5
    assert store.remote_version == "Erlang/OTP 26"
    assert store.start_wall_time == 1_700_000_000.0
    entries = store.entries()
    assert [e.elapsed for e in entries] == [0.0, 1.0, 2.0, 3.0, 4.0]
    assert entries[3].snapshot.get("memory.total_bytes") == Gauge(1003)
    assert entries[3].snapshot.children("memory.total_bytes") == ["memory.ets_bytes"]
    assert entries[0].snapshot.get("statistics.runtime").rate_per_sec is None


def test_gzip_path_is_compressed(tmp_path):
    path = _record(tmp_path / "s.jsonl.gz", 3)
    with gzip.open(path, "rt", encoding="utf-8") as fh:
        first = json.loads(fh.readline())
    assert first["type"] == "header"
    assert len(ReplayStore.open(path)) == 3


def test_range_is_half_open(tmp_path):
    store = ReplayStore.open(_record(tmp_path / "s.jsonl", 10))
    got = store.range(2.0, 5.0)
    assert [s.monotonic_timestamp for s in got] == [102.0, 103.0, 104.0]
    assert store.range(5.0, 5.0) == []
    assert store.range(7.0, 3.0) == []


def test_cursor_window_clamped_to_recorded_data(tmp_path):
    store = ReplayStore.open(_record(tmp_path / "s.jsonl", 120))
    cursor = ReplayCursor(store, display_window=60.0)
    cursor.seek(65.0)
    visible = cursor.visible()
    assert len(visible) == 55
    assert visible[0].monotonic_timestamp == 165.0
    assert visible[-1].monotonic_timestamp == 219.0


def test_cursor_seek_is_clamped(tmp_path):
    store = ReplayStore.open(_record(tmp_path / "s.jsonl", 10))
    cursor = ReplayCursor(store, display_window=3.0, start=-5.0)
    assert cursor.position == 0.0
    assert cursor.seek(500.0) == 9.0
    assert cursor.at_end
    assert cursor.step(-4.0) == 5.0
    assert not cursor.at_end


def test_truncated_final_line_is_ignored(tmp_path):
    path = _record(tmp_path / "s.jsonl", 4)
    with open(path, "a", encoding="utf-8") as fh:
        fh.write('{"type":"entry","elapsed":4.0,"snap')
    store = ReplayStore.open(path)
    assert len(store) == 4


def test_append_after_close_fails(tmp_path):
    rec = ReplayRecorder.create(tmp_path / "s.jsonl", HEADER)
    rec.close()
    assert rec.sealed
    with pytest.raises(SerializationError):
        rec.append(0.0, snap(0.0))


def test_missing_file(tmp_path):
    with pytest.raises(SerializationError):
        ReplayStore.open(tmp_path / "nope.jsonl")


def test_empty_file(tmp_path):
    path = tmp_path / "empty.jsonl"
    path.write_text("", encoding="utf-8")
    with pytest.raises(SerializationError):
        ReplayStore.open(path)


@pytest.mark.parametrize("lines", [
    ['{"type":"entry","elapsed":0,"snapshot":{}}'],
    ['{"type":"header","format":99,"start_wall_time":0,"remote_version":"x"}'],
    ['{"type":"header","format":1,"start_wall_time":0,"remote_version":"x"}', "not json"],
    ['{"type":"header","format":1,"start_wall_time":0,"remote_version":"x"}',
     '{"type":"entry","elapsed":0,"snapshot":{"items":{}}}'],
    ['{"type":"header","format":1,"start_wall_time":0,"remote_version":"x"}',
     '{"type":"bogus"}'],
])
def test_malformed_records_are_rejected(tmp_path, lines):
    path = tmp_path / "bad.jsonl"
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    with pytest.raises(SerializationError):
        ReplayStore.open(path)


def test_entries_must_not_go_backwards():
    with pytest.raises(SerializationError):
        ReplayStore(HEADER, [ReplayEntry(2.0, snap(2.0)), ReplayEntry(1.0, snap(1.0))])


def test_unsealed_gzip_recording_is_readable(tmp_path):
    path = tmp_path / "live.jsonl.gz"
    rec = ReplayRecorder.create(path, HEADER)
    try:
        for i in range(5):
            rec.append(float(i), snap(100.0 + i, g=Gauge(i)))
        # copy while the recorder is still open, as a crash would leave it
        crashed = tmp_path / "crashed.jsonl.gz"
        shutil.copyfile(path, crashed)
    finally:
        rec.close()
    store = ReplayStore.open(crashed)
    assert len(store) == 5
    assert [s.get("g").value for s in store.range(0.0, store.total_duration())] == [0, 1, 2, 3, 4]


def test_corrupt_gzip_is_rejected(tmp_path):
    path = tmp_path / "bad.jsonl.gz"
    path.write_bytes(b"\x1f\x8b\x08\x00garbage-not-deflate")
    with pytest.raises(SerializationError):
        ReplayStore.open(path)


@pytest.mark.parametrize("name", ["s.jsonl", "s.jsonl.gz"])
def test_range_over_total_duration_returns_every_recorded_snapshot(tmp_path, name):
    recorded = [
        snap(
            50.0 + i * 0.5,
            **{
                "memory.total_bytes": Gauge(4096 + i),
                "memory.code_bytes": Gauge(512, parent="memory.total_bytes"),
                "statistics.io.total_bytes": Counter(1000 * i, rate_per_sec=None if i == 0 else 2000.0),
                "microstate_accounting.scheduler": Utilization(10.0 + i, parent="microstate_accounting.total"),
            },
        )
        for i in range(6)
    ]
    with ReplayRecorder.create(tmp_path / name, HEADER) as rec:
        for i, s in enumerate(recorded):
            rec.append(i * 0.5, s)
    store = ReplayStore.open(tmp_path / name)
    got = store.range(0.0, store.total_duration())
    assert len(got) == len(recorded)
    for before, after in zip(recorded, got):
        assert after.monotonic_timestamp == before.monotonic_timestamp
        assert dict(after.items) == dict(before.items)
    # end is exclusive, so last_elapsed() alone leaves out the final entry
    assert len(store.range(0.0, store.last_elapsed())) == len(recorded) - 1


def test_total_duration_of_empty_store():
    assert ReplayStore(HEADER, []).total_duration() == 0.0
