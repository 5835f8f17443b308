import pytest

from erldash.domain.models import Counter, Gauge, Utilization, metric_from_dict
from erldash.domain.snapshot import Snapshot
from erldash.utils.exceptions import SerializationError

from tests._helpers import snap


def _tree():
    return snap(
        1.0,
        **{
            "memory.total_bytes": Gauge(1000),
            "memory.processes_bytes": Gauge(400, parent="memory.total_bytes"),
            "memory.system_bytes": Gauge(600, parent="memory.total_bytes"),
            "system_info.process_count": Gauge(42),
        },
    )


def test_roots_and_children():
    s = _tree()
    assert s.roots() == ["memory.total_bytes", "system_info.process_count"]
    assert s.children("memory.total_bytes") == ["memory.processes_bytes", "memory.system_bytes"]
    assert s.children("system_info.process_count") == []


def test_names_are_sorted_and_iteration_yields_pairs():
    s = snap(0.0, b=Gauge(2), a=Gauge(1))
    assert s.names() == ["a", "b"]
    assert [name for name, _ in s] == ["a", "b"]
    assert len(s) == 2 and "a" in s and "zzz" not in s


def test_missing_parent_is_treated_as_root():
    s = snap(0.0, **{"x.child": Gauge(5, parent="x.gone")})
    assert s.is_root("x.child")
    assert s.roots() == ["x.child"]
    assert s.dangling_parents() == {"x.child": "x.gone"}


def test_self_parent_is_root_not_child():
    s = snap(0.0, loop=Gauge(1, parent="loop"))
    assert s.roots() == ["loop"]
    assert s.children("loop") == []


def test_snapshot_items_are_read_only():
    s = _tree()
    with pytest.raises(TypeError):
        s.items["new"] = Gauge(1)  # type: ignore[index]


def test_with_items_returns_new_snapshot():
    s = snap(3.0, c=Counter(10))
    s2 = s.with_items({"c": Counter(10, rate_per_sec=2.5)})
    assert s.get("c").rate_per_sec is None
    assert s2.get("c").rate_per_sec == 2.5
    assert s2.monotonic_timestamp == 3.0


def test_projection_per_kind():
    assert Gauge(7).projection() == 7.0
    assert Counter(100).projection() is None
    assert Counter(100, rate_per_sec=4.0).projection() == 4.0
    assert Utilization(55.5).projection() == 55.5


def test_dict_form_restores_every_kind():
    s = snap(
        2.0,
        g=Gauge(3),
        c=Counter(9, rate_per_sec=1.5, parent="g"),
        u=Utilization(12.5),
    )
    restored = Snapshot.from_dict(s.as_dict())
    assert restored == s


@pytest.mark.parametrize("data", [
    {"kind": "gauge"},
    {"kind": "counter", "raw_value": "nope"},
    {"kind": "histogram", "value": 1},
    {},
])
def test_metric_from_dict_rejects_malformed(data):
    with pytest.raises(SerializationError):
        metric_from_dict(data)


def test_snapshot_from_dict_rejects_missing_fields():
    with pytest.raises(SerializationError):
        Snapshot.from_dict({"items": {}})
