"""Point-in-time Snapshot of every metric read during one poll cycle.

The parent/child hierarchy is kept as a name-keyed lookup: each value may name
its parent, and the grouping of children by parent is derived on demand. A
parent name that does not exist in the same Snapshot is not an error; the
entry is simply treated as a root.
"""
from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from erldash.utils.exceptions import SerializationError

from .models import MetricValue, metric_from_dict


def _sorted_view(items: Mapping[str, MetricValue]) -> Mapping[str, MetricValue]:
    return MappingProxyType({name: items[name] for name in sorted(items)})


@dataclass(frozen=True, slots=True)
class Snapshot:
    wall_clock_time: float
    monotonic_timestamp: float
    items: Mapping[str, MetricValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", _sorted_view(self.items))

    # ---------------- lookup ----------------
    def names(self) -> list[str]:
        return list(self.items)

    def get(self, name: str) -> MetricValue | None:
        return self.items.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self.items

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[tuple[str, MetricValue]]:
        return iter(self.items.items())

    # ---------------- hierarchy ----------------
    def is_root(self, name: str) -> bool:
        parent = self.items[name].parent
        return parent is None or parent == name or parent not in self.items

    def roots(self) -> list[str]:
        return [name for name in self.items if self.is_root(name)]

    def children(self, name: str) -> list[str]:
        return [
            child for child, value in self.items.items()
            if value.parent == name and child != name
        ]

    def dangling_parents(self) -> dict[str, str]:
        """Entries whose declared parent is missing, mapped to that parent name."""
        return {
            name: value.parent for name, value in self.items.items()
            if value.parent is not None and value.parent not in self.items
        }

    # ---------------- construction ----------------
    def with_items(self, updates: Mapping[str, MetricValue]) -> Snapshot:
        merged = dict(self.items)
        merged.update(updates)
        return Snapshot(self.wall_clock_time, self.monotonic_timestamp, merged)

    def as_dict(self) -> dict[str, Any]:
        return {
            "wall_clock_time": self.wall_clock_time,
            "monotonic_timestamp": self.monotonic_timestamp,
            "items": {name: value.as_dict() for name, value in self.items.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Snapshot:
        try:
            raw_items = data["items"]
            items = {str(name): metric_from_dict(value) for name, value in raw_items.items()}
            return cls(
                wall_clock_time=float(data["wall_clock_time"]),
                monotonic_timestamp=float(data["monotonic_timestamp"]),
                items=items,
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise SerializationError(f"malformed snapshot: {e}") from e


__all__ = ["Snapshot"]
