"""
Typed runtime client interface.

The wire protocol to the remote Erlang runtime lives outside this project;
erldash only relies on the call surface below. Every call may raise
``NetworkError``, ``ProtocolError`` or ``RemoteError`` (see
``erldash.utils.exceptions``).
"""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class MSAccThread:
    """One thread's microstate accounting counters (microseconds per state)."""
    thread_id: int
    thread_type: str
    counters: Mapping[str, int] = field(default_factory=dict)


@runtime_checkable
class RuntimeClient(Protocol):
    """Minimal client protocol used by the collector and the poll scheduler."""

    def get_version(self) -> str:
        ...

    def get_system_info_u64(self, key: str) -> int:
        ...

    def get_statistics_first_u64(self, key: str) -> int:
        """Return the first element of the ``statistics(key)`` tuple."""
        ...

    def get_statistics_u64_list(self, key: str) -> Sequence[int]:
        ...

    def get_statistics_io(self) -> tuple[int, int]:
        """Return ``(input_bytes, output_bytes)``."""
        ...

    def get_microstate_accounting(self) -> Sequence[MSAccThread]:
        ...

    def set_flag_bool(self, name: str, value: str) -> bool:
        """Set a system flag and return its previous boolean value."""
        ...

    def get_memory(self) -> Mapping[str, int]:
        ...

    def close(self) -> None:
        ...


__all__ = ["MSAccThread", "RuntimeClient"]
