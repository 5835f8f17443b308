"""Synthetic in-process runtime client.

Produces plausible, smoothly varying readings without a live Erlang node so the
dashboard can be demoed (``--client-factory synthetic``) and the pipeline can be
exercised end to end in tests. Values are derived from a time source, so a
controllable ``time_func`` makes every reading deterministic.
"""
from __future__ import annotations

import math
import time
from collections.abc import Callable, Mapping, Sequence

from erldash.utils.exceptions import RemoteError

from .interface import MSAccThread

_THREAD_TYPES: tuple[tuple[str, int, float], ...] = (
    # (type, thread count, busy share)
    ("scheduler", 4, 0.35),
    ("dirty_cpu_scheduler", 4, 0.05),
    ("dirty_io_scheduler", 10, 0.02),
    ("async", 1, 0.01),
    ("aux", 1, 0.03),
    ("poll", 1, 0.04),
)

_MEMORY_SHARES: dict[str, float] = {
    "processes": 0.38,
    "processes_used": 0.37,
    "system": 0.62,
    "atom": 0.02,
    "atom_used": 0.015,
    "binary": 0.08,
    "code": 0.22,
    "ets": 0.06,
}


class SyntheticRuntimeClient:
    def __init__(self, node: str = "synthetic@localhost", *,
                 time_func: Callable[[], float] = time.monotonic,
                 schedulers: int = 4):
        self.node = node
        self._time = time_func
        self._start = time_func()
        self._schedulers = schedulers
        self._flags: dict[str, bool] = {"microstate_accounting": False}
        self._msacc_reset_at = self._start
        self.closed = False

    def _elapsed(self) -> float:
        return max(0.0, self._time() - self._start)

    def _wave(self, period: float, amplitude: float) -> float:
        return math.sin(self._elapsed() / period) * amplitude

    # ---------------- RuntimeClient ----------------
    def get_version(self) -> str:
        return "Erlang/OTP 26 [erts-14.0] [source] [64-bit] [smp:4:4] [synthetic]"

    def get_system_info_u64(self, key: str) -> int:
        bases = {
            "process_count": 420,
            "port_count": 32,
            "atom_count": 18500,
            "ets_count": 64,
        }
        if key not in bases:
            raise RemoteError(f"badarg: system_info({key})")
        return int(bases[key] + abs(self._wave(20.0, bases[key] * 0.1)))

    def get_statistics_first_u64(self, key: str) -> int:
        rates = {
            "context_switches": 5200.0,
            "exact_reductions": 1_800_000.0,
            "garbage_collection": 950.0,
            "runtime": 350.0,
            "wall_clock": 1000.0,
        }
        if key not in rates:
            raise RemoteError(f"badarg: statistics({key})")
        t = self._elapsed()
        # integral of rate * (1 + 0.2 sin(t/15)) keeps the counter monotonic
        return int(rates[key] * (t + 3.0 * (1.0 - math.cos(t / 15.0))))

    def get_statistics_u64_list(self, key: str) -> Sequence[int]:
        if key != "run_queue_lengths":
            raise RemoteError(f"badarg: statistics({key})")
        base = abs(self._wave(7.0, 3.0))
        return [int(base + i % 2) for i in range(self._schedulers)]

    def get_statistics_io(self) -> tuple[int, int]:
        t = self._elapsed()
        return int(2_000_000 + 48_000 * t), int(1_500_000 + 36_000 * t)

    def get_microstate_accounting(self) -> Sequence[MSAccThread]:
        if not self._flags["microstate_accounting"]:
            return []
        span_us = int(max(0.0, self._time() - self._msacc_reset_at) * 1_000_000)
        threads: list[MSAccThread] = []
        thread_id = 0
        for thread_type, count, share in _THREAD_TYPES:
            for _ in range(count):
                busy = int(span_us * share)
                threads.append(MSAccThread(
                    thread_id=thread_id,
                    thread_type=thread_type,
                    counters={"emulator": busy, "other": 0, "sleep": span_us - busy},
                ))
                thread_id += 1
        return threads

    def set_flag_bool(self, name: str, value: str) -> bool:
        if name not in self._flags:
            raise RemoteError(f"badarg: system_flag({name})")
        previous = self._flags[name]
        if value == "reset":
            self._msacc_reset_at = self._time()
        elif value in ("true", "false"):
            self._flags[name] = value == "true"
            if value == "true" and not previous:
                self._msacc_reset_at = self._time()
        else:
            raise RemoteError(f"badarg: system_flag({name}, {value})")
        return previous

    def get_memory(self) -> Mapping[str, int]:
        total = int(64 * 1024 * 1024 + self._wave(30.0, 4 * 1024 * 1024))
        memory = {"total": total}
        memory.update({k: int(total * share) for k, share in _MEMORY_SHARES.items()})
        return memory

    def close(self) -> None:
        self.closed = True


def synthetic_factory(address: str, credential: str) -> SyntheticRuntimeClient:
    return SyntheticRuntimeClient(address)


__all__ = ["SyntheticRuntimeClient", "synthetic_factory"]
