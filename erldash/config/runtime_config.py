"""Runtime configuration.

A typed, frozen snapshot of the environment-driven settings. CLI flags take
precedence; these are the defaults they fall back to.

Variables:
  ERLDASH_POLL_INTERVAL     poll interval seconds (1.0)
  ERLDASH_WINDOW_SECONDS    averaging window seconds (60)
  ERLDASH_QUEUE_MAX         snapshot queue capacity (1024)
  ERLDASH_HISTORY_LEN       chart points kept per metric (300)
  ERLDASH_MAX_CYCLES        stop after N cycles (unset = unbounded)
  ERLDASH_CLIENT_FACTORY    runtime client factory ('synthetic' or 'pkg.mod:callable')
  ERLDASH_REFRESH_HZ        dashboard refresh rate (10)
  ERLDASH_METRICS_ENABLED   expose Prometheus self-metrics (off)
  ERLDASH_METRICS_HOST      (127.0.0.1)
  ERLDASH_METRICS_PORT      (9109)
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from erldash.utils.env_flags import env_str, is_truthy

__all__ = [
    "LoopSettings",
    "DisplaySettings",
    "MetricsSettings",
    "RuntimeConfig",
    "build_runtime_config",
    "get_runtime_config",
]

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class LoopSettings:
    interval_seconds: float
    max_cycles: int | None
    queue_max: int
    client_factory: str | None

@dataclass(frozen=True)
class DisplaySettings:
    window_seconds: float
    history_len: int
    refresh_hz: int

@dataclass(frozen=True)
class MetricsSettings:
    enabled: bool
    host: str
    port: int

@dataclass(frozen=True)
class RuntimeConfig:
    loop: LoopSettings
    display: DisplaySettings
    metrics: MetricsSettings

_singleton: RuntimeConfig | None = None

def _coerce_int(name: str, default: int | None, minimum: int = 1) -> int | None:
    val = env_str(name)
    if val is None:
        return default
    try:
        parsed = int(val)
    except ValueError:
        logger.warning("Invalid %s=%r (must be int); using %s", name, val, default)
        return default
    if parsed < minimum:
        logger.warning("Ignoring %s=%s below minimum %s", name, parsed, minimum)
        return default
    return parsed

def _coerce_float(name: str, default: float) -> float:
    val = env_str(name)
    if val is None:
        return default
    try:
        parsed = float(val)
    except ValueError:
        logger.warning("Invalid %s=%r (must be a number); using %s", name, val, default)
        return default
    if parsed <= 0:
        logger.warning("Ignoring non-positive %s=%s", name, parsed)
        return default
    return parsed

def build_runtime_config() -> RuntimeConfig:
    return RuntimeConfig(
        loop=LoopSettings(
            interval_seconds=_coerce_float("ERLDASH_POLL_INTERVAL", 1.0),
            max_cycles=_coerce_int("ERLDASH_MAX_CYCLES", None),
            queue_max=_coerce_int("ERLDASH_QUEUE_MAX", 1024) or 1024,
            client_factory=env_str("ERLDASH_CLIENT_FACTORY"),
        ),
        display=DisplaySettings(
            window_seconds=_coerce_float("ERLDASH_WINDOW_SECONDS", 60.0),
            history_len=_coerce_int("ERLDASH_HISTORY_LEN", 300) or 300,
            refresh_hz=_coerce_int("ERLDASH_REFRESH_HZ", 10) or 10,
        ),
        metrics=MetricsSettings(
            enabled=is_truthy(os.getenv("ERLDASH_METRICS_ENABLED")),
            host=env_str("ERLDASH_METRICS_HOST", "127.0.0.1") or "127.0.0.1",
            port=_coerce_int("ERLDASH_METRICS_PORT", 9109) or 9109,
        ),
    )

def get_runtime_config(refresh: bool = False) -> RuntimeConfig:
    global _singleton
    if _singleton is None or refresh:
        _singleton = build_runtime_config()
    return _singleton
