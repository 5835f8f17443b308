"""Human-oriented value formatting shared by the dashboard renderers."""
from __future__ import annotations

_BYTE_UNITS = ("B", "KiB", "MiB", "GiB", "TiB", "PiB")
_SPARK_CHARS = "▁▂▃▄▅▆▇█"


def fmt_bytes(value: float) -> str:
    v = float(value)
    for unit in _BYTE_UNITS:
        if abs(v) < 1024.0 or unit == _BYTE_UNITS[-1]:
            if unit == "B":
                return f"{int(v)} B"
            return f"{v:.1f} {unit}"
        v /= 1024.0
    return f"{v:.1f} {_BYTE_UNITS[-1]}"  # pragma: no cover


def fmt_number(value: float) -> str:
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"


def sparkline(values: list[float], width: int = 24) -> str:
    """Render the last ``width`` values as a unicode block sparkline."""
    pts = values[-width:]
    if not pts:
        return ""
    lo, hi = min(pts), max(pts)
    if hi == lo:
        return _SPARK_CHARS[0] * len(pts)
    scale = (len(_SPARK_CHARS) - 1) / (hi - lo)
    return "".join(_SPARK_CHARS[int(round((p - lo) * scale))] for p in pts)


__all__ = ["fmt_bytes", "fmt_number", "sparkline"]
