"""Record/replay store for snapshot streams.

On-disk format is JSON Lines (gzip-compressed when the path ends in ``.gz``):

    {"type": "header", "format": 1, "start_wall_time": ..., "remote_version": "..."}
    {"type": "entry", "elapsed": 0.0, "snapshot": {...}}
    {"type": "entry", "elapsed": 1.0, "snapshot": {...}}

Recording only ever appends one line per cycle and flushes it, so earlier data
is never rewritten and a crash loses at most the line being written. A
truncated last line is therefore tolerated on load, and so is a gzip stream
that never got its trailer; anything else malformed is a ``SerializationError``.
"""
from __future__ import annotations

import bisect
import gzip
import json
import logging
import math
import os
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any

from erldash.domain.snapshot import Snapshot
from erldash.utils.exceptions import SerializationError

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


def _open_text(path: Path, mode: str) -> IO[str]:
    if path.suffix == ".gz":
        return gzip.open(path, mode + "t", encoding="utf-8")  # type: ignore[return-value]
    return open(path, mode, encoding="utf-8")


def _read_bytes(path: Path) -> bytes:
    """Whole file content, gunzipped for ``.gz`` paths.

    A recorder that never closed leaves a gzip stream without its trailer;
    every line flushed before that point is still decodable and returned.
    """
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise SerializationError(f"cannot read replay file {path}: {e}") from e
    if path.suffix != ".gz":
        return raw
    decomp = zlib.decompressobj(16 + zlib.MAX_WBITS)
    try:
        data = decomp.decompress(raw)
    except zlib.error as e:
        raise SerializationError(f"corrupt gzip replay file {path}: {e}") from e
    if not decomp.eof:
        logger.warning("Replay file %s was not sealed; reading up to the last flushed record", path)
    return data


@dataclass(frozen=True, slots=True)
class ReplayHeader:
    start_wall_time: float
    remote_version: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "type": "header",
            "format": FORMAT_VERSION,
            "start_wall_time": self.start_wall_time,
            "remote_version": self.remote_version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReplayHeader:
        if data.get("type") != "header":
            raise SerializationError("replay file does not start with a header record")
        if data.get("format") != FORMAT_VERSION:
            raise SerializationError(f"unsupported replay format {data.get('format')!r}")
        try:
            return cls(float(data["start_wall_time"]), str(data["remote_version"]))
        except (KeyError, TypeError, ValueError) as e:
            raise SerializationError(f"malformed replay header: {e}") from e


@dataclass(frozen=True, slots=True)
class ReplayEntry:
    elapsed: float
    snapshot: Snapshot


class ReplayRecorder:
    """Append-only writer used while a live session is being recorded."""

    def __init__(self, path: Path, fh: IO[str], header: ReplayHeader, metrics=None):
        self.path = path
        self.header = header
        self._fh: IO[str] | None = fh
        self._metrics = metrics
        self.entries_written = 0

    @classmethod
    def create(cls, path: str | os.PathLike[str], header: ReplayHeader, metrics=None) -> ReplayRecorder:
        p = Path(path)
        try:
            if p.parent and not p.parent.exists():
                p.parent.mkdir(parents=True, exist_ok=True)
            fh = _open_text(p, "w")
            recorder = cls(p, fh, header, metrics)
            recorder._write_line(header.as_dict())
        except OSError as e:
            raise SerializationError(f"cannot create replay file {p}: {e}") from e
        logger.info("Recording snapshots to %s", p)
        return recorder

    @property
    def sealed(self) -> bool:
        return self._fh is None

    def append(self, elapsed: float, snapshot: Snapshot) -> None:
        if self._fh is None:
            raise SerializationError(f"replay file {self.path} is sealed")
        try:
            self._write_line({"type": "entry", "elapsed": elapsed, "snapshot": snapshot.as_dict()})
        except OSError as e:
            raise SerializationError(f"failed to append to {self.path}: {e}") from e
        self.entries_written += 1
        if self._metrics is not None:
            self._metrics.replay_entries_written.inc()

    def close(self) -> None:
        if self._fh is None:
            return
        fh, self._fh = self._fh, None
        try:
            fh.close()
        except OSError as e:
            raise SerializationError(f"failed to close {self.path}: {e}") from e
        logger.info("Replay file %s sealed (%d entries)", self.path, self.entries_written)

    def __enter__(self) -> ReplayRecorder:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _write_line(self, record: dict[str, Any]) -> None:
        assert self._fh is not None
        self._fh.write(json.dumps(record, separators=(",", ":")) + "\n")
        self._fh.flush()


class ReplayStore:
    """Read-only view over a recorded session."""

    def __init__(self, header: ReplayHeader, entries: list[ReplayEntry], path: Path | None = None):
        for before, after in zip(entries, entries[1:]):
            if after.elapsed < before.elapsed:
                raise SerializationError(
                    f"replay entries out of order ({before.elapsed} then {after.elapsed})"
                )
        self.header = header
        self.path = path
        self._entries = entries
        self._elapsed = [e.elapsed for e in entries]

    @classmethod
    def open(cls, path: str | os.PathLike[str]) -> ReplayStore:
        p = Path(path)
        data = _read_bytes(p)
        # A complete file ends with "\n"; anything after the last newline is a partial write.
        body, _, tail = data.rpartition(b"\n")
        if tail:
            logger.warning("Ignoring truncated final record in %s (%d bytes)", p, len(tail))
        try:
            lines = body.decode("utf-8").split("\n") if body else []
        except UnicodeDecodeError as e:
            raise SerializationError(f"cannot decode replay file {p}: {e}") from e
        if not lines:
            raise SerializationError(f"replay file {p} is empty")
        header = ReplayHeader.from_dict(cls._decode(lines[0], p, 1))
        entries: list[ReplayEntry] = []
        for lineno, line in enumerate(lines[1:], start=2):
            if not line.strip():
                continue
            record = cls._decode(line, p, lineno)
            if record.get("type") != "entry":
                raise SerializationError(f"{p}:{lineno}: unexpected record type {record.get('type')!r}")
            try:
                elapsed = float(record["elapsed"])
                snapshot = Snapshot.from_dict(record["snapshot"])
            except (KeyError, TypeError, ValueError) as e:
                raise SerializationError(f"{p}:{lineno}: malformed entry: {e}") from e
            entries.append(ReplayEntry(elapsed, snapshot))
        logger.info("Loaded %d replay entries from %s", len(entries), p)
        return cls(header, entries, path=p)

    @staticmethod
    def _decode(line: str, path: Path, lineno: int) -> dict[str, Any]:
        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            raise SerializationError(f"{path}:{lineno}: invalid JSON: {e}") from e
        if not isinstance(record, dict):
            raise SerializationError(f"{path}:{lineno}: expected a JSON object")
        return record

    # ---------------- read API ----------------
    @property
    def remote_version(self) -> str:
        return self.header.remote_version

    @property
    def start_wall_time(self) -> float:
        return self.header.start_wall_time

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> list[ReplayEntry]:
        return list(self._entries)

    def range(self, start: float, end: float) -> list[Snapshot]:
        """Snapshots whose elapsed time lies in ``[start, end)``, in recorded order.

        ``end`` is exclusive: the final entry needs ``end > last_elapsed()``;
        ``range(0, total_duration())`` returns every entry.
        """
        if end <= start:
            return []
        lo = bisect.bisect_left(self._elapsed, start)
        hi = bisect.bisect_left(self._elapsed, end)
        return [e.snapshot for e in self._entries[lo:hi]]

    def first_elapsed(self) -> float:
        return self._elapsed[0] if self._elapsed else 0.0

    def last_elapsed(self) -> float:
        return self._elapsed[-1] if self._elapsed else 0.0

    def total_duration(self) -> float:
        """Smallest exclusive ``range`` end that still covers the final entry."""
        if not self._elapsed:
            return 0.0
        return math.nextafter(self._elapsed[-1], math.inf)


__all__ = ["FORMAT_VERSION", "ReplayEntry", "ReplayHeader", "ReplayRecorder", "ReplayStore"]
