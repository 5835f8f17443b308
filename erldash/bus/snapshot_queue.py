"""Bounded single-producer/single-consumer snapshot queue.

The poll scheduler publishes, the dashboard drains. When the consumer stalls
the queue keeps the newest ``max_size`` snapshots and drops the oldest, so
memory stays bounded. Closure is explicit on both ends:

* producer ``close(error)``      -> consumer sees ``QueueDisconnected`` once drained
* consumer ``close_receiver()``  -> next ``publish`` raises ``ReceiverClosed``
"""
from __future__ import annotations

import logging
import threading
import time
from collections import deque

from erldash.domain.snapshot import Snapshot
from erldash.utils.exceptions import QueueDisconnected, ReceiverClosed

logger = logging.getLogger(__name__)


class SnapshotQueue:
    def __init__(self, max_size: int = 1024, metrics=None):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.max_size = max_size
        self._metrics = metrics
        self._cond = threading.Condition()
        self._items: deque[Snapshot] = deque()
        self._closed = False
        self._receiver_closed = False
        self._error: BaseException | None = None
        self.published = 0
        self.dropped = 0

    # ---------------- producer side ----------------
    def publish(self, snapshot: Snapshot) -> None:
        with self._cond:
            if self._receiver_closed:
                raise ReceiverClosed("snapshot consumer is gone")
            if self._closed:
                raise RuntimeError("publish on a closed snapshot queue")
            self._items.append(snapshot)
            self.published += 1
            if len(self._items) > self.max_size:
                self._items.popleft()
                self.dropped += 1
                if self._metrics is not None:
                    self._metrics.queue_dropped.inc()
                logger.debug("Snapshot queue full (%d); dropped oldest", self.max_size)
            if self._metrics is not None:
                self._metrics.queue_depth.set(len(self._items))
            self._cond.notify_all()

    def close(self, error: BaseException | None = None) -> None:
        with self._cond:
            if self._closed:
                return
            self._closed = True
            self._error = error
            self._cond.notify_all()

    # ---------------- consumer side ----------------
    def poll(self, timeout: float = 0.0, max_items: int | None = None) -> list[Snapshot]:
        """Drain buffered snapshots, waiting up to ``timeout`` for the first one.

        Returns an empty list on timeout. Raises ``QueueDisconnected`` once the
        producer has closed the queue and nothing is left to drain.
        """
        deadline = time.monotonic() + timeout if timeout > 0 else None
        with self._cond:
            while not self._items:
                if self._closed:
                    raise QueueDisconnected(self._error)
                if deadline is None:
                    return []
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return []
                self._cond.wait(remaining)
            count = len(self._items) if max_items is None else min(max_items, len(self._items))
            out = [self._items.popleft() for _ in range(count)]
            if self._metrics is not None:
                self._metrics.queue_depth.set(len(self._items))
            return out

    def close_receiver(self) -> None:
        with self._cond:
            self._receiver_closed = True
            self._items.clear()
            self._cond.notify_all()

    # ---------------- introspection ----------------
    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    @property
    def error(self) -> BaseException | None:
        with self._cond:
            return self._error

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)


__all__ = ["SnapshotQueue"]
