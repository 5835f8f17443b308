"""erldash exception hierarchy.

A small exception tree for categorizing failures across the metrics pipeline.
The CLI maps the top-level categories to process exit codes.
"""
from __future__ import annotations


class ErldashError(Exception):
    """Base class for all erldash exceptions."""


class ConnectError(ErldashError):
    """Connecting to the target runtime (or preparing it for polling) failed."""


class CollectError(ErldashError):
    """A poll cycle could not produce a complete Snapshot."""


class SerializationError(ErldashError):
    """Reading or writing a replay file failed."""


class InvariantViolation(ErldashError):
    """A programming contract was broken (missing root key, bad eviction, ...)."""


# Snapshot queue hand-off
class QueueClosed(ErldashError):
    """The snapshot queue can no longer carry snapshots."""


class ReceiverClosed(QueueClosed):
    """The consumer dropped its receiving end; publishing is pointless."""


class QueueDisconnected(QueueClosed):
    """The producer closed the queue and every buffered snapshot was drained.

    ``error`` holds the exception that terminated the producer, or ``None``
    when the producer ended gracefully.
    """

    def __init__(self, error: BaseException | None = None):
        self.error = error
        msg = "snapshot queue disconnected"
        if error is not None:
            msg = f"{msg}: {error}"
        super().__init__(msg)


# Collaborator (remote runtime client) failures
class RpcError(ErldashError):
    """Base class for failures reported by a runtime client call."""


class NetworkError(RpcError):
    """Transport failure talking to the runtime."""


class ProtocolError(RpcError):
    """The runtime replied with something that could not be decoded."""


class RemoteError(RpcError):
    """The remote call itself failed on the runtime side."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"remote call failed: {reason}")


__all__ = [
    "ErldashError",
    "ConnectError",
    "CollectError",
    "SerializationError",
    "InvariantViolation",
    "QueueClosed",
    "ReceiverClosed",
    "QueueDisconnected",
    "RpcError",
    "NetworkError",
    "ProtocolError",
    "RemoteError",
]
