"""Scoped toggle of a remote boolean system flag.

``RemoteFlagGuard.acquire`` sets the flag and remembers its previous value;
``release`` puts that value back. Release is idempotent and best-effort: a
failure is logged, never raised, so it can sit on every exit path.
"""
from __future__ import annotations

import logging

from erldash.providers.interface import RuntimeClient
from erldash.utils.exceptions import ConnectError, RpcError

logger = logging.getLogger(__name__)


class RemoteFlagGuard:
    def __init__(self, client: RuntimeClient, name: str, previous: bool):
        self.client = client
        self.name = name
        self.previous = previous
        self._released = False

    @classmethod
    def acquire(cls, client: RuntimeClient, name: str, value: bool = True) -> RemoteFlagGuard:
        try:
            previous = client.set_flag_bool(name, "true" if value else "false")
        except RpcError as e:
            raise ConnectError(f"failed to set remote flag {name}={value}: {e}") from e
        logger.info("Remote flag %s set to %s (was %s)", name, value, previous)
        return cls(client, name, previous)

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        restore = "true" if self.previous else "false"
        try:
            self.client.set_flag_bool(self.name, restore)
        except Exception as e:  # noqa: BLE001 - restoration is best-effort
            logger.warning("Failed to restore remote flag %s=%s: %s", self.name, restore, e)
            return
        logger.info("Remote flag %s restored to %s", self.name, restore)

    def __enter__(self) -> RemoteFlagGuard:
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()


__all__ = ["RemoteFlagGuard"]
