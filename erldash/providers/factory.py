"""Runtime client factory.

The Erlang distribution client is supplied from outside: a factory is any
callable ``(address, credential) -> RuntimeClient``. It is named either by the
built-in alias ``synthetic`` or by a ``package.module:callable`` path, taken
from ``--client-factory`` or the ``ERLDASH_CLIENT_FACTORY`` environment
variable.
"""
from __future__ import annotations

import importlib
import logging
from collections.abc import Callable
from pathlib import Path

from erldash.utils.env_flags import env_str
from erldash.utils.exceptions import ConnectError, RpcError

from .interface import RuntimeClient

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, str], RuntimeClient]

BUILTIN_FACTORIES: dict[str, str] = {
    "synthetic": "erldash.providers.synthetic_provider:synthetic_factory",
}


def find_cookie(home: Path | None = None) -> str:
    """Return the content of ``$HOME/.erlang.cookie``."""
    cookie_file = (home or Path.home()) / ".erlang.cookie"
    if not cookie_file.exists():
        raise ConnectError(
            f"Could not find the cookie file {cookie_file}. Please specify `--cookie` instead."
        )
    return cookie_file.read_text(encoding="utf-8").strip()


def resolve_factory(spec: str | None = None) -> ClientFactory:
    spec = spec or env_str("ERLDASH_CLIENT_FACTORY")
    if not spec:
        raise ConnectError(
            "no runtime client factory configured; pass --client-factory "
            "or set ERLDASH_CLIENT_FACTORY (e.g. 'synthetic' or 'pkg.module:connect')"
        )
    target = BUILTIN_FACTORIES.get(spec, spec)
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ConnectError(f"invalid client factory {spec!r}; expected 'package.module:callable'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConnectError(f"cannot import client factory module {module_name!r}: {e}") from e
    factory = getattr(module, attr, None)
    if not callable(factory):
        raise ConnectError(f"client factory {target!r} is not callable")
    return factory


def connect(address: str, credential: str, factory: ClientFactory | str | None = None) -> RuntimeClient:
    """Connect to the runtime at ``address`` and return a ready client."""
    if factory is None or isinstance(factory, str):
        factory = resolve_factory(factory)
    logger.info("Connecting to %s", address)
    try:
        client = factory(address, credential)
    except ConnectError:
        raise
    except (RpcError, OSError) as e:
        raise ConnectError(f"failed to connect to {address}: {e}") from e
    logger.debug("Connected to %s via %r", address, factory)
    return client


__all__ = ["BUILTIN_FACTORIES", "ClientFactory", "connect", "find_cookie", "resolve_factory"]
