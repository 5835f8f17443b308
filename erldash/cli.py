"""erldash command line.

Two modes:
  erldash run NODE [-i SECONDS] [-c COOKIE] [--record PATH] ...
  erldash replay PATH [--start SECONDS] [--speed X] ...

Exit Codes:
  0 user quit (Ctrl-C) or the session ended on its own (max cycles)
  1 unexpected failure
  2 connect failure
  3 poll cycle failure (collect error / invariant violation)
  4 replay file read/write failure
"""
from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from rich.console import Console
from rich.markup import escape

from erldash.bus.snapshot_queue import SnapshotQueue
from erldash.config.runtime_config import RuntimeConfig, get_runtime_config
from erldash.console.terminal import DashboardApp, ReplayApp
from erldash.metrics.pipeline import get_pipeline_metrics
from erldash.metrics.server import start_metrics_server
from erldash.orchestrator.scheduler import PollScheduler
from erldash.providers.factory import connect, find_cookie, resolve_factory
from erldash.storage.replay_store import ReplayStore
from erldash.summary.state import DashboardState, ReplayCursor
from erldash.utils.exceptions import (
    CollectError,
    ConnectError,
    ErldashError,
    InvariantViolation,
    QueueDisconnected,
    SerializationError,
)
from erldash.utils.logging_utils import setup_logging
from erldash.version import get_version

logger = logging.getLogger("erldash.cli")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONNECT = 2
EXIT_COLLECT = 3
EXIT_SERIALIZATION = 4


def _positive_float(raw: str) -> float:
    value = float(raw)
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be > 0, got {raw}")
    return value


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="erldash", description="Erlang Dashboard.")
    p.add_argument("--version", action="version", version=f"%(prog)s {get_version()}")
    p.add_argument("--logfile", default=None, help=argparse.SUPPRESS)
    p.add_argument("--loglevel", default="INFO", help=argparse.SUPPRESS)
    p.add_argument("--truncate-log", action="store_true", help=argparse.SUPPRESS)
    sub = p.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Poll a live Erlang node")
    run.add_argument("erlang_node", help="Target Erlang node name (e.g. foo@localhost)")
    run.add_argument("-i", "--polling-interval", type=_positive_float, default=None,
                     help="Metrics polling interval in seconds (default: 1)")
    run.add_argument("-c", "--cookie", default=None,
                     help="Erlang cookie (default: content of $HOME/.erlang.cookie)")
    run.add_argument("--record", default=None,
                     help="Record the collected metrics to this file so they can be replayed later")
    run.add_argument("--client-factory", default=None,
                     help="Runtime client factory: 'synthetic' or 'package.module:callable'")
    run.add_argument("--window", type=_positive_float, default=None, help="Averaging window in seconds")
    run.add_argument("--max-cycles", type=int, default=None, help="Stop after N poll cycles")
    run.add_argument("--headless", action="store_true",
                     help="Do not draw the dashboard (useful with --record)")
    run.set_defaults(func=cmd_run)

    replay = sub.add_parser("replay", help="Replay a recorded session")
    replay.add_argument("file", help="Replay file written by `run --record`")
    replay.add_argument("--start", type=float, default=0.0, help="Initial cursor time in seconds")
    replay.add_argument("--speed", type=_positive_float, default=1.0, help="Playback speed multiplier")
    replay.add_argument("--window", type=_positive_float, default=None, help="Display window in seconds")
    replay.set_defaults(func=cmd_replay)
    return p.parse_args(argv)


def cmd_run(args: argparse.Namespace, cfg: RuntimeConfig) -> int:
    factory_spec = args.client_factory or cfg.loop.client_factory
    factory = resolve_factory(factory_spec)
    credential = args.cookie
    if credential is None:
        credential = "" if factory_spec == "synthetic" else find_cookie()

    metrics = get_pipeline_metrics()
    if cfg.metrics.enabled:
        start_metrics_server(cfg.metrics.port, cfg.metrics.host, metrics)

    interval = args.polling_interval or cfg.loop.interval_seconds
    max_cycles = args.max_cycles if args.max_cycles is not None else cfg.loop.max_cycles
    queue = SnapshotQueue(cfg.loop.queue_max, metrics)
    scheduler = PollScheduler(
        lambda: connect(args.erlang_node, credential, factory),
        queue,
        interval=interval,
        record_path=args.record,
        max_cycles=max_cycles,
        metrics=metrics,
    )
    state = DashboardState(args.window or cfg.display.window_seconds, cfg.display.history_len)
    app = DashboardApp(
        queue, state,
        target=args.erlang_node,
        remote_version=lambda: scheduler.remote_version,
        refresh_hz=cfg.display.refresh_hz,
    )
    scheduler.start()
    try:
        if args.headless:
            while True:
                app.drain(timeout=0.05)
        else:
            app.run()
    except QueueDisconnected as e:
        if e.error is not None:
            raise e.error
        logger.info("Session ended after %d snapshots", state.snapshots_seen)
    except KeyboardInterrupt:
        logger.info("Quit requested")
    finally:
        queue.close_receiver()
        scheduler.stop()
        scheduler.join(timeout=interval + 5.0)
    return EXIT_OK


def cmd_replay(args: argparse.Namespace, cfg: RuntimeConfig) -> int:
    store = ReplayStore.open(args.file)
    cursor = ReplayCursor(store, args.window or cfg.display.window_seconds, start=args.start)
    app = ReplayApp(store, cursor, history_len=cfg.display.history_len, speed=args.speed,
                    refresh_hz=cfg.display.refresh_hz)
    try:
        app.run()
    except KeyboardInterrupt:
        logger.info("Quit requested")
    return EXIT_OK


def exit_code_for(error: BaseException) -> int:
    if isinstance(error, ConnectError):
        return EXIT_CONNECT
    if isinstance(error, (CollectError, InvariantViolation)):
        return EXIT_COLLECT
    if isinstance(error, SerializationError):
        return EXIT_SERIALIZATION
    return EXIT_FAILURE


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.loglevel, args.logfile, truncate=args.truncate_log)
    cfg = get_runtime_config()
    try:
        return args.func(args, cfg)
    except ErldashError as e:
        logger.error("%s: %s", type(e).__name__, e)
        Console(stderr=True).print(f"[bold red]error:[/] {escape(str(e))}")
        return exit_code_for(e)
    except Exception as e:  # noqa: BLE001
        logger.exception("Unexpected failure")
        Console(stderr=True).print(f"[bold red]unexpected error:[/] {escape(f'{type(e).__name__}: {e}')}")
        return EXIT_FAILURE


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
