"""Daemon CLI entry point.

Runs the scheduler and the environment health monitor until interrupted.

Usage::

    canopy-daemon
    canopy-daemon --log-level DEBUG
    canopy-daemon --no-scheduler --data-dir /srv/canopy
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys

from rich.console import Console

from canopy.runtime.config import settings as settings_mod
from canopy.runtime.daemon import Daemon

logger = logging.getLogger(__name__)
console = Console()

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="canopy-daemon",
        description="Run the Canopy worktree scheduler and environment monitor.",
    )
    parser.add_argument(
        "--log-level",
        choices=_LOG_LEVELS,
        default="INFO",
        help="Logging verbosity (default: INFO).",
    )
    parser.add_argument(
        "--no-scheduler",
        action="store_true",
        default=False,
        help="Do not run scheduled sessions (health monitoring still runs).",
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Data directory (default: CANOPY_DATA_DIR or ~/.canopy).",
    )
    return parser


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s  %(name)s  %(levelname)s  %(message)s",
    )


def _install_signal_handlers(daemon: Daemon) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, daemon.request_stop)
        except (NotImplementedError, RuntimeError):
            logger.debug("[cli] cannot install handler for %s", sig)


async def _run(args: argparse.Namespace) -> int:
    cfg = settings_mod.cfg
    daemon = Daemon(settings=cfg)
    console.print(
        f"[bold green]canopy-daemon[/bold green] data dir: {cfg.data_dir}"
        + ("  [yellow](scheduler disabled)[/yellow]" if args.no_scheduler else "")
    )
    _install_signal_handlers(daemon)
    try:
        await daemon.run(scheduler=False if args.no_scheduler else None)
    except Exception as exc:
        logger.error("[cli] daemon error: %s", exc, exc_info=True)
        console.print(f"[red]Error:[/red] {exc}")
        return 1
    console.print("[dim]Stopped.[/dim]")
    return 0


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``canopy-daemon``."""
    args = _build_parser().parse_args(argv)
    if args.data_dir:
        os.environ["CANOPY_DATA_DIR"] = args.data_dir
        settings_mod._reset_cfg()
    _configure_logging(args.log_level)

    try:
        code = asyncio.run(_run(args))
    except KeyboardInterrupt:
        code = 130

    sys.exit(code)


if __name__ == "__main__":
    main()
