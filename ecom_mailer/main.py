"""Entry point for the ecom-mailer connectivity service."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ecom_mailer.config import Settings, load_settings
from ecom_mailer.health.engine import CHECK_IDS, CheckResult, Status
from ecom_mailer.health.prober import ConnectivityProber
from ecom_mailer.service.lifecycle import run_service

console = Console(stderr=True)
logger = logging.getLogger(__name__)

_STATUS_STYLE = {
    Status.UP: "[green]✓ up[/green]",
    Status.DOWN: "[red]✗ down[/red]",
    Status.UNKNOWN: "[yellow]? unknown[/yellow]",
}


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )


def run_forever(settings: Settings) -> int:
    """Startup probe + heartbeat until SIGINT/SIGTERM."""
    console.print(Panel(f"Starting {settings.service_name}", style="bold green"))
    try:
        asyncio.run(run_service(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except Exception:
        # Checks never raise, so this is a startup bug: don't heartbeat on top of it.
        logger.exception("%s startup failed", settings.service_name)
        return 1
    return 0


def render_results(results: list[CheckResult]) -> Table:
    table = Table(title="Connectivity")
    table.add_column("Check")
    table.add_column("Status")
    table.add_column("Latency", justify="right")
    table.add_column("Message")
    for r in results:
        # Error text is untrusted: render it literally, not as markup
        table.add_row(Text(r.label), _STATUS_STYLE[r.status], f"{r.latency_ms:.0f} ms", Text(r.message))
    return table


def run_check(settings: Settings, only: list[str] | None = None) -> int:
    """One probe pass, no heartbeat. Exit 0 only if every check is up."""
    prober = ConnectivityProber(settings)
    if only:
        results = asyncio.run(prober.run_only(only))
    else:
        results = asyncio.run(prober.run_all())

    console.print(render_results(results))
    return 0 if results and all(r.ok for r in results) else 1


def _parse_only(value: str) -> list[str]:
    ids = [part.strip() for part in value.split(",") if part.strip()]
    if not ids:
        raise argparse.ArgumentTypeError("expected at least one check id")
    return ids


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ecom-mailer",
        description="Probe mail, database and inference endpoints, then keep a heartbeat",
    )
    parser.add_argument(
        "--env-file", default=".env",
        help="dotenv file to read settings from (default: .env)",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run", help="Probe once, then emit heartbeats (default)")

    check_parser = sub.add_parser("check", help="Probe once and exit non-zero on any failure")
    check_parser.add_argument(
        "--only", type=_parse_only, default=None,
        help=f"comma-separated subset of checks ({', '.join(CHECK_IDS)})",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.env_file)
    except ValidationError as e:
        console.print(Panel(str(e), title="Invalid configuration", style="bold red"))
        sys.exit(2)

    configure_logging(settings)

    if args.command == "check":
        sys.exit(run_check(settings, args.only))
    sys.exit(run_forever(settings))


if __name__ == "__main__":
    main()
