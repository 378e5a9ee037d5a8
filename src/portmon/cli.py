"""Command-line entry point for portmon."""

import asyncio
import logging
from importlib.metadata import PackageNotFoundError, version
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from portmon.app import PortDashboardApp
from portmon.config import (
    DASHBOARD_INTERVAL,
    DASHBOARD_LIMIT,
    DEV_PORTS,
    MONITOR_INTERVAL,
    STATUS_DEFAULT_COUNT,
    WATCH_INTERVAL,
    validate_port,
)
from portmon.render import MonitorLoop, RenderLoop, WatchLoop, run_status
from portmon.scanner import PortScanner

app = typer.Typer(
    name="portmon",
    help="Real-time port monitoring with alerts and status dashboard.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Send log records to stderr through Rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def get_version() -> str:
    try:
        return version("portmon")
    except PackageNotFoundError:
        return "unknown"


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"portmon {get_version()}")
        raise typer.Exit()


def _parse_port(value: str) -> int:
    try:
        return validate_port(value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from None


def _parse_ports(values: Optional[list[str]]) -> list[int]:
    # Repeated ports are checked once, first occurrence keeps its position
    return list(dict.fromkeys(_parse_port(value) for value in values or ()))


def _run_loop(loop: RenderLoop) -> None:
    try:
        asyncio.run(loop.run())
    except KeyboardInterrupt:
        # Only reached where the event loop cannot install signal handlers
        loop.render_farewell()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    show_version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """Real-time port monitoring with alerts and status dashboard."""
    setup_logging(verbose)


@app.command()
def start(
    ports: Optional[list[str]] = typer.Argument(
        None,
        callback=_parse_ports,
        help="Ports to monitor. Defaults to common development ports.",
        show_default=False,
    ),
    interval: float = typer.Option(MONITOR_INTERVAL, "--interval", "-i", help="Check interval in seconds."),
) -> None:
    """Start monitoring ports."""
    ports = ports or list(DEV_PORTS)
    logger.debug("Monitoring %d ports every %ss", len(ports), interval)
    _run_loop(MonitorLoop(ports, interval, scanner=PortScanner(), console=console))


@app.command()
def dashboard(
    interval: float = typer.Option(DASHBOARD_INTERVAL, "--interval", "-i", help="Refresh interval in seconds."),
) -> None:
    """Show dashboard of all dev ports."""
    PortDashboardApp(DEV_PORTS[:DASHBOARD_LIMIT], interval, scanner=PortScanner()).run()


@app.command()
def watch(
    port: str = typer.Argument(..., callback=_parse_port, help="Port to watch."),
    interval: float = typer.Option(WATCH_INTERVAL, "--interval", "-i", help="Check interval in seconds."),
) -> None:
    """Watch for port status changes."""
    _run_loop(WatchLoop(port, interval, scanner=PortScanner(), console=console))


@app.command()
def status(
    ports: Optional[list[str]] = typer.Argument(
        None,
        callback=_parse_ports,
        help="Ports to check. Defaults to the first ten development ports.",
        show_default=False,
    ),
) -> None:
    """Quick status check."""
    ports = ports or list(DEV_PORTS[:STATUS_DEFAULT_COUNT])
    asyncio.run(run_status(ports, scanner=PortScanner(), console=console))


if __name__ == "__main__":
    app()
