"""Text-mode render loops: monitor, watch and one-shot status."""

import asyncio
import logging
import signal
from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime

from rich.console import Console
from rich.markup import escape

from portmon.config import MONITOR_INTERVAL, WATCH_INTERVAL, clamp_interval
from portmon.models import PortState, StatusEntry
from portmon.scanner import PortScanner

logger = logging.getLogger(__name__)

RULE_WIDTH = 60
COMMAND_WIDTH = 30


def truncate_command(command: str, width: int = COMMAND_WIDTH) -> str:
    """Cut a command line down to at most width characters."""
    return command[:width]


def format_process(entry: StatusEntry, width: int | None = None) -> str | None:
    """Return the owning command of an entry, optionally truncated."""
    if entry.process is None or not entry.process.command:
        return None
    command = entry.process.command
    return truncate_command(command, width) if width is not None else command


def _timestamp() -> str:
    return datetime.now().strftime("%H:%M:%S")


class TransitionTracker:
    """Last observed state per port for one render session."""

    def __init__(self) -> None:
        self._states: dict[int, PortState] = {}

    def observe(self, port: int, state: PortState) -> bool:
        """Record a state and report whether it differs from the previous one."""
        changed = self._states.get(port) is not state
        self._states[port] = state
        return changed

    def get(self, port: int) -> PortState | None:
        return self._states.get(port)

    def __len__(self) -> int:
        return len(self._states)


class RenderLoop(ABC):
    """
    Fixed-interval probe-and-render loop.

    Subclasses implement tick(). run() prints the banner, then alternates between
    a tick and an interval wait until stop() is called. Ticks never overlap: the
    wait for the next tick only starts once the previous tick has finished.
    """

    def __init__(
        self,
        interval: float,
        scanner: PortScanner | None = None,
        console: Console | None = None,
    ) -> None:
        """
        Initialize the RenderLoop.

        Args:
            interval: Seconds between the end of one tick and the start of the next.
            scanner: Scanner used to take snapshots.
            console: Rich console to print to.
        """
        self._interval = clamp_interval(interval)
        self.scanner = scanner if scanner is not None else PortScanner()
        self.console = console if console is not None else Console()
        self.ticks = 0
        self._stop_event = asyncio.Event()
        self._tick_task: asyncio.Task[None] | None = None

    @property
    def interval(self) -> float:
        """Get the tick interval."""
        return self._interval

    @interval.setter
    def interval(self, value: float) -> None:
        """Set the tick interval."""
        self._interval = clamp_interval(value)

    @property
    def is_stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Stop the loop; no tick starts after this and an in-flight one is abandoned."""
        if self._stop_event.is_set():
            return
        logger.debug("Stop requested after %d ticks", self.ticks)
        self._stop_event.set()
        if self._tick_task is not None and not self._tick_task.done():
            self._tick_task.cancel()

    async def run(self, handle_signals: bool = True) -> None:
        """Run until stop() is called or an interrupt signal arrives."""
        installed = self._install_signal_handlers() if handle_signals else []
        try:
            self.render_banner()
            while not self._stop_event.is_set():
                self._tick_task = asyncio.create_task(self._run_tick())
                try:
                    await self._tick_task
                except asyncio.CancelledError:
                    if not self._stop_event.is_set():
                        raise
                    break
                finally:
                    self._tick_task = None

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            self._remove_signal_handlers(installed)
        self.render_farewell()

    async def _run_tick(self) -> None:
        self.ticks += 1
        logger.debug("%s tick %d", type(self).__name__, self.ticks)
        await self.tick()

    @abstractmethod
    async def tick(self) -> None:
        """Take one snapshot and render it."""

    def render_banner(self) -> None:
        pass

    def render_farewell(self) -> None:
        self.console.print("\n[dim]👋 Stopped.[/dim]\n")

    def _install_signal_handlers(self) -> list[signal.Signals]:
        loop = asyncio.get_running_loop()
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.stop)
            except (NotImplementedError, RuntimeError, ValueError):
                # Windows event loops and non-main threads; KeyboardInterrupt still works
                continue
            installed.append(sig)
        return installed

    @staticmethod
    def _remove_signal_handlers(installed: list[signal.Signals]) -> None:
        if not installed:
            return
        loop = asyncio.get_running_loop()
        for sig in installed:
            loop.remove_signal_handler(sig)


class MonitorLoop(RenderLoop):
    """Redraws every port each tick, highlighting ports whose state changed."""

    def __init__(
        self,
        ports: Sequence[int],
        interval: float = MONITOR_INTERVAL,
        scanner: PortScanner | None = None,
        console: Console | None = None,
    ) -> None:
        super().__init__(interval, scanner=scanner, console=console)
        self.ports = list(ports)
        self.tracker = TransitionTracker()

    def render_banner(self) -> None:
        self.console.print("\n[bold blue]📊 Port Monitor[/bold blue]")
        self.console.print("[dim]" + "═" * RULE_WIDTH + "[/dim]")
        self.console.print(f"   Monitoring: [cyan]{', '.join(map(str, self.ports))}[/cyan]")
        self.console.print(f"   Interval: {self.interval:g}s")
        self.console.print("[dim]" + "═" * RULE_WIDTH + "[/dim]")
        self.console.print("[yellow]   Press Ctrl+C to stop[/yellow]\n")

    def render_farewell(self) -> None:
        self.console.print("\n\n[dim]👋 Stopped monitoring.[/dim]\n")

    async def tick(self) -> None:
        entries = await self.scanner.snapshot(self.ports)
        self.console.clear()
        self.console.print("\n[bold blue]📊 Port Monitor[/bold blue]")
        self.console.print("[dim]" + "═" * RULE_WIDTH + "[/dim]")
        self.console.print(f"   Time: {_timestamp()}")
        self.console.print("[dim]" + "─" * RULE_WIDTH + "[/dim]")
        for entry in entries:
            changed = self.tracker.observe(entry.port, entry.state)
            self.console.print(self.format_line(entry, changed))
        self.console.print("[dim]" + "─" * RULE_WIDTH + "[/dim]")

    @staticmethod
    def format_line(entry: StatusEntry, changed: bool) -> str:
        if not changed:
            if entry.is_busy:
                return f"[red]   🔴 Port {entry.port}: BUSY[/red]"
            return f"[green]   🟢 Port {entry.port}: FREE[/green]"

        if not entry.is_busy:
            return f"[green]   🟢 Port {entry.port}: NOW FREE[/green]"
        line = f"[bold red]   🔴 Port {entry.port}: NOW BUSY[/bold red]"
        command = format_process(entry)
        if command:
            line += f" [dim]({escape(command)})[/dim]"
        return line


class WatchLoop(RenderLoop):
    """Prints a timestamped line whenever a single port changes state."""

    def __init__(
        self,
        port: int,
        interval: float = WATCH_INTERVAL,
        scanner: PortScanner | None = None,
        console: Console | None = None,
    ) -> None:
        super().__init__(interval, scanner=scanner, console=console)
        self.port = port
        self.tracker = TransitionTracker()

    def render_banner(self) -> None:
        self.console.print(f"\n[bold blue]👁️ Watching port {self.port}...[/bold blue]\n")

    def render_farewell(self) -> None:
        self.console.print("\n[dim]👋 Stopped watching.[/dim]\n")

    async def tick(self) -> None:
        (entry,) = await self.scanner.snapshot([self.port])
        if self.tracker.observe(entry.port, entry.state):
            self.console.print(self.format_line(entry, _timestamp()))

    @staticmethod
    def format_line(entry: StatusEntry, timestamp: str) -> str:
        if not entry.is_busy:
            return f"[green]\\[{timestamp}] 🟢 Port {entry.port} became FREE[/green]"
        line = f"[red]\\[{timestamp}] 🔴 Port {entry.port} became BUSY[/red]"
        command = format_process(entry)
        if command:
            line += f"[dim] - {escape(command)}[/dim]"
        return line


def format_status_line(entry: StatusEntry) -> str:
    if entry.is_busy:
        command = format_process(entry) or "unknown"
        return f"[red]  {entry.port}: BUSY[/red][dim] ({escape(command)})[/dim]"
    return f"[green]  {entry.port}: FREE[/green]"


def print_status(entries: Sequence[StatusEntry], console: Console | None = None) -> None:
    """Print one status line per entry."""
    console = console if console is not None else Console()
    console.print("\n[bold blue]📊 Port Status[/bold blue]\n")
    for entry in entries:
        console.print(format_status_line(entry))
    console.print()


async def run_status(
    ports: Sequence[int],
    scanner: PortScanner | None = None,
    console: Console | None = None,
) -> list[StatusEntry]:
    """Take a single snapshot and print it."""
    scanner = scanner if scanner is not None else PortScanner()
    entries = await scanner.snapshot(ports)
    print_status(entries, console)
    return entries
