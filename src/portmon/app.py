"""portmon - Textual dashboard application."""

from collections.abc import Sequence
from datetime import datetime

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Container
from textual.css.query import NoMatches
from textual.timer import Timer
from textual.widgets import DataTable, Footer, Static

from portmon.config import DASHBOARD_INTERVAL, DASHBOARD_LIMIT, DEV_PORTS, clamp_interval
from portmon.models import StatusEntry
from portmon.render import COMMAND_WIDTH, format_process
from portmon.scanner import PortScanner, summarize


def status_cell(entry: StatusEntry) -> Text:
    """Colored status cell for an entry."""
    if entry.is_busy:
        return Text("BUSY", style="bold red")
    return Text("FREE", style="green")


def process_cell(entry: StatusEntry) -> Text:
    """Owning command truncated for the table, or '-' when unknown."""
    # Text cells are never parsed as markup
    return Text(format_process(entry, COMMAND_WIDTH) or "-")


class DashboardHeader(Static):
    """Header widget showing the last update time and busy/free totals."""

    DEFAULT_CSS = """
    DashboardHeader {
        height: auto;
        padding: 0 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize DashboardHeader."""
        super().__init__("Probing ports...", *args, **kwargs)
        self.busy: int = 0
        self.free: int = 0
        self.last_update: datetime | None = None

    def update_stats(self, entries: Sequence[StatusEntry]) -> None:
        """Update the totals from a snapshot."""
        self.busy, self.free = summarize(entries)
        self.last_update = datetime.now()
        self.update(self._render_stats())

    def _render_stats(self) -> str:
        if self.last_update is None:
            return "Probing ports..."
        return (
            f"Last update: {self.last_update:%Y-%m-%d %H:%M:%S}\n"
            f"Total: [red]{self.busy} busy[/red], [green]{self.free} free[/green]"
        )


class PortTable(Container):
    """Container for the port status table."""

    DEFAULT_CSS = """
    PortTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize PortTable."""
        super().__init__(*args, **kwargs)
        self._current_ports: list[int] = []

    def compose(self) -> ComposeResult:
        """Compose the port table."""
        # Columns exist before the first snapshot arrives from App.on_mount
        table = DataTable(id="port-table", cursor_type="row")
        table.add_column("Port", key="port", width=8)
        table.add_column("Status", key="status", width=8)
        table.add_column("Process", key="process")
        yield table

    def update_entries(self, entries: Sequence[StatusEntry]) -> None:
        """
        Update the table with a new snapshot.

        Rows are keyed by port. When the port list is unchanged, cells are updated
        in place instead of rebuilding the table.
        """
        table = self.query_one("#port-table", DataTable)
        ports = [entry.port for entry in entries]

        if ports != self._current_ports:
            table.clear()
            for entry in entries:
                table.add_row(
                    str(entry.port),
                    status_cell(entry),
                    process_cell(entry),
                    key=str(entry.port),
                )
            self._current_ports = ports
            return

        for entry in entries:
            row_key = str(entry.port)
            table.update_cell(row_key, "status", status_cell(entry))
            table.update_cell(row_key, "process", process_cell(entry))

    @property
    def row_count(self) -> int:
        return self.query_one("#port-table", DataTable).row_count


class PortDashboardApp(App):
    """Refreshing dashboard over a fixed port list."""

    TITLE = "portmon"
    SUB_TITLE = "Port Dashboard"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
        height: auto;
        min-height: 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("ctrl+c", "quit", "Quit"),
        ("r", "refresh_now", "Refresh"),
    ]

    def __init__(
        self,
        ports: Sequence[int] = DEV_PORTS,
        interval: float = DASHBOARD_INTERVAL,
        scanner: PortScanner | None = None,
    ) -> None:
        """
        Initialize the PortDashboardApp.

        Args:
            ports: Ports to show; only the first DASHBOARD_LIMIT are used.
            interval: Refresh interval in seconds.
            scanner: Scanner used to take snapshots.
        """
        super().__init__()
        self.ports = list(ports)[:DASHBOARD_LIMIT]
        self.interval = clamp_interval(interval)
        self.scanner = scanner if scanner is not None else PortScanner()
        self.refreshes = 0
        self._timer: Timer | None = None

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield DashboardHeader(id="header-stats")
        yield PortTable()
        yield Footer()

    async def on_mount(self) -> None:
        """Take the first snapshot, then refresh on a timer."""
        await self.refresh_ports()
        self._timer = self.set_interval(self.interval, self.refresh_ports)

    async def refresh_ports(self) -> None:
        """Take a snapshot and redraw the header and table."""
        entries = await self.scanner.snapshot(self.ports)
        self.refreshes += 1
        try:
            self.query_one("#header-stats", DashboardHeader).update_stats(entries)
            self.query_one(PortTable).update_entries(entries)
        except NoMatches:
            pass  # Screen is being torn down

    async def action_refresh_now(self) -> None:
        """Refresh immediately without waiting for the timer."""
        await self.refresh_ports()

    async def action_quit(self) -> None:
        """Stop refreshing and exit."""
        if self._timer is not None:
            self._timer.stop()
        self.exit()
