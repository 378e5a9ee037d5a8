"""Tests for the PortScanner class."""

import asyncio
import socket

import pytest

from portmon import scanner as scanner_module
from portmon.lookup import ProcessLookup
from portmon.models import PortState, ProcessInfo, StatusEntry
from portmon.scanner import PortScanner, summarize


class DelayedLookup(ProcessLookup):
    """Lookup that answers after a per-port delay and records completion order."""

    def __init__(self, delays):
        super().__init__(timeout=5.0)
        self.delays = delays
        self.calls: list[int] = []
        self.completed: list[int] = []

    async def find_pid(self, port):
        self.calls.append(port)
        await asyncio.sleep(self.delays.get(port, 0.0))
        self.completed.append(port)
        return port * 10

    async def command_line(self, pid):
        return f"server-{pid}"


@pytest.fixture
def fake_probe(monkeypatch):
    """Replace the bind-test with a table of states."""
    states: dict[int, PortState] = {}

    async def probe(port, host="127.0.0.1"):
        return states.get(port, PortState.FREE)

    monkeypatch.setattr(scanner_module, "probe", probe)
    return states


class TestPortScanner:
    """Tests for snapshots."""

    @pytest.mark.asyncio
    async def test_snapshot_preserves_order(self, fake_probe):
        """Test results follow input order regardless of completion order."""
        fake_probe.update({1001: PortState.BUSY, 1002: PortState.BUSY, 1003: PortState.BUSY})
        lookup = DelayedLookup({1001: 0.3, 1002: 0.1, 1003: 0.0})
        scanner = PortScanner(lookup=lookup)

        entries = await scanner.snapshot([1001, 1002, 1003])

        assert [entry.port for entry in entries] == [1001, 1002, 1003]
        assert lookup.completed == [1003, 1002, 1001]
        assert entries[0].process == ProcessInfo(pid=10010, command="server-10010")

    @pytest.mark.asyncio
    async def test_snapshot_runs_concurrently(self, fake_probe):
        """Test lookups overlap instead of running one after another."""
        ports = [2001, 2002, 2003, 2004]
        fake_probe.update({port: PortState.BUSY for port in ports})
        lookup = DelayedLookup({port: 0.2 for port in ports})
        scanner = PortScanner(lookup=lookup)

        loop = asyncio.get_running_loop()
        started = loop.time()
        entries = await scanner.snapshot(ports)
        elapsed = loop.time() - started

        assert len(entries) == 4
        assert elapsed < 0.6

    @pytest.mark.asyncio
    async def test_lookup_only_for_busy_ports(self, fake_probe):
        """Test free ports are never looked up."""
        fake_probe.update({3001: PortState.BUSY, 3002: PortState.FREE})
        lookup = DelayedLookup({})
        scanner = PortScanner(lookup=lookup)

        entries = await scanner.snapshot([3001, 3002])

        assert lookup.calls == [3001]
        assert entries[1] == StatusEntry(port=3002, state=PortState.FREE)

    @pytest.mark.asyncio
    async def test_each_snapshot_resolves_again(self, fake_probe):
        """Test process info is never carried over between snapshots."""
        fake_probe[4001] = PortState.BUSY
        lookup = DelayedLookup({})
        scanner = PortScanner(lookup=lookup)

        await scanner.snapshot([4001])
        await scanner.snapshot([4001])

        assert lookup.calls == [4001, 4001]

    @pytest.mark.asyncio
    async def test_empty_snapshot(self):
        """Test an empty port list gives an empty snapshot."""
        scanner = PortScanner(lookup=DelayedLookup({}))

        assert await scanner.snapshot([]) == []

    @pytest.mark.asyncio
    async def test_concurrent_snapshots_are_independent(self, fake_probe):
        """Test two snapshots in flight at once do not mix results."""
        fake_probe.update({5001: PortState.BUSY, 5002: PortState.BUSY})
        scanner = PortScanner(lookup=DelayedLookup({5001: 0.1}))

        first, second = await asyncio.gather(
            scanner.snapshot([5001]),
            scanner.snapshot([5002]),
        )

        assert [entry.port for entry in first] == [5001]
        assert [entry.port for entry in second] == [5002]

    @pytest.mark.asyncio
    async def test_real_sockets(self):
        """Test a snapshot over a real listener and a free port."""
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener.bind(("127.0.0.1", 0))
        listener.listen(1)
        busy_port = listener.getsockname()[1]

        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
            free_port = sock.getsockname()[1]

        try:
            scanner = PortScanner(lookup=DelayedLookup({}))
            entries = await scanner.snapshot([busy_port, free_port])
        finally:
            listener.close()

        assert entries[0].state is PortState.BUSY
        assert entries[1].state is PortState.FREE


def test_summarize():
    """Test busy/free counting."""
    entries = [
        StatusEntry(port=1, state=PortState.BUSY),
        StatusEntry(port=2, state=PortState.FREE),
        StatusEntry(port=3, state=PortState.BUSY),
    ]

    assert summarize(entries) == (2, 1)
    assert summarize([]) == (0, 0)
