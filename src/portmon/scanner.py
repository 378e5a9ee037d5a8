"""Concurrent port status snapshots."""

import asyncio
from collections.abc import Iterable, Sequence

from portmon.config import LOOKUP_TIMEOUT, PROBE_HOST
from portmon.lookup import ProcessLookup, default_lookup
from portmon.models import PortState, StatusEntry
from portmon.probe import probe


class PortScanner:
    """
    Probes ports and resolves owners of the busy ones.

    Holds no per-snapshot state, so concurrent snapshot() calls are independent
    and every call resolves process ownership from scratch.
    """

    def __init__(
        self,
        lookup: ProcessLookup | None = None,
        lookup_timeout: float | None = LOOKUP_TIMEOUT,
        host: str = PROBE_HOST,
    ) -> None:
        """
        Initialize the PortScanner.

        Args:
            lookup: Process lookup to use. Defaults to the platform's implementation.
            lookup_timeout: Timeout for the default lookup (seconds).
            host: Address the bind-test is performed on.
        """
        self.lookup = lookup if lookup is not None else default_lookup(lookup_timeout)
        self.host = host

    async def check(self, port: int) -> StatusEntry:
        """Probe one port, resolving its owner if it is busy."""
        state = await probe(port, self.host)
        if state is PortState.FREE:
            return StatusEntry(port=port, state=state)
        info = await self.lookup.lookup(port)
        return StatusEntry(port=port, state=state, process=info)

    async def snapshot(self, ports: Sequence[int]) -> list[StatusEntry]:
        """Check all ports concurrently and return entries in input order."""
        return list(await asyncio.gather(*(self.check(port) for port in ports)))


def summarize(entries: Iterable[StatusEntry]) -> tuple[int, int]:
    """Return (busy, free) counts for a snapshot."""
    busy = free = 0
    for entry in entries:
        if entry.is_busy:
            busy += 1
        else:
            free += 1
    return busy, free
