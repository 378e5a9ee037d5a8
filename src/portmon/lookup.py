"""Resolve the process that owns a busy port."""

import asyncio
import logging
import os
import shutil
from abc import ABC, abstractmethod

import psutil

from portmon.config import LOOKUP_TIMEOUT
from portmon.models import ProcessInfo

logger = logging.getLogger(__name__)


class ProcessLookup(ABC):
    """
    Two-step owner lookup: find the PID listening on a port, then its command line.

    Lookups never raise. Missing tools, empty output, timeouts and processes
    that exit between the two steps all produce None.
    """

    def __init__(self, timeout: float | None = LOOKUP_TIMEOUT) -> None:
        """
        Initialize the lookup.

        Args:
            timeout: Upper bound for one whole lookup (seconds). None disables it.
        """
        self.timeout = timeout

    async def lookup(self, port: int) -> ProcessInfo | None:
        """Return the owning process of a port, or None if it cannot be resolved."""
        try:
            return await asyncio.wait_for(self._resolve(port), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.debug("Lookup for port %d timed out after %ss", port, self.timeout)
        except Exception:
            logger.debug("Lookup for port %d failed", port, exc_info=True)
        return None

    async def _resolve(self, port: int) -> ProcessInfo | None:
        pid = await self.find_pid(port)
        if pid is None:
            return None
        command = await self.command_line(pid)
        if command is None:
            return None
        return ProcessInfo(pid=pid, command=command)

    @abstractmethod
    async def find_pid(self, port: int) -> int | None:
        """Return the first PID listening on the port."""

    @abstractmethod
    async def command_line(self, pid: int) -> str | None:
        """Return the full command line of a process."""


class LsofProcessLookup(ProcessLookup):
    """Lookup backed by the POSIX ``lsof`` and ``ps`` utilities."""

    async def find_pid(self, port: int) -> int | None:
        output = await self._run("lsof", "-nP", f"-iTCP:{port}", "-sTCP:LISTEN", "-t")
        if not output:
            return None
        first = output.split()[0]
        try:
            return int(first)
        except ValueError:
            logger.debug("Unexpected lsof output for port %d: %r", port, first)
            return None

    async def command_line(self, pid: int) -> str | None:
        output = await self._run("ps", "-p", str(pid), "-o", "args=")
        return output or None

    async def _run(self, *args: str) -> str | None:
        """Run a command and return its stripped stdout, or None on failure."""
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            logger.debug("Could not run %s: %s", args[0], exc)
            return None

        try:
            stdout, _ = await proc.communicate()
        except asyncio.CancelledError:
            # Timed out or interrupted; do not leave the child behind
            await _reap(proc)
            raise

        if proc.returncode != 0:
            logger.debug("%s exited with status %s", args[0], proc.returncode)
            return None
        return stdout.decode(errors="replace").strip()


class PsutilProcessLookup(ProcessLookup):
    """Lookup backed by psutil, for platforms without ``lsof``."""

    async def find_pid(self, port: int) -> int | None:
        return await asyncio.to_thread(self._find_pid, port)

    async def command_line(self, pid: int) -> str | None:
        return await asyncio.to_thread(self._command_line, pid)

    @staticmethod
    def _find_pid(port: int) -> int | None:
        try:
            connections = psutil.net_connections(kind="tcp")
        except (psutil.AccessDenied, OSError):
            return None

        for conn in connections:
            if conn.status != psutil.CONN_LISTEN or not conn.laddr:
                continue
            if conn.laddr.port == port and conn.pid:
                return int(conn.pid)
        return None

    @staticmethod
    def _command_line(pid: int) -> str | None:
        try:
            proc = psutil.Process(pid)
            with proc.oneshot():
                cmdline = proc.cmdline()
                return " ".join(cmdline) if cmdline else proc.name()
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            return None


async def _reap(proc: asyncio.subprocess.Process) -> None:
    """Kill a child that is still running and wait for it to exit."""
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
    # Shielded so a second cancellation cannot leave a zombie behind
    await asyncio.shield(proc.wait())


def default_lookup(timeout: float | None = LOOKUP_TIMEOUT) -> ProcessLookup:
    """Pick the lookup implementation for the current platform."""
    if os.name == "posix" and shutil.which("lsof") and shutil.which("ps"):
        return LsofProcessLookup(timeout=timeout)
    return PsutilProcessLookup(timeout=timeout)
