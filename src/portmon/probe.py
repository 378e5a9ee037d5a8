"""Loopback bind-test used to decide whether a port is occupied."""

import asyncio
import os
import socket

from portmon.config import PROBE_HOST
from portmon.models import PortState


def is_port_free(port: int, host: str = PROBE_HOST) -> bool:
    """
    Check whether a TCP socket can be bound to host:port.

    The socket is closed before returning, so a successful probe never
    leaves the port held by this process. Any bind failure counts as
    occupied, including permission errors on privileged ports.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            if os.name == "nt":
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_EXCLUSIVEADDRUSE, 1)
            else:
                # Sockets lingering in TIME_WAIT should not count as busy
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
            return True
    except (OSError, OverflowError):
        return False


async def probe(port: int, host: str = PROBE_HOST) -> PortState:
    """Probe a port without blocking the event loop."""
    free = await asyncio.to_thread(is_port_free, port, host)
    return PortState.FREE if free else PortState.BUSY
