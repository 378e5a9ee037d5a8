"""Data models for portmon."""

from dataclasses import dataclass
from enum import Enum

MIN_PORT = 1
MAX_PORT = 65535


class PortState(Enum):
    """Occupancy of a TCP port on the loopback interface."""

    FREE = "free"
    BUSY = "busy"


@dataclass(slots=True, frozen=True)
class ProcessInfo:
    """Process that owns a busy port."""

    pid: int
    command: str  # Full command line, may be empty


@dataclass(slots=True, frozen=True)
class StatusEntry:
    """Immutable snapshot row for a single port."""

    port: int
    state: PortState
    process: ProcessInfo | None = None

    @property
    def is_busy(self) -> bool:
        return self.state is PortState.BUSY
