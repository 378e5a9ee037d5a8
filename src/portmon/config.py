"""Defaults and input validation for portmon."""

from portmon.models import MAX_PORT, MIN_PORT

# Ports commonly used by local development servers, in display order.
DEV_PORTS: tuple[int, ...] = (
    3000, 3001, 3002, 3003, 3004, 3005,
    4000, 4001, 4200,
    5000, 5001, 5173, 5174, 5175, 5176, 5177, 5178, 5179, 5180, 5500,
    6000, 7000,
    8000, 8080, 8081, 8888,
    9000,
    27017,
)

DASHBOARD_LIMIT = 20
STATUS_DEFAULT_COUNT = 10

MONITOR_INTERVAL = 5.0
DASHBOARD_INTERVAL = 3.0
WATCH_INTERVAL = 2.0
MIN_INTERVAL = 0.1

# Seconds before a process lookup is abandoned
LOOKUP_TIMEOUT = 2.0

PROBE_HOST = "127.0.0.1"


def validate_port(value: int | str) -> int:
    """
    Convert a raw port argument to an int in the valid range.

    Raises:
        ValueError: If the value is not an integer or is out of range.
    """
    if isinstance(value, bool):
        raise ValueError(f"{value!r} is not a valid port number")
    try:
        port = int(str(value).strip()) if isinstance(value, str) else int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{value!r} is not a valid port number") from None
    if not MIN_PORT <= port <= MAX_PORT:
        raise ValueError(f"port {port} is out of range ({MIN_PORT}-{MAX_PORT})")
    return port


def clamp_interval(seconds: float) -> float:
    """Raise intervals below the minimum to the minimum."""
    return max(MIN_INTERVAL, float(seconds))
