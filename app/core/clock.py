"""Time sources in integer milliseconds.

Components take a ``clock`` callable so tests can drive time manually.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone


def monotonic_ms() -> int:
    """Monotonic time in milliseconds, for windows, TTLs and ages."""
    return time.monotonic_ns() // 1_000_000


def wall_clock_ms() -> int:
    """UNIX epoch time in milliseconds, for user-visible timestamps."""
    return time.time_ns() // 1_000_000


def format_epoch_ms(epoch_ms: int) -> str:
    """Format epoch milliseconds as an ISO-8601 UTC string (``...Z``)."""
    moment = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now_iso() -> str:
    return format_epoch_ms(wall_clock_ms())
