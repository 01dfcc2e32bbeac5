"""General utility helpers shared across modules."""

from __future__ import annotations

import math
import time
from datetime import date, datetime, timezone


def now_ms() -> int:
    """Current wall-clock time in integer milliseconds."""

    return int(time.time() * 1000)


def iso_date(timestamp_s: float | None = None) -> str:
    """Return the ``YYYY-MM-DD`` date for a POSIX timestamp (defaults to now)."""

    if timestamp_s is None:
        return date.today().isoformat()
    return datetime.fromtimestamp(timestamp_s, tz=timezone.utc).date().isoformat()


def format_duration(seconds: int) -> str:
    """Format seconds as ``H:MM:SS`` or ``M:SS`` when under an hour."""

    seconds = max(0, int(seconds))
    hours, rem = divmod(seconds, 3600)
    mins, sec = divmod(rem, 60)
    if hours:
        return f"{hours}:{mins:02d}:{sec:02d}"
    return f"{mins}:{sec:02d}"


def format_pace(pace_min_per_km: float) -> str:
    """Format decimal minutes per km as ``M:SS``."""

    if not math.isfinite(pace_min_per_km) or pace_min_per_km <= 0:
        return "0:00"
    total = int(round(pace_min_per_km * 60))
    mins, sec = divmod(total, 60)
    return f"{mins}:{sec:02d}"
