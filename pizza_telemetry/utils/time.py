"""Time helpers with timezone-aware UTC defaults."""

from __future__ import annotations

import time
from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return timezone-aware current UTC datetime."""
    return datetime.now(UTC)


def epoch_ms() -> float:
    """Return wall-clock time as epoch milliseconds."""
    return time.time() * 1000.0
