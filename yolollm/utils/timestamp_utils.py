"""
Timestamp utilities for consistent time handling across the system.
"""

import time
from datetime import datetime, timezone
from typing import Optional


def to_utc_compact_str(timestamp: Optional[float] = None) -> str:
    """Convert timestamp to a sortable UTC string safe for file names.

    Args:
        timestamp: Unix timestamp in seconds (optional, uses current time if None)

    Returns:
        Timestamp formatted as YYYYMMDDTHHMMSSfffZ
    """
    if timestamp is None:
        timestamp = time.time()
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return moment.strftime('%Y%m%dT%H%M%S') + f'{moment.microsecond // 1000:03d}Z'


def elapsed_ms(started: float) -> int:
    """Milliseconds elapsed since a time.perf_counter() reading."""
    return int((time.perf_counter() - started) * 1000)
