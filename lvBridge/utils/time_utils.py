"""
Time utilities for timestamp handling and UTC offset correction
"""

from typing import Optional

import arrow

SECONDS_PER_DAY = 86400


def system_utc_offset_minutes(now: Optional[arrow.Arrow] = None) -> int:
    """
    Minutes to add to local wall-clock time to reach UTC

    Positive west of Greenwich, e.g. 300 for UTC-05:00.

    Args:
        now: Local time to take the offset from (defaults to arrow.now())

    Returns:
        Offset in minutes
    """
    now = now or arrow.now()
    return -int(now.utcoffset().total_seconds() // 60)


def local_offset_seconds(time_offset_minutes: Optional[int] = None) -> int:
    """
    Offset applied to vendor timestamps, in seconds

    Args:
        time_offset_minutes: Configured offset; None uses the system time zone

    Returns:
        Offset in seconds
    """
    if time_offset_minutes is None:
        time_offset_minutes = system_utc_offset_minutes()
    return int(time_offset_minutes) * 60


def initial_watermark(first_full_days: int, now: Optional[arrow.Arrow] = None) -> int:
    """
    Starting watermark for a first sync: local midnight today minus N full days

    Args:
        first_full_days: Number of whole days to look back
        now: Local time to start from (defaults to arrow.now())

    Returns:
        Epoch seconds
    """
    now = now or arrow.now()
    return now.floor('day').int_timestamp - int(first_full_days) * SECONDS_PER_DAY


def now_seconds() -> int:
    """Current epoch time in whole seconds"""
    return arrow.utcnow().int_timestamp


def to_iso_utc(epoch_seconds: int) -> str:
    """
    Format epoch seconds as ISO-8601 UTC with millisecond precision

    Example: 1632846647 -> '2021-09-28T16:30:47.000Z'
    """
    return arrow.get(epoch_seconds).to('UTC').format('YYYY-MM-DDTHH:mm:ss.SSS') + 'Z'
