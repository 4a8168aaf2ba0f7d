"""
Time formatting helpers shared by the pipeline stages.
"""

from datetime import datetime
from typing import Union

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_interval(seconds: Union[int, float]) -> str:
    """
    Format an elapsed interval as days, hours, minutes and seconds.

    >>> format_interval(93784)
    '01 days 02 hours 03 minutes 04 seconds'
    """
    total = max(int(seconds), 0)
    s = total % 60
    total //= 60
    m = total % 60
    total //= 60
    h = total % 24
    d = total // 24
    return f"{d:02d} days {h:02d} hours {m:02d} minutes {s:02d} seconds"


def format_offset(seconds: Union[int, float]) -> str:
    """Format a running offset as ``HHhMMmSSs`` (hours are not wrapped)."""
    total = max(int(seconds), 0)
    h, rest = divmod(total, 3600)
    m, s = divmod(rest, 60)
    return f"{h:02d}h{m:02d}m{s:02d}s"


def format_timestamp(value: Union[datetime, float, None] = None) -> str:
    """Format a datetime or epoch value for log output; defaults to now."""
    if value is None:
        value = datetime.now()
    elif not isinstance(value, datetime):
        value = datetime.fromtimestamp(value)
    return value.strftime(TIMESTAMP_FORMAT)
