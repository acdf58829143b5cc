"""
Timestamps.

Everything internal is timezone-aware UTC. Midgard sends nanosecond epoch
strings; the CLI renders in the configured display timezone.
"""

from datetime import datetime, timezone
from typing import Union

import pytz

from streamhedge.core.config import get_settings

NANOS_PER_SECOND = 1_000_000_000


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def from_epoch_ns(value: Union[str, int]) -> datetime:
    """
    Midgard ``date`` field to a UTC datetime.

    Raises:
        ValueError: If the value is not a base-10 integer
    """
    nanos = int(str(value).strip(), 10)
    seconds, remainder = divmod(nanos, NANOS_PER_SECOND)
    return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(microsecond=remainder // 1000)


def format_local(dt: datetime, fmt: str = "%H:%M:%S") -> str:
    """Render ``dt`` in the display timezone; naive values are taken as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(pytz.timezone(get_settings().timezone)).strftime(fmt)
