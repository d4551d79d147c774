"""
Timezone and date-range utilities.

Bar timestamps are stored timezone-aware.  Date bounds given by the
caller (``"2024-01-31"`` or a full ISO timestamp) are converted with the
same timezone so range filters compare like with like.
"""

from __future__ import annotations

from typing import Any
import pandas as pd


def to_timezone(ts: Any, tz_name: str) -> pd.Timestamp:
    """Convert a timestamp to the specified timezone.

    If the timestamp is naive, it is assumed to be in `tz_name`
    already and is localised rather than converted.
    """
    if not isinstance(ts, pd.Timestamp):
        ts = pd.Timestamp(ts)
    if ts.tzinfo is None:
        return ts.tz_localize(tz_name)
    return ts.tz_convert(tz_name)


def is_date_only(value: Any) -> bool:
    """Return `True` for ``YYYY-MM-DD`` strings."""
    return isinstance(value, str) and len(value.strip()) == 10


def parse_range_bound(value: Any, tz_name: str, end: bool = False) -> pd.Timestamp:
    """Parse a start or end bound of a date range.

    A date-only end bound covers the whole day, so ``end="2024-01-31"``
    includes a bar stamped ``2024-01-31 16:00``.
    """
    ts = to_timezone(value, tz_name)
    if end and is_date_only(value):
        ts = ts + pd.Timedelta(days=1) - pd.Timedelta(1, unit='ns')
    return ts
