"""Time range construction for queries.

A time filter is a dict ``{"start_ts": int, "end_ts": int}`` with both
bounds inclusive, in epoch seconds. Calendar values are interpreted in
local time.
"""

import calendar
from datetime import datetime

DATETIME_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d")


def parse_datetime(value):
    """Parse a user-supplied point in time into epoch seconds.

    Accepts "YYYY-MM-DD HH:MM[:SS]", "YYYY-MM-DD", or an integer number of
    epoch seconds (as int or digit string).

    Raises:
        ValueError: If the value matches none of the accepted forms
    """
    if isinstance(value, int):
        return value

    text = str(value).strip()
    if text.lstrip("-").isdigit():
        return int(text)

    for fmt in DATETIME_FORMATS:
        try:
            return int(datetime.strptime(text, fmt).timestamp())
        except ValueError:
            continue
    raise ValueError(
        f"Invalid time '{value}': expected YYYY-MM-DD HH:MM or epoch seconds"
    )


def _calendar_period(year, month=None, day=None, hour=None):
    """Return the first and last second of a calendar period."""
    if month is None:
        start = datetime(year, 1, 1)
        end = datetime(year, 12, 31, 23, 59, 59)
    elif day is None:
        last_day = calendar.monthrange(year, month)[1]
        start = datetime(year, month, 1)
        end = datetime(year, month, last_day, 23, 59, 59)
    elif hour is None:
        start = datetime(year, month, day)
        end = datetime(year, month, day, 23, 59, 59)
    else:
        start = datetime(year, month, day, hour)
        end = datetime(year, month, day, hour, 59, 59)
    return int(start.timestamp()), int(end.timestamp())


def build_time_filter(start=None, end=None, year=None, month=None, day=None, hour=None):
    """Build a time filter from explicit bounds or a calendar period.

    Explicit ``start``/``end`` take precedence over the calendar fields. A
    missing bound on one side is left open (0 or far future).

    Returns:
        Time filter dict, or None when no criteria are given

    Raises:
        ValueError: On malformed input, on month/day/hour without their
            enclosing fields, or when start is after end
    """
    if start is not None or end is not None:
        start_ts = parse_datetime(start) if start is not None else 0
        end_ts = parse_datetime(end) if end is not None else 2**62
    elif year is not None:
        if day is not None and month is None:
            raise ValueError("day requires month")
        if hour is not None and day is None:
            raise ValueError("hour requires day")
        start_ts, end_ts = _calendar_period(year, month, day, hour)
    elif month is not None or day is not None or hour is not None:
        raise ValueError("month, day and hour require year")
    else:
        return None

    if start_ts > end_ts:
        raise ValueError("start time is after end time")
    return {"start_ts": start_ts, "end_ts": end_ts}
