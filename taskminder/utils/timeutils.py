"""Wall-clock helpers that keep pytz-aware datetimes on their local time."""
from datetime import date, datetime, time
from typing import Optional

import pytz


def wall_clock(moment: datetime) -> datetime:
    """Naive local wall-clock reading of ``moment``."""
    return moment.replace(tzinfo=None)


def rezone(naive: datetime, like: datetime) -> datetime:
    """Attach ``like``'s zone to a naive wall-clock time.

    pytz zones are re-localized so the UTC offset matches the new date (DST).
    """
    tz = like.tzinfo
    if tz is None:
        return naive
    zone = getattr(tz, "zone", None)
    if zone:
        return pytz.timezone(zone).localize(naive)
    return naive.replace(tzinfo=tz)


def at_minute_of_day(day: date, minutes: int, like: datetime) -> datetime:
    """Timestamp for ``minutes`` past midnight on ``day`` in ``like``'s zone."""
    naive = datetime.combine(day, time(hour=minutes // 60, minute=minutes % 60))
    return rezone(naive, like)


def epoch_ms(moment: datetime) -> int:
    """Milliseconds since the epoch; naive values are read as local time."""
    return int(moment.timestamp() * 1000)


def resolve_timezone(name: Optional[str]):
    """pytz zone for a configured name, or None for the process-local zone."""
    if not name:
        return None
    return pytz.timezone(name)
