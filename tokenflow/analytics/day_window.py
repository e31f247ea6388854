from datetime import date, datetime, time, timedelta, tzinfo
from typing import List, Optional

# Length of the trailing window every analytics pass reports on
WINDOW_DAYS = 10
DAY_MS = 24 * 60 * 60 * 1000
WINDOW_MS = WINDOW_DAYS * DAY_MS

SKIP_TIMESTAMP_OUT_OF_RANGE = "timestamp_out_of_range"


def resolve_now(now: Optional[datetime] = None) -> datetime:
    """
    Return the clock value the analytics passes run against.

    A naive value, or the default current time, stays naive: every day
    boundary is then resolved through the system local zone for that
    particular day, so a DST change inside the window moves midnight with it.
    """
    if now is None:
        return datetime.now()
    return now


def epoch_millis(moment: datetime) -> float:
    return moment.timestamp() * 1000


def local_date(millis: float, tz: Optional[tzinfo]) -> Optional[date]:
    """Calendar date of an epoch-millisecond instant in tz (system local when None)."""
    try:
        return datetime.fromtimestamp(millis / 1000, tz).date()
    except (OverflowError, OSError, ValueError):
        return None


def day_label(day: date) -> str:
    """Month/day label without year, e.g. '3/14'."""
    return f"{day.month}/{day.day}"


def trailing_days(now: datetime) -> List[date]:
    """The WINDOW_DAYS calendar days ending today, oldest first."""
    today = now.date()
    return [today - timedelta(days=offset) for offset in range(WINDOW_DAYS - 1, -1, -1)]


def end_of_day_millis(day: date, tz: Optional[tzinfo]) -> float:
    """Epoch milliseconds of 23:59:59.999 on day in tz (system local when None)."""
    return epoch_millis(datetime.combine(day, time(23, 59, 59, 999000), tzinfo=tz))
