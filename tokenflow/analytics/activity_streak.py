from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Set

from tokenflow.analytics.day_window import SKIP_TIMESTAMP_OUT_OF_RANGE, local_date
from tokenflow.analytics.models import SkippedRecord, Transfer, record_time, skipped

STAGE = "activity_streak"
ONE_DAY = timedelta(days=1)


def collect_active_days(
    transfers: Iterable[Transfer],
    now: datetime,
    skipped_records: Optional[List[SkippedRecord]] = None,
) -> Set[date]:
    tz = now.tzinfo
    active = set()
    for tx in transfers:
        tx_time = record_time(tx, STAGE, skipped_records)
        if tx_time is None:
            continue
        tx_day = local_date(tx_time, tz)
        if tx_day is not None:
            active.add(tx_day)
        elif skipped_records is not None:
            skipped_records.append(skipped(tx, SKIP_TIMESTAMP_OUT_OF_RANGE, STAGE))
    return active


def calculate_active_streak(
    transfers: Iterable[Transfer],
    now: datetime,
    skipped_records: Optional[List[SkippedRecord]] = None,
) -> int:
    """
    Count consecutive active calendar days walking back from today.

    A quiet today does not break the streak: if yesterday was active the
    count starts there instead.
    """
    active = collect_active_days(transfers, now, skipped_records)
    if not active:
        return 0

    day = now.date()
    if day not in active:
        day -= ONE_DAY

    streak = 0
    while day in active:
        streak += 1
        day -= ONE_DAY
    return streak
