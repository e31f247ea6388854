from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from loguru import logger

from tokenflow.analytics.day_window import (
    WINDOW_MS, SKIP_TIMESTAMP_OUT_OF_RANGE, day_label, epoch_millis, local_date, trailing_days,
)
from tokenflow.analytics.models import (
    DailyBucket, SkippedRecord, Transfer, record_time, skipped,
)
from tokenflow.base.decimal_utils import normalize_address, scaled_value

STAGE = "daily_flow"


def group_transfers_by_day(
    transfers: Iterable[Transfer],
    address: str,
    now: datetime,
    skipped_records: Optional[List[SkippedRecord]] = None,
) -> List[DailyBucket]:
    """
    Bucket the subject's received and sent amounts per calendar day.

    Only transfers within the last WINDOW_DAYS * 24h before now are counted.
    The result always holds one bucket per day of the trailing window, oldest
    first, with empty days zero-filled. Buckets are keyed by full date so the
    month/day labels never merge days from different years.

    Args:
        transfers: Raw transfer records
        address: Subject account, compared case-insensitively
        now: Clock value; calendar days use its tzinfo, or the system
            local zone when it is naive
        skipped_records: Optional list that receives records excluded for
            bad timestamps

    Returns:
        List of DailyBucket
    """
    user = normalize_address(address)
    now_ms = epoch_millis(now)
    tz = now.tzinfo
    totals: Dict[date, Dict[str, float]] = {}

    for tx in transfers:
        tx_time = record_time(tx, STAGE, skipped_records)
        if tx_time is None:
            continue
        if now_ms - tx_time > WINDOW_MS:
            continue

        tx_day = local_date(tx_time, tz)
        if tx_day is None:
            if skipped_records is not None:
                skipped_records.append(skipped(tx, SKIP_TIMESTAMP_OUT_OF_RANGE, STAGE))
            continue

        bucket = totals.setdefault(tx_day, {"received": 0.0, "sent": 0.0})
        value = scaled_value(tx)

        if normalize_address(tx.get("to")) == user:
            bucket["received"] += value
        elif normalize_address(tx.get("from")) == user:
            bucket["sent"] += value

    result = []
    for day in trailing_days(now):
        bucket = totals.get(day, {"received": 0.0, "sent": 0.0})
        result.append(DailyBucket(
            day=day_label(day),
            received=bucket["received"],
            sent=bucket["sent"],
            net=bucket["received"] - bucket["sent"],
        ))

    logger.debug(
        "Daily flow computed",
        extra={"active_days": len(totals), "window_days": len(result)}
    )
    return result
