import math
from bisect import bisect_right
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from loguru import logger

from tokenflow.analytics.day_window import day_label, end_of_day_millis, trailing_days
from tokenflow.analytics.models import (
    BalancePoint, SkippedRecord, Transfer, record_time,
)
from tokenflow.base.decimal_utils import normalize_address, scaled_value

STAGE = "balance_history"


def signed_delta(transfer: Transfer, user: str) -> float:
    """Balance change a transfer causes for user: +value in, -value out, 0 otherwise."""
    value = scaled_value(transfer)
    if normalize_address(transfer.get("to")) == user:
        return value
    if normalize_address(transfer.get("from")) == user:
        return -value
    return 0.0


@dataclass(frozen=True)
class DeltaIndex:
    """
    Time-sorted balance deltas with suffix sums.

    suffix_sums[i] is the sum of deltas[i:], so the total change after any
    instant is one binary search away.
    """
    times: Tuple[float, ...]
    suffix_sums: Tuple[float, ...]

    @classmethod
    def build(cls, entries: Iterable[Tuple[float, float]]) -> "DeltaIndex":
        ordered = sorted(entries, key=lambda entry: entry[0])
        suffix = [0.0] * len(ordered)
        running = 0.0
        for i in range(len(ordered) - 1, -1, -1):
            running += ordered[i][1]
            suffix[i] = running
        return cls(
            times=tuple(entry[0] for entry in ordered),
            suffix_sums=tuple(suffix),
        )

    def sum_after(self, moment_ms: float) -> float:
        """Sum of deltas with a timestamp strictly greater than moment_ms."""
        first = bisect_right(self.times, moment_ms)
        if first >= len(self.times):
            return 0.0
        return self.suffix_sums[first]


def build_delta_index(
    transfers: Iterable[Transfer],
    address: str,
    skipped_records: Optional[List[SkippedRecord]] = None,
) -> DeltaIndex:
    user = normalize_address(address)
    entries = []
    for tx in transfers:
        tx_time = record_time(tx, STAGE, skipped_records)
        if tx_time is None:
            continue
        entries.append((tx_time, signed_delta(tx, user)))
    return DeltaIndex.build(entries)


def generate_balance_history(
    transfers: Iterable[Transfer],
    address: str,
    current_balance: float,
    now: datetime,
    skipped_records: Optional[List[SkippedRecord]] = None,
) -> List[BalancePoint]:
    """
    Reconstruct end-of-day balances for the trailing window from a known
    current balance.

    Each day's balance is current_balance minus every delta recorded after
    23:59:59.999 local time that day, clamped at zero. The last point is
    today, so it equals current_balance whenever no transfer is dated after
    the end of today.

    Args:
        transfers: Full, unwindowed transfer collection
        address: Subject account, compared case-insensitively
        current_balance: Balance the series is anchored to
        now: Clock value; naive values use the system local zone
        skipped_records: Optional list that receives records excluded for
            bad timestamps

    Returns:
        List of BalancePoint, oldest first
    """
    index = build_delta_index(transfers, address, skipped_records)
    tz = now.tzinfo

    points = []
    for day in trailing_days(now):
        balance = current_balance - index.sum_after(end_of_day_millis(day, tz))
        if math.isnan(balance):
            balance = 0.0
        points.append(BalancePoint(day=day_label(day), balance=max(0.0, balance)))

    logger.debug(
        "Balance history reconstructed",
        extra={"indexed_transfers": len(index.times), "current_balance": current_balance}
    )
    return points
