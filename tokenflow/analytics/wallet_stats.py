import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from tokenflow.analytics.activity_streak import calculate_active_streak
from tokenflow.analytics.balance_history import generate_balance_history
from tokenflow.analytics.daily_flow import group_transfers_by_day
from tokenflow.analytics.day_window import (
    WINDOW_MS, SKIP_TIMESTAMP_OUT_OF_RANGE, epoch_millis, local_date, resolve_now,
)
from tokenflow.analytics.models import (
    SkippedRecord, Transfer, WalletAnalytics, WalletSummary, record_time, skipped,
)
from tokenflow.base import DEFAULT_BATCHED_CONTRACT, DEFAULT_BATCHED_MARKER
from tokenflow.base.decimal_utils import normalize_address, scaled_value, to_epoch_millis
from tokenflow.base.metrics import AnalyticsMetrics

STAGE = "wallet_stats"
UNKNOWN_DATE = "Unknown"
DISPLAY_PRECISION = 2


def shorten_address(address: str) -> str:
    """Display form of an address, e.g. '0x1234...abcd'."""
    return f"{address[:6]}...{address[-4:]}"


def is_batched_operation(transfer: Transfer, contract: str, marker: str) -> bool:
    return (
        marker in (transfer.get("functionName") or "")
        and normalize_address(transfer.get("to")) == normalize_address(contract)
    )


def select_batched_operation_transfers(
    transfers: Sequence[Transfer],
    contract: str = DEFAULT_BATCHED_CONTRACT,
) -> List[Transfer]:
    """
    Transfers to or from the batched-operation contract, newest first.

    Records without a parseable timestamp sort last.
    """
    target = normalize_address(contract)
    selected = [
        tx for tx in transfers
        if normalize_address(tx.get("to")) == target or normalize_address(tx.get("from")) == target
    ]

    def sort_key(tx):
        tx_time = to_epoch_millis(tx.get("timeStamp"))
        return (tx_time is None, -(tx_time or 0.0))

    return sorted(selected, key=sort_key)


def wallet_created_date(
    transfers: Sequence[Transfer],
    now: datetime,
    skipped_records: Optional[List[SkippedRecord]] = None,
) -> str:
    earliest = None
    for tx in transfers:
        tx_time = to_epoch_millis(tx.get("timeStamp"))
        if tx_time is not None and (earliest is None or tx_time < earliest):
            earliest = tx_time
    if earliest is None:
        return UNKNOWN_DATE

    created = local_date(earliest, now.tzinfo)
    if created is None:
        if skipped_records is not None:
            first = next(tx for tx in transfers if to_epoch_millis(tx.get("timeStamp")) == earliest)
            skipped_records.append(skipped(first, SKIP_TIMESTAMP_OUT_OF_RANGE, STAGE))
        return UNKNOWN_DATE
    return created.isoformat()


def compute_summary(
    transfers: Sequence[Transfer],
    address: str,
    now: datetime,
    batched_contract: str = DEFAULT_BATCHED_CONTRACT,
    batched_marker: str = DEFAULT_BATCHED_MARKER,
    skipped_records: Optional[List[SkippedRecord]] = None,
) -> Dict[str, Any]:
    """
    Lifetime totals, counts and ten-day split for the subject.

    Values are returned at full precision; the caller rounds for display.
    """
    user = normalize_address(address)
    cutoff = epoch_millis(now) - WINDOW_MS

    balance_ten_days_ago = 0.0
    received_last_10_days = 0.0
    sent_last_10_days = 0.0
    buy_shares_total = 0.0
    buy_shares_count = 0

    for tx in transfers:
        tx_time = record_time(tx, STAGE, skipped_records)
        if tx_time is None:
            continue
        value = scaled_value(tx)

        if is_batched_operation(tx, batched_contract, batched_marker):
            buy_shares_total += value
            buy_shares_count += 1

        if normalize_address(tx.get("to")) == user:
            if tx_time < cutoff:
                balance_ten_days_ago += value
            else:
                received_last_10_days += value
        elif normalize_address(tx.get("from")) == user:
            if tx_time < cutoff:
                balance_ten_days_ago -= value
            else:
                sent_last_10_days += value

    # Lifetime totals include records with unusable timestamps
    incoming = [tx for tx in transfers if normalize_address(tx.get("to")) == user]
    outgoing = [tx for tx in transfers if normalize_address(tx.get("from")) == user]
    total_received = sum(scaled_value(tx) for tx in incoming)
    total_sent = sum(scaled_value(tx) for tx in outgoing)

    return {
        "total_received": total_received,
        "total_sent": total_sent,
        "current_balance": total_received - total_sent,
        "receive_count": len(incoming),
        "send_count": len(outgoing),
        "total_transactions": len(transfers),
        "balance_ten_days_ago": balance_ten_days_ago,
        "net_change_last_10_days": received_last_10_days - sent_last_10_days,
        "buy_shares_total": buy_shares_total,
        "buy_shares_count": buy_shares_count,
    }


def analyze_wallet(
    transfers: Sequence[Transfer],
    address: str,
    now: Optional[datetime] = None,
    batched_contract: str = DEFAULT_BATCHED_CONTRACT,
    batched_marker: str = DEFAULT_BATCHED_MARKER,
    metrics: Optional[AnalyticsMetrics] = None,
) -> WalletAnalytics:
    """
    Run every analytics pass over one wallet's transfers.

    The passes share no state: the daily flow, streak and summary read the
    transfers independently and the balance history only needs the current
    balance scalar from the summary. Malformed records are excluded by each
    pass and listed in skipped_records instead of raising.

    Args:
        transfers: Pre-filtered token transfer records for the wallet
        address: Subject account
        now: Clock value; defaults to the current local time
        batched_contract: Contract that marks batched-operation transfers
        batched_marker: functionName substring that marks them
        metrics: Optional metrics sink

    Returns:
        WalletAnalytics with summary, daily flow and balance history
    """
    start_time = time.time()
    now = resolve_now(now)
    transfers = list(transfers)
    skipped_records: List[SkippedRecord] = []

    totals = compute_summary(
        transfers, address, now, batched_contract, batched_marker, skipped_records
    )
    daily_flow = group_transfers_by_day(transfers, address, now, skipped_records)
    balance_history = generate_balance_history(
        transfers, address, totals["current_balance"], now, skipped_records
    )
    active_streak = calculate_active_streak(transfers, now, skipped_records)
    created = wallet_created_date(transfers, now, skipped_records)

    summary = WalletSummary(
        address=shorten_address(address),
        total_received=round(totals["total_received"], DISPLAY_PRECISION),
        total_sent=round(totals["total_sent"], DISPLAY_PRECISION),
        net_balance=round(totals["current_balance"], DISPLAY_PRECISION),
        total_transactions=totals["total_transactions"],
        receive_count=totals["receive_count"],
        send_count=totals["send_count"],
        current_balance=round(totals["current_balance"], DISPLAY_PRECISION),
        balance_ten_days_ago=round(totals["balance_ten_days_ago"], DISPLAY_PRECISION),
        net_change=round(totals["net_change_last_10_days"], DISPLAY_PRECISION),
        net_change_last_10_days=round(totals["net_change_last_10_days"], DISPLAY_PRECISION),
        buy_shares_total=round(totals["buy_shares_total"], DISPLAY_PRECISION),
        buy_shares_count=totals["buy_shares_count"],
        active_streak=active_streak,
        wallet_created_date=created,
    )

    if skipped_records:
        logger.info(
            f"Excluded {len(skipped_records)} malformed records from analytics",
            extra={"reasons": sorted({record.reason for record in skipped_records})}
        )

    duration = time.time() - start_time
    if metrics is not None:
        metrics.record_run(duration, len(transfers), skipped_records)

    logger.debug(
        "Wallet analytics completed",
        extra={
            "transfers": len(transfers),
            "active_streak": active_streak,
            "duration": duration,
        }
    )

    return WalletAnalytics(
        summary=summary,
        daily_flow=daily_flow,
        balance_history=balance_history,
        batched_operations=select_batched_operation_transfers(transfers, batched_contract),
        skipped_records=skipped_records,
    )
