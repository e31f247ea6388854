from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from tokenflow.base.decimal_utils import SKIP_INVALID_TIMESTAMP, to_epoch_millis, validate_record

Transfer = Dict[str, Any]


class DailyBucket(BaseModel):
    day: str = Field(..., description="Calendar day label in month/day form, e.g. '3/14'")
    received: float = Field(0.0, description="Token units received by the subject on this day")
    sent: float = Field(0.0, description="Token units sent by the subject on this day")
    net: float = Field(0.0, description="received - sent")


class BalancePoint(BaseModel):
    day: str = Field(..., description="Calendar day label in month/day form")
    balance: float = Field(..., description="Reconstructed end-of-day balance, never negative", ge=0.0)


class SkippedRecord(BaseModel):
    hash: Optional[str] = Field(None, description="Transaction hash of the excluded record")
    reason: str = Field(..., description="Why the record was excluded")
    stage: str = Field(..., description="Analytics pass that excluded it")


class WalletSummary(BaseModel):
    address: str = Field(..., description="Truncated display form of the subject address")
    total_received: float
    total_sent: float
    net_balance: float
    total_transactions: int
    receive_count: int
    send_count: int
    current_balance: float
    balance_ten_days_ago: float
    net_change: float
    net_change_last_10_days: float
    buy_shares_total: float = Field(..., description="Scaled value of batched-operation transfers")
    buy_shares_count: int = Field(..., description="Number of batched-operation transfers")
    active_streak: int = Field(..., description="Consecutive active days ending today or yesterday", ge=0)
    wallet_created_date: str = Field(..., description="ISO date of the earliest transfer, or 'Unknown'")


class WalletAnalytics(BaseModel):
    summary: WalletSummary
    daily_flow: List[DailyBucket]
    balance_history: List[BalancePoint]
    batched_operations: List[Transfer] = Field(default_factory=list)
    skipped_records: List[SkippedRecord] = Field(default_factory=list)


def skipped(transfer: Transfer, reason: str, stage: str) -> SkippedRecord:
    return SkippedRecord(hash=transfer.get("hash"), reason=reason, stage=stage)


def record_time(
    transfer: Transfer,
    stage: str,
    skipped_records: Optional[List[SkippedRecord]] = None,
) -> Optional[float]:
    """Epoch milliseconds of a transfer, or None after reporting why it is unusable."""
    reason = validate_record(transfer)
    if reason is not None:
        if skipped_records is not None:
            skipped_records.append(skipped(transfer, reason, stage))
        return None
    return to_epoch_millis(transfer.get("timeStamp"))
