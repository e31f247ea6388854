from tokenflow.analytics.models import (
    BalancePoint, DailyBucket, SkippedRecord, WalletAnalytics, WalletSummary,
)
from tokenflow.analytics.daily_flow import group_transfers_by_day
from tokenflow.analytics.balance_history import DeltaIndex, generate_balance_history
from tokenflow.analytics.activity_streak import calculate_active_streak
from tokenflow.analytics.wallet_stats import (
    analyze_wallet, compute_summary, select_batched_operation_transfers,
)
