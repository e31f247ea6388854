import pytest

from tokenflow.analytics import analyze_wallet, compute_summary, select_batched_operation_transfers
from tokenflow.base.metrics import AnalyticsMetrics, setup_metrics

from conftest import NOW, SUBJECT, COUNTERPARTY, BATCHED_CONTRACT, make_transfer, received, sent


def test_scenario_summary(scenario_transfers):
    result = analyze_wallet(scenario_transfers, SUBJECT, now=NOW)
    summary = result.summary

    assert summary.total_received == 100
    assert summary.total_sent == 40
    assert summary.current_balance == 60
    assert summary.net_balance == 60
    assert summary.total_transactions == 2
    assert (summary.receive_count, summary.send_count) == (1, 1)
    assert summary.balance_ten_days_ago == 0
    assert summary.net_change_last_10_days == 60
    assert summary.net_change == 60
    assert summary.active_streak == 1
    assert summary.wallet_created_date == "2025-03-09"
    assert summary.address == "0xAbCd...Ef01"

    assert [b.received for b in result.daily_flow] == [0, 0, 0, 0, 100, 0, 0, 0, 0, 0]
    assert [b.sent for b in result.daily_flow] == [0, 0, 0, 0, 0, 0, 0, 0, 40, 0]
    assert [p.balance for p in result.balance_history] == [0, 0, 0, 0, 100, 100, 100, 100, 60, 60]
    assert result.skipped_records == []


def test_empty_collection():
    result = analyze_wallet([], SUBJECT, now=NOW)

    assert result.summary.wallet_created_date == "Unknown"
    assert result.summary.active_streak == 0
    assert result.summary.total_transactions == 0
    assert all(b.received == b.sent == b.net == 0 for b in result.daily_flow)
    assert all(p.balance == 0 for p in result.balance_history)


def test_repeated_runs_are_identical(scenario_transfers):
    transfers = scenario_transfers + [received("123456789123456789", 3), sent(7, 12)]

    first = analyze_wallet(transfers, SUBJECT, now=NOW)
    second = analyze_wallet(transfers, SUBJECT, now=NOW)

    assert first.model_dump() == second.model_dump()


def test_ten_day_split():
    transfers = [received(50, 20), sent(15, 12), received(10, 3), sent(4, 1)]

    totals = compute_summary(transfers, SUBJECT, NOW)

    assert totals["balance_ten_days_ago"] == 35
    assert totals["net_change_last_10_days"] == 6
    assert totals["current_balance"] == totals["balance_ten_days_ago"] + totals["net_change_last_10_days"]


def test_ten_days_ago_agrees_with_oldest_balance_point():
    # No activity between the cutoff and the end of the oldest window day
    transfers = [received(50, 20), sent(15, 12), received(10, 3), sent(4, 1)]

    result = analyze_wallet(transfers, SUBJECT, now=NOW)

    assert result.balance_history[0].balance == pytest.approx(result.summary.balance_ten_days_ago)


def test_batched_operation_aggregate_ignores_subject_role():
    transfers = [
        make_transfer(25, 2, to=BATCHED_CONTRACT, sender=SUBJECT, function_name="handleOps(tuple[] ops,address beneficiary)"),
        make_transfer(5, 1, to=BATCHED_CONTRACT, sender=COUNTERPARTY, function_name="handleOps(tuple[] ops,address beneficiary)"),
        # Marker present but recipient is the subject
        make_transfer(9, 1, to=SUBJECT, sender=BATCHED_CONTRACT, function_name="handleOps(tuple[] ops,address beneficiary)"),
        # Right recipient, different call
        make_transfer(3, 1, to=BATCHED_CONTRACT.upper().replace("0X", "0x"), sender=SUBJECT, function_name="transfer(address,uint256)"),
    ]

    summary = analyze_wallet(transfers, SUBJECT, now=NOW).summary

    assert summary.buy_shares_count == 2
    assert summary.buy_shares_total == 30


def test_single_batched_operation_increments_count():
    transfer = make_transfer(12, 0, to=BATCHED_CONTRACT, sender=SUBJECT, function_name="handleOps")

    summary = analyze_wallet([transfer], SUBJECT, now=NOW).summary

    assert summary.buy_shares_count == 1
    assert summary.buy_shares_total == 12


def test_batched_operation_listing_is_newest_first():
    older = make_transfer(1, 4, to=BATCHED_CONTRACT, sender=SUBJECT, tx_hash="0xolder")
    newer = make_transfer(2, 1, to=SUBJECT, sender=BATCHED_CONTRACT, tx_hash="0xnewer")
    broken = make_transfer(3, to=BATCHED_CONTRACT, sender=SUBJECT, timestamp="?", tx_hash="0xbroken")
    other = make_transfer(4, 0, tx_hash="0xother")

    listing = select_batched_operation_transfers([older, broken, other, newer], BATCHED_CONTRACT)

    assert [tx["hash"] for tx in listing] == ["0xnewer", "0xolder", "0xbroken"]


def test_summary_values_are_rounded_for_display():
    transfers = [received("1234567000000000000", 0), sent("1000000000000000", 0)]

    summary = analyze_wallet(transfers, SUBJECT, now=NOW).summary

    assert summary.total_received == 1.23
    assert summary.total_sent == 0.0
    assert summary.current_balance == 1.23


def test_malformed_records_are_listed_per_stage():
    transfers = [received(5, timestamp="not-a-time", tx_hash="0xbroken"), received(1, 0)]

    result = analyze_wallet(transfers, SUBJECT, now=NOW)

    assert result.summary.total_received == 6
    assert result.summary.receive_count == 2
    assert {r.stage for r in result.skipped_records} == {
        "wallet_stats", "daily_flow", "balance_history", "activity_streak",
    }
    assert {r.hash for r in result.skipped_records} == {"0xbroken"}


def test_out_of_range_token_decimals_do_not_abort_the_run():
    oversized = {**received(5, 2, tx_hash="0xhuge"), "value": "5", "tokenDecimal": "1000000"}

    result = analyze_wallet([oversized, received(1, 1)], SUBJECT, now=NOW)

    assert result.summary.total_received == 1
    assert result.summary.receive_count == 2
    assert result.daily_flow[8].received == 1
    assert result.daily_flow[7].received == 0
    assert result.summary.active_streak == 2


def test_wallet_created_date_uses_earliest_valid_timestamp():
    millis = str(int(NOW.timestamp() * 1000) - 30 * 86_400_000)
    transfers = [received(1, 2), received(1, timestamp=millis), received(1, timestamp="bad")]

    result = analyze_wallet(transfers, SUBJECT, now=NOW)

    assert result.summary.wallet_created_date == "2025-02-12"


def test_metrics_are_recorded():
    metrics = AnalyticsMetrics(setup_metrics("tokenflow-test-wallet-stats"))

    analyze_wallet([received(1, timestamp="bad"), received(1, 0)], SUBJECT, now=NOW, metrics=metrics)

    text = metrics.registry.get_metrics_text()
    assert "analytics_runs_total 1.0" in text
    assert 'analytics_skipped_records_total{reason="invalid_timestamp"} 4.0' in text
