import time as systime
from datetime import date, datetime, timezone

import pytest

from tokenflow.analytics.balance_history import generate_balance_history
from tokenflow.analytics.daily_flow import group_transfers_by_day
from tokenflow.analytics.day_window import end_of_day_millis, local_date, resolve_now

from conftest import SUBJECT, received

pytestmark = pytest.mark.skipif(not hasattr(systime, "tzset"), reason="needs time.tzset")


@pytest.fixture
def new_york(monkeypatch):
    """Run with the system zone set to America/New_York (DST starts 2025-03-09)."""
    monkeypatch.setenv("TZ", "America/New_York")
    systime.tzset()
    yield
    monkeypatch.undo()
    systime.tzset()


def millis(moment: datetime) -> float:
    return moment.timestamp() * 1000


def test_resolve_now_keeps_naive_clock_naive():
    naive = datetime(2025, 3, 14, 12, 0)

    assert resolve_now(naive) is naive
    assert resolve_now().tzinfo is None


def test_local_date_uses_each_days_own_offset(new_york):
    before_dst = datetime(2025, 3, 9, 4, 30, tzinfo=timezone.utc)  # 3/8 23:30 EST
    after_dst = datetime(2025, 3, 14, 3, 30, tzinfo=timezone.utc)  # 3/13 23:30 EDT

    assert local_date(millis(before_dst), None) == date(2025, 3, 8)
    assert local_date(millis(after_dst), None) == date(2025, 3, 13)


def test_end_of_day_follows_dst(new_york):
    assert end_of_day_millis(date(2025, 3, 8), None) == millis(
        datetime(2025, 3, 9, 4, 59, 59, 999000, tzinfo=timezone.utc)
    )
    assert end_of_day_millis(date(2025, 3, 14), None) == millis(
        datetime(2025, 3, 15, 3, 59, 59, 999000, tzinfo=timezone.utc)
    )


def test_daily_flow_buckets_late_evening_before_dst_change(new_york):
    now = datetime(2025, 3, 14, 12, 0)
    late_evening = datetime(2025, 3, 9, 4, 30, tzinfo=timezone.utc)
    transfers = [received(7, timestamp=str(int(late_evening.timestamp())))]

    buckets = group_transfers_by_day(transfers, SUBJECT, now)

    assert buckets[3].day == "3/8"
    assert buckets[3].received == 7
    assert buckets[4].received == 0


def test_balance_history_end_of_day_before_dst_change(new_york):
    now = datetime(2025, 3, 14, 12, 0)
    late_evening = datetime(2025, 3, 9, 4, 30, tzinfo=timezone.utc)
    transfers = [received(7, timestamp=str(int(late_evening.timestamp())))]

    points = generate_balance_history(transfers, SUBJECT, 7.0, now)

    assert [p.balance for p in points[2:5]] == [0.0, 7.0, 7.0]
    assert points[3].day == "3/8"
