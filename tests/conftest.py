"""
Shared fixtures for tokenflow tests.

Every analytics call receives an explicit clock, so NOW pins the trailing
window to 2025-03-05 .. 2025-03-14 (UTC).
"""

import os
import tempfile
from datetime import datetime, time, timedelta, timezone

import pytest

os.environ.setdefault("TOKENFLOW_LOG_DIR", tempfile.mkdtemp(prefix="tokenflow-logs-"))

NOW = datetime(2025, 3, 14, 15, 30, tzinfo=timezone.utc)
SUBJECT = "0xAbCdEf0123456789aBcDeF0123456789AbCdEf01"
COUNTERPARTY = "0x1111111111111111111111111111111111111111"
BATCHED_CONTRACT = "0x7f136881b236ed9a403da7a7dd632e9d0390eb63"


def seconds_days_ago(days: int, hour: int = 12, now: datetime = NOW) -> str:
    """Epoch seconds string for hour:00 on the calendar day `days` before now."""
    moment = datetime.combine(now.date() - timedelta(days=days), time(hour), tzinfo=now.tzinfo)
    return str(int(moment.timestamp()))


def make_transfer(amount, days_ago=0, *, to=SUBJECT, sender=COUNTERPARTY, decimals=18,
                  timestamp=None, function_name="", tx_hash=None, hour=12):
    return {
        "from": sender,
        "to": to,
        "value": str(int(amount * 10 ** decimals)) if isinstance(amount, int) else amount,
        "tokenDecimal": str(decimals),
        "tokenSymbol": "BRACKY",
        "timeStamp": timestamp if timestamp is not None else seconds_days_ago(days_ago, hour),
        "functionName": function_name,
        "hash": tx_hash or f"0xhash-{days_ago}-{amount}-{hour}",
    }


def received(amount, days_ago=0, **kwargs):
    return make_transfer(amount, days_ago, to=SUBJECT, sender=COUNTERPARTY, **kwargs)


def sent(amount, days_ago=0, **kwargs):
    return make_transfer(amount, days_ago, to=COUNTERPARTY, sender=SUBJECT, **kwargs)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def scenario_transfers():
    """Receive 100 five days ago, send 40 yesterday."""
    return [received(100, 5), sent(40, 1)]
