import math
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Union

# Token precision used when a record carries no usable tokenDecimal
DEFAULT_TOKEN_DECIMALS = 18

# Skip reason for records whose timeStamp cannot be parsed
SKIP_INVALID_TIMESTAMP = "invalid_timestamp"

# Epoch strings up to this many characters are seconds, longer ones milliseconds
SECONDS_TIMESTAMP_MAX_LENGTH = 10


def normalize_address(address: Optional[str]) -> str:
    """Lower-case an account identifier, treating a missing one as empty."""
    return (address or "").lower()


def get_token_decimals(transfer: Dict[str, Any]) -> int:
    """
    Get the number of decimal places a transfer's value is scaled by.

    Falls back to DEFAULT_TOKEN_DECIMALS when the field is absent, not an
    integer, or zero.

    Examples:
        >>> get_token_decimals({"tokenDecimal": "6"})
        6
        >>> get_token_decimals({"tokenDecimal": "abc"})
        18
    """
    raw = transfer.get("tokenDecimal")
    if raw is None or raw == "":
        return DEFAULT_TOKEN_DECIMALS
    try:
        decimals = int(str(raw).strip())
    except ValueError:
        return DEFAULT_TOKEN_DECIMALS
    return decimals or DEFAULT_TOKEN_DECIMALS


def convert_to_decimal_units(amount: Union[str, int, float, Decimal], decimals: int) -> Decimal:
    """
    Convert raw token amount to decimal units by dividing by 10^decimals.

    Examples:
        >>> convert_to_decimal_units("1000000000000000000", 18)
        Decimal('1')
        >>> convert_to_decimal_units("2500000", 6)
        Decimal('2.5')
    """
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount).strip())

    divisor = Decimal(10) ** decimals

    return amount / divisor


def scaled_value(transfer: Dict[str, Any]) -> float:
    """
    Get a transfer's amount in token units.

    Missing, unparseable and non-finite values count as 0 so that a single
    malformed record cannot poison an aggregate. So do amounts whose scaling
    leaves the Decimal exponent range, e.g. a tokenDecimal of 1000000.

    Examples:
        >>> scaled_value({"value": "100000000000000000000", "tokenDecimal": "18"})
        100.0
        >>> scaled_value({"value": "garbage", "tokenDecimal": "18"})
        0.0
    """
    decimals = get_token_decimals(transfer)
    raw = transfer.get("value")
    if raw is None or str(raw).strip() == "":
        return 0.0
    try:
        amount = Decimal(str(raw).strip())
    except InvalidOperation:
        return 0.0
    if not amount.is_finite():
        return 0.0
    try:
        scaled = float(convert_to_decimal_units(amount, decimals))
    except ArithmeticError:
        return 0.0
    return scaled if math.isfinite(scaled) else 0.0


def to_epoch_millis(raw: Any) -> Optional[float]:
    """
    Convert an epoch timestamp in seconds or milliseconds to milliseconds.

    The unit is decided by the length of the trimmed string form: ten
    characters or fewer are seconds. Returns None when the value cannot be
    parsed; callers must exclude such records.

    Examples:
        >>> to_epoch_millis("1700000000")
        1700000000000.0
        >>> to_epoch_millis("1700000000123")
        1700000000123.0
        >>> to_epoch_millis("soon") is None
        True
    """
    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    if len(text) <= SECONDS_TIMESTAMP_MAX_LENGTH:
        return value * 1000
    return value


def validate_record(transfer: Dict[str, Any]) -> Optional[str]:
    """
    Get the reason a transfer must be left out of time-based passes.

    Returns None for a usable record.

    Examples:
        >>> validate_record({"timeStamp": "1700000000"}) is None
        True
        >>> validate_record({"timeStamp": "later"})
        'invalid_timestamp'
    """
    if to_epoch_millis(transfer.get("timeStamp")) is None:
        return SKIP_INVALID_TIMESTAMP
    return None
