"""
Utility functions for the fund ledger.

Includes base-unit conversion and time helpers.
"""

import time
from datetime import datetime, timezone
from decimal import ROUND_DOWN, Decimal


# =============================================================================
# Time-related functions
# =============================================================================


def now_timestamp() -> int:
    """
    Get current UNIX timestamp in seconds.

    Example:
        >>> ts = now_timestamp()  # e.g., 1704067200
    """
    return int(time.time())


def timestamp_to_datetime(ts: int) -> datetime:
    """
    Convert a UNIX timestamp in seconds to datetime (UTC).

    Example:
        >>> timestamp_to_datetime(1704067200)
        datetime.datetime(2024, 1, 1, 0, 0, tzinfo=datetime.timezone.utc)
    """
    return datetime.fromtimestamp(ts, tz=timezone.utc)


# =============================================================================
# Numeric functions
# =============================================================================


def to_human(amount: int, decimals: int) -> Decimal:
    """
    Convert base units to a human-readable Decimal.

    Example:
        >>> to_human(1_500_000, 6)
        Decimal('1.5')
    """
    if decimals <= 0:
        return Decimal(amount)
    value = (Decimal(amount) / (Decimal(10) ** decimals)).normalize()
    # normalize() renders whole numbers in exponent form (1E+3)
    if value == value.to_integral_value():
        return value.quantize(Decimal(1))
    return value


def to_base_units(value: Decimal | int | str, decimals: int) -> int:
    """
    Convert a human-readable amount to base units, truncating extra precision.

    Example:
        >>> to_base_units("1.5", 6)
        1500000
    """
    scaled = Decimal(str(value)) * (Decimal(10) ** decimals)
    return int(scaled.quantize(Decimal("1"), rounding=ROUND_DOWN))


def mul_div(a: int, b: int, denominator: int) -> int:
    """
    Compute ``a * b // denominator`` with the product formed first.

    Raises:
        ZeroDivisionError: If denominator is zero
    """
    return (a * b) // denominator
