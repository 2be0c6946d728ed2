"""Fixed lookup tables and value conversions for the target schema."""

from __future__ import annotations

import time
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import TypeVar

from dateutil.relativedelta import relativedelta

D = TypeVar("D", date, datetime)

REOCCURRENCE_CODES: dict[str, int] = {
    "CUSTOM": 0,
    "DAILY": 1,
    "WEEKLY": 2,
    "MONTH": 3,
    "YEAR": 4,
}

# EXPENSE, INCOME and TRANSFER are plain transactions and carry no type code.
TRANSACTION_TYPE_CODES: dict[str, int | None] = {
    "UPCOMING": 0,
    "SUBSCRIPTION": 1,
    "REPETITIVE": 2,
    "CREDIT": 3,
    "DEBT": 4,
    "EXPENSE": None,
    "INCOME": None,
    "TRANSFER": None,
}

REPETITIVE_TYPE_CODE = TRANSACTION_TYPE_CODES["REPETITIVE"]

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def colour_hex(value: int) -> str:
    """Convert a signed ARGB integer into the ``0xffRRGGBB`` form.

    >>> colour_hex(-1)
    '0xffffffff'
    """
    # Masking to 32 bits folds negative values onto their two's-complement form.
    value &= 0xFFFFFFFF
    return f"0xff{value & 0xFFFFFF:06x}"


def reoccurrence_code(interval_type: str | None) -> int:
    return REOCCURRENCE_CODES.get((interval_type or "CUSTOM").upper(), 0)


def transaction_type_code(txn_type: str) -> int | None:
    return TRANSACTION_TYPE_CODES.get(txn_type.upper(), 0)


def signed_amount(amount: float, income: bool) -> float:
    """Expenses are stored negative, income positive."""
    return amount if income else -amount


def generate_id() -> str:
    return str(uuid.uuid4())


def now_seconds() -> int:
    return int(time.time())


def ms_to_seconds(value_ms: int | None) -> int | None:
    if value_ms is None:
        return None
    return value_ms // 1000


def advance_date(value: D, interval_type: str | None, interval_n: int) -> D:
    """Move ``value`` forward by one recurrence interval.

    Month and year steps clamp to the last valid day of the resulting month, so
    Jan 31 + 1 month lands on the last day of February. CUSTOM (or no interval)
    leaves the date unchanged.
    """
    kind = (interval_type or "CUSTOM").upper()
    if kind == "DAILY":
        return value + timedelta(days=interval_n)
    if kind == "WEEKLY":
        return value + timedelta(days=7 * interval_n)
    if kind == "MONTH":
        return value + relativedelta(months=interval_n)
    if kind == "YEAR":
        return value + relativedelta(years=interval_n)
    return value


def advance_timestamp(seconds: int, interval_type: str | None, interval_n: int) -> int:
    """Advance a Unix timestamp (seconds, UTC calendar) by one interval.

    Raises ``OverflowError`` or ``ValueError`` when the result falls outside
    the years 1 to 9999.
    """
    moment = EPOCH + timedelta(seconds=seconds)
    return (advance_date(moment, interval_type, interval_n) - EPOCH) // timedelta(seconds=1)
