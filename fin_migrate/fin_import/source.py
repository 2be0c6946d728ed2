"""Source export record types and the JSON loader that validates them."""

from __future__ import annotations

import json
import math
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Mapping, TextIO, TypeVar

from fin_migrate.shared.exceptions import ValidationError

T = TypeVar("T")

REQUIRED_KEYS = ("accounts", "transactions", "categories", "plannedPaymentRules")

TRANSACTION_TYPES = frozenset(
    {"EXPENSE", "INCOME", "TRANSFER", "UPCOMING", "SUBSCRIPTION", "REPETITIVE", "CREDIT", "DEBT"}
)
INTERVAL_TYPES = frozenset({"CUSTOM", "DAILY", "WEEKLY", "MONTH", "YEAR"})

# Millisecond timestamps must land on a calendar date between years 1 and 9999 (UTC).
MIN_TIMESTAMP_MS = int(datetime(1, 1, 1, tzinfo=timezone.utc).timestamp()) * 1000
MAX_TIMESTAMP_MS = int(datetime(9999, 12, 31, 23, 59, 59, tzinfo=timezone.utc).timestamp()) * 1000 + 999
MAX_INTERVAL_N = 2**31 - 1


@dataclass(frozen=True, slots=True)
class SourceAccount:
    id: str
    name: str
    currency: str | None = None
    color: int = 0
    order_num: float = 0


@dataclass(frozen=True, slots=True)
class SourceCategory:
    id: str
    name: str
    color: int = 0
    order_num: float = 0


@dataclass(frozen=True, slots=True)
class SourceTransaction:
    id: str
    type: str = "EXPENSE"
    account_id: str | None = None
    to_account_id: str | None = None
    category_id: str | None = None
    amount: float = 0.0
    to_amount: float | None = None
    date_time_ms: int | None = None
    title: str | None = None
    description: str | None = None
    recurring_rule_id: str | None = None


@dataclass(frozen=True, slots=True)
class SourcePlannedPaymentRule:
    id: str
    type: str = "EXPENSE"
    account_id: str | None = None
    category_id: str | None = None
    amount: float = 0.0
    title: str | None = None
    start_date_ms: int | None = None
    interval_type: str | None = None
    interval_n: int | None = None


@dataclass(frozen=True, slots=True)
class SourceExport:
    accounts: list[SourceAccount]
    categories: list[SourceCategory]
    transactions: list[SourceTransaction]
    planned_payment_rules: list[SourcePlannedPaymentRule]

    def counts(self) -> dict[str, int]:
        return {
            "accounts": len(self.accounts),
            "categories": len(self.categories),
            "transactions": len(self.transactions),
            "plannedPaymentRules": len(self.planned_payment_rules),
        }


# ---------------------------------------------------------------------------
# Field coercion


def _require_id(raw: Mapping[str, Any]) -> str:
    value = raw.get("id")
    if isinstance(value, bool) or not isinstance(value, (str, int)) or str(value).strip() == "":
        raise ValueError("missing or invalid 'id'")
    return str(value)


def _optional_ref(raw: Mapping[str, Any], key: str) -> str | None:
    value = raw.get(key)
    if value is None or value == "":
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ValueError(f"'{key}' must be a string identifier")
    return str(value)


def _optional_text(raw: Mapping[str, Any], key: str) -> str | None:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string")
    return value


def _optional_number(raw: Mapping[str, Any], key: str) -> float | None:
    value = raw.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{key}' must be numeric")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"'{key}' must be a finite number")
    return value


def _optional_int(raw: Mapping[str, Any], key: str) -> int | None:
    value = _optional_number(raw, key)
    return None if value is None else int(value)


def _optional_float(raw: Mapping[str, Any], key: str) -> float | None:
    value = _optional_number(raw, key)
    if value is None:
        return None
    try:
        return float(value)
    except OverflowError as exc:
        raise ValueError(f"'{key}' is too large") from exc


def _optional_timestamp(raw: Mapping[str, Any], key: str) -> int | None:
    value = _optional_int(raw, key)
    if value is not None and not MIN_TIMESTAMP_MS <= value <= MAX_TIMESTAMP_MS:
        raise ValueError(f"'{key}' is outside the supported date range")
    return value


def _optional_count(raw: Mapping[str, Any], key: str) -> int | None:
    value = _optional_int(raw, key)
    if value is not None and not 0 <= value <= MAX_INTERVAL_N:
        raise ValueError(f"'{key}' must be between 0 and {MAX_INTERVAL_N}")
    return value


def _field(raw: Mapping[str, Any], key: str, legacy_key: str) -> str:
    """Return ``key`` unless only the older export name is present."""
    if key not in raw and legacy_key in raw:
        return legacy_key
    return key


def _upper_choice(raw: Mapping[str, Any], key: str, choices: frozenset[str], default: str | None) -> str | None:
    value = _optional_text(raw, key)
    if value is None or not value.strip():
        return default
    normalized = value.strip().upper()
    if normalized not in choices:
        raise ValueError(f"unknown {key} '{value}'")
    return normalized


# ---------------------------------------------------------------------------
# Record parsers


def _parse_account(raw: Mapping[str, Any]) -> SourceAccount:
    currency = _optional_text(raw, "currency")
    return SourceAccount(
        id=_require_id(raw),
        name=_optional_text(raw, "name") or "",
        currency=currency,
        color=_optional_int(raw, _field(raw, "colorInt", "color")) or 0,
        order_num=_optional_number(raw, "orderNum") or 0,
    )


def _parse_category(raw: Mapping[str, Any]) -> SourceCategory:
    return SourceCategory(
        id=_require_id(raw),
        name=_optional_text(raw, "name") or "",
        color=_optional_int(raw, _field(raw, "colorInt", "color")) or 0,
        order_num=_optional_number(raw, "orderNum") or 0,
    )


def _parse_transaction(raw: Mapping[str, Any]) -> SourceTransaction:
    return SourceTransaction(
        id=_require_id(raw),
        type=_upper_choice(raw, "type", TRANSACTION_TYPES, "EXPENSE") or "EXPENSE",
        account_id=_optional_ref(raw, "accountId"),
        to_account_id=_optional_ref(raw, "toAccountId"),
        category_id=_optional_ref(raw, "categoryId"),
        amount=_optional_float(raw, "amount") or 0.0,
        to_amount=_optional_float(raw, "toAmount"),
        date_time_ms=_optional_timestamp(raw, _field(raw, "dateTimeMs", "dateTime")),
        title=_optional_text(raw, "title"),
        description=_optional_text(raw, "description"),
        recurring_rule_id=_optional_ref(raw, "recurringRuleId"),
    )


def _parse_rule(raw: Mapping[str, Any]) -> SourcePlannedPaymentRule:
    return SourcePlannedPaymentRule(
        id=_require_id(raw),
        type=_upper_choice(raw, "type", TRANSACTION_TYPES, "EXPENSE") or "EXPENSE",
        account_id=_optional_ref(raw, "accountId"),
        category_id=_optional_ref(raw, "categoryId"),
        amount=_optional_float(raw, "amount") or 0.0,
        title=_optional_text(raw, "title"),
        start_date_ms=_optional_timestamp(raw, _field(raw, "startDateMs", "startDate")),
        interval_type=_upper_choice(raw, "intervalType", INTERVAL_TYPES, None),
        interval_n=_optional_count(raw, "intervalN"),
    )


def _parse_array(
    data: Mapping[str, Any],
    key: str,
    parser: Callable[[Mapping[str, Any]], T],
    source_name: str,
) -> list[T]:
    items = data[key]
    if not isinstance(items, list):
        raise ValidationError(f"{source_name}: '{key}' must be an array")
    records: list[T] = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise ValidationError(f"{source_name}: {key}[{index}] must be an object")
        try:
            records.append(parser(item))
        except ValueError as exc:
            raise ValidationError(f"{source_name}: {key}[{index}]: {exc}") from exc
    return records


def parse_source(data: Any, *, source_name: str = "source") -> SourceExport:
    """Validate a decoded export and return typed records.

    Raises ``ValidationError`` when a required array is missing or any record is
    structurally invalid; nothing is returned for partially valid input.
    """
    if not isinstance(data, Mapping):
        raise ValidationError(f"{source_name}: export must be a JSON object")
    missing = [key for key in REQUIRED_KEYS if key not in data]
    if missing:
        raise ValidationError(f"{source_name}: missing required key(s): {', '.join(missing)}")

    return SourceExport(
        accounts=_parse_array(data, "accounts", _parse_account, source_name),
        categories=_parse_array(data, "categories", _parse_category, source_name),
        transactions=_parse_array(data, "transactions", _parse_transaction, source_name),
        planned_payment_rules=_parse_array(data, "plannedPaymentRules", _parse_rule, source_name),
    )


def load_source_from_stream(stream: TextIO, source_name: str = "stdin") -> SourceExport:
    try:
        data = json.load(stream)
    except UnicodeDecodeError as exc:
        raise ValidationError(f"{source_name}: not valid UTF-8 text: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ValidationError(f"{source_name}: not valid JSON: {exc}") from exc
    return parse_source(data, source_name=source_name)


def load_source(path: str | Path | None = None) -> SourceExport:
    """Load an export from a file path, or stdin when ``path`` is None or '-'."""
    if path is None or str(path) == "-":
        return load_source_from_stream(sys.stdin, "stdin")

    file_path = Path(path).expanduser()
    if not file_path.exists():
        raise ValidationError(f"Source file not found: {file_path}")
    with file_path.open("r", encoding="utf-8-sig") as handle:
        return load_source_from_stream(handle, str(file_path))


__all__ = [
    "SourceAccount",
    "SourceCategory",
    "SourceExport",
    "SourcePlannedPaymentRule",
    "SourceTransaction",
    "load_source",
    "load_source_from_stream",
    "parse_source",
]
