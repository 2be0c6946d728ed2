from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from fin_migrate.fin_import.source import load_source, parse_source
from fin_migrate.shared.exceptions import ValidationError


def test_parse_source_builds_typed_records(export_data: dict[str, Any]) -> None:
    export = parse_source(export_data)

    assert export.counts() == {
        "accounts": 2,
        "categories": 2,
        "transactions": 8,
        "plannedPaymentRules": 2,
    }
    transfer = next(txn for txn in export.transactions if txn.id == "t4")
    assert transfer.type == "TRANSFER"
    assert transfer.to_account_id == "a1"
    assert transfer.category_id is None
    assert transfer.to_amount is None

    rule = export.planned_payment_rules[0]
    assert rule.interval_type == "MONTH"
    assert rule.interval_n == 1
    assert rule.start_date_ms == 1706659200000


def test_parse_source_applies_defaults() -> None:
    export = parse_source(
        {
            "accounts": [{"id": 7}],
            "categories": [],
            "transactions": [{"id": "t", "type": "income", "accountId": 7}],
            "plannedPaymentRules": [{"id": "r"}],
        }
    )
    account = export.accounts[0]
    assert account.id == "7"
    assert account.name == ""
    assert account.color == 0
    txn = export.transactions[0]
    assert txn.type == "INCOME"
    assert txn.account_id == "7"
    assert txn.amount == 0.0
    assert txn.date_time_ms is None
    rule = export.planned_payment_rules[0]
    assert rule.type == "EXPENSE"
    assert rule.interval_type is None


@pytest.mark.parametrize("missing", ["accounts", "transactions", "categories", "plannedPaymentRules"])
def test_missing_required_key_is_rejected(export_data: dict[str, Any], missing: str) -> None:
    del export_data[missing]
    with pytest.raises(ValidationError, match=missing):
        parse_source(export_data)


@pytest.mark.parametrize(
    "key, record, fragment",
    [
        ("transactions", {"id": "x", "type": "REFUND"}, "unknown type"),
        ("transactions", {"id": "x", "amount": "12"}, "'amount' must be numeric"),
        ("accounts", {"name": "No id"}, "invalid 'id'"),
        ("plannedPaymentRules", {"id": "r", "intervalType": "FORTNIGHT"}, "unknown intervalType"),
        ("categories", "not-an-object", "must be an object"),
    ],
)
def test_invalid_records_are_rejected(
    export_data: dict[str, Any], key: str, record: Any, fragment: str
) -> None:
    export_data[key] = [record]
    with pytest.raises(ValidationError, match=fragment):
        parse_source(export_data)


def test_non_object_root_is_rejected() -> None:
    with pytest.raises(ValidationError):
        parse_source([1, 2, 3])


def test_load_source_reads_file_with_bom(tmp_path: Path, export_data: dict[str, Any]) -> None:
    path = tmp_path / "export.json"
    path.write_text(json.dumps(export_data), encoding="utf-8-sig")
    export = load_source(path)
    assert len(export.accounts) == 2


def test_load_source_reports_bad_json_and_missing_file(tmp_path: Path) -> None:
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValidationError, match="not valid JSON"):
        load_source(broken)
    with pytest.raises(ValidationError, match="not found"):
        load_source(tmp_path / "absent.json")


def test_millisecond_field_names_are_read(export_data: dict[str, Any]) -> None:
    export_data["accounts"] = [{"id": "a1", "name": "Cash", "colorInt": 0x00FF00}]
    export_data["categories"] = [{"id": "c1", "name": "Food", "colorInt": -1}]
    export_data["transactions"] = [{"id": "t1", "accountId": "a1", "dateTimeMs": 1704067200000}]
    export_data["plannedPaymentRules"] = [{"id": "r1", "accountId": "a1", "startDateMs": 1706659200000}]

    export = parse_source(export_data)

    assert export.accounts[0].color == 0x00FF00
    assert export.categories[0].color == -1
    assert export.transactions[0].date_time_ms == 1704067200000
    assert export.planned_payment_rules[0].start_date_ms == 1706659200000


def test_millisecond_field_names_win_over_older_names(export_data: dict[str, Any]) -> None:
    export_data["transactions"] = [
        {"id": "t1", "accountId": "a1", "dateTimeMs": 2000, "dateTime": 1000}
    ]
    assert parse_source(export_data).transactions[0].date_time_ms == 2000


@pytest.mark.parametrize(
    "key, record, fragment",
    [
        ("transactions", {"id": "x", "dateTimeMs": 10**25}, "outside the supported date range"),
        ("transactions", {"id": "x", "dateTime": 253402300800000}, "outside the supported date range"),
        ("plannedPaymentRules", {"id": "r", "startDateMs": -10**20}, "outside the supported date range"),
        ("transactions", {"id": "x", "amount": float("inf")}, "finite"),
        ("transactions", {"id": "x", "amount": 10**400}, "too large"),
        ("accounts", {"id": "a", "orderNum": float("nan")}, "finite"),
        ("plannedPaymentRules", {"id": "r", "intervalN": -1}, "intervalN"),
        ("plannedPaymentRules", {"id": "r", "intervalN": 2**40}, "intervalN"),
    ],
)
def test_out_of_range_numbers_are_rejected(
    export_data: dict[str, Any], key: str, record: Any, fragment: str
) -> None:
    export_data[key] = [record]
    with pytest.raises(ValidationError, match=fragment):
        parse_source(export_data)


def test_load_source_rejects_invalid_utf8(tmp_path: Path) -> None:
    path = tmp_path / "latin1.json"
    path.write_bytes(b'{"accounts": ["\xff"]}')
    with pytest.raises(ValidationError, match="UTF-8"):
        load_source(path)
