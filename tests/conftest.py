"""Shared pytest fixtures: a migrated temp target store and a sample export."""

from __future__ import annotations

import copy
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from fin_migrate.fin_import.context import MigrationContext
from fin_migrate.fin_import.source import SourceExport, parse_source
from fin_migrate.shared import paths
from fin_migrate.shared.config import AppConfig, MigrationSettings, load_config
from fin_migrate.shared.database import TargetStore, connect, run_migrations
from fin_migrate.shared.logging import Logger, get_logger

JAN_01_2024_MS = 1704067200000
JAN_02_2024_MS = 1704153600000
JAN_03_2024_MS = 1704240000000
JAN_31_2024_MS = 1706659200000
FEB_29_2024_MS = 1709164800000
MAR_29_2024_S = 1711670400
JUN_01_2024_MS = 1717200000000

SAMPLE_EXPORT: dict[str, Any] = {
    "accounts": [
        {"id": "a1", "name": "Cash", "currency": "USD", "color": -1, "orderNum": 1},
        {"id": "a2", "name": "Bank", "currency": "EUR", "color": 0x00FF00, "orderNum": 0},
    ],
    "categories": [
        {"id": "c1", "name": "Food", "color": 0, "orderNum": 0},
        {"id": "c2", "name": "Salary", "color": 255, "orderNum": 1},
    ],
    "transactions": [
        {"id": "t1", "type": "EXPENSE", "accountId": "a1", "categoryId": "c1", "amount": 12.5,
         "dateTime": JAN_01_2024_MS, "title": "Lunch", "description": "with team"},
        {"id": "t2", "type": "EXPENSE", "accountId": "a1", "categoryId": "c1", "amount": 8,
         "dateTime": JAN_02_2024_MS, "title": "Lunch"},
        {"id": "t3", "type": "INCOME", "accountId": "a2", "categoryId": "c2", "amount": 1000,
         "dateTime": JAN_01_2024_MS, "title": "Paycheck"},
        {"id": "t4", "type": "TRANSFER", "accountId": "a2", "toAccountId": "a1", "amount": 100,
         "dateTime": JAN_03_2024_MS, "title": "Top up"},
        {"id": "t5", "type": "EXPENSE", "accountId": "a1", "categoryId": "missing", "amount": 5,
         "dateTime": JAN_02_2024_MS, "title": "Snack"},
        {"id": "t6", "type": "EXPENSE", "accountId": "a2", "categoryId": "c1", "amount": 50,
         "dateTime": JAN_31_2024_MS, "title": "Rent", "recurringRuleId": "r1"},
        {"id": "t7", "type": "EXPENSE", "accountId": "a2", "categoryId": "c1", "amount": 50,
         "dateTime": FEB_29_2024_MS, "title": "Rent", "recurringRuleId": "r1"},
        {"id": "t8", "type": "EXPENSE", "accountId": "ghost", "amount": 3, "dateTime": JAN_02_2024_MS},
    ],
    "plannedPaymentRules": [
        {"id": "r1", "type": "EXPENSE", "accountId": "a2", "categoryId": "c1", "amount": 50,
         "title": "Rent", "startDate": JAN_31_2024_MS, "intervalType": "MONTH", "intervalN": 1},
        {"id": "r2", "type": "EXPENSE", "accountId": "a1", "amount": 20, "title": "Gym",
         "startDate": JUN_01_2024_MS, "intervalType": "WEEKLY", "intervalN": 2},
    ],
}


@pytest.fixture()
def app_config(tmp_path: Path) -> AppConfig:
    """AppConfig backed by a temp SQLite database with the target schema applied."""
    env = {
        paths.DATABASE_PATH_ENV: str(tmp_path / "target.db"),
        paths.CONFIG_FILE_ENV: str(tmp_path / "absent-config.yaml"),
    }
    config = load_config(env=env)
    run_migrations(config)
    return config


@pytest.fixture()
def store(app_config: AppConfig) -> Iterator[TargetStore]:
    with connect(app_config, apply_migrations=False) as target:
        yield target


@pytest.fixture()
def settings(app_config: AppConfig) -> MigrationSettings:
    return app_config.migration


@pytest.fixture()
def logger() -> Logger:
    return get_logger(verbose=True)


@pytest.fixture()
def context(settings: MigrationSettings) -> MigrationContext:
    return MigrationContext(settings=settings, now=1_800_000_000)


@pytest.fixture()
def export_data() -> dict[str, Any]:
    return copy.deepcopy(SAMPLE_EXPORT)


@pytest.fixture()
def make_export() -> Callable[..., SourceExport]:
    """Build a SourceExport from the sample, replacing whole arrays by keyword."""

    def _make(**arrays: list[dict[str, Any]]) -> SourceExport:
        data = copy.deepcopy(SAMPLE_EXPORT)
        data.update(arrays)
        return parse_source(data)

    return _make
