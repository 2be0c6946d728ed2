from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from fin_migrate.fin_import import parse_source, run_migration
from fin_migrate.fin_import.source import SourceExport
from fin_migrate.shared.config import MigrationSettings
from fin_migrate.shared.database import TargetStore
from fin_migrate.shared.exceptions import DatabaseError, StageFailure
from fin_migrate.shared.logging import Logger

TABLES = ("wallets", "categories", "transactions", "associated_titles")


def _counts(store: TargetStore) -> dict[str, int]:
    return {table: store.count(table) for table in TABLES}


def test_full_run_populates_every_table(
    store: TargetStore,
    logger: Logger,
    settings: MigrationSettings,
    make_export: Callable[..., SourceExport],
) -> None:
    result = run_migration(store, make_export(), logger, settings)

    assert _counts(store) == {
        "wallets": 2,
        "categories": 3,
        "transactions": 10,
        "associated_titles": 4,
    }
    assert result.recurring_keys_finalized == 1
    assert result.skipped == 1
    assert result.context.inserted["planned payments"] == 2
    assert sum(result.purged.values()) == 0
    assert not store.in_transaction

    # The latest settled occurrence moved to the canonical key; the earlier one and
    # the projected payment stay on keys rooted at it.
    placeholders = store.execute(
        "SELECT transaction_pk, paid FROM transactions WHERE transaction_pk LIKE '%::predict::%'"
    )
    assert len(placeholders) == 2
    assert {row["paid"] for row in placeholders} == {0, 1}
    canonical = result.context.series["r1"].canonical_pk
    assert all(row["transaction_pk"].startswith(canonical) for row in placeholders)
    assert store.count("transactions", "transaction_pk = ?", (canonical,)) == 1


def test_rerun_replaces_previous_migration(
    store: TargetStore,
    logger: Logger,
    settings: MigrationSettings,
    make_export: Callable[..., SourceExport],
) -> None:
    store.insert(
        "wallets",
        {"wallet_pk": "1", "name": "Cash", "date_created": 0, "order": 0, "currency": "usd"},
    )
    store.insert("categories", {"category_pk": "1", "name": "Hobbies", "date_created": 0, "order": 0})

    first = run_migration(store, make_export(), logger, settings)
    first_counts = _counts(store)
    second = run_migration(store, make_export(), logger, settings)

    assert _counts(store) == first_counts
    assert first_counts["wallets"] == 2
    assert first_counts["categories"] == 4
    assert sum(second.purged.values()) == sum(first_counts.values()) - 2
    assert second.context.wallet_map["a1"] == "1"
    assert store.count("wallets", "wallet_pk = '1'") == 1
    assert store.count("categories", "category_pk = '1'") == 1
    orders = [row[0] for row in store.execute('SELECT "order" FROM categories ORDER BY "order"')]
    assert orders == [0, 1, 2, 3]
    assert first.context.inserted == second.context.inserted


def test_failed_stage_keeps_committed_stages(
    monkeypatch: pytest.MonkeyPatch,
    store: TargetStore,
    logger: Logger,
    settings: MigrationSettings,
    make_export: Callable[..., SourceExport],
) -> None:
    def broken_titles(target: TargetStore, *_args: object) -> None:
        target.insert(
            "associated_titles",
            {"associated_title_pk": "x", "category_fk": "nope", "title": "t", "date_created": 0, "order": 0},
        )

    monkeypatch.setattr("fin_migrate.fin_import.pipeline.dedupe_associated_titles", broken_titles)

    with pytest.raises(StageFailure) as excinfo:
        run_migration(store, make_export(), logger, settings)

    assert excinfo.value.stage == "associated-titles"
    assert not store.in_transaction
    counts = _counts(store)
    assert counts["associated_titles"] == 0
    assert counts["transactions"] == 10
    assert counts["wallets"] == 2


def test_failure_in_first_stage_stops_the_run(
    monkeypatch: pytest.MonkeyPatch,
    store: TargetStore,
    logger: Logger,
    settings: MigrationSettings,
    make_export: Callable[..., SourceExport],
) -> None:
    def failing_purge(*_args: object) -> dict[str, int]:
        raise DatabaseError("locked")

    monkeypatch.setattr("fin_migrate.fin_import.pipeline.purge_stale_rows", failing_purge)

    with pytest.raises(StageFailure, match="locked"):
        run_migration(store, make_export(), logger, settings)

    assert sum(_counts(store).values()) == 0


def test_millisecond_field_names_migrate_like_older_names(
    store: TargetStore,
    logger: Logger,
    settings: MigrationSettings,
    export_data: dict[str, Any],
) -> None:
    renames = {"dateTime": "dateTimeMs", "startDate": "startDateMs", "color": "colorInt"}
    for records in export_data.values():
        for record in records:
            for old, new in renames.items():
                if old in record:
                    record[new] = record.pop(old)

    result = run_migration(store, parse_source(export_data), logger, settings)

    assert _counts(store)["transactions"] == 10
    assert result.skipped == 1
    colours = {row["name"]: row["colour"] for row in store.execute("SELECT name, colour FROM wallets")}
    assert colours == {"Bank": "0xff00ff00", "Cash": "0xffffffff"}
