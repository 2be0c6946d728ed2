"""Source categories -> target categories, plus the fallback category."""

from __future__ import annotations

from typing import Iterable

from fin_migrate.shared.database import TargetStore
from fin_migrate.shared.logging import Logger

from .codes import colour_hex, ms_to_seconds
from .context import MigrationContext
from .merge import CATEGORIES, EntityMergeResolver, MergeOutcome, merge_sort_key
from .source import SourceCategory, SourceExport, SourceTransaction
from .writer import entity_errors


def income_category_ids(transactions: Iterable[SourceTransaction]) -> set[str]:
    return {
        txn.category_id
        for txn in transactions
        if txn.type == "INCOME" and txn.category_id is not None
    }


def earliest_category_dates(transactions: Iterable[SourceTransaction]) -> dict[str, int]:
    earliest: dict[str, int] = {}
    for txn in transactions:
        seconds = ms_to_seconds(txn.date_time_ms)
        if txn.category_id is None or seconds is None:
            continue
        if txn.category_id not in earliest or seconds < earliest[txn.category_id]:
            earliest[txn.category_id] = seconds
    return earliest


def find_default_category(categories: Iterable[SourceCategory], default_name: str) -> SourceCategory | None:
    wanted = default_name.strip().lower()
    for category in categories:
        if category.name.strip().lower() == wanted:
            return category
    return None


def _record(context: MigrationContext, logger: Logger, name: str, outcome: MergeOutcome) -> None:
    if outcome.created:
        context.inserted["categories"] += 1
        logger.debug(f"Created category '{name}' ({outcome.pk})")
    else:
        context.merged["categories"] += 1
        logger.debug(f"Merged category '{name}' into {outcome.pk}")


def migrate_categories(
    store: TargetStore,
    source: SourceExport,
    context: MigrationContext,
    logger: Logger,
) -> None:
    settings = context.settings
    income_ids = income_category_ids(source.transactions)
    created_dates = earliest_category_dates(source.transactions)
    ordered = sorted(source.categories, key=merge_sort_key)
    explicit_default = find_default_category(ordered, settings.default_category_name)

    with EntityMergeResolver(store, CATEGORIES, context.orders) as resolver:
        if explicit_default is None:
            def _build_default(pk: str, order: int) -> dict[str, object]:
                return {
                    "colour": settings.default_category_colour,
                    "icon_name": settings.default_icon,
                    "emoji_icon_name": None,
                    "date_created": context.now,
                    "income": 0,
                    "method_added": None,
                    "main_category_pk": None,
                }

            with entity_errors("categories", settings.default_category_name):
                outcome = resolver.resolve(settings.default_category_name, _build_default)
            context.default_category_pk = outcome.pk
            _record(context, logger, settings.default_category_name, outcome)

        for category in ordered:
            colour = colour_hex(category.color)

            def _build(pk: str, order: int) -> dict[str, object]:
                return {
                    "colour": colour,
                    "icon_name": settings.default_icon,
                    "emoji_icon_name": None,
                    "date_created": created_dates.get(category.id, context.now),
                    "income": 1 if category.id in income_ids else 0,
                    "method_added": None,
                    "main_category_pk": None,
                }

            with entity_errors("categories", category.id):
                outcome = resolver.resolve(category.name, _build, refresh={"colour": colour})

            context.category_map[category.id] = outcome.pk
            if category is explicit_default:
                context.default_category_pk = outcome.pk
            _record(context, logger, category.name, outcome)
