"""Title suggestions per category, derived from transaction titles."""

from __future__ import annotations

from collections import defaultdict

from fin_migrate.shared.database import TargetStore
from fin_migrate.shared.logging import Logger

from .codes import generate_id
from .context import MigrationContext
from .source import SourceExport
from .writer import entity_errors

TABLE = "associated_titles"


def dedupe_associated_titles(
    store: TargetStore,
    source: SourceExport,
    context: MigrationContext,
    logger: Logger,
) -> None:
    """Insert one associated title per distinct (category, title) pair.

    Pairs already present in the store, or already handled earlier in this
    run, are left alone.
    """
    seen: defaultdict[str, set[str]] = defaultdict(set)
    with store.prepare(
        f"SELECT 1 FROM {TABLE} WHERE title = ? AND category_fk = ? LIMIT 1"
    ) as existing:
        for txn in source.transactions:
            title = txn.title
            if txn.category_id is None or not title:
                continue
            category_pk = context.resolve_category(txn.category_id)
            if title in seen[category_pk]:
                continue
            seen[category_pk].add(title)

            with entity_errors("associated-titles", txn.id):
                if existing.lookup_one((title, category_pk)) is not None:
                    logger.debug(f"Title '{title}' already suggested for {category_pk}")
                    continue
                store.insert(
                    TABLE,
                    {
                        "associated_title_pk": generate_id(),
                        "title": title,
                        "category_fk": category_pk,
                        "date_created": context.now,
                        "order": context.orders.next_order(store, TABLE),
                    },
                )
            context.inserted[TABLE] += 1
