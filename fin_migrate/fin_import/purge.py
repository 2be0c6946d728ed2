"""Removal of rows written by an earlier migration run."""

from __future__ import annotations

from fin_migrate.shared.database import TargetStore
from fin_migrate.shared.logging import Logger

from .writer import entity_errors

# Children before parents so foreign keys hold after every delete.
PURGE_TABLES: tuple[tuple[str, str], ...] = (
    ("associated_titles", "associated_title_pk"),
    ("transactions", "transaction_pk"),
    ("categories", "category_pk"),
    ("wallets", "wallet_pk"),
)

# Matches keys containing any non-digit; native rows use purely numeric keys.
MIGRATED_KEY_CLAUSE = "{pk} GLOB '*[^0-9]*'"


def purge_stale_rows(store: TargetStore, logger: Logger) -> dict[str, int]:
    """Delete migration-origin rows from every target table."""
    removed: dict[str, int] = {}
    for table, pk_column in PURGE_TABLES:
        clause = MIGRATED_KEY_CLAUSE.format(pk=pk_column)
        with entity_errors("purge", table):
            removed[table] = store.count(table, clause)
            store.execute(f"DELETE FROM {table} WHERE {clause}")
        logger.debug(f"Cleared {removed[table]} stale row(s) from {table}")
    return removed
