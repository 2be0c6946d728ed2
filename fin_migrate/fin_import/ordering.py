"""Display-order allocation for tables with a dense ``order`` column."""

from __future__ import annotations

from fin_migrate.shared.database import TargetStore

ORDERED_TABLES = frozenset({"wallets", "categories", "associated_titles"})


class OrderAllocator:
    """Hand out the lowest unused ``order`` value per table.

    Used values are loaded once per table with a single query; every value
    handed out afterwards is remembered as taken for the rest of the run.
    """

    def __init__(self) -> None:
        self._taken: dict[str, set[int]] = {}

    def _load(self, store: TargetStore, table: str) -> set[int]:
        if table not in ORDERED_TABLES:
            raise ValueError(f"Table '{table}' has no order column")
        taken = self._taken.get(table)
        if taken is None:
            rows = store.execute(f'SELECT DISTINCT "order" FROM {table} WHERE "order" IS NOT NULL')
            taken = {int(row[0]) for row in rows}
            self._taken[table] = taken
        return taken

    def peek(self, store: TargetStore, table: str) -> int:
        taken = self._load(store, table)
        candidate = 0
        while candidate in taken:
            candidate += 1
        return candidate

    def next_order(self, store: TargetStore, table: str) -> int:
        candidate = self.peek(store, table)
        self._taken[table].add(candidate)
        return candidate

    def reset(self, table: str | None = None) -> None:
        if table is None:
            self._taken.clear()
        else:
            self._taken.pop(table, None)
