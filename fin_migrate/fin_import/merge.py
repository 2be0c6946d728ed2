"""Name-based merge of incoming entities onto existing target rows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol

from fin_migrate.shared.database import TargetStore

from .codes import generate_id
from .ordering import OrderAllocator


class Orderable(Protocol):
    name: str
    order_num: float


@dataclass(frozen=True, slots=True)
class MergeTable:
    table: str
    pk_column: str


@dataclass(frozen=True, slots=True)
class MergeOutcome:
    pk: str
    created: bool


WALLETS = MergeTable(table="wallets", pk_column="wallet_pk")
CATEGORIES = MergeTable(table="categories", pk_column="category_pk")

RowBuilder = Callable[[str, int], Mapping[str, Any]]


def merge_sort_key(entity: Orderable) -> tuple[float, str]:
    return (entity.order_num, (entity.name or "").lower())


class EntityMergeResolver:
    """Reuse a row whose name matches case-insensitively, or insert a new one.

    Matching rows keep their key, order and creation date; only the
    ``refresh`` columns are rewritten. New rows get a fresh UUID key and the
    next free display order.
    """

    def __init__(self, store: TargetStore, target: MergeTable, orders: OrderAllocator) -> None:
        self.store = store
        self.target = target
        self.orders = orders
        self._lookup = store.prepare(
            f"SELECT {target.pk_column} FROM {target.table} "
            "WHERE lower(name) = lower(?) ORDER BY rowid LIMIT 1"
        )

    def resolve(
        self,
        name: str,
        build_row: RowBuilder,
        refresh: Mapping[str, Any] | None = None,
    ) -> MergeOutcome:
        existing = self._lookup.lookup_one((name,))
        if existing is not None:
            pk = str(existing[0])
            if refresh:
                assignments = ", ".join(f'"{column}" = ?' for column in refresh)
                self.store.execute(
                    f"UPDATE {self.target.table} SET {assignments} WHERE {self.target.pk_column} = ?",
                    [*refresh.values(), pk],
                )
            return MergeOutcome(pk=pk, created=False)

        pk = generate_id()
        order = self.orders.next_order(self.store, self.target.table)
        row = {self.target.pk_column: pk, "name": name, "order": order}
        row.update(build_row(pk, order))
        self.store.insert(self.target.table, row)
        return MergeOutcome(pk=pk, created=True)

    def release(self) -> None:
        self._lookup.release()

    def __enter__(self) -> EntityMergeResolver:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()
