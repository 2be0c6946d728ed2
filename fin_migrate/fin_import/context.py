"""Explicit state threaded from one migration stage to the next."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

from fin_migrate.shared.config import MigrationSettings
from fin_migrate.shared.exceptions import RowSkipped

from .codes import now_seconds
from .ordering import OrderAllocator
from .source import SourcePlannedPaymentRule


@dataclass(slots=True)
class RecurringSeries:
    """Historical occurrences of one planned-payment rule.

    Rows are inserted under placeholder keys (canonical key + marker + running
    count); ``pending`` keeps them in insertion order so nothing ever has to be
    parsed back out of a key.
    """

    rule: SourcePlannedPaymentRule
    canonical_pk: str
    marker: str
    pending: list[str] = field(default_factory=list)
    source_ids: list[str] = field(default_factory=list)
    latest_date: int | None = None
    latest_index: int = -1
    finalized: bool = False

    @property
    def count(self) -> int:
        return len(self.pending)

    def placeholder(self, occurrence: int) -> str:
        return f"{self.canonical_pk}{self.marker}{occurrence}"

    def add_occurrence(self, source_id: str, date_created: int) -> str:
        pk = self.placeholder(self.count + 1)
        self.pending.append(pk)
        self.source_ids.append(source_id)
        if self.latest_date is None or date_created >= self.latest_date:
            self.latest_date = date_created
            self.latest_index = len(self.pending) - 1
        return pk

    def next_placeholder(self) -> str:
        return self.placeholder(self.count + 1)


@dataclass(slots=True)
class MigrationContext:
    settings: MigrationSettings
    now: int = field(default_factory=now_seconds)
    orders: OrderAllocator = field(default_factory=OrderAllocator)
    wallet_map: dict[str, str] = field(default_factory=dict)
    wallet_names: dict[str, str] = field(default_factory=dict)
    category_map: dict[str, str] = field(default_factory=dict)
    default_category_pk: str | None = None
    rules: dict[str, SourcePlannedPaymentRule] = field(default_factory=dict)
    series: dict[str, RecurringSeries] = field(default_factory=dict)
    transaction_map: dict[str, tuple[str, ...]] = field(default_factory=dict)
    skipped: list[RowSkipped] = field(default_factory=list)
    inserted: Counter[str] = field(default_factory=Counter)
    merged: Counter[str] = field(default_factory=Counter)

    def resolve_category(self, category_id: str | None) -> str:
        if category_id is not None and category_id in self.category_map:
            return self.category_map[category_id]
        if self.default_category_pk is None:
            raise RuntimeError("Default category must be resolved before transactions")
        return self.default_category_pk

    def skip(self, exc: RowSkipped) -> None:
        self.skipped.append(exc)
