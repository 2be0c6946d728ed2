"""Recurring series: key finalization and projection of the next due payment."""

from __future__ import annotations

from fin_migrate.shared.database import TargetStore
from fin_migrate.shared.exceptions import RowSkipped
from fin_migrate.shared.logging import Logger

from .codes import (
    REPETITIVE_TYPE_CODE,
    advance_timestamp,
    generate_id,
    ms_to_seconds,
    reoccurrence_code,
    signed_amount,
)
from .context import MigrationContext
from .source import SourceExport, SourcePlannedPaymentRule
from .writer import entity_errors


def finalize_recurring_keys(store: TargetStore, context: MigrationContext, logger: Logger) -> int:
    """Move the most recent occurrence of each series onto the canonical key."""
    renamed = 0
    for rule_id, series in context.series.items():
        if not series.pending or series.finalized:
            continue
        latest = series.pending[series.latest_index]
        with entity_errors("recurring-keys", rule_id):
            store.execute(
                "UPDATE transactions SET transaction_pk = ? WHERE transaction_pk = ?",
                (series.canonical_pk, latest),
            )
        series.finalized = True
        context.transaction_map[series.source_ids[series.latest_index]] = (series.canonical_pk,)
        renamed += 1
        logger.debug(f"Rule {rule_id}: {latest} -> {series.canonical_pk}")
    return renamed


def project_rule(store: TargetStore, rule: SourcePlannedPaymentRule, context: MigrationContext) -> str:
    """Insert the single unpaid upcoming occurrence for ``rule``."""
    start_seconds = ms_to_seconds(rule.start_date_ms)
    if start_seconds is None:
        raise RowSkipped("planned payment rule", rule.id, "missing startDate")
    wallet_fk = context.wallet_map.get(rule.account_id) if rule.account_id else None
    if wallet_fk is None:
        raise RowSkipped("planned payment rule", rule.id, "account has no migrated wallet")
    category_fk = context.resolve_category(rule.category_id)

    interval_type = rule.interval_type or "CUSTOM"
    interval_n = rule.interval_n if rule.interval_n is not None else 1

    series = context.series.get(rule.id)
    if series is not None and series.count:
        pk = series.next_placeholder()
    else:
        pk = generate_id()

    if series is not None and series.latest_date is not None:
        try:
            due = advance_timestamp(series.latest_date, interval_type, interval_n)
        except (OverflowError, ValueError) as exc:
            raise RowSkipped("planned payment rule", rule.id, "next due date is out of range") from exc
    else:
        due = start_seconds

    income = rule.type == "INCOME"
    store.insert(
        "transactions",
        {
            "transaction_pk": pk,
            "name": rule.title if rule.title is not None else context.settings.default_title,
            "amount": signed_amount(rule.amount, income),
            "note": "",
            "category_fk": category_fk,
            "wallet_fk": wallet_fk,
            "date_created": due,
            "income": int(income),
            "paid": 0,
            "created_another_future_transaction": 0,
            "type": REPETITIVE_TYPE_CODE,
            "reoccurrence": reoccurrence_code(interval_type),
            "period_length": interval_n,
            "original_date_due": due,
            "date_time_modified": context.now,
        },
    )
    return pk


def project_planned_payments(
    store: TargetStore,
    source: SourceExport,
    context: MigrationContext,
    logger: Logger,
) -> None:
    projected: set[str] = set()
    for rule in source.planned_payment_rules:
        try:
            if rule.id in projected:
                raise RowSkipped("planned payment rule", rule.id, "duplicate rule id")
            with entity_errors("planned-payments", rule.id):
                pk = project_rule(store, rule, context)
        except RowSkipped as exc:
            logger.warning(str(exc))
            context.skip(exc)
            continue
        projected.add(rule.id)
        context.inserted["planned payments"] += 1
        logger.debug(f"Projected rule {rule.id} as {pk}")
