"""Source transactions -> target transaction rows.

Three shapes come out of here:

* a transfer becomes an income row on the destination wallet plus an expense
  row on the origin wallet that points at it through ``paired_transaction_fk``;
* a transaction tied to a known planned-payment rule becomes a settled
  repetitive occurrence stored under a placeholder key (see ``RecurringSeries``);
* everything else is inserted as a plain, paid transaction.
"""

from __future__ import annotations

from typing import Any

from fin_migrate.shared.database import TargetStore
from fin_migrate.shared.exceptions import RowSkipped
from fin_migrate.shared.logging import Logger

from .codes import (
    REPETITIVE_TYPE_CODE,
    generate_id,
    ms_to_seconds,
    reoccurrence_code,
    signed_amount,
    transaction_type_code,
)
from .context import MigrationContext, RecurringSeries
from .source import SourceExport, SourceTransaction
from .writer import entity_errors

TABLE = "transactions"


def _base_row(
    txn: SourceTransaction,
    context: MigrationContext,
    *,
    wallet_fk: str,
    category_fk: str,
    date_created: int,
    note: str,
) -> dict[str, Any]:
    return {
        "name": txn.title if txn.title is not None else context.settings.default_title,
        "note": note,
        "category_fk": category_fk,
        "wallet_fk": wallet_fk,
        "date_created": date_created,
        "paid": 1,
        "date_time_modified": context.now,
    }


def _migrate_transfer(
    store: TargetStore,
    txn: SourceTransaction,
    context: MigrationContext,
    base: dict[str, Any],
) -> tuple[str, ...]:
    to_wallet_fk = context.wallet_map.get(txn.to_account_id) if txn.to_account_id else None
    if to_wallet_fk is None:
        raise RowSkipped("transfer", txn.id, "destination account has no migrated wallet")

    from_name = context.wallet_names.get(txn.account_id or "", "")
    to_name = context.wallet_names.get(txn.to_account_id or "", "")
    note = f"Transferred Balance: {from_name} -> {to_name}"
    type_code = transaction_type_code(txn.type)

    income_pk = generate_id()
    expense_pk = generate_id()
    store.insert(
        TABLE,
        {
            **base,
            "transaction_pk": income_pk,
            "amount": txn.to_amount if txn.to_amount is not None else txn.amount,
            "note": note,
            "wallet_fk": to_wallet_fk,
            "income": 1,
            "created_another_future_transaction": 0,
            "type": type_code,
        },
    )
    store.insert(
        TABLE,
        {
            **base,
            "transaction_pk": expense_pk,
            "amount": -txn.amount,
            "note": note,
            "income": 0,
            "created_another_future_transaction": 0,
            "paired_transaction_fk": income_pk,
            "type": type_code,
        },
    )
    return (income_pk, expense_pk)


def _migrate_occurrence(
    store: TargetStore,
    txn: SourceTransaction,
    context: MigrationContext,
    base: dict[str, Any],
) -> tuple[str, ...]:
    rule_id = txn.recurring_rule_id or ""
    rule = context.rules[rule_id]
    series = context.series.get(rule_id)
    if series is None:
        series = RecurringSeries(rule=rule, canonical_pk=generate_id(), marker=context.settings.series_marker)
        context.series[rule_id] = series

    income = txn.type == "INCOME"
    pk = series.add_occurrence(txn.id, base["date_created"])
    store.insert(
        TABLE,
        {
            **base,
            "transaction_pk": pk,
            "amount": signed_amount(txn.amount, income),
            "income": int(income),
            "created_another_future_transaction": 1,
            "type": REPETITIVE_TYPE_CODE,
            "period_length": rule.interval_n if rule.interval_n is not None else 1,
            "reoccurrence": reoccurrence_code(rule.interval_type or "MONTH"),
        },
    )
    return (pk,)


def _migrate_plain(
    store: TargetStore,
    txn: SourceTransaction,
    base: dict[str, Any],
) -> tuple[str, ...]:
    income = txn.type == "INCOME"
    pk = generate_id()
    store.insert(
        TABLE,
        {
            **base,
            "transaction_pk": pk,
            "amount": signed_amount(txn.amount, income),
            "income": int(income),
            "created_another_future_transaction": 0,
            "type": transaction_type_code(txn.type),
        },
    )
    return (pk,)


def migrate_transaction(store: TargetStore, txn: SourceTransaction, context: MigrationContext) -> tuple[str, ...]:
    """Insert the row(s) for one source transaction and return their keys.

    Raises ``RowSkipped`` when the wallet or timestamp cannot be resolved.
    """
    wallet_fk = context.wallet_map.get(txn.account_id) if txn.account_id else None
    if wallet_fk is None:
        raise RowSkipped("transaction", txn.id, "account has no migrated wallet")
    if txn.date_time_ms is None:
        raise RowSkipped("transaction", txn.id, "missing dateTime")

    base = _base_row(
        txn,
        context,
        wallet_fk=wallet_fk,
        category_fk=context.resolve_category(txn.category_id),
        date_created=ms_to_seconds(txn.date_time_ms) or context.now,
        note=txn.description or "",
    )

    if txn.type == "TRANSFER":
        return _migrate_transfer(store, txn, context, base)
    if txn.recurring_rule_id is not None and txn.recurring_rule_id in context.rules:
        return _migrate_occurrence(store, txn, context, base)
    return _migrate_plain(store, txn, base)


def migrate_transactions(
    store: TargetStore,
    source: SourceExport,
    context: MigrationContext,
    logger: Logger,
) -> None:
    context.rules = {rule.id: rule for rule in source.planned_payment_rules}

    for txn in source.transactions:
        try:
            with entity_errors("transactions", txn.id):
                keys = migrate_transaction(store, txn, context)
        except RowSkipped as exc:
            logger.warning(str(exc))
            context.skip(exc)
            continue
        context.transaction_map[txn.id] = keys
        context.inserted["transactions"] += len(keys)
