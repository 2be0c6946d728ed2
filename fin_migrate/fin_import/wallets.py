"""Source accounts -> target wallets."""

from __future__ import annotations

from typing import Iterable

from fin_migrate.shared.database import TargetStore
from fin_migrate.shared.logging import Logger

from .codes import colour_hex, ms_to_seconds
from .context import MigrationContext
from .merge import WALLETS, EntityMergeResolver, merge_sort_key
from .source import SourceExport, SourceTransaction
from .writer import entity_errors


def earliest_wallet_dates(transactions: Iterable[SourceTransaction]) -> dict[str, int]:
    """Earliest transaction second per account, counting transfers into it."""
    earliest: dict[str, int] = {}

    def _note(account_id: str | None, seconds: int) -> None:
        if account_id is None:
            return
        if account_id not in earliest or seconds < earliest[account_id]:
            earliest[account_id] = seconds

    for txn in transactions:
        seconds = ms_to_seconds(txn.date_time_ms)
        if seconds is None:
            continue
        _note(txn.account_id, seconds)
        if txn.type == "TRANSFER":
            _note(txn.to_account_id, seconds)
    return earliest


def migrate_wallets(
    store: TargetStore,
    source: SourceExport,
    context: MigrationContext,
    logger: Logger,
) -> None:
    settings = context.settings
    created_dates = earliest_wallet_dates(source.transactions)

    with EntityMergeResolver(store, WALLETS, context.orders) as resolver:
        for account in sorted(source.accounts, key=merge_sort_key):
            context.wallet_names[account.id] = account.name
            currency = (account.currency or "").lower()

            def _build(pk: str, order: int) -> dict[str, object]:
                return {
                    "colour": colour_hex(account.color),
                    "icon_name": settings.default_icon,
                    "date_created": created_dates.get(account.id, context.now),
                    "currency": currency,
                    "decimals": settings.wallet_decimals,
                }

            with entity_errors("wallets", account.id):
                outcome = resolver.resolve(account.name, _build, refresh={"currency": currency})

            context.wallet_map[account.id] = outcome.pk
            if outcome.created:
                context.inserted["wallets"] += 1
                logger.debug(f"Created wallet '{account.name}' ({outcome.pk})")
            else:
                context.merged["wallets"] += 1
                logger.debug(f"Merged account '{account.name}' into wallet {outcome.pk}")
