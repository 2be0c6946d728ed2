"""Seven-stage migration of a source export into the target store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from fin_migrate.shared.config import MigrationSettings
from fin_migrate.shared.database import TargetStore
from fin_migrate.shared.logging import Logger

from .categories import migrate_categories
from .context import MigrationContext
from .purge import purge_stale_rows
from .recurring import finalize_recurring_keys, project_planned_payments
from .source import SourceExport
from .titles import dedupe_associated_titles
from .transactions import migrate_transactions
from .wallets import migrate_wallets
from .writer import TransactionalWriter

Stage = Callable[[TargetStore, SourceExport, MigrationContext, Logger], None]


@dataclass(slots=True)
class MigrationResult:
    context: MigrationContext
    purged: dict[str, int] = field(default_factory=dict)
    recurring_keys_finalized: int = 0

    @property
    def skipped(self) -> int:
        return len(self.context.skipped)


class MigrationPipeline:
    def __init__(self, store: TargetStore, logger: Logger, settings: MigrationSettings) -> None:
        self.store = store
        self.logger = logger
        self.settings = settings
        self.writer = TransactionalWriter(store, logger)

    def run(self, source: SourceExport) -> MigrationResult:
        context = MigrationContext(settings=self.settings)
        result = MigrationResult(context=context)

        def _purge(store: TargetStore, _source: SourceExport, _ctx: MigrationContext, logger: Logger) -> None:
            result.purged = purge_stale_rows(store, logger)

        def _finalize(store: TargetStore, _source: SourceExport, ctx: MigrationContext, logger: Logger) -> None:
            result.recurring_keys_finalized = finalize_recurring_keys(store, ctx, logger)

        stages: list[tuple[str, Stage]] = [
            ("purge", _purge),
            ("wallets", migrate_wallets),
            ("categories", migrate_categories),
            ("transactions", migrate_transactions),
            ("recurring-keys", _finalize),
            ("planned-payments", project_planned_payments),
            ("associated-titles", dedupe_associated_titles),
        ]
        total = len(stages)
        for index, (name, stage) in enumerate(stages, start=1):
            self.logger.info(f"Stage {index}/{total}: {name}…")
            self.writer.run(name, stage, self.store, source, context, self.logger)
            self.logger.debug(f"Stage {index}/{total} complete.")

        self.logger.info("Migration finished.")
        return result


def run_migration(
    store: TargetStore,
    source: SourceExport,
    logger: Logger,
    settings: MigrationSettings,
) -> MigrationResult:
    return MigrationPipeline(store, logger, settings).run(source)
