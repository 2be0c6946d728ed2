"""fin-import CLI entrypoint."""

from __future__ import annotations

import sys
from pathlib import Path

import click
from rich import box
from rich.console import Console
from rich.table import Table

from fin_migrate.shared.cli import CLIContext, common_cli_options, handle_cli_errors
from fin_migrate.shared.database import connect
from fin_migrate.shared.utils import compute_file_sha256

from .pipeline import MigrationResult, run_migration
from .source import SourceExport, load_source


@click.command(help="Migrate a personal-finance JSON export into the target database.")
@click.argument("source", type=click.Path(path_type=str))
@click.option(
    "--output",
    type=click.Path(path_type=str),
    help="Write a snapshot of the migrated database to this file.",
)
@common_cli_options(run_migrations_on_start=False)
@handle_cli_errors
def main(source: str, output: str | None, cli_ctx: CLIContext) -> None:
    logger = cli_ctx.logger
    source_name = "stdin" if source == "-" else source
    logger.info(f"Reading export from {source_name}…")
    export = load_source(None if source == "-" else Path(source))
    if source != "-":
        logger.debug(f"Source sha256: {compute_file_sha256(source)}")
    _print_source_counts(cli_ctx, export)

    if cli_ctx.dry_run:
        logger.info("Dry-run: export is valid; the target database was not touched.")
        return

    logger.info(f"Migrating into {cli_ctx.db_path}")
    with connect(cli_ctx.config) as store:
        result = run_migration(store, export, logger, cli_ctx.config.migration)
        _print_summary(cli_ctx, result)
        if output:
            snapshot_path = store.snapshot(output)
            logger.success(f"Wrote database snapshot to {snapshot_path}")


def _print_source_counts(cli_ctx: CLIContext, export: SourceExport) -> None:
    counts = export.counts()
    cli_ctx.logger.info(
        "Loaded "
        + ", ".join(f"{count} {name}" for name, count in counts.items())
    )


def _print_summary(cli_ctx: CLIContext, result: MigrationResult) -> None:
    context = result.context
    table = Table(box=box.SIMPLE, show_header=True, header_style="bold", title="Migration summary")
    table.add_column("Table", style="bold")
    table.add_column("Created", justify="right")
    table.add_column("Merged", justify="right")
    table.add_column("Purged", justify="right")
    for name in ("wallets", "categories", "transactions", "associated_titles"):
        table.add_row(
            name,
            str(context.inserted[name]),
            str(context.merged[name]) if name in ("wallets", "categories") else "-",
            str(result.purged.get(name, 0)),
        )
    table.add_row("planned payments", str(context.inserted["planned payments"]), "-", "-")
    Console(file=sys.stdout, highlight=False, force_terminal=False).print(table)

    logger = cli_ctx.logger
    logger.info(f"Recurring series finalized: {result.recurring_keys_finalized}")
    if context.skipped:
        logger.warning(f"Skipped rows: {len(context.skipped)}")
        for skipped in context.skipped:
            logger.warning(f"  - {skipped}")
    logger.success("Import complete.")


if __name__ == "__main__":  # pragma: no cover
    main()
