"""JSON export importer for the target finance database."""

from .pipeline import MigrationPipeline, MigrationResult, run_migration
from .source import SourceExport, load_source, parse_source

__all__ = [
    "MigrationPipeline",
    "MigrationResult",
    "SourceExport",
    "load_source",
    "parse_source",
    "run_migration",
]
