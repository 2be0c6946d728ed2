"""Project-wide custom exceptions."""

from __future__ import annotations


class FinMigrateError(Exception):
    """Base exception for the migration tools."""


class ConfigurationError(FinMigrateError):
    """Raised when configuration loading or validation fails."""


class ValidationError(FinMigrateError):
    """Raised when the source export is malformed or incomplete."""


class DatabaseError(FinMigrateError):
    """Raised for database-related issues."""


class StageFailure(DatabaseError):
    """Raised when a database operation inside a migration stage fails.

    The stage's transaction has been rolled back by the time callers see this.
    """

    def __init__(self, stage: str, entity_id: str | None, message: str) -> None:
        self.stage = stage
        self.entity_id = entity_id
        where = f" (entity {entity_id})" if entity_id is not None else ""
        super().__init__(f"Stage '{stage}' failed{where}: {message}")


class RowSkipped(FinMigrateError):
    """Raised for a single source row that cannot be migrated; never fatal."""

    def __init__(self, kind: str, entity_id: str, reason: str) -> None:
        self.kind = kind
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Skipping {kind} {entity_id}: {reason}")
