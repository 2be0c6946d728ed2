"""Target store wrapper and schema migration runner."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any, Iterator, Mapping, Sequence

from .config import AppConfig
from .exceptions import DatabaseError

MIGRATION_PACKAGE = "fin_migrate.shared.migrations"

Params = Sequence[Any]


@dataclass(frozen=True)
class Migration:
    version: int
    name: str
    description: str
    sql: str


class PreparedLookup:
    """A reusable point-lookup statement bound to one store."""

    def __init__(self, connection: sqlite3.Connection, sql: str) -> None:
        self.sql = sql
        self._cursor: sqlite3.Cursor | None = connection.cursor()

    def lookup_one(self, params: Params = ()) -> sqlite3.Row | None:
        if self._cursor is None:
            raise DatabaseError(f"Statement already released: {self.sql.strip()}")
        try:
            return self._cursor.execute(self.sql, tuple(params)).fetchone()
        except (sqlite3.Error, OverflowError) as exc:
            raise DatabaseError(str(exc)) from exc

    def release(self) -> None:
        if self._cursor is not None:
            self._cursor.close()
            self._cursor = None

    def __enter__(self) -> PreparedLookup:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


class TargetStore:
    """Embedded relational store the migration engine writes into.

    The connection runs in autocommit mode; callers own transaction boundaries
    through ``begin``/``commit``/``rollback``.
    """

    def __init__(self, connection: sqlite3.Connection, path: Path | None = None) -> None:
        self._connection = connection
        self.path = path

    @property
    def in_transaction(self) -> bool:
        return self._connection.in_transaction

    def execute(self, sql: str, params: Params = ()) -> list[sqlite3.Row]:
        try:
            return self._connection.execute(sql, tuple(params)).fetchall()
        except (sqlite3.Error, OverflowError) as exc:
            raise DatabaseError(str(exc)) from exc

    def insert(self, table: str, values: Mapping[str, Any]) -> None:
        """Insert one row; column names are quoted since ``order`` is reserved."""
        columns = ", ".join(f'"{name}"' for name in values)
        placeholders = ", ".join("?" for _ in values)
        self.execute(
            f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
            list(values.values()),
        )

    def count(self, table: str, where: str = "1", params: Params = ()) -> int:
        rows = self.execute(f"SELECT COUNT(*) FROM {table} WHERE {where}", params)
        return int(rows[0][0])

    def prepare(self, sql: str) -> PreparedLookup:
        return PreparedLookup(self._connection, sql)

    def begin(self) -> None:
        self.execute("BEGIN")

    def commit(self) -> None:
        self.execute("COMMIT")

    def rollback(self) -> None:
        if self._connection.in_transaction:
            self.execute("ROLLBACK")

    def snapshot(self, destination: str | Path) -> Path:
        """Write the full database image to ``destination`` as a single file."""
        dest_path = Path(destination).expanduser()
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        if dest_path.exists():
            dest_path.unlink()
        target = sqlite3.connect(dest_path)
        try:
            self._connection.backup(target)
        except sqlite3.Error as exc:
            raise DatabaseError(f"Unable to write snapshot to {dest_path}: {exc}") from exc
        finally:
            target.close()
        return dest_path

    def close(self) -> None:
        self._connection.close()


def _resolve_database_path(config: AppConfig) -> Path:
    db_path = config.database.path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


def _open_connection(path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(path, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def _load_migrations() -> Sequence[Migration]:
    migrations: list[Migration] = []
    with resources.as_file(resources.files(MIGRATION_PACKAGE)) as package_path:
        for entry in sorted(package_path.iterdir()):
            if entry.suffix.lower() != ".sql":
                continue
            name = entry.stem
            try:
                version_str, description = name.split("_", 1)
            except ValueError:
                version_str, description = name, name
            try:
                version = int(version_str)
            except ValueError as exc:  # pragma: no cover - packaging time error
                raise DatabaseError(f"Invalid migration filename '{entry.name}'") from exc
            sql = entry.read_text(encoding="utf-8")
            migrations.append(Migration(version=version, name=name, description=description, sql=sql))
    migrations.sort(key=lambda m: m.version)
    return migrations


def _get_applied_versions(connection: sqlite3.Connection) -> set[int]:
    rows = connection.execute("SELECT version FROM schema_versions").fetchall()
    return {int(row[0]) for row in rows}


def run_migrations(config: AppConfig) -> None:
    """Create any missing target tables in the configured store."""
    db_path = _resolve_database_path(config)
    migrations = _load_migrations()
    if not migrations:
        return

    connection = _open_connection(db_path)
    try:
        connection.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_versions (
                version INTEGER PRIMARY KEY,
                description TEXT NOT NULL,
                applied_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
            """
        )
        applied = _get_applied_versions(connection)
        for migration in migrations:
            if migration.version in applied:
                continue
            connection.executescript(f"BEGIN;\n{migration.sql}\nCOMMIT;")
            connection.execute(
                "INSERT OR REPLACE INTO schema_versions(version, description) VALUES (?, ?)",
                (migration.version, migration.description),
            )
    except sqlite3.Error as exc:
        raise DatabaseError(f"Failed to apply schema migrations to {db_path}: {exc}") from exc
    finally:
        connection.close()


def open_store(path: str | Path) -> TargetStore:
    """Open a store without applying migrations."""
    db_path = Path(path).expanduser()
    return TargetStore(_open_connection(db_path), path=db_path)


@contextmanager
def connect(config: AppConfig, *, apply_migrations: bool | None = None) -> Iterator[TargetStore]:
    """Yield a TargetStore for the configured database."""
    should_migrate = config.database.apply_schema if apply_migrations is None else apply_migrations
    if should_migrate:
        run_migrations(config)
    store = open_store(_resolve_database_path(config))
    try:
        yield store
    finally:
        store.close()
