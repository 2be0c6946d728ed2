from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from fin_migrate.fin_import.main import main
from fin_migrate.shared import paths


@pytest.fixture
def runner(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> CliRunner:
    monkeypatch.setenv(paths.CONFIG_FILE_ENV, str(tmp_path / "absent.yaml"))
    monkeypatch.setenv(paths.DATABASE_PATH_ENV, str(tmp_path / "default.db"))
    return CliRunner()


def _write_source(tmp_path: Path, data: dict[str, Any]) -> Path:
    path = tmp_path / "export.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def _table_count(db_path: Path, table: str) -> int:
    with sqlite3.connect(db_path) as conn:
        return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]


def test_import_writes_store_and_snapshot(
    runner: CliRunner, tmp_path: Path, export_data: dict[str, Any]
) -> None:
    source = _write_source(tmp_path, export_data)
    db_path = tmp_path / "target.db"
    snapshot = tmp_path / "out" / "snapshot.db"

    result = runner.invoke(main, [str(source), "--db", str(db_path), "--output", str(snapshot)])

    assert result.exit_code == 0, result.output
    assert _table_count(db_path, "wallets") == 2
    assert "planned payments" in result.output
    assert _table_count(db_path, "transactions") == 10
    assert snapshot.exists()
    assert _table_count(snapshot, "associated_titles") == 4


def test_dry_run_leaves_store_untouched(
    runner: CliRunner, tmp_path: Path, export_data: dict[str, Any]
) -> None:
    source = _write_source(tmp_path, export_data)
    db_path = tmp_path / "target.db"

    result = runner.invoke(main, [str(source), "--db", str(db_path), "--dry-run"])

    assert result.exit_code == 0, result.output
    assert not db_path.exists()


def test_invalid_source_aborts_before_touching_store(runner: CliRunner, tmp_path: Path) -> None:
    source = _write_source(tmp_path, {"accounts": []})
    db_path = tmp_path / "target.db"

    result = runner.invoke(main, [str(source), "--db", str(db_path)])

    assert result.exit_code == 1
    assert "Invalid source export" in result.output
    assert "transactions" in result.output
    assert not db_path.exists()


def test_missing_source_file_is_reported(runner: CliRunner, tmp_path: Path) -> None:
    result = runner.invoke(main, [str(tmp_path / "nope.json"), "--db", str(tmp_path / "t.db")])

    assert result.exit_code == 1
    assert "not found" in result.output


def test_import_reads_stdin(runner: CliRunner, tmp_path: Path, export_data: dict[str, Any]) -> None:
    db_path = tmp_path / "target.db"

    result = runner.invoke(main, ["-", "--db", str(db_path)], input=json.dumps(export_data))

    assert result.exit_code == 0, result.output
    assert _table_count(db_path, "categories") == 3


def test_help_lists_shared_options(runner: CliRunner) -> None:
    result = runner.invoke(main, ["--help"])

    assert result.exit_code == 0
    for option in ("--output", "--config", "--db", "--dry-run", "--verbose"):
        assert option in result.output
