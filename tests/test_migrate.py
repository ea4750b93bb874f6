"""Schema migration tests."""

import sqlite3

import pytest

from approvalflow.db.dal import Database
from approvalflow.db.migrate import (
    CURRENT_SCHEMA_VERSION,
    SCHEMA_VERSION_KEY,
    SchemaVersionError,
    apply_migrations,
)


def _columns(path, table):
    with sqlite3.connect(path) as conn:
        return [row[1] for row in conn.execute(f"PRAGMA table_info({table})")]


def test_fresh_database_is_current(tmp_path):
    path = tmp_path / "fresh.sqlite3"
    assert apply_migrations(path) == CURRENT_SCHEMA_VERSION == 1
    assert Database(path).get_metadata(SCHEMA_VERSION_KEY) == "1"
    assert "version" in _columns(path, "expenses")
    assert "position" in _columns(path, "expense_approval_rules")


def test_migrations_are_idempotent(tmp_path):
    path = tmp_path / "twice.sqlite3"
    apply_migrations(path)
    assert apply_migrations(path) == CURRENT_SCHEMA_VERSION
    assert _columns(path, "expenses").count("version") == 1


def test_newer_database_is_refused(tmp_path):
    path = tmp_path / "future.sqlite3"
    apply_migrations(path)
    with sqlite3.connect(path) as conn:
        conn.execute(
            "UPDATE metadata SET value = ? WHERE key = ?",
            (str(CURRENT_SCHEMA_VERSION + 1), SCHEMA_VERSION_KEY),
        )
    with pytest.raises(SchemaVersionError):
        apply_migrations(path)
