from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from keyhub.database import (
    Database,
    parse_datetime,
    resolve_database_path,
    serialize_datetime,
)
from keyhub.errors import StoreUnavailable
from keyhub.users import UserDirectory


def test_initialize_is_repeatable(database: Database) -> None:
    database.initialize()
    with database.connect() as conn:
        tables = {
            row["name"]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
        }
    assert {"users", "admins", "api_keys"} <= tables


def test_serialized_timestamps_sort_chronologically() -> None:
    base = datetime(2024, 3, 1, 10, 0, 0, tzinfo=timezone.utc)
    later = base + timedelta(microseconds=500)
    assert serialize_datetime(base) < serialize_datetime(later)
    assert parse_datetime(serialize_datetime(later)) == later


def test_naive_timestamps_are_treated_as_utc() -> None:
    naive = datetime(2024, 3, 1, 10, 0, 0)
    assert serialize_datetime(naive).endswith("+00:00")
    assert parse_datetime("2024-03-01T10:00:00").tzinfo is not None


def test_unreachable_database_raises_store_unavailable(tmp_path: Path) -> None:
    # A directory cannot be opened as an SQLite database file.
    broken = Database(tmp_path)
    with pytest.raises(StoreUnavailable):
        UserDirectory(broken).get_by_email("someone@example.com")


def test_resolve_database_path_prefers_explicit_value(tmp_path: Path) -> None:
    explicit = tmp_path / "custom.sqlite3"
    assert resolve_database_path(str(explicit)) == explicit.resolve()
    assert resolve_database_path(None).name == "keyhub.sqlite3"
