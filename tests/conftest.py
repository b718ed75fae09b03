from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from keyhub.admins import AdminAuth
from keyhub.database import Database
from keyhub.service import KeyService

SECRET = "tests-session-secret-with-enough-entropy"


class FakeClock:
    """Callable clock whose current instant can be moved by tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "keyhub.sqlite3")
    db.initialize()
    return db


@pytest.fixture()
def auth(database: Database, clock: FakeClock) -> AdminAuth:
    return AdminAuth(database, SECRET, clock=clock)


@pytest.fixture()
def service(database: Database, auth: AdminAuth, clock: FakeClock) -> KeyService:
    return KeyService(database, auth, clock=clock)
