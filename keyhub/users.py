"""Find-or-create directory of key owners."""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Callable, List, Optional

from .database import Database, parse_datetime, serialize_datetime, utcnow
from .errors import StoreUnavailable
from .models import User, UserStatus

logger = logging.getLogger("keyhub.users")


class UserDirectory:
    """Owns the ``users`` table. Users are keyed by their exact email."""

    def __init__(self, database: Database, *, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._database = database
        self._clock = clock or utcnow

    def get(self, user_id: int) -> Optional[User]:
        with self._database.connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return row_to_user(row)

    def get_by_email(self, email: str) -> Optional[User]:
        with self._database.connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        if row is None:
            return None
        return row_to_user(row)

    def list_all(self) -> List[User]:
        with self._database.connect() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY created_at DESC, id DESC").fetchall()
        return [row_to_user(row) for row in rows]

    def find_or_create(self, email: str, first_name: str, last_name: str) -> User:
        """Return the user for ``email``, creating it or refreshing its names.

        Only the name fields are ever updated on an existing user. A concurrent
        insert for the same email is resolved by re-reading the winning row.
        """

        existing = self.get_by_email(email)
        if existing is None:
            try:
                return self._insert(email, first_name, last_name)
            except sqlite3.IntegrityError:
                logger.info("User %s was created concurrently; re-reading", email)
                existing = self.get_by_email(email)
                if existing is None:
                    raise StoreUnavailable(
                        f"User {email} violated a constraint but could not be loaded"
                    )

        if existing.first_name == first_name and existing.last_name == last_name:
            return existing

        with self._database.connect() as conn:
            conn.execute(
                "UPDATE users SET first_name = ?, last_name = ? WHERE id = ?",
                (first_name, last_name, existing.id),
            )
        refreshed = self.get(existing.id)
        if refreshed is None:
            raise StoreUnavailable(f"User {existing.id} disappeared during update")
        return refreshed

    def _insert(self, email: str, first_name: str, last_name: str) -> User:
        created_at = self._clock()
        with self._database.connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO users (first_name, last_name, email, status, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (first_name, last_name, email, UserStatus.ACTIVE.value, serialize_datetime(created_at)),
            )
            user_id = int(cursor.lastrowid)
        logger.info("Created user %s for %s", user_id, email)
        return User(
            id=user_id,
            email=email,
            first_name=first_name,
            last_name=last_name,
            status=UserStatus.ACTIVE,
            created_at=created_at,
        )


def row_to_user(row: sqlite3.Row) -> User:
    return User(
        id=int(row["id"]),
        email=str(row["email"]),
        first_name=str(row["first_name"]),
        last_name=str(row["last_name"]),
        status=UserStatus(str(row["status"])),
        created_at=parse_datetime(str(row["created_at"])),
    )


__all__ = ["UserDirectory", "row_to_user"]
