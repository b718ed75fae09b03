"""Persistence for issued API keys."""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Callable, List, Optional

from .database import (
    Database,
    parse_datetime,
    parse_optional_datetime,
    serialize_datetime,
    utcnow,
)
from .errors import DuplicateSecret, OwnerNotFound
from .expiry import key_status
from .models import Credential, CredentialListing, OwnerSummary, UserStatus

logger = logging.getLogger("keyhub.credentials")


class CredentialStore:
    """Create and look up rows in ``api_keys``. Rows are never updated."""

    def __init__(self, database: Database, *, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._database = database
        self._clock = clock or utcnow

    def create(self, user_id: int, api_key: str, expires_at: Optional[datetime]) -> Credential:
        created_at = self._clock()
        serialized_expiry = serialize_datetime(expires_at) if expires_at is not None else None
        try:
            with self._database.connect() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO api_keys (user_id, api_key, created_at, expires_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (user_id, api_key, serialize_datetime(created_at), serialized_expiry),
                )
                credential_id = int(cursor.lastrowid)
        except sqlite3.IntegrityError as exc:
            message = str(exc).upper()
            if "FOREIGN KEY" in message:
                raise OwnerNotFound(f"User {user_id} does not exist") from exc
            if "UNIQUE" in message:
                logger.error("Generated API key collided with an existing key for user %s", user_id)
                raise DuplicateSecret() from exc
            raise

        logger.info("Stored API key %s for user %s", credential_id, user_id)
        return Credential(
            id=credential_id,
            user_id=user_id,
            api_key=api_key,
            created_at=created_at,
            expires_at=expires_at,
        )

    def find_by_secret(self, api_key: str) -> Optional[Credential]:
        with self._database.connect() as conn:
            row = conn.execute(
                "SELECT * FROM api_keys WHERE api_key = ? LIMIT 1",
                (api_key,),
            ).fetchone()
        if row is None:
            return None
        return _row_to_credential(row)

    def list_by_owner_email(self, email: str) -> List[Credential]:
        with self._database.connect() as conn:
            rows = conn.execute(
                """
                SELECT k.*
                  FROM api_keys AS k
                  JOIN users AS u ON u.id = k.user_id
                 WHERE u.email = ?
                 ORDER BY k.created_at DESC, k.id DESC
                """,
                (email,),
            ).fetchall()
        return [_row_to_credential(row) for row in rows]

    def list_all(self) -> List[Credential]:
        with self._database.connect() as conn:
            rows = conn.execute("SELECT * FROM api_keys ORDER BY created_at DESC, id DESC").fetchall()
        return [_row_to_credential(row) for row in rows]

    def list_all_with_owners(self, now: Optional[datetime] = None) -> List[CredentialListing]:
        current = now if now is not None else self._clock()
        with self._database.connect() as conn:
            rows = conn.execute(
                """
                SELECT k.id, k.user_id, k.api_key, k.created_at, k.expires_at,
                       u.first_name, u.last_name, u.email, u.status
                  FROM api_keys AS k
                  JOIN users AS u ON u.id = k.user_id
                 ORDER BY k.created_at DESC, k.id DESC
                """
            ).fetchall()

        listings: List[CredentialListing] = []
        for row in rows:
            credential = _row_to_credential(row)
            owner = OwnerSummary(
                id=credential.user_id,
                first_name=str(row["first_name"]),
                last_name=str(row["last_name"]),
                email=str(row["email"]),
                status=UserStatus(str(row["status"])),
            )
            listings.append(
                CredentialListing(
                    credential=credential,
                    owner=owner,
                    status=key_status(credential.expires_at, current),
                )
            )
        return listings


def _row_to_credential(row: sqlite3.Row) -> Credential:
    return Credential(
        id=int(row["id"]),
        user_id=int(row["user_id"]),
        api_key=str(row["api_key"]),
        created_at=parse_datetime(str(row["created_at"])),
        expires_at=parse_optional_datetime(row["expires_at"]),
    )


__all__ = ["CredentialStore"]
