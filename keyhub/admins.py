"""Administrator accounts and stateless session tokens."""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import jwt
from passlib.context import CryptContext

from .database import Database, parse_datetime, serialize_datetime, utcnow
from .errors import EmailTaken, InvalidCredentials, Unauthorized, ValidationError
from .models import AdminAccount, AdminIdentity, SessionToken

logger = logging.getLogger("keyhub.admins")

MIN_PASSWORD_LENGTH = 6
TOKEN_TTL = timedelta(hours=1)
TOKEN_ALGORITHM = "HS256"

_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

# Verified against when the email is unknown so both failure paths do the same work.
_DUMMY_HASH = _pwd_context.hash("keyhub-placeholder-password")


def hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    try:
        return _pwd_context.verify(password, hashed)
    except ValueError:
        return False


class AdminAuth:
    """Register administrators, log them in and verify their bearer tokens.

    Tokens are HS256 JWTs carrying ``sub``, ``email``, ``iat`` and ``exp``.
    Verification never touches the database, so a token issued before an
    account is removed stays valid until it expires. Account management works
    without a signing secret; only issuing and verifying tokens need one.
    """

    def __init__(
        self,
        database: Database,
        secret: Optional[str] = None,
        *,
        ttl: timedelta = TOKEN_TTL,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if secret is not None and not secret:
            raise ValueError("A session signing secret must not be empty")
        self._database = database
        self._secret = secret
        self._ttl = ttl
        self._clock = clock or utcnow

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def _require_secret(self) -> str:
        if self._secret is None:
            raise RuntimeError("A session signing secret is required to issue or verify tokens")
        return self._secret

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------
    def register(self, email: str, password: str, confirm_password: str) -> AdminAccount:
        normalized_email = (email or "").strip()
        missing = [
            name
            for name, value in (
                ("email", normalized_email),
                ("password", password),
                ("confirmPassword", confirm_password),
            )
            if not value
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
                fields=["password"],
            )
        if password != confirm_password:
            raise ValidationError("Passwords do not match", fields=["confirmPassword"])

        created_at = self._clock()
        password_hash = hash_password(password)
        try:
            with self._database.connect() as conn:
                cursor = conn.execute(
                    "INSERT INTO admins (email, password_hash, created_at) VALUES (?, ?, ?)",
                    (normalized_email, password_hash, serialize_datetime(created_at)),
                )
                admin_id = int(cursor.lastrowid)
        except sqlite3.IntegrityError as exc:
            logger.warning("Rejected admin registration for existing email %s", normalized_email)
            raise EmailTaken() from exc

        logger.info("Registered admin %s (%s)", admin_id, normalized_email)
        return AdminAccount(
            id=admin_id,
            email=normalized_email,
            password_hash=password_hash,
            created_at=created_at,
        )

    def get_by_email(self, email: str) -> Optional[AdminAccount]:
        with self._database.connect() as conn:
            row = conn.execute("SELECT * FROM admins WHERE email = ?", (email,)).fetchone()
        if row is None:
            return None
        return _row_to_admin(row)

    def list_all(self) -> List[AdminAccount]:
        with self._database.connect() as conn:
            rows = conn.execute("SELECT * FROM admins ORDER BY id").fetchall()
        return [_row_to_admin(row) for row in rows]

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------
    def login(self, email: str, password: str) -> SessionToken:
        normalized_email = (email or "").strip()
        admin = self.get_by_email(normalized_email) if normalized_email else None
        if admin is None:
            verify_password(password or "", _DUMMY_HASH)
            logger.warning("Failed admin login for %s", normalized_email or "<empty>")
            raise InvalidCredentials()
        if not password or not verify_password(password, admin.password_hash):
            logger.warning("Failed admin login for %s", normalized_email)
            raise InvalidCredentials()

        session = self.issue_token(admin)
        logger.info("Admin %s logged in", admin.id)
        return session

    def issue_token(self, admin: AdminAccount) -> SessionToken:
        issued_at = self._clock().astimezone(timezone.utc).replace(microsecond=0)
        expires_at = issued_at + self._ttl
        claims = {
            "sub": str(admin.id),
            "email": admin.email,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(claims, self._require_secret(), algorithm=TOKEN_ALGORITHM)
        identity = AdminIdentity(
            id=admin.id,
            email=admin.email,
            issued_at=issued_at,
            expires_at=expires_at,
        )
        return SessionToken(token=token, admin=identity)

    def verify(self, token: Optional[str]) -> AdminIdentity:
        if not token:
            raise Unauthorized("Missing bearer token")

        try:
            # Expiry is checked below against the injected clock.
            claims = jwt.decode(
                token,
                self._require_secret(),
                algorithms=[TOKEN_ALGORITHM],
                options={"require": ["sub", "iat", "exp"], "verify_exp": False, "verify_iat": False},
            )
        except jwt.InvalidTokenError as exc:
            logger.warning("Rejected admin token: %s", type(exc).__name__)
            raise Unauthorized() from exc

        try:
            admin_id = int(claims["sub"])
            issued_at = datetime.fromtimestamp(int(claims["iat"]), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)
            email = str(claims.get("email") or "")
        except (TypeError, ValueError, OverflowError, OSError) as exc:
            logger.warning("Rejected admin token with malformed claims")
            raise Unauthorized() from exc

        if expires_at <= self._clock():
            logger.warning("Rejected expired token for admin %s", admin_id)
            raise Unauthorized("Session token has expired")

        return AdminIdentity(id=admin_id, email=email, issued_at=issued_at, expires_at=expires_at)


def _row_to_admin(row: sqlite3.Row) -> AdminAccount:
    return AdminAccount(
        id=int(row["id"]),
        email=str(row["email"]),
        password_hash=str(row["password_hash"]),
        created_at=parse_datetime(str(row["created_at"])),
    )


__all__ = [
    "AdminAuth",
    "MIN_PASSWORD_LENGTH",
    "TOKEN_TTL",
    "hash_password",
    "verify_password",
]
