"""Boundary operations exposed to the HTTP layer.

Every method returns a JSON-ready ``dict`` using the camelCase field names of
the public wire format, or raises a :class:`~keyhub.errors.KeyHubError`.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from .admins import AdminAuth
from .credentials import CredentialStore
from .database import Database, serialize_datetime, utcnow
from .errors import UnknownApiKey, ValidationError
from .expiry import NEVER, ExpiryToken, key_status, resolve_expiry
from .keys import generate_api_key
from .models import AdminIdentity, Credential, KeyStatus, User
from .queries import QueryService
from .users import UserDirectory

logger = logging.getLogger("keyhub.service")

DEFAULT_SCOPES = ("read",)


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return serialize_datetime(value)


def _clean(value: Optional[str]) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _user_summary(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "fullName": user.full_name,
        "email": user.email,
        "status": user.status.value,
    }


def _credential_payload(credential: Credential, status: KeyStatus) -> Dict[str, Any]:
    return {
        "id": credential.id,
        "apiKey": credential.api_key,
        "createdAt": _format_datetime(credential.created_at),
        "expiresAt": _format_datetime(credential.expires_at),
        "status": status.value,
    }


class KeyService:
    """Issue, validate and list API keys on top of the injected store."""

    def __init__(
        self,
        database: Database,
        auth: AdminAuth,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._clock = clock or utcnow
        self.users = UserDirectory(database, clock=self._clock)
        self.credentials = CredentialStore(database, clock=self._clock)
        self.queries = QueryService(self.users, self.credentials, clock=self._clock)
        self.auth = auth

    # ------------------------------------------------------------------
    # Public key lifecycle
    # ------------------------------------------------------------------
    def issue_credential(
        self,
        *,
        first_name: Optional[str],
        last_name: Optional[str],
        email: Optional[str],
        app_name: Optional[str],
        description: Optional[str] = None,
        expiry: ExpiryToken = None,
        scopes: Optional[Sequence[str]] = None,
        prefix: Optional[str] = None,
    ) -> Dict[str, Any]:
        required = {
            "firstName": _clean(first_name),
            "lastName": _clean(last_name),
            "email": _clean(email),
            "appName": _clean(app_name),
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                fields=missing,
            )

        final_scopes: List[str] = [str(scope) for scope in scopes] if scopes else list(DEFAULT_SCOPES)
        now = self._clock()
        expires_at = resolve_expiry(expiry, now)

        user = self.users.find_or_create(
            required["email"],
            required["firstName"],
            required["lastName"],
        )
        api_key = generate_api_key(prefix)
        credential = self.credentials.create(user.id, api_key, expires_at)
        status = key_status(credential.expires_at, now)

        logger.info(
            "Issued API key %s for user %s (app=%s, expires_at=%s)",
            credential.id,
            user.id,
            required["appName"],
            _format_datetime(expires_at) or NEVER,
        )

        payload = _credential_payload(credential, status)
        payload.update(
            {
                "appName": required["appName"],
                "description": description or "",
                "expiry": expiry if expiry not in (None, "") else NEVER,
                "scopes": final_scopes,
                "user": _user_summary(user),
            }
        )
        return payload

    def validate_credential(self, api_key: Optional[str]) -> Dict[str, Any]:
        if not api_key or not isinstance(api_key, str):
            raise ValidationError("apiKey is required", fields=["apiKey"])

        credential = self.credentials.find_by_secret(api_key)
        if credential is None:
            raise UnknownApiKey()

        status = key_status(credential.expires_at, self._clock())
        payload = _credential_payload(credential, status)
        payload["valid"] = status is KeyStatus.ACTIVE
        payload["userId"] = credential.user_id
        return payload

    def credential_history(self, email: Optional[str]) -> Dict[str, Any]:
        cleaned = _clean(email)
        if not cleaned:
            raise ValidationError("email is required", fields=["email"])

        now = self._clock()
        keys = [
            _credential_payload(credential, key_status(credential.expires_at, now))
            for credential in self.credentials.list_by_owner_email(cleaned)
        ]
        return {"email": cleaned, "keys": keys}

    # ------------------------------------------------------------------
    # Administrators
    # ------------------------------------------------------------------
    def register_admin(
        self,
        email: Optional[str],
        password: Optional[str],
        confirm_password: Optional[str],
    ) -> Dict[str, Any]:
        admin = self.auth.register(email or "", password or "", confirm_password or "")
        return {"id": admin.id, "email": admin.email}

    def login_admin(self, email: Optional[str], password: Optional[str]) -> Dict[str, Any]:
        session = self.auth.login(email or "", password or "")
        return {
            "token": session.token,
            "tokenType": "bearer",
            "expiresAt": _format_datetime(session.expires_at),
            "admin": {"id": session.admin.id, "email": session.admin.email},
        }

    def authenticate(self, token: Optional[str]) -> AdminIdentity:
        return self.auth.verify(token)

    def list_users(self, token: Optional[str]) -> Dict[str, Any]:
        admin = self.authenticate(token)
        rows = self.queries.users_with_key_counts(now=self._clock())
        logger.debug("Admin %s listed %d users", admin.id, len(rows))
        return {
            "users": [
                {
                    "id": row.user.id,
                    "firstName": row.user.first_name,
                    "lastName": row.user.last_name,
                    "email": row.user.email,
                    "status": row.user.status.value,
                    "createdAt": _format_datetime(row.user.created_at),
                    "totalKeys": row.total_keys,
                    "activeKeys": row.active_keys,
                }
                for row in rows
            ]
        }

    def list_keys(self, token: Optional[str]) -> Dict[str, Any]:
        admin = self.authenticate(token)
        listings = self.queries.keys_with_owners(now=self._clock())
        logger.debug("Admin %s listed %d keys", admin.id, len(listings))
        keys: List[Dict[str, Any]] = []
        for listing in listings:
            entry = _credential_payload(listing.credential, listing.status)
            entry["user"] = {
                "id": listing.owner.id,
                "fullName": f"{listing.owner.first_name} {listing.owner.last_name}",
                "email": listing.owner.email,
                "status": listing.owner.status.value,
            }
            keys.append(entry)
        return {"keys": keys}


__all__ = ["DEFAULT_SCOPES", "KeyService"]
