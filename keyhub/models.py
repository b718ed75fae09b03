"""Domain records for users, credentials and administrators."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class KeyStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class User:
    """A key owner, identified by the email it registered with."""

    id: int
    email: str
    first_name: str
    last_name: str
    status: UserStatus
    created_at: datetime

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass(frozen=True)
class Credential:
    """An issued API key. ``expires_at`` of ``None`` means it never expires."""

    id: int
    user_id: int
    api_key: str
    created_at: datetime
    expires_at: Optional[datetime]


@dataclass(frozen=True)
class OwnerSummary:
    id: int
    first_name: str
    last_name: str
    email: str
    status: UserStatus


@dataclass(frozen=True)
class CredentialListing:
    credential: Credential
    owner: OwnerSummary
    status: KeyStatus


@dataclass(frozen=True)
class UserKeyCounts:
    user: User
    total_keys: int
    active_keys: int


@dataclass(frozen=True)
class AdminAccount:
    id: int
    email: str
    password_hash: str
    created_at: datetime


@dataclass(frozen=True)
class AdminIdentity:
    """Claims recovered from a verified session token."""

    id: int
    email: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class SessionToken:
    token: str
    admin: AdminIdentity

    @property
    def expires_at(self) -> datetime:
        return self.admin.expires_at


__all__ = [
    "AdminAccount",
    "AdminIdentity",
    "Credential",
    "CredentialListing",
    "KeyStatus",
    "OwnerSummary",
    "SessionToken",
    "User",
    "UserKeyCounts",
    "UserStatus",
]
