"""Error taxonomy shared by the credential service and its HTTP adapter."""
from __future__ import annotations

from http import HTTPStatus
from typing import Any, Dict, Iterable, List, Optional


class KeyHubError(Exception):
    """Base class for failures that are surfaced to callers."""

    code = "error"
    status_code = HTTPStatus.BAD_REQUEST
    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message}


class ValidationError(KeyHubError):
    code = "validation_error"
    status_code = HTTPStatus.BAD_REQUEST
    default_message = "Invalid request"

    def __init__(self, message: Optional[str] = None, *, fields: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.fields: List[str] = list(fields)

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        if self.fields:
            payload["fields"] = list(self.fields)
        return payload


class NotFound(KeyHubError):
    code = "not_found"
    status_code = HTTPStatus.NOT_FOUND
    default_message = "Resource not found"


class OwnerNotFound(NotFound):
    code = "owner_not_found"
    default_message = "Credential owner does not exist"


class UnknownApiKey(NotFound):
    default_message = "API key not found or invalid"

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["valid"] = False
        return payload


class Unauthorized(KeyHubError):
    code = "unauthorized"
    status_code = HTTPStatus.UNAUTHORIZED
    default_message = "Invalid or expired session token"


class InvalidCredentials(Unauthorized):
    # Same message whether the email is unknown or the password is wrong.
    default_message = "Invalid email or password"


class Conflict(KeyHubError):
    code = "conflict"
    status_code = HTTPStatus.CONFLICT
    default_message = "Resource already exists"


class EmailTaken(Conflict):
    code = "email_taken"
    default_message = "An admin with that email already exists"


class DuplicateSecret(Conflict):
    code = "duplicate_api_key"
    default_message = "Generated API key collides with an existing key"


class StoreUnavailable(KeyHubError):
    """The backing store could not be reached or timed out.

    The message is meant for server-side logs only; the HTTP layer replaces it
    with an opaque payload.
    """

    code = "internal_error"
    status_code = HTTPStatus.SERVICE_UNAVAILABLE
    default_message = "Credential store is unavailable"

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": "Internal server error"}


__all__ = [
    "Conflict",
    "DuplicateSecret",
    "EmailTaken",
    "InvalidCredentials",
    "KeyHubError",
    "NotFound",
    "OwnerNotFound",
    "StoreUnavailable",
    "Unauthorized",
    "UnknownApiKey",
    "ValidationError",
]
