"""Expiry resolution and the single definition of credential status."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional, Union

from .errors import ValidationError
from .models import KeyStatus

NEVER = "never"

ExpiryToken = Union[str, int, None]


def resolve_expiry(token: ExpiryToken, now: datetime) -> Optional[datetime]:
    """Translate a duration token into an absolute expiry instant.

    ``"never"``, empty values, non-numeric text and non-positive day counts all
    resolve to ``None`` (the key never expires). Only plain ASCII digits count
    as a day count, so signs, underscores and decimals fall back to ``None``.
    A day count that lands beyond the representable calendar raises
    :class:`~keyhub.errors.ValidationError`.
    """

    if token is None or isinstance(token, bool):
        return None
    text = str(token).strip()
    if not text or text.lower() == NEVER:
        return None
    if not (text.isascii() and text.isdigit()):
        return None
    days = int(text, 10)
    if days <= 0:
        return None
    try:
        return now + timedelta(days=days)
    except OverflowError as exc:
        raise ValidationError("expiry is too far in the future", fields=["expiry"]) from exc


def key_status(expires_at: Optional[datetime], now: datetime) -> KeyStatus:
    if expires_at is None or expires_at > now:
        return KeyStatus.ACTIVE
    return KeyStatus.INACTIVE


def is_active(expires_at: Optional[datetime], now: datetime) -> bool:
    return key_status(expires_at, now) is KeyStatus.ACTIVE


__all__ = ["NEVER", "is_active", "key_status", "resolve_expiry"]
