"""API key generation."""
from __future__ import annotations

import re
import secrets
from typing import Optional

SEGMENT_BYTES = 4
SEGMENT_COUNT = 3

API_KEY_PATTERN = re.compile(r"^(?:(?P<prefix>.+_))?[0-9A-F]{8}-[0-9A-F]{8}-[0-9A-F]{8}$")


def _segment() -> str:
    return secrets.token_bytes(SEGMENT_BYTES).hex().upper()


def normalize_prefix(prefix: Optional[str]) -> str:
    """Return ``prefix`` stripped and terminated by a single ``_``, or ``""``."""

    if not prefix or not isinstance(prefix, str):
        return ""
    cleaned = prefix.strip()
    if cleaned and not cleaned.endswith("_"):
        cleaned += "_"
    return cleaned


def generate_api_key(prefix: Optional[str] = None) -> str:
    """Generate a key such as ``PWS_1A2B3C4D-5E6F7A8B-9C0D1E2F``.

    Uniqueness is enforced by the store's constraint on ``api_keys.api_key``;
    there is no pre-check here.
    """

    body = "-".join(_segment() for _ in range(SEGMENT_COUNT))
    return f"{normalize_prefix(prefix)}{body}"


__all__ = ["API_KEY_PATTERN", "generate_api_key", "normalize_prefix"]
