"""Configuration management for the credential service."""
from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .admins import TOKEN_TTL
from .database import DEFAULT_TIMEOUT, resolve_database_path

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000


@dataclass(frozen=True)
class Settings:
    """Runtime settings resolved from an optional YAML file and the environment."""

    database_path: Path
    session_secret: Optional[str] = None
    database_timeout: float = DEFAULT_TIMEOUT
    token_ttl: timedelta = TOKEN_TTL
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    def require_session_secret(self) -> str:
        if not self.session_secret:
            raise RuntimeError("KEYHUB_SESSION_SECRET must be configured to issue admin sessions")
        return self.session_secret


def _load_file(config_path: Path) -> Dict[str, object]:
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")
    section = raw.get("keyhub", raw)
    if not isinstance(section, dict):
        raise ValueError("The 'keyhub' section of the configuration file must be a mapping")
    return dict(section)


def load_settings(
    config_path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Build :class:`Settings`. Environment variables override file values."""

    env = os.environ if environ is None else environ

    if config_path is None and env.get("KEYHUB_CONFIG"):
        config_path = Path(env["KEYHUB_CONFIG"]).expanduser()

    values: Dict[str, object] = {}
    base_dir: Optional[Path] = None
    if config_path is not None:
        values = _load_file(config_path)
        base_dir = config_path.resolve(strict=False).parent

    raw_db_path = env.get("KEYHUB_DB_PATH") or values.get("database_path")
    if raw_db_path and base_dir is not None and "KEYHUB_DB_PATH" not in env:
        candidate = Path(str(raw_db_path)).expanduser()
        if not candidate.is_absolute():
            raw_db_path = str(base_dir / candidate)
    database_path = resolve_database_path(str(raw_db_path) if raw_db_path else None)

    session_secret = env.get("KEYHUB_SESSION_SECRET") or values.get("session_secret")

    raw_timeout = env.get("KEYHUB_DB_TIMEOUT") or values.get("database_timeout")
    try:
        database_timeout = float(raw_timeout) if raw_timeout is not None else DEFAULT_TIMEOUT
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid database timeout: {raw_timeout!r}") from exc
    if database_timeout <= 0:
        raise ValueError("Database timeout must be positive")

    raw_port = env.get("KEYHUB_PORT") or values.get("port")
    try:
        port = int(raw_port) if raw_port is not None else DEFAULT_PORT
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid port: {raw_port!r}") from exc

    host = str(env.get("KEYHUB_HOST") or values.get("host") or DEFAULT_HOST)

    return Settings(
        database_path=database_path,
        session_secret=str(session_secret) if session_secret else None,
        database_timeout=database_timeout,
        host=host,
        port=port,
    )


__all__ = ["DEFAULT_HOST", "DEFAULT_PORT", "Settings", "load_settings"]
