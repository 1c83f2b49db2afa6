"""Environment-driven configuration shared across the backend."""
from __future__ import annotations

import math
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional


def _to_bool(value: Optional[str], *, default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return default


def _to_int(value: Optional[str], *, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected integer value, got {value!r}") from exc


def _to_float(value: Optional[str], *, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected float value, got {value!r}") from exc


def _parse_connect_timeout(raw_value: str) -> int:
    try:
        timeout = float(raw_value)
    except ValueError as exc:
        raise ValueError("DB_CONNECT_TIMEOUT must be a number") from exc
    if timeout < 0:
        raise ValueError("DB_CONNECT_TIMEOUT must be non-negative")
    return int(math.ceil(timeout))


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection parameters for the PostgreSQL system of record."""

    host: str
    port: int
    dbname: str
    user: str
    password: str
    connect_timeout: int

    def as_connect_kwargs(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "dbname": self.dbname,
            "user": self.user,
            "password": self.password,
            "connect_timeout": self.connect_timeout,
        }


def load_database_config(env: Optional[Mapping[str, str]] = None) -> DatabaseConfig:
    """Load :class:`DatabaseConfig` from environment variables."""

    env_mapping = os.environ if env is None else env
    return DatabaseConfig(
        host=env_mapping.get("DB_HOST", "127.0.0.1"),
        port=_to_int(env_mapping.get("DB_PORT"), default=5432),
        dbname=env_mapping.get("DB_NAME", "catering_db"),
        user=env_mapping.get("DB_USER", "catering_user"),
        password=env_mapping.get("DB_PASSWORD", "catering_pass"),
        connect_timeout=_parse_connect_timeout(env_mapping.get("DB_CONNECT_TIMEOUT", "5")),
    )


def load_log_level(env: Optional[Mapping[str, str]] = None) -> str:
    env_mapping = os.environ if env is None else env
    return (env_mapping.get("LOG_LEVEL") or "INFO").strip().upper() or "INFO"


__all__ = [
    "DatabaseConfig",
    "load_database_config",
    "load_log_level",
]
