"""
dispatch.config.postgres – PostgreSQL connection config (dataclass + validators).

Env vars: DATABASE_URL, DB_POOL_SIZE, DB_MAX_OVERFLOW, DB_POOL_TIMEOUT,
DB_POOL_RECYCLE, DB_LOCK_TIMEOUT_MS, DB_ECHO, DB_APPLICATION_NAME.
"""
from __future__ import annotations

import os
from dataclasses import dataclass

from dispatch.config._validators import (
    parse_bool,
    validate_nonnegative_int,
    validate_positive_int,
)


def _validate_url(url: str) -> str:
    url = (url or "").strip()
    if not url:
        raise ValueError("DATABASE_URL is required and must be non-empty")
    if not (
        url.startswith("postgresql://")
        or url.startswith("postgres://")
        or url.startswith("postgresql+asyncpg://")
    ):
        raise ValueError(
            "DATABASE_URL must start with postgresql:// or postgres:// "
            "(or postgresql+asyncpg://)"
        )
    return url


@dataclass(frozen=True)
class PostgresConfig:
    """
    Connection and pool configuration for the order / assignment store.

    All fields are validated on construction. Use load_postgres_config()
    to build from environment variables.
    """

    url: str
    """DSN (postgresql:// or postgres://). Converted to postgresql+asyncpg in engine."""

    pool_size: int = 10
    max_overflow: int = 20
    pool_timeout: int = 30
    """Seconds to wait for a connection from the pool."""

    pool_recycle: int = 1800
    lock_timeout_ms: int = 5000
    """Postgres lock_timeout for every connection; 0 waits forever on order row locks."""

    echo: bool = False
    application_name: str = "dispatch-service"

    def __post_init__(self) -> None:
        _validate_url(self.url)
        validate_positive_int(self.pool_size, "pool_size")
        validate_nonnegative_int(self.max_overflow, "max_overflow")
        validate_positive_int(self.pool_timeout, "pool_timeout")
        validate_positive_int(self.pool_recycle, "pool_recycle")
        validate_nonnegative_int(self.lock_timeout_ms, "lock_timeout_ms")
        if not isinstance(self.echo, bool):
            raise ValueError("echo must be a boolean")
        if not isinstance(self.application_name, str) or not self.application_name.strip():
            raise ValueError("application_name must be a non-empty string")

    @classmethod
    def from_env(cls, **overrides: object) -> PostgresConfig:
        """
        Build config from environment variables.

        Env:
            DATABASE_URL          – default postgresql://localhost/dispatch
            DB_POOL_SIZE          – default 10
            DB_MAX_OVERFLOW       – default 20
            DB_POOL_TIMEOUT       – default 30
            DB_POOL_RECYCLE       – default 1800
            DB_LOCK_TIMEOUT_MS    – default 5000 (0 disables)
            DB_ECHO               – "1" / "true" / "yes" → True
            DB_APPLICATION_NAME   – default dispatch-service

        Overrides (keyword args) take precedence over env.
        """
        raw_url = overrides.get("url")
        if raw_url is None:
            raw_url = os.environ.get("DATABASE_URL", "postgresql://localhost/dispatch")

        env_ints = {
            "pool_size": ("DB_POOL_SIZE", 10),
            "max_overflow": ("DB_MAX_OVERFLOW", 20),
            "pool_timeout": ("DB_POOL_TIMEOUT", 30),
            "pool_recycle": ("DB_POOL_RECYCLE", 1800),
            "lock_timeout_ms": ("DB_LOCK_TIMEOUT_MS", 5000),
        }
        ints = {}
        for attr, (var, default) in env_ints.items():
            value = overrides.get(attr)
            ints[attr] = int(value) if value is not None else int(os.environ.get(var, default))

        echo = overrides.get("echo")
        if echo is None:
            echo = os.environ.get("DB_ECHO", "")
        app_name = overrides.get("application_name") or os.environ.get(
            "DB_APPLICATION_NAME", "dispatch-service"
        )
        return cls(
            url=_validate_url(str(raw_url)),
            echo=parse_bool(echo, default=False),
            application_name=str(app_name),
            **ints,
        )


def load_postgres_config(**overrides: object) -> PostgresConfig:
    """
    Load and validate PostgreSQL config from environment (with optional overrides).

    Raises ValueError on invalid env/values.
    """
    return PostgresConfig.from_env(**overrides)
