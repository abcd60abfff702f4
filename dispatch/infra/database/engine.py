"""
dispatch.infra.database.engine – async engine and session factory for the order store.

One engine per process. The API lifespan builds it once and shares the session
factory through app.state; the expiry script builds its own with NullPool.

Every connection runs with ``timezone=UTC`` (assignment expiry compares
``expires_at`` with the application clock) and a ``lock_timeout`` so a request
blocked behind another writer's order row lock fails instead of hanging.
"""
from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any, Optional
from urllib.parse import urlsplit, urlunsplit

import asyncpg
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

# Registers every ORM model with Base.metadata before create_all()
import dispatch.infra.database.models  # noqa: F401
from dispatch.infra.database.models.base import Base

if TYPE_CHECKING:
    from dispatch.config import PostgresConfig

logger = logging.getLogger(__name__)

_SAFE_DBNAME = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _config(config: Optional["PostgresConfig"]) -> "PostgresConfig":
    if config is not None:
        return config
    from dispatch.config import load_postgres_config
    return load_postgres_config()


def asyncpg_url(url: str) -> str:
    """postgres:// and postgresql:// DSNs rewritten for the asyncpg driver."""
    scheme, sep, rest = url.partition("://")
    if scheme in ("postgres", "postgresql"):
        return f"postgresql+asyncpg{sep}{rest}"
    return url


def connect_args(config: "PostgresConfig") -> dict[str, Any]:
    settings = {
        "application_name": config.application_name,
        "timezone": "UTC",
        "jit": "off",
    }
    if config.lock_timeout_ms:
        settings["lock_timeout"] = str(config.lock_timeout_ms)
    return {"server_settings": settings}


def _split_dsn(url: str) -> tuple[str, str]:
    """(database name, DSN of the maintenance database on the same server)."""
    parts = urlsplit(asyncpg_url(url).replace("postgresql+asyncpg://", "postgresql://", 1))
    dbname = parts.path.strip("/") or "postgres"
    return dbname, urlunsplit(parts._replace(path="/postgres"))


async def ensure_database_exists(config: Optional["PostgresConfig"] = None) -> None:
    """CREATE DATABASE for a fresh dev/test server. No-op when the server is unreachable."""
    dbname, maintenance_dsn = _split_dsn(_config(config).url)
    if dbname == "postgres":
        return
    if not _SAFE_DBNAME.match(dbname):
        logger.warning("Not creating database with unsafe name %r", dbname)
        return
    try:
        conn = await asyncpg.connect(maintenance_dsn)
    except (OSError, asyncpg.PostgresError) as exc:
        logger.debug("Postgres unreachable (%s); skipping database bootstrap", exc)
        return
    try:
        if await conn.fetchval("SELECT 1 FROM pg_database WHERE datname = $1", dbname) is None:
            await conn.execute(f'CREATE DATABASE "{dbname}"')
            logger.info("Database created: %s", dbname)
    finally:
        await conn.close()


def build_engine(
    config: Optional["PostgresConfig"] = None,
    *,
    use_null_pool: bool = False,
) -> AsyncEngine:
    """Create (once) and return the process engine.

    ``use_null_pool`` suits one-shot jobs such as a single expiry sweep.
    """
    global _engine
    if _engine is not None:
        return _engine

    config = _config(config)
    pool_args: dict[str, Any]
    if use_null_pool:
        pool_args = {"poolclass": NullPool}
    else:
        pool_args = {
            "pool_size": config.pool_size,
            "max_overflow": config.max_overflow,
            "pool_timeout": config.pool_timeout,
            "pool_recycle": config.pool_recycle,
            "pool_pre_ping": True,
        }
    _engine = create_async_engine(
        asyncpg_url(config.url),
        echo=config.echo,
        connect_args=connect_args(config),
        **pool_args,
    )
    logger.info(
        "AsyncEngine created (%s, lock_timeout=%dms)",
        "NullPool" if use_null_pool else f"pool_size={config.pool_size}",
        config.lock_timeout_ms,
    )
    return _engine


def build_session_factory(
    engine: Optional[AsyncEngine] = None,
) -> async_sessionmaker[AsyncSession]:
    """Session factory; rows stay loaded after commit so responses can be rendered from them."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            engine or build_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_factory


async def init_db(config: Optional["PostgresConfig"] = None, *, drop_all: bool = False) -> None:
    """Create the tables and partial unique indexes. Dev/test only; production uses migrations."""
    engine = build_engine(config)
    async with engine.begin() as conn:
        if drop_all:
            logger.warning("Dropping all dispatch tables")
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Dispatch schema ready (%d tables)", len(Base.metadata.tables))


async def close_engine() -> None:
    """Dispose the pool. Called on API shutdown and at the end of the expiry script."""
    global _engine, _session_factory
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None
    logger.info("AsyncEngine disposed")
