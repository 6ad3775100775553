"""SQLAlchemy engine management.

The service targets PostgreSQL in production and SQLite for local development
and CI. No declarative models are defined here; repositories issue textual
SQL against connections handed out by this engine.
"""

from __future__ import annotations

import logging
import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


def _db_url() -> str:
    return (
        os.getenv("TEST_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or "sqlite+pysqlite:///:memory:"
    )


# Module-level cached Engine shared by every repository call
_ENGINE: Engine | None = None
_ENGINE_URL: str | None = None
_ENGINE_SSL: bool = False


def _engine_kwargs(url: str, ssl_required: bool) -> dict:
    kwargs: dict = {"future": True, "pool_pre_ping": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}
        if ":memory:" in url:
            kwargs["poolclass"] = StaticPool
    elif url.startswith("postgresql") and ssl_required:
        kwargs["connect_args"] = {"sslmode": "require"}
    return kwargs


def get_engine(url: str | None = None, ssl_required: bool | None = None) -> Engine:
    """Return a singleton SQLAlchemy Engine.

    Without ``url`` the already-built engine is reused, falling back to the
    environment on first use. SQLite connections are shared across the
    request threadpool, so ``check_same_thread`` is disabled and a generous
    busy timeout lets writers queue on the database lock. In-memory SQLite
    uses a StaticPool to keep one connection alive for the process.
    ``ssl_required`` adds ``sslmode=require`` for PostgreSQL; when omitted the
    cached engine's setting is kept.
    """
    global _ENGINE, _ENGINE_URL, _ENGINE_SSL
    resolved_url = url or _ENGINE_URL or _db_url()
    resolved_ssl = _ENGINE_SSL if ssl_required is None else bool(ssl_required)

    if _ENGINE is None or (_ENGINE_URL, _ENGINE_SSL) != (resolved_url, resolved_ssl):
        if _ENGINE is not None:
            _ENGINE.dispose()
        _ENGINE = create_engine(resolved_url, **_engine_kwargs(resolved_url, resolved_ssl))
        _ENGINE_URL = resolved_url
        _ENGINE_SSL = resolved_ssl
        logger.info("db.engine.created dialect=%s", _ENGINE.dialect.name)

    return _ENGINE


def reset_engine() -> None:
    """Dispose the cached engine so the next ``get_engine`` call rebuilds it."""
    global _ENGINE, _ENGINE_URL, _ENGINE_SSL
    if _ENGINE is not None:
        _ENGINE.dispose()
    _ENGINE = None
    _ENGINE_URL = None
    _ENGINE_SSL = False
