"""Lightweight SQL migrations runner.

Applies .sql files in lexical order from a migrations directory chosen by
dialect (``migrations/`` for PostgreSQL, ``sqlite_migrations/`` for SQLite).
Applied filenames are journaled in a ``schema_migrations`` table inside the
same transaction as the migration itself, so a failed file leaves no journal
entry behind. Production deployments may use their own migration mechanism.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection, Engine

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]

_JOURNAL_DDL = (
    "CREATE TABLE IF NOT EXISTS schema_migrations ("
    "filename VARCHAR(255) PRIMARY KEY, "
    "applied_at VARCHAR(32) NOT NULL)"
)


def default_migrations_dir(engine: Engine) -> Path:
    name = (engine.dialect.name or "").lower()
    if "sqlite" in name:
        return PROJECT_ROOT / "sqlite_migrations"
    return PROJECT_ROOT / "migrations"


def _iter_sql_files(root: Path) -> Iterable[Path]:
    for p in sorted(root.glob("*.sql")):
        # Rollback scripts are applied by hand only
        if "rollback" in p.name.lower():
            continue
        yield p


def _exec_sql_compat(conn: Connection, sql: str) -> None:
    """Execute SQL text, tolerating multi-statement files on SQLite.

    pysqlite refuses several statements in one execute() call, so SQLite
    scripts are split on ';' and run one by one, skipping comments and
    explicit transaction control (the runner owns the transaction).
    Other dialects receive the full script as-is.
    """
    name = (getattr(conn.dialect, "name", "") or "").lower()
    if "sqlite" not in name:
        conn.exec_driver_sql(sql)
        return
    for stmt in sql.split(";"):
        lines = [ln for ln in (stmt or "").splitlines() if not ln.strip().startswith("--")]
        s = "\n".join(lines).strip()
        if not s:
            continue
        if s.upper() in {"BEGIN", "COMMIT", "END"}:
            continue
        conn.exec_driver_sql(s)


def applied_migrations(conn: Connection) -> set[str]:
    conn.exec_driver_sql(_JOURNAL_DDL)
    rows = conn.execute(sql_text("SELECT filename FROM schema_migrations")).fetchall()
    return {str(r[0]) for r in rows}


def apply_migrations(engine: Engine, migrations_dir: str | os.PathLike[str] | None = None) -> list[str]:
    """Apply pending migrations and return the filenames applied in this run."""
    root = Path(migrations_dir) if migrations_dir is not None else default_migrations_dir(engine)
    if not root.exists():
        logger.warning("migrations_dir_missing path=%s", str(root))
        return []

    with engine.begin() as conn:
        done = applied_migrations(conn)

    applied_now: list[str] = []
    for sql_path in _iter_sql_files(root):
        fname = sql_path.name
        if fname in done:
            continue
        sql = sql_path.read_text(encoding="utf-8")
        if not sql.strip():
            continue
        try:
            with engine.begin() as conn:
                _exec_sql_compat(conn, sql)
                conn.execute(
                    sql_text("INSERT INTO schema_migrations (filename, applied_at) VALUES (:f, :at)"),
                    {
                        "f": fname,
                        # ISO-8601 UTC without fractional seconds
                        "at": datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z"),
                    },
                )
        except Exception:
            logger.error("migration_failed file=%s", fname, exc_info=True)
            raise
        logger.info("migration_applied file=%s", fname)
        applied_now.append(fname)
    return applied_now
