"""Functional test bootstrap for the fragment ranking engine.

Points the service at a file-backed SQLite database (shared across pooled
connections and threads, unlike ``:memory:``) and applies the SQLite
migrations once per session. Every test starts from an empty fragment table.
"""

from __future__ import annotations

import os
import pathlib
import uuid
from typing import Callable, Dict, Iterable

import pytest

_ROOT = pathlib.Path(__file__).resolve().parents[2]
_DB_FILE = _ROOT / "tmp" / "functional_tests.db"
_DB_FILE.parent.mkdir(parents=True, exist_ok=True)
if _DB_FILE.exists():
    _DB_FILE.unlink()

# Environment must be set before any import of catalog.main
os.environ["TEST_DATABASE_URL"] = f"sqlite:///{_DB_FILE}"
os.environ["DATABASE_URL"] = os.environ["TEST_DATABASE_URL"]
os.environ["CATALOG_ADMIN_KEY"] = "test-admin-key"
# Migrations are applied explicitly below, not by app startup
os.environ["AUTO_APPLY_MIGRATIONS"] = "0"


@pytest.fixture(scope="session", autouse=True)
def functional_sqlite_bootstrap():
    """Session-level bootstrap: build the shared engine and apply migrations once."""
    from catalog.db.base import get_engine, reset_engine
    from catalog.db.migrations_runner import apply_migrations

    engine = get_engine(os.environ["TEST_DATABASE_URL"])
    apply_migrations(engine)
    yield engine
    reset_engine()


@pytest.fixture(autouse=True)
def clean_fragments(functional_sqlite_bootstrap):
    from sqlalchemy import text as sql_text

    with functional_sqlite_bootstrap.begin() as conn:
        conn.execute(sql_text("DELETE FROM fragment"))
    yield


@pytest.fixture
def book() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def make_fragment() -> Callable[..., "object"]:
    from catalog.models.fragment import Fragment

    def _make(book: uuid.UUID, rank: int, content: str = "", **fields) -> Fragment:
        return Fragment(
            id=uuid.uuid4(),
            book=book,
            rank=rank,
            content=content or f"fragment at {rank}",
            **fields,
        )

    return _make


@pytest.fixture
def seed(functional_sqlite_bootstrap, make_fragment) -> Callable[[uuid.UUID, Iterable[int]], Dict[int, uuid.UUID]]:
    """Insert rows directly (bypassing the engine) and return ``{rank: id}``."""
    from catalog.logic import repository_fragments as repo

    def _seed(book: uuid.UUID, ranks: Iterable[int]) -> Dict[int, uuid.UUID]:
        ids: Dict[int, uuid.UUID] = {}
        with functional_sqlite_bootstrap.begin() as conn:
            for rank in ranks:
                fragment = make_fragment(book, rank)
                repo.insert_fragment(conn, fragment)
                ids[rank] = fragment.id
        return ids

    return _seed


@pytest.fixture
def ranks_by_id(functional_sqlite_bootstrap) -> Callable[[uuid.UUID], Dict[uuid.UUID, int]]:
    """Read back ``{id: rank}`` for a book straight from the table."""
    from catalog.logic import repository_fragments as repo

    def _read(book: uuid.UUID) -> Dict[uuid.UUID, int]:
        with functional_sqlite_bootstrap.connect() as conn:
            return {f.id: f.rank for f in repo.list_book_fragments(conn, book)}

    return _read


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from catalog.main import create_app

    with TestClient(create_app()) as test_client:
        yield test_client
