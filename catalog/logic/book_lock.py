"""Per-book writer serialisation for ranking transactions.

Shift-then-mutate spans several statements, so two writers on the same book
must not interleave. On PostgreSQL a transaction-scoped advisory lock keyed
by the book id does this and is released by COMMIT/ROLLBACK. Other dialects
(SQLite in development and CI) fall back to a process-wide lock per book;
SQLite's database write lock covers writers in other processes.

``BookWriteLock`` must be entered *before* the transaction it protects so the
process-local locks are released only after the transaction has finished.
"""

from __future__ import annotations

import threading
import weakref
from contextlib import ExitStack
from typing import List, Set, Tuple

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection

# Entries vanish once no writer references a book's lock
_LOCAL_LOCKS: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
_LOCAL_LOCKS_GUARD = threading.Lock()


def _local_lock(book: str) -> threading.Lock:
    with _LOCAL_LOCKS_GUARD:
        lock = _LOCAL_LOCKS.get(book)
        if lock is None:
            lock = threading.Lock()
            _LOCAL_LOCKS[book] = lock
        return lock


class BookWriteLock:
    def __init__(self) -> None:
        self._held = ExitStack()
        self._books: Set[str] = set()
        self._acquired: List[str] = []

    def __enter__(self) -> "BookWriteLock":
        return self

    def __exit__(self, *exc_info) -> bool:  # type: ignore[no-untyped-def]
        self._books.clear()
        return bool(self._held.__exit__(*exc_info))

    def holds(self, book: object) -> bool:
        return str(book) in self._books

    @property
    def acquired(self) -> Tuple[str, ...]:
        """Books locked by this registry in acquisition order; kept after exit for error reporting."""
        return tuple(self._acquired)

    def acquire(self, conn: Connection, *books: object) -> None:
        """Lock every book not yet held, in sorted order to avoid lock cycles."""
        pending = sorted({str(b) for b in books} - self._books)
        advisory = conn.dialect.name == "postgresql"
        for book in pending:
            if advisory:
                conn.execute(sql_text("SELECT pg_advisory_xact_lock(hashtext(:book))"), {"book": book})
            else:
                self._held.enter_context(_local_lock(book))
            self._books.add(book)
            self._acquired.append(book)


__all__ = ["BookWriteLock"]
