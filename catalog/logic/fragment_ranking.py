"""Fragment ranking engine.

Keeps the fragments of each book ordered by ``rank`` and guarantees that,
once any mutation commits, no two fragments of a book share a rank. Each
mutation runs as one transaction:

1. take the write lock of every book it touches (see ``book_lock``);
2. shift the affected rank range (see ``rank_shift``);
3. insert/update/delete the fragment row itself;
4. probe the touched books for duplicate ranks and roll back on any.

Delete never compacts the remaining ranks; gaps are allowed. The engine keeps
no in-memory state and performs no retries: failures are logged and raised
as ``RankingError`` subclasses for the HTTP layer to map.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional, Tuple

from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from catalog.db.base import get_engine
from catalog.logic import repository_fragments as repo
from catalog.logic.book_lock import BookWriteLock
from catalog.logic.errors import (
    FragmentNotFound,
    RankCollision,
    RankingError,
    RankOutOfRange,
    from_store_error,
)
from catalog.logic.fragment_summary import project_summary
from catalog.logic.rank_shift import shift_ranks
from catalog.models.fragment import RANK_MAX, Fragment, Simple

logger = logging.getLogger(__name__)


@contextmanager
def _ranking_transaction(op: str, book: object = None) -> Iterator[Tuple[Connection, BookWriteLock]]:
    """Yield a connection inside one transaction plus the lock registry for it.

    The lock registry wraps the transaction so process-local book locks are
    released only after COMMIT or ROLLBACK.
    """
    eng = get_engine()
    locks = BookWriteLock()
    try:
        with locks:
            with eng.begin() as conn:
                yield conn, locks
    except FragmentNotFound as exc:
        logger.info("fragment.%s not_found id=%s", op, exc.fragment_id)
        raise
    except RankOutOfRange as exc:
        logger.info("fragment.%s rank_out_of_range book=%s rank=%s", op, exc.book, exc.rank)
        raise
    except RankingError:
        logger.error("fragment.%s failed book=%s", op, _scope(book, locks), exc_info=True)
        raise
    except SQLAlchemyError as exc:
        scope = _scope(book, locks)
        logger.error("fragment.%s store failure book=%s", op, scope, exc_info=True)
        raise from_store_error(exc, scope) from exc


def _scope(book: object, locks: BookWriteLock) -> object:
    # Operations keyed by fragment id learn their book once it is locked
    if book is not None:
        return book
    return locks.acquired[0] if locks.acquired else None


def _open_slot(conn: Connection, book: object, rank: int, last_rank: Optional[int]) -> int:
    """Shift every rank of ``book`` at or above ``rank`` up by one, refusing to pass ``RANK_MAX``."""
    if last_rank is not None and last_rank >= rank and last_rank + 1 > RANK_MAX:
        raise RankOutOfRange(book, last_rank + 1)
    return shift_ranks(conn, book, rank)


def _ensure_unique_ranks(conn: Connection, *books: object) -> None:
    for book in {str(b) for b in books}:
        dups = repo.duplicate_ranks(conn, book)
        if dups:
            raise RankCollision(book, dups)


def _lock_fragment_book(conn: Connection, locks: BookWriteLock, fragment_id: object, *extra_books: object) -> Fragment:
    """Lock the book of ``fragment_id`` (plus ``extra_books``) and return the row read under the lock."""
    found = repo.get_fragment(conn, fragment_id)
    if found is None:
        raise FragmentNotFound(fragment_id)
    locks.acquire(conn, found.book, *extra_books)
    # Re-read: the row may have moved or vanished while we waited
    locked = repo.get_fragment(conn, fragment_id)
    if locked is None:
        raise FragmentNotFound(fragment_id)
    if not locks.holds(locked.book):
        raise RankCollision(locked.book, reason=f"fragment {fragment_id} changed book concurrently")
    return locked


def _move_within_book(conn: Connection, fragment: Fragment, new_rank: int) -> Tuple[int, int]:
    """Splice ``fragment`` to ``new_rank`` in its own book; return ``(shifted, final_rank)``.

    A destination past the last rank is clamped to the last rank, i.e. one
    past the last rank left once the fragment vacates its slot.
    """
    last_rank, _ = repo.rank_bounds(conn, fragment.book)
    target = int(new_rank)
    if last_rank is not None and target > last_rank:
        target = last_rank
    current = fragment.rank
    if current < target:
        # Close the slot being vacated: (current, target] moves down
        shifted = shift_ranks(conn, fragment.book, current + 1, target + 1, -1)
    elif current > target:
        # Open a slot at the destination: [target, current) moves up
        shifted = shift_ranks(conn, fragment.book, target, current, 1)
    else:
        shifted = 0
    repo.set_rank(conn, fragment.id, target)
    return shifted, target


def create_fragment(fragment: Fragment, *, clamp_create_rank: bool = True) -> int:
    """Insert ``fragment`` at its rank, pushing every fragment at or after it down by one.

    An empty book takes the rank verbatim. Otherwise, with
    ``clamp_create_rank`` a rank beyond ``last + 1`` becomes ``last + 1``;
    without it the rank is kept and a gap is left above the old maximum.
    Returns the number of rows inserted.
    """
    with _ranking_transaction("create", fragment.book) as (conn, locks):
        locks.acquire(conn, fragment.book)
        last_rank, count = repo.rank_bounds(conn, fragment.book)
        rank = fragment.rank
        shifted = 0
        if count:
            if clamp_create_rank and last_rank is not None and rank > last_rank + 1:
                rank = last_rank + 1
            shifted = _open_slot(conn, fragment.book, rank, last_rank)
        inserted = repo.insert_fragment(conn, fragment.model_copy(update={"rank": rank}))
        _ensure_unique_ranks(conn, fragment.book)
    logger.info(
        "fragment.create id=%s book=%s requested_rank=%s rank=%s shifted=%s",
        fragment.id,
        fragment.book,
        fragment.rank,
        rank,
        shifted,
    )
    return inserted


def move_fragment(fragment_id: object, new_rank: int) -> int:
    """Move a fragment to ``new_rank`` inside its book; return how many siblings shifted."""
    with _ranking_transaction("move") as (conn, locks):
        fragment = _lock_fragment_book(conn, locks, fragment_id)
        shifted, final_rank = _move_within_book(conn, fragment, new_rank)
        _ensure_unique_ranks(conn, fragment.book)
    logger.info(
        "fragment.move id=%s book=%s from=%s requested=%s to=%s shifted=%s",
        fragment_id,
        fragment.book,
        fragment.rank,
        new_rank,
        final_rank,
        shifted,
    )
    return shifted


def update_fragment(fragment: Fragment) -> int:
    """Persist every field of ``fragment``, re-ranking first when its rank is taken.

    Within the same book a colliding rank triggers a move to that rank.
    When the fragment changes book, the destination book opens a slot at
    the rank if it is already taken there.
    """
    with _ranking_transaction("update", fragment.book) as (conn, locks):
        stored = _lock_fragment_book(conn, locks, fragment.id, fragment.book)
        same_book = str(stored.book) == str(fragment.book)
        shifted = 0
        if same_book:
            if fragment.rank != stored.rank and repo.rank_taken(conn, fragment.book, fragment.rank, exclude_id=fragment.id):
                shifted, _ = _move_within_book(conn, stored, fragment.rank)
        elif repo.rank_taken(conn, fragment.book, fragment.rank):
            target_last, _ = repo.rank_bounds(conn, fragment.book)
            shifted = _open_slot(conn, fragment.book, fragment.rank, target_last)
        updated = repo.update_fragment_row(conn, fragment)
        if not updated:
            raise FragmentNotFound(fragment.id)
        _ensure_unique_ranks(conn, stored.book, fragment.book)
    logger.info(
        "fragment.update id=%s book=%s from_book=%s rank=%s shifted=%s",
        fragment.id,
        fragment.book,
        stored.book,
        fragment.rank,
        shifted,
    )
    return updated


def delete_fragment(fragment_id: object) -> None:
    """Delete a fragment by id. Remaining ranks are left as they are."""
    with _ranking_transaction("delete") as (conn, locks):
        fragment = _lock_fragment_book(conn, locks, fragment_id)
        deleted = repo.delete_fragment_row(conn, fragment_id)
        if not deleted:
            raise FragmentNotFound(fragment_id)
    logger.info("fragment.delete id=%s book=%s rank=%s", fragment_id, fragment.book, fragment.rank)


def get_fragment(fragment_id: object) -> Fragment:
    with _ranking_transaction("get") as (conn, _locks):
        fragment = repo.get_fragment(conn, fragment_id)
    if fragment is None:
        raise FragmentNotFound(fragment_id)
    return fragment


def list_fragments(book: object) -> List[Simple]:
    """Return ``(id, rank)`` for every fragment of ``book``, ascending by rank.

    An unknown or empty book yields an empty list.
    """
    with _ranking_transaction("list", book) as (conn, _locks):
        fragments = repo.list_book_fragments(conn, book)
    return project_summary(fragments)


__all__ = [
    "create_fragment",
    "move_fragment",
    "update_fragment",
    "delete_fragment",
    "get_fragment",
    "list_fragments",
]
