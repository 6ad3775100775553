"""Failure taxonomy for the fragment ranking engine.

Every engine failure derives from ``RankingError`` and carries the problem
code and HTTP status the route layer maps it to. Store failures are wrapped,
never swallowed: the originating SQLAlchemy error stays on ``__cause__``.
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy.exc import DBAPIError, SQLAlchemyError

# serialization_failure, deadlock_detected, unique_violation
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01", "23505"})


class RankingError(Exception):
    code = "RANKING_ERROR"
    status = 500
    retryable = False


class FragmentNotFound(RankingError):
    code = "FRAGMENT_NOT_FOUND"
    status = 404

    def __init__(self, fragment_id: object) -> None:
        self.fragment_id = str(fragment_id)
        super().__init__(f"Fragment with ID {self.fragment_id} not found")


class StoreFailure(RankingError):
    code = "STORE_FAILURE"
    status = 500


class RankCollision(RankingError):
    """Two fragments of a book would share a rank; the transaction was rolled back.

    Raised for duplicates caught by the pre-commit probe and for store-side
    serialization conflicts. Callers may retry the whole operation.
    """

    code = "RANK_COLLISION"
    status = 409
    retryable = True

    def __init__(self, book: object, ranks: Iterable[int] = (), reason: str = "") -> None:
        self.book = str(book) if book is not None else ""
        self.ranks = sorted(int(r) for r in ranks)
        message = reason or f"duplicate ranks {self.ranks} in book {self.book}"
        super().__init__(message)


class RankOutOfRange(RankingError):
    """Opening a slot would push a fragment of the book past the 32-bit rank range."""

    code = "RANK_OUT_OF_RANGE"
    status = 409

    def __init__(self, book: object, rank: int) -> None:
        self.book = str(book)
        self.rank = int(rank)
        super().__init__(f"rank {self.rank} in book {self.book} is outside the 32-bit rank range")


def _sqlstate(exc: SQLAlchemyError) -> str:
    if not isinstance(exc, DBAPIError):
        return ""
    orig = getattr(exc, "orig", None)
    return str(getattr(orig, "pgcode", "") or getattr(orig, "sqlstate", "") or "")


def from_store_error(exc: SQLAlchemyError, book: object = None) -> RankingError:
    """Classify a SQLAlchemy error as a retryable collision or an opaque store failure."""
    if _sqlstate(exc) in RETRYABLE_SQLSTATES:
        return RankCollision(book, reason=f"concurrent rank conflict: {exc.__class__.__name__}")
    return StoreFailure(str(exc))


__all__ = [
    "RankingError",
    "FragmentNotFound",
    "StoreFailure",
    "RankCollision",
    "RankOutOfRange",
    "from_store_error",
]
