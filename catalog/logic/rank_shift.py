"""Rank range shifting for fragments of one book.

``shift_ranks`` is the single primitive every ranking mutation builds on: it
adds a signed offset to each rank in ``[start, end)`` for one book. It knows
nothing about the fragment being inserted or moved; that policy lives in
``catalog.logic.fragment_ranking``. Atomicity is the caller's job, so the
function runs on the caller's connection and lets store errors propagate.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection

logger = logging.getLogger(__name__)


def shift_ranks(
    conn: Connection,
    book: object,
    start: int,
    end: Optional[int] = None,
    delta: int = 1,
) -> int:
    """Add ``delta`` to the rank of every fragment of ``book`` in ``[start, end)``.

    - ``end=None`` leaves the range unbounded above.
    - ``delta`` defaults to +1 (open a slot at ``start``).

    Returns the number of rows touched.
    """
    params = {"book": str(book), "start": int(start), "delta": int(delta)}
    sql = "UPDATE fragment SET rank = rank + :delta WHERE book = :book AND rank >= :start"
    if end is not None:
        sql += " AND rank < :end"
        params["end"] = int(end)
    result = conn.execute(sql_text(sql), params)
    shifted = int(result.rowcount or 0)
    logger.debug(
        "shift_ranks book=%s start=%s end=%s delta=%s shifted=%s",
        book,
        start,
        end,
        delta,
        shifted,
    )
    return shifted


__all__ = ["shift_ranks"]
