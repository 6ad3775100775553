"""Fragment table data access.

Encapsulates the SQL issued by the ranking engine so the engine and the HTTP
layer stay free of inline statements. Every helper runs on a connection
supplied by the caller; transaction scope belongs to the caller.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection

from catalog.models.fragment import Fragment

COLUMNS = (
    "id",
    "content",
    "one_shot_sound_source",
    "bg_sound_type",
    "bg_sound_source",
    "img_type",
    "img_source",
    "book",
    "chapter",
    "rank",
)
_SELECT = "SELECT " + ", ".join(COLUMNS) + " FROM fragment"


def _params(fragment: Fragment) -> dict:
    values = fragment.model_dump()
    values["id"] = str(fragment.id)
    values["book"] = str(fragment.book)
    return values


def _row_to_fragment(row) -> Fragment:  # type: ignore[no-untyped-def]
    return Fragment(**dict(zip(COLUMNS, row)))


def get_fragment(conn: Connection, fragment_id: object) -> Optional[Fragment]:
    row = conn.execute(
        sql_text(_SELECT + " WHERE id = :fid"),
        {"fid": str(fragment_id)},
    ).fetchone()
    return _row_to_fragment(row) if row is not None else None


def list_book_fragments(conn: Connection, book: object) -> List[Fragment]:
    """Return every fragment of ``book`` in storage order (unsorted)."""
    rows = conn.execute(
        sql_text(_SELECT + " WHERE book = :book"),
        {"book": str(book)},
    ).fetchall()
    return [_row_to_fragment(r) for r in rows]


def rank_bounds(conn: Connection, book: object) -> Tuple[Optional[int], int]:
    """Return ``(max_rank, count)`` for a book; ``max_rank`` is None when empty."""
    row = conn.execute(
        sql_text("SELECT MAX(rank), COUNT(*) FROM fragment WHERE book = :book"),
        {"book": str(book)},
    ).fetchone()
    if not row:
        return None, 0
    max_rank = int(row[0]) if row[0] is not None else None
    return max_rank, int(row[1] or 0)


def rank_taken(conn: Connection, book: object, rank: int, exclude_id: object = None) -> bool:
    """Return True when a fragment of ``book`` other than ``exclude_id`` holds ``rank``."""
    params = {"book": str(book), "rank": int(rank)}
    sql = "SELECT 1 FROM fragment WHERE book = :book AND rank = :rank"
    if exclude_id is not None:
        sql += " AND id <> :fid"
        params["fid"] = str(exclude_id)
    row = conn.execute(sql_text(sql + " LIMIT 1"), params).fetchone()
    return row is not None


def duplicate_ranks(conn: Connection, book: object) -> List[int]:
    rows = conn.execute(
        sql_text(
            "SELECT rank FROM fragment WHERE book = :book GROUP BY rank HAVING COUNT(*) > 1 ORDER BY rank"
        ),
        {"book": str(book)},
    ).fetchall()
    return [int(r[0]) for r in rows]


def insert_fragment(conn: Connection, fragment: Fragment) -> int:
    placeholders = ", ".join(f":{c}" for c in COLUMNS)
    result = conn.execute(
        sql_text(f"INSERT INTO fragment ({', '.join(COLUMNS)}) VALUES ({placeholders})"),
        _params(fragment),
    )
    return int(result.rowcount or 0)


def set_rank(conn: Connection, fragment_id: object, rank: int) -> int:
    result = conn.execute(
        sql_text("UPDATE fragment SET rank = :rank WHERE id = :fid"),
        {"rank": int(rank), "fid": str(fragment_id)},
    )
    return int(result.rowcount or 0)


def update_fragment_row(conn: Connection, fragment: Fragment) -> int:
    """Persist every column of ``fragment`` by id and return rows updated."""
    assignments = ", ".join(f"{c} = :{c}" for c in COLUMNS if c != "id")
    result = conn.execute(
        sql_text(f"UPDATE fragment SET {assignments} WHERE id = :id"),
        _params(fragment),
    )
    return int(result.rowcount or 0)


def delete_fragment_row(conn: Connection, fragment_id: object) -> int:
    result = conn.execute(
        sql_text("DELETE FROM fragment WHERE id = :fid"),
        {"fid": str(fragment_id)},
    )
    return int(result.rowcount or 0)


__all__ = [
    "COLUMNS",
    "get_fragment",
    "list_book_fragments",
    "rank_bounds",
    "rank_taken",
    "duplicate_ranks",
    "insert_fragment",
    "set_rank",
    "update_fragment_row",
    "delete_fragment_row",
]
