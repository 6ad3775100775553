"""Functional tests for the rank shifter and the fragment store adapter."""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy.exc import IntegrityError

from catalog.logic import repository_fragments as repo
from catalog.logic.rank_shift import shift_ranks
from catalog.models.fragment import RANK_MAX, RANK_MIN


@pytest.fixture
def engine(functional_sqlite_bootstrap):
    return functional_sqlite_bootstrap


def test_shift_defaults_to_plus_one_unbounded(engine, book, seed, ranks_by_id):
    ids = seed(book, [1, 2, 3, 4])
    with engine.begin() as conn:
        shifted = shift_ranks(conn, book, 3)
    assert shifted == 2
    assert ranks_by_id(book) == {ids[1]: 1, ids[2]: 2, ids[3]: 4, ids[4]: 5}


def test_shift_range_excludes_upper_bound(engine, book, seed, ranks_by_id):
    ids = seed(book, [1, 2, 3, 4])
    with engine.begin() as conn:
        shifted = shift_ranks(conn, book, 2, 4, -1)
    # Assert: ranks 2 and 3 moved, 4 (the bound) did not
    assert shifted == 2
    assert ranks_by_id(book) == {ids[1]: 1, ids[2]: 1, ids[3]: 2, ids[4]: 4}


def test_shift_is_scoped_to_one_book(engine, book, seed, ranks_by_id):
    other = uuid.uuid4()
    other_ids = seed(other, [1, 2])
    seed(book, [1, 2])
    with engine.begin() as conn:
        shift_ranks(conn, book, 1, delta=5)
    assert ranks_by_id(other) == {other_ids[1]: 1, other_ids[2]: 2}
    assert sorted(ranks_by_id(book).values()) == [6, 7]


def test_shift_empty_range_touches_nothing(engine, book, seed):
    seed(book, [1, 2])
    with engine.begin() as conn:
        assert shift_ranks(conn, book, 5, 9) == 0
        assert shift_ranks(conn, uuid.uuid4(), 1) == 0


def test_shift_rolls_back_with_the_caller_transaction(engine, book, seed, ranks_by_id):
    ids = seed(book, [1, 2])
    with pytest.raises(RuntimeError):
        with engine.begin() as conn:
            shift_ranks(conn, book, 1)
            raise RuntimeError("abort")
    assert ranks_by_id(book) == {ids[1]: 1, ids[2]: 2}


def test_rank_bounds_and_probes(engine, book, seed):
    ids = seed(book, [4, 9])
    with engine.connect() as conn:
        assert repo.rank_bounds(conn, book) == (9, 2)
        assert repo.rank_bounds(conn, uuid.uuid4()) == (None, 0)
        assert repo.rank_taken(conn, book, 4) is True
        assert repo.rank_taken(conn, book, 4, exclude_id=ids[4]) is False
        assert repo.rank_taken(conn, book, 5) is False
        assert repo.duplicate_ranks(conn, book) == []


def test_duplicate_ranks_reports_each_clash_once(engine, book, seed):
    seed(book, [1, 2, 3])
    seed(book, [2, 3])
    with engine.connect() as conn:
        assert repo.duplicate_ranks(conn, book) == [2, 3]


def test_update_and_delete_rows_report_rowcount(engine, book, seed, make_fragment):
    ids = seed(book, [1])
    with engine.begin() as conn:
        stored = repo.get_fragment(conn, ids[1])
        assert repo.update_fragment_row(conn, stored.model_copy(update={"content": "edited"})) == 1
        assert repo.update_fragment_row(conn, make_fragment(book, 2)) == 0
        assert repo.set_rank(conn, ids[1], 8) == 1
    with engine.begin() as conn:
        assert repo.get_fragment(conn, ids[1]).content == "edited"
        assert repo.delete_fragment_row(conn, ids[1]) == 1
        assert repo.delete_fragment_row(conn, ids[1]) == 0
        assert repo.get_fragment(conn, ids[1]) is None


@pytest.mark.parametrize("edge,delta", [(RANK_MAX, 1), (RANK_MIN, -1)])
def test_store_refuses_ranks_outside_32_bits(engine, book, seed, ranks_by_id, edge, delta):
    ids = seed(book, [edge])
    with pytest.raises(IntegrityError):
        with engine.begin() as conn:
            shift_ranks(conn, book, RANK_MIN, delta=delta)
    assert ranks_by_id(book) == {ids[edge]: edge}
