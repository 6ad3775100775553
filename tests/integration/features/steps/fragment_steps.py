"""Step definitions for fragment ranking integration.

Every step talks to the live API through ``context.http``; fragments and
books are referred to by alias and resolved through ``context.vars``.
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from behave import given, then, when


def _aliases(raw: str) -> List[str]:
    return [part.strip().strip('"') for part in raw.split(",") if part.strip()]


def _ints(raw: str) -> List[int]:
    return [int(part) for part in raw.split(",") if part.strip()]


def _admin_headers(context: Any) -> Dict[str, str]:
    return {"x-api-key": context.admin_key}


def _fragment_body(context: Any, alias: str, rank: int, book_alias: str, content: Optional[str] = None) -> Dict[str, Any]:
    return {
        "content": content or f"fragment {alias}",
        "book": context.vars[book_alias],
        "chapter": 1,
        "rank": rank,
    }


def _create(context: Any, alias: str, rank: int, book_alias: str, headers: Optional[Dict[str, str]] = None):
    resp = context.http.post(
        "/fragments",
        json=_fragment_body(context, alias, rank, book_alias),
        headers=_admin_headers(context) if headers is None else headers,
    )
    if resp.status_code == 201:
        context.vars[alias] = resp.json()["id"]
    context.last_response = resp
    return resp


def _listing(context: Any, book_alias: str) -> List[Dict[str, Any]]:
    resp = context.http.get(f"/books/{context.vars[book_alias]}/fragments")
    assert resp.status_code == 200, f"Listing failed: {resp.status_code} {resp.text}"
    return resp.json()


# ------------------
# Given
# ------------------

@given('a fresh book "{book_alias}"')
def step_fresh_book(context, book_alias: str):
    context.vars[book_alias] = str(uuid.uuid4())


@given('fragments {aliases} at ranks {ranks} in book "{book_alias}"')
def step_seed_fragments(context, aliases: str, ranks: str, book_alias: str):
    names, values = _aliases(aliases), _ints(ranks)
    assert len(names) == len(values), "Each fragment alias needs one rank"
    for alias, rank in zip(names, values):
        resp = _create(context, alias, rank, book_alias)
        assert resp.status_code == 201, f"Seeding {alias} failed: {resp.status_code} {resp.text}"


# ------------------
# When
# ------------------

@when('I create fragment "{alias}" at rank {rank:d} in book "{book_alias}"')
def step_create(context, alias: str, rank: int, book_alias: str):
    _create(context, alias, rank, book_alias)


@when('I create fragment "{alias}" at rank {rank:d} in book "{book_alias}" without an API key')
def step_create_without_key(context, alias: str, rank: int, book_alias: str):
    _create(context, alias, rank, book_alias, headers={})


@when('I move fragment "{alias}" to rank {rank:d}')
def step_move(context, alias: str, rank: int):
    context.last_response = context.http.put(
        f"/fragments/{context.vars[alias]}/reorder",
        json={"to": rank},
        headers=_admin_headers(context),
    )


@when("I move an unknown fragment to rank {rank:d}")
def step_move_unknown(context, rank: int):
    context.last_response = context.http.put(
        f"/fragments/{uuid.uuid4()}/reorder",
        json={"to": rank},
        headers=_admin_headers(context),
    )


@when('I update fragment "{alias}" with content "{content}" and rank {rank:d}')
def step_update(context, alias: str, content: str, rank: int):
    current = context.http.get(f"/fragments/{context.vars[alias]}")
    assert current.status_code == 200, f"Fetch before update failed: {current.status_code}"
    body = current.json()
    body.update({"content": content, "rank": rank})
    context.last_response = context.http.put("/fragments", json=body, headers=_admin_headers(context))


@when('I delete fragment "{alias}"')
def step_delete(context, alias: str):
    context.last_response = context.http.delete(
        f"/fragments/{context.vars[alias]}", headers=_admin_headers(context)
    )


# ------------------
# Then
# ------------------

@then("the response status is {status:d}")
def step_status(context, status: int):
    resp = context.last_response
    assert resp is not None, "No request was made"
    assert resp.status_code == status, f"Expected {status}, got {resp.status_code}: {resp.text}"


@then('the response JSON field "{field}" is {value:d}')
def step_json_field(context, field: str, value: int):
    body = context.last_response.json()
    assert body.get(field) == value, f"Expected {field}={value}, got {body!r}"


@then('the problem code is "{code}"')
def step_problem_code(context, code: str):
    resp = context.last_response
    assert resp.headers.get("content-type", "").startswith("application/problem+json")
    assert resp.json().get("code") == code, f"Unexpected problem: {resp.text}"


@then('book "{book_alias}" lists fragments in order {aliases}')
def step_listing_order(context, book_alias: str, aliases: str):
    expected = [context.vars[a] for a in _aliases(aliases)]
    actual = [row["id"] for row in _listing(context, book_alias)]
    assert actual == expected, f"Expected order {expected}, got {actual}"


@then('book "{book_alias}" has ranks {ranks}')
def step_listing_ranks(context, book_alias: str, ranks: str):
    actual = [row["rank"] for row in _listing(context, book_alias)]
    assert actual == _ints(ranks), f"Expected ranks {ranks}, got {actual}"
