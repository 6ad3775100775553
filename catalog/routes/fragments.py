"""Fragment endpoints.

Thin HTTP glue over ``catalog.logic.fragment_ranking``: handlers parse the
request, call one engine operation and shape the response. Engine failures
propagate as ``RankingError`` and are mapped to problem+json by the handler
registered in ``create_app``. Handlers are sync so FastAPI runs each request
on its own threadpool worker while it waits on the store.
"""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends, Request, Response

from catalog.guards.api_key import require_api_key
from catalog.logic.fragment_ranking import (
    create_fragment,
    delete_fragment,
    get_fragment,
    list_fragments,
    move_fragment,
    update_fragment,
)
from catalog.models.fragment import Fragment, FragmentInput, Simple, ToRank

router = APIRouter()


@router.get("/books/{book_id}/fragments", summary="List fragment ranks of a book")
def get_book_fragments(book_id: uuid.UUID) -> List[Simple]:
    """Return ``{id, rank}`` for every fragment of the book, ascending by rank.

    An unknown book yields an empty list rather than 404.
    """
    return list_fragments(book_id)


@router.get("/fragments/{fragment_id}", summary="Get a fragment")
def get_fragment_by_id(fragment_id: uuid.UUID) -> Fragment:
    return get_fragment(fragment_id)


@router.post(
    "/fragments",
    summary="Create a fragment",
    status_code=201,
    dependencies=[Depends(require_api_key)],
)
def post_fragment(payload: FragmentInput, request: Request) -> Fragment:
    fragment = payload.to_fragment()
    clamp = request.app.state.config.ranking.clamp_create_rank
    create_fragment(fragment, clamp_create_rank=clamp)
    # Read back: the stored rank may differ from the requested one after clamping
    return get_fragment(fragment.id)


@router.put(
    "/fragments",
    summary="Update a fragment",
    dependencies=[Depends(require_api_key)],
)
def put_fragment(payload: Fragment) -> dict:
    updated = update_fragment(payload)
    return {"updated": updated}


@router.delete(
    "/fragments/{fragment_id}",
    summary="Delete a fragment",
    status_code=204,
    dependencies=[Depends(require_api_key)],
)
def remove_fragment(fragment_id: uuid.UUID) -> Response:
    delete_fragment(fragment_id)
    return Response(status_code=204)


@router.put(
    "/fragments/{fragment_id}/reorder",
    summary="Move a fragment to a new rank",
    dependencies=[Depends(require_api_key)],
)
def reorder_fragment(fragment_id: uuid.UUID, body: ToRank) -> dict:
    shifted = move_fragment(fragment_id, body.to)
    return {"shifted": shifted}


__all__ = ["router"]
