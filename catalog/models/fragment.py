"""Pydantic models for book fragments and their rank projection."""

from __future__ import annotations

import uuid
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field

# Ranks are stored in a signed 32-bit INTEGER column
RANK_MIN = -(2**31)
RANK_MAX = 2**31 - 1

Rank = Annotated[int, Field(ge=RANK_MIN, le=RANK_MAX)]


class FragmentInput(BaseModel):
    """Create payload; the server assigns the identifier."""

    model_config = ConfigDict(extra="forbid")

    content: str
    one_shot_sound_source: Optional[str] = None
    bg_sound_type: Optional[str] = None
    bg_sound_source: Optional[str] = None
    img_type: Optional[str] = None
    img_source: Optional[str] = None
    book: uuid.UUID
    chapter: int = 0
    rank: Rank

    def to_fragment(self) -> "Fragment":
        return Fragment(id=uuid.uuid4(), **self.model_dump())


class Fragment(FragmentInput):
    id: uuid.UUID


class Simple(BaseModel):
    """Ordering-only view of a fragment."""

    id: uuid.UUID
    rank: int


class ToRank(BaseModel):
    to: Rank


__all__ = ["Fragment", "FragmentInput", "Simple", "ToRank", "RANK_MIN", "RANK_MAX"]
