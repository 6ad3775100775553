"""Pydantic models shared by routes and the ranking engine."""

from catalog.models.fragment import Fragment, FragmentInput, Simple, ToRank

__all__ = ["Fragment", "FragmentInput", "Simple", "ToRank"]
