"""Rank summary projection for fragment listings.

Bulk ordering queries only need ``(id, rank)`` pairs; the projection drops
the fragment payload and sorts ascending by rank. ``sorted`` is stable, so
rows sharing a rank (only possible in a corrupted book) keep storage order.
"""

from __future__ import annotations

from typing import Iterable, List

from catalog.models.fragment import Fragment, Simple


def project_summary(fragments: Iterable[Fragment]) -> List[Simple]:
    summary = [Simple(id=f.id, rank=f.rank) for f in fragments]
    return sorted(summary, key=lambda item: item.rank)


__all__ = ["project_summary"]
