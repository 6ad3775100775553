"""APIRouter registration for the catalog service."""

from __future__ import annotations

from fastapi import APIRouter

from catalog.routes.fragments import router as fragments_router

api_router = APIRouter()
api_router.include_router(fragments_router, tags=["Fragments"])

__all__ = ["api_router"]
