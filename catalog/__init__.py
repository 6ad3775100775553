"""FastAPI application package for the catalog fragment ranking service.

Exposes the application factory. Ranking logic lives in `catalog/logic/`
and route handlers in `catalog/routes/`.
"""

from __future__ import annotations

from catalog.main import create_app

__all__ = ["create_app"]
