"""CORS configuration helper.

Applies CORS for browser clients of the catalog API and exposes the request
id header so front-ends can quote it in bug reports.
"""

from __future__ import annotations

from typing import Iterable
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware


EXPOSE_HEADERS: list[str] = ["X-Request-Id"]


def apply_cors(app: FastAPI, *, origins: Iterable[str] | None = None) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(origins or ["*"]),
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
        expose_headers=EXPOSE_HEADERS,
    )


__all__ = ["apply_cors", "EXPOSE_HEADERS"]
