"""Problem+JSON utilities and global exception handlers.

Defines the RFC 7807 media type and the handler callables registered by
``create_app`` so every failure leaves as application/problem+json.
"""

from __future__ import annotations

import logging
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException
from fastapi.responses import JSONResponse

from catalog.logic.errors import RankingError
from catalog.logic.problem_factory import problem_from_ranking_error

PROBLEM_MEDIA_TYPE = "application/problem+json"

logger = logging.getLogger(__name__)


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:  # noqa: D401
    status_code = int(getattr(exc, "status_code", 500) or 500)
    if isinstance(exc.detail, dict):
        detail = exc.detail
    else:
        detail = {"title": "Error", "status": status_code, "detail": str(exc.detail or "")}
    headers = {str(k): str(v) for k, v in (exc.headers or {}).items()}
    return JSONResponse(
        detail,
        status_code=status_code,
        media_type=PROBLEM_MEDIA_TYPE,
        headers=headers or None,
    )


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:  # noqa: D401
    problem = {
        "title": "Invalid Request",
        "status": 422,
        "detail": "Request validation failed",
        # jsonable: ctx may hold exception instances
        "errors": [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()],
    }
    return JSONResponse(problem, status_code=422, media_type=PROBLEM_MEDIA_TYPE)


async def handle_ranking_error(request: Request, exc: RankingError) -> JSONResponse:  # noqa: D401
    problem = problem_from_ranking_error(exc)
    return JSONResponse(problem, status_code=int(exc.status), media_type=PROBLEM_MEDIA_TYPE)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:  # noqa: D401
    logger.error("unexpected_error path=%s", request.url.path, exc_info=exc)
    return JSONResponse({"title": "Internal Server Error", "status": 500}, status_code=500, media_type=PROBLEM_MEDIA_TYPE)


__all__ = [
    "PROBLEM_MEDIA_TYPE",
    "handle_http_exception",
    "handle_request_validation_error",
    "handle_ranking_error",
    "handle_unexpected_error",
]
