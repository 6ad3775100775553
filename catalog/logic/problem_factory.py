"""Centralised construction of problem+json payloads.

Route modules and exception handlers import these helpers instead of
embedding titles, codes and status literals.
"""

from __future__ import annotations

from typing import Dict
import logging

from catalog.logic.errors import RankingError

logger = logging.getLogger(__name__)

_TITLES = {
    400: "Bad Request",
    404: "Not Found",
    409: "Conflict",
    500: "Internal Server Error",
}


def _problem(status: int, code: str, detail: str) -> Dict[str, object]:
    problem: Dict[str, object] = {
        "title": _TITLES.get(status, "Error"),
        "status": status,
        "detail": detail,
        "code": code,
    }
    logger.info("error_handler.handle", extra={"code": code, "status": status})
    return problem


def problem_api_key_missing() -> Dict[str, object]:
    """Return a 400 problem indicating the x-api-key header is absent."""
    return _problem(400, "AUTH_API_KEY_MISSING", "x-api-key header is required")


def problem_api_key_invalid() -> Dict[str, object]:
    """Return a 400 problem indicating the x-api-key header does not match."""
    return _problem(400, "AUTH_API_KEY_INVALID", "x-api-key header is invalid")


def problem_from_ranking_error(exc: RankingError) -> Dict[str, object]:
    # Store failure text may carry SQL; keep it out of the response body
    detail = "Store operation failed" if exc.status >= 500 else str(exc)
    problem = _problem(int(exc.status), exc.code, detail)
    if exc.retryable:
        problem["retryable"] = True
    return problem


__all__ = [
    "problem_api_key_missing",
    "problem_api_key_invalid",
    "problem_from_ranking_error",
]
