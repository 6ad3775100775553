"""Admin API key guard for write routes.

Write routes depend on ``require_api_key``: the ``x-api-key`` header must
equal the configured admin key. A missing or wrong key is rejected with a
400 problem before the handler runs.
"""

from __future__ import annotations

import logging
import secrets
from typing import Annotated, Optional

from fastapi import Header, HTTPException, Request

from catalog.logic.problem_factory import problem_api_key_invalid, problem_api_key_missing

logger = logging.getLogger(__name__)


def require_api_key(
    request: Request,
    x_api_key: Annotated[Optional[str], Header(alias="x-api-key")] = None,
) -> None:
    if not x_api_key:
        logger.info("api_key.reject reason=missing path=%s", request.url.path)
        raise HTTPException(status_code=400, detail=problem_api_key_missing())
    expected = request.app.state.config.api.admin_key
    if not secrets.compare_digest(x_api_key.encode("utf-8"), expected.encode("utf-8")):
        logger.info("api_key.reject reason=invalid path=%s", request.url.path)
        raise HTTPException(status_code=400, detail=problem_api_key_invalid())


__all__ = ["require_api_key"]
