from __future__ import annotations

import logging
import os
from typing import Callable

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text as sql_text
from sqlalchemy.exc import SQLAlchemyError

from catalog.config import load_config
from catalog.db.base import get_engine
from catalog.db.migrations_runner import apply_migrations
from catalog.http.problem import (
    handle_http_exception,
    handle_ranking_error,
    handle_request_validation_error,
    handle_unexpected_error,
)
from catalog.http.request_id import RequestIdMiddleware
from catalog.logging_setup import configure_logging
from catalog.logic.errors import RankingError
from catalog.middleware.cors import apply_cors
from catalog.routes import api_router

logger = logging.getLogger(__name__)


def _health_check() -> Callable[[], dict]:
    def check() -> dict:
        try:
            with get_engine().connect() as conn:
                conn.execute(sql_text("SELECT 1")).fetchone()
            return {"status": "ok", "db": True}
        except SQLAlchemyError as e:
            logger.error("Health DB check failed", exc_info=True)
            return {"status": "degraded", "db": False, "reason": e.__class__.__name__}

    return check


def create_app() -> FastAPI:
    """Build the catalog API application.

    Loads and validates configuration (a missing admin key fails here),
    binds the shared engine to the configured DSN, registers problem+json
    handlers and mounts the routers under ``/api/v1``.
    """
    try:
        configure_logging()
    except Exception:
        logging.getLogger(__name__).error("global_logging_configuration_failed", exc_info=True)
    config = load_config()
    get_engine(config.database.dsn, ssl_required=config.database.ssl_required)

    app = FastAPI(title="Catalog fragments API")
    app.state.config = config
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(RankingError, handle_ranking_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    apply_cors(app)
    app.add_middleware(RequestIdMiddleware)

    # Migrations run at startup, not import time, and only when enabled
    @app.on_event("startup")
    def _apply_migrations() -> None:
        enable_flag = os.getenv("AUTO_APPLY_MIGRATIONS", "").strip().lower() in {"1", "true", "yes", "on"}
        if not enable_flag:
            logger.info("AUTO_APPLY_MIGRATIONS disabled; skipping migrations at startup")
            return
        try:
            applied = apply_migrations(get_engine())
        except Exception:
            logger.error("Failed to apply migrations at startup", exc_info=True)
            raise
        logger.info("startup_migrations_applied count=%s", len(applied))

    app.include_router(api_router, prefix="/api/v1")

    health_check = _health_check()

    @app.get("/health")
    def health():
        return health_check()

    return app


# Intentionally do not instantiate the app at import time to prevent side effects.
