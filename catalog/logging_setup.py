"""Central logging configuration for the catalog service.

Installs a single stdout handler on the root logger so every module logger
(``logging.getLogger(__name__)``) emits without per-module setup. The level
comes from ``LOG_LEVEL`` and uvicorn loggers are routed through the same
handler.
"""
from __future__ import annotations
import logging
import os
from logging.config import dictConfig


def _build_dict_config(level: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)s:%(name)s:%(message)s",
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            }
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": {
            "uvicorn": {"level": level, "handlers": ["console"], "propagate": False},
            "uvicorn.access": {"level": level, "handlers": ["console"], "propagate": False},
            # SQL echo stays off unless explicitly raised
            "sqlalchemy.engine": {"level": "WARNING"},
        },
    }


def configure_logging() -> None:
    """Configure application-wide logging once.

    Returns early when the root logger already has handlers (reloaders,
    pytest's log capture) to avoid duplicate output.
    """
    root = logging.getLogger()
    if root.handlers:
        return
    level = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()
    if not isinstance(logging.getLevelName(level), int):
        level = "INFO"
    dictConfig(_build_dict_config(level))
