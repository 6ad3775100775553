"""Configuration utilities for the catalog service.

This module loads application configuration with the following rules:
- Primary source: `catalog_config.json` at the project root.
- Overrides: environment variables, then optional text files under `config/`.
- Validation: Pydantic models enforce required fields and value constraints.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator


CONFIG_DIR = Path("config")
ROOT_CATALOG_CONFIG = Path("catalog_config.json")
DEFAULT_DSN = "sqlite+pysqlite:///:memory:"
logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _read_config_file(rel_path: str) -> Optional[str]:
    path = CONFIG_DIR / rel_path
    try:
        if path.exists():
            return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        # Recoverable: an unreadable override falls through to the next source
        logger.warning("Failed to read override %s: %s", path, e)
        return None
    return None


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key, default)


def _as_bool(value: Optional[str]) -> bool:
    return str(value).strip().lower() in _TRUE_VALUES


class DatabaseConfig(BaseModel):
    dsn: str
    # Applied as sslmode=require on PostgreSQL connections only
    ssl_required: bool = Field(default=False)

    @field_validator("dsn")
    @classmethod
    def dsn_must_be_non_empty(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("database.dsn must be a non-empty string")
        return v.strip()


class ApiConfig(BaseModel):
    admin_key: str = Field(repr=False)

    @field_validator("admin_key")
    @classmethod
    def admin_key_must_be_non_empty(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("api.admin_key must be set (CATALOG_ADMIN_KEY)")
        return v.strip()


class RankingConfig(BaseModel):
    # Create clamps ranks above the current last rank to last + 1
    clamp_create_rank: bool = Field(default=True)


class AppConfig(BaseModel):
    database: DatabaseConfig
    api: ApiConfig
    ranking: RankingConfig = Field(default_factory=RankingConfig)


def _read_json_file(path: Path) -> dict:
    try:
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Failed to read JSON config %s: %s", path, e)
    return {}


def load_config() -> AppConfig:
    """Load configuration with validation.

    Precedence (highest first):
    1) Environment variables
    2) Text files in `config/` (optional)
    3) catalog_config.json at project root (primary base)
    4) Safe defaults for development

    The admin key has no default; a missing key fails validation.
    """

    base = _read_json_file(ROOT_CATALOG_CONFIG)

    def _base(path: str, default: Optional[str] = None) -> Optional[str]:
        cur: object = base
        for key in path.split("."):
            if not isinstance(cur, dict) or key not in cur:
                return default
            cur = cur[key]
        return str(cur) if cur is not None else default

    # Database
    dsn = (
        _env("TEST_DATABASE_URL")
        or _env("DATABASE_URL")
        or _read_config_file("database.url")
        or _base("database.dsn")
        or DEFAULT_DSN
    )

    ssl_required_text = (
        _env("DATABASE_SSL_REQUIRED")
        or _read_config_file("database.ssl.required")
        or _base("database.ssl_required", "false")
    )

    # API
    admin_key = _env("CATALOG_ADMIN_KEY") or _read_config_file("api.admin_key") or _base("api.admin_key") or ""

    # Ranking policy
    clamp_text = (
        _env("RANKING_CLAMP_CREATE_RANK")
        or _read_config_file("ranking.clamp_create_rank")
        or _base("ranking.clamp_create_rank", "true")
    )

    try:
        return AppConfig(
            database=DatabaseConfig(dsn=dsn, ssl_required=_as_bool(ssl_required_text)),
            api=ApiConfig(admin_key=admin_key),
            ranking=RankingConfig(clamp_create_rank=_as_bool(clamp_text)),
        )
    except PydanticValidationError as e:
        logger.error("Invalid application configuration: %s", e)
        raise


__all__ = [
    "AppConfig",
    "ApiConfig",
    "DatabaseConfig",
    "RankingConfig",
    "load_config",
]
