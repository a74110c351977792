from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _get_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    database_url: str
    sqlite_db_path: str
    movie_catalog_path: str
    catalog_auto_seed: bool
    log_level: str


def load_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL", "").strip(),
        sqlite_db_path=os.getenv("SQLITE_DB_PATH", "data/movienight.db"),
        movie_catalog_path=os.getenv("MOVIE_CATALOG_PATH", "config/movies.yaml"),
        catalog_auto_seed=_get_bool_env("CATALOG_AUTO_SEED", True),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def validate_settings(settings: Settings) -> list[str]:
    errors: list[str] = []
    if settings.database_url and not settings.database_url.startswith(
        ("postgres://", "postgresql://")
    ):
        errors.append("DATABASE_URL must start with postgres:// or postgresql://")
    if not settings.database_url and not settings.sqlite_db_path.strip():
        errors.append("SQLITE_DB_PATH is required when DATABASE_URL is not set")
    if not settings.movie_catalog_path.strip():
        errors.append("MOVIE_CATALOG_PATH is required")
    if settings.log_level not in _LOG_LEVELS:
        errors.append(f"LOG_LEVEL must be one of {', '.join(sorted(_LOG_LEVELS))}")
    return errors


def ensure_runtime_dirs(settings: Settings) -> None:
    if not settings.database_url:
        Path(settings.sqlite_db_path).parent.mkdir(parents=True, exist_ok=True)
