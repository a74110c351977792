from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

from movienight.catalog.movies import add_movie, find_movie_by_title, tag_movie
from movienight.config.settings import load_settings
from movienight.db.sqlite_client import count_movies
from movienight.errors import DuplicateError, MovieNightError

DEFAULT_CATALOG = [
    {
        "title": "Inception",
        "description": "A thief who steals secrets through dreams takes on one last job.",
        "trailer_path": "/trailers/inception.mp4",
        "genres": ["Action", "Sci-Fi", "Thriller"],
    },
    {
        "title": "The Matrix",
        "description": "A hacker learns the world he lives in is a simulation.",
        "trailer_path": "/trailers/matrix.mp4",
        "genres": ["Action", "Sci-Fi"],
    },
    {
        "title": "Interstellar",
        "description": "Explorers travel through a wormhole to find humanity a new home.",
        "trailer_path": "/trailers/interstellar.mp4",
        "genres": ["Drama", "Sci-Fi"],
    },
    {
        "title": "The Grand Budapest Hotel",
        "description": "A concierge and his lobby boy are framed for murder.",
        "trailer_path": "/trailers/grand_budapest.mp4",
        "genres": ["Comedy", "Drama"],
    },
    {
        "title": "Spirited Away",
        "description": "A girl wanders into a world of spirits and must free her parents.",
        "trailer_path": "/trailers/spirited_away.mp4",
        "genres": ["Animation", "Fantasy"],
    },
    {
        "title": "Mad Max: Fury Road",
        "description": "A drifter and a rebel warrior flee a desert tyrant.",
        "trailer_path": "/trailers/mad_max.mp4",
        "genres": ["Action", "Adventure"],
    },
]


@dataclass(frozen=True)
class CatalogEntry:
    title: str
    description: str = ""
    trailer_path: str = ""
    genres: tuple[str, ...] = field(default_factory=tuple)
    movie_id: int | None = None


def _coerce_entry(item: dict[str, Any]) -> CatalogEntry:
    raw_genres = item.get("genres") or []
    if isinstance(raw_genres, str):
        raw_genres = [raw_genres]
    raw_id = item.get("id")
    return CatalogEntry(
        title=str(item.get("title", "")).strip(),
        description=str(item.get("description", "") or "").strip(),
        trailer_path=str(item.get("trailer_path", "") or "").strip(),
        genres=tuple(str(name).strip() for name in raw_genres if str(name).strip()),
        movie_id=int(raw_id) if raw_id is not None else None,
    )


def load_catalog(catalog_path: str) -> list[CatalogEntry]:
    path = Path(catalog_path)
    raw: list[dict[str, Any]]
    if path.exists():
        payload = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        raw = payload.get("movies", []) if isinstance(payload, dict) else []
    else:
        raw = DEFAULT_CATALOG

    entries = [_coerce_entry(item) for item in raw if isinstance(item, dict)]
    return [entry for entry in entries if entry.title]


def _log_catalog_status(status: str, **fields: Any) -> None:
    msg = f"[CATALOG] status={status}"
    for key, value in fields.items():
        msg += f" {key}={value}"
    stream = sys.stderr if status in {"failed", "partial"} else sys.stdout
    print(msg, file=stream)


def import_catalog(conn: Any, entries: list[CatalogEntry]) -> dict[str, Any]:
    """Insert catalog entries, skipping titles that already exist.

    Existing movies still pick up genres they are missing, so running the
    import twice leaves the catalog unchanged.
    """
    added = 0
    skipped = 0
    errors: list[str] = []
    for entry in entries:
        try:
            existing = find_movie_by_title(conn, entry.title)
            if existing is None:
                add_movie(
                    conn,
                    title=entry.title,
                    description=entry.description,
                    trailer_path=entry.trailer_path,
                    genres=entry.genres,
                    movie_id=entry.movie_id,
                )
                added += 1
                continue
            skipped += 1
            for genre in entry.genres:
                try:
                    tag_movie(conn, existing.id, genre)
                except DuplicateError:
                    continue
        except MovieNightError as exc:
            errors.append(f"{entry.title}: {exc}")
            print(
                f"[CATALOG] skip_movie reason=import_error title={entry.title[:80]} error={exc}",
                file=sys.stderr,
            )

    status = "partial" if errors else "success"
    _log_catalog_status(status, movies=added, skipped=skipped, errors=len(errors))
    result: dict[str, Any] = {"status": status, "movies_added": added, "movies_skipped": skipped}
    if errors:
        result["errors"] = errors
    return result


def seed_catalog_if_empty(conn: Any, catalog_path: str, force: bool = False) -> dict[str, Any]:
    if not force and count_movies(conn) > 0:
        _log_catalog_status("skipped", reason="catalog_not_empty")
        return {"status": "skipped", "movies_added": 0, "movies_skipped": 0}
    return import_catalog(conn, load_catalog(catalog_path))


def main() -> None:
    parser = argparse.ArgumentParser(description="Import the movie catalog.")
    parser.add_argument("--path", default=None, help="YAML catalog file")
    parser.add_argument("--force", action="store_true", help="import even when movies exist")
    args = parser.parse_args()

    settings = load_settings()
    from movienight.db.sqlite_client import get_connection, init_schema

    conn = get_connection(settings.sqlite_db_path, settings.database_url)
    init_schema(conn)
    try:
        result = seed_catalog_if_empty(
            conn, args.path or settings.movie_catalog_path, force=args.force
        )
    finally:
        conn.close()
    print(result)
    if result.get("status") == "partial":
        raise SystemExit(1)


if __name__ == "__main__":
    main()
