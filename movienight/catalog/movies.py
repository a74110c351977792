from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from movienight.db.records import Genre, Movie
from movienight.db.sqlite_client import (
    find_movies_by_genre_ids,
    get_genre_by_name,
    get_genres_of_movie,
    get_movie as get_movie_row,
    get_movie_by_title,
    insert_genre,
    insert_movie,
    insert_movie_genre,
    list_genres as list_genre_rows,
    list_movies as list_movie_rows,
    search_movies as search_movie_rows,
    transaction,
)
from movienight.errors import NotFoundError, ValidationError


def _clean_genre_name(name: str) -> str:
    cleaned = " ".join(name.strip().split())
    if not cleaned:
        raise ValidationError("Genre name is required.", code="blank_genre")
    return cleaned


def _ensure_genre(conn: Any, name: str) -> int:
    existing = get_genre_by_name(conn, name)
    if existing:
        return existing.id
    return insert_genre(conn, name)


def add_movie(
    conn: Any,
    title: str,
    description: str = "",
    trailer_path: str = "",
    genres: Iterable[str] = (),
    movie_id: int | None = None,
) -> int:
    """Insert a movie and tag it with ``genres``, creating unknown genres on the way."""
    if not title.strip():
        raise ValidationError("Movie title is required.", code="blank_title")
    names = list(dict.fromkeys(_clean_genre_name(name) for name in genres))
    with transaction(conn):
        new_id = insert_movie(
            conn,
            title=title.strip(),
            description=description.strip(),
            trailer_path=trailer_path.strip(),
            movie_id=movie_id,
        )
        for name in names:
            insert_movie_genre(conn, new_id, _ensure_genre(conn, name))
    return new_id


def add_genre(conn: Any, name: str) -> int:
    cleaned = _clean_genre_name(name)
    with transaction(conn):
        return insert_genre(conn, cleaned)


def tag_movie(conn: Any, movie_id: int, genre_name: str) -> None:
    cleaned = _clean_genre_name(genre_name)
    with transaction(conn):
        if get_movie_row(conn, movie_id) is None:
            raise NotFoundError(f"Movie {movie_id} does not exist.")
        insert_movie_genre(conn, movie_id, _ensure_genre(conn, cleaned))


def get_movie(conn: Any, movie_id: int) -> Movie | None:
    return get_movie_row(conn, movie_id)


def find_movie_by_title(conn: Any, title: str) -> Movie | None:
    return get_movie_by_title(conn, title.strip())


def list_movies(conn: Any) -> list[Movie]:
    return list_movie_rows(conn)


def search_movies(conn: Any, query: str) -> list[Movie]:
    return search_movie_rows(conn, query)


def list_genres(conn: Any) -> list[Genre]:
    return list_genre_rows(conn)


def movie_genres(conn: Any, movie_id: int) -> list[str]:
    return [genre.name for genre in get_genres_of_movie(conn, movie_id)]


def genres_label(conn: Any, movie_id: int) -> str:
    return ", ".join(movie_genres(conn, movie_id))


def filter_movies_by_genres(conn: Any, genre_names: Iterable[str]) -> list[Movie]:
    """Return movies tagged with every genre in ``genre_names``; no names means no filter."""
    names = {" ".join(name.strip().split()) for name in genre_names if name.strip()}
    if not names:
        return list_movie_rows(conn)
    genre_ids: list[int] = []
    for name in names:
        genre = get_genre_by_name(conn, name)
        if genre is None:
            return []
        genre_ids.append(genre.id)
    return find_movies_by_genre_ids(conn, genre_ids)
