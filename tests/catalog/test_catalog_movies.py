from __future__ import annotations

import pytest

from movienight.catalog.movies import (
    add_genre,
    add_movie,
    filter_movies_by_genres,
    find_movie_by_title,
    genres_label,
    get_movie,
    list_genres,
    list_movies,
    movie_genres,
    search_movies,
    tag_movie,
)
from movienight.errors import DuplicateError, NotFoundError, ValidationError


def test_add_movie_creates_genres_once(sqlite_db):
    first = add_movie(sqlite_db, "Heat", "Cops and robbers", genres=["Action", "Thriller"])
    add_movie(sqlite_db, "Speed", "Bus chase", genres=["Action", " Action ", "Action"])
    assert [g.name for g in list_genres(sqlite_db)] == ["Action", "Thriller"]
    assert movie_genres(sqlite_db, first) == ["Action", "Thriller"]
    assert genres_label(sqlite_db, first) == "Action, Thriller"


def test_add_movie_requires_title(sqlite_db):
    with pytest.raises(ValidationError):
        add_movie(sqlite_db, "   ")
    assert list_movies(sqlite_db) == []


def test_add_genre_rejects_duplicates(sqlite_db):
    add_genre(sqlite_db, "Drama")
    with pytest.raises(DuplicateError):
        add_genre(sqlite_db, "Drama")
    with pytest.raises(ValidationError):
        add_genre(sqlite_db, " ")


def test_tag_movie(sqlite_db):
    movie_id = add_movie(sqlite_db, "Coco")
    tag_movie(sqlite_db, movie_id, "Animation")
    with pytest.raises(DuplicateError):
        tag_movie(sqlite_db, movie_id, "Animation")
    with pytest.raises(NotFoundError):
        tag_movie(sqlite_db, 999, "Animation")
    assert movie_genres(sqlite_db, movie_id) == ["Animation"]


def test_lookup_helpers(sqlite_db):
    movie_id = add_movie(sqlite_db, "Arrival", "Linguist meets visitors", "/trailers/arrival.mp4")
    movie = get_movie(sqlite_db, movie_id)
    assert movie is not None and movie.trailer_path == "/trailers/arrival.mp4"
    assert find_movie_by_title(sqlite_db, " Arrival ").id == movie_id
    assert find_movie_by_title(sqlite_db, "Missing") is None
    assert [m.id for m in search_movies(sqlite_db, "linguist")] == [movie_id]


def test_search_movies_treats_wildcards_literally(sqlite_db):
    wolf = add_movie(sqlite_db, "100% Wolf", "Werepup comedy")
    add_movie(sqlite_db, "Inception", "Dream_heist")
    add_movie(sqlite_db, "Heat", "Cops and robbers")
    assert [m.id for m in search_movies(sqlite_db, "%")] == [wolf]
    assert [m.title for m in search_movies(sqlite_db, "_")] == ["Inception"]
    assert search_movies(sqlite_db, "0_ w") == []


def test_filter_movies_by_genres_matches_all(sqlite_db):
    heat = add_movie(sqlite_db, "Heat", genres=["Action", "Thriller"])
    speed = add_movie(sqlite_db, "Speed", genres=["Action"])
    coco = add_movie(sqlite_db, "Coco", genres=["Animation"])
    assert [m.id for m in filter_movies_by_genres(sqlite_db, ["Action", "Thriller"])] == [heat]
    assert [m.id for m in filter_movies_by_genres(sqlite_db, ["Action"])] == [heat, speed]
    assert filter_movies_by_genres(sqlite_db, ["Action", "Unknown"]) == []
    assert {m.id for m in filter_movies_by_genres(sqlite_db, [])} == {heat, speed, coco}
