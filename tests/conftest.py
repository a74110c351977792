from __future__ import annotations

import os
import sqlite3
from collections.abc import Generator
from pathlib import Path

import pytest

from movienight.catalog.movies import add_movie
from movienight.db.sqlite_client import get_connection, init_schema
from movienight.lobbies.manager import create_lobby, register_user


@pytest.fixture
def sqlite_db(tmp_path: Path) -> Generator[sqlite3.Connection, None, None]:
    os.environ.pop("DATABASE_URL", None)
    db_path = str(tmp_path / "test.db")
    conn = get_connection(db_path)
    init_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def users(sqlite_db) -> dict[str, int]:
    return {
        name: register_user(sqlite_db, name, f"{name}-pw", 30, first_name=name.title())
        for name in ("alice", "bob", "carol", "dave")
    }


@pytest.fixture
def movies(sqlite_db) -> dict[str, int]:
    return {
        "inception": add_movie(
            sqlite_db, "Inception", "Dream heist", "/trailers/inception.mp4", ["Action", "Sci-Fi"]
        ),
        "matrix": add_movie(
            sqlite_db, "The Matrix", "Simulation", "/trailers/matrix.mp4", ["Action", "Sci-Fi"]
        ),
        "budapest": add_movie(
            sqlite_db, "The Grand Budapest Hotel", "Concierge caper", "", ["Comedy"]
        ),
    }


@pytest.fixture
def lobby(sqlite_db, users) -> int:
    return create_lobby(sqlite_db, users["alice"])
