from __future__ import annotations

from movienight.catalog.movies import add_movie
from movienight.utils.health import readiness


class _BrokenConnection:
    def execute(self, sql: str):
        raise RuntimeError("database unavailable")


def test_readiness_ok_with_seeded_catalog(sqlite_db):
    add_movie(sqlite_db, "Heat")
    status = readiness(sqlite_db)
    assert status["ok"] is True
    assert status["dependencies"]["database"] == "ready"
    assert status["dependencies"]["catalog"] == "ready"


def test_readiness_degraded_with_empty_catalog(sqlite_db):
    status = readiness(sqlite_db)
    assert status["ok"] is True
    assert status["dependencies"]["catalog"].startswith("degraded")


def test_readiness_fails_without_connection():
    status = readiness(None)
    assert status["ok"] is False
    assert "error" in status["dependencies"]["database"]


def test_readiness_fails_when_database_raises():
    status = readiness(_BrokenConnection())
    assert status["ok"] is False
    assert "database unavailable" in status["dependencies"]["database"]
