from __future__ import annotations

from typing import Any

from movienight.db.records import Movie, Suggestion
from movienight.db.sqlite_client import (
    delete_suggestions_of_lobby,
    delete_votes_of_lobby,
    execute,
    row_to_dict,
    run_write,
    transaction,
)
from movienight.engine.lobby_state import require_voting_lobby
from movienight.errors import NotFoundError


def add_suggestion(conn: Any, lobby_id: int, suggested_by: int, movie_id: int) -> Suggestion:
    """Propose ``movie_id`` as a candidate in ``lobby_id``.

    The insert doubles as the uniqueness check: a (lobby, movie) pair that is
    already present raises ``DuplicateError`` no matter who proposed it first.
    Rows are only selected from lobbies that are still voting, so a READY
    lobby never gains a suggestion.
    """
    with transaction(conn):
        cur = run_write(
            conn,
            """
            INSERT INTO suggestions (lobby_id, suggested_by, movie_id)
            SELECT id, ?, ? FROM lobbies WHERE id = ? AND is_ready = 0
            """,
            [suggested_by, movie_id, lobby_id],
            entity="Suggestion",
        )
        if cur.rowcount == 0:
            require_voting_lobby(conn, lobby_id)
            raise NotFoundError(f"Lobby {lobby_id} is not accepting suggestions.")
    return Suggestion(lobby_id=lobby_id, suggested_by=suggested_by, movie_id=movie_id)


def remove_suggestion(conn: Any, lobby_id: int, movie_id: int) -> None:
    """Withdraw a suggestion together with every vote cast for it."""
    with transaction(conn):
        cur = execute(
            conn,
            """
            DELETE FROM suggestions
            WHERE lobby_id = ? AND movie_id = ?
              AND EXISTS (SELECT 1 FROM lobbies WHERE id = ? AND is_ready = 0)
            """,
            [lobby_id, movie_id, lobby_id],
        )
        if cur.rowcount == 0:
            require_voting_lobby(conn, lobby_id)
            raise NotFoundError(f"Movie {movie_id} is not suggested in lobby {lobby_id}.")
        execute(
            conn,
            "DELETE FROM votes WHERE lobby_id = ? AND movie_id = ?",
            [lobby_id, movie_id],
        )


def list_suggestions(conn: Any, lobby_id: int) -> list[Suggestion]:
    rows = execute(
        conn,
        """
        SELECT lobby_id, suggested_by, movie_id
        FROM suggestions
        WHERE lobby_id = ?
        ORDER BY created_at ASC, movie_id ASC
        """,
        [lobby_id],
    ).fetchall()
    return [Suggestion.from_row(row_to_dict(row)) for row in rows]


def suggestion_exists(conn: Any, lobby_id: int, suggested_by: int, movie_id: int) -> bool:
    row = execute(
        conn,
        """
        SELECT 1 AS present FROM suggestions
        WHERE lobby_id = ? AND suggested_by = ? AND movie_id = ?
        """,
        [lobby_id, suggested_by, movie_id],
    ).fetchone()
    return row is not None


def get_suggester(conn: Any, lobby_id: int, movie_id: int) -> int | None:
    row = execute(
        conn,
        "SELECT suggested_by FROM suggestions WHERE lobby_id = ? AND movie_id = ?",
        [lobby_id, movie_id],
    ).fetchone()
    return int(row_to_dict(row)["suggested_by"]) if row else None


def list_suggested_movies(conn: Any, lobby_id: int) -> list[Movie]:
    rows = execute(
        conn,
        """
        SELECT m.*
        FROM suggestions s
        JOIN movies m ON m.id = s.movie_id
        WHERE s.lobby_id = ?
        ORDER BY s.created_at ASC, m.id ASC
        """,
        [lobby_id],
    ).fetchall()
    return [Movie.from_row(row_to_dict(row)) for row in rows]


def remove_all_suggestions(conn: Any, lobby_id: int) -> int:
    """Wipe every suggestion of a lobby and the votes attached to them."""
    with transaction(conn):
        delete_votes_of_lobby(conn, lobby_id)
        return delete_suggestions_of_lobby(conn, lobby_id)
