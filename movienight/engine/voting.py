from __future__ import annotations

from typing import Any

from movienight.db.records import Vote
from movienight.db.sqlite_client import (
    delete_votes_of_lobby,
    execute,
    get_lobby,
    row_to_dict,
    run_write,
    transaction,
)
from movienight.engine.lobby_state import require_voting_lobby
from movienight.errors import NotFoundError


def add_vote(conn: Any, lobby_id: int, user_id: int, movie_id: int) -> Vote:
    """Record one vote of ``user_id`` for a movie suggested in ``lobby_id``."""
    with transaction(conn):
        cur = run_write(
            conn,
            """
            INSERT INTO votes (lobby_id, user_id, movie_id)
            SELECT s.lobby_id, ?, s.movie_id
            FROM suggestions s
            JOIN lobbies l ON l.id = s.lobby_id
            WHERE s.lobby_id = ? AND s.movie_id = ? AND l.is_ready = 0
            """,
            [user_id, lobby_id, movie_id],
            entity="Vote",
        )
        if cur.rowcount == 0:
            require_voting_lobby(conn, lobby_id)
            raise NotFoundError(f"Movie {movie_id} is not suggested in lobby {lobby_id}.")
    return Vote(lobby_id=lobby_id, user_id=user_id, movie_id=movie_id)


def remove_vote(conn: Any, lobby_id: int, user_id: int, movie_id: int) -> None:
    with transaction(conn):
        cur = execute(
            conn,
            """
            DELETE FROM votes
            WHERE lobby_id = ? AND user_id = ? AND movie_id = ?
              AND EXISTS (SELECT 1 FROM lobbies WHERE id = ? AND is_ready = 0)
            """,
            [lobby_id, user_id, movie_id, lobby_id],
        )
        if cur.rowcount == 0:
            require_voting_lobby(conn, lobby_id)
            raise NotFoundError(
                f"User {user_id} has no vote for movie {movie_id} in lobby {lobby_id}."
            )


def list_votes_of_user(conn: Any, lobby_id: int, user_id: int) -> list[Vote]:
    rows = execute(
        conn,
        """
        SELECT lobby_id, user_id, movie_id FROM votes
        WHERE lobby_id = ? AND user_id = ?
        ORDER BY created_at ASC, movie_id ASC
        """,
        [lobby_id, user_id],
    ).fetchall()
    return [Vote.from_row(row_to_dict(row)) for row in rows]


def remove_votes_for_movie(conn: Any, lobby_id: int, movie_id: int) -> int:
    with transaction(conn):
        require_voting_lobby(conn, lobby_id)
        return execute(
            conn,
            "DELETE FROM votes WHERE lobby_id = ? AND movie_id = ?",
            [lobby_id, movie_id],
        ).rowcount


def remove_all_votes(conn: Any, lobby_id: int) -> int:
    with transaction(conn):
        return delete_votes_of_lobby(conn, lobby_id)


def tally(conn: Any, lobby_id: int) -> dict[int, int]:
    """Return mapping movie_id -> vote count; suggested movies without votes map to 0."""
    if get_lobby(conn, lobby_id) is None:
        raise NotFoundError(f"Lobby {lobby_id} does not exist.")
    suggested = execute(
        conn, "SELECT movie_id FROM suggestions WHERE lobby_id = ?", [lobby_id]
    ).fetchall()
    counts = {int(row_to_dict(row)["movie_id"]): 0 for row in suggested}
    rows = execute(
        conn,
        """
        SELECT movie_id, COUNT(*) AS vote_count
        FROM votes
        WHERE lobby_id = ?
        GROUP BY movie_id
        """,
        [lobby_id],
    ).fetchall()
    for row in rows:
        data = row_to_dict(row)
        counts[int(data["movie_id"])] = int(data["vote_count"])
    return counts


def voters_by_movie(conn: Any, lobby_id: int) -> dict[int, list[str]]:
    """Return mapping movie_id -> [usernames] of everyone who voted for it."""
    rows = execute(
        conn,
        """
        SELECT v.movie_id, u.username
        FROM votes v
        JOIN users u ON u.id = v.user_id
        WHERE v.lobby_id = ?
        """,
        [lobby_id],
    ).fetchall()
    result: dict[int, list[str]] = {}
    for row in rows:
        data = row_to_dict(row)
        result.setdefault(int(data["movie_id"]), []).append(str(data["username"]))
    for names in result.values():
        names.sort(key=str.lower)
    return result
