from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from movienight.db.records import RankedMovie, ReadyTransition
from movienight.db.sqlite_client import (
    delete_invitations_of_lobby,
    delete_lobby_record,
    delete_members_of_lobby,
    delete_suggestions_of_lobby,
    delete_votes_of_lobby,
    execute,
    get_lobby,
    row_to_dict,
    transaction,
)
from movienight.engine.lobby_state import log_lobby_event, set_lobby_ready
from movienight.errors import NotFoundError


@dataclass(frozen=True)
class Finalization:
    lobby_id: int
    transition: ReadyTransition
    winners: list[RankedMovie] = field(default_factory=list)


def resolve_winners(conn: Any, lobby_id: int) -> list[RankedMovie]:
    """Rank voted movies by vote count, highest first, ties by ascending movie id.

    Movies that received no votes are left out, so a lobby without votes
    yields an empty ranking.
    """
    if get_lobby(conn, lobby_id) is None:
        raise NotFoundError(f"Lobby {lobby_id} does not exist.")
    rows = execute(
        conn,
        """
        SELECT m.id AS movie_id, m.title, COUNT(*) AS vote_count
        FROM votes v
        JOIN movies m ON m.id = v.movie_id
        WHERE v.lobby_id = ?
        GROUP BY m.id, m.title
        ORDER BY vote_count DESC, m.id ASC
        """,
        [lobby_id],
    ).fetchall()
    ranking: list[RankedMovie] = []
    for row in rows:
        data = row_to_dict(row)
        ranking.append(
            RankedMovie(
                movie_id=int(data["movie_id"]),
                title=str(data["title"]),
                vote_count=int(data["vote_count"]),
            )
        )
    return ranking


def top_pick(conn: Any, lobby_id: int) -> RankedMovie | None:
    winners = resolve_winners(conn, lobby_id)
    return winners[0] if winners else None


def finalize_lobby(conn: Any, lobby_id: int) -> Finalization:
    transition = set_lobby_ready(conn, lobby_id)
    if transition is ReadyTransition.NOT_FOUND:
        raise NotFoundError(f"Lobby {lobby_id} does not exist.")
    winners = resolve_winners(conn, lobby_id)
    log_lobby_event(
        "finalize",
        lobby_id,
        outcome=transition.value,
        winners=len(winners),
        top_movie_id=winners[0].movie_id if winners else "none",
    )
    return Finalization(lobby_id=lobby_id, transition=transition, winners=winners)


def purge_lobby_rows(conn: Any, lobby_id: int) -> dict[str, int]:
    """Delete a lobby and its dependent rows without committing.

    Callers own the surrounding transaction.
    """
    removed = {
        "votes": delete_votes_of_lobby(conn, lobby_id),
        "suggestions": delete_suggestions_of_lobby(conn, lobby_id),
        "invitations": delete_invitations_of_lobby(conn, lobby_id),
        "members": delete_members_of_lobby(conn, lobby_id),
    }
    delete_lobby_record(conn, lobby_id)
    return removed


def teardown_lobby(conn: Any, lobby_id: int) -> bool:
    """Delete a lobby and everything scoped to it in one transaction."""
    with transaction(conn):
        if get_lobby(conn, lobby_id) is None:
            return False
        removed = purge_lobby_rows(conn, lobby_id)
    log_lobby_event("teardown", lobby_id, **removed)
    return True
