from __future__ import annotations

import sys
from typing import Any

from movienight.db.records import LobbyState, ReadyTransition
from movienight.db.sqlite_client import get_lobby, mark_lobby_ready, transaction
from movienight.errors import LobbyNotVotingError, NotFoundError


def log_lobby_event(action: str, lobby_id: int, **fields: Any) -> None:
    msg = f"[LOBBY] action={action} lobby_id={lobby_id}"
    for key, value in fields.items():
        msg += f" {key}={value}"
    stream = sys.stderr if fields.get("status") == "failed" else sys.stdout
    print(msg, file=stream)


def get_lobby_state(conn: Any, lobby_id: int) -> LobbyState:
    lobby = get_lobby(conn, lobby_id)
    if lobby is None:
        raise NotFoundError(f"Lobby {lobby_id} does not exist.")
    return lobby.state


def is_lobby_voting(conn: Any, lobby_id: int) -> bool:
    return get_lobby_state(conn, lobby_id) is LobbyState.VOTING


def require_voting_lobby(conn: Any, lobby_id: int) -> None:
    """Raise unless the lobby exists and still accepts suggestions and votes."""
    if get_lobby_state(conn, lobby_id) is not LobbyState.VOTING:
        raise LobbyNotVotingError(f"Lobby {lobby_id} is closed for voting.")


def set_lobby_ready(conn: Any, lobby_id: int) -> ReadyTransition:
    """Move a lobby from VOTING to READY.

    The flag is flipped with a compare-and-set update, so concurrent callers
    observe exactly one ``TRANSITIONED``; every later call reports
    ``ALREADY_READY``. There is no path back to VOTING.
    """
    with transaction(conn):
        if mark_lobby_ready(conn, lobby_id):
            outcome = ReadyTransition.TRANSITIONED
        elif get_lobby(conn, lobby_id) is None:
            outcome = ReadyTransition.NOT_FOUND
        else:
            outcome = ReadyTransition.ALREADY_READY
    log_lobby_event("ready", lobby_id, outcome=outcome.value)
    return outcome
