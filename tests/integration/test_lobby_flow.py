from __future__ import annotations

import pytest

from movienight.db.records import ReadyTransition
from movienight.engine.finalization import finalize_lobby
from movienight.engine.suggestions import add_suggestion
from movienight.engine.voting import add_vote, voters_by_movie
from movienight.lobbies.manager import (
    accept_invitation,
    close_voting,
    create_lobby,
    lobby_members,
    register_user,
    send_invitation,
)


@pytest.mark.integration
def test_invite_suggest_vote_and_finalize(sqlite_db, movies):
    host = register_user(sqlite_db, "host", "pw", 40)
    guests = [register_user(sqlite_db, f"guest{i}", "pw", 21) for i in range(3)]
    lobby_id = create_lobby(sqlite_db, host)
    for guest in guests:
        send_invitation(sqlite_db, host, lobby_id, guest)
        accept_invitation(sqlite_db, host, lobby_id, guest)
    assert len(lobby_members(sqlite_db, lobby_id)) == 4

    add_suggestion(sqlite_db, lobby_id, guests[0], movies["matrix"])
    add_suggestion(sqlite_db, lobby_id, guests[1], movies["budapest"])
    for voter in (host, guests[0], guests[2]):
        add_vote(sqlite_db, lobby_id, voter, movies["budapest"])
    add_vote(sqlite_db, lobby_id, guests[1], movies["matrix"])

    assert close_voting(sqlite_db, lobby_id, host) is ReadyTransition.TRANSITIONED
    result = finalize_lobby(sqlite_db, lobby_id)

    assert result.transition is ReadyTransition.ALREADY_READY
    assert [(w.title, w.vote_count) for w in result.winners] == [
        ("The Grand Budapest Hotel", 3),
        ("The Matrix", 1),
    ]
    assert voters_by_movie(sqlite_db, lobby_id)[movies["budapest"]] == ["guest0", "guest2", "host"]
