from __future__ import annotations

import pytest

from movienight.engine.lobby_state import set_lobby_ready
from movienight.engine.suggestions import add_suggestion
from movienight.engine.voting import (
    add_vote,
    list_votes_of_user,
    remove_all_votes,
    remove_vote,
    remove_votes_for_movie,
    tally,
    voters_by_movie,
)
from movienight.errors import DuplicateError, LobbyNotVotingError, NotFoundError


@pytest.fixture
def suggested(sqlite_db, users, movies, lobby) -> dict[str, int]:
    add_suggestion(sqlite_db, lobby, users["alice"], movies["inception"])
    add_suggestion(sqlite_db, lobby, users["bob"], movies["matrix"])
    return movies


def test_add_then_remove_vote_restores_tally(sqlite_db, users, suggested, lobby):
    before = tally(sqlite_db, lobby)
    add_vote(sqlite_db, lobby, users["bob"], suggested["inception"])
    assert tally(sqlite_db, lobby)[suggested["inception"]] == 1
    remove_vote(sqlite_db, lobby, users["bob"], suggested["inception"])
    assert tally(sqlite_db, lobby) == before


def test_duplicate_vote_raises_without_side_effect(sqlite_db, users, suggested, lobby):
    add_vote(sqlite_db, lobby, users["bob"], suggested["inception"])
    with pytest.raises(DuplicateError):
        add_vote(sqlite_db, lobby, users["bob"], suggested["inception"])
    assert tally(sqlite_db, lobby)[suggested["inception"]] == 1


def test_user_may_vote_for_several_movies(sqlite_db, users, suggested, lobby):
    add_vote(sqlite_db, lobby, users["bob"], suggested["inception"])
    add_vote(sqlite_db, lobby, users["bob"], suggested["matrix"])
    votes = list_votes_of_user(sqlite_db, lobby, users["bob"])
    assert {vote.movie_id for vote in votes} == {suggested["inception"], suggested["matrix"]}


def test_vote_requires_suggestion(sqlite_db, users, suggested, lobby):
    with pytest.raises(NotFoundError):
        add_vote(sqlite_db, lobby, users["bob"], suggested["budapest"])


def test_vote_from_unknown_user_raises_not_found(sqlite_db, suggested, lobby):
    with pytest.raises(NotFoundError):
        add_vote(sqlite_db, lobby, 999, suggested["inception"])


def test_remove_missing_vote_raises_not_found(sqlite_db, users, suggested, lobby):
    with pytest.raises(NotFoundError):
        remove_vote(sqlite_db, lobby, users["bob"], suggested["inception"])


def test_votes_frozen_once_lobby_ready(sqlite_db, users, suggested, lobby):
    add_vote(sqlite_db, lobby, users["bob"], suggested["inception"])
    set_lobby_ready(sqlite_db, lobby)
    with pytest.raises(LobbyNotVotingError):
        add_vote(sqlite_db, lobby, users["carol"], suggested["inception"])
    with pytest.raises(LobbyNotVotingError):
        remove_vote(sqlite_db, lobby, users["bob"], suggested["inception"])
    with pytest.raises(LobbyNotVotingError):
        remove_votes_for_movie(sqlite_db, lobby, suggested["inception"])
    assert tally(sqlite_db, lobby)[suggested["inception"]] == 1


def test_tally_seeds_suggested_movies_with_zero(sqlite_db, users, suggested, lobby):
    add_vote(sqlite_db, lobby, users["bob"], suggested["matrix"])
    assert tally(sqlite_db, lobby) == {suggested["inception"]: 0, suggested["matrix"]: 1}


def test_tally_unknown_lobby_raises_not_found(sqlite_db):
    with pytest.raises(NotFoundError):
        tally(sqlite_db, 999)


def test_remove_votes_for_movie_and_all_votes(sqlite_db, users, suggested, lobby):
    for name in ("alice", "bob", "carol"):
        add_vote(sqlite_db, lobby, users[name], suggested["inception"])
    add_vote(sqlite_db, lobby, users["bob"], suggested["matrix"])
    assert remove_votes_for_movie(sqlite_db, lobby, suggested["inception"]) == 3
    assert tally(sqlite_db, lobby) == {suggested["inception"]: 0, suggested["matrix"]: 1}
    assert remove_all_votes(sqlite_db, lobby) == 1
    assert tally(sqlite_db, lobby) == {suggested["inception"]: 0, suggested["matrix"]: 0}


def test_voters_by_movie_sorted_usernames(sqlite_db, users, suggested, lobby):
    add_vote(sqlite_db, lobby, users["carol"], suggested["inception"])
    add_vote(sqlite_db, lobby, users["alice"], suggested["inception"])
    add_vote(sqlite_db, lobby, users["bob"], suggested["matrix"])
    assert voters_by_movie(sqlite_db, lobby) == {
        suggested["inception"]: ["alice", "carol"],
        suggested["matrix"]: ["bob"],
    }
