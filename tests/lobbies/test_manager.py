from __future__ import annotations

import pytest

from movienight.db.records import ReadyTransition
from movienight.db.sqlite_client import execute, get_lobby
from movienight.engine.suggestions import add_suggestion, list_suggestions
from movienight.engine.voting import add_vote, tally
from movienight.errors import (
    DuplicateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from movienight.lobbies.manager import (
    accept_invitation,
    assign_user_to_lobby,
    authenticate,
    belonging_lobby,
    change_password,
    clear_invitations,
    close_voting,
    create_lobby,
    delete_invitation,
    delete_lobby,
    delete_user,
    find_user_by_username,
    invitations_for_receiver,
    invitations_from_sender,
    leave_lobby,
    list_usernames,
    lobby_members,
    lobby_of_owner,
    register_user,
    remove_user_from_lobby,
    send_invitation,
    update_user_details,
    validate_registration,
)


@pytest.mark.parametrize(
    ("username", "password", "age", "code"),
    [
        ("", "pw", 30, "blank_username"),
        ("   ", "pw", 30, "blank_username"),
        ("", "", 10, "blank_username"),
        ("alice", "", 30, "blank_password"),
        ("alice", "", 10, "blank_password"),
        ("alice", "pw", 17, "underage"),
    ],
)
def test_validate_registration_reports_first_broken_rule(username, password, age, code):
    with pytest.raises(ValidationError) as excinfo:
        validate_registration(username, password, age)
    assert excinfo.value.code == code


def test_register_user_then_duplicate(sqlite_db):
    user_id = register_user(sqlite_db, " alice ", "pw", 18, "Alice", "Smith")
    assert user_id > 0
    assert find_user_by_username(sqlite_db, "alice").id == user_id
    with pytest.raises(DuplicateError):
        register_user(sqlite_db, "alice", "other", 40)
    assert list_usernames(sqlite_db) == ["alice"]


def test_authenticate_and_change_password(sqlite_db, users):
    assert authenticate(sqlite_db, "alice", "alice-pw").id == users["alice"]
    assert authenticate(sqlite_db, "alice", "nope") is None
    assert change_password(sqlite_db, users["alice"], "fresh") is True
    assert authenticate(sqlite_db, "alice", "fresh") is not None
    with pytest.raises(ValidationError):
        change_password(sqlite_db, users["alice"], "")


def test_update_user_details(sqlite_db, users):
    assert update_user_details(sqlite_db, users["bob"], " Bob ", "Jones") is True
    bob = find_user_by_username(sqlite_db, "bob")
    assert (bob.first_name, bob.last_name) == ("Bob", "Jones")


def test_create_lobby_joins_owner(sqlite_db, users):
    lobby_id = create_lobby(sqlite_db, users["alice"])
    assert lobby_of_owner(sqlite_db, users["alice"]).id == lobby_id
    assert [u.username for u in lobby_members(sqlite_db, lobby_id)] == ["alice"]
    assert belonging_lobby(sqlite_db, users["alice"]).id == lobby_id
    with pytest.raises(DuplicateError):
        create_lobby(sqlite_db, users["alice"])


def test_create_lobby_for_unknown_owner(sqlite_db):
    with pytest.raises(NotFoundError):
        create_lobby(sqlite_db, 999)


def test_assign_existing_member_raises_duplicate(sqlite_db, users, lobby):
    assign_user_to_lobby(sqlite_db, lobby, users["bob"])
    with pytest.raises(DuplicateError):
        assign_user_to_lobby(sqlite_db, lobby, users["bob"])


def test_remove_user_from_lobby_only_drops_membership(sqlite_db, users, lobby):
    assert remove_user_from_lobby(sqlite_db, lobby, users["alice"]) is True
    assert lobby_members(sqlite_db, lobby) == []
    assert get_lobby(sqlite_db, lobby) is not None


def test_leave_lobby_tears_down_empty_lobby(sqlite_db, users, movies, lobby):
    assign_user_to_lobby(sqlite_db, lobby, users["bob"])
    add_suggestion(sqlite_db, lobby, users["bob"], movies["inception"])
    assert leave_lobby(sqlite_db, lobby, users["bob"]) is True
    assert get_lobby(sqlite_db, lobby) is not None
    assert leave_lobby(sqlite_db, lobby, users["alice"]) is True
    assert get_lobby(sqlite_db, lobby) is None
    assert leave_lobby(sqlite_db, lobby, users["alice"]) is False


def test_belonging_lobby_is_most_recent_join(sqlite_db, users):
    alice_lobby = create_lobby(sqlite_db, users["alice"])
    bob_lobby = create_lobby(sqlite_db, users["bob"])
    assign_user_to_lobby(sqlite_db, alice_lobby, users["carol"])
    assign_user_to_lobby(sqlite_db, bob_lobby, users["carol"])
    assert belonging_lobby(sqlite_db, users["carol"]).id == bob_lobby
    assert belonging_lobby(sqlite_db, users["dave"]) is None


def test_belonging_lobby_orders_joins_within_same_second(sqlite_db, users):
    alice_lobby = create_lobby(sqlite_db, users["alice"])
    bob_lobby = create_lobby(sqlite_db, users["bob"])
    assign_user_to_lobby(sqlite_db, bob_lobby, users["carol"])
    assign_user_to_lobby(sqlite_db, alice_lobby, users["carol"])
    assert belonging_lobby(sqlite_db, users["carol"]).id == alice_lobby


def test_belonging_lobby_prefers_owned_lobby(sqlite_db, users, lobby):
    bob_lobby = create_lobby(sqlite_db, users["bob"])
    send_invitation(sqlite_db, users["bob"], bob_lobby, users["alice"])
    accept_invitation(sqlite_db, users["bob"], bob_lobby, users["alice"])
    assert "alice" in {u.username for u in lobby_members(sqlite_db, bob_lobby)}
    assert belonging_lobby(sqlite_db, users["alice"]).id == lobby
    assert delete_lobby(sqlite_db, lobby, users["alice"]) is True
    assert belonging_lobby(sqlite_db, users["alice"]).id == bob_lobby


def test_owner_leaving_tears_down_lobby_with_members(sqlite_db, users, movies, lobby, capsys):
    assign_user_to_lobby(sqlite_db, lobby, users["bob"])
    add_suggestion(sqlite_db, lobby, users["bob"], movies["inception"])
    assert leave_lobby(sqlite_db, lobby, users["alice"]) is True
    assert get_lobby(sqlite_db, lobby) is None
    assert belonging_lobby(sqlite_db, users["bob"]) is None
    assert "reason=owner_left" in capsys.readouterr().out
    assert create_lobby(sqlite_db, users["alice"]) > 0


def test_delete_lobby_owner_only(sqlite_db, users, lobby):
    assert delete_lobby(sqlite_db, lobby, users["bob"]) is False
    assert delete_lobby(sqlite_db, lobby, users["alice"]) is True
    assert delete_lobby(sqlite_db, lobby, users["alice"]) is False


def test_close_voting_owner_only(sqlite_db, users, lobby):
    with pytest.raises(PermissionDeniedError):
        close_voting(sqlite_db, lobby, users["bob"])
    assert close_voting(sqlite_db, lobby, users["alice"]) is ReadyTransition.TRANSITIONED
    assert close_voting(sqlite_db, lobby, users["alice"]) is ReadyTransition.ALREADY_READY
    assert close_voting(sqlite_db, 999, users["alice"]) is ReadyTransition.NOT_FOUND


def test_invitation_lifecycle(sqlite_db, users, lobby):
    send_invitation(sqlite_db, users["alice"], lobby, users["bob"])
    with pytest.raises(DuplicateError):
        send_invitation(sqlite_db, users["alice"], lobby, users["bob"])
    received = invitations_for_receiver(sqlite_db, users["bob"])
    assert [(i.sender_id, i.lobby_id) for i in received] == [(users["alice"], lobby)]

    accept_invitation(sqlite_db, users["alice"], lobby, users["bob"])

    assert invitations_for_receiver(sqlite_db, users["bob"]) == []
    assert {u.username for u in lobby_members(sqlite_db, lobby)} == {"alice", "bob"}
    with pytest.raises(NotFoundError):
        accept_invitation(sqlite_db, users["alice"], lobby, users["bob"])


def test_send_invitation_rules(sqlite_db, users, lobby):
    with pytest.raises(ValidationError):
        send_invitation(sqlite_db, users["alice"], lobby, users["alice"])
    with pytest.raises(PermissionDeniedError):
        send_invitation(sqlite_db, users["carol"], lobby, users["bob"])
    with pytest.raises(NotFoundError):
        send_invitation(sqlite_db, users["alice"], 999, users["bob"])
    with pytest.raises(NotFoundError):
        send_invitation(sqlite_db, users["alice"], lobby, 999)
    assign_user_to_lobby(sqlite_db, lobby, users["bob"])
    with pytest.raises(DuplicateError):
        send_invitation(sqlite_db, users["alice"], lobby, users["bob"])
    send_invitation(sqlite_db, users["bob"], lobby, users["carol"])
    assert len(invitations_from_sender(sqlite_db, users["bob"])) == 1


def test_delete_and_clear_invitations(sqlite_db, users, lobby):
    send_invitation(sqlite_db, users["alice"], lobby, users["bob"])
    send_invitation(sqlite_db, users["alice"], lobby, users["carol"])
    assert delete_invitation(sqlite_db, users["alice"], lobby, users["bob"]) is True
    assert delete_invitation(sqlite_db, users["alice"], lobby, users["bob"]) is False
    assert clear_invitations(sqlite_db, users["alice"]) == 1
    assert invitations_from_sender(sqlite_db, users["alice"]) == []


def test_delete_user_cascades(sqlite_db, users, movies, lobby):
    bob_lobby = create_lobby(sqlite_db, users["bob"])
    assign_user_to_lobby(sqlite_db, bob_lobby, users["alice"])
    add_suggestion(sqlite_db, bob_lobby, users["alice"], movies["inception"])
    add_suggestion(sqlite_db, bob_lobby, users["bob"], movies["matrix"])
    add_vote(sqlite_db, bob_lobby, users["bob"], movies["inception"])
    add_vote(sqlite_db, bob_lobby, users["alice"], movies["matrix"])
    send_invitation(sqlite_db, users["alice"], lobby, users["carol"])

    assert delete_user(sqlite_db, users["alice"]) is True

    assert find_user_by_username(sqlite_db, "alice") is None
    assert get_lobby(sqlite_db, lobby) is None
    assert [s.movie_id for s in list_suggestions(sqlite_db, bob_lobby)] == [movies["matrix"]]
    assert tally(sqlite_db, bob_lobby) == {movies["matrix"]: 0}
    row = execute(
        sqlite_db,
        "SELECT COUNT(*) AS c FROM invitations WHERE sender_id = ? OR receiver_id = ?",
        [users["alice"], users["alice"]],
    ).fetchone()
    assert row["c"] == 0
    assert delete_user(sqlite_db, users["alice"]) is False
