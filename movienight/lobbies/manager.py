from __future__ import annotations

from typing import Any

from movienight.db.records import Invitation, Lobby, ReadyTransition, User
from movienight.db.sqlite_client import (
    count_members,
    delete_invitation as delete_invitation_row,
    delete_invitations_by_sender,
    delete_invitations_of_user,
    delete_member,
    delete_memberships_of_user,
    delete_suggestions_of_user,
    delete_user_record,
    delete_votes_of_user,
    delete_votes_on_suggestions_of_user,
    get_lobby,
    get_lobby_by_owner,
    get_user,
    get_user_by_credentials,
    get_user_by_username,
    insert_invitation,
    insert_lobby,
    insert_member,
    insert_user,
    is_member,
    list_invitations_by_receiver,
    list_invitations_by_sender,
    list_lobbies as list_lobby_rows,
    list_lobbies_of_member,
    list_member_users,
    list_usernames as list_username_rows,
    transaction,
    update_user_details as update_user_details_row,
    update_user_password,
)
from movienight.engine.finalization import purge_lobby_rows, teardown_lobby
from movienight.engine.lobby_state import log_lobby_event, set_lobby_ready
from movienight.errors import (
    DuplicateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

MIN_USER_AGE = 18


def validate_registration(username: str, password: str, age: int) -> None:
    """Raise ``ValidationError`` for the first registration rule the input breaks.

    Checked in order: blank username, blank password, age below ``MIN_USER_AGE``.
    """
    if not username.strip():
        raise ValidationError("Username is required.", code="blank_username")
    if not password:
        raise ValidationError("Password is required.", code="blank_password")
    if age < MIN_USER_AGE:
        raise ValidationError(f"Users must be at least {MIN_USER_AGE}.", code="underage")


# Users


def register_user(
    conn: Any,
    username: str,
    password: str,
    age: int,
    first_name: str = "",
    last_name: str = "",
) -> int:
    validate_registration(username, password, age)
    with transaction(conn):
        return insert_user(
            conn,
            username=username.strip(),
            password=password,
            age=age,
            first_name=first_name.strip(),
            last_name=last_name.strip(),
        )


def authenticate(conn: Any, username: str, password: str) -> User | None:
    if not username.strip() or not password:
        return None
    return get_user_by_credentials(conn, username.strip(), password)


def change_password(conn: Any, user_id: int, new_password: str) -> bool:
    if not new_password:
        raise ValidationError("Password is required.", code="blank_password")
    with transaction(conn):
        return update_user_password(conn, user_id, new_password)


def update_user_details(conn: Any, user_id: int, first_name: str, last_name: str) -> bool:
    with transaction(conn):
        return update_user_details_row(conn, user_id, first_name.strip(), last_name.strip())


def delete_user(conn: Any, user_id: int) -> bool:
    """Delete a user along with the lobby they own and every row that refers to them."""
    with transaction(conn):
        if get_user(conn, user_id) is None:
            return False
        owned = get_lobby_by_owner(conn, user_id)
        if owned is not None:
            purge_lobby_rows(conn, owned.id)
        delete_votes_on_suggestions_of_user(conn, user_id)
        delete_suggestions_of_user(conn, user_id)
        delete_votes_of_user(conn, user_id)
        delete_invitations_of_user(conn, user_id)
        delete_memberships_of_user(conn, user_id)
        delete_user_record(conn, user_id)
    if owned is not None:
        log_lobby_event("teardown", owned.id, reason="owner_deleted")
    return True


def find_user(conn: Any, user_id: int) -> User | None:
    return get_user(conn, user_id)


def find_user_by_username(conn: Any, username: str) -> User | None:
    return get_user_by_username(conn, username.strip())


def list_usernames(conn: Any) -> list[str]:
    return list_username_rows(conn)


# Lobbies


def create_lobby(conn: Any, owner_id: int) -> int:
    """Open a lobby for ``owner_id`` and join the owner to it."""
    with transaction(conn):
        lobby_id = insert_lobby(conn, owner_id)
        insert_member(conn, lobby_id, owner_id)
    log_lobby_event("create", lobby_id, owner_id=owner_id)
    return lobby_id


def lobby_of_owner(conn: Any, owner_id: int) -> Lobby | None:
    return get_lobby_by_owner(conn, owner_id)


def belonging_lobby(conn: Any, user_id: int) -> Lobby | None:
    """Return the lobby the user owns, else the one they joined most recently."""
    owned = get_lobby_by_owner(conn, user_id)
    if owned is not None:
        return owned
    lobbies = list_lobbies_of_member(conn, user_id)
    return lobbies[0] if lobbies else None


def list_lobbies(conn: Any) -> list[Lobby]:
    return list_lobby_rows(conn)


def delete_lobby(conn: Any, lobby_id: int, actor_id: int) -> bool:
    lobby = get_lobby(conn, lobby_id)
    if not lobby:
        return False
    if lobby.owner_id != actor_id:
        return False
    return teardown_lobby(conn, lobby_id)


def close_voting(conn: Any, lobby_id: int, actor_id: int) -> ReadyTransition:
    lobby = get_lobby(conn, lobby_id)
    if not lobby:
        return ReadyTransition.NOT_FOUND
    if lobby.owner_id != actor_id:
        raise PermissionDeniedError("Only the lobby owner can close voting.")
    return set_lobby_ready(conn, lobby_id)


# Membership


def assign_user_to_lobby(conn: Any, lobby_id: int, user_id: int) -> None:
    with transaction(conn):
        insert_member(conn, lobby_id, user_id)


def remove_user_from_lobby(conn: Any, lobby_id: int, user_id: int) -> bool:
    with transaction(conn):
        return delete_member(conn, lobby_id, user_id)


def leave_lobby(conn: Any, lobby_id: int, user_id: int) -> bool:
    """Remove a member from the lobby.

    The lobby is torn down when its owner leaves or once nobody is left in it.
    """
    removed: dict[str, int] = {}
    reason = ""
    with transaction(conn):
        lobby = get_lobby(conn, lobby_id)
        if lobby is None or not delete_member(conn, lobby_id, user_id):
            return False
        if lobby.owner_id == user_id:
            reason = "owner_left"
        elif count_members(conn, lobby_id) == 0:
            reason = "empty"
        if reason:
            removed = purge_lobby_rows(conn, lobby_id)
    if reason:
        log_lobby_event("teardown", lobby_id, reason=reason, **removed)
    return True


def lobby_members(conn: Any, lobby_id: int) -> list[User]:
    return list_member_users(conn, lobby_id)


# Invitations


def send_invitation(conn: Any, sender_id: int, lobby_id: int, receiver_id: int) -> None:
    if sender_id == receiver_id:
        raise ValidationError("Users cannot invite themselves.", code="self_invite")
    with transaction(conn):
        lobby = get_lobby(conn, lobby_id)
        if lobby is None:
            raise NotFoundError(f"Lobby {lobby_id} does not exist.")
        if lobby.owner_id != sender_id and not is_member(conn, lobby_id, sender_id):
            raise PermissionDeniedError("Only lobby members can send invitations.")
        if is_member(conn, lobby_id, receiver_id):
            raise DuplicateError("User is already in this lobby.")
        insert_invitation(conn, sender_id, lobby_id, receiver_id)


def delete_invitation(conn: Any, sender_id: int, lobby_id: int, receiver_id: int) -> bool:
    with transaction(conn):
        return delete_invitation_row(conn, sender_id, lobby_id, receiver_id)


def accept_invitation(conn: Any, sender_id: int, lobby_id: int, receiver_id: int) -> None:
    """Consume the invitation and join the receiver to the lobby atomically."""
    with transaction(conn):
        if not delete_invitation_row(conn, sender_id, lobby_id, receiver_id):
            raise NotFoundError("Invitation does not exist.")
        if not is_member(conn, lobby_id, receiver_id):
            insert_member(conn, lobby_id, receiver_id)


def invitations_for_receiver(conn: Any, receiver_id: int) -> list[Invitation]:
    return list_invitations_by_receiver(conn, receiver_id)


def invitations_from_sender(conn: Any, sender_id: int) -> list[Invitation]:
    return list_invitations_by_sender(conn, sender_id)


def clear_invitations(conn: Any, sender_id: int) -> int:
    with transaction(conn):
        return delete_invitations_by_sender(conn, sender_id)
