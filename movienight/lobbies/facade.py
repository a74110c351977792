from __future__ import annotations

import sys
from enum import IntEnum
from typing import Any

from movienight.catalog import movies as catalog
from movienight.db.records import Lobby, RankedMovie, ReadyTransition, User
from movienight.db.sqlite_client import get_lobby
from movienight.engine import finalization, lobby_state, suggestions, voting
from movienight.errors import DuplicateError, MovieNightError, ValidationError
from movienight.lobbies import manager


class RegistrationStatus(IntEnum):
    OK = 0
    BLANK_USERNAME = 1
    DUPLICATE_USERNAME = 2
    BLANK_PASSWORD = 3
    UNDERAGE = 4


_VALIDATION_STATUS = {
    "blank_username": RegistrationStatus.BLANK_USERNAME,
    "blank_password": RegistrationStatus.BLANK_PASSWORD,
    "underage": RegistrationStatus.UNDERAGE,
}


def _log_rejected(operation: str, exc: MovieNightError) -> None:
    print(
        f"[DB] op={operation} status=rejected error={exc.__class__.__name__} detail={exc}",
        file=sys.stderr,
    )


class Database:
    """Username-keyed entry point for the GUI.

    Lobbies are addressed by their owner's username. Every method recovers the
    domain errors raised underneath and reports the outcome as a status code,
    a boolean, or an empty result; unexpected storage errors still propagate.
    """

    def __init__(self, conn: Any) -> None:
        self.conn = conn

    def _user(self, username: str) -> User | None:
        return manager.find_user_by_username(self.conn, username)

    def _lobby(self, owner_username: str) -> Lobby | None:
        owner = self._user(owner_username)
        if owner is None:
            return None
        return manager.lobby_of_owner(self.conn, owner.id)

    def _lobby_and_user(self, owner_username: str, username: str) -> tuple[Lobby, User] | None:
        lobby = self._lobby(owner_username)
        user = self._user(username)
        if lobby is None or user is None:
            return None
        return lobby, user

    # Users

    def add_user(
        self,
        username: str,
        password: str,
        age: int,
        first_name: str = "",
        last_name: str = "",
    ) -> RegistrationStatus:
        """Register a user; validation errors without a status code propagate."""
        try:
            manager.register_user(self.conn, username, password, age, first_name, last_name)
        except ValidationError as exc:
            if exc.code not in _VALIDATION_STATUS:
                raise
            return _VALIDATION_STATUS[exc.code]
        except DuplicateError:
            return RegistrationStatus.DUPLICATE_USERNAME
        return RegistrationStatus.OK

    def validate_login(self, username: str, password: str) -> bool:
        return manager.authenticate(self.conn, username, password) is not None

    def is_username_exists(self, username: str) -> bool:
        return self._user(username) is not None

    def get_users(self) -> list[str]:
        return manager.list_usernames(self.conn)

    def get_user(self, username: str) -> User | None:
        return self._user(username)

    def update_password(self, username: str, new_password: str) -> bool:
        user = self._user(username)
        if user is None:
            return False
        try:
            return manager.change_password(self.conn, user.id, new_password)
        except ValidationError as exc:
            _log_rejected("update_password", exc)
            return False

    def update_details(self, username: str, first_name: str, last_name: str) -> bool:
        user = self._user(username)
        if user is None:
            return False
        return manager.update_user_details(self.conn, user.id, first_name, last_name)

    def delete_user(self, username: str) -> bool:
        user = self._user(username)
        if user is None:
            return False
        return manager.delete_user(self.conn, user.id)

    # Lobbies and membership

    def create_lobby(self, owner_username: str) -> bool:
        owner = self._user(owner_username)
        if owner is None:
            return False
        try:
            manager.create_lobby(self.conn, owner.id)
        except MovieNightError as exc:
            _log_rejected("create_lobby", exc)
            return False
        return True

    def add_user_to_lobby(self, owner_username: str, username: str) -> bool:
        found = self._lobby_and_user(owner_username, username)
        if found is None:
            return False
        lobby, user = found
        try:
            manager.assign_user_to_lobby(self.conn, lobby.id, user.id)
        except MovieNightError as exc:
            _log_rejected("add_user_to_lobby", exc)
            return False
        return True

    def remove_user_from_lobby(self, owner_username: str, username: str) -> bool:
        found = self._lobby_and_user(owner_username, username)
        if found is None:
            return False
        lobby, user = found
        return manager.remove_user_from_lobby(self.conn, lobby.id, user.id)

    def leave_lobby(self, owner_username: str, username: str) -> bool:
        found = self._lobby_and_user(owner_username, username)
        if found is None:
            return False
        lobby, user = found
        return manager.leave_lobby(self.conn, lobby.id, user.id)

    def get_users_at_lobby(self, owner_username: str) -> list[str]:
        lobby = self._lobby(owner_username)
        if lobby is None:
            return []
        return [user.username for user in manager.lobby_members(self.conn, lobby.id)]

    def get_belonging_lobby_owner(self, username: str) -> str | None:
        user = self._user(username)
        if user is None:
            return None
        lobby = manager.belonging_lobby(self.conn, user.id)
        if lobby is None:
            return None
        owner = manager.find_user(self.conn, lobby.owner_id)
        return owner.username if owner else None

    def delete_lobby(self, owner_username: str) -> bool:
        owner = self._user(owner_username)
        lobby = self._lobby(owner_username)
        if owner is None or lobby is None:
            return False
        return manager.delete_lobby(self.conn, lobby.id, owner.id)

    # Invitations

    def send_invitation_to_user(
        self, sender_username: str, owner_username: str, receiver_username: str
    ) -> bool:
        sender = self._user(sender_username)
        receiver = self._user(receiver_username)
        lobby = self._lobby(owner_username)
        if sender is None or receiver is None or lobby is None:
            return False
        try:
            manager.send_invitation(self.conn, sender.id, lobby.id, receiver.id)
        except MovieNightError as exc:
            _log_rejected("send_invitation", exc)
            return False
        return True

    def _describe_invitation(self, sender_id: int, lobby_id: int, receiver_id: int) -> dict[str, str]:
        sender = manager.find_user(self.conn, sender_id)
        receiver = manager.find_user(self.conn, receiver_id)
        lobby = get_lobby(self.conn, lobby_id)
        owner = manager.find_user(self.conn, lobby.owner_id) if lobby else None
        return {
            "sender": sender.username if sender else "",
            "lobby_owner": owner.username if owner else "",
            "receiver": receiver.username if receiver else "",
        }

    def get_invitations_of_user(self, sender_username: str) -> list[dict[str, str]]:
        """Invitations the user has sent."""
        sender = self._user(sender_username)
        if sender is None:
            return []
        return [
            self._describe_invitation(inv.sender_id, inv.lobby_id, inv.receiver_id)
            for inv in manager.invitations_from_sender(self.conn, sender.id)
        ]

    def get_invitations_for_user(self, receiver_username: str) -> list[dict[str, str]]:
        """Invitations waiting for the user to accept."""
        receiver = self._user(receiver_username)
        if receiver is None:
            return []
        return [
            self._describe_invitation(inv.sender_id, inv.lobby_id, inv.receiver_id)
            for inv in manager.invitations_for_receiver(self.conn, receiver.id)
        ]

    def accept_invitation(
        self, sender_username: str, owner_username: str, receiver_username: str
    ) -> bool:
        sender = self._user(sender_username)
        receiver = self._user(receiver_username)
        lobby = self._lobby(owner_username)
        if sender is None or receiver is None or lobby is None:
            return False
        try:
            manager.accept_invitation(self.conn, sender.id, lobby.id, receiver.id)
        except MovieNightError as exc:
            _log_rejected("accept_invitation", exc)
            return False
        return True

    def remove_invitation_from_user(
        self, sender_username: str, owner_username: str, receiver_username: str
    ) -> bool:
        sender = self._user(sender_username)
        receiver = self._user(receiver_username)
        lobby = self._lobby(owner_username)
        if sender is None or receiver is None or lobby is None:
            return False
        return manager.delete_invitation(self.conn, sender.id, lobby.id, receiver.id)

    def empty_invitations(self, sender_username: str) -> bool:
        sender = self._user(sender_username)
        if sender is None:
            return False
        manager.clear_invitations(self.conn, sender.id)
        return True

    # Suggestions

    def suggest_movie(self, owner_username: str, username: str, movie_id: int) -> bool:
        found = self._lobby_and_user(owner_username, username)
        if found is None:
            return False
        lobby, user = found
        try:
            suggestions.add_suggestion(self.conn, lobby.id, user.id, movie_id)
        except MovieNightError as exc:
            _log_rejected("suggest_movie", exc)
            return False
        return True

    def get_suggestions(self, owner_username: str) -> list[int]:
        lobby = self._lobby(owner_username)
        if lobby is None:
            return []
        return [s.movie_id for s in suggestions.list_suggestions(self.conn, lobby.id)]

    def get_suggested_by_username(self, owner_username: str, movie_id: int) -> str | None:
        lobby = self._lobby(owner_username)
        if lobby is None:
            return None
        suggester_id = suggestions.get_suggester(self.conn, lobby.id, movie_id)
        if suggester_id is None:
            return None
        suggester = manager.find_user(self.conn, suggester_id)
        return suggester.username if suggester else None

    def remove_suggestion(self, owner_username: str, movie_id: int) -> bool:
        lobby = self._lobby(owner_username)
        if lobby is None:
            return False
        try:
            suggestions.remove_suggestion(self.conn, lobby.id, movie_id)
        except MovieNightError as exc:
            _log_rejected("remove_suggestion", exc)
            return False
        return True

    def empty_suggestions(self, owner_username: str) -> bool:
        lobby = self._lobby(owner_username)
        if lobby is None:
            return False
        suggestions.remove_all_suggestions(self.conn, lobby.id)
        return True

    # Votes

    def vote_movie(self, owner_username: str, username: str, movie_id: int) -> bool:
        found = self._lobby_and_user(owner_username, username)
        if found is None:
            return False
        lobby, user = found
        try:
            voting.add_vote(self.conn, lobby.id, user.id, movie_id)
        except MovieNightError as exc:
            _log_rejected("vote_movie", exc)
            return False
        return True

    def remove_vote(self, owner_username: str, username: str, movie_id: int) -> bool:
        found = self._lobby_and_user(owner_username, username)
        if found is None:
            return False
        lobby, user = found
        try:
            voting.remove_vote(self.conn, lobby.id, user.id, movie_id)
        except MovieNightError as exc:
            _log_rejected("remove_vote", exc)
            return False
        return True

    def get_vote_movie_ids_of_user(self, owner_username: str, username: str) -> list[int]:
        found = self._lobby_and_user(owner_username, username)
        if found is None:
            return []
        lobby, user = found
        return [vote.movie_id for vote in voting.list_votes_of_user(self.conn, lobby.id, user.id)]

    def remove_votes_for_movie(self, owner_username: str, movie_id: int) -> bool:
        lobby = self._lobby(owner_username)
        if lobby is None:
            return False
        try:
            voting.remove_votes_for_movie(self.conn, lobby.id, movie_id)
        except MovieNightError as exc:
            _log_rejected("remove_votes_for_movie", exc)
            return False
        return True

    def empty_votes(self, owner_username: str) -> bool:
        lobby = self._lobby(owner_username)
        if lobby is None:
            return False
        voting.remove_all_votes(self.conn, lobby.id)
        return True

    def get_votes(self, owner_username: str) -> dict[int, int]:
        lobby = self._lobby(owner_username)
        if lobby is None:
            return {}
        return voting.tally(self.conn, lobby.id)

    def get_voters(self, owner_username: str) -> dict[int, list[str]]:
        lobby = self._lobby(owner_username)
        if lobby is None:
            return {}
        return voting.voters_by_movie(self.conn, lobby.id)

    # Lobby state and results

    def is_lobby_still_voting(self, owner_username: str) -> bool:
        lobby = self._lobby(owner_username)
        return lobby is not None and lobby.is_ready is False

    def set_lobby_ready(self, owner_username: str) -> bool:
        lobby = self._lobby(owner_username)
        if lobby is None:
            return False
        return lobby_state.set_lobby_ready(self.conn, lobby.id) is not ReadyTransition.NOT_FOUND

    def get_winner_movies(self, owner_username: str) -> list[RankedMovie]:
        lobby = self._lobby(owner_username)
        if lobby is None:
            return []
        return finalization.resolve_winners(self.conn, lobby.id)

    # Catalog

    def get_genres(self) -> list[str]:
        return [genre.name for genre in catalog.list_genres(self.conn)]

    def get_movie_titles(self) -> dict[int, str]:
        return {movie.id: movie.title for movie in catalog.list_movies(self.conn)}

    def find_movie_ids_by_genres(self, genre_names: list[str]) -> list[int]:
        return [movie.id for movie in catalog.filter_movies_by_genres(self.conn, genre_names)]

    def get_movie_genres_label(self, movie_id: int) -> str:
        return catalog.genres_label(self.conn, movie_id)
