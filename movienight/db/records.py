from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any, cast

from dateutil import parser as date_parser


class LobbyState(str, Enum):
    VOTING = "voting"
    READY = "ready"


class ReadyTransition(str, Enum):
    TRANSITIONED = "transitioned"
    ALREADY_READY = "already_ready"
    NOT_FOUND = "not_found"


def parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    dt = cast(datetime, date_parser.parse(str(value)))
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=UTC)


def parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return cast(datetime, date_parser.parse(str(value))).date()


@dataclass(frozen=True)
class User:
    id: int
    username: str
    first_name: str
    last_name: str
    age: int
    created_at: datetime | None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> User:
        return cls(
            id=int(row["id"]),
            username=row["username"],
            first_name=row.get("first_name") or "",
            last_name=row.get("last_name") or "",
            age=int(row["age"]),
            created_at=parse_timestamp(row.get("created_at")),
        )

    @property
    def display_name(self) -> str:
        full = f"{self.first_name} {self.last_name}".strip()
        return full or self.username


@dataclass(frozen=True)
class Lobby:
    id: int
    owner_id: int
    is_ready: bool
    created_on: date | None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Lobby:
        return cls(
            id=int(row["id"]),
            owner_id=int(row["owner_id"]),
            is_ready=bool(row["is_ready"]),
            created_on=parse_date(row.get("created_on")),
        )

    @property
    def state(self) -> LobbyState:
        return LobbyState.READY if self.is_ready else LobbyState.VOTING


@dataclass(frozen=True)
class Movie:
    id: int
    title: str
    description: str
    trailer_path: str

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Movie:
        return cls(
            id=int(row["id"]),
            title=row["title"],
            description=row.get("description") or "",
            trailer_path=row.get("trailer_path") or "",
        )


@dataclass(frozen=True)
class Genre:
    id: int
    name: str

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Genre:
        return cls(id=int(row["id"]), name=row["name"])


@dataclass(frozen=True)
class Invitation:
    sender_id: int
    lobby_id: int
    receiver_id: int

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Invitation:
        return cls(
            sender_id=int(row["sender_id"]),
            lobby_id=int(row["lobby_id"]),
            receiver_id=int(row["receiver_id"]),
        )


@dataclass(frozen=True)
class Suggestion:
    """One candidate slot per (lobby, movie); ``suggested_by`` is informational."""

    lobby_id: int
    suggested_by: int
    movie_id: int

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Suggestion:
        return cls(
            lobby_id=int(row["lobby_id"]),
            suggested_by=int(row["suggested_by"]),
            movie_id=int(row["movie_id"]),
        )


@dataclass(frozen=True)
class Vote:
    lobby_id: int
    user_id: int
    movie_id: int

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Vote:
        return cls(
            lobby_id=int(row["lobby_id"]),
            user_id=int(row["user_id"]),
            movie_id=int(row["movie_id"]),
        )


@dataclass(frozen=True)
class RankedMovie:
    movie_id: int
    title: str
    vote_count: int
