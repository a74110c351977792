from __future__ import annotations

import os
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager, suppress
from pathlib import Path
from typing import Any

from movienight.db.records import Genre, Invitation, Lobby, Movie, User
from movienight.errors import DuplicateError, IntegrityError, NotFoundError, ValidationError

SQLITE_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    first_name TEXT NOT NULL DEFAULT '',
    last_name TEXT NOT NULL DEFAULT '',
    username TEXT NOT NULL UNIQUE CHECK(length(trim(username)) > 0),
    password TEXT NOT NULL CHECK(length(password) > 0),
    age INTEGER NOT NULL CHECK(age >= 18),
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS movies (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    trailer_path TEXT NOT NULL DEFAULT ''
);

CREATE INDEX IF NOT EXISTS idx_movies_title ON movies(title);

CREATE TABLE IF NOT EXISTS genres (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS movie_genres (
    movie_id INTEGER NOT NULL REFERENCES movies(id) ON DELETE CASCADE,
    genre_id INTEGER NOT NULL REFERENCES genres(id) ON DELETE CASCADE,
    PRIMARY KEY (movie_id, genre_id)
);

CREATE INDEX IF NOT EXISTS idx_movie_genres_genre ON movie_genres(genre_id);

CREATE TABLE IF NOT EXISTS lobbies (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    owner_id INTEGER NOT NULL UNIQUE REFERENCES users(id),
    is_ready INTEGER NOT NULL DEFAULT 0 CHECK(is_ready IN (0,1)),
    created_on TEXT NOT NULL DEFAULT (date('now'))
);

CREATE TABLE IF NOT EXISTS lobby_members (
    lobby_id INTEGER NOT NULL REFERENCES lobbies(id),
    user_id INTEGER NOT NULL REFERENCES users(id),
    joined_at TEXT NOT NULL DEFAULT (datetime('now')),
    join_seq INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (lobby_id, user_id)
);

CREATE INDEX IF NOT EXISTS idx_lobby_members_user ON lobby_members(user_id);

CREATE TABLE IF NOT EXISTS invitations (
    sender_id INTEGER NOT NULL REFERENCES users(id),
    lobby_id INTEGER NOT NULL REFERENCES lobbies(id),
    receiver_id INTEGER NOT NULL REFERENCES users(id),
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (sender_id, lobby_id, receiver_id),
    CHECK(sender_id <> receiver_id)
);

CREATE INDEX IF NOT EXISTS idx_invitations_receiver ON invitations(receiver_id);

CREATE TABLE IF NOT EXISTS suggestions (
    lobby_id INTEGER NOT NULL REFERENCES lobbies(id),
    suggested_by INTEGER NOT NULL REFERENCES users(id),
    movie_id INTEGER NOT NULL REFERENCES movies(id),
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (lobby_id, movie_id)
);

CREATE TABLE IF NOT EXISTS votes (
    lobby_id INTEGER NOT NULL REFERENCES lobbies(id),
    user_id INTEGER NOT NULL REFERENCES users(id),
    movie_id INTEGER NOT NULL REFERENCES movies(id),
    created_at TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (lobby_id, user_id, movie_id)
);

CREATE INDEX IF NOT EXISTS idx_votes_movie ON votes(lobby_id, movie_id);
"""

POSTGRES_SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id BIGSERIAL PRIMARY KEY,
        first_name TEXT NOT NULL DEFAULT '',
        last_name TEXT NOT NULL DEFAULT '',
        username TEXT NOT NULL UNIQUE CHECK(length(trim(username)) > 0),
        password TEXT NOT NULL CHECK(length(password) > 0),
        age INTEGER NOT NULL CHECK(age >= 18),
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS movies (
        id BIGSERIAL PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        trailer_path TEXT NOT NULL DEFAULT ''
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_movies_title ON movies(title)",
    """
    CREATE TABLE IF NOT EXISTS genres (
        id BIGSERIAL PRIMARY KEY,
        name TEXT NOT NULL UNIQUE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS movie_genres (
        movie_id BIGINT NOT NULL REFERENCES movies(id) ON DELETE CASCADE,
        genre_id BIGINT NOT NULL REFERENCES genres(id) ON DELETE CASCADE,
        PRIMARY KEY (movie_id, genre_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_movie_genres_genre ON movie_genres(genre_id)",
    """
    CREATE TABLE IF NOT EXISTS lobbies (
        id BIGSERIAL PRIMARY KEY,
        owner_id BIGINT NOT NULL UNIQUE REFERENCES users(id),
        is_ready INTEGER NOT NULL DEFAULT 0 CHECK(is_ready IN (0,1)),
        created_on DATE NOT NULL DEFAULT CURRENT_DATE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS lobby_members (
        lobby_id BIGINT NOT NULL REFERENCES lobbies(id),
        user_id BIGINT NOT NULL REFERENCES users(id),
        joined_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
        join_seq BIGINT NOT NULL DEFAULT 0,
        PRIMARY KEY (lobby_id, user_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_lobby_members_user ON lobby_members(user_id)",
    """
    CREATE TABLE IF NOT EXISTS invitations (
        sender_id BIGINT NOT NULL REFERENCES users(id),
        lobby_id BIGINT NOT NULL REFERENCES lobbies(id),
        receiver_id BIGINT NOT NULL REFERENCES users(id),
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (sender_id, lobby_id, receiver_id),
        CHECK(sender_id <> receiver_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_invitations_receiver ON invitations(receiver_id)",
    """
    CREATE TABLE IF NOT EXISTS suggestions (
        lobby_id BIGINT NOT NULL REFERENCES lobbies(id),
        suggested_by BIGINT NOT NULL REFERENCES users(id),
        movie_id BIGINT NOT NULL REFERENCES movies(id),
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (lobby_id, movie_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS votes (
        lobby_id BIGINT NOT NULL REFERENCES lobbies(id),
        user_id BIGINT NOT NULL REFERENCES users(id),
        movie_id BIGINT NOT NULL REFERENCES movies(id),
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (lobby_id, user_id, movie_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_votes_movie ON votes(lobby_id, movie_id)",
]

# SQLSTATE class 23 codes reported by psycopg.
_POSTGRES_INTEGRITY_CODES = {
    "23505": "unique",
    "23503": "foreign_key",
    "23514": "check",
    "23502": "check",
}


def _is_postgres(conn: Any) -> bool:
    return conn.__class__.__module__.startswith("psycopg")


def _adapt_sql(conn: Any, sql: str) -> str:
    return sql.replace("?", "%s") if _is_postgres(conn) else sql


def execute(conn: Any, sql: str, params: tuple[Any, ...] | list[Any] = ()) -> Any:
    if _is_postgres(conn):
        cur = conn.cursor()
        cur.execute(_adapt_sql(conn, sql), tuple(params))
        return cur
    return conn.execute(_adapt_sql(conn, sql), tuple(params))


def row_to_dict(row: Any) -> dict[str, Any]:
    return row if isinstance(row, dict) else dict(row)


def _fetch_one(conn: Any, sql: str, params: tuple[Any, ...] | list[Any] = ()) -> dict[str, Any] | None:
    row = execute(conn, sql, params).fetchone()
    return row_to_dict(row) if row else None


def _fetch_all(conn: Any, sql: str, params: tuple[Any, ...] | list[Any] = ()) -> list[dict[str, Any]]:
    return [row_to_dict(row) for row in execute(conn, sql, params).fetchall()]


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


def get_connection(db_path: str, database_url: str | None = None) -> Any:
    database_url = (database_url if database_url is not None else os.getenv("DATABASE_URL", "")).strip()
    if database_url:
        from psycopg import connect
        from psycopg.rows import dict_row

        return connect(database_url, row_factory=dict_row, autocommit=False)

    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    return conn


def init_schema(conn: Any) -> None:
    if _is_postgres(conn):
        cur = conn.cursor()
        for statement in POSTGRES_SCHEMA_STATEMENTS:
            cur.execute(statement)
    else:
        conn.executescript(SQLITE_SCHEMA)
    conn.commit()


def _safe_rollback(conn: Any) -> None:
    """Reset failed DB transactions without masking original errors."""
    with suppress(Exception):
        conn.rollback()


@contextmanager
def transaction(conn: Any) -> Iterator[Any]:
    """Commit the enclosed statements as one unit, or roll all of them back.

    The statement helpers in this module never commit on their own; every
    service-level operation wraps them in a single ``transaction`` block.
    """
    try:
        yield conn
        conn.commit()
    except BaseException:
        _safe_rollback(conn)
        raise


def integrity_kind(exc: BaseException) -> str | None:
    """Classify a driver error as ``unique``, ``foreign_key``, ``check`` or ``None``."""
    if isinstance(exc, sqlite3.IntegrityError):
        message = str(exc).upper()
        if "UNIQUE" in message or "PRIMARY KEY" in message:
            return "unique"
        if "FOREIGN KEY" in message:
            return "foreign_key"
        if "CHECK" in message or "NOT NULL" in message:
            return "check"
        return None
    if exc.__class__.__module__.startswith("psycopg"):
        return _POSTGRES_INTEGRITY_CODES.get(getattr(exc, "sqlstate", None) or "")
    return None


def run_write(
    conn: Any,
    sql: str,
    params: tuple[Any, ...] | list[Any] = (),
    *,
    entity: str,
) -> Any:
    """Execute an INSERT/UPDATE, translating constraint violations into typed errors."""
    try:
        return execute(conn, sql, params)
    except Exception as exc:
        kind = integrity_kind(exc)
        if kind == "unique":
            raise DuplicateError(f"{entity} already exists.") from exc
        if kind == "foreign_key":
            raise NotFoundError(f"{entity} references a row that does not exist.") from exc
        if kind == "check":
            raise ValidationError(f"{entity} violates a storage constraint.") from exc
        raise


def _run_parent_delete(conn: Any, sql: str, params: tuple[Any, ...], *, entity: str) -> bool:
    try:
        cur = execute(conn, sql, params)
    except Exception as exc:
        if integrity_kind(exc) == "foreign_key":
            raise IntegrityError(
                f"{entity} still has dependent rows; clean them up before deleting."
            ) from exc
        raise
    return cur.rowcount > 0


def _insert_returning_id(
    conn: Any, sql: str, params: tuple[Any, ...] | list[Any], *, entity: str
) -> int:
    if _is_postgres(conn):
        row = run_write(conn, f"{sql} RETURNING id", params, entity=entity).fetchone()
    else:
        run_write(conn, sql, params, entity=entity)
        row = execute(conn, "SELECT last_insert_rowid() AS id").fetchone()
    return int(row_to_dict(row)["id"])


# Users


def insert_user(
    conn: Any,
    username: str,
    password: str,
    age: int,
    first_name: str = "",
    last_name: str = "",
) -> int:
    return _insert_returning_id(
        conn,
        """
        INSERT INTO users (first_name, last_name, username, password, age)
        VALUES (?, ?, ?, ?, ?)
        """,
        [first_name, last_name, username, password, age],
        entity="User",
    )


def get_user(conn: Any, user_id: int) -> User | None:
    row = _fetch_one(conn, "SELECT * FROM users WHERE id = ?", [user_id])
    return User.from_row(row) if row else None


def get_user_by_username(conn: Any, username: str) -> User | None:
    row = _fetch_one(conn, "SELECT * FROM users WHERE username = ?", [username])
    return User.from_row(row) if row else None


def get_user_by_credentials(conn: Any, username: str, password: str) -> User | None:
    row = _fetch_one(
        conn,
        "SELECT * FROM users WHERE username = ? AND password = ?",
        [username, password],
    )
    return User.from_row(row) if row else None


def list_users(conn: Any) -> list[User]:
    return [User.from_row(row) for row in _fetch_all(conn, "SELECT * FROM users ORDER BY id ASC")]


def list_usernames(conn: Any) -> list[str]:
    rows = _fetch_all(conn, "SELECT username FROM users ORDER BY username ASC")
    return [row["username"] for row in rows]


def update_user_password(conn: Any, user_id: int, password: str) -> bool:
    cur = run_write(
        conn,
        "UPDATE users SET password = ? WHERE id = ?",
        [password, user_id],
        entity="User",
    )
    return cur.rowcount > 0


def update_user_details(conn: Any, user_id: int, first_name: str, last_name: str) -> bool:
    cur = run_write(
        conn,
        "UPDATE users SET first_name = ?, last_name = ? WHERE id = ?",
        [first_name, last_name, user_id],
        entity="User",
    )
    return cur.rowcount > 0


def delete_user_record(conn: Any, user_id: int) -> bool:
    return _run_parent_delete(conn, "DELETE FROM users WHERE id = ?", (user_id,), entity="User")


# Lobbies


def insert_lobby(conn: Any, owner_id: int) -> int:
    return _insert_returning_id(
        conn,
        "INSERT INTO lobbies (owner_id) VALUES (?)",
        [owner_id],
        entity="Lobby",
    )


def get_lobby(conn: Any, lobby_id: int) -> Lobby | None:
    row = _fetch_one(conn, "SELECT * FROM lobbies WHERE id = ?", [lobby_id])
    return Lobby.from_row(row) if row else None


def get_lobby_by_owner(conn: Any, owner_id: int) -> Lobby | None:
    row = _fetch_one(conn, "SELECT * FROM lobbies WHERE owner_id = ?", [owner_id])
    return Lobby.from_row(row) if row else None


def list_lobbies(conn: Any) -> list[Lobby]:
    return [Lobby.from_row(row) for row in _fetch_all(conn, "SELECT * FROM lobbies ORDER BY id ASC")]


def mark_lobby_ready(conn: Any, lobby_id: int) -> bool:
    """Compare-and-set the ready flag; True only for the call that flipped it."""
    cur = execute(
        conn,
        "UPDATE lobbies SET is_ready = 1 WHERE id = ? AND is_ready = 0",
        [lobby_id],
    )
    return cur.rowcount == 1


def delete_lobby_record(conn: Any, lobby_id: int) -> bool:
    return _run_parent_delete(
        conn, "DELETE FROM lobbies WHERE id = ?", (lobby_id,), entity="Lobby"
    )


# Membership


def insert_member(conn: Any, lobby_id: int, user_id: int) -> None:
    # join_seq orders joins that share a joined_at second.
    run_write(
        conn,
        """
        INSERT INTO lobby_members (lobby_id, user_id, join_seq)
        SELECT ?, ?, COALESCE(MAX(join_seq), 0) + 1 FROM lobby_members
        """,
        [lobby_id, user_id],
        entity="Membership",
    )


def delete_member(conn: Any, lobby_id: int, user_id: int) -> bool:
    cur = execute(
        conn,
        "DELETE FROM lobby_members WHERE lobby_id = ? AND user_id = ?",
        [lobby_id, user_id],
    )
    return cur.rowcount > 0


def is_member(conn: Any, lobby_id: int, user_id: int) -> bool:
    row = _fetch_one(
        conn,
        "SELECT 1 AS present FROM lobby_members WHERE lobby_id = ? AND user_id = ?",
        [lobby_id, user_id],
    )
    return row is not None


def count_members(conn: Any, lobby_id: int) -> int:
    row = _fetch_one(
        conn, "SELECT COUNT(*) AS c FROM lobby_members WHERE lobby_id = ?", [lobby_id]
    )
    return int(row["c"]) if row else 0


def list_member_users(conn: Any, lobby_id: int) -> list[User]:
    rows = _fetch_all(
        conn,
        """
        SELECT u.*
        FROM lobby_members lm
        JOIN users u ON u.id = lm.user_id
        WHERE lm.lobby_id = ?
        ORDER BY lm.join_seq ASC, u.id ASC
        """,
        [lobby_id],
    )
    return [User.from_row(row) for row in rows]


def list_lobbies_of_member(conn: Any, user_id: int) -> list[Lobby]:
    rows = _fetch_all(
        conn,
        """
        SELECT l.*
        FROM lobby_members lm
        JOIN lobbies l ON l.id = lm.lobby_id
        WHERE lm.user_id = ?
        ORDER BY lm.join_seq DESC, l.id DESC
        """,
        [user_id],
    )
    return [Lobby.from_row(row) for row in rows]


def delete_members_of_lobby(conn: Any, lobby_id: int) -> int:
    return execute(conn, "DELETE FROM lobby_members WHERE lobby_id = ?", [lobby_id]).rowcount


def delete_memberships_of_user(conn: Any, user_id: int) -> int:
    return execute(conn, "DELETE FROM lobby_members WHERE user_id = ?", [user_id]).rowcount


# Invitations


def insert_invitation(conn: Any, sender_id: int, lobby_id: int, receiver_id: int) -> None:
    run_write(
        conn,
        "INSERT INTO invitations (sender_id, lobby_id, receiver_id) VALUES (?, ?, ?)",
        [sender_id, lobby_id, receiver_id],
        entity="Invitation",
    )


def delete_invitation(conn: Any, sender_id: int, lobby_id: int, receiver_id: int) -> bool:
    cur = execute(
        conn,
        "DELETE FROM invitations WHERE sender_id = ? AND lobby_id = ? AND receiver_id = ?",
        [sender_id, lobby_id, receiver_id],
    )
    return cur.rowcount > 0


def list_invitations_by_receiver(conn: Any, receiver_id: int) -> list[Invitation]:
    rows = _fetch_all(
        conn,
        "SELECT * FROM invitations WHERE receiver_id = ? ORDER BY created_at ASC, sender_id ASC",
        [receiver_id],
    )
    return [Invitation.from_row(row) for row in rows]


def list_invitations_by_sender(conn: Any, sender_id: int) -> list[Invitation]:
    rows = _fetch_all(
        conn,
        "SELECT * FROM invitations WHERE sender_id = ? ORDER BY created_at ASC, receiver_id ASC",
        [sender_id],
    )
    return [Invitation.from_row(row) for row in rows]


def delete_invitations_by_sender(conn: Any, sender_id: int) -> int:
    return execute(conn, "DELETE FROM invitations WHERE sender_id = ?", [sender_id]).rowcount


def delete_invitations_of_lobby(conn: Any, lobby_id: int) -> int:
    return execute(conn, "DELETE FROM invitations WHERE lobby_id = ?", [lobby_id]).rowcount


def delete_invitations_of_user(conn: Any, user_id: int) -> int:
    return execute(
        conn,
        "DELETE FROM invitations WHERE sender_id = ? OR receiver_id = ?",
        [user_id, user_id],
    ).rowcount


# Movies and genres


def insert_movie(
    conn: Any,
    title: str,
    description: str = "",
    trailer_path: str = "",
    movie_id: int | None = None,
) -> int:
    if movie_id is None:
        return _insert_returning_id(
            conn,
            "INSERT INTO movies (title, description, trailer_path) VALUES (?, ?, ?)",
            [title, description, trailer_path],
            entity="Movie",
        )
    run_write(
        conn,
        "INSERT INTO movies (id, title, description, trailer_path) VALUES (?, ?, ?, ?)",
        [movie_id, title, description, trailer_path],
        entity="Movie",
    )
    if _is_postgres(conn):
        # Explicit ids bypass the serial sequence; move it past the highest id.
        execute(
            conn,
            "SELECT setval(pg_get_serial_sequence('movies', 'id'), (SELECT MAX(id) FROM movies))",
        )
    return movie_id


def get_movie(conn: Any, movie_id: int) -> Movie | None:
    row = _fetch_one(conn, "SELECT * FROM movies WHERE id = ?", [movie_id])
    return Movie.from_row(row) if row else None


def get_movie_by_title(conn: Any, title: str) -> Movie | None:
    row = _fetch_one(
        conn, "SELECT * FROM movies WHERE title = ? ORDER BY id ASC LIMIT 1", [title]
    )
    return Movie.from_row(row) if row else None


def list_movies(conn: Any) -> list[Movie]:
    rows = _fetch_all(conn, "SELECT * FROM movies ORDER BY title ASC, id ASC")
    return [Movie.from_row(row) for row in rows]


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def search_movies(conn: Any, query: str) -> list[Movie]:
    sql = "SELECT * FROM movies WHERE 1=1"
    params: list[Any] = []
    if query.strip():
        sql += " AND (LOWER(title) LIKE ? ESCAPE '\\' OR LOWER(description) LIKE ? ESCAPE '\\')"
        pattern = f"%{_escape_like(query.strip().lower())}%"
        params.extend([pattern, pattern])
    sql += " ORDER BY title ASC, id ASC LIMIT 500"
    return [Movie.from_row(row) for row in _fetch_all(conn, sql, params)]


def count_movies(conn: Any) -> int:
    row = _fetch_one(conn, "SELECT COUNT(*) AS c FROM movies")
    return int(row["c"]) if row else 0


def insert_genre(conn: Any, name: str) -> int:
    return _insert_returning_id(
        conn, "INSERT INTO genres (name) VALUES (?)", [name], entity="Genre"
    )


def get_genre_by_name(conn: Any, name: str) -> Genre | None:
    row = _fetch_one(conn, "SELECT * FROM genres WHERE name = ?", [name])
    return Genre.from_row(row) if row else None


def list_genres(conn: Any) -> list[Genre]:
    return [Genre.from_row(row) for row in _fetch_all(conn, "SELECT * FROM genres ORDER BY name ASC")]


def insert_movie_genre(conn: Any, movie_id: int, genre_id: int) -> None:
    run_write(
        conn,
        "INSERT INTO movie_genres (movie_id, genre_id) VALUES (?, ?)",
        [movie_id, genre_id],
        entity="Movie genre",
    )


def get_genres_of_movie(conn: Any, movie_id: int) -> list[Genre]:
    rows = _fetch_all(
        conn,
        """
        SELECT g.*
        FROM movie_genres mg
        JOIN genres g ON g.id = mg.genre_id
        WHERE mg.movie_id = ?
        ORDER BY g.name ASC
        """,
        [movie_id],
    )
    return [Genre.from_row(row) for row in rows]


def find_movies_by_genre_ids(conn: Any, genre_ids: list[int]) -> list[Movie]:
    """Return movies tagged with every genre in ``genre_ids``."""
    wanted = sorted(set(genre_ids))
    if not wanted:
        return list_movies(conn)
    rows = _fetch_all(
        conn,
        f"""
        SELECT m.id, m.title, m.description, m.trailer_path
        FROM movies m
        JOIN movie_genres mg ON mg.movie_id = m.id
        WHERE mg.genre_id IN ({_placeholders(len(wanted))})
        GROUP BY m.id, m.title, m.description, m.trailer_path
        HAVING COUNT(DISTINCT mg.genre_id) = ?
        ORDER BY m.title ASC, m.id ASC
        """,
        [*wanted, len(wanted)],
    )
    return [Movie.from_row(row) for row in rows]


# Suggestions and votes (bulk statements used by teardown and user deletion)


def delete_votes_of_lobby(conn: Any, lobby_id: int) -> int:
    return execute(conn, "DELETE FROM votes WHERE lobby_id = ?", [lobby_id]).rowcount


def delete_suggestions_of_lobby(conn: Any, lobby_id: int) -> int:
    return execute(conn, "DELETE FROM suggestions WHERE lobby_id = ?", [lobby_id]).rowcount


def delete_votes_of_user(conn: Any, user_id: int) -> int:
    return execute(conn, "DELETE FROM votes WHERE user_id = ?", [user_id]).rowcount


def delete_votes_on_suggestions_of_user(conn: Any, user_id: int) -> int:
    return execute(
        conn,
        """
        DELETE FROM votes
        WHERE EXISTS (
            SELECT 1 FROM suggestions s
            WHERE s.lobby_id = votes.lobby_id
              AND s.movie_id = votes.movie_id
              AND s.suggested_by = ?
        )
        """,
        [user_id],
    ).rowcount


def delete_suggestions_of_user(conn: Any, user_id: int) -> int:
    return execute(conn, "DELETE FROM suggestions WHERE suggested_by = ?", [user_id]).rowcount
