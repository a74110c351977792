from __future__ import annotations

from typing import Any

from movienight.db.sqlite_client import count_movies


def liveness() -> dict[str, Any]:
    return {"ok": True}


def _database_ready(conn: Any) -> str:
    try:
        if hasattr(conn, "execute"):
            conn.execute("SELECT 1").fetchone()
        else:
            cur = conn.cursor()
            cur.execute("SELECT 1")
            cur.fetchone()
        return "ready"
    except Exception as exc:
        return f"error: {exc}"


def _catalog_ready(conn: Any) -> str:
    try:
        movies = count_movies(conn)
    except Exception as exc:
        return f"degraded: {exc}"
    return "ready" if movies > 0 else "degraded: catalog is empty"


def readiness(conn: Any | None) -> dict[str, Any]:
    dependencies: dict[str, str] = {}
    if conn is None:
        dependencies["database"] = "error: unavailable"
        dependencies["catalog"] = "degraded: unavailable"
    else:
        dependencies["database"] = _database_ready(conn)
        if dependencies["database"] == "ready":
            dependencies["catalog"] = _catalog_ready(conn)
        else:
            dependencies["catalog"] = "degraded: database unavailable"

    ok = dependencies["database"] == "ready"
    return {"ok": ok, "dependencies": dependencies}
