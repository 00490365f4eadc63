from sqlite3 import Connection
from typing import Optional


def ensure_schema(conn: Connection):
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS subscriber (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            email TEXT NOT NULL UNIQUE,
            subscribed_at TEXT NOT NULL
        )
        """
    )


def insert(conn: Connection, email: str, subscribed_at: str):
    # plain INSERT: the UNIQUE constraint must raise, never be ignored
    conn.execute(
        "INSERT INTO subscriber(email, subscribed_at) VALUES(?, ?)",
        (email, subscribed_at),
    )


def exists(conn: Connection, email: str) -> bool:
    row = conn.execute("SELECT 1 FROM subscriber WHERE email=?", (email,)).fetchone()
    return row is not None


def get(conn: Connection, email: str) -> Optional[dict]:
    row = conn.execute(
        "SELECT email, subscribed_at FROM subscriber WHERE email=?", (email,)
    ).fetchone()
    return dict(row) if row else None


def count(conn: Connection) -> int:
    return conn.execute("SELECT COUNT(1) AS cnt FROM subscriber").fetchone()["cnt"]
