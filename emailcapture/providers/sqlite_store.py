from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Callable, Optional

from ..db import get_conn
from ..repository import subscriber_repo
from .store_port import DuplicateEmail, StoreUnavailable, SubscriberStorePort


class SqliteSubscriberStore(SubscriberStorePort):
    """File-backed store for local runs and tests; UNIQUE(email) enforces dedup."""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path
        self._listeners: list[Callable[[], None]] = []

    def connect(self) -> None:
        try:
            with get_conn(self.db_path) as conn:
                subscriber_repo.ensure_schema(conn)
                conn.execute("SELECT 1").fetchone()
        except (sqlite3.OperationalError, OSError) as e:
            raise StoreUnavailable(str(e)) from e

    def close(self) -> None:
        pass

    def add_disconnect_listener(self, callback: Callable[[], None]) -> None:
        # SQLite has no driver events; kept for interface parity
        self._listeners.append(callback)

    def exists(self, email: str) -> bool:
        try:
            with get_conn(self.db_path) as conn:
                return subscriber_repo.exists(conn, email)
        except (sqlite3.OperationalError, OSError) as e:
            raise StoreUnavailable(str(e)) from e

    def insert(self, email: str, subscribed_at: datetime) -> None:
        try:
            with get_conn(self.db_path) as conn:
                subscriber_repo.insert(conn, email, subscribed_at.isoformat())
        except sqlite3.IntegrityError as e:
            raise DuplicateEmail(email) from e
        except (sqlite3.OperationalError, OSError) as e:
            raise StoreUnavailable(str(e)) from e

    def count(self) -> int:
        try:
            with get_conn(self.db_path) as conn:
                return subscriber_repo.count(conn)
        except (sqlite3.OperationalError, OSError) as e:
            raise StoreUnavailable(str(e)) from e

    def list_collections(self) -> list[str]:
        try:
            with get_conn(self.db_path) as conn:
                rows = conn.execute(
                    "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
                ).fetchall()
        except (sqlite3.OperationalError, OSError) as e:
            raise StoreUnavailable(str(e)) from e
        return [r["name"] for r in rows]
