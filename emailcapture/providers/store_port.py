from __future__ import annotations

from datetime import datetime
from typing import Callable


class StoreUnavailable(Exception):
    """The backend could not be reached (connect, ping, read or write)."""


class DuplicateEmail(Exception):
    """An insert hit the storage-layer uniqueness constraint on email."""


class SubscriberStorePort:
    """Persistence collaborator for subscriber records.

    The uniqueness constraint on ``email`` lives in the backend and is the
    only guarantee against duplicate records under concurrent inserts.
    """

    def connect(self) -> None: ...
    def exists(self, email: str) -> bool: ...
    def insert(self, email: str, subscribed_at: datetime) -> None: ...
    def count(self) -> int: ...
    def list_collections(self) -> list[str]: ...
    def add_disconnect_listener(self, callback: Callable[[], None]) -> None: ...
    def close(self) -> None: ...
