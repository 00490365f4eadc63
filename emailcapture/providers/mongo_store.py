from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional

import certifi
from pymongo import MongoClient, monitoring
from pymongo.collection import Collection
from pymongo.errors import ConfigurationError, ConnectionFailure, DuplicateKeyError

from .store_port import DuplicateEmail, StoreUnavailable, SubscriberStorePort

logger = logging.getLogger(__name__)

DEFAULT_DB_NAME = "emaildb"
UNIQUE_INDEX_NAME = "email_unique"

# AutoReconnect, NetworkTimeout and ServerSelectionTimeoutError all derive from it
_CONNECTIVITY_ERRORS = ConnectionFailure


def _uri_requires_tls(uri: str) -> bool:
    lowered = uri.lower()
    return lowered.startswith("mongodb+srv://") or "tls=true" in lowered or "ssl=true" in lowered


class _HeartbeatListener(monitoring.ServerHeartbeatListener):
    """Forwards failed server heartbeats to the store's disconnect callbacks."""

    def __init__(self, on_failed: Callable[[], None]):
        self._on_failed = on_failed

    def started(self, event):
        pass

    def succeeded(self, event):
        pass

    def failed(self, event):
        logger.warning("mongo heartbeat failed for %s: %s", event.connection_id, event.reply)
        self._on_failed()


class MongoSubscriberStore(SubscriberStorePort):
    """Subscriber records in a MongoDB collection, one document per email.

    Document shape: ``{"email": <normalized>, "subscribedAt": <UTC datetime>}``
    with a unique index on ``email``.
    """

    def __init__(
        self,
        uri: str,
        db_name: Optional[str] = None,
        collection: str = "emails",
        selection_timeout_ms: int = 5000,
        tls_ca_file: Optional[str] = None,
        client_factory: Callable[..., MongoClient] = MongoClient,
    ):
        self.uri = uri
        self.db_name = db_name
        self.collection_name = collection
        self.selection_timeout_ms = selection_timeout_ms
        self.tls_ca_file = tls_ca_file
        self._client_factory = client_factory
        self._client: Optional[MongoClient] = None
        self._listeners: list[Callable[[], None]] = []

    # -------- lifecycle --------
    def _client_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "serverSelectionTimeoutMS": self.selection_timeout_ms,
            "connectTimeoutMS": self.selection_timeout_ms,
            "event_listeners": [_HeartbeatListener(self._fire_disconnect)],
        }
        if self.tls_ca_file:
            kwargs["tlsCAFile"] = self.tls_ca_file
        elif _uri_requires_tls(self.uri):
            kwargs["tlsCAFile"] = certifi.where()
        return kwargs

    def _get_client(self) -> MongoClient:
        if self._client is None:
            try:
                self._client = self._client_factory(self.uri, **self._client_kwargs())
            except ConfigurationError as e:
                # mongodb+srv:// resolves SRV/TXT records here; DNS failures surface as ConfigurationError
                raise StoreUnavailable(str(e)) from e
        return self._client

    def _collection(self) -> Collection:
        client = self._get_client()
        if self.db_name:
            db = client[self.db_name]
        else:
            db = client.get_default_database(default=DEFAULT_DB_NAME)
        return db[self.collection_name]

    def connect(self) -> None:
        try:
            self._get_client().admin.command("ping")
            self._collection().create_index("email", unique=True, name=UNIQUE_INDEX_NAME)
        except _CONNECTIVITY_ERRORS as e:
            raise StoreUnavailable(str(e)) from e

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def add_disconnect_listener(self, callback: Callable[[], None]) -> None:
        self._listeners.append(callback)

    def _fire_disconnect(self):
        for cb in list(self._listeners):
            cb()

    # -------- data --------
    def exists(self, email: str) -> bool:
        try:
            return self._collection().find_one({"email": email}, projection={"_id": 1}) is not None
        except _CONNECTIVITY_ERRORS as e:
            raise StoreUnavailable(str(e)) from e

    def insert(self, email: str, subscribed_at: datetime) -> None:
        try:
            self._collection().insert_one({"email": email, "subscribedAt": subscribed_at})
        except DuplicateKeyError as e:
            raise DuplicateEmail(email) from e
        except _CONNECTIVITY_ERRORS as e:
            raise StoreUnavailable(str(e)) from e

    def count(self) -> int:
        try:
            return self._collection().count_documents({})
        except _CONNECTIVITY_ERRORS as e:
            raise StoreUnavailable(str(e)) from e

    def list_collections(self) -> list[str]:
        try:
            return sorted(self._collection().database.list_collection_names())
        except _CONNECTIVITY_ERRORS as e:
            raise StoreUnavailable(str(e)) from e
