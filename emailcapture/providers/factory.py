from __future__ import annotations

from ..config import Settings
from .store_port import SubscriberStorePort


def build_store(settings: Settings) -> SubscriberStorePort:
    backend = (settings.store_backend or "mongo").lower()
    if backend == "mongo":
        from .mongo_store import MongoSubscriberStore
        return MongoSubscriberStore(
            settings.mongodb_uri,
            db_name=settings.mongodb_db,
            collection=settings.mongodb_collection,
            selection_timeout_ms=settings.mongodb_selection_timeout_ms,
        )
    if backend == "sqlite":
        from .sqlite_store import SqliteSubscriberStore
        return SqliteSubscriberStore(settings.db_path)
    raise ValueError(f"unknown STORE_BACKEND: {settings.store_backend!r} (expected 'mongo' or 'sqlite')")
