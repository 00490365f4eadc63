import os
import sys
import sqlite3
import threading
import pytest
from pathlib import Path

# Ensure project root on sys.path
_THIS_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _THIS_DIR.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from emailcapture.providers.store_port import DuplicateEmail, StoreUnavailable  # noqa: E402


class FakeStore:
    """In-memory store; the dict under a lock plays the unique index."""

    def __init__(self, skip_precheck: bool = False):
        self.records = {}
        self.skip_precheck = skip_precheck
        self.fail_connect = False
        self.fail_ops = False
        self.connect_calls = 0
        self.insert_calls = 0
        self.closed = False
        self.listeners = []
        self._lock = threading.Lock()

    def connect(self):
        self.connect_calls += 1
        if self.fail_connect:
            raise StoreUnavailable("connection refused")

    def exists(self, email):
        if self.fail_ops:
            raise StoreUnavailable("socket closed")
        if self.skip_precheck:
            return False
        with self._lock:
            return email in self.records

    def insert(self, email, subscribed_at):
        if self.fail_ops:
            raise StoreUnavailable("socket closed")
        with self._lock:
            self.insert_calls += 1
            if email in self.records:
                raise DuplicateEmail(email)
            self.records[email] = subscribed_at

    def count(self):
        return len(self.records)

    def list_collections(self):
        return ["emails"]

    def add_disconnect_listener(self, callback):
        self.listeners.append(callback)

    def fire_disconnect(self):
        for cb in list(self.listeners):
            cb()

    def close(self):
        self.closed = True


class FakeTimer:
    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.function()


@pytest.fixture(scope="session")
def tmp_db_path(tmp_path_factory):
    path = tmp_path_factory.mktemp("db") / "subscribers_test.db"
    # Point the SQLite store to this temp DB
    os.environ["SUBSCRIBE_DB_PATH"] = str(path)
    schema = Path(_PROJECT_ROOT / "schema.sql").read_text(encoding="utf-8")
    conn = sqlite3.connect(str(path))
    try:
        conn.executescript(schema)
        conn.commit()
    finally:
        conn.close()
    return str(path)


@pytest.fixture(autouse=True)
def _clean_db(tmp_db_path):
    # Safety: ensure we only ever wipe the temp DB, never a real one
    assert os.environ.get("SUBSCRIBE_DB_PATH") == tmp_db_path, "Refusing to clean non-temp DB"
    conn = sqlite3.connect(tmp_db_path)
    try:
        conn.execute("DELETE FROM subscriber")
        conn.commit()
    finally:
        conn.close()
    yield


@pytest.fixture()
def fake_store():
    return FakeStore()


@pytest.fixture()
def timers():
    created = []

    def factory(interval, function):
        t = FakeTimer(interval, function)
        created.append(t)
        return t

    factory.created = created
    return factory


@pytest.fixture()
def sleeps():
    calls = []

    def sleep(seconds):
        calls.append(seconds)

    sleep.calls = calls
    return sleep


@pytest.fixture()
def make_guard(sleeps, timers):
    from emailcapture.services.connection_guard import ConnectionGuard

    def _make(store, **kwargs):
        kwargs.setdefault("sleep", sleeps)
        kwargs.setdefault("timer_factory", timers)
        return ConnectionGuard(store, **kwargs)

    return _make


@pytest.fixture()
def sqlite_settings(tmp_db_path):
    from emailcapture.config import Settings
    return Settings(store_backend="sqlite", db_path=tmp_db_path, log_level="DEBUG")


@pytest.fixture()
def client(sqlite_settings, make_guard):
    from emailcapture.api import create_app
    from emailcapture.providers.sqlite_store import SqliteSubscriberStore
    from fastapi.testclient import TestClient

    guard = make_guard(SqliteSubscriberStore(sqlite_settings.db_path))
    app = create_app(sqlite_settings, guard=guard)
    with TestClient(app) as c:
        yield c
