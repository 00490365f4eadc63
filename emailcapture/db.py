from __future__ import annotations

# emailcapture/db.py
import sqlite3
from contextlib import contextmanager
from typing import Iterator
import os

from .config import PROJECT_ROOT, read_config_yaml

# DB path resolution order:
# 1) SUBSCRIBE_DB_PATH env var (highest priority)
# 2) db_path from config.yaml
# 3) fallback: subscribers.db in the project root
_ROOT_DB = os.path.join(PROJECT_ROOT, "subscribers.db")


def get_db_path(explicit: str | None = None) -> str:
    env_path = os.environ.get("SUBSCRIBE_DB_PATH")
    cfg_db = read_config_yaml().get("db_path")

    if explicit:
        path = explicit
    elif env_path:
        path = env_path
    elif isinstance(cfg_db, str) and cfg_db.strip():
        path = cfg_db.strip()
    else:
        path = _ROOT_DB

    dirn = os.path.dirname(path) or "."
    os.makedirs(dirn, exist_ok=True)
    return path


@contextmanager
def get_conn(db_path: str | None = None) -> Iterator[sqlite3.Connection]:
    """
    Open a SQLite connection. An explicit db_path wins, otherwise get_db_path().
    Autocommit mode, row_factory set to Row.
    """
    path = get_db_path(db_path)
    conn = sqlite3.connect(
        path,
        timeout=10.0,
        check_same_thread=False,
        isolation_level=None,
    )
    try:
        conn.row_factory = sqlite3.Row
        yield conn
    finally:
        conn.close()
