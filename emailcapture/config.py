"""
Runtime settings.

Sources, highest priority first: process environment (optionally seeded from a
dotenv file), config.yaml, built-in defaults.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import yaml
from dotenv import load_dotenv

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

DEFAULT_MONGODB_URI = "mongodb://localhost:27017/emaildb"


def read_config_yaml(path: str | None = None) -> dict:
    cfg_path = path or os.environ.get("EMAILCAPTURE_CONFIG") or os.path.join(PROJECT_ROOT, "config.yaml")
    if not os.path.exists(cfg_path):
        return {}
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        return {}
    return cfg if isinstance(cfg, dict) else {}


@dataclass
class Settings:
    store_backend: str = "mongo"
    mongodb_uri: str = DEFAULT_MONGODB_URI
    mongodb_db: Optional[str] = None
    mongodb_collection: str = "emails"
    mongodb_selection_timeout_ms: int = 5000
    db_path: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = 3000
    connect_max_attempts: int = 5
    connect_base_delay_ms: int = 100
    connect_max_delay_ms: int = 2000
    reconnect_delay_ms: int = 5000
    cors_origins: list[str] = field(default_factory=list)
    public_dir: Optional[str] = None
    log_level: str = "INFO"


def _pick(env: Mapping[str, str], cfg: dict, env_key: str, default: Any = None) -> Any:
    v = env.get(env_key)
    if v is not None and str(v).strip() != "":
        return str(v).strip()
    v = cfg.get(env_key.lower())
    if v is not None and str(v).strip() != "":
        return v
    return default


def _as_int(name: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def _as_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    return [p.strip() for p in str(value).split(",") if p.strip()]


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from the environment and config.yaml.

    EMAILCAPTURE_ENV_FILE names the dotenv file to load (default ``.env``).
    Values already present in the environment are never overridden by it.
    Passing ``environ`` skips the dotenv step and reads only that mapping.
    """
    if environ is None:
        load_dotenv(os.environ.get("EMAILCAPTURE_ENV_FILE", ".env"), override=False)
        environ = os.environ
    cfg = read_config_yaml(environ.get("EMAILCAPTURE_CONFIG"))
    d = Settings()

    def ival(key: str, default: int) -> int:
        return _as_int(key, _pick(environ, cfg, key, default))

    return Settings(
        store_backend=str(_pick(environ, cfg, "STORE_BACKEND", d.store_backend)).lower(),
        mongodb_uri=str(_pick(environ, cfg, "MONGODB_URI", d.mongodb_uri)),
        mongodb_db=_pick(environ, cfg, "MONGODB_DB"),
        mongodb_collection=str(_pick(environ, cfg, "MONGODB_COLLECTION", d.mongodb_collection)),
        mongodb_selection_timeout_ms=ival("MONGODB_SELECTION_TIMEOUT_MS", d.mongodb_selection_timeout_ms),
        db_path=_pick(environ, cfg, "SUBSCRIBE_DB_PATH", cfg.get("db_path")),
        host=str(_pick(environ, cfg, "HOST", d.host)),
        port=ival("PORT", d.port),
        connect_max_attempts=ival("CONNECT_MAX_ATTEMPTS", d.connect_max_attempts),
        connect_base_delay_ms=ival("CONNECT_BASE_DELAY_MS", d.connect_base_delay_ms),
        connect_max_delay_ms=ival("CONNECT_MAX_DELAY_MS", d.connect_max_delay_ms),
        reconnect_delay_ms=ival("RECONNECT_DELAY_MS", d.reconnect_delay_ms),
        cors_origins=_as_list(_pick(environ, cfg, "CORS_ORIGINS")),
        public_dir=_pick(environ, cfg, "PUBLIC_DIR"),
        log_level=str(_pick(environ, cfg, "LOG_LEVEL", d.log_level)).upper(),
    )
