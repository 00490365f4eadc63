"""
Connection smoke test for the configured subscriber store.

Connects, lists the collections (tables for SQLite) and disconnects.

Usage:
  python -m emailcapture.scripts.check_connection [--env-file config.env]
"""
from __future__ import annotations

import argparse
import os
import sys

from emailcapture.config import load_settings
from emailcapture.providers.factory import build_store
from emailcapture.providers.store_port import StoreUnavailable


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--env-file", help="dotenv file to load before reading settings")
    args = ap.parse_args(argv)
    if args.env_file:
        os.environ["EMAILCAPTURE_ENV_FILE"] = args.env_file

    settings = load_settings()
    store = build_store(settings)
    print(f"Testing {settings.store_backend} connection...")
    try:
        store.connect()
        print("Successfully connected!")
        print("Available collections:", store.list_collections())
        return 0
    except StoreUnavailable as e:
        print(f"Connection error: {e}", file=sys.stderr)
        return 1
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
