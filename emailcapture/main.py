"""
Run the API server.

Usage:
  python -m emailcapture.main [--host 0.0.0.0] [--port 3000] [--reload]
"""
from __future__ import annotations

import argparse

import uvicorn

from .config import load_settings


def main(argv: list[str] | None = None):
    settings = load_settings()
    ap = argparse.ArgumentParser(description="email subscription capture service")
    ap.add_argument("--host", default=settings.host)
    ap.add_argument("--port", type=int, default=settings.port)
    ap.add_argument("--reload", action="store_true")
    args = ap.parse_args(argv)

    print(f"Server is running on port {args.port}")
    uvicorn.run(
        "emailcapture.api:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
