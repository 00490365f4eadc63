"""
FastAPI app entry point wiring store -> connection guard -> subscription service.
Keep as `uvicorn emailcapture.api:app`.
"""
from __future__ import annotations

import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .config import Settings, load_settings
from .logs import setup_logging
from .providers.factory import build_store
from .providers.store_port import SubscriberStorePort
from .routes import base as base_routes
from .routes import subscribe as subscribe_routes
from .services.connection_guard import ConnectionGuard
from .services.subscription_svc import SubscriptionService

logger = logging.getLogger(__name__)


def build_guard(store: SubscriberStorePort, settings: Settings) -> ConnectionGuard:
    return ConnectionGuard(
        store,
        max_attempts=settings.connect_max_attempts,
        base_delay=settings.connect_base_delay_ms / 1000.0,
        max_delay=settings.connect_max_delay_ms / 1000.0,
        reconnect_delay=settings.reconnect_delay_ms / 1000.0,
    )


def create_app(
    settings: Settings | None = None,
    store: SubscriberStorePort | None = None,
    guard: ConnectionGuard | None = None,
) -> FastAPI:
    settings = settings or load_settings()
    if guard is not None:
        store = guard.store
    store = store or build_store(settings)
    guard = guard or build_guard(store, settings)

    app = FastAPI(title=base_routes.APP_NAME, version=base_routes.APP_VERSION)
    app.state.settings = settings
    app.state.guard = guard
    app.state.service = SubscriptionService(store, guard)

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.on_event("startup")
    def on_startup():
        setup_logging(settings.log_level)
        # not fatal: requests retry through ensure_ready()
        try:
            connected = guard.connect()
        except Exception:
            logger.exception("initial store connection raised (backend=%s)", settings.store_backend)
            return
        if not connected:
            logger.error("initial store connection failed (backend=%s)", settings.store_backend)

    @app.on_event("shutdown")
    def on_shutdown():
        guard.close()

    app.include_router(base_routes.router)
    app.include_router(subscribe_routes.router)

    # static form last so API routes take precedence
    if settings.public_dir and os.path.isdir(settings.public_dir):
        app.mount("/", StaticFiles(directory=settings.public_dir, html=True), name="public")

    return app


app = create_app()
