from fastapi import APIRouter, Request

from ..services.connection_guard import ConnectionGuard

router = APIRouter()

APP_NAME = "emailcapture-api"
APP_VERSION = "0.1.0"


@router.get("/health")
def health(request: Request):
    guard: ConnectionGuard = request.app.state.guard
    return {"status": "ok" if guard.is_ready() else "degraded", "store": guard.state.value}


@router.get("/version")
def version():
    return {"app": APP_NAME, "version": APP_VERSION}
