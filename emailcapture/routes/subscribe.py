from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError as BodyValidationError

from ..domain.errors import EMAIL_REQUIRED, InternalError, SubscriptionError, ValidationError
from ..services.subscription_svc import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter()

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class SubscribeBody(BaseModel):
    # left untyped: a non-string email is a format error, not a 422
    email: Any = None


class SubscribeResponse(BaseModel):
    success: bool
    message: str


def get_service(request: Request) -> SubscriptionService:
    return request.app.state.service


async def read_body(request: Request) -> SubscribeBody:
    """JSON or form-encoded body; raises pydantic's ValidationError when unreadable."""
    ctype = (request.headers.get("content-type") or "").split(";")[0].strip().lower()
    if ctype == FORM_CONTENT_TYPE:
        form = await request.form()
        return SubscribeBody(email=form.get("email"))
    raw = await request.body()
    if not raw.strip():
        return SubscribeBody()
    return SubscribeBody.model_validate_json(raw)


def _error_response(e: SubscriptionError) -> JSONResponse:
    return JSONResponse(status_code=e.status_code, content=e.to_body())


@router.post(
    "/api/subscribe",
    response_model=SubscribeResponse,
    responses={400: {"model": SubscribeResponse}, 500: {"model": SubscribeResponse}, 503: {"model": SubscribeResponse}},
)
async def api_subscribe(request: Request):
    try:
        body = await read_body(request)
    except BodyValidationError:
        return _error_response(ValidationError(EMAIL_REQUIRED))
    except Exception:
        logger.exception("could not read subscribe request body")
        return _error_response(InternalError("unreadable body"))

    try:
        result = await run_in_threadpool(get_service(request).subscribe, body.email)
        return result.to_body()
    except SubscriptionError as e:
        return _error_response(e)
