from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from ..domain.email_rules import validate_email
from ..domain.errors import (
    SUCCESS_MESSAGE,
    Conflict,
    InternalError,
    ServiceUnavailable,
    SubscriptionError,
    ValidationError,
)
from ..logs import LogContext
from ..providers.store_port import DuplicateEmail, StoreUnavailable, SubscriberStorePort
from .connection_guard import ConnectionGuard

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SubscriptionResult:
    email: str
    success: bool = True
    message: str = SUCCESS_MESSAGE
    status_code: int = 200

    def to_body(self) -> dict:
        return {"success": self.success, "message": self.message}


class SubscriptionService:
    """Validate, normalize, dedupe and store one subscription request.

    The ``exists`` pre-check only produces the friendly duplicate message in
    the common case. Two concurrent requests can both pass it; the store's
    unique constraint on email then rejects the second insert, and that
    rejection maps to the same Conflict. Do not drop the constraint.
    """

    def __init__(
        self,
        store: SubscriberStorePort,
        guard: ConnectionGuard,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.guard = guard
        self.clock = clock

    def subscribe(self, raw_email: Any) -> SubscriptionResult:
        log = LogContext("SUBSCRIBE")
        try:
            result = self._subscribe(raw_email, log)
        except ValidationError as e:
            log.write("INVALID", e.detail, level=logging.DEBUG)
            raise
        except Conflict as e:
            log.write("CONFLICT", e.detail)
            raise
        except ServiceUnavailable as e:
            log.write("UNAVAILABLE", e.detail, level=logging.WARNING)
            raise
        except SubscriptionError as e:
            log.write("ERROR", e.detail, level=logging.ERROR)
            raise
        except Exception as e:
            logger.exception("subscription failed")
            log.write("ERROR", repr(e), level=logging.ERROR)
            raise InternalError(repr(e)) from e
        log.write("OK")
        return result

    def _subscribe(self, raw_email: Any, log: LogContext) -> SubscriptionResult:
        email = validate_email(raw_email)
        log.set_entity("subscriber", email)

        if not self.guard.ensure_ready():
            raise ServiceUnavailable(f"store not ready ({self.guard.state.value})")

        try:
            if self.store.exists(email):
                raise Conflict(f"duplicate (pre-check): {email}")
            subscribed_at = self.clock()
            try:
                self.store.insert(email, subscribed_at)
            except DuplicateEmail as e:
                raise Conflict(f"duplicate (unique constraint): {email}") from e
        except StoreUnavailable as e:
            self.guard.on_disconnect()
            raise ServiceUnavailable(str(e)) from e

        logger.info("New email saved: %s", email)
        log.set_after({"email": email, "subscribedAt": subscribed_at.isoformat()})
        return SubscriptionResult(email=email)
