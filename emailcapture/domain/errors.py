from __future__ import annotations

SUCCESS_MESSAGE = "Thank you for subscribing! 🎉"

EMAIL_REQUIRED = "Email is required"
EMAIL_INVALID = "Invalid email format"


class SubscriptionError(Exception):
    """Base for every failure outcome of a subscription request.

    ``detail`` is for logs; ``public_message`` is what the caller sees.
    """

    kind = "error"
    status_code = 500
    public_message = "An error occurred while processing your request. Please try again."

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.public_message
        super().__init__(self.detail)

    def to_body(self) -> dict:
        return {"success": False, "message": self.public_message}


class ValidationError(SubscriptionError):
    kind = "validation"
    status_code = 400

    @property
    def public_message(self) -> str:  # type: ignore[override]
        if getattr(self, "detail", None) == EMAIL_REQUIRED:
            return "Email is required."
        return "Please enter a valid email address."


class Conflict(SubscriptionError):
    kind = "conflict"
    status_code = 400
    public_message = "This email is already subscribed!"


class ServiceUnavailable(SubscriptionError):
    kind = "unavailable"
    status_code = 503
    public_message = "Service temporarily unavailable. Please try again in a moment."


class InternalError(SubscriptionError):
    kind = "internal"
    status_code = 500
