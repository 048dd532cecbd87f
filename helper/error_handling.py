# helper/error_handling.py
from typing import Any, Dict, Optional

# Human-readable fallbacks per status code
DEFAULT_MESSAGES = {
    400: "Invalid request sent to the server.",
    401: "You are not authorized to perform this action.",
    403: "Access denied - please contact admin.",
    404: "Requested resource not found.",
    500: "Server error - please try again later.",
}


class AppError(Exception):
    """Base of the error taxonomy; rendered as JSON {msg, ...} by main.py."""

    status_code = 500

    def __init__(self, message: Optional[str] = None, **extra: Any) -> None:
        self.message = message or DEFAULT_MESSAGES.get(self.status_code, "Unexpected error")
        self.extra = extra
        super().__init__(self.message)

    def payload(self) -> Dict[str, Any]:
        return {"msg": self.message, **self.extra}


class NotFound(AppError):
    status_code = 404


class InsufficientCredits(AppError):
    status_code = 403

    def __init__(self, remaining: int = 0) -> None:
        super().__init__("Insufficient credits", credits=remaining)
        self.remaining = remaining


class GenerationFailure(AppError):
    """Upstream provider error or unusable reply. `cause` is safe to show clients."""

    status_code = 500

    def __init__(self, cause: str) -> None:
        super().__init__("Chat error", error=cause)
        self.cause = cause


class ValidationFailure(AppError):
    status_code = 400


class StorageFailure(AppError):
    status_code = 500

    def __init__(self, message: str = "Storage error - please try again later.") -> None:
        super().__init__(message)


class AuthFailure(AppError):
    status_code = 401
