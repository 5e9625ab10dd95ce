"""Client-facing error taxonomy.

Every error carries a stable machine-readable ``kind`` and a human message.
The FastAPI handlers in ``moddesk.__init__`` render them as
``{"status": "error", "kind": ..., "message": ...}`` plus any details.
"""

from typing import Any, Optional


class ModerationError(Exception):
    """Base class for all errors surfaced to API clients."""

    kind = "error"
    status_code = 400

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert the error to the response envelope."""
        body: dict[str, Any] = {
            "status": "error",
            "kind": self.kind,
            "message": self.message,
        }
        body.update(self.details)
        return body

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class MissingParameterError(ModerationError):
    """A required request parameter was absent or blank."""

    kind = "missing_parameter"


class InvalidTypeError(ModerationError):
    """The search type tag is not one of the recognized modes."""

    kind = "invalid_type"


class InvalidStatusError(ModerationError):
    """A status value is outside the closed post status set."""

    kind = "invalid_status"


class InvalidDateError(ModerationError):
    """A date value could not be parsed as a calendar date."""

    kind = "invalid_date"


class NotFoundError(ModerationError):
    """An id did not resolve to a stored entity."""

    kind = "not_found"
    status_code = 404


class ConflictError(ModerationError):
    """A write would break category hierarchy integrity."""

    kind = "conflict"
    status_code = 409


class ValidationError(ModerationError):
    """One or more request fields failed their rule set.

    Args:
        errors: Every failing field, in rule order.
    """

    kind = "validation"

    def __init__(self, errors: list, message: str = "Validation failed") -> None:
        super().__init__(message, {"errors": [e.to_dict() for e in errors]})
        self.errors = errors


class RateLimitExceeded(ModerationError):
    """The client used up its budget for a route class."""

    kind = "rate_limited"
    status_code = 429

    def __init__(self, message: str, route_class: str, retry_after: int) -> None:
        super().__init__(message, {"route_class": route_class, "retry_after": retry_after})
        self.route_class = route_class
        self.retry_after = retry_after


class UnsupportedFormatError(ModerationError):
    """A report format that passed validation has no renderer."""

    kind = "unsupported_format"
    status_code = 501
