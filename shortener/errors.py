"""Error taxonomy shared by the core services and the HTTP layer.

Every error carries the HTTP status it maps to and a client-safe message.
Internal and provider failures never expose internal detail to callers; the
original exception is kept as ``__cause__`` for logging.
"""

from http import HTTPStatus

__all__ = [
    "ShortenerError",
    "ValidationError",
    "Unauthorized",
    "Forbidden",
    "NotFound",
    "Conflict",
    "ProviderError",
    "InternalError",
]


class ShortenerError(Exception):
    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, errors: dict[str, str] | None = None) -> None:
        self.message = message or self.default_message
        self.errors = errors or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body: dict = {"message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationError(ShortenerError):
    status_code = HTTPStatus.BAD_REQUEST
    default_message = "Validation failed"


class Unauthorized(ShortenerError):
    status_code = HTTPStatus.UNAUTHORIZED
    default_message = "Authentication required"


class Forbidden(ShortenerError):
    status_code = HTTPStatus.FORBIDDEN
    default_message = "Forbidden"


class NotFound(ShortenerError):
    status_code = HTTPStatus.NOT_FOUND
    default_message = "Not found"


class Conflict(ShortenerError):
    status_code = HTTPStatus.CONFLICT
    default_message = "Validation failed"


class ProviderError(ShortenerError):
    """The identity provider rejected or failed a call.

    ``status_code`` is the provider's own status when it returned a structured
    API error, so callers see e.g. 404 for an unknown user or 429 when rate
    limited. The message stays generic.
    """

    status_code = HTTPStatus.BAD_GATEWAY
    default_message = "Identity provider request failed"

    def __init__(self, status_code: int | None = None, message: str | None = None) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class InternalError(ShortenerError):
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    default_message = "Internal server error"
