"""API exception hierarchy for consistent error handling.

All API exceptions inherit from TandemAPIError, which provides
status_code and error_code attributes used by the global exception
handler to generate consistent error responses.
"""

from tandem.api.models.errors import ErrorCode


class TandemAPIError(Exception):
    """Base exception for all API errors."""

    status_code: int = 500
    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidRequestError(TandemAPIError):
    """Raised when request content is rejected."""

    status_code = 400
    error_code = ErrorCode.INVALID_REQUEST


class SessionNotFoundError(TandemAPIError):
    """Raised when session_id doesn't exist."""

    status_code = 404
    error_code = ErrorCode.SESSION_NOT_FOUND


class SessionArchivedError(TandemAPIError):
    """Raised when writing to an archived session without rejoining."""

    status_code = 409
    error_code = ErrorCode.SESSION_ARCHIVED


class StoreUnavailableError(TandemAPIError):
    """Raised when the conversation store cannot be reached."""

    status_code = 503
    error_code = ErrorCode.STORE_UNAVAILABLE
