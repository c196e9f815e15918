"""Error response models for consistent API error handling."""

from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    INVALID_REQUEST = "INVALID_REQUEST"
    """Request validation failed (malformed JSON, missing fields, blank content)."""

    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    """The specified session_id does not exist."""

    SESSION_ARCHIVED = "SESSION_ARCHIVED"
    """The session is archived and must be rejoined first."""

    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    """The conversation store could not be reached."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    """An unexpected internal error occurred."""


class ErrorDetail(BaseModel):
    """Field-level error information for validation failures."""

    field: str | None = None
    message: str


class ErrorBody(BaseModel):
    code: ErrorCode
    message: str
    details: list[ErrorDetail] | None = None


class ErrorResponse(BaseModel):
    """Standard error response format for all API errors.

    Example:
        {
            "error": {
                "code": "SESSION_NOT_FOUND",
                "message": "Session xyz not found"
            }
        }
    """

    error: ErrorBody
