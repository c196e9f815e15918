"""API request and response models."""

from tandem.api.models.errors import ErrorBody, ErrorCode, ErrorDetail, ErrorResponse
from tandem.api.models.health import ComponentHealth, HealthResponse
from tandem.api.models.sessions import (
    AcceptedResponse,
    ActiveSessionResponse,
    MessageResponse,
    PromptResponse,
    SendMessageRequest,
    SessionResponse,
    SlotRequest,
    StartSessionRequest,
)

__all__ = [
    "AcceptedResponse",
    "ActiveSessionResponse",
    "ComponentHealth",
    "ErrorBody",
    "ErrorCode",
    "ErrorDetail",
    "ErrorResponse",
    "HealthResponse",
    "MessageResponse",
    "PromptResponse",
    "SendMessageRequest",
    "SessionResponse",
    "SlotRequest",
    "StartSessionRequest",
]
