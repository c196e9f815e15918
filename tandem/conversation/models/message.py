"""Transcript messages."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from tandem.conversation.models.enums import Sender
from tandem.conversation.models.session import utc_now


class Message(BaseModel):
    """An immutable entry of a session transcript."""

    model_config = ConfigDict(frozen=True)

    sender: Sender = Field(..., description="Message author")
    content: str = Field(..., description="Message text")
    timestamp: datetime = Field(default_factory=utc_now, description="Append time")
    event_key: str | None = Field(
        default=None, description="Idempotency key of a system event"
    )

    @property
    def is_system(self) -> bool:
        return self.sender is Sender.SYSTEM
