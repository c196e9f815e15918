"""Request and response models for session endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field

from tandem.conversation.models import Message, ParticipantSlot, Sender, Session
from tandem.presence import ActiveSession, Liveness


class SlotRequest(BaseModel):
    """Body naming the participant slot a call acts for."""

    slot: ParticipantSlot = Field(..., description="participant1 or participant2")


class StartSessionRequest(BaseModel):
    slot: ParticipantSlot = Field(
        default=ParticipantSlot.PARTICIPANT_1, description="Slot of the starting participant"
    )


class SendMessageRequest(BaseModel):
    slot: ParticipantSlot = Field(..., description="Author slot")
    content: str = Field(..., description="Message text")


class SessionResponse(BaseModel):
    session_id: str
    archived: bool
    participant1_notified_left: bool
    participant2_notified_left: bool
    created_at: datetime

    @classmethod
    def from_session(cls, session: Session) -> "SessionResponse":
        return cls(**session.model_dump())


class ActiveSessionResponse(BaseModel):
    """Oversight row: one active session with per-slot liveness."""

    session_id: str
    participant1_online: bool
    participant2_online: bool
    participant1: Liveness
    participant2: Liveness

    @classmethod
    def from_view(cls, entry: ActiveSession) -> "ActiveSessionResponse":
        return cls(
            session_id=entry.session_id,
            participant1_online=entry.participant1_online,
            participant2_online=entry.participant2_online,
            participant1=entry.participant1,
            participant2=entry.participant2,
        )


class MessageResponse(BaseModel):
    sender: Sender
    content: str
    timestamp: datetime
    system: bool = False

    @classmethod
    def from_message(cls, message: Message) -> "MessageResponse":
        return cls(
            sender=message.sender,
            content=message.content,
            timestamp=message.timestamp,
            system=message.is_system,
        )


class PromptResponse(BaseModel):
    """Current pacing prompt, null when none is visible."""

    session_id: str
    prompt: str | None = None


class AcceptedResponse(BaseModel):
    status: str = "accepted"
