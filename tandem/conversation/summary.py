"""Read-side views over a transcript."""

from collections.abc import Iterable
from datetime import datetime

from pydantic import BaseModel, Field

from tandem.conversation.models import Message, Sender, Session


class InteractionSummary(BaseModel):
    """Aggregate statistics of one session's transcript."""

    session_id: str = Field(..., description="Session identifier")
    archived: bool = Field(..., description="Whether the session is archived")
    total_messages: int = Field(default=0, description="All messages, system included")
    participant1_messages: int = Field(default=0)
    participant2_messages: int = Field(default=0)
    system_messages: int = Field(default=0)
    started_at: datetime = Field(..., description="Session creation time")
    ended_at: datetime | None = Field(default=None, description="Last message time")
    duration_seconds: int = Field(default=0, description="Whole seconds from start to last message")


def summarize(session: Session, messages: list[Message]) -> InteractionSummary:
    counts = {sender: 0 for sender in Sender}
    for message in messages:
        counts[message.sender] += 1

    ended_at = max((m.timestamp for m in messages), default=None)
    duration = 0
    if ended_at is not None:
        duration = max(0, int((ended_at - session.created_at).total_seconds()))

    return InteractionSummary(
        session_id=session.session_id,
        archived=session.archived,
        total_messages=len(messages),
        participant1_messages=counts[Sender.PARTICIPANT_1],
        participant2_messages=counts[Sender.PARTICIPANT_2],
        system_messages=counts[Sender.SYSTEM],
        started_at=session.created_at,
        ended_at=ended_at,
        duration_seconds=duration,
    )


def collapse_duplicate_events(messages: Iterable[Message]) -> list[Message]:
    """Drop system messages whose event key already appeared earlier.

    The stored log is append-only; this only affects what is displayed.
    Messages without an event key are always kept.
    """
    seen: set[str] = set()
    collapsed: list[Message] = []
    for message in messages:
        if message.event_key is not None:
            if message.event_key in seen:
                continue
            seen.add(message.event_key)
        collapsed.append(message)
    return collapsed
