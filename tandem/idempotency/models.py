"""Idempotency keys for system events.

A join or leave announcement is identified by the session, the slot, the
kind of transition and the presence epoch it belongs to. Every observer
of the same transition derives the same key.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from tandem.conversation.models import ParticipantSlot


class EventKind(str, Enum):
    """Presence transition being announced."""

    JOINED = "joined"
    LEFT = "left"


class EventKey(BaseModel):
    """Deterministic identity of one announcement."""

    model_config = ConfigDict(frozen=True)

    session_id: str = Field(..., description="Session the event belongs to")
    slot: ParticipantSlot = Field(..., description="Slot whose presence changed")
    kind: EventKind = Field(..., description="Transition kind")
    epoch: int = Field(..., ge=0, description="Presence epoch of the transition")

    def render(self) -> str:
        """Format: {session_id}:{slot}:{kind}:{epoch}"""
        return f"{self.session_id}:{self.slot.value}:{self.kind.value}:{self.epoch}"

    def __str__(self) -> str:
        return self.render()
