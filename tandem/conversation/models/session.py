"""Session and presence documents."""

from datetime import UTC, datetime
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from tandem.conversation.models.enums import ParticipantSlot


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


class Session(BaseModel):
    """Shared conversation document.

    Never deleted, only archived. Mutated concurrently by both
    participants and the oversight role through merge updates.
    """

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    session_id: str = Field(
        default_factory=lambda: str(uuid4()), description="Opaque unique token"
    )
    archived: bool = Field(default=False, description="Soft-deleted by the archiver")
    participant1_notified_left: bool = Field(
        default=False, description="A leave of participant 1 has been announced"
    )
    participant2_notified_left: bool = Field(
        default=False, description="A leave of participant 2 has been announced"
    )
    created_at: datetime = Field(default_factory=utc_now, description="Creation time")

    @staticmethod
    def notified_field(slot: ParticipantSlot) -> str:
        """Name of the left-notified flag for a slot."""
        return f"{slot.value}_notified_left"

    def notified_left(self, slot: ParticipantSlot) -> bool:
        return bool(getattr(self, self.notified_field(slot)))


class PresenceRecord(BaseModel):
    """Presence of one participant slot in one session.

    Written only by the client that owns the slot. `heartbeat` is epoch
    milliseconds and never decreases for a given writer. `epoch` counts
    fresh joins and identifies which online period a leave belongs to.
    """

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    online: bool = Field(default=False, description="Self-declared online flag")
    last_seen: datetime | None = Field(default=None, description="Last assertion time")
    heartbeat: int | None = Field(default=None, description="Last heartbeat, epoch ms")
    epoch: int = Field(default=0, ge=0, description="Join counter for this slot")
