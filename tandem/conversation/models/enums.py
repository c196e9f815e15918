"""Enums for the conversation domain."""

from enum import Enum


class ParticipantSlot(str, Enum):
    """One of the two presence slots of a session."""

    PARTICIPANT_1 = "participant1"
    PARTICIPANT_2 = "participant2"

    @property
    def counterpart(self) -> "ParticipantSlot":
        """The other slot of the same session."""
        if self is ParticipantSlot.PARTICIPANT_1:
            return ParticipantSlot.PARTICIPANT_2
        return ParticipantSlot.PARTICIPANT_1

    @property
    def display_name(self) -> str:
        return "Participant 1" if self is ParticipantSlot.PARTICIPANT_1 else "Participant 2"


class Sender(str, Enum):
    """Author of a transcript message."""

    PARTICIPANT_1 = "Participant 1"
    PARTICIPANT_2 = "Participant 2"
    SYSTEM = "system"

    @classmethod
    def from_slot(cls, slot: ParticipantSlot) -> "Sender":
        return cls(slot.display_name)
