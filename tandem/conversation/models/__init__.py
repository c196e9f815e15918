"""Conversation domain models.

- Session: the shared conversation document
- PresenceRecord: per-slot liveness document
- Message: append-only transcript entry
"""

from tandem.conversation.models.enums import ParticipantSlot, Sender
from tandem.conversation.models.message import Message
from tandem.conversation.models.session import PresenceRecord, Session, utc_now

__all__ = [
    "Message",
    "ParticipantSlot",
    "PresenceRecord",
    "Sender",
    "Session",
    "utc_now",
]
