"""ConversationStore abstract interface."""

from abc import ABC, abstractmethod
from typing import Any

from tandem.conversation.models import Message, ParticipantSlot, PresenceRecord, Session
from tandem.conversation.subscription import ChangeFeed


class ConversationStore(ABC):
    """Abstract interface over the shared, eventually-consistent document store.

    Session and presence writes are merge updates: fields not named in a
    call are left untouched. Messages are append-only. Every mutation is
    published on `changes`.
    """

    @property
    @abstractmethod
    def changes(self) -> ChangeFeed:
        """Feed of change events for all mutations."""
        pass

    @abstractmethod
    async def get_session(self, session_id: str) -> Session | None:
        """Get a session by ID."""
        pass

    @abstractmethod
    async def merge_session(self, session_id: str, **fields: Any) -> Session:
        """Merge fields into a session, creating it when absent."""
        pass

    @abstractmethod
    async def update_session(self, session_id: str, **fields: Any) -> Session:
        """Merge fields into an existing session.

        Raises:
            NotFoundError: If the session does not exist
        """
        pass

    @abstractmethod
    async def list_active_sessions(self) -> list[Session]:
        """List sessions that are not archived."""
        pass

    @abstractmethod
    async def get_presence(
        self, session_id: str, slot: ParticipantSlot
    ) -> PresenceRecord | None:
        """Get the presence record of a slot, None when never written."""
        pass

    @abstractmethod
    async def merge_presence(
        self, session_id: str, slot: ParticipantSlot, **fields: Any
    ) -> PresenceRecord:
        """Merge fields into a presence record, creating it when absent."""
        pass

    @abstractmethod
    async def append_message(self, session_id: str, message: Message) -> None:
        """Append a message to the session transcript."""
        pass

    @abstractmethod
    async def list_messages(self, session_id: str) -> list[Message]:
        """Get the transcript ordered by timestamp."""
        pass
