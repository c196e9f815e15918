"""In-memory implementation of ConversationStore."""

from typing import Any

from tandem.conversation.errors import NotFoundError
from tandem.conversation.models import Message, ParticipantSlot, PresenceRecord, Session
from tandem.conversation.store import ConversationStore
from tandem.conversation.subscription import ChangeEvent, ChangeFeed, ChangeKind


class InMemoryConversationStore(ConversationStore):
    """In-memory implementation of ConversationStore for testing and development.

    Change events are delivered inline, after the mutation is applied.
    Not suitable for multi-process deployments.
    """

    def __init__(self) -> None:
        """Initialize empty storage."""
        self._sessions: dict[str, Session] = {}
        self._presence: dict[tuple[str, ParticipantSlot], PresenceRecord] = {}
        self._messages: dict[str, list[Message]] = {}
        self._changes = ChangeFeed()

    @property
    def changes(self) -> ChangeFeed:
        return self._changes

    async def get_session(self, session_id: str) -> Session | None:
        session = self._sessions.get(session_id)
        return session.model_copy() if session else None

    async def merge_session(self, session_id: str, **fields: Any) -> Session:
        current = self._sessions.get(session_id) or Session(session_id=session_id)
        merged = Session.model_validate({**current.model_dump(), **fields})
        self._sessions[session_id] = merged
        await self._changes.publish(
            ChangeEvent(kind=ChangeKind.SESSION, session_id=session_id)
        )
        return merged.model_copy()

    async def update_session(self, session_id: str, **fields: Any) -> Session:
        if session_id not in self._sessions:
            raise NotFoundError(f"Session {session_id} not found")
        return await self.merge_session(session_id, **fields)

    async def list_active_sessions(self) -> list[Session]:
        results = [s.model_copy() for s in self._sessions.values() if not s.archived]
        results.sort(key=lambda s: s.created_at)
        return results

    async def get_presence(
        self, session_id: str, slot: ParticipantSlot
    ) -> PresenceRecord | None:
        record = self._presence.get((session_id, slot))
        return record.model_copy() if record else None

    async def merge_presence(
        self, session_id: str, slot: ParticipantSlot, **fields: Any
    ) -> PresenceRecord:
        current = self._presence.get((session_id, slot)) or PresenceRecord()
        merged = PresenceRecord.model_validate({**current.model_dump(), **fields})
        self._presence[(session_id, slot)] = merged
        await self._changes.publish(
            ChangeEvent(kind=ChangeKind.PRESENCE, session_id=session_id, slot=slot)
        )
        return merged.model_copy()

    async def append_message(self, session_id: str, message: Message) -> None:
        self._messages.setdefault(session_id, []).append(message)
        await self._changes.publish(
            ChangeEvent(kind=ChangeKind.MESSAGE, session_id=session_id)
        )

    async def list_messages(self, session_id: str) -> list[Message]:
        # sorted() is stable, so equal timestamps keep append order
        return sorted(self._messages.get(session_id, []), key=lambda m: m.timestamp)
