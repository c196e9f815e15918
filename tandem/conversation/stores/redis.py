"""Redis implementation of ConversationStore.

Session and presence documents are Redis hashes, so HSET is the merge
update. The transcript is a list per session. Change events travel over
a pub/sub channel so every process sharing the Redis instance observes
every mutation.
"""

import asyncio
from datetime import datetime
from typing import Any

import redis.asyncio as redis
from pydantic import ValidationError

from tandem.config.models.storage import StorageConfig
from tandem.conversation.errors import ConnectionError, NotFoundError
from tandem.conversation.models import (
    Message,
    ParticipantSlot,
    PresenceRecord,
    Session,
    utc_now,
)
from tandem.conversation.store import ConversationStore
from tandem.conversation.subscription import ChangeEvent, ChangeFeed, ChangeKind
from tandem.observability.logging import get_logger

logger = get_logger(__name__)


def _encode_fields(fields: dict[str, Any]) -> dict[str, str]:
    """Encode document fields as hash values."""
    encoded: dict[str, str] = {}
    for key, value in fields.items():
        if value is None:
            continue
        if isinstance(value, bool):
            encoded[key] = "1" if value else "0"
        elif isinstance(value, datetime):
            encoded[key] = value.isoformat()
        else:
            encoded[key] = str(value)
    return encoded


class RedisConversationStore(ConversationStore):
    """Redis implementation of ConversationStore.

    Key structure:
    - {prefix}:session:{session_id} - Session hash
    - {prefix}:sessions:active - Set of non-archived session IDs
    - {prefix}:presence:{session_id}:{slot} - Presence hash
    - {prefix}:messages:{session_id} - Transcript list (JSON entries)
    - {prefix}:changes - Pub/sub channel of ChangeEvent JSON

    Call `start()` to begin relaying pub/sub events to `changes`.
    """

    def __init__(
        self,
        client: redis.Redis,
        config: StorageConfig | None = None,
    ) -> None:
        """Initialize Redis conversation store.

        Args:
            client: Redis client created with decode_responses=True
            config: Storage configuration (uses defaults if not provided)
        """
        self._client = client
        self._config = config or StorageConfig()
        self._prefix = self._config.key_prefix
        self._changes = ChangeFeed()
        self._pubsub: Any = None
        self._listener: asyncio.Task | None = None

    @property
    def changes(self) -> ChangeFeed:
        return self._changes

    @property
    def channel(self) -> str:
        return f"{self._prefix}:changes"

    def _session_key(self, session_id: str) -> str:
        return f"{self._prefix}:session:{session_id}"

    def _active_key(self) -> str:
        return f"{self._prefix}:sessions:active"

    def _presence_key(self, session_id: str, slot: ParticipantSlot) -> str:
        return f"{self._prefix}:presence:{session_id}:{slot.value}"

    def _messages_key(self, session_id: str) -> str:
        return f"{self._prefix}:messages:{session_id}"

    async def start(self) -> None:
        """Subscribe to the change channel and relay events locally."""
        if self._listener is not None:
            return
        self._pubsub = self._client.pubsub()
        await self._pubsub.subscribe(self.channel)
        self._listener = asyncio.create_task(self._listen())
        logger.info("change_listener_started", channel=self.channel)

    async def stop(self) -> None:
        """Stop relaying change events."""
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        if self._pubsub is not None:
            await self._pubsub.unsubscribe(self.channel)
            await self._pubsub.aclose()
            self._pubsub = None
        logger.info("change_listener_stopped", channel=self.channel)

    async def _listen(self) -> None:
        async for raw in self._pubsub.listen():
            if raw.get("type") != "message":
                continue
            try:
                event = ChangeEvent.model_validate_json(raw["data"])
            except ValidationError:
                logger.warning("change_event_malformed", data=raw.get("data"))
                continue
            await self._changes.publish(event)

    async def _publish(self, event: ChangeEvent) -> None:
        await self._client.publish(self.channel, event.model_dump_json())

    async def get_session(self, session_id: str) -> Session | None:
        try:
            data = await self._client.hgetall(self._session_key(session_id))
        except redis.RedisError as e:
            logger.error("redis_get_session_error", session_id=session_id, error=str(e))
            raise ConnectionError(f"Failed to get session: {e}", cause=e) from e
        return self._parse_session(session_id, data)

    def _parse_session(self, session_id: str, data: dict[str, str]) -> Session | None:
        if not data:
            return None
        try:
            return Session.model_validate({**data, "session_id": session_id})
        except ValidationError as e:
            logger.warning("session_document_malformed", session_id=session_id, error=str(e))
            return None

    async def merge_session(self, session_id: str, **fields: Any) -> Session:
        """Merge fields into the session hash, creating it when absent.

        An explicit `archived` value updates the active set inside the same
        MULTI as the hash write, so a concurrent archive and rejoin can never
        leave a live session out of the set. A write without `archived` only
        touches the set when it created the document.
        """
        key = self._session_key(session_id)
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.hsetnx(key, "created_at", utc_now().isoformat())
                pipe.hsetnx(key, "archived", "0")
                encoded = _encode_fields(fields)
                if encoded:
                    pipe.hset(key, mapping=encoded)
                if "archived" in fields:
                    if fields["archived"]:
                        pipe.srem(self._active_key(), session_id)
                    else:
                        pipe.sadd(self._active_key(), session_id)
                pipe.hgetall(key)
                results = await pipe.execute()

            session = self._parse_session(session_id, results[-1])
            if session is None:
                raise ConnectionError(f"Session {session_id} unreadable after write")

            # Losing a race with the archiver here only leaves an archived
            # id in the set, which list_active_sessions skips
            if "archived" not in fields and results[1]:
                await self._client.sadd(self._active_key(), session_id)

            await self._publish(ChangeEvent(kind=ChangeKind.SESSION, session_id=session_id))
        except redis.RedisError as e:
            logger.error("redis_merge_session_error", session_id=session_id, error=str(e))
            raise ConnectionError(f"Failed to merge session: {e}", cause=e) from e

        logger.debug("session_merged", session_id=session_id, fields=sorted(fields))
        return session

    async def update_session(self, session_id: str, **fields: Any) -> Session:
        try:
            exists = await self._client.exists(self._session_key(session_id))
        except redis.RedisError as e:
            raise ConnectionError(f"Failed to check session: {e}", cause=e) from e
        if not exists:
            raise NotFoundError(f"Session {session_id} not found")
        return await self.merge_session(session_id, **fields)

    async def list_active_sessions(self) -> list[Session]:
        try:
            session_ids = sorted(await self._client.smembers(self._active_key()))
            async with self._client.pipeline(transaction=False) as pipe:
                for session_id in session_ids:
                    pipe.hgetall(self._session_key(session_id))
                documents = await pipe.execute()
        except redis.RedisError as e:
            logger.error("redis_list_sessions_error", error=str(e))
            raise ConnectionError(f"Failed to list sessions: {e}", cause=e) from e

        sessions = []
        for session_id, data in zip(session_ids, documents, strict=True):
            session = self._parse_session(session_id, data)
            if session is not None and not session.archived:
                sessions.append(session)
        sessions.sort(key=lambda s: s.created_at)
        return sessions

    async def get_presence(
        self, session_id: str, slot: ParticipantSlot
    ) -> PresenceRecord | None:
        try:
            data = await self._client.hgetall(self._presence_key(session_id, slot))
        except redis.RedisError as e:
            logger.error(
                "redis_get_presence_error",
                session_id=session_id,
                slot=slot.value,
                error=str(e),
            )
            raise ConnectionError(f"Failed to get presence: {e}", cause=e) from e
        return self._parse_presence(session_id, slot, data)

    def _parse_presence(
        self, session_id: str, slot: ParticipantSlot, data: dict[str, str]
    ) -> PresenceRecord | None:
        if not data:
            return None
        try:
            return PresenceRecord.model_validate(data)
        except ValidationError as e:
            # A malformed record is the same as no record: offline
            logger.warning(
                "presence_document_malformed",
                session_id=session_id,
                slot=slot.value,
                error=str(e),
            )
            return None

    async def merge_presence(
        self, session_id: str, slot: ParticipantSlot, **fields: Any
    ) -> PresenceRecord:
        key = self._presence_key(session_id, slot)
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                encoded = _encode_fields(fields)
                if encoded:
                    pipe.hset(key, mapping=encoded)
                pipe.hgetall(key)
                results = await pipe.execute()
            await self._publish(
                ChangeEvent(kind=ChangeKind.PRESENCE, session_id=session_id, slot=slot)
            )
        except redis.RedisError as e:
            logger.error(
                "redis_merge_presence_error",
                session_id=session_id,
                slot=slot.value,
                error=str(e),
            )
            raise ConnectionError(f"Failed to merge presence: {e}", cause=e) from e

        return self._parse_presence(session_id, slot, results[-1]) or PresenceRecord()

    async def append_message(self, session_id: str, message: Message) -> None:
        try:
            await self._client.rpush(self._messages_key(session_id), message.model_dump_json())
            await self._publish(ChangeEvent(kind=ChangeKind.MESSAGE, session_id=session_id))
        except redis.RedisError as e:
            logger.error("redis_append_message_error", session_id=session_id, error=str(e))
            raise ConnectionError(f"Failed to append message: {e}", cause=e) from e

    async def list_messages(self, session_id: str) -> list[Message]:
        try:
            entries = await self._client.lrange(self._messages_key(session_id), 0, -1)
        except redis.RedisError as e:
            logger.error("redis_list_messages_error", session_id=session_id, error=str(e))
            raise ConnectionError(f"Failed to list messages: {e}", cause=e) from e

        messages = []
        for entry in entries:
            try:
                messages.append(Message.model_validate_json(entry))
            except ValidationError:
                logger.warning("message_entry_malformed", session_id=session_id)
        return sorted(messages, key=lambda m: m.timestamp)
