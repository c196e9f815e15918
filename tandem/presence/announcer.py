"""Append join/leave system messages at most once per EventKey."""

from tandem.conversation.models import Message, Sender
from tandem.conversation.store import ConversationStore
from tandem.idempotency import EventKey, EventLedger
from tandem.observability.logging import get_logger
from tandem.observability.metrics import DUPLICATE_EVENTS_SUPPRESSED, SYSTEM_EVENTS

logger = get_logger(__name__)


def event_content(key: EventKey) -> str:
    """Transcript text of an announcement, e.g. "Participant 2 has left"."""
    return f"{key.slot.display_name} has {key.kind.value}"


class SystemAnnouncer:
    """Claims an event key, then appends the matching system message.

    Shared by the joining/leaving client and every observer, so whichever
    of them claims the key first is the one that writes the message.
    """

    def __init__(self, store: ConversationStore, ledger: EventLedger) -> None:
        self._store = store
        self._ledger = ledger

    async def announce(self, key: EventKey, source: str) -> bool:
        """Append the system message for `key` unless it was already claimed.

        Args:
            key: Event identity
            source: Who is announcing ("self" or "observer"), for metrics

        Returns:
            True if this call appended the message
        """
        if not await self._ledger.claim(key):
            DUPLICATE_EVENTS_SUPPRESSED.labels(kind=key.kind.value, guard="ledger").inc()
            logger.debug("system_event_already_claimed", key=key.render(), source=source)
            return False

        message = Message(
            sender=Sender.SYSTEM,
            content=event_content(key),
            event_key=key.render(),
        )
        try:
            await self._store.append_message(key.session_id, message)
        except Exception:
            await self._release(key)
            raise

        SYSTEM_EVENTS.labels(kind=key.kind.value, source=source).inc()
        logger.info(
            "system_event_appended",
            session_id=key.session_id,
            slot=key.slot.value,
            kind=key.kind.value,
            epoch=key.epoch,
            source=source,
        )
        return True

    async def _release(self, key: EventKey) -> None:
        try:
            await self._ledger.release(key)
        except Exception as e:
            logger.warning("event_key_release_failed", key=key.render(), error=str(e))
