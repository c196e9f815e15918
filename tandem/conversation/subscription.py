"""Change notification abstraction over the conversation store.

Every store mutation is published as a ChangeEvent. Components that react
to presence or session changes register a callback and get back an
unsubscribe function, independent of how the backend delivers changes.
"""

from collections.abc import Awaitable, Callable
from enum import Enum

from pydantic import BaseModel, ConfigDict

from tandem.conversation.models import ParticipantSlot
from tandem.observability.logging import get_logger
from tandem.observability.metrics import LOOP_ERRORS

logger = get_logger(__name__)


class ChangeKind(str, Enum):
    """Which document changed."""

    SESSION = "session"
    PRESENCE = "presence"
    MESSAGE = "message"


class ChangeEvent(BaseModel):
    """A single store mutation."""

    model_config = ConfigDict(frozen=True)

    kind: ChangeKind
    session_id: str
    slot: ParticipantSlot | None = None


ChangeCallback = Callable[[ChangeEvent], Awaitable[None]]
Unsubscribe = Callable[[], None]


class ChangeFeed:
    """Fan-out of change events to registered callbacks.

    A failing callback is logged and does not prevent delivery to the
    others.
    """

    def __init__(self) -> None:
        self._callbacks: dict[int, ChangeCallback] = {}
        self._next_id = 0

    def on_change(self, callback: ChangeCallback) -> Unsubscribe:
        """Register a callback; returns a function that removes it."""
        subscription_id = self._next_id
        self._next_id += 1
        self._callbacks[subscription_id] = callback

        def unsubscribe() -> None:
            self._callbacks.pop(subscription_id, None)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._callbacks)

    async def publish(self, event: ChangeEvent) -> None:
        """Deliver an event to every current subscriber."""
        for callback in list(self._callbacks.values()):
            try:
                await callback(event)
            except Exception as e:
                LOOP_ERRORS.labels(component="change_feed").inc()
                logger.error(
                    "change_callback_failed",
                    kind=event.kind.value,
                    session_id=event.session_id,
                    error=str(e),
                )
