"""Conversation facade.

ConversationService is what the API and chat clients talk to: it starts
and joins sessions, appends participant messages and serves the
transcript, pacing prompt and summary. ParticipantView is the scoped
client-side bundle for one participant: presence handle, counterpart
watcher and pacing scheduler, torn down together.
"""

from types import TracebackType

from tandem.config.models.pacing import PacingConfig
from tandem.config.models.presence import PresenceConfig
from tandem.conversation.errors import NotFoundError
from tandem.conversation.models import Message, ParticipantSlot, Sender, Session
from tandem.conversation.store import ConversationStore
from tandem.conversation.subscription import ChangeEvent, ChangeKind, Unsubscribe
from tandem.conversation.summary import (
    InteractionSummary,
    collapse_duplicate_events,
    summarize,
)
from tandem.idempotency import EventLedger
from tandem.observability.logging import get_logger
from tandem.observability.metrics import LOOP_ERRORS
from tandem.pacing import InteractionPaceScheduler, PacingRegistry
from tandem.presence import (
    HeartbeatEmitter,
    PresenceHandle,
    SystemAnnouncer,
    SystemEventNotifier,
)
from tandem.presence.liveness import Clock, now_ms

logger = get_logger(__name__)


class ConversationService:
    """Session lifecycle, transcript and pacing for all sessions."""

    def __init__(
        self,
        store: ConversationStore,
        ledger: EventLedger,
        presence_config: PresenceConfig | None = None,
        pacing_config: PacingConfig | None = None,
        clock: Clock = now_ms,
    ) -> None:
        """Initialize the service.

        Args:
            store: Shared conversation store
            ledger: Event ledger shared with every announcer in the process
            presence_config: Heartbeat and staleness settings
            pacing_config: Topic thresholds and prompt display time
            clock: Epoch-millisecond clock
        """
        self._store = store
        self._presence_config = presence_config or PresenceConfig()
        self._pacing_config = pacing_config or PacingConfig()
        self._clock = clock
        self._announcer = SystemAnnouncer(store, ledger)
        self._emitter = HeartbeatEmitter(store, self._announcer, self._presence_config, clock)
        self._pacing = PacingRegistry(self._pacing_config, clock)

    @property
    def store(self) -> ConversationStore:
        return self._store

    @property
    def announcer(self) -> SystemAnnouncer:
        return self._announcer

    @property
    def emitter(self) -> HeartbeatEmitter:
        return self._emitter

    @property
    def pacing(self) -> PacingRegistry:
        return self._pacing

    async def _require_session(self, session_id: str) -> Session:
        session = await self._store.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")
        return session

    async def start_conversation(
        self, slot: ParticipantSlot = ParticipantSlot.PARTICIPANT_1
    ) -> Session:
        """Create a session with a fresh token and join it."""
        session_id = Session().session_id
        await self._emitter.join(session_id, slot)
        logger.info("conversation_started", session_id=session_id, slot=slot.value)
        return await self._require_session(session_id)

    async def join_conversation(
        self,
        session_id: str,
        slot: ParticipantSlot = ParticipantSlot.PARTICIPANT_2,
    ) -> Session:
        """Join an existing session, lifting any archival.

        Raises:
            NotFoundError: If the session does not exist
        """
        await self._require_session(session_id)
        await self._emitter.join(session_id, slot)
        return await self._require_session(session_id)

    async def heartbeat(self, session_id: str, slot: ParticipantSlot) -> None:
        await self._require_session(session_id)
        await self._emitter.beat(session_id, slot)

    async def leave(self, session_id: str, slot: ParticipantSlot) -> None:
        """Best-effort departure; never raises."""
        await self._emitter.leave(session_id, slot)

    async def send(self, session_id: str, slot: ParticipantSlot, content: str) -> Message:
        """Append a participant message.

        Raises:
            ValueError: If content is blank
            NotFoundError: If the session does not exist
        """
        if not content or not content.strip():
            raise ValueError("Message content must not be blank")
        await self._require_session(session_id)

        message = Message(sender=Sender.from_slot(slot), content=content)
        await self._store.append_message(session_id, message)
        logger.debug("message_appended", session_id=session_id, slot=slot.value)
        return message

    async def transcript(self, session_id: str) -> list[Message]:
        """Ordered messages with repeated system events collapsed."""
        await self._require_session(session_id)
        return collapse_duplicate_events(await self._store.list_messages(session_id))

    async def prompt(self, session_id: str) -> str | None:
        """Current pacing prompt for a session, if one is visible."""
        await self._require_session(session_id)
        messages = await self._store.list_messages(session_id)
        return self._pacing.for_session(session_id).observe(session_id, messages)

    def release(self, session_id: str) -> None:
        """Drop per-session pacing state once a session is archived."""
        self._pacing.discard(session_id)

    async def summary(self, session_id: str) -> InteractionSummary:
        session = await self._require_session(session_id)
        return summarize(session, await self._store.list_messages(session_id))

    def open_view(self, session_id: str, slot: ParticipantSlot) -> "ParticipantView":
        """Scoped client view for one participant (not yet started)."""
        return ParticipantView(self, session_id, slot)

    def new_scheduler(self) -> InteractionPaceScheduler:
        return InteractionPaceScheduler.from_config(self._pacing_config, self._clock)

    def new_notifier(self, recheck_interval_seconds: float | None = None) -> SystemEventNotifier:
        return SystemEventNotifier(
            self._store,
            self._announcer,
            self._presence_config,
            self._clock,
            recheck_interval_seconds=recheck_interval_seconds,
        )


class ParticipantView:
    """Everything one participant's client runs while its view is open.

    Entering joins the slot, starts the heartbeat tick and watches the
    counterpart's slot; the counterpart is re-evaluated on every presence
    change and on every own tick. Exiting releases all of it and leaves.

    Usage:
        async with service.open_view(session_id, ParticipantSlot.PARTICIPANT_2) as view:
            await view.send("hello")
    """

    def __init__(
        self, service: ConversationService, session_id: str, slot: ParticipantSlot
    ) -> None:
        self._service = service
        self._session_id = session_id
        self._slot = slot
        self._handle: PresenceHandle = service.emitter.open(session_id, slot)
        self._notifier = service.new_notifier(recheck_interval_seconds=0)
        self._scheduler = service.new_scheduler()
        self._prompt: str | None = None
        self._subscriptions: list[Unsubscribe] = []
        self._open = False

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def slot(self) -> ParticipantSlot:
        return self._slot

    @property
    def handle(self) -> PresenceHandle:
        return self._handle

    @property
    def scheduler(self) -> InteractionPaceScheduler:
        return self._scheduler

    async def open(self) -> None:
        if self._open:
            return
        self._open = True
        self._scheduler.reset(self._session_id)
        self._notifier.watch(self._session_id, self._slot.counterpart)

        await self._handle.start()
        await self._notifier.start()
        self._subscriptions.append(self._handle.on_tick(self._notifier.evaluate_all))
        self._subscriptions.append(
            self._service.store.changes.on_change(self._on_change)
        )
        await self.refresh_prompt()
        logger.info("participant_view_opened", session_id=self._session_id, slot=self._slot.value)

    async def _on_change(self, event: ChangeEvent) -> None:
        if event.kind is ChangeKind.MESSAGE and event.session_id == self._session_id:
            await self.refresh_prompt()

    async def refresh_prompt(self) -> str | None:
        """Re-read the transcript and update the pacing prompt. Never raises."""
        try:
            messages = await self._service.store.list_messages(self._session_id)
            self._prompt = self._scheduler.observe(self._session_id, messages)
        except Exception as e:
            LOOP_ERRORS.labels(component="scheduler").inc()
            logger.warning("pacing_refresh_failed", session_id=self._session_id, error=str(e))
        return self._prompt

    def prompt(self) -> str | None:
        """Visible pacing prompt, honouring auto-dismissal."""
        self._prompt = self._scheduler.current_prompt()
        return self._prompt

    async def send(self, content: str) -> Message:
        return await self._service.send(self._session_id, self._slot, content)

    async def messages(self) -> list[Message]:
        return await self._service.transcript(self._session_id)

    async def set_visible(self, visible: bool) -> None:
        await self._handle.set_visible(visible)

    async def close(self) -> None:
        """Release subscriptions, stop the tick and leave. Idempotent."""
        if not self._open:
            return
        self._open = False
        for unsubscribe in self._subscriptions:
            unsubscribe()
        self._subscriptions.clear()
        await self._notifier.stop()
        self._notifier.unwatch(self._session_id, self._slot.counterpart)
        await self._handle.dispose()
        logger.info("participant_view_closed", session_id=self._session_id, slot=self._slot.value)

    async def __aenter__(self) -> "ParticipantView":
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
