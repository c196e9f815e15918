"""Session archiver.

Reclaims abandoned sessions: a non-archived session whose two presence
slots both evaluate non-live is archived. Archival is one-way; only a
fresh join lifts it. The archiver also maintains the oversight view of
active sessions with per-slot online flags.
"""

import asyncio
from collections.abc import Awaitable, Callable

from pydantic import BaseModel, Field

from tandem.config.models.presence import PresenceConfig
from tandem.conversation.models import ParticipantSlot, Session
from tandem.conversation.store import ConversationStore
from tandem.conversation.subscription import ChangeEvent, ChangeKind, Unsubscribe
from tandem.observability.logging import get_logger
from tandem.observability.metrics import (
    ACTIVE_SESSIONS,
    ARCHIVE_FAILURES,
    LOOP_ERRORS,
    SESSIONS_ARCHIVED,
)
from tandem.presence.liveness import Clock, Liveness, classify, now_ms

logger = get_logger(__name__)

ViewListener = Callable[[list["ActiveSession"]], Awaitable[None]]


class ActiveSession(BaseModel):
    """Oversight view of one non-archived session."""

    session_id: str = Field(..., description="Session identifier")
    participant1: Liveness = Field(..., description="Liveness of participant 1")
    participant2: Liveness = Field(..., description="Liveness of participant 2")

    @property
    def participant1_online(self) -> bool:
        return self.participant1 is Liveness.ONLINE

    @property
    def participant2_online(self) -> bool:
        return self.participant2 is Liveness.ONLINE


class SessionArchiver:
    """Evaluates session liveness and archives sessions nobody is using.

    Reacts to every session or presence change for the affected session
    and, unless disabled, re-runs a full pass on an idle interval: a session
    whose clients both crashed produces no further changes.
    """

    def __init__(
        self,
        store: ConversationStore,
        config: PresenceConfig | None = None,
        clock: Clock = now_ms,
    ) -> None:
        self._store = store
        self._config = config or PresenceConfig()
        self._clock = clock
        self._view: dict[str, ActiveSession] = {}
        self._listeners: dict[int, ViewListener] = {}
        self._next_listener_id = 0
        self._unsubscribe: Unsubscribe | None = None
        self._recheck_task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._unsubscribe is not None

    @property
    def view(self) -> list[ActiveSession]:
        """Most recent oversight view."""
        return list(self._view.values())

    def on_update(self, listener: ViewListener) -> Unsubscribe:
        """Be told whenever the oversight view changes."""
        listener_id = self._next_listener_id
        self._next_listener_id += 1
        self._listeners[listener_id] = listener

        def unsubscribe() -> None:
            self._listeners.pop(listener_id, None)

        return unsubscribe

    async def start(self) -> None:
        """Subscribe to store changes, run a first pass, start the re-check."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self._store.changes.on_change(self._on_change)
        await self.run_pass()
        if self._config.recheck_interval_seconds > 0:
            self._recheck_task = asyncio.create_task(self._recheck_loop())
        logger.info(
            "archiver_started",
            stale_after_ms=self._config.stale_after_ms,
            recheck_interval_seconds=self._config.recheck_interval_seconds,
        )

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._recheck_task is not None:
            self._recheck_task.cancel()
            try:
                await self._recheck_task
            except asyncio.CancelledError:
                pass
            self._recheck_task = None
        logger.info("archiver_stopped")

    async def _recheck_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.recheck_interval_seconds)
            await self.run_pass()

    async def run_pass(self) -> list[ActiveSession]:
        """Evaluate every non-archived session. Never raises.

        A failure on one session is logged and does not stop the others.
        """
        now = self._clock()
        try:
            sessions = await self._store.list_active_sessions()
        except Exception as e:
            LOOP_ERRORS.labels(component="archiver").inc()
            logger.error("active_sessions_query_failed", error=str(e))
            return self.view

        view: dict[str, ActiveSession] = {}
        for session in sessions:
            try:
                entry = await self.evaluate(session, now)
            except Exception as e:
                LOOP_ERRORS.labels(component="archiver").inc()
                logger.warning(
                    "session_evaluation_failed",
                    session_id=session.session_id,
                    error=str(e),
                )
                continue
            if entry is not None:
                view[session.session_id] = entry

        self._view = view
        await self._publish_view()
        return self.view

    async def evaluate(self, session: Session, now: int) -> ActiveSession | None:
        """Classify both slots; archive when neither is online.

        Returns:
            The session's view entry, or None if it is (being) archived
        """
        stale_after_ms = self._config.stale_after_ms
        p1 = classify(
            await self._store.get_presence(session.session_id, ParticipantSlot.PARTICIPANT_1),
            now,
            stale_after_ms,
        )
        p2 = classify(
            await self._store.get_presence(session.session_id, ParticipantSlot.PARTICIPANT_2),
            now,
            stale_after_ms,
        )
        logger.debug(
            "session_liveness_evaluated",
            session_id=session.session_id,
            participant1=p1.value,
            participant2=p2.value,
        )

        if p1 is not Liveness.ONLINE and p2 is not Liveness.ONLINE:
            await self._archive(session.session_id)
            return None

        return ActiveSession(session_id=session.session_id, participant1=p1, participant2=p2)

    async def _archive(self, session_id: str) -> None:
        # A failed write leaves the session active; the next pass retries it
        try:
            await self._store.update_session(session_id, archived=True)
        except Exception as e:
            ARCHIVE_FAILURES.inc()
            logger.error("session_archive_failed", session_id=session_id, error=str(e))
            return
        SESSIONS_ARCHIVED.inc()
        logger.info("session_archived", session_id=session_id)

    async def _on_change(self, event: ChangeEvent) -> None:
        if event.kind is ChangeKind.MESSAGE:
            return
        try:
            session = await self._store.get_session(event.session_id)
            entry = None
            if session is not None and not session.archived:
                entry = await self.evaluate(session, self._clock())
        except Exception as e:
            LOOP_ERRORS.labels(component="archiver").inc()
            logger.warning(
                "session_evaluation_failed",
                session_id=event.session_id,
                error=str(e),
            )
            return

        previous = self._view.get(event.session_id)
        if entry is None:
            self._view.pop(event.session_id, None)
        else:
            self._view[event.session_id] = entry
        if previous != entry:
            await self._publish_view()

    async def _publish_view(self) -> None:
        ACTIVE_SESSIONS.set(len(self._view))
        view = self.view
        for listener in list(self._listeners.values()):
            try:
                await listener(view)
            except Exception as e:
                LOOP_ERRORS.labels(component="archiver_listener").inc()
                logger.error("oversight_listener_failed", error=str(e))
