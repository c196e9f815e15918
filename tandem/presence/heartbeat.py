"""Heartbeat emitter and scoped presence handle.

The emitter asserts liveness for one participant slot: `join` opens a new
presence epoch, `beat` re-asserts it, `leave` says goodbye. There is no
server-side disconnect signal, so periodic beats are the only proof that
a client is still there.

A PresenceHandle owns the periodic tick for one slot. Starting it joins
and schedules the tick; disposing it is the only way to stop the tick and
always ends with a best-effort leave.
"""

import asyncio
from collections.abc import Awaitable, Callable
from types import TracebackType

from tandem.config.models.presence import PresenceConfig
from tandem.conversation.models import ParticipantSlot, PresenceRecord, Session
from tandem.conversation.store import ConversationStore
from tandem.idempotency import EventKey, EventKind
from tandem.observability.logging import get_logger
from tandem.observability.metrics import HEARTBEATS, LOOP_ERRORS, PRESENCE_WRITE_FAILURES
from tandem.presence.announcer import SystemAnnouncer
from tandem.presence.liveness import Clock, is_online, ms_to_datetime, now_ms

logger = get_logger(__name__)

TickListener = Callable[[], Awaitable[None]]


class HeartbeatEmitter:
    """Writes presence assertions for participant slots."""

    def __init__(
        self,
        store: ConversationStore,
        announcer: SystemAnnouncer,
        config: PresenceConfig | None = None,
        clock: Clock = now_ms,
    ) -> None:
        """Initialize the emitter.

        Args:
            store: Shared conversation store
            announcer: Appends the join/leave system messages
            config: Heartbeat and staleness settings
            clock: Epoch-millisecond clock
        """
        self._store = store
        self._announcer = announcer
        self._config = config or PresenceConfig()
        self._clock = clock

    @property
    def config(self) -> PresenceConfig:
        return self._config

    async def join(self, session_id: str, slot: ParticipantSlot) -> PresenceRecord:
        """Assert online under a new epoch and announce the arrival.

        Presence is written before the session document so the archiver
        never sees a fresh session with nobody in it. Also rearms this
        slot's leave flag and lifts any archival.
        """
        now = self._clock()
        current = await self._store.get_presence(session_id, slot)
        epoch = (current.epoch if current else 0) + 1

        record = await self._store.merge_presence(
            session_id,
            slot,
            online=True,
            last_seen=ms_to_datetime(now),
            heartbeat=now,
            epoch=epoch,
        )
        HEARTBEATS.labels(kind="join").inc()

        session_fields: dict[str, bool] = {
            Session.notified_field(slot): False,
            "archived": False,
        }
        if self._config.rejoin_clears_counterpart_flag:
            session = await self._store.get_session(session_id)
            if session is not None and session.archived:
                session_fields[Session.notified_field(slot.counterpart)] = False
        await self._store.merge_session(session_id, **session_fields)

        await self._announcer.announce(
            EventKey(
                session_id=session_id,
                slot=slot,
                kind=EventKind.JOINED,
                epoch=epoch if self._config.announce_rejoins else 0,
            ),
            source="self",
        )

        logger.info(
            "presence_joined",
            session_id=session_id,
            slot=slot.value,
            epoch=epoch,
        )
        return record

    async def beat(
        self, session_id: str, slot: ParticipantSlot, kind: str = "tick"
    ) -> PresenceRecord:
        """Re-assert online for the current epoch.

        If the record is missing, offline, or already stale, everyone else
        may have seen this slot leave, so the beat becomes a fresh join.
        """
        now = self._clock()
        current = await self._store.get_presence(session_id, slot)
        if current is None or not is_online(current, now, self._config.stale_after_ms):
            logger.info(
                "presence_rejoin_after_gap",
                session_id=session_id,
                slot=slot.value,
                kind=kind,
            )
            return await self.join(session_id, slot)

        heartbeat = max(now, current.heartbeat or now)
        record = await self._store.merge_presence(
            session_id,
            slot,
            online=True,
            last_seen=ms_to_datetime(heartbeat),
            heartbeat=heartbeat,
        )
        HEARTBEATS.labels(kind=kind).inc()
        logger.debug("presence_heartbeat", session_id=session_id, slot=slot.value, kind=kind)
        return record

    async def resume(self, session_id: str, slot: ParticipantSlot) -> PresenceRecord:
        """Re-assert presence when the client comes back to the foreground."""
        return await self.beat(session_id, slot, kind="resume")

    async def leave(self, session_id: str, slot: ParticipantSlot) -> None:
        """Assert offline, announce the departure and set the leave flag.

        Best-effort: a departing client cannot retry, so failures are
        logged and swallowed. The offline write comes first so observers
        see `online: false` no later than the leave message.
        """
        try:
            now = self._clock()
            record = await self._store.merge_presence(
                session_id,
                slot,
                online=False,
                last_seen=ms_to_datetime(now),
                heartbeat=now,
            )
            HEARTBEATS.labels(kind="leave").inc()

            await self._announcer.announce(
                EventKey(
                    session_id=session_id,
                    slot=slot,
                    kind=EventKind.LEFT,
                    epoch=record.epoch,
                ),
                source="self",
            )
            await self._store.merge_session(
                session_id, **{Session.notified_field(slot): True}
            )
            logger.info("presence_left", session_id=session_id, slot=slot.value)
        except Exception as e:
            PRESENCE_WRITE_FAILURES.labels(kind="leave").inc()
            logger.warning(
                "presence_leave_failed",
                session_id=session_id,
                slot=slot.value,
                error=str(e),
            )

    def open(self, session_id: str, slot: ParticipantSlot) -> "PresenceHandle":
        """Create a scoped handle for one slot (not yet started)."""
        return PresenceHandle(self, session_id, slot)


class PresenceHandle:
    """Scoped presence for one participant slot.

    Usage:
        async with emitter.open(session_id, slot) as handle:
            ...
    """

    def __init__(
        self,
        emitter: HeartbeatEmitter,
        session_id: str,
        slot: ParticipantSlot,
    ) -> None:
        self._emitter = emitter
        self._session_id = session_id
        self._slot = slot
        self._interval = emitter.config.heartbeat_interval_seconds
        self._task: asyncio.Task | None = None
        self._tick_listeners: dict[int, TickListener] = {}
        self._next_listener_id = 0
        self._disposed = False

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def slot(self) -> ParticipantSlot:
        return self._slot

    @property
    def active(self) -> bool:
        return self._task is not None and not self._disposed

    async def start(self) -> None:
        """Join and schedule the periodic tick."""
        if self._task is not None or self._disposed:
            return
        try:
            await self._emitter.join(self._session_id, self._slot)
        except Exception as e:
            # The first tick turns into a join when the record is missing
            PRESENCE_WRITE_FAILURES.labels(kind="join").inc()
            logger.warning(
                "presence_join_failed",
                session_id=self._session_id,
                slot=self._slot.value,
                error=str(e),
            )
        self._task = asyncio.create_task(self._tick_loop())

    def on_tick(self, listener: TickListener) -> Callable[[], None]:
        """Run `listener` after every tick; returns an unsubscribe function."""
        listener_id = self._next_listener_id
        self._next_listener_id += 1
        self._tick_listeners[listener_id] = listener

        def unsubscribe() -> None:
            self._tick_listeners.pop(listener_id, None)

        return unsubscribe

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.tick()

    async def tick(self) -> None:
        """One heartbeat plus tick listeners. Never raises."""
        try:
            await self._emitter.beat(self._session_id, self._slot)
        except Exception as e:
            PRESENCE_WRITE_FAILURES.labels(kind="tick").inc()
            logger.warning(
                "presence_heartbeat_failed",
                session_id=self._session_id,
                slot=self._slot.value,
                error=str(e),
            )

        for listener in list(self._tick_listeners.values()):
            try:
                await listener()
            except Exception as e:
                LOOP_ERRORS.labels(component="tick_listener").inc()
                logger.error("tick_listener_failed", session_id=self._session_id, error=str(e))

    async def set_visible(self, visible: bool) -> None:
        """React to the client being backgrounded or foregrounded."""
        if self._disposed:
            return
        if not visible:
            logger.debug("presence_hidden", session_id=self._session_id, slot=self._slot.value)
            return
        try:
            await self._emitter.resume(self._session_id, self._slot)
        except Exception as e:
            PRESENCE_WRITE_FAILURES.labels(kind="resume").inc()
            logger.warning(
                "presence_resume_failed",
                session_id=self._session_id,
                slot=self._slot.value,
                error=str(e),
            )

    async def dispose(self) -> None:
        """Stop the tick and leave. Safe to call more than once."""
        if self._disposed:
            return
        self._disposed = True

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._tick_listeners.clear()

        await self._emitter.leave(self._session_id, self._slot)

    async def __aenter__(self) -> "PresenceHandle":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.dispose()
