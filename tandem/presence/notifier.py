"""System event notifier.

Watches a counterpart's presence slot and announces its departure exactly
once, even though both clients and the oversight role may all observe the
same transition. Two guards apply in order:

1. the session's per-slot left-notified flag (set by whoever announced)
2. the event ledger claim on (session, slot, "left", epoch)

The flag alone is a test-and-set across independent readers and leaves a
race window; the ledger closes it wherever claims are atomic.
"""

import asyncio

from tandem.config.models.presence import PresenceConfig
from tandem.conversation.models import ParticipantSlot, PresenceRecord, Session
from tandem.conversation.store import ConversationStore
from tandem.conversation.subscription import ChangeEvent, ChangeKind, Unsubscribe
from tandem.idempotency import EventKey, EventKind
from tandem.observability.logging import get_logger
from tandem.observability.metrics import DUPLICATE_EVENTS_SUPPRESSED, LOOP_ERRORS
from tandem.presence.announcer import SystemAnnouncer
from tandem.presence.liveness import Clock, is_online, now_ms

logger = get_logger(__name__)

WatchKey = tuple[str, ParticipantSlot]


class SystemEventNotifier:
    """Announces departures of watched slots and rearms their leave flags.

    Arrivals are announced by the joining client itself; on an arrival the
    notifier only clears a stale leave flag so the next departure can be
    announced again.
    """

    def __init__(
        self,
        store: ConversationStore,
        announcer: SystemAnnouncer,
        config: PresenceConfig | None = None,
        clock: Clock = now_ms,
        recheck_interval_seconds: float | None = None,
    ) -> None:
        """Initialize the notifier.

        Args:
            store: Shared conversation store
            announcer: Appends the leave system message
            config: Staleness settings
            clock: Epoch-millisecond clock
            recheck_interval_seconds: Idle re-evaluation period; defaults to
                config.recheck_interval_seconds, 0 disables it
        """
        self._store = store
        self._announcer = announcer
        self._config = config or PresenceConfig()
        self._clock = clock
        self._recheck_interval = (
            self._config.recheck_interval_seconds
            if recheck_interval_seconds is None
            else recheck_interval_seconds
        )
        # Last observed liveness per watched slot; None = not observed yet
        self._observed: dict[WatchKey, bool | None] = {}
        self._unsubscribe: Unsubscribe | None = None
        self._recheck_task: asyncio.Task | None = None

    def watch(self, session_id: str, slot: ParticipantSlot) -> None:
        """Start watching a slot."""
        self._observed.setdefault((session_id, slot), None)

    def unwatch(self, session_id: str, slot: ParticipantSlot) -> None:
        self._observed.pop((session_id, slot), None)

    @property
    def watched(self) -> list[WatchKey]:
        return list(self._observed)

    async def start(self) -> None:
        """Subscribe to store changes and start the idle re-check."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self._store.changes.on_change(self._on_change)
        if self._recheck_interval > 0:
            self._recheck_task = asyncio.create_task(self._recheck_loop())
        await self.evaluate_all()
        logger.info("notifier_started", watched=len(self._observed))

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
        logger.info("notifier_stopped")

    async def _on_change(self, event: ChangeEvent) -> None:
        if event.kind is not ChangeKind.PRESENCE or event.slot is None:
            return
        if (event.session_id, event.slot) in self._observed:
            await self.evaluate(event.session_id, event.slot)

    async def _recheck_loop(self) -> None:
        while True:
            await asyncio.sleep(self._recheck_interval)
            await self.evaluate_all()

    async def evaluate_all(self) -> None:
        """Re-evaluate every watched slot against the current time."""
        for session_id, slot in list(self._observed):
            await self.evaluate(session_id, slot)

    async def evaluate(self, session_id: str, slot: ParticipantSlot) -> None:
        """React to the current liveness of one slot. Never raises.

        The observed state only advances after the reaction succeeds, so a
        failed announcement is retried on the next evaluation.
        """
        key = (session_id, slot)
        try:
            record = await self._store.get_presence(session_id, slot)
            if record is None:
                return

            online = is_online(record, self._clock(), self._config.stale_after_ms)
            previous = self._observed.get(key)
            if online and previous is not True:
                await self._rearm(session_id, slot)
            elif not online and previous is not False:
                await self._announce_departure(session_id, slot, record)

            if key in self._observed:
                self._observed[key] = online
        except Exception as e:
            LOOP_ERRORS.labels(component="notifier").inc()
            logger.warning(
                "notifier_evaluation_failed",
                session_id=session_id,
                slot=slot.value,
                error=str(e),
            )

    async def _rearm(self, session_id: str, slot: ParticipantSlot) -> None:
        session = await self._store.get_session(session_id)
        if session is not None and session.notified_left(slot):
            await self._store.merge_session(
                session_id, **{Session.notified_field(slot): False}
            )
            logger.info("leave_flag_rearmed", session_id=session_id, slot=slot.value)

    async def _announce_departure(
        self, session_id: str, slot: ParticipantSlot, record: PresenceRecord
    ) -> None:
        session = await self._store.get_session(session_id)
        if session is not None and session.notified_left(slot):
            DUPLICATE_EVENTS_SUPPRESSED.labels(kind=EventKind.LEFT.value, guard="flag").inc()
            logger.debug("departure_already_notified", session_id=session_id, slot=slot.value)
            return

        await self._announcer.announce(
            EventKey(
                session_id=session_id,
                slot=slot,
                kind=EventKind.LEFT,
                epoch=record.epoch,
            ),
            source="observer",
        )
        await self._store.merge_session(session_id, **{Session.notified_field(slot): True})
