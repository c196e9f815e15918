"""Unit tests for HeartbeatEmitter and PresenceHandle."""

from unittest.mock import AsyncMock

import pytest

from tandem.config.models.presence import PresenceConfig
from tandem.conversation.models import ParticipantSlot, Sender
from tandem.conversation.stores import InMemoryConversationStore
from tandem.presence import HeartbeatEmitter, SystemAnnouncer

P1 = ParticipantSlot.PARTICIPANT_1
P2 = ParticipantSlot.PARTICIPANT_2


@pytest.fixture
def emitter(store, announcer, presence_config, clock) -> HeartbeatEmitter:
    return HeartbeatEmitter(store, announcer, presence_config, clock)


async def _system_lines(store: InMemoryConversationStore, session_id: str) -> list[str]:
    return [m.content for m in await store.list_messages(session_id) if m.sender is Sender.SYSTEM]


class TestJoin:
    """Tests for HeartbeatEmitter.join."""

    async def test_join_writes_presence_and_session(self, emitter, store, clock) -> None:
        record = await emitter.join("s1", P1)

        assert record.online is True
        assert record.heartbeat == clock.now
        assert record.epoch == 1
        session = await store.get_session("s1")
        assert session is not None
        assert session.archived is False
        assert await _system_lines(store, "s1") == ["Participant 1 has joined"]

    async def test_join_lifts_archival_and_rearms_flag(self, emitter, store) -> None:
        await store.merge_session("s1", archived=True, participant2_notified_left=True)

        await emitter.join("s1", P2)

        session = await store.get_session("s1")
        assert session.archived is False
        assert session.participant2_notified_left is False

    async def test_rejoin_announced_per_epoch(self, emitter, store) -> None:
        await emitter.join("s1", P2)
        await emitter.leave("s1", P2)
        record = await emitter.join("s1", P2)

        assert record.epoch == 2
        assert await _system_lines(store, "s1") == [
            "Participant 2 has joined",
            "Participant 2 has left",
            "Participant 2 has joined",
        ]

    async def test_repeated_join_call_same_epoch_not_duplicated(
        self, store, ledger, clock
    ) -> None:
        """With rejoin announcements off, only the first join is announced."""
        config = PresenceConfig(announce_rejoins=False, recheck_interval_seconds=0)
        emitter = HeartbeatEmitter(store, SystemAnnouncer(store, ledger), config, clock)

        await emitter.join("s1", P1)
        await emitter.join("s1", P1)

        assert await _system_lines(store, "s1") == ["Participant 1 has joined"]

    async def test_counterpart_flag_policy(self, store, ledger, clock) -> None:
        config = PresenceConfig(rejoin_clears_counterpart_flag=True, recheck_interval_seconds=0)
        emitter = HeartbeatEmitter(store, SystemAnnouncer(store, ledger), config, clock)
        await store.merge_session("s1", archived=True, participant1_notified_left=True)

        await emitter.join("s1", P2)

        session = await store.get_session("s1")
        assert session.participant1_notified_left is False

    async def test_counterpart_flag_kept_by_default(self, emitter, store) -> None:
        await store.merge_session("s1", archived=True, participant1_notified_left=True)

        await emitter.join("s1", P2)

        session = await store.get_session("s1")
        assert session.participant1_notified_left is True


class TestBeat:
    """Tests for HeartbeatEmitter.beat."""

    async def test_beat_refreshes_heartbeat(self, emitter, store, clock) -> None:
        await emitter.join("s1", P1)
        clock.advance(30_000)

        record = await emitter.beat("s1", P1)

        assert record.heartbeat == clock.now
        assert record.epoch == 1
        assert await _system_lines(store, "s1") == ["Participant 1 has joined"]

    async def test_beat_never_moves_heartbeat_backwards(self, emitter, clock) -> None:
        await emitter.join("s1", P1)
        clock.advance(-5_000)

        record = await emitter.beat("s1", P1)

        assert record.heartbeat == clock.now + 5_000

    async def test_beat_after_gap_becomes_join(self, emitter, store, clock) -> None:
        await emitter.join("s1", P1)
        clock.advance(130_000)

        record = await emitter.beat("s1", P1)

        assert record.epoch == 2
        assert await _system_lines(store, "s1") == [
            "Participant 1 has joined",
            "Participant 1 has joined",
        ]

    async def test_beat_without_record_joins(self, emitter) -> None:
        record = await emitter.beat("s1", P2)
        assert record.epoch == 1


class TestLeave:
    """Tests for HeartbeatEmitter.leave."""

    async def test_leave_marks_offline_and_announces(self, emitter, store) -> None:
        await emitter.join("s1", P2)

        await emitter.leave("s1", P2)

        record = await store.get_presence("s1", P2)
        assert record.online is False
        session = await store.get_session("s1")
        assert session.participant2_notified_left is True
        assert (await _system_lines(store, "s1"))[-1] == "Participant 2 has left"

    async def test_leave_twice_announces_once(self, emitter, store) -> None:
        await emitter.join("s1", P2)
        await emitter.leave("s1", P2)
        await emitter.leave("s1", P2)

        assert (await _system_lines(store, "s1")).count("Participant 2 has left") == 1

    async def test_leave_failure_is_swallowed(self, announcer, presence_config, clock) -> None:
        failing = AsyncMock()
        failing.merge_presence.side_effect = RuntimeError("store down")
        emitter = HeartbeatEmitter(failing, announcer, presence_config, clock)

        await emitter.leave("s1", P1)

        failing.merge_session.assert_not_awaited()


class TestPresenceHandle:
    """Tests for the scoped presence handle."""

    async def test_context_manager_joins_and_leaves(self, emitter, store) -> None:
        async with emitter.open("s1", P1) as handle:
            assert handle.active
            record = await store.get_presence("s1", P1)
            assert record.online is True

        assert not handle.active
        record = await store.get_presence("s1", P1)
        assert record.online is False
        assert await _system_lines(store, "s1") == [
            "Participant 1 has joined",
            "Participant 1 has left",
        ]

    async def test_dispose_is_idempotent(self, emitter, store) -> None:
        handle = emitter.open("s1", P1)
        await handle.start()
        await handle.dispose()
        await handle.dispose()

        assert (await _system_lines(store, "s1")).count("Participant 1 has left") == 1

    async def test_tick_beats_and_runs_listeners(self, emitter, store, clock) -> None:
        calls: list[int] = []

        async def listener() -> None:
            calls.append(clock.now)

        async with emitter.open("s1", P1) as handle:
            unsubscribe = handle.on_tick(listener)
            clock.advance(30_000)
            await handle.tick()
            unsubscribe()
            await handle.tick()

            record = await store.get_presence("s1", P1)
            assert record.heartbeat == clock.now

        assert len(calls) == 1

    async def test_tick_survives_store_failure(self, announcer, presence_config, clock) -> None:
        failing = AsyncMock()
        failing.get_presence.side_effect = RuntimeError("store down")
        emitter = HeartbeatEmitter(failing, announcer, presence_config, clock)
        handle = emitter.open("s1", P1)

        await handle.tick()

    async def test_set_visible_resumes(self, emitter, store, clock) -> None:
        async with emitter.open("s1", P1) as handle:
            clock.advance(10_000)
            await handle.set_visible(False)
            assert (await store.get_presence("s1", P1)).heartbeat == clock.now - 10_000
            await handle.set_visible(True)
            assert (await store.get_presence("s1", P1)).heartbeat == clock.now
