"""Unit tests for event ledgers."""

from unittest.mock import AsyncMock

import pytest

from tandem.conversation.models import ParticipantSlot
from tandem.idempotency import EventKey, EventKind, InMemoryEventLedger, RedisEventLedger


@pytest.fixture
def key() -> EventKey:
    return EventKey(
        session_id="s1",
        slot=ParticipantSlot.PARTICIPANT_2,
        kind=EventKind.LEFT,
        epoch=3,
    )


@pytest.fixture
def mock_redis() -> AsyncMock:
    client = AsyncMock()
    client.set = AsyncMock(return_value=True)
    return client


class TestEventKey:
    def test_render(self, key: EventKey) -> None:
        assert key.render() == "s1:participant2:left:3"
        assert str(key) == key.render()

    def test_equal_keys_for_same_transition(self, key: EventKey) -> None:
        same = EventKey(session_id="s1", slot=ParticipantSlot.PARTICIPANT_2, kind=EventKind.LEFT, epoch=3)
        assert same == key


class TestInMemoryEventLedger:
    """Tests for the in-memory test-and-set."""

    async def test_first_claim_wins(self, key: EventKey) -> None:
        ledger = InMemoryEventLedger()
        assert await ledger.claim(key) is True
        assert await ledger.claim(key) is False

    async def test_release_allows_reclaim(self, key: EventKey) -> None:
        ledger = InMemoryEventLedger()
        await ledger.claim(key)
        await ledger.release(key)
        assert await ledger.claim(key) is True

    async def test_new_epoch_is_a_new_key(self, key: EventKey) -> None:
        ledger = InMemoryEventLedger()
        await ledger.claim(key)
        assert await ledger.claim(key.model_copy(update={"epoch": 4})) is True

    async def test_clear(self, key: EventKey) -> None:
        ledger = InMemoryEventLedger()
        await ledger.claim(key)
        ledger.clear()
        assert await ledger.claim(key) is True


class TestRedisEventLedger:
    """Tests for the SET NX ledger."""

    async def test_claim_uses_set_nx(self, key: EventKey, mock_redis: AsyncMock) -> None:
        ledger = RedisEventLedger(mock_redis, key_prefix="t", ttl_seconds=60)
        assert await ledger.claim(key) is True
        mock_redis.set.assert_awaited_once_with(
            "t:event:s1:participant2:left:3", "1", nx=True, ex=60
        )

    async def test_claim_lost(self, key: EventKey, mock_redis: AsyncMock) -> None:
        mock_redis.set.return_value = None
        ledger = RedisEventLedger(mock_redis)
        assert await ledger.claim(key) is False

    async def test_release_deletes_key(self, key: EventKey, mock_redis: AsyncMock) -> None:
        ledger = RedisEventLedger(mock_redis)
        await ledger.release(key)
        mock_redis.delete.assert_awaited_once_with("tandem:event:s1:participant2:left:3")
