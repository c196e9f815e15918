"""Event ledgers: at-most-one effect per EventKey.

A claim is an atomic test-and-set. The first caller for a key wins and
performs the side effect; later callers skip it. A winner that fails to
perform the effect releases the key so the next evaluation can retry.
"""

from abc import ABC, abstractmethod

from redis.asyncio import Redis

from tandem.idempotency.models import EventKey
from tandem.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 604800  # 7 days


class EventLedger(ABC):
    """Abstract interface for the system event ledger."""

    @abstractmethod
    async def claim(self, key: EventKey) -> bool:
        """Claim a key.

        Returns:
            True if this caller is the first to claim the key
        """
        pass

    @abstractmethod
    async def release(self, key: EventKey) -> None:
        """Forget a claim whose side effect did not happen."""
        pass


class RedisEventLedger(EventLedger):
    """Redis-backed event ledger.

    Key format: {prefix}:event:{session_id}:{slot}:{kind}:{epoch}
    """

    def __init__(
        self,
        redis: Redis,
        key_prefix: str = "tandem",
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ) -> None:
        """Initialize Redis event ledger.

        Args:
            redis: Redis client instance
            key_prefix: Prefix for Redis keys
            ttl_seconds: How long a claim is remembered
        """
        self._redis = redis
        self._key_prefix = key_prefix
        self._ttl_seconds = ttl_seconds

    def _make_key(self, key: EventKey) -> str:
        return f"{self._key_prefix}:event:{key.render()}"

    async def claim(self, key: EventKey) -> bool:
        # SET NX makes the test-and-set atomic across processes
        claimed = await self._redis.set(
            self._make_key(key), "1", nx=True, ex=self._ttl_seconds
        )
        if claimed:
            logger.debug("event_key_claimed", key=key.render())
        else:
            logger.debug("event_key_already_claimed", key=key.render())
        return bool(claimed)

    async def release(self, key: EventKey) -> None:
        await self._redis.delete(self._make_key(key))
        logger.info("event_key_released", key=key.render())


class InMemoryEventLedger(EventLedger):
    """In-memory event ledger for tests and single-process deployments.

    Does not implement TTL - claims persist until explicitly cleared.
    """

    def __init__(self) -> None:
        self._claimed: set[str] = set()

    async def claim(self, key: EventKey) -> bool:
        rendered = key.render()
        if rendered in self._claimed:
            return False
        self._claimed.add(rendered)
        return True

    async def release(self, key: EventKey) -> None:
        self._claimed.discard(key.render())

    def clear(self) -> None:
        """Clear all claims (test utility)."""
        self._claimed.clear()
