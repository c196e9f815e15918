"""Idempotency keys and ledgers for join/leave announcements."""

from tandem.idempotency.ledger import (
    EventLedger,
    InMemoryEventLedger,
    RedisEventLedger,
)
from tandem.idempotency.models import EventKey, EventKind

__all__ = [
    "EventKey",
    "EventKind",
    "EventLedger",
    "InMemoryEventLedger",
    "RedisEventLedger",
]
