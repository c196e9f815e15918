"""Liveness evaluation.

The only trusted answer to "is this participant here". A crashed client
leaves `online: true` behind forever, so the flag alone is never enough:
the heartbeat must also be younger than the staleness window.
"""

import time
from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum

from tandem.conversation.models import PresenceRecord

DEFAULT_STALE_AFTER_MS = 120_000

Clock = Callable[[], int]
"""Returns the current wall-clock time in epoch milliseconds."""


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def ms_to_datetime(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=UTC)


class Liveness(str, Enum):
    """Classification of a presence slot."""

    ABSENT = "absent"  # never joined
    ONLINE = "online"
    STALE = "stale"  # claims online, heartbeat too old
    OFFLINE = "offline"  # said goodbye


def heartbeat_age_ms(record: PresenceRecord | None, now: int) -> int | None:
    """Age of the last heartbeat, None when there is none."""
    if record is None or record.heartbeat is None:
        return None
    return now - record.heartbeat


def is_online(
    record: PresenceRecord | None,
    now: int,
    stale_after_ms: int = DEFAULT_STALE_AFTER_MS,
) -> bool:
    """True only for an online record whose heartbeat is fresh."""
    age = heartbeat_age_ms(record, now)
    return bool(record is not None and record.online and age is not None and age < stale_after_ms)


def classify(
    record: PresenceRecord | None,
    now: int,
    stale_after_ms: int = DEFAULT_STALE_AFTER_MS,
) -> Liveness:
    """Finer-grained view of is_online for display and logging."""
    if record is None:
        return Liveness.ABSENT
    if is_online(record, now, stale_after_ms):
        return Liveness.ONLINE
    if record.online:
        return Liveness.STALE
    return Liveness.OFFLINE
