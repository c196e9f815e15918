"""Presence: heartbeats, liveness, archival and join/leave announcements."""

from tandem.presence.announcer import SystemAnnouncer
from tandem.presence.archiver import ActiveSession, SessionArchiver
from tandem.presence.heartbeat import HeartbeatEmitter, PresenceHandle
from tandem.presence.liveness import (
    DEFAULT_STALE_AFTER_MS,
    Liveness,
    classify,
    heartbeat_age_ms,
    is_online,
    now_ms,
)
from tandem.presence.notifier import SystemEventNotifier

__all__ = [
    "ActiveSession",
    "DEFAULT_STALE_AFTER_MS",
    "HeartbeatEmitter",
    "Liveness",
    "PresenceHandle",
    "SessionArchiver",
    "SystemAnnouncer",
    "SystemEventNotifier",
    "classify",
    "heartbeat_age_ms",
    "is_online",
    "now_ms",
]
