"""Prometheus metrics for Tandem.

Counters for the liveness loop (heartbeats, archival, system events) and
the pacing scheduler.
"""

from prometheus_client import Counter, Gauge

HEARTBEATS = Counter(
    "tandem_heartbeats_total",
    "Presence assertions written by heartbeat emitters",
    labelnames=["kind"],
)

PRESENCE_WRITE_FAILURES = Counter(
    "tandem_presence_write_failures_total",
    "Presence writes that failed and were swallowed",
    labelnames=["kind"],
)

SESSIONS_ARCHIVED = Counter(
    "tandem_sessions_archived_total",
    "Sessions archived because both participants were non-live",
)

ARCHIVE_FAILURES = Counter(
    "tandem_archive_failures_total",
    "Archive writes that failed and will be retried on the next pass",
)

ACTIVE_SESSIONS = Gauge(
    "tandem_active_sessions",
    "Sessions in the most recent oversight view",
)

SYSTEM_EVENTS = Counter(
    "tandem_system_events_total",
    "Join/leave system messages appended",
    labelnames=["kind", "source"],
)

DUPLICATE_EVENTS_SUPPRESSED = Counter(
    "tandem_duplicate_events_suppressed_total",
    "System events skipped because another observer already emitted them",
    labelnames=["kind", "guard"],
)

PACING_PROMPTS = Counter(
    "tandem_pacing_prompts_total",
    "Topic prompts surfaced by the pace scheduler",
)

LOOP_ERRORS = Counter(
    "tandem_loop_errors_total",
    "Errors caught inside background coordination loops",
    labelnames=["component"],
)
