"""Presence and liveness configuration."""

from pydantic import BaseModel, Field, model_validator


class PresenceConfig(BaseModel):
    """Heartbeat cadence, staleness window and announcement policy.

    The staleness window must comfortably exceed the heartbeat interval so
    a backgrounded client that misses a few ticks is not archived.
    """

    heartbeat_interval_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Seconds between heartbeat assertions",
    )
    stale_after_ms: int = Field(
        default=120_000,
        gt=0,
        description="Heartbeat age after which a participant is offline",
    )
    min_safety_factor: float = Field(
        default=4.0,
        ge=1.0,
        description="Minimum ratio of staleness window to heartbeat interval",
    )
    announce_rejoins: bool = Field(
        default=True,
        description="Announce every fresh join, not just the first per session",
    )
    rejoin_clears_counterpart_flag: bool = Field(
        default=False,
        description="Rejoining an archived session also rearms the counterpart's leave flag",
    )
    recheck_interval_seconds: float = Field(
        default=30.0,
        ge=0,
        description="Idle liveness re-evaluation period (0 = change-driven only)",
    )

    @property
    def heartbeat_interval_ms(self) -> int:
        return int(self.heartbeat_interval_seconds * 1000)

    @model_validator(mode="after")
    def check_staleness_margin(self) -> "PresenceConfig":
        """Reject staleness windows too close to the heartbeat interval."""
        interval_ms = self.heartbeat_interval_ms
        if self.stale_after_ms <= interval_ms:
            raise ValueError(
                f"stale_after_ms ({self.stale_after_ms}) must be greater than "
                f"the heartbeat interval ({interval_ms} ms)"
            )
        if self.stale_after_ms < interval_ms * self.min_safety_factor:
            raise ValueError(
                f"stale_after_ms ({self.stale_after_ms}) must be at least "
                f"{self.min_safety_factor}x the heartbeat interval ({interval_ms} ms)"
            )
        return self
