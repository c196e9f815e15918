"""`[observability]` section: structlog output and the Prometheus endpoint."""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["json", "console"]


class LoggingConfig(BaseModel):
    level: LogLevel = Field(default="INFO", description="Minimum event level")
    format: LogFormat = Field(default="json", description="JSON lines or console renderer")
    redact_pii: bool = Field(
        default=True,
        description="Mask credentials and scrub contact details from events",
    )
    redact_content: bool = Field(
        default=True,
        description="Log participant message text as its length only (needs redact_pii)",
    )

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v


class MetricsConfig(BaseModel):
    enabled: bool = Field(default=True, description="Serve Prometheus metrics")
    path: str = Field(default="/metrics", description="Route of the metrics endpoint")

    @field_validator("path")
    @classmethod
    def absolute_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError(f"metrics path must start with '/': {v!r}")
        return v


class ObservabilityConfig(BaseModel):
    """Logging and metrics settings."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
