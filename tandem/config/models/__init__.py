"""Configuration model exports.

    from tandem.config.models import PresenceConfig, PacingConfig
"""

from tandem.config.models.api import APIConfig
from tandem.config.models.observability import (
    LoggingConfig,
    MetricsConfig,
    ObservabilityConfig,
)
from tandem.config.models.pacing import PacingConfig, TopicPromptConfig
from tandem.config.models.presence import PresenceConfig
from tandem.config.models.storage import StorageConfig

__all__ = [
    "APIConfig",
    "LoggingConfig",
    "MetricsConfig",
    "ObservabilityConfig",
    "PacingConfig",
    "PresenceConfig",
    "StorageConfig",
    "TopicPromptConfig",
]
