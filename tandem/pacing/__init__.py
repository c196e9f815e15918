"""Interaction pacing: topic prompts driven by message counts."""

from tandem.pacing.models import PacingState, TopicPrompt
from tandem.pacing.scheduler import (
    InteractionPaceScheduler,
    PacingRegistry,
    advance,
    fold_thresholds,
)

__all__ = [
    "InteractionPaceScheduler",
    "PacingRegistry",
    "PacingState",
    "TopicPrompt",
    "advance",
    "fold_thresholds",
]
