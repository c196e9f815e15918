"""Interaction pacing configuration."""

from pydantic import BaseModel, Field

_ORDINALS = ["2nd", "3rd", "4th", "5th", "6th", "7th", "8th", "9th"]


class TopicPromptConfig(BaseModel):
    """A single topic prompt and the per-participant message quota before it."""

    message: str = Field(..., min_length=1, description="Prompt text shown to participants")
    threshold: int = Field(..., gt=0, description="Messages required from each participant")


def _default_topics() -> list[TopicPromptConfig]:
    return [
        TopicPromptConfig(
            message=f"Please move on to the {ordinal} topic if you haven't already.",
            threshold=8 if index == 0 else 6,
        )
        for index, ordinal in enumerate(_ORDINALS)
    ]


class PacingConfig(BaseModel):
    """Topic prompt thresholds and display duration."""

    topics: list[TopicPromptConfig] = Field(
        default_factory=_default_topics,
        description="Ordered topic prompts",
    )
    prompt_display_seconds: float = Field(
        default=8.0,
        gt=0,
        description="Seconds a prompt stays visible before auto-dismissal",
    )
