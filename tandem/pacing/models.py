"""Pacing models."""

from pydantic import BaseModel, ConfigDict, Field


class PacingState(BaseModel):
    """Result of folding a message sequence over the topic thresholds.

    `satisfied` counts fully consumed thresholds; the remaining counters
    hold each participant's messages since the last consumption.
    """

    model_config = ConfigDict(frozen=True)

    satisfied: int = Field(default=0, ge=0, description="Thresholds consumed so far")
    remaining_p1: int = Field(default=0, ge=0, description="Participant 1 messages since last consumption")
    remaining_p2: int = Field(default=0, ge=0, description="Participant 2 messages since last consumption")


class TopicPrompt(BaseModel):
    """A prompt currently visible to the participants."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0, description="Position of the topic threshold")
    message: str = Field(..., description="Prompt text")
    shown_at: int = Field(..., description="Display time, epoch ms")
    expires_at: int = Field(..., description="Auto-dismissal time, epoch ms")
