"""Interaction pace scheduler.

Message counts, not wall-clock time, drive the topic prompts. The
threshold state is a pure fold over the ordered message sequence, so a
replay from scratch and incremental processing always agree.
"""

from collections.abc import Iterable, Sequence
from functools import reduce

from tandem.config.models.pacing import PacingConfig, TopicPromptConfig
from tandem.conversation.models import Message, Sender
from tandem.observability.logging import get_logger
from tandem.observability.metrics import PACING_PROMPTS
from tandem.pacing.models import PacingState, TopicPrompt
from tandem.presence.liveness import Clock, now_ms

logger = get_logger(__name__)


def advance(
    state: PacingState, sender: Sender, topics: Sequence[TopicPromptConfig]
) -> PacingState:
    """Fold one message into the pacing state.

    System messages do not count. When both counters reach the current
    threshold, both are reduced by it and the next threshold applies,
    repeatedly, so one message can consume several small thresholds.
    """
    if sender is Sender.SYSTEM:
        return state

    satisfied = state.satisfied
    p1 = state.remaining_p1 + (1 if sender is Sender.PARTICIPANT_1 else 0)
    p2 = state.remaining_p2 + (1 if sender is Sender.PARTICIPANT_2 else 0)
    while satisfied < len(topics):
        threshold = topics[satisfied].threshold
        if p1 < threshold or p2 < threshold:
            break
        p1 -= threshold
        p2 -= threshold
        satisfied += 1
    return PacingState(satisfied=satisfied, remaining_p1=p1, remaining_p2=p2)


def fold_thresholds(
    messages: Iterable[Message],
    topics: Sequence[TopicPromptConfig],
    initial: PacingState | None = None,
) -> PacingState:
    """Replay messages in order from `initial` (default: empty state)."""
    return reduce(
        lambda state, message: advance(state, message.sender, topics),
        messages,
        initial or PacingState(),
    )


class InteractionPaceScheduler:
    """Reveals topic prompts one at a time as thresholds are consumed.

    Tracks one session at a time; observing a different session id
    resets all state. A shown prompt is never shown again, and while one
    is visible no further prompt is revealed.
    """

    def __init__(
        self,
        topics: Sequence[TopicPromptConfig],
        display_seconds: float = 8.0,
        clock: Clock = now_ms,
    ) -> None:
        self._topics = list(topics)
        self._display_ms = int(display_seconds * 1000)
        self._clock = clock
        self._session_id: str | None = None
        self._state = PacingState()
        self._shown = 0
        self._prompt: TopicPrompt | None = None

    @classmethod
    def from_config(
        cls, config: PacingConfig, clock: Clock = now_ms
    ) -> "InteractionPaceScheduler":
        return cls(config.topics, config.prompt_display_seconds, clock)

    @property
    def state(self) -> PacingState:
        return self._state

    @property
    def shown_count(self) -> int:
        """How many prompts have been revealed for the current session."""
        return self._shown

    @property
    def session_id(self) -> str | None:
        return self._session_id

    def reset(self, session_id: str | None = None) -> None:
        """Forget all pacing state, optionally switching session."""
        self._session_id = session_id
        self._state = PacingState()
        self._shown = 0
        self._prompt = None

    def observe(self, session_id: str, messages: Sequence[Message]) -> str | None:
        """Process the ordered transcript and return the visible prompt.

        The whole transcript is refolded each time. A late message sorted
        ahead of ones already seen changes the middle of the sequence, not
        its tail. Prompts already shown stay shown.
        """
        if session_id != self._session_id:
            self.reset(session_id)

        self._state = fold_thresholds(messages, self._topics)

        now = self._clock()
        if self.current_prompt(now) is None and self._state.satisfied > self._shown:
            self._reveal(now)
        return self.current_prompt(now)

    def _reveal(self, now: int) -> None:
        index = self._shown
        self._prompt = TopicPrompt(
            index=index,
            message=self._topics[index].message,
            shown_at=now,
            expires_at=now + self._display_ms,
        )
        self._shown += 1
        PACING_PROMPTS.inc()
        logger.info(
            "pacing_prompt_shown",
            session_id=self._session_id,
            topic_index=index,
            satisfied=self._state.satisfied,
        )

    def current_prompt(self, now: int | None = None) -> str | None:
        """Visible prompt text, None once dismissed or expired."""
        if self._prompt is None:
            return None
        if (now if now is not None else self._clock()) >= self._prompt.expires_at:
            self._prompt = None
            return None
        return self._prompt.message

    def dismiss(self) -> None:
        self._prompt = None


class PacingRegistry:
    """One scheduler per session for multi-session callers like the API."""

    def __init__(self, config: PacingConfig | None = None, clock: Clock = now_ms) -> None:
        self._config = config or PacingConfig()
        self._clock = clock
        self._schedulers: dict[str, InteractionPaceScheduler] = {}

    def for_session(self, session_id: str) -> InteractionPaceScheduler:
        scheduler = self._schedulers.get(session_id)
        if scheduler is None:
            scheduler = InteractionPaceScheduler.from_config(self._config, self._clock)
            scheduler.reset(session_id)
            self._schedulers[session_id] = scheduler
        return scheduler

    def discard(self, session_id: str) -> None:
        self._schedulers.pop(session_id, None)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._schedulers
