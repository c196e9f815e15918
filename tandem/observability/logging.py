"""structlog setup for Tandem.

Participant messages are the only free text that reaches the logs, so
redaction is organised around them: `content` fields are reduced to their
length, credential-like keys are masked, and contact details that slip
into any other string are scrubbed.
"""

import logging
import re
import sys
from collections.abc import Mapping
from typing import Any, cast

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from tandem.config.models.observability import LoggingConfig

MASKED_KEYS: frozenset[str] = frozenset({
    "password",
    "secret",
    "token",
    "api_key",
    "authorization",
    "cookie",
    "redis_url",
})

# Keys carrying participant-authored text
CONTENT_KEYS: frozenset[str] = frozenset({"content", "message_text"})

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
PHONE_PATTERN = re.compile(r"\+?[\d\s\-\(\)]{10,}")


class PIIRedactor:
    """structlog processor that keeps transcripts and contact details out of logs."""

    def __init__(self, redact_content: bool = True) -> None:
        self._redact_content = redact_content

    def __call__(
        self,
        _logger: WrappedLogger,
        _method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        return cast(EventDict, self._redact(event_dict))

    def _redact(self, data: Mapping[str, Any]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key, value in data.items():
            lowered = key.lower()
            if lowered in MASKED_KEYS:
                result[key] = "[REDACTED]"
            elif lowered in CONTENT_KEYS and isinstance(value, str) and self._redact_content:
                result[key] = f"[{len(value)} chars]"
            elif isinstance(value, Mapping):
                result[key] = self._redact(value)
            elif isinstance(value, str):
                result[key] = scrub(value)
            elif isinstance(value, list):
                result[key] = [scrub(v) if isinstance(v, str) else v for v in value]
            else:
                result[key] = value
        return result


def scrub(value: str) -> str:
    """Replace e-mail addresses and phone numbers in free text."""
    return PHONE_PATTERN.sub("[PHONE]", EMAIL_PATTERN.sub("[EMAIL]", value))


def _add_app_name(app_name: str) -> Processor:
    def processor(_logger: WrappedLogger, _method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("app", app_name)
        return event_dict

    return processor


def setup_logging(config: LoggingConfig | None = None, app_name: str = "tandem") -> None:
    """Configure structlog from the `[observability.logging]` section.

    Args:
        config: Level, renderer and redaction switches (defaults if omitted)
        app_name: Value of the `app` key on every event
    """
    config = config or LoggingConfig()
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_app_name(app_name),
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if config.redact_pii:
        processors.append(PIIRedactor(redact_content=config.redact_content))

    if config.format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping()[config.level]
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Logger bound to a module name; pass `__name__`."""
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
