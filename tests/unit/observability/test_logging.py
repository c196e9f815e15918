"""Tests for structured logging."""

import pytest
from pydantic import ValidationError

from tandem.config.models import LoggingConfig, MetricsConfig
from tandem.observability.logging import PIIRedactor, get_logger, scrub, setup_logging


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_json_format(self) -> None:
        setup_logging(LoggingConfig(level="INFO", format="json", redact_pii=False))
        get_logger("test").info("test_message", session_id="s1")

    def test_setup_console_format(self) -> None:
        setup_logging(LoggingConfig(level="DEBUG", format="console"), app_name="tandem-test")
        get_logger("test").debug("test_message", content="hello")

    def test_defaults(self) -> None:
        setup_logging()
        get_logger("test").info("test_message")


class TestLoggingConfig:
    def test_level_is_case_insensitive(self) -> None:
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_unknown_level_rejected(self) -> None:
        with pytest.raises(ValidationError):
            LoggingConfig(level="LOUD")

    def test_metrics_path_must_be_absolute(self) -> None:
        with pytest.raises(ValidationError):
            MetricsConfig(path="metrics")


class TestPIIRedactor:
    """Tests for PII redaction."""

    @pytest.fixture
    def redactor(self) -> PIIRedactor:
        return PIIRedactor()

    def test_credential_keys_masked(self, redactor: PIIRedactor) -> None:
        result = redactor(None, "info", {"event": "x", "token": "abc", "session_id": "s1"})
        assert result["token"] == "[REDACTED]"
        assert result["session_id"] == "s1"

    def test_message_content_reduced_to_length(self, redactor: PIIRedactor) -> None:
        result = redactor(None, "info", {"event": "x", "content": "write me at jo@example.com"})
        assert result["content"] == "[26 chars]"

    def test_content_kept_but_scrubbed_when_allowed(self) -> None:
        redactor = PIIRedactor(redact_content=False)
        result = redactor(None, "info", {"event": "x", "content": "write me at jo@example.com"})
        assert result["content"] == "write me at [EMAIL]"

    def test_phone_scrubbed_in_lists(self, redactor: PIIRedactor) -> None:
        result = redactor(None, "info", {"event": "x", "lines": ["call +1 555 123 4567", 3]})
        assert result["lines"] == ["call [PHONE]", 3]

    def test_nested_dicts(self, redactor: PIIRedactor) -> None:
        result = redactor(
            None, "info", {"event": "x", "ctx": {"password": "p", "slot": "participant1"}}
        )
        assert result["ctx"] == {"password": "[REDACTED]", "slot": "participant1"}

    def test_error_strings_scrubbed(self, redactor: PIIRedactor) -> None:
        result = redactor(None, "info", {"event": "x", "error": "bad reply from jo@example.com"})
        assert result["error"] == "bad reply from [EMAIL]"


def test_scrub_leaves_plain_text() -> None:
    assert scrub("Participant 2 has left") == "Participant 2 has left"
