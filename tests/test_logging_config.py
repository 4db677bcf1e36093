"""Tests for structured logging configuration."""

import json
import logging

import structlog

from cli.logging_config import _redact_sensitive, setup_logging


class TestLoggingConfig:
    """Test structlog setup modes."""

    def test_console_mode(self):
        setup_logging(json_mode=False, level="DEBUG")
        structlog.get_logger().info("brain_test_event", key="value")
        assert logging.getLogger().level == logging.DEBUG

    def test_level_filtering(self):
        setup_logging(json_mode=False, level="WARNING")
        assert logging.getLogger().level == logging.WARNING

    def test_default_level_is_info(self):
        setup_logging()
        assert logging.getLogger().level == logging.INFO

    def test_single_stderr_handler(self):
        setup_logging()
        setup_logging()
        assert len(logging.getLogger().handlers) == 1

    def test_json_log_file(self, tmp_path):
        log_file = tmp_path / "logs" / "brain.log"
        setup_logging(json_mode=True, level="INFO", log_file=log_file)
        logging.getLogger("brain.test").info("file event")
        for handler in logging.getLogger().handlers:
            handler.flush()
        line = log_file.read_text().strip().splitlines()[-1]
        assert json.loads(line)["event"] == "file event"
        setup_logging()


class TestRedaction:
    def test_api_keys_redacted(self):
        event = {"event": "x", "detail": "key sk-ant-REDACTED"}
        out = _redact_sensitive(None, None, event)
        assert "0123456789xyz" not in out["detail"]
        assert "REDACTED" in out["detail"]

    def test_plain_values_untouched(self):
        out = _redact_sensitive(None, None, {"event": "brain_append", "id": "abcd1234"})
        assert out == {"event": "brain_append", "id": "abcd1234"}
