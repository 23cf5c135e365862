"""
Tests for logging helpers and session token signing.
"""

import json
import logging
from datetime import timedelta
from types import SimpleNamespace

from voice_agent.core.exceptions import ProviderUnavailable, StreamError
from voice_agent.core.logging_config import (
    ColoredFormatter,
    JSONFormatter,
    filter_sensitive_data,
    setup_logging,
    truncate_large_data,
)
from voice_agent.utils.session import create_session_token, decode_session_token


class TestFilterSensitiveData:

    def test_masks_nested_credentials(self):
        data = {
            "text": "hello",
            "Authorization": "Bearer sk-123",
            "tokens": {"access_token": "at"},
            "items": [{"api_key": "k", "name": "n"}],
        }
        filtered = filter_sensitive_data(data)
        assert filtered["text"] == "hello"
        assert filtered["Authorization"] == "***FILTERED***"
        assert filtered["tokens"] == "***FILTERED***"
        assert filtered["items"] == [{"api_key": "***FILTERED***", "name": "n"}]

    def test_counters_and_error_codes_stay_readable(self):
        data = {
            "error_code": "PROVIDER_UNAVAILABLE",
            "status_code": 502,
            "max_tokens": 512,
            "usage": {"prompt_tokens": 12, "completion_tokens": 30},
            "code": "4/0Ab-oauth",
            "refresh_token": "rt",
            "X-Session-Token": "jwt",
        }
        filtered = filter_sensitive_data(data)
        assert filtered["error_code"] == "PROVIDER_UNAVAILABLE"
        assert filtered["status_code"] == 502
        assert filtered["max_tokens"] == 512
        assert filtered["usage"] == {"prompt_tokens": 12, "completion_tokens": 30}
        assert filtered["code"] == "***FILTERED***"
        assert filtered["refresh_token"] == "***FILTERED***"
        assert filtered["X-Session-Token"] == "***FILTERED***"

    def test_primitives_unchanged(self):
        assert filter_sensitive_data("plain") == "plain"

    def test_truncate(self):
        assert truncate_large_data("abc", max_length=5) == "abc"
        assert truncate_large_data("abcdefgh", max_length=3).startswith("abc... (truncated, total length: 8)")


class TestJSONFormatter:

    def test_extra_fields_merged(self):
        record = logging.LogRecord("voice_agent.test", logging.INFO, __file__, 10,
                                   "Reply generated", None, None)
        record.extra_fields = {"provider": "groq", "attempts": 3}
        payload = json.loads(JSONFormatter().format(record))
        assert payload["message"] == "Reply generated"
        assert payload["level"] == "INFO"
        assert payload["provider"] == "groq"
        assert payload["attempts"] == 3

    def test_colored_formatter_leaves_record_untouched(self):
        record = logging.LogRecord("voice_agent.test", logging.WARNING, __file__, 10,
                                   "Provider failed", None, None)
        line = ColoredFormatter("%(levelname)s %(message)s").format(record)
        assert "Provider failed" in line
        assert record.levelname == "WARNING"


class TestSetupLogging:

    def test_console_only(self, tmp_path):
        config = SimpleNamespace(
            log_level="debug",
            log_console_enabled=True,
            log_file_enabled=False,
            log_file_path=str(tmp_path / "relay.log"),
            log_json_format=True,
        )
        setup_logging(config)
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert logging.getLogger("httpx").level == logging.WARNING
        assert not (tmp_path / "relay.log").exists()

    def test_file_handler_writes_json(self, tmp_path):
        path = tmp_path / "logs" / "relay.log"
        config = SimpleNamespace(
            log_level="INFO",
            log_console_enabled=False,
            log_file_enabled=True,
            log_file_path=str(path),
            log_json_format=True,
        )
        setup_logging(config)
        logging.getLogger("voice_agent.test").info("Turn recorded", extra={"extra_fields": {"session_id": "s1"}})
        for handler in logging.getLogger().handlers:
            handler.flush()
        lines = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
        assert lines[-1]["message"] == "Turn recorded"
        assert lines[-1]["session_id"] == "s1"
        for handler in list(logging.getLogger().handlers):
            handler.close()
            logging.getLogger().removeHandler(handler)


class TestExceptions:

    def test_to_dict(self):
        error = ProviderUnavailable("openai", "HTTP 503", status=503)
        data = error.to_dict()
        assert data["error_type"] == "ProviderUnavailable"
        assert data["error_code"] == "PROVIDER_UNAVAILABLE"
        assert data["details"] == {"provider": "openai", "status": 503}

    def test_stream_error_snips_body(self):
        error = StreamError(500, "x" * 500)
        assert len(error.body) == 200


class TestSessionTokens:

    def test_round_trip(self):
        assert decode_session_token(create_session_token("abc123")) == "abc123"

    def test_expired_token(self):
        token = create_session_token("abc123", expires_delta=timedelta(seconds=-5))
        assert decode_session_token(token) is None

    def test_garbage_token(self):
        assert decode_session_token("not.a.token") is None
