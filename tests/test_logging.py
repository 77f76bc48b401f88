"""
Tests for structured logging: redaction, request context and formatters.
"""

import json
import logging
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from cms.utils.logging import (
    DevelopmentFormatter,
    JSONFormatter,
    RequestContextFilter,
    SensitiveDataFilter,
    Timer,
    clear_request_context,
    redact_sensitive_data,
    set_request_context,
)


def make_record(msg, *args, **extra):
    record = logging.LogRecord("cms.test", logging.INFO, __file__, 10, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestRedaction:
    def test_api_key(self):
        assert "abc123" not in redact_sensitive_data("X-API-Key: abc123")

    def test_math_token(self):
        assert "MTIzNDU.ZmZl" not in redact_sensitive_data("MathToken=MTIzNDU.ZmZl")

    def test_database_url(self):
        redacted = redact_sensitive_data("connect to postgres://cms:hunter2@db/cms failed")
        assert "hunter2" not in redacted
        assert redacted.endswith("failed")

    def test_akismet_host(self):
        redacted = redact_sensitive_data("POST https://a1b2c3d4e5f6.rest.akismet.com/1.1/comment-check")
        assert "a1b2c3d4e5f6" not in redacted

    def test_plain_message_unchanged(self):
        assert redact_sensitive_data("Created page 3") == "Created page 3"

    def test_filter_redacts_args(self):
        record = make_record("Login with %s", "api_key=secret-value")
        SensitiveDataFilter().filter(record)
        assert "secret-value" not in record.getMessage()


class TestRequestContext:
    def teardown_method(self):
        clear_request_context()

    def test_context_is_attached(self):
        set_request_context(request_id="req-1", member_id="editor")
        record = make_record("hello")

        RequestContextFilter().filter(record)

        assert record.request_id == "req-1"
        assert record.member_id == "editor"
        assert record.correlation_id == "-"

    def test_cleared_context(self):
        set_request_context(request_id="req-1")
        clear_request_context()
        record = make_record("hello")

        RequestContextFilter().filter(record)

        assert record.request_id == "-"


class TestFormatters:
    def test_json_formatter(self):
        record = make_record("Published page %d", 3, request_id="req-1", member_id="admin", page_id=3)

        data = json.loads(JSONFormatter("sitetree-cms").format(record))

        assert data["message"] == "Published page 3"
        assert data["service"] == "sitetree-cms"
        assert data["member_id"] == "admin"
        assert data["extra"] == {"page_id": 3}

    def test_development_formatter(self):
        record = make_record("Created page", request_id="req-1", member_id="admin")

        line = DevelopmentFormatter().format(record)

        assert "cms.test - Created page" in line
        assert "admin" in line


class TestTimer:
    def test_logs_duration(self, caplog):
        logger = logging.getLogger("cms.test.timer")
        with caplog.at_level(logging.DEBUG, logger="cms.test.timer"):
            with Timer("compare_versions", logger) as timer:
                pass

        assert timer.elapsed_ms >= 0
        assert "compare_versions completed in" in caplog.text
