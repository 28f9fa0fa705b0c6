"""
Logging Tests

Run with: pytest tests/test_logging.py -v
"""

import json
import logging

import pytest

from seanotes.logging_utils import (
    SecretsSanitizer,
    StructuredFormatter,
    Timer,
    get_request_id,
    set_request_id,
)


def make_record(message, *args, **extra):
    record = logging.LogRecord("seanotes.test", logging.INFO, __file__, 1, message, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestSanitizer:

    @pytest.mark.parametrize("raw, expected", [
        ("key sk-abcdefghijkl123 leaked", "key sk-*** leaked"),
        ("key sk-ant-api03-abcdefghijkl", "key sk-***"),
        ("Authorization: Bearer abc.def-123", "Authorization: Bearer ***"),
        ("login password=hunter22 failed", "login password=*** failed"),
        ('{"password": "hunter22"}', '{"password": "***"}'),
        ("nothing secret here", "nothing secret here"),
    ])
    def test_sanitize(self, raw, expected):
        assert SecretsSanitizer.sanitize(raw) == expected

    def test_filter_rewrites_formatted_message(self):
        record = make_record("calling with %s", "sk-abcdefghijkl123")

        assert SecretsSanitizer().filter(record) is True
        assert record.getMessage() == "calling with sk-***"

    def test_filter_leaves_clean_records_alone(self):
        record = make_record("note %s saved", "n1")
        SecretsSanitizer().filter(record)

        assert record.args == ("n1",)


class TestStructuredFormatter:

    def test_json_output(self):
        set_request_id("req-123")
        record = make_record("saved", user_id="u1", duration_ms=3.5)

        data = json.loads(StructuredFormatter(json_output=True).format(record))

        assert data["message"] == "saved"
        assert data["level"] == "INFO"
        assert data["logger"] == "seanotes.test"
        assert data["request_id"] == "req-123"
        assert data["user_id"] == "u1"
        assert data["duration_ms"] == 3.5
        assert data["timestamp"].endswith("Z")

    def test_text_output(self):
        set_request_id("abcdefgh-ijkl")
        record = make_record("saved", status_code=201)

        line = StructuredFormatter().format(record)

        assert "[INFO    ]" in line
        assert "[abcdefgh]" in line
        assert line.endswith("saved (status_code=201)")


def test_request_id_generated_when_missing():
    generated = set_request_id()
    assert len(generated) == 36
    assert get_request_id() == generated


def test_timer_logs_duration(caplog):
    log = logging.getLogger("seanotes.test.timer")

    with caplog.at_level(logging.DEBUG, logger="seanotes.test.timer"):
        with Timer(log, "embed") as timer:
            pass

    assert timer.duration_ms >= 0
    assert caplog.records[-1].getMessage() == "Operation completed: embed"


def test_timer_logs_failure_and_reraises(caplog):
    log = logging.getLogger("seanotes.test.timer")

    with caplog.at_level(logging.DEBUG, logger="seanotes.test.timer"):
        with pytest.raises(RuntimeError):
            with Timer(log, "embed"):
                raise RuntimeError("boom")

    assert caplog.records[-1].levelno == logging.ERROR
    assert caplog.records[-1].getMessage() == "Operation failed: embed"


def test_requests_are_logged_with_request_id(client, caplog):
    with caplog.at_level(logging.INFO, logger="seanotes.requests"):
        response = client.get("/api/health", headers={"X-Request-ID": "trace-1"})

    assert response.headers["X-Request-ID"] == "trace-1"
    record = next(r for r in caplog.records if r.name == "seanotes.requests")
    assert record.getMessage() == "GET /api/health -> 200"
    assert record.status_code == 200
    assert record.path == "/api/health"
