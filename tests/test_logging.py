"""
CeyLog Logging Tests

Covers the JSON formatter, client address resolution, the request logging
middleware and the ``log_with_context`` helper.

Example usage:
    pytest tests/test_logging.py -v
"""

import json
import logging
import sys
from io import StringIO
from unittest.mock import Mock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from core.logging import (
    JSONFormatter,
    RequestLoggingMiddleware,
    get_client_ip,
    get_logger,
    log_with_context,
    setup_logging,
)


def capture_logger(name: str):
    """Logger writing JSON lines into a buffer, detached from the root logger."""
    buffer = StringIO()
    handler = logging.StreamHandler(buffer)
    handler.setFormatter(JSONFormatter())
    logger = logging.getLogger(name)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    return logger, buffer


def make_record(msg="Test message", exc_info=None, **extra):
    record = logging.LogRecord(
        name="ceylog.test",
        level=logging.INFO,
        pathname="/app/core/delivery.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:

    def test_standard_fields(self):
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "ceylog.test"
        assert data["msg"] == "Test message"
        assert data["time"].endswith("+00:00")
        assert "lineno" not in data

    def test_extra_fields_are_copied(self):
        data = json.loads(JSONFormatter().format(make_record(actor_id="user-1", count=3)))

        assert data["actor_id"] == "user-1"
        assert data["count"] == 3

    def test_unencodable_values_fall_back_to_str(self):
        data = json.loads(JSONFormatter().format(make_record(path_obj=object())))

        assert data["path_obj"].startswith("<object object")

    def test_exception_is_formatted(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = make_record(exc_info=sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        assert "ValueError: boom" in data["exception"]


class TestGetClientIp:

    def request(self, headers, host=None):
        request = Mock()
        request.headers = headers
        request.client = Mock(host=host) if host else None
        return request

    def test_first_forwarded_hop(self):
        assert get_client_ip(self.request({"x-forwarded-for": "203.0.113.9, 10.0.0.1"})) == "203.0.113.9"

    def test_real_ip_header(self):
        assert get_client_ip(self.request({"x-real-ip": " 203.0.113.10 "})) == "203.0.113.10"

    def test_socket_peer(self):
        assert get_client_ip(self.request({}, host="127.0.0.1")) == "127.0.0.1"

    def test_unknown(self):
        assert get_client_ip(self.request({})) == "unknown"


class TestRequestLoggingMiddleware:

    @pytest.fixture
    def client(self):
        app = FastAPI()
        app.add_middleware(RequestLoggingMiddleware)

        @app.get("/ping")
        async def ping():
            return {"ok": True}

        return TestClient(app)

    def test_request_id_header(self, client):
        response = client.get("/ping")

        assert response.status_code == 200
        assert len(response.headers["X-Request-ID"]) == 8

    def test_start_and_completion_are_logged(self, client, caplog):
        caplog.set_level(logging.INFO, logger="ceylog.requests")

        response = client.get("/ping", headers={"x-forwarded-for": "203.0.113.9"})

        messages = [r.getMessage() for r in caplog.records if r.name == "ceylog.requests"]
        assert messages == ["Request started: GET /ping", "Request completed: GET /ping"]
        completed = [r for r in caplog.records if r.name == "ceylog.requests"][-1]
        assert completed.status == 200
        assert completed.client_ip == "203.0.113.9"
        assert completed.request_id == response.headers["X-Request-ID"]


class TestLogWithContext:

    def test_without_request(self):
        logger, buffer = capture_logger("ceylog.test.context")

        log_with_context(logger, "info", "Audit write failed", actor_id="user-1")

        data = json.loads(buffer.getvalue().strip())
        assert data["msg"] == "Audit write failed"
        assert data["actor_id"] == "user-1"
        assert "path" not in data

    def test_with_request(self):
        logger, buffer = capture_logger("ceylog.test.context_request")
        request = Mock()
        request.url.path = "/api/send-report-email"
        request.method = "POST"
        request.state.request_id = "abcd1234"
        request.headers = {}
        request.client.host = "192.168.1.50"

        log_with_context(logger, "warning", "Report delivery failed", request=request, message_id="pm-1")

        data = json.loads(buffer.getvalue().strip())
        assert data["level"] == "WARNING"
        assert data["request_id"] == "abcd1234"
        assert data["path"] == "/api/send-report-email"
        assert data["method"] == "POST"
        assert data["client_ip"] == "192.168.1.50"
        assert data["message_id"] == "pm-1"


class TestSetupLogging:

    def test_named_logger_text_format(self):
        setup_logging(level="DEBUG", format_type="text", logger_name="ceylog.test.text")

        logger = get_logger("ceylog.test.text")
        assert logger.level == logging.DEBUG
        assert logger.propagate is False
        assert len(logger.handlers) == 1
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_named_logger_json_format(self):
        setup_logging(level="warning", format_type="json", logger_name="ceylog.test.json")

        logger = get_logger("ceylog.test.json")
        assert logger.level == logging.WARNING
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_unknown_level_falls_back_to_info(self):
        setup_logging(level="verbose", logger_name="ceylog.test.level")

        assert get_logger("ceylog.test.level").level == logging.INFO
