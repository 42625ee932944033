"""Tests for request-scoped logging context and the JSON formatter."""
from __future__ import annotations

import json
import logging

import pytest

from core.logging_config import (
    REQUEST_ID_HEADER,
    JSONFormatter,
    RequestContextFilter,
    bind_request_context,
    current_request_context,
    get_context_logger,
    reset_request_context,
    set_request_user,
)


class RecordList(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records = []
        self.addFilter(RequestContextFilter())

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@pytest.fixture
def captured():
    handler = RecordList()
    logger = logging.getLogger("api.app")
    previous = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    yield handler
    logger.removeHandler(handler)
    logger.setLevel(previous)


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("domain.pipeline", logging.INFO, __file__, 10, "Moved lead 3", None, None)
    for name, value in extra.items():
        setattr(record, name, value)
    return record


class TestRequestContext:
    def test_fields_default_outside_a_request(self):
        record = make_record()

        RequestContextFilter().filter(record)

        assert (record.request_id, record.user_id) == ("-", "-")

    def test_bound_context_reaches_records(self):
        token = bind_request_context("req-42")
        try:
            set_request_user(7)
            record = make_record()
            RequestContextFilter().filter(record)
        finally:
            reset_request_context(token)

        assert (record.request_id, record.user_id) == ("req-42", 7)
        assert current_request_context() is None

    def test_explicit_extra_wins(self):
        token = bind_request_context("req-1")
        try:
            record = make_record(user_id=99)
            RequestContextFilter().filter(record)
        finally:
            reset_request_context(token)

        assert record.user_id == 99

    def test_set_user_without_request_is_ignored(self):
        set_request_user(5)

        assert current_request_context() is None


class TestJSONFormatter:
    def test_includes_context_and_entity(self):
        record = make_record(
            request_id="req-9", user_id=3, entity_type="lead", entity_id=12, extra_data={"to": "qualified"}
        )

        body = json.loads(JSONFormatter().format(record))

        assert body["message"] == "Moved lead 3"
        assert body["request_id"] == "req-9"
        assert body["user_id"] == 3
        assert (body["entity_type"], body["entity_id"]) == ("lead", 12)
        assert body["extra"] == {"to": "qualified"}

    def test_omits_unbound_context(self):
        record = make_record()
        RequestContextFilter().filter(record)

        body = json.loads(JSONFormatter().format(record))

        assert "request_id" not in body
        assert "user_id" not in body


class TestContextLogger:
    def test_per_call_extra_merges_over_fixed_fields(self):
        log = get_context_logger("domain.pipeline", entity_type="deal", entity_id=4)

        msg, kwargs = log.process("moved", {"extra": {"entity_id": 5, "extra_data": {}}})

        assert kwargs["extra"] == {"entity_type": "deal", "entity_id": 5, "extra_data": {}}


class TestRequestMiddleware:
    def test_request_id_is_generated_and_echoed(self, anon_client, captured):
        response = anon_client.get("/api/health")

        request_id = response.headers[REQUEST_ID_HEADER]
        assert len(request_id) == 16
        assert captured.records[-1].request_id == request_id

    def test_incoming_request_id_is_kept(self, anon_client):
        response = anon_client.get("/api/health", headers={REQUEST_ID_HEADER: "edge-abc"})

        assert response.headers[REQUEST_ID_HEADER] == "edge-abc"

    def test_authenticated_user_is_logged(self, anon_client, auth_headers, sample_user, captured):
        response = anon_client.get("/api/leads", headers=auth_headers)

        assert response.status_code == 200
        (record,) = [r for r in captured.records if r.getMessage() == "GET /api/leads -> 200"]
        assert record.user_id == sample_user.id
        assert record.extra_data["status"] == 200
