"""
Middleware tests — request timing log, request ids, log rendering, security headers.
"""

import json
import logging
from types import SimpleNamespace

from flask import g

from practice_portal.middleware.logging_config import CallerContextFilter, JSONFormatter
from tests.factories import CONTRACT, VALIDATOR, make_practice

TIMING_LOGGER = "practice_portal.middleware.timing"


def _timing_records(caplog):
    return [r for r in caplog.records if r.name == TIMING_LOGGER]


class TestRequestTiming:
    def test_refused_write_logged_with_practice(self, api, caplog):
        practice = make_practice(status="awaiting_validation", owner=VALIDATOR)
        with caplog.at_level(logging.DEBUG, logger=TIMING_LOGGER):
            res = api.post(f"/api/v1/practices/{practice.id}/validation", "555555", json={"approve": True})
        assert res.status_code == 403

        [record] = _timing_records(caplog)
        assert record.levelno == logging.INFO
        assert record.practice_id == practice.id
        assert record.method == "POST"
        assert record.status == 403
        assert record.request_id == res.headers["X-Request-ID"]

    def test_ballot_practice_taken_from_body(self, api, caplog):
        practice = make_practice(status="awaiting_annual_vote", validated=True)
        with caplog.at_level(logging.DEBUG, logger=TIMING_LOGGER):
            api.post("/api/v1/votes", "400001", json={"practice_id": practice.id, "round_type": "annual"})
        [record] = _timing_records(caplog)
        assert record.practice_id == practice.id

    def test_reads_logged_at_debug(self, api, caplog):
        practice = make_practice()
        with caplog.at_level(logging.DEBUG, logger=TIMING_LOGGER):
            api.get(f"/api/v1/practices/{practice.id}", "100001", contract=CONTRACT)
        [record] = _timing_records(caplog)
        assert record.levelno == logging.DEBUG
        assert record.practice_id == practice.id

    def test_health_not_logged(self, client, caplog):
        with caplog.at_level(logging.DEBUG, logger=TIMING_LOGGER):
            res = client.get("/api/v1/health/live")
        assert "X-Request-Duration-Ms" in res.headers
        assert _timing_records(caplog) == []

    def test_request_id_echoed_or_generated(self, client):
        res = client.get("/api/v1/health/live", headers={"X-Request-ID": "trace-abc"})
        assert res.headers["X-Request-ID"] == "trace-abc"

        res = client.get("/api/v1/health/live")
        assert len(res.headers["X-Request-ID"]) == 12


class TestLogRendering:
    def test_json_line_carries_caller_and_practice(self, app):
        record = logging.LogRecord("practice_portal.services.checklist", logging.INFO, __file__, 1,
                                   "Checklist scored", None, None)
        record.practice_id = 7
        record.from_status = "awaiting_sesmt_eval"
        record.to_status = "awaiting_mgmt_eval"

        with app.test_request_context("/api/v1/practices/7/sesmt-evaluation", method="POST"):
            g.caller = SimpleNamespace(caller_id="200001")
            assert CallerContextFilter().filter(record) is True

        entry = json.loads(JSONFormatter().format(record))
        assert entry["caller_id"] == "200001"
        assert entry["practice_id"] == 7
        assert entry["to_status"] == "awaiting_mgmt_eval"
        assert entry["message"] == "Checklist scored"

    def test_explicit_caller_kept_outside_request(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        record.caller_id = "000001"
        CallerContextFilter().filter(record)
        assert json.loads(JSONFormatter().format(record))["caller_id"] == "000001"


class TestSecurityHeaders:
    def test_json_responses_hardened(self, api):
        res = api.get("/api/v1/practices/mine", "100001")
        assert res.headers["X-Content-Type-Options"] == "nosniff"
        assert res.headers["X-Frame-Options"] == "DENY"
        assert res.headers["Cache-Control"] == "no-store"
