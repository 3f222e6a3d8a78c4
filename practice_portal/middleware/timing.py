"""
Request timing middleware.

Every API response carries X-Request-ID and X-Request-Duration-Ms. Workflow
writes (POST/PUT/DELETE) are logged at INFO with the practice they touched,
taken from the route's ``practice_id``; reads only at DEBUG unless slow or failed.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

SLOW_THRESHOLD_MS = 1000
WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def _practice_id():
    """practice_id of the matched route, or of the ballot body for POST /votes."""
    view_args = request.view_args or {}
    if "practice_id" in view_args:
        return view_args["practice_id"]
    if request.method == "POST" and request.is_json:
        body = request.get_json(silent=True)
        if isinstance(body, dict) and isinstance(body.get("practice_id"), int):
            return body["practice_id"]
    return None


def init_request_timing(app: Flask):
    @app.before_request
    def _start_timer():
        g.request_start = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

    @app.after_request
    def _log_request(response):
        start = getattr(g, "request_start", None)
        if start is None:
            return response

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"
        response.headers["X-Request-ID"] = g.request_id

        if not request.path.startswith("/api/v1/") or request.path.startswith("/api/v1/health"):
            return response

        extra = {
            "method": request.method,
            "path": request.path,
            "status": response.status_code,
            "duration_ms": duration_ms,
            "request_id": g.request_id,
            "practice_id": _practice_id(),
        }
        if response.status_code >= 500:
            level = logging.ERROR
        elif duration_ms > SLOW_THRESHOLD_MS:
            level = logging.WARNING
        elif request.method in WRITE_METHODS:
            level = logging.INFO
        else:
            level = logging.DEBUG
        logger.log(level, "%s %s %d", request.method, request.path, response.status_code, extra=extra)
        return response
