"""
Logging setup for the portal.

Every workflow event (creation, evaluation, validation, vote, round close)
is logged by its service with structured ``extra`` fields: practice_id,
from_status / to_status, caller_id and so on. This module decides how those
records are rendered:

    LOG_FORMAT=json      one JSON object per line (log aggregators)
    LOG_FORMAT=readable  colored single line for a developer terminal

Without LOG_FORMAT, production renders JSON and development/testing renders
readable lines. LOG_LEVEL overrides the level (DEBUG in dev, INFO in prod).
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Structured ``extra`` keys copied into JSON lines when present
WORKFLOW_KEYS = (
    "practice_id",
    "contract",
    "stage",
    "from_status",
    "to_status",
    "round_type",
    "eliminated",
    "item_id",
)
REQUEST_KEYS = ("method", "path", "status", "duration_ms", "remote_addr", "request_id")


def _request_caller_id():
    """Matricula of the caller behind the current request, when there is one."""
    if not has_request_context():
        return None
    caller = getattr(g, "caller", None)
    return caller.caller_id if caller is not None else None


class CallerContextFilter(logging.Filter):
    """Stamp ``caller_id`` on records emitted while serving a request."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "caller_id", None) is None:
            record.caller_id = _request_caller_id()
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in ("caller_id",) + WORKFLOW_KEYS + REQUEST_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """``12:01:33 INFO     practice_portal.services.checklist: msg #42 sesmt→mgmt by 200001``"""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        parts = []
        practice_id = getattr(record, "practice_id", None)
        if practice_id is not None:
            parts.append(f"#{practice_id}")
        from_status = getattr(record, "from_status", None)
        to_status = getattr(record, "to_status", None)
        if from_status and to_status:
            parts.append(f"{from_status}→{to_status}")
        caller_id = getattr(record, "caller_id", None)
        if caller_id:
            parts.append(f"by {caller_id}")
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            parts.append(f"[{duration:.0f}ms]")
        suffix = (" " + " ".join(parts)) if parts else ""

        line = f"{color}{ts} {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}{suffix}"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install one stderr handler on the root logger for the app's environment."""
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if is_prod else "DEBUG")
    level = getattr(logging, level_name.upper(), logging.INFO)

    fmt = os.getenv("LOG_FORMAT", "json" if is_prod else "readable").lower()
    formatter = JSONFormatter() if fmt == "json" else ReadableFormatter()

    # Replace rather than append so repeated create_app() calls don't stack handlers
    root = logging.getLogger()
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handler.addFilter(CallerContextFilter())
    handler.setLevel(level)
    root.addHandler(handler)
    root.setLevel(level)

    for noisy in ("werkzeug", "sqlalchemy.engine", "alembic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    app.logger.setLevel(level)

    if not is_testing:
        app.logger.info("Logging configured: level=%s format=%s", level_name, fmt)
