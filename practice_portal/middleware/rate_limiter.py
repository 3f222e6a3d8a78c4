"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in practice_portal/__init__.py with no
default limits; this module applies granular limits per route category.

Usage:
    from practice_portal.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)

WORKFLOW_LIMIT = "60/minute"
VOTING_LIMIT = "30/minute"
CATALOG_LIMIT = "120/minute"


def caller_rate_limit_key():
    """Rate limit key: the resolved caller's matricula, else remote IP."""
    caller = getattr(g, "caller", None)
    if caller:
        return f"caller:{caller.caller_id}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per caller, IP fallback):
        - Workflow endpoints:  60/minute
        - Voting endpoints:    30/minute
        - Catalog endpoints:   120/minute
        - Health check:        exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name, limit in (
        ("practice", WORKFLOW_LIMIT),
        ("voting", VOTING_LIMIT),
        ("catalog", CATALOG_LIMIT),
    ):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(limit, key_func=caller_rate_limit_key)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured: workflow: %s, voting: %s, catalog: %s",
        WORKFLOW_LIMIT, VOTING_LIMIT, CATALOG_LIMIT,
    )
