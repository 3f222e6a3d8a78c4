"""
Good Practice Portal
Session resolver & authorization decorators.

Every /api/v1/* request is resolved to a ``Caller`` stored on ``flask.g``:
    caller_id  — the user's matricula (actor / voter / reviewer key)
    contract   — the user's root contract, or None
    role       — admin | editor | viewer

Resolution order:
    1. ``Authorization: Bearer <jwt>`` issued by services/jwt_service.py
    2. Trusted headers ``X-User-Matricula`` / ``X-User-Contract`` /
       ``X-User-Role`` — only when API_AUTH_ENABLED is false
       (development and tests)

Configuration (env vars):
    API_AUTH_ENABLED  — set to "false" to allow header identity (development only)
"""

import functools
import logging
import os
from dataclasses import dataclass

import jwt as pyjwt
from flask import current_app, g, jsonify, request

from practice_portal.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# ── Roles ────────────────────────────────────────────────────────────────────

ROLES = {"admin", "editor", "viewer"}

# Role hierarchy: admin > editor > viewer
ROLE_HIERARCHY = {
    "admin": {"admin", "editor", "viewer"},
    "editor": {"editor", "viewer"},
    "viewer": {"viewer"},
}

# Paths that never need a caller
AUTH_SKIP_PREFIXES = ("/api/v1/health",)


@dataclass(frozen=True)
class Caller:
    """Identity of the user behind the current request."""
    caller_id: str
    contract: str | None
    role: str

    def has_role(self, minimum_role: str) -> bool:
        return minimum_role in ROLE_HIERARCHY.get(self.role, set())


def _is_auth_enabled() -> bool:
    """Check whether token authentication is enforced (env var or app config)."""
    env_val = os.getenv("API_AUTH_ENABLED", "")
    if env_val:
        return env_val.lower() not in ("false", "0", "no", "off")
    try:
        return str(current_app.config.get("API_AUTH_ENABLED", "true")).lower() not in ("false", "0", "no", "off")
    except RuntimeError:
        # Outside app context
        return True


def _normalize_role(raw) -> str:
    role = (raw or "viewer").strip().lower()
    if role not in ROLES:
        logger.warning("Unknown role '%s' for caller, defaulting to 'viewer'", role)
        role = "viewer"
    return role


def _caller_from_token(token: str) -> Caller | None:
    try:
        payload = decode_access_token(token)
    except pyjwt.ExpiredSignatureError:
        logger.info("Expired access token presented on %s", request.path)
        return None
    except pyjwt.InvalidTokenError as exc:
        logger.warning("Invalid access token on %s: %s", request.path, exc)
        return None

    matricula = str(payload.get("sub") or "").strip()
    if not matricula:
        return None
    return Caller(
        caller_id=matricula,
        contract=payload.get("contract") or None,
        role=_normalize_role(payload.get("role")),
    )


def _caller_from_headers() -> Caller | None:
    matricula = request.headers.get("X-User-Matricula", "").strip()
    if not matricula:
        return None
    return Caller(
        caller_id=matricula,
        contract=request.headers.get("X-User-Contract", "").strip() or None,
        role=_normalize_role(request.headers.get("X-User-Role")),
    )


def resolve_caller() -> Caller | None:
    """Resolve the current request's caller, or None when anonymous."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return _caller_from_token(auth_header[7:])
    if not _is_auth_enabled():
        return _caller_from_headers()
    return None


def current_caller() -> Caller | None:
    return getattr(g, "caller", None)


# ── Decorators ───────────────────────────────────────────────────────────────

def require_caller(f):
    """Decorator: reject anonymous requests with 401."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if current_caller() is None:
            return jsonify({
                "error": "Authentication required",
                "code": "ERR_UNAUTHORIZED",
            }), 401
        return f(*args, **kwargs)
    return decorated


def require_role(minimum_role: str):
    """
    Decorator: require a minimum role level.

    Usage:
        @require_caller
        @require_role("admin")
        def close_round(practice_id): ...

    Role hierarchy: admin > editor > viewer
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            caller = current_caller()
            if caller is None:
                return jsonify({"error": "Authentication required", "code": "ERR_UNAUTHORIZED"}), 401
            if not caller.has_role(minimum_role):
                logger.warning(
                    "Access denied: role '%s' tried to access '%s'-level endpoint %s",
                    caller.role, minimum_role, request.path,
                )
                return jsonify({"error": "Insufficient permissions", "code": "ERR_FORBIDDEN"}), 403
            return f(*args, **kwargs)
        return decorated
    return decorator


# ── Content-Type enforcement ─────────────────────────────────────────────────

def _check_content_type():
    """
    For state-changing requests with a body, require
    Content-Type: application/json. HTML forms cannot send that content type.
    """
    if request.method in ("POST", "PUT", "PATCH", "DELETE"):
        ct = request.content_type or ""
        if "application/json" not in ct and request.content_length and request.content_length > 0:
            return jsonify({
                "error": "Content-Type must be application/json for state-changing requests"
            }), 415
    return None


def init_auth(app):
    """
    Install the session resolver on the Flask app.

    Sets ``g.caller`` for every API request; endpoints decide with
    ``require_caller`` / ``require_role`` whether anonymity is acceptable.
    """
    @app.before_request
    def _resolve_request_caller():
        g.caller = None
        if not request.path.startswith("/api/v1/"):
            return None
        if request.path.startswith(AUTH_SKIP_PREFIXES):
            return None
        if request.method == "OPTIONS":
            return None

        ct_error = _check_content_type()
        if ct_error:
            return ct_error

        g.caller = resolve_caller()
        return None

    logger.info("Auth middleware installed (token auth enforced=%s)", _is_auth_enabled())
