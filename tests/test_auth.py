"""
Auth tests — session resolver, JWT tokens and role decorators.

Tests cover:
  - JWT token generation / verification / expiry
  - Bearer resolution, header identity only while API_AUTH_ENABLED is false
  - Role hierarchy: admin > editor > viewer
  - Content-Type enforcement on state-changing requests
  - Health endpoints need no caller
  - issue-token CLI command
"""

import jwt
import pytest

from practice_portal.auth import ROLE_HIERARCHY, Caller
from practice_portal.services.jwt_service import (
    ALGORITHM,
    decode_access_token,
    generate_access_token,
)
from tests.factories import ADMIN, CONTRACT, CREATOR, auth_headers


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def enforce_auth(monkeypatch):
    monkeypatch.setenv("API_AUTH_ENABLED", "true")


# ═════════════════════════════════════════════════════════════════════════════
# JWT
# ═════════════════════════════════════════════════════════════════════════════


class TestJWT:
    def test_round_trip(self):
        payload = decode_access_token(generate_access_token(CREATOR, CONTRACT, "editor"))
        assert payload["sub"] == CREATOR
        assert payload["contract"] == CONTRACT
        assert payload["role"] == "editor"
        assert payload["type"] == "access"
        assert payload["exp"] > payload["iat"]

    def test_contract_omitted_when_absent(self):
        payload = decode_access_token(generate_access_token(ADMIN, None, "admin"))
        assert "contract" not in payload

    def test_unique_jti(self):
        first = decode_access_token(generate_access_token(CREATOR, CONTRACT, "viewer"))
        second = decode_access_token(generate_access_token(CREATOR, CONTRACT, "viewer"))
        assert first["jti"] != second["jti"]

    def test_expired(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "JWT_ACCESS_EXPIRES", -10)
        token = generate_access_token(CREATOR, CONTRACT, "viewer")
        with pytest.raises(jwt.ExpiredSignatureError):
            decode_access_token(token)

    def test_wrong_secret(self):
        token = jwt.encode({"sub": CREATOR, "type": "access"}, "another-secret-key-of-sufficient-length", algorithm=ALGORITHM)
        with pytest.raises(jwt.InvalidTokenError):
            decode_access_token(token)

    def test_wrong_type(self, app):
        token = jwt.encode({"sub": CREATOR, "type": "refresh"}, app.config["JWT_SECRET_KEY"], algorithm=ALGORITHM)
        with pytest.raises(jwt.InvalidTokenError):
            decode_access_token(token)


# ═════════════════════════════════════════════════════════════════════════════
# Session resolution
# ═════════════════════════════════════════════════════════════════════════════


class TestResolution:
    def test_anonymous_request_rejected(self, client):
        res = client.get("/api/v1/practices/mine")
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHORIZED"

    def test_bearer_token_identifies_caller(self, client, enforce_auth):
        token = generate_access_token(CREATOR, CONTRACT, "viewer")
        res = client.post("/api/v1/practices", json={"title": "Token practice"}, headers=_bearer(token))
        assert res.status_code == 201
        practice = res.get_json()["practice"]
        assert practice["creator_matricula"] == CREATOR
        assert practice["contract"] == CONTRACT

    def test_headers_ignored_when_auth_enforced(self, client, enforce_auth):
        res = client.get("/api/v1/practices/mine", headers=auth_headers(CREATOR, CONTRACT))
        assert res.status_code == 401

    def test_expired_token_rejected(self, app, client, monkeypatch):
        monkeypatch.setitem(app.config, "JWT_ACCESS_EXPIRES", -10)
        token = generate_access_token(CREATOR, CONTRACT, "viewer")
        assert client.get("/api/v1/practices/mine", headers=_bearer(token)).status_code == 401

    def test_garbage_token_rejected(self, client):
        # A bearer header is never downgraded to header identity
        headers = {**_bearer("not-a-jwt"), **auth_headers(CREATOR)}
        assert client.get("/api/v1/practices/mine", headers=headers).status_code == 401

    def test_unknown_role_downgraded_to_viewer(self, client):
        res = client.get("/api/v1/practices/unassigned", headers=auth_headers(ADMIN, role="superuser"))
        assert res.status_code == 403

    def test_health_needs_no_caller(self, client, enforce_auth):
        res = client.get("/api/v1/health")
        assert res.status_code == 200
        assert res.get_json()["status"] == "ok"
        assert client.get("/api/v1/health/live").status_code == 200


# ═════════════════════════════════════════════════════════════════════════════
# Roles
# ═════════════════════════════════════════════════════════════════════════════


class TestRoles:
    @pytest.mark.parametrize("role,minimum,allowed", [
        ("admin", "admin", True),
        ("admin", "viewer", True),
        ("editor", "editor", True),
        ("editor", "admin", False),
        ("viewer", "editor", False),
        ("viewer", "viewer", True),
    ])
    def test_hierarchy(self, role, minimum, allowed):
        assert Caller(caller_id="1", contract=None, role=role).has_role(minimum) is allowed

    def test_every_role_includes_viewer(self):
        assert all("viewer" in granted for granted in ROLE_HIERARCHY.values())

    def test_admin_endpoint_with_admin_token(self, client, enforce_auth):
        token = generate_access_token(ADMIN, None, "admin")
        assert client.get("/api/v1/practices/unassigned", headers=_bearer(token)).status_code == 200

    def test_admin_endpoint_with_viewer_token(self, client, enforce_auth):
        token = generate_access_token(CREATOR, CONTRACT, "viewer")
        res = client.get("/api/v1/practices/unassigned", headers=_bearer(token))
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"


# ═════════════════════════════════════════════════════════════════════════════
# Content-Type / CLI
# ═════════════════════════════════════════════════════════════════════════════


def test_form_body_rejected(client):
    res = client.post(
        "/api/v1/practices",
        data="title=x",
        content_type="application/x-www-form-urlencoded",
        headers=auth_headers(CREATOR, CONTRACT),
    )
    assert res.status_code == 415


def test_issue_token_command(app):
    result = app.test_cli_runner().invoke(args=["issue-token", CREATOR, "--contract", CONTRACT, "--role", "editor"])
    assert result.exit_code == 0
    payload = decode_access_token(result.output.strip())
    assert payload["sub"] == CREATOR
    assert payload["role"] == "editor"
