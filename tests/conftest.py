"""
Shared pytest fixtures for the Good Practice Portal test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - checklist: two ordinary items and one eliminatory item
    - contract_mapping: reviewer mapping for CONTRACT
    - api: small helper that sends requests as a given matricula
"""

import pytest

from practice_portal import create_app
from practice_portal.models import db as _db
from practice_portal.models.contract import ContractResponsible
from practice_portal.models.evaluation import EvaluationItem
from tests.factories import (
    CONTRACT,
    CREATOR,
    MGMT_REVIEWER,
    SESMT_REVIEWER,
    VALIDATOR,
    answers,
    auth_headers,
)


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


class ApiHelper:
    """Thin wrapper so tests read as "who does what"."""

    def __init__(self, client):
        self.client = client

    def get(self, path, matricula, contract=None, role="viewer", **kwargs):
        return self.client.get(path, headers=auth_headers(matricula, contract, role), **kwargs)

    def post(self, path, matricula, json=None, contract=None, role="viewer"):
        return self.client.post(path, json=json, headers=auth_headers(matricula, contract, role))

    def put(self, path, matricula, json=None, contract=None, role="viewer"):
        return self.client.put(path, json=json, headers=auth_headers(matricula, contract, role))

    def delete(self, path, matricula, contract=None, role="viewer"):
        return self.client.delete(path, headers=auth_headers(matricula, contract, role))


@pytest.fixture()
def api(client):
    return ApiHelper(client)


@pytest.fixture()
def checklist():
    """Active checklist: items A and B are ordinary, item E is eliminatory."""
    a = EvaluationItem(text="Applicable to other sites", is_eliminatory=False)
    b = EvaluationItem(text="Reduces cost or waste", is_eliminatory=False)
    e = EvaluationItem(text="Creates an unmitigated safety risk", is_eliminatory=True)
    _db.session.add_all([a, b, e])
    _db.session.commit()
    return {"A": a.id, "B": b.id, "E": e.id}


@pytest.fixture()
def contract_mapping():
    mapping = ContractResponsible(
        contract_code=CONTRACT,
        sesmt_reviewer=SESMT_REVIEWER,
        management_reviewer=MGMT_REVIEWER,
    )
    _db.session.add(mapping)
    _db.session.commit()
    return mapping


@pytest.fixture()
def create_practice(api):
    """Factory: create a practice through the API and return its JSON."""

    def _create(title="Reusable scaffold anchors", creator=CREATOR, contract=CONTRACT):
        res = api.post("/api/v1/practices", creator, json={"title": title}, contract=contract)
        assert res.status_code == 201, res.get_json()
        return res.get_json()["practice"]

    return _create


@pytest.fixture()
def advance(api, checklist):
    """Drive a practice forward through the happy path up to ``stop_at``."""

    def _advance(practice_id, stop_at):
        order = ["awaiting_mgmt_eval", "awaiting_validation", "awaiting_quarterly_vote"]
        res = api.post(
            f"/api/v1/practices/{practice_id}/sesmt-evaluation", SESMT_REVIEWER,
            json={"responses": answers(checklist)},
        )
        assert res.status_code == 200, res.get_json()
        if stop_at == order[0]:
            return res.get_json()["practice"]
        res = api.post(
            f"/api/v1/practices/{practice_id}/management-evaluation", MGMT_REVIEWER,
            json={"responses": answers(checklist), "relevance": 4},
        )
        assert res.status_code == 200, res.get_json()
        if stop_at == order[1]:
            return res.get_json()["practice"]
        res = api.post(
            f"/api/v1/practices/{practice_id}/validation", VALIDATOR,
            json={"approve": True},
        )
        assert res.status_code == 200, res.get_json()
        return res.get_json()["practice"]

    return _advance
