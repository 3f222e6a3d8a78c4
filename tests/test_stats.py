"""
Stats Aggregator tests.

Covers:
  - total / in_review / rejected_or_eliminated counts
  - contract scoping (service and endpoint)
  - a practice both eliminated and unvalidated is counted once
"""

from practice_portal.services.stats_service import get_practice_stats
from tests.factories import ADMIN, CONTRACT, OTHER_CONTRACT, make_practice


def _seed():
    make_practice(status="awaiting_sesmt_eval", owner="200001")
    make_practice(status="awaiting_quarterly_vote", validated=True)
    make_practice(status="concluded", eliminated=True)
    make_practice(status="concluded", validated=False, validation_comment="No")
    make_practice(status="concluded", validated=True)
    make_practice(status="awaiting_mgmt_eval", owner=None, contract=OTHER_CONTRACT)


def test_empty_table():
    assert get_practice_stats() == {
        "total": 0, "in_review": 0, "rejected_or_eliminated": 0, "contract": None,
    }


def test_counts_all_contracts():
    _seed()
    stats = get_practice_stats()
    assert stats["total"] == 6
    assert stats["in_review"] == 3
    assert stats["rejected_or_eliminated"] == 2


def test_counts_one_contract():
    _seed()
    stats = get_practice_stats(CONTRACT)
    assert stats == {
        "total": 5, "in_review": 2, "rejected_or_eliminated": 2, "contract": CONTRACT,
    }


def test_eliminated_and_rejected_counted_once():
    make_practice(status="concluded", eliminated=True, validated=False)
    assert get_practice_stats()["rejected_or_eliminated"] == 1


def test_endpoint_scopes_to_caller_contract(api):
    _seed()
    res = api.get("/api/v1/practices/stats", "100001", contract=OTHER_CONTRACT)
    assert res.status_code == 200
    assert res.get_json()["total"] == 1

    # a viewer cannot widen the scope
    res = api.get("/api/v1/practices/stats?contract=", "100001", contract=OTHER_CONTRACT)
    assert res.get_json()["contract"] == OTHER_CONTRACT


def test_endpoint_admin_sees_everything(api):
    _seed()
    res = api.get("/api/v1/practices/stats", ADMIN, role="admin")
    assert res.get_json()["total"] == 6
    res = api.get(f"/api/v1/practices/stats?contract={CONTRACT}", ADMIN, role="admin")
    assert res.get_json()["total"] == 5
