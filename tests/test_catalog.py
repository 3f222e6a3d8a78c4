"""
Catalog API tests — evaluation items and contract responsibles.

Covers:
  - item CRUD with role checks (editor+ writes, any caller reads)
  - an item with responses cannot be edited or deleted, only deactivated
  - contract responsible upsert (201 on create, 200 on replace), delete
  - the book listing (validated only, search, pagination)
"""

import pytest

from practice_portal.models import db
from practice_portal.models.audit import AuditLog
from practice_portal.models.evaluation import EvaluationItem, EvaluationResponse
from practice_portal.models.practice import Practice
from tests.factories import ADMIN, CONTRACT, make_practice, reload

ITEMS = "/api/v1/evaluation-items"
RESPONSIBLES = "/api/v1/contract-responsibles"
EDITOR = "500001"


def _answer(item_id):
    practice = make_practice(status="awaiting_mgmt_eval", owner="300001")
    db.session.add(EvaluationResponse(
        practice_id=practice.id, item_id=item_id, stage="sesmt",
        answer=False, evaluator_matricula="200001",
    ))
    db.session.commit()


# ═════════════════════════════════════════════════════════════════════════════
# Evaluation items
# ═════════════════════════════════════════════════════════════════════════════


class TestEvaluationItems:
    def test_create_and_list(self, api):
        res = api.post(ITEMS, EDITOR, json={"text": "Has measurable results", "is_eliminatory": False},
                       role="editor")
        assert res.status_code == 201
        item = res.get_json()
        assert item["is_active"] is True

        listed = api.get(ITEMS, "100001").get_json()
        assert [i["id"] for i in listed["items"]] == [item["id"]]

    def test_viewer_cannot_write(self, api):
        assert api.post(ITEMS, "100001", json={"text": "Nope"}).status_code == 403

    @pytest.mark.parametrize("payload", [{}, {"text": " "}, {"text": "ok", "is_eliminatory": "yes"}])
    def test_create_validation(self, api, payload):
        assert api.post(ITEMS, EDITOR, json=payload, role="editor").status_code == 400

    def test_inactive_items_hidden_by_default(self, api, checklist):
        item = db.session.get(EvaluationItem, checklist["A"])
        item.is_active = False
        db.session.commit()

        assert api.get(ITEMS, "100001").get_json()["total"] == 2
        assert api.get(f"{ITEMS}?include_inactive=1", "100001").get_json()["total"] == 3

    def test_unused_item_can_be_edited_and_deleted(self, api, checklist):
        url = f"{ITEMS}/{checklist['A']}"
        res = api.put(url, EDITOR, json={"text": "Reworded", "is_eliminatory": True}, role="editor")
        assert res.status_code == 200
        assert res.get_json()["text"] == "Reworded"
        assert res.get_json()["is_eliminatory"] is True

        assert api.delete(url, EDITOR, role="editor").status_code == 200
        assert reload(EvaluationItem, checklist["A"]) is None

    def test_used_item_is_frozen(self, api, checklist):
        _answer(checklist["E"])
        url = f"{ITEMS}/{checklist['E']}"

        res = api.put(url, EDITOR, json={"is_eliminatory": False}, role="editor")
        assert res.status_code == 409
        res = api.put(url, EDITOR, json={"text": "Something else"}, role="editor")
        assert res.status_code == 409
        assert api.delete(url, EDITOR, role="editor").status_code == 409

        stored = reload(EvaluationItem, checklist["E"])
        assert stored.is_eliminatory is True

    def test_used_item_can_be_deactivated(self, api, checklist):
        _answer(checklist["E"])
        res = api.put(f"{ITEMS}/{checklist['E']}", EDITOR, json={"is_active": False}, role="editor")
        assert res.status_code == 200
        assert res.get_json()["is_active"] is False

    def test_same_text_is_not_an_edit(self, api, checklist):
        _answer(checklist["A"])
        item = db.session.get(EvaluationItem, checklist["A"])
        res = api.put(f"{ITEMS}/{checklist['A']}", EDITOR, json={"text": item.text}, role="editor")
        assert res.status_code == 200

    def test_missing_item(self, api):
        assert api.put(f"{ITEMS}/999", EDITOR, json={"text": "x"}, role="editor").status_code == 404
        assert api.delete(f"{ITEMS}/999", EDITOR, role="editor").status_code == 404


# ═════════════════════════════════════════════════════════════════════════════
# Contract responsibles
# ═════════════════════════════════════════════════════════════════════════════


class TestContractResponsibles:
    PAYLOAD = {"contract_code": "C-300", "sesmt_reviewer": "210000", "management_reviewer": "310000"}

    def test_upsert_creates_then_replaces(self, api):
        res = api.post(RESPONSIBLES, ADMIN, json=self.PAYLOAD, role="admin")
        assert res.status_code == 201
        created = res.get_json()

        res = api.post(RESPONSIBLES, ADMIN, json={**self.PAYLOAD, "sesmt_reviewer": "220000"}, role="admin")
        assert res.status_code == 200
        assert res.get_json()["id"] == created["id"]
        assert res.get_json()["sesmt_reviewer"] == "220000"

        listed = api.get(RESPONSIBLES, "100001").get_json()
        assert listed["total"] == 1

    def test_new_mapping_used_for_next_practice(self, api):
        api.post(RESPONSIBLES, ADMIN, json=self.PAYLOAD, role="admin")
        res = api.post("/api/v1/practices", "100001", json={"title": "Routed"}, contract="C-300")
        assert res.get_json()["practice"]["current_owner"] == "210000"

    def test_configuring_contract_assigns_stalled_practices(self, api):
        stalled_sesmt = make_practice(status="awaiting_sesmt_eval", owner=None, contract="C-300")
        stalled_mgmt = make_practice(status="awaiting_mgmt_eval", owner=None, contract="C-300")
        owned = make_practice(status="awaiting_sesmt_eval", owner="999999", contract="C-300")
        elsewhere = make_practice(status="awaiting_sesmt_eval", owner=None, contract=CONTRACT)

        res = api.post(RESPONSIBLES, ADMIN, json=self.PAYLOAD, role="admin")
        assert res.status_code == 201
        assert res.get_json()["reassigned_practice_ids"] == [stalled_sesmt.id, stalled_mgmt.id]

        assert reload(Practice, stalled_sesmt.id).current_owner == "210000"
        assert reload(Practice, stalled_mgmt.id).current_owner == "310000"
        assert reload(Practice, owned.id).current_owner == "999999"
        assert reload(Practice, elsewhere.id).current_owner is None

        log = db.session.query(AuditLog).filter_by(
            practice_id=stalled_sesmt.id, action="practice.reassign",
        ).one()
        assert log.actor == ADMIN

        listed = api.get("/api/v1/practices/unassigned", ADMIN, role="admin").get_json()
        assert [p["id"] for p in listed["items"]] == [elsewhere.id]

    def test_editor_cannot_configure_reviewers(self, api):
        assert api.post(RESPONSIBLES, EDITOR, json=self.PAYLOAD, role="editor").status_code == 403

    def test_reviewers_required(self, api):
        res = api.post(RESPONSIBLES, ADMIN, json={"contract_code": "C-300"}, role="admin")
        assert res.status_code == 400
        assert res.get_json()["details"] == {"sesmt_reviewer": "required"}

    def test_delete(self, api, contract_mapping):
        mapping_id = api.get(RESPONSIBLES, ADMIN, role="admin").get_json()["items"][0]["id"]
        assert api.delete(f"{RESPONSIBLES}/{mapping_id}", ADMIN, role="admin").status_code == 200
        assert api.delete(f"{RESPONSIBLES}/{mapping_id}", ADMIN, role="admin").status_code == 404


# ═════════════════════════════════════════════════════════════════════════════
# Book
# ═════════════════════════════════════════════════════════════════════════════


class TestBook:
    def test_only_validated_practices(self, api):
        published = make_practice(status="awaiting_annual_vote", validated=True, title="Published")
        make_practice(status="concluded", validated=False, title="Rejected")
        make_practice(status="awaiting_validation", owner="900001", title="Pending")

        res = api.get("/api/v1/book", "100001", contract=CONTRACT)
        assert res.status_code == 200
        body = res.get_json()
        assert [p["id"] for p in body["items"]] == [published.id]
        assert body["total"] == 1

    def test_search_and_pagination(self, api):
        for i in range(5):
            make_practice(status="concluded", validated=True, title=f"Scaffold tip {i}")
        make_practice(status="concluded", validated=True, title="Forklift", description="scaffold nearby")
        make_practice(status="concluded", validated=True, title="Unrelated")

        res = api.get("/api/v1/book?search=SCAFFOLD&page=2&limit=4", "100001")
        body = res.get_json()
        assert body["total"] == 6
        assert body["page"] == 2
        assert body["limit"] == 4
        assert len(body["items"]) == 2

    def test_limit_capped(self, api):
        res = api.get("/api/v1/book?limit=1000", "100001")
        assert res.get_json()["limit"] == 100

    @pytest.mark.parametrize("query", ["page=0", "page=abc", "limit=-1"])
    def test_bad_paging(self, api, query):
        assert api.get(f"/api/v1/book?{query}", "100001").status_code == 400
