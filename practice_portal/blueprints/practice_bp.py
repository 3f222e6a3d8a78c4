"""Practice workflow blueprint.

URL prefix: /api/v1

Routes:
    POST   /api/v1/practices                              — create (routes to SESMT reviewer)
    GET    /api/v1/practices/mine                         — practices I created
    GET    /api/v1/practices/pending?stage=               — practices waiting for me
    GET    /api/v1/practices/unassigned                   — stalled practices (admin)
    GET    /api/v1/practices/stats                        — dashboard counters
    GET    /api/v1/practices/<id>                         — detail with responses per stage
    GET    /api/v1/practices/<id>/history                 — audit trail
    GET    /api/v1/practices/<id>/overview                — stage timeline, reviewers, committee votes
    PUT    /api/v1/practices/<id>/involved                — replace co-authors (creator / editor+)
    POST   /api/v1/practices/<id>/sesmt-evaluation        — SESMT checklist
    POST   /api/v1/practices/<id>/management-evaluation   — management checklist + relevance
    POST   /api/v1/practices/<id>/validation              — approve / reject
    GET    /api/v1/book                                   — validated practices (publication)

The caller comes from ``g.caller`` (see practice_portal.auth). Service layer
owns all business logic and commits; service exceptions map to HTTP through
``register_error_handlers``.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from practice_portal.auth import current_caller, require_caller, require_role
from practice_portal.services import (
    checklist,
    practice_service,
    stats_service,
    validation_gate,
)
from practice_portal.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)

practice_bp = Blueprint("practice", __name__, url_prefix="/api/v1")
register_error_handlers(practice_bp)


def _json_body() -> tuple[dict | None, tuple | None]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None, api_error(E.VALIDATION_REQUIRED, "JSON object body is required")
    return data, None


# ═════════════════════════════════════════════════════════════════════════
# Creation & reads
# ═════════════════════════════════════════════════════════════════════════


@practice_bp.route("/practices", methods=["POST"])
@require_caller
def create_practice():
    """Body: {title, description?, problem_description?, objective?, results?}"""
    data, err = _json_body()
    if err:
        return err
    caller = current_caller()
    result = practice_service.create_practice(data, caller.caller_id, caller.contract)
    return jsonify(result), 201


@practice_bp.route("/practices/mine", methods=["GET"])
@require_caller
def list_mine():
    items = practice_service.list_my_practices(current_caller().caller_id)
    return jsonify({"items": items, "total": len(items)}), 200


@practice_bp.route("/practices/pending", methods=["GET"])
@require_caller
def list_pending():
    """Query params: stage — sesmt | management | validation (optional)"""
    stage = request.args.get("stage") or None
    items = practice_service.list_pending_reviews(current_caller().caller_id, stage)
    return jsonify({"items": items, "total": len(items)}), 200


@practice_bp.route("/practices/unassigned", methods=["GET"])
@require_caller
@require_role("admin")
def list_unassigned():
    items = practice_service.list_unassigned()
    return jsonify({"items": items, "total": len(items)}), 200


@practice_bp.route("/practices/stats", methods=["GET"])
@require_caller
def practice_stats():
    """Scoped to the caller's contract; administrators may pass ?contract= or see all."""
    caller = current_caller()
    contract = caller.contract
    if caller.has_role("admin"):
        contract = request.args.get("contract") or None
    return jsonify(stats_service.get_practice_stats(contract)), 200


@practice_bp.route("/practices/<int:practice_id>", methods=["GET"])
@require_caller
def get_practice(practice_id):
    return jsonify(practice_service.get_practice_detail(practice_id, current_caller())), 200


@practice_bp.route("/practices/<int:practice_id>/history", methods=["GET"])
@require_caller
def practice_history(practice_id):
    items = practice_service.get_practice_history(practice_id, current_caller())
    return jsonify({"items": items, "total": len(items)}), 200


@practice_bp.route("/practices/<int:practice_id>/overview", methods=["GET"])
@require_caller
def practice_overview(practice_id):
    return jsonify(practice_service.get_practice_overview(practice_id, current_caller())), 200


@practice_bp.route("/practices/<int:practice_id>/involved", methods=["PUT"])
@require_caller
def set_involved(practice_id):
    """Body: {involved: [matricula, ...]} — replaces the list"""
    data, err = _json_body()
    if err:
        return err
    involved = practice_service.set_involved(practice_id, current_caller(), data.get("involved"))
    return jsonify({"practice_id": practice_id, "involved": involved}), 200


# ═════════════════════════════════════════════════════════════════════════
# Transitions
# ═════════════════════════════════════════════════════════════════════════


@practice_bp.route("/practices/<int:practice_id>/sesmt-evaluation", methods=["POST"])
@require_caller
def sesmt_evaluation(practice_id):
    """Body: {responses: [{item_id, answer}]}"""
    data, err = _json_body()
    if err:
        return err
    result = checklist.submit_sesmt_evaluation(
        practice_id, current_caller().caller_id, data.get("responses"),
    )
    return jsonify(result), 200


@practice_bp.route("/practices/<int:practice_id>/management-evaluation", methods=["POST"])
@require_caller
def management_evaluation(practice_id):
    """Body: {responses: [{item_id, answer}], relevance: 1..5}"""
    data, err = _json_body()
    if err:
        return err
    result = checklist.submit_management_evaluation(
        practice_id, current_caller().caller_id, data.get("responses"), data.get("relevance"),
    )
    return jsonify(result), 200


@practice_bp.route("/practices/<int:practice_id>/validation", methods=["POST"])
@require_caller
def validation(practice_id):
    """Body: {approve: bool, comment?: str} — comment required when rejecting"""
    data, err = _json_body()
    if err:
        return err
    result = validation_gate.validate_practice(
        practice_id, current_caller().caller_id, data.get("approve"), data.get("comment"),
    )
    return jsonify(result), 200


# ═════════════════════════════════════════════════════════════════════════
# Publication
# ═════════════════════════════════════════════════════════════════════════


@practice_bp.route("/book", methods=["GET"])
@require_caller
def book():
    """Query params: search, page (default 1), limit (default 20, max 100)"""
    result = practice_service.list_book(
        search=request.args.get("search"),
        page=request.args.get("page"),
        limit=request.args.get("limit"),
    )
    return jsonify(result), 200
