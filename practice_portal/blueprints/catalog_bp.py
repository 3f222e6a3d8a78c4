"""Catalog blueprint — checklist items, contract reviewer mappings and voting committees.

URL prefix: /api/v1

Routes:
    GET    /api/v1/evaluation-items?include_inactive=1   — list
    POST   /api/v1/evaluation-items                      — create (editor+)
    PUT    /api/v1/evaluation-items/<id>                 — update (editor+)
    DELETE /api/v1/evaluation-items/<id>                 — delete unused item (editor+)
    GET    /api/v1/contract-responsibles                 — list
    POST   /api/v1/contract-responsibles                 — create or replace (admin)
    DELETE /api/v1/contract-responsibles/<id>            — delete (admin)
    GET    /api/v1/committees?kind=&search=              — list voting committees
    GET    /api/v1/committees/<id>                       — one committee with members
    POST   /api/v1/committees                            — create (editor+)
    PUT    /api/v1/committees/<id>                       — replace fields and members (editor+)
    DELETE /api/v1/committees/<id>                       — delete (editor+)
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from practice_portal.auth import current_caller, require_caller, require_role
from practice_portal.services import catalog_service, committee_service
from practice_portal.utils.errors import register_error_handlers

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/v1")
register_error_handlers(catalog_bp)


# ── Evaluation items ─────────────────────────────────────────────────────────


@catalog_bp.route("/evaluation-items", methods=["GET"])
@require_caller
def list_items():
    include_inactive = request.args.get("include_inactive", "0") in ("1", "true")
    items = catalog_service.list_evaluation_items(include_inactive=include_inactive)
    return jsonify({"items": items, "total": len(items)}), 200


@catalog_bp.route("/evaluation-items", methods=["POST"])
@require_caller
@require_role("editor")
def create_item():
    """Body: {text, is_eliminatory?, is_active?}"""
    data = request.get_json(silent=True) or {}
    return jsonify(catalog_service.create_evaluation_item(data)), 201


@catalog_bp.route("/evaluation-items/<int:item_id>", methods=["PUT"])
@require_caller
@require_role("editor")
def update_item(item_id):
    data = request.get_json(silent=True) or {}
    return jsonify(catalog_service.update_evaluation_item(item_id, data)), 200


@catalog_bp.route("/evaluation-items/<int:item_id>", methods=["DELETE"])
@require_caller
@require_role("editor")
def delete_item(item_id):
    catalog_service.delete_evaluation_item(item_id)
    return jsonify({"deleted": True}), 200


# ── Contract responsibles ────────────────────────────────────────────────────


@catalog_bp.route("/contract-responsibles", methods=["GET"])
@require_caller
def list_responsibles():
    items = catalog_service.list_contract_responsibles()
    return jsonify({"items": items, "total": len(items)}), 200


@catalog_bp.route("/contract-responsibles", methods=["POST"])
@require_caller
@require_role("admin")
def upsert_responsible():
    """Body: {contract_code, sesmt_reviewer, management_reviewer}"""
    data = request.get_json(silent=True) or {}
    mapping, created = catalog_service.upsert_contract_responsible(data, current_caller().caller_id)
    return jsonify(mapping), 201 if created else 200


@catalog_bp.route("/contract-responsibles/<int:mapping_id>", methods=["DELETE"])
@require_caller
@require_role("admin")
def delete_responsible(mapping_id):
    catalog_service.delete_contract_responsible(mapping_id)
    return jsonify({"deleted": True}), 200


# ── Voting committees ────────────────────────────────────────────────────────


@catalog_bp.route("/committees", methods=["GET"])
@require_caller
def list_committees():
    items = committee_service.list_committees(
        kind=request.args.get("kind"), search=request.args.get("search"),
    )
    return jsonify({"items": items, "total": len(items)}), 200


@catalog_bp.route("/committees/<int:committee_id>", methods=["GET"])
@require_caller
def get_committee(committee_id):
    return jsonify(committee_service.get_committee(committee_id)), 200


@catalog_bp.route("/committees", methods=["POST"])
@require_caller
@require_role("editor")
def create_committee():
    """Body: {name, kind: local|corporate, contract_code?, description?, members: [...]}"""
    data = request.get_json(silent=True) or {}
    return jsonify(committee_service.create_committee(data, current_caller().caller_id)), 201


@catalog_bp.route("/committees/<int:committee_id>", methods=["PUT"])
@require_caller
@require_role("editor")
def update_committee(committee_id):
    data = request.get_json(silent=True) or {}
    return jsonify(committee_service.update_committee(committee_id, data)), 200


@catalog_bp.route("/committees/<int:committee_id>", methods=["DELETE"])
@require_caller
@require_role("editor")
def delete_committee(committee_id):
    committee_service.delete_committee(committee_id)
    return jsonify({"deleted": True}), 200
