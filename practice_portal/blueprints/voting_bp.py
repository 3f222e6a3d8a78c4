"""Voting blueprint.

URL prefix: /api/v1

Routes:
    GET    /api/v1/votes/quarterly                          — my quarterly queue (my contract)
    GET    /api/v1/votes/annual                             — my annual queue
    POST   /api/v1/votes                                    — cast a ballot
    GET    /api/v1/practices/<id>/votes/summary             — read-only tally
    POST   /api/v1/practices/<id>/voting-round/close        — close the open round (admin)
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from practice_portal.auth import current_caller, require_caller, require_role
from practice_portal.models.voting import ROUND_ANNUAL, ROUND_QUARTERLY
from practice_portal.services import voting_ledger
from practice_portal.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)

voting_bp = Blueprint("voting", __name__, url_prefix="/api/v1")
register_error_handlers(voting_bp)


@voting_bp.route("/votes/quarterly", methods=["GET"])
@require_caller
def quarterly_queue():
    caller = current_caller()
    items = voting_ledger.list_vote_queue(caller.caller_id, caller.contract, ROUND_QUARTERLY)
    return jsonify({"items": items, "total": len(items)}), 200


@voting_bp.route("/votes/annual", methods=["GET"])
@require_caller
def annual_queue():
    caller = current_caller()
    items = voting_ledger.list_vote_queue(caller.caller_id, caller.contract, ROUND_ANNUAL)
    return jsonify({"items": items, "total": len(items)}), 200


@voting_bp.route("/votes", methods=["POST"])
@require_caller
def cast_vote():
    """Body: {practice_id, round_type: quarterly|annual, answers?: {"1": "bom", ...}}"""
    data = request.get_json(silent=True) or {}
    practice_id = data.get("practice_id")
    if not isinstance(practice_id, int) or isinstance(practice_id, bool):
        return api_error(
            E.VALIDATION_REQUIRED, "practice_id is required",
            details={"practice_id": "required integer"},
        )

    caller = current_caller()
    vote = voting_ledger.cast_vote(
        practice_id,
        caller.caller_id,
        caller.contract,
        data.get("round_type"),
        data.get("answers"),
    )
    return jsonify(vote), 201


@voting_bp.route("/practices/<int:practice_id>/votes/summary", methods=["GET"])
@require_caller
def vote_summary(practice_id):
    return jsonify(voting_ledger.vote_summary(practice_id)), 200


@voting_bp.route("/practices/<int:practice_id>/voting-round/close", methods=["POST"])
@require_caller
@require_role("admin")
def close_round(practice_id):
    caller = current_caller()
    result = voting_ledger.close_voting_round(practice_id, caller.caller_id, caller.role)
    return jsonify(result), 200
