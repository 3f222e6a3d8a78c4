"""Committee service — voting committees and their members.

Rules:
  - A local committee belongs to exactly one contract; a contract has at most
    one local committee.
  - There is at most one corporate committee.
  - Every committee has at least one member; saving replaces the member list.

``round_participants`` is the read side used by the tally and the practice
overview: the expected voters of a round, each flagged with whether a ballot
from them exists.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError

from practice_portal.core.exceptions import ConflictError, NotFoundError, ValidationError
from practice_portal.models import db
from practice_portal.models.committee import (
    COMMITTEE_CORPORATE,
    COMMITTEE_KINDS,
    COMMITTEE_LOCAL,
    ROUND_COMMITTEE_KIND,
    Committee,
    CommitteeMember,
)
from practice_portal.models.voting import VOTING_ROUNDS, Vote

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Input parsing
# ---------------------------------------------------------------------------


def parse_matriculas(value, field: str) -> list[str]:
    """Normalize a JSON list of matriculas (strings or integers) to unique strings, order kept."""
    if not isinstance(value, list):
        raise ValidationError(f"{field} must be a list", details={field: "must be a list"})
    result = []
    for raw in value:
        if isinstance(raw, bool) or not isinstance(raw, (str, int)):
            raise ValidationError(f"{field} must contain matriculas", details={field: raw})
        matricula = str(raw).strip()
        if not matricula or len(matricula) > 32:
            raise ValidationError(f"{field} must contain matriculas", details={field: raw})
        if matricula not in result:
            result.append(matricula)
    return result


def _parse_committee(data: dict) -> dict:
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name is required", details={"name": "required"})
    if len(name.strip()) > 255:
        raise ValidationError("name must be ≤ 255 characters", details={"name": "too long"})

    kind = data.get("kind")
    if kind not in COMMITTEE_KINDS:
        raise ValidationError(
            f"kind must be one of: {', '.join(COMMITTEE_KINDS)}",
            details={"kind": kind},
        )

    contract_code = None
    if kind == COMMITTEE_LOCAL:
        contract_code = data.get("contract_code")
        if not isinstance(contract_code, str) or not contract_code.strip():
            raise ValidationError(
                "contract_code is required for a local committee",
                details={"contract_code": "required"},
            )
        contract_code = contract_code.strip()

    description = data.get("description")
    if description is not None and not isinstance(description, str):
        raise ValidationError("description must be a string", details={"description": "must be a string"})

    members = parse_matriculas(data.get("members"), "members")
    if not members:
        raise ValidationError("A committee needs at least one member", details={"members": "required"})

    return {
        "name": name.strip(),
        "kind": kind,
        "contract_code": contract_code,
        "description": (description or "").strip() or None,
        "members": members,
    }


def _ensure_slot_free(kind: str, contract_code: str | None, exclude_id: int | None = None) -> None:
    stmt = select(Committee.id).where(Committee.kind == kind)
    if kind == COMMITTEE_LOCAL:
        stmt = stmt.where(Committee.contract_code == contract_code)
    if exclude_id is not None:
        stmt = stmt.where(Committee.id != exclude_id)
    if db.session.execute(stmt.limit(1)).scalar() is not None:
        if kind == COMMITTEE_CORPORATE:
            message = "A corporate committee already exists"
        else:
            message = f"Contract {contract_code} already has a local committee"
        raise ConflictError(message, resource="Committee", duplicate=True)


def _get_committee(committee_id: int) -> Committee:
    committee = db.session.get(Committee, committee_id)
    if committee is None:
        raise NotFoundError(resource="Committee", resource_id=committee_id)
    return committee


def _save(committee: Committee, members: list[str]) -> None:
    try:
        db.session.flush()
        db.session.execute(delete(CommitteeMember).where(CommitteeMember.committee_id == committee.id))
        db.session.add_all(CommitteeMember(committee_id=committee.id, matricula=m) for m in members)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(
            "Committee slot taken by a concurrent request",
            resource="Committee",
            duplicate=True,
        ) from exc
    except Exception:
        db.session.rollback()
        raise
    db.session.expire(committee, ["members"])


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


def list_committees(kind: str | None = None, search: str | None = None) -> list[dict]:
    stmt = select(Committee).order_by(Committee.kind, Committee.contract_code, Committee.id)
    if kind:
        if kind not in COMMITTEE_KINDS:
            raise ValidationError(
                f"kind must be one of: {', '.join(COMMITTEE_KINDS)}",
                details={"kind": kind},
            )
        stmt = stmt.where(Committee.kind == kind)
    if search and search.strip():
        stmt = stmt.where(Committee.name.ilike(f"%{search.strip()[:200]}%"))
    return [c.to_dict() for c in db.session.execute(stmt).scalars()]


def get_committee(committee_id: int) -> dict:
    return _get_committee(committee_id).to_dict()


def create_committee(data: dict, creator_id) -> dict:
    fields = _parse_committee(data)
    _ensure_slot_free(fields["kind"], fields["contract_code"])

    committee = Committee(
        name=fields["name"],
        description=fields["description"],
        kind=fields["kind"],
        contract_code=fields["contract_code"],
        created_by=str(creator_id),
    )
    db.session.add(committee)
    _save(committee, fields["members"])

    logger.info(
        "Committee created",
        extra={"contract": committee.contract_code, "caller_id": str(creator_id)},
    )
    return committee.to_dict()


def update_committee(committee_id: int, data: dict) -> dict:
    """Replace name, kind, contract and member list of a committee."""
    committee = _get_committee(committee_id)
    fields = _parse_committee(data)
    _ensure_slot_free(fields["kind"], fields["contract_code"], exclude_id=committee.id)

    committee.name = fields["name"]
    committee.description = fields["description"]
    committee.kind = fields["kind"]
    committee.contract_code = fields["contract_code"]
    _save(committee, fields["members"])

    logger.info("Committee updated", extra={"contract": committee.contract_code})
    return committee.to_dict()


def delete_committee(committee_id: int) -> None:
    committee = _get_committee(committee_id)
    db.session.delete(committee)
    db.session.commit()
    logger.info("Committee deleted", extra={"contract": committee.contract_code})


# ---------------------------------------------------------------------------
# Round participants
# ---------------------------------------------------------------------------


def committee_for_round(contract: str | None, round_type: str) -> Committee | None:
    """The committee expected to vote in ``round_type`` for a practice of ``contract``."""
    kind = ROUND_COMMITTEE_KIND[round_type]
    stmt = select(Committee).where(Committee.kind == kind)
    if kind == COMMITTEE_LOCAL:
        if not contract:
            return None
        stmt = stmt.where(Committee.contract_code == contract)
    return db.session.execute(stmt.limit(1)).scalar_one_or_none()


def round_participants(practice) -> dict:
    """Per round: the expected committee and each member's ``voted`` flag.

    Returns:
        {"quarterly": {"committee": {...} | None, "participants": [{matricula, voted}]},
         "annual": {...}}
    """
    voted = {round_type: set() for round_type in VOTING_ROUNDS}
    rows = db.session.execute(
        select(Vote.round_type, Vote.voter_matricula).where(Vote.practice_id == practice.id)
    ).all()
    for round_type, matricula in rows:
        voted[round_type].add(matricula)

    result = {}
    for round_type in VOTING_ROUNDS:
        committee = committee_for_round(practice.contract, round_type)
        members = committee.member_ids if committee else []
        result[round_type] = {
            "committee": committee.to_summary_dict() if committee else None,
            "participants": [
                {"matricula": m, "voted": m in voted[round_type]} for m in members
            ],
        }
    return result
