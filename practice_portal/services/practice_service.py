"""Practice service — creation, reads, overview, reviewer queues and the book listing.

Creation is the entry edge of the lifecycle: the practice starts in
awaiting_sesmt_eval, owned by its contract's SESMT reviewer. When the contract
has no reviewer mapping the practice is still created, unassigned, and the
configuration gap is returned as a warning.

Visibility:
  A practice is readable by its creator, its co-authors ("involved"), its
  current owner, anyone on the same contract, and administrators. Validated
  practices are public through the book listing.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, func, or_, select

from practice_portal.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from practice_portal.models import db
from practice_portal.models.audit import AuditLog, write_audit
from practice_portal.models.contract import ContractResponsible
from practice_portal.models.evaluation import (
    EVALUATION_STAGES,
    STAGE_MANAGEMENT,
    STAGE_SESMT,
    EvaluationResponse,
)
from practice_portal.models.practice import (
    OWNER_STATES,
    PRACTICE_STATUSES,
    STATUS_AWAITING_MGMT_EVAL,
    STATUS_AWAITING_SESMT_EVAL,
    STATUS_AWAITING_VALIDATION,
    STATUS_CONCLUDED,
    Practice,
    PracticeInvolvement,
)
from practice_portal.models.voting import ROUND_ANNUAL, ROUND_QUARTERLY
from practice_portal.services.committee_service import parse_matriculas, round_participants
from practice_portal.services.practice_lifecycle import transfer_ownership
from practice_portal.services.responsibility_router import resolve_sesmt_reviewer

logger = logging.getLogger(__name__)

_TEXT_FIELDS = ("description", "problem_description", "objective", "results")

# Reviewer queue → status it covers
PENDING_STAGE_STATUS = {
    "sesmt": STATUS_AWAITING_SESMT_EVAL,
    "management": STATUS_AWAITING_MGMT_EVAL,
    "validation": STATUS_AWAITING_VALIDATION,
}

BOOK_MAX_LIMIT = 100

# Overview timeline: (key, label), one per status in lifecycle order
OVERVIEW_STAGES = (
    ("sesmt", "SESMT evaluation"),
    ("management", "Management evaluation"),
    ("validation", "Validation"),
    ("quarterly_vote", "Quarterly vote"),
    ("annual_vote", "Annual vote"),
    ("concluded", "Concluded"),
)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _get_practice(practice_id: int) -> Practice:
    practice = db.session.get(Practice, practice_id)
    if practice is None:
        raise NotFoundError(resource="Practice", resource_id=practice_id)
    return practice


def _ensure_visible(practice: Practice, caller) -> None:
    if caller.has_role("admin"):
        return
    if caller.caller_id in (practice.creator_matricula, practice.current_owner):
        return
    if caller.caller_id in _involved(practice):
        return
    if practice.contract and practice.contract == caller.contract:
        return
    if practice.validated:
        return
    raise AuthorizationError(
        f"Caller {caller.caller_id} cannot view practice {practice.id}",
        caller_id=caller.caller_id,
    )


def _involved(practice: Practice) -> list[str]:
    return [i.matricula for i in practice.involvements]


def _parse_positive_int(value, name: str, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer", details={name: value})
    if parsed < 1:
        raise ValidationError(f"{name} must be at least 1", details={name: value})
    return parsed


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


def create_practice(data: dict, creator_id, contract) -> dict:
    """Create a practice and route it to the contract's SESMT reviewer.

    Business rules:
        - title is required, at most 255 characters.
        - The contract is the creator's, never taken from the payload.

    Returns:
        {"practice": {...}, "warnings": [...]}
    """
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("title is required", details={"title": "required"})
    title = title.strip()
    if len(title) > 255:
        raise ValidationError("title must be ≤ 255 characters", details={"title": "too long"})

    fields = {}
    for name in _TEXT_FIELDS:
        value = data.get(name)
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"{name} must be a string", details={name: "must be a string"})
        fields[name] = (value or "").strip() or None

    try:
        routing = resolve_sesmt_reviewer(contract)
        practice = Practice(
            title=title,
            contract=contract or None,
            status=STATUS_AWAITING_SESMT_EVAL,
            creator_matricula=str(creator_id),
            **fields,
        )
        transfer_ownership(practice, routing.owner)
        db.session.add(practice)
        db.session.flush()

        write_audit(
            entity_type="practice",
            entity_id=practice.id,
            practice_id=practice.id,
            action="practice.create",
            actor=creator_id,
            diff={
                "status": {"old": None, "new": practice.status},
                "current_owner": {"old": None, "new": practice.current_owner},
            },
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Practice created",
        extra={"practice_id": practice.id, "contract": contract, "caller_id": str(creator_id)},
    )
    return {"practice": practice.to_dict(), "warnings": routing.warnings}


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def get_practice_detail(practice_id: int, caller) -> dict:
    """Practice plus its checklist answers grouped by stage."""
    practice = _get_practice(practice_id)
    _ensure_visible(practice, caller)

    responses = db.session.execute(
        select(EvaluationResponse)
        .where(EvaluationResponse.practice_id == practice.id)
        .order_by(EvaluationResponse.stage, EvaluationResponse.item_id)
    ).scalars().all()

    by_stage = {stage: [] for stage in EVALUATION_STAGES}
    for response in responses:
        by_stage[response.stage].append(response.to_dict())

    result = practice.to_dict()
    result["responses"] = by_stage
    result["involved"] = _involved(practice)
    return result


def list_my_practices(creator_id) -> list[dict]:
    stmt = (
        select(Practice)
        .where(Practice.creator_matricula == str(creator_id))
        .order_by(Practice.created_at.desc(), Practice.id.desc())
    )
    return [p.to_dict() for p in db.session.execute(stmt).scalars()]


def list_pending_reviews(caller_id, stage: str | None = None) -> list[dict]:
    """Practices currently owned by ``caller_id``, optionally for one stage."""
    stmt = select(Practice).where(Practice.current_owner == str(caller_id))
    if stage:
        if stage not in PENDING_STAGE_STATUS:
            raise ValidationError(
                f"stage must be one of: {', '.join(PENDING_STAGE_STATUS)}",
                details={"stage": stage},
            )
        stmt = stmt.where(Practice.status == PENDING_STAGE_STATUS[stage])
    else:
        stmt = stmt.where(Practice.status.in_(OWNER_STATES))
    stmt = stmt.order_by(Practice.created_at.asc(), Practice.id.asc())
    return [p.to_summary_dict() for p in db.session.execute(stmt).scalars()]


def list_unassigned() -> list[dict]:
    """Practices stalled in a review state because no reviewer is configured."""
    stmt = (
        select(Practice)
        .where(Practice.status.in_(OWNER_STATES), Practice.current_owner.is_(None))
        .order_by(Practice.contract, Practice.created_at.asc())
    )
    return [p.to_dict() for p in db.session.execute(stmt).scalars()]


def get_practice_history(practice_id: int, caller) -> list[dict]:
    practice = _get_practice(practice_id)
    _ensure_visible(practice, caller)
    stmt = (
        select(AuditLog)
        .where(AuditLog.practice_id == practice.id)
        .order_by(AuditLog.timestamp.asc(), AuditLog.id.asc())
    )
    return [log.to_dict() for log in db.session.execute(stmt).scalars()]


# ---------------------------------------------------------------------------
# Overview (strategic view)
# ---------------------------------------------------------------------------


def _outcome(practice: Practice) -> str:
    if practice.status != STATUS_CONCLUDED:
        return "in_progress"
    if practice.eliminated:
        return "eliminated"
    if practice.validated is False:
        return "rejected"
    return "concluded"


def _last_stage_reached(practice: Practice, evaluators: dict) -> int:
    """Index of the last stage a practice went through before it concluded early."""
    current = PRACTICE_STATUSES.index(practice.status)
    if practice.status != STATUS_CONCLUDED:
        return current
    if practice.eliminated:
        return 1 if STAGE_MANAGEMENT in evaluators else 0
    if practice.validated is False:
        return PRACTICE_STATUSES.index(STATUS_AWAITING_VALIDATION)
    return current


def get_practice_overview(practice_id: int, caller) -> dict:
    """One-page view of where a practice stands and who is involved at each stage.

    Returns:
        {
          "practice": {...}, "outcome": "in_progress" | "eliminated" | "rejected" | "concluded",
          "stages": [{"key", "label", "active", "done"}, ...],   # six, lifecycle order
          "sesmt": {"reviewer", "done"},
          "management": {"reviewer", "relevance", "done"},
          "validation": {"validated", "comment", "done"},
          "quarterly_vote": {"committee", "participants", "done"},
          "annual_vote": {...},
          "involved": [...],
        }

    A stage reviewer is whoever answered its checklist, falling back to the
    contract's configured reviewer while the stage is still open.
    """
    practice = _get_practice(practice_id)
    _ensure_visible(practice, caller)

    evaluators = dict(db.session.execute(
        select(EvaluationResponse.stage, func.min(EvaluationResponse.evaluator_matricula))
        .where(EvaluationResponse.practice_id == practice.id)
        .group_by(EvaluationResponse.stage)
    ).all())
    mapping = None
    if practice.contract:
        mapping = db.session.execute(
            select(ContractResponsible).where(ContractResponsible.contract_code == practice.contract)
        ).scalar_one_or_none()

    current = PRACTICE_STATUSES.index(practice.status)
    reached = _last_stage_reached(practice, evaluators)
    stages = [
        {
            "key": key,
            "label": label,
            "active": idx == current,
            "done": idx < current and idx <= reached,
        }
        for idx, (key, label) in enumerate(OVERVIEW_STAGES)
    ]

    participants = round_participants(practice)

    return {
        "practice": {
            "id": practice.id,
            "title": practice.title,
            "contract": practice.contract,
            "status": practice.status,
            "relevance": practice.relevance,
            "eliminated": practice.eliminated,
            "validated": practice.validated,
            "creator_matricula": practice.creator_matricula,
        },
        "outcome": _outcome(practice),
        "stages": stages,
        "sesmt": {
            "reviewer": evaluators.get(STAGE_SESMT) or (mapping.sesmt_reviewer if mapping else None),
            "done": stages[0]["done"],
        },
        "management": {
            "reviewer": evaluators.get(STAGE_MANAGEMENT) or (mapping.management_reviewer if mapping else None),
            "relevance": practice.relevance,
            "done": stages[1]["done"],
        },
        "validation": {
            "validated": practice.validated,
            "comment": practice.validation_comment,
            "done": stages[2]["done"],
        },
        "quarterly_vote": {**participants[ROUND_QUARTERLY], "done": stages[3]["done"]},
        "annual_vote": {**participants[ROUND_ANNUAL], "done": stages[4]["done"]},
        "involved": _involved(practice),
    }


# ---------------------------------------------------------------------------
# Involved co-authors
# ---------------------------------------------------------------------------


def set_involved(practice_id: int, caller, matriculas) -> list[str]:
    """Replace the co-authors named on a practice. Creator or editor+ only."""
    practice = _get_practice(practice_id)
    if caller.caller_id != practice.creator_matricula and not caller.has_role("editor"):
        raise AuthorizationError(
            f"Only the creator or an editor can change who is involved in practice {practice.id}",
            caller_id=caller.caller_id,
        )
    new = parse_matriculas(matriculas, "involved")
    old = _involved(practice)

    try:
        db.session.execute(delete(PracticeInvolvement).where(PracticeInvolvement.practice_id == practice.id))
        db.session.add_all(PracticeInvolvement(practice_id=practice.id, matricula=m) for m in new)
        write_audit(
            entity_type="practice",
            entity_id=practice.id,
            practice_id=practice.id,
            action="practice.involved_update",
            actor=caller.caller_id,
            diff={"involved": {"old": old, "new": new}},
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Practice co-authors replaced (%d)", len(new),
        extra={"practice_id": practice.id, "caller_id": caller.caller_id},
    )
    return new


# ---------------------------------------------------------------------------
# Book (publication listing)
# ---------------------------------------------------------------------------


def list_book(search: str | None = None, page=None, limit=None) -> dict:
    """Validated practices, newest first, with LIKE search and pagination.

    Returns:
        {"items": [...], "total": N, "page": P, "limit": L}
    """
    page = _parse_positive_int(page, "page", 1)
    limit = min(_parse_positive_int(limit, "limit", 20), BOOK_MAX_LIMIT)

    stmt = select(Practice).where(Practice.validated.is_(True))

    if search and search.strip():
        q = f"%{search.strip()[:200]}%"
        stmt = stmt.where(
            or_(
                Practice.title.ilike(q),
                Practice.description.ilike(q),
                Practice.problem_description.ilike(q),
                Practice.results.ilike(q),
            )
        )

    total = db.session.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()

    stmt = (
        stmt.order_by(Practice.created_at.desc(), Practice.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    items = db.session.execute(stmt).scalars().all()

    return {
        "items": [p.to_dict() for p in items],
        "total": total,
        "page": page,
        "limit": limit,
    }
