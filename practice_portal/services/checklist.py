"""
Checklist Evaluation Engine — scores a review stage against the active checklist.

Two review stages share one checklist:
    - SESMT       (awaiting_sesmt_eval → awaiting_mgmt_eval | concluded)
    - management  (awaiting_mgmt_eval  → awaiting_validation | concluded)

Elimination rule: a practice is eliminated iff any eliminatory item was
answered ``True``. ``evaluate`` is pure; the submit functions wrap it in a
locked transition.

Input validation (completeness, types, relevance) happens before any write,
so a malformed submission never leaves a partially replaced response set.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import delete, select

from practice_portal.core.exceptions import ValidationError
from practice_portal.models import db
from practice_portal.models.evaluation import (
    STAGE_MANAGEMENT,
    STAGE_SESMT,
    EvaluationItem,
    EvaluationResponse,
)
from practice_portal.models.practice import (
    RELEVANCE_MAX,
    RELEVANCE_MIN,
    STATUS_AWAITING_MGMT_EVAL,
    STATUS_AWAITING_SESMT_EVAL,
    STATUS_AWAITING_VALIDATION,
    STATUS_CONCLUDED,
)
from practice_portal.services.practice_lifecycle import (
    apply_transition,
    default_validator_id,
    guard_transition,
    lock_practice,
    transition_scope,
)
from practice_portal.services.responsibility_router import resolve_management_reviewer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EvaluationOutcome:
    """Result of scoring one stage."""
    eliminated: bool
    eliminating_item_ids: tuple = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "eliminated": self.eliminated,
            "eliminating_item_ids": list(self.eliminating_item_ids),
        }


# ═════════════════════════════════════════════════════════════════════════════
# Pure scoring
# ═════════════════════════════════════════════════════════════════════════════


def evaluate(responses: dict, items: dict) -> EvaluationOutcome:
    """
    Score a set of answers.

    Args:
        responses: {item_id: bool answer}
        items:     {item_id: is_eliminatory}

    Items missing from ``items`` count as non-eliminatory.
    """
    eliminating = tuple(sorted(
        item_id
        for item_id, answer in responses.items()
        if answer is True and items.get(item_id, False)
    ))
    return EvaluationOutcome(eliminated=bool(eliminating), eliminating_item_ids=eliminating)


# ═════════════════════════════════════════════════════════════════════════════
# Input validation
# ═════════════════════════════════════════════════════════════════════════════


def normalize_responses(raw) -> dict:
    """
    Turn ``[{item_id, answer}, ...]`` into ``{item_id: answer}``.

    Raises ValidationError for a non-list payload, an empty list, malformed
    entries, non-boolean answers, or duplicated item ids.
    """
    if not isinstance(raw, list):
        raise ValidationError("responses must be a list", details={"responses": "must be a list"})
    if not raw:
        raise ValidationError("At least one response is required", details={"responses": "empty"})

    answers: dict = {}
    duplicates: set = set()
    for entry in raw:
        if not isinstance(entry, dict):
            raise ValidationError("Each response must be an object", details={"responses": "invalid entry"})
        item_id = entry.get("item_id")
        answer = entry.get("answer")
        if not isinstance(item_id, int) or isinstance(item_id, bool):
            raise ValidationError(
                "item_id must be an integer", details={"item_id": item_id},
            )
        if not isinstance(answer, bool):
            raise ValidationError(
                f"Answer for item {item_id} must be a boolean",
                details={"item_id": item_id, "answer": "must be true or false"},
            )
        if item_id in answers:
            duplicates.add(item_id)
        answers[item_id] = answer

    if duplicates:
        raise ValidationError(
            "Each checklist item may be answered only once",
            details={"duplicate_item_ids": sorted(duplicates)},
        )
    return answers


def check_completeness(answers: dict, active_items: dict) -> None:
    """Answered ids must equal the active checklist exactly."""
    answered = set(answers)
    active = set(active_items)
    missing = sorted(active - answered)
    unknown = sorted(answered - active)
    if missing or unknown:
        details = {}
        if missing:
            details["missing_item_ids"] = missing
        if unknown:
            details["unknown_item_ids"] = unknown
        raise ValidationError("Checklist responses are incomplete or invalid", details=details)


def validate_relevance(value) -> int:
    if value is None:
        raise ValidationError("relevance is required", details={"relevance": "required"})
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError("relevance must be an integer", details={"relevance": value})
    if not RELEVANCE_MIN <= value <= RELEVANCE_MAX:
        raise ValidationError(
            f"relevance must be between {RELEVANCE_MIN} and {RELEVANCE_MAX}",
            details={"relevance": value},
        )
    return value


# ═════════════════════════════════════════════════════════════════════════════
# Stage submission
# ═════════════════════════════════════════════════════════════════════════════


def _active_items() -> dict:
    rows = db.session.execute(
        select(EvaluationItem.id, EvaluationItem.is_eliminatory)
        .where(EvaluationItem.is_active.is_(True))
    ).all()
    return {row.id: bool(row.is_eliminatory) for row in rows}


def _replace_responses(practice_id: int, stage: str, answers: dict, evaluator) -> None:
    """Delete this stage's previous answers for the practice, then insert."""
    db.session.execute(
        delete(EvaluationResponse).where(
            EvaluationResponse.practice_id == practice_id,
            EvaluationResponse.stage == stage,
        )
    )
    db.session.add_all([
        EvaluationResponse(
            practice_id=practice_id,
            item_id=item_id,
            stage=stage,
            answer=answer,
            evaluator_matricula=str(evaluator),
        )
        for item_id, answer in answers.items()
    ])


def _score_stage(practice, stage: str, answers: dict, caller_id) -> EvaluationOutcome:
    items = _active_items()
    check_completeness(answers, items)
    _replace_responses(practice.id, stage, answers, caller_id)
    outcome = evaluate(answers, items)
    logger.info(
        "Checklist scored: %s eliminated=%s", stage, outcome.eliminated,
        extra={
            "practice_id": practice.id,
            "stage": stage,
            "eliminated": outcome.eliminated,
            "caller_id": str(caller_id),
        },
    )
    return outcome


def submit_sesmt_evaluation(practice_id: int, caller_id, responses) -> dict:
    """
    Score the SESMT stage and advance the practice.

    Returns:
        {"practice": {...}, "eliminated": bool, "eliminating_item_ids": [...],
         "warnings": [...]}
    """
    answers = normalize_responses(responses)
    warnings: list = []

    with transition_scope(practice_id):
        practice = lock_practice(practice_id)
        guard_transition(practice, STATUS_AWAITING_SESMT_EVAL, caller_id)
        outcome = _score_stage(practice, STAGE_SESMT, answers, caller_id)

        if outcome.eliminated:
            apply_transition(
                practice, STATUS_CONCLUDED,
                actor=caller_id,
                action="practice.sesmt_evaluate",
                changes={"eliminated": True},
                note=outcome.to_dict(),
            )
        else:
            routing = resolve_management_reviewer(practice.contract)
            warnings = routing.warnings
            apply_transition(
                practice, STATUS_AWAITING_MGMT_EVAL,
                actor=caller_id,
                action="practice.sesmt_evaluate",
                next_owner=routing.owner,
                note=outcome.to_dict(),
            )

    return {"practice": practice.to_dict(), **outcome.to_dict(), "warnings": warnings}


def submit_management_evaluation(practice_id: int, caller_id, responses, relevance) -> dict:
    """
    Score the management stage, store relevance and hand off to the validator.

    ``relevance`` is validated even when the answers end up eliminating the
    practice; it is cleared in that case.
    """
    relevance = validate_relevance(relevance)
    answers = normalize_responses(responses)

    with transition_scope(practice_id):
        practice = lock_practice(practice_id)
        guard_transition(practice, STATUS_AWAITING_MGMT_EVAL, caller_id)
        outcome = _score_stage(practice, STAGE_MANAGEMENT, answers, caller_id)

        if outcome.eliminated:
            apply_transition(
                practice, STATUS_CONCLUDED,
                actor=caller_id,
                action="practice.management_evaluate",
                changes={"eliminated": True, "relevance": None},
                note=outcome.to_dict(),
            )
        else:
            apply_transition(
                practice, STATUS_AWAITING_VALIDATION,
                actor=caller_id,
                action="practice.management_evaluate",
                next_owner=default_validator_id(),
                changes={"relevance": relevance},
                note=outcome.to_dict(),
            )

    return {"practice": practice.to_dict(), **outcome.to_dict(), "warnings": []}
