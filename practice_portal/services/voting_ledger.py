"""
Voting Ledger — append-only ballots for validated practices.

Rounds:
    quarterly  — practices in awaiting_quarterly_vote, voters of the same contract
    annual     — practices in awaiting_annual_vote, any voter

Deduplication is delegated to the database: UNIQUE(practice_id,
voter_matricula, round_type). ``cast_vote`` inserts unconditionally and
translates the IntegrityError of a second ballot into ConflictError.

Round promotion is explicit: an administrator closes the round with
``close_voting_round`` after reading the tally from ``vote_summary``.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from practice_portal.auth import ROLE_HIERARCHY
from practice_portal.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from practice_portal.models import db
from practice_portal.models.audit import write_audit
from practice_portal.models.practice import (
    STATUS_AWAITING_ANNUAL_VOTE,
    STATUS_AWAITING_QUARTERLY_VOTE,
    STATUS_CONCLUDED,
    VOTING_STATES,
    Practice,
)
from practice_portal.models.voting import (
    BALLOT_ANSWER_VALUES,
    BALLOT_QUESTION_WEIGHTS,
    ROUND_ANNUAL,
    ROUND_QUARTERLY,
    ROUND_STATUS,
    VOTING_ROUNDS,
    Vote,
)
from practice_portal.services.committee_service import round_participants
from practice_portal.services.practice_lifecycle import (
    apply_transition,
    lock_practice,
    transition_scope,
)

logger = logging.getLogger(__name__)

# Status a practice moves to when its current round is closed
_NEXT_AFTER_ROUND = {
    STATUS_AWAITING_QUARTERLY_VOTE: STATUS_AWAITING_ANNUAL_VOTE,
    STATUS_AWAITING_ANNUAL_VOTE: STATUS_CONCLUDED,
}


def _validate_round(round_type) -> str:
    if round_type not in VOTING_ROUNDS:
        raise ValidationError(
            f"round_type must be one of {', '.join(VOTING_ROUNDS)}",
            details={"round_type": round_type},
        )
    return round_type


def score_ballot(answers) -> int | None:
    """
    Weighted score of a five-question ballot, or None when no answers were given.

    Every question "1".."5" must be answered with one of BALLOT_ANSWER_VALUES.
    """
    if answers is None:
        return None
    if not isinstance(answers, dict):
        raise ValidationError("answers must be an object", details={"answers": "must be an object"})

    answers = {str(k): v for k, v in answers.items()}
    missing = sorted(set(BALLOT_QUESTION_WEIGHTS) - set(answers))
    unknown = sorted(set(answers) - set(BALLOT_QUESTION_WEIGHTS))
    if missing or unknown:
        raise ValidationError(
            "Ballot must answer questions 1 to 5",
            details={"missing_questions": missing, "unknown_questions": unknown},
        )

    invalid = {
        q: v for q, v in answers.items()
        if not isinstance(v, str) or v not in BALLOT_ANSWER_VALUES
    }
    if invalid:
        raise ValidationError(
            f"Ballot answers must be one of: {', '.join(BALLOT_ANSWER_VALUES)}",
            details={"invalid_answers": invalid},
        )

    return sum(
        BALLOT_ANSWER_VALUES[answer] * BALLOT_QUESTION_WEIGHTS[question]
        for question, answer in answers.items()
    )


# ═════════════════════════════════════════════════════════════════════════════
# Queues
# ═════════════════════════════════════════════════════════════════════════════


def list_vote_queue(voter_id, voter_contract, round_type) -> list[dict]:
    """
    Practices awaiting a ballot from ``voter_id`` in ``round_type``, newest first.

    Quarterly queues are scoped to the voter's contract; a voter without a
    contract cannot list them.
    """
    _validate_round(round_type)

    stmt = select(Practice).where(Practice.status == ROUND_STATUS[round_type])
    if round_type == ROUND_QUARTERLY:
        if not voter_contract:
            raise ValidationError(
                "A contract is required to list quarterly votes",
                details={"contract": "required"},
            )
        stmt = stmt.where(Practice.contract == voter_contract)

    already_voted = (
        select(Vote.id)
        .where(
            Vote.practice_id == Practice.id,
            Vote.voter_matricula == str(voter_id),
            Vote.round_type == round_type,
        )
        .exists()
    )
    stmt = stmt.where(~already_voted).order_by(Practice.created_at.desc(), Practice.id.desc())

    return [p.to_summary_dict() for p in db.session.execute(stmt).scalars()]


# ═════════════════════════════════════════════════════════════════════════════
# Ballots
# ═════════════════════════════════════════════════════════════════════════════


def cast_vote(practice_id: int, voter_id, voter_contract, round_type, answers=None) -> dict:
    """
    Record one ballot.

    Raises:
        ValidationError:    unknown round or malformed answers.
        NotFoundError:      practice does not exist.
        ConflictError:      practice not in this round's status, or duplicate ballot.
        AuthorizationError: quarterly ballot from another contract.
    """
    _validate_round(round_type)
    score = score_ballot(answers)

    try:
        # Shared lock: ballots do not block each other, but wait for a round closure.
        practice = db.session.execute(
            select(Practice)
            .where(Practice.id == practice_id)
            .with_for_update(read=True)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if practice is None:
            raise NotFoundError(resource="Practice", resource_id=practice_id)

        expected = ROUND_STATUS[round_type]
        if practice.status != expected:
            raise ConflictError(
                f"Practice {practice_id} is not open for {round_type} voting",
                resource="Practice",
                current_status=practice.status,
            )
        if round_type == ROUND_QUARTERLY and (not voter_contract or practice.contract != voter_contract):
            raise AuthorizationError(
                f"Quarterly voting on practice {practice_id} is restricted to contract {practice.contract}",
                caller_id=str(voter_id),
            )

        vote = Vote(
            practice_id=practice.id,
            voter_matricula=str(voter_id),
            voter_contract=voter_contract,
            round_type=round_type,
            answers=answers,
            score=score,
        )
        db.session.add(vote)
        try:
            db.session.flush()
        except IntegrityError as exc:
            db.session.rollback()
            logger.info(
                "Duplicate ballot rejected",
                extra={"practice_id": practice_id, "caller_id": str(voter_id), "round_type": round_type},
            )
            raise ConflictError(
                f"Voter {voter_id} already voted on practice {practice_id} in the {round_type} round",
                resource="Vote",
                duplicate=True,
            ) from exc

        write_audit(
            entity_type="vote",
            entity_id=vote.id,
            practice_id=practice.id,
            action="vote.cast",
            actor=voter_id,
            diff={"round_type": round_type, "score": score},
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "Vote cast",
        extra={"practice_id": practice_id, "caller_id": str(voter_id), "round_type": round_type},
    )
    return vote.to_dict()


# ═════════════════════════════════════════════════════════════════════════════
# Tally & round closure
# ═════════════════════════════════════════════════════════════════════════════


def _tally(practice_id: int) -> dict:
    rows = db.session.execute(
        select(
            Vote.round_type,
            func.count(Vote.id).label("votes"),
            func.count(Vote.score).label("scored_votes"),
            func.coalesce(func.sum(Vote.score), 0).label("score_total"),
        )
        .where(Vote.practice_id == practice_id)
        .group_by(Vote.round_type)
    ).all()

    tally = {r: {"votes": 0, "scored_votes": 0, "score_total": 0} for r in VOTING_ROUNDS}
    for row in rows:
        tally[row.round_type] = {
            "votes": row.votes,
            "scored_votes": row.scored_votes,
            "score_total": int(row.score_total or 0),
        }
    return tally


def vote_summary(practice_id: int) -> dict:
    """Read-only tally per round for one practice.

    ``committees`` lists, per round, the expected committee members and
    whether each has cast a ballot.
    """
    practice = db.session.get(Practice, practice_id)
    if practice is None:
        raise NotFoundError(resource="Practice", resource_id=practice_id)
    return {
        "practice_id": practice.id,
        "status": practice.status,
        "rounds": _tally(practice.id),
        "committees": round_participants(practice),
    }


def close_voting_round(practice_id: int, actor_id, actor_role) -> dict:
    """
    Close the practice's open round: quarterly → annual, annual → concluded.

    Only administrators may close a round. The tally at closing time is
    recorded in the audit trail.
    """
    if "admin" not in ROLE_HIERARCHY.get(actor_role, set()):
        raise AuthorizationError("Only administrators can close a voting round", caller_id=str(actor_id))

    with transition_scope(practice_id):
        practice = lock_practice(practice_id)
        if practice.status not in VOTING_STATES:
            raise ConflictError(
                f"Practice {practice_id} has no open voting round",
                resource="Practice",
                current_status=practice.status,
            )
        closed_round = ROUND_QUARTERLY if practice.status == STATUS_AWAITING_QUARTERLY_VOTE else ROUND_ANNUAL
        tally = _tally(practice.id)
        apply_transition(
            practice, _NEXT_AFTER_ROUND[practice.status],
            actor=actor_id,
            action="practice.close_voting_round",
            note={"round_type": closed_round, "tally": tally[closed_round]},
        )

    return {"practice": practice.to_dict(), "closed_round": closed_round, "tally": tally, "warnings": []}
