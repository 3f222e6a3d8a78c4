"""
Practice Lifecycle — the state machine every stage service runs through.

A transition is always one transaction:

    with transition_scope(practice_id):
        practice = lock_practice(practice_id)                # SELECT … FOR UPDATE
        guard_transition(practice, expected_status, caller)  # status, then owner
        ... stage-specific validation and writes ...
        apply_transition(practice, new_status, ...)          # fields + owner + audit

Guards:
    - Stored status differs from the expected one → ConflictError
      (double submission or stale client).
    - Caller is not ``current_owner`` → AuthorizationError.

``transition_scope`` commits on success and rolls back on any exception, so
a failed transition leaves the practice in its prior state. A concurrent
writer that slipped past the row lock (dialects without FOR UPDATE) trips the
Practice.version check at flush and is reported as ConflictError.

Ownership only changes through ``transfer_ownership``, which
``apply_transition`` calls after the new status is set.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import select
from sqlalchemy.orm.exc import StaleDataError

from practice_portal.core.exceptions import AuthorizationError, ConflictError, NotFoundError
from practice_portal.models import db
from practice_portal.models.audit import write_audit
from practice_portal.models.practice import (
    OWNER_STATES,
    STATUS_CONCLUDED,
    Practice,
    validate_practice_transition,
)

logger = logging.getLogger(__name__)


def default_validator_id() -> str:
    """The single, globally configured validator for the validation stage."""
    return str(current_app.config["DEFAULT_VALIDATOR_ID"])


@contextmanager
def transition_scope(practice_id: int):
    """Run a transition as one unit: commit on success, roll back on any failure."""
    try:
        yield
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        logger.warning("Concurrent update detected", extra={"practice_id": practice_id})
        raise ConflictError(
            f"Practice {practice_id} was modified by a concurrent request",
            resource="Practice",
        ) from exc
    except Exception:
        db.session.rollback()
        raise


def lock_practice(practice_id: int) -> Practice:
    """Load a practice with a row lock, refreshing any stale identity-map copy."""
    practice = db.session.execute(
        select(Practice)
        .where(Practice.id == practice_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if practice is None:
        raise NotFoundError(resource="Practice", resource_id=practice_id)
    return practice


def guard_transition(practice: Practice, expected_status: str, caller_id) -> None:
    """Verify the stored status and the caller's ownership before any write."""
    if practice.status != expected_status:
        raise ConflictError(
            f"Practice {practice.id} is '{practice.status}', not '{expected_status}'",
            resource="Practice",
            current_status=practice.status,
        )
    if practice.current_owner is None or practice.current_owner != str(caller_id):
        raise AuthorizationError(
            f"Caller {caller_id} is not the current owner of practice {practice.id}",
            caller_id=str(caller_id),
        )


def transfer_ownership(practice: Practice, next_owner) -> str | None:
    """
    Hand the practice to ``next_owner`` (or to nobody).

    Only states awaiting human action may carry an owner; passing an owner for
    any other state is a programming error. Returns the previous owner.
    """
    if next_owner is not None and practice.status not in OWNER_STATES:
        raise ValueError(
            f"Practice {practice.id} in state '{practice.status}' cannot have an owner"
        )
    previous = practice.current_owner
    practice.current_owner = str(next_owner) if next_owner is not None else None
    return previous


def apply_transition(
    practice: Practice,
    new_status: str,
    *,
    actor,
    action: str,
    next_owner=None,
    changes: dict | None = None,
    note: dict | None = None,
) -> dict:
    """
    Move ``practice`` to ``new_status`` and write its dependent fields.

    Args:
        actor:      Matricula recorded in the audit trail.
        action:     Audit action name (e.g. "practice.validate").
        next_owner: Owner of the new state; None in voting/terminal states.
        changes:    Other Practice columns to set (eliminated, relevance, …).
        note:       Extra audit payload (tallies, eliminating items, …).

    Returns:
        The {field: {old, new}} diff that was audited.
    """
    old_status = practice.status
    if not validate_practice_transition(old_status, new_status):
        raise ValueError(f"Invalid transition: {old_status} → {new_status}")

    diff: dict = {"status": {"old": old_status, "new": new_status}}
    for field, value in (changes or {}).items():
        old = getattr(practice, field)
        if old != value:
            diff[field] = {"old": old, "new": value}
        setattr(practice, field, value)

    practice.status = new_status
    previous_owner = transfer_ownership(practice, next_owner)
    if previous_owner != practice.current_owner:
        diff["current_owner"] = {"old": previous_owner, "new": practice.current_owner}

    if practice.eliminated and practice.status != STATUS_CONCLUDED:
        raise ValueError(f"Eliminated practice {practice.id} must be concluded")

    payload = dict(diff)
    if note:
        payload["note"] = note
    write_audit(
        entity_type="practice",
        entity_id=practice.id,
        practice_id=practice.id,
        action=action,
        actor=actor,
        diff=payload,
    )

    logger.info(
        "Practice transitioned: %s → %s", old_status, new_status,
        extra={
            "practice_id": practice.id,
            "from_status": old_status,
            "to_status": new_status,
            "caller_id": str(actor),
        },
    )
    return diff
