"""
Validation Gate — final human decision before voting.

    approve → awaiting_quarterly_vote, validated=True, owner cleared
    reject  → concluded, validated=False, comment stored, owner cleared

``validated`` is written here and nowhere else. A rejection without a
non-blank comment is refused before the practice is touched.
"""

import logging

from practice_portal.core.exceptions import ValidationError
from practice_portal.models.practice import (
    STATUS_AWAITING_QUARTERLY_VOTE,
    STATUS_AWAITING_VALIDATION,
    STATUS_CONCLUDED,
)
from practice_portal.services.practice_lifecycle import (
    apply_transition,
    guard_transition,
    lock_practice,
    transition_scope,
)

logger = logging.getLogger(__name__)


def validate_practice(practice_id: int, caller_id, approve, comment=None) -> dict:
    if not isinstance(approve, bool):
        raise ValidationError("approve must be a boolean", details={"approve": "must be true or false"})
    if comment is not None and not isinstance(comment, str):
        raise ValidationError("comment must be a string", details={"comment": "must be a string"})

    comment = (comment or "").strip()
    if not approve and not comment:
        raise ValidationError(
            "A comment is required to reject a practice",
            details={"comment": "required when approve is false"},
        )

    with transition_scope(practice_id):
        practice = lock_practice(practice_id)
        guard_transition(practice, STATUS_AWAITING_VALIDATION, caller_id)

        if approve:
            apply_transition(
                practice, STATUS_AWAITING_QUARTERLY_VOTE,
                actor=caller_id,
                action="practice.validate",
                changes={"validated": True, "validation_comment": None},
            )
        else:
            apply_transition(
                practice, STATUS_CONCLUDED,
                actor=caller_id,
                action="practice.validate",
                changes={"validated": False, "validation_comment": comment},
            )

    return {"practice": practice.to_dict(), "warnings": []}
