"""
Validation Gate service tests.

Covers:
  - approve: quarterly voting, validated=True, owner cleared, old comment cleared
  - reject: comment stored (trimmed), validated=False, concluded
  - whitespace-only comment is treated as missing
  - approve must be a boolean; comment must be a string
  - only the configured validator may decide
"""

import pytest

from practice_portal.core.exceptions import AuthorizationError, ConflictError, ValidationError
from practice_portal.models.practice import Practice
from practice_portal.services.validation_gate import validate_practice
from tests.factories import VALIDATOR, make_practice, reload


@pytest.fixture()
def awaiting_validation():
    return make_practice(status="awaiting_validation", owner=VALIDATOR, relevance=3)


def test_approve_opens_quarterly_voting(awaiting_validation):
    result = validate_practice(awaiting_validation.id, VALIDATOR, True)
    assert result["warnings"] == []

    stored = reload(Practice, awaiting_validation.id)
    assert stored.status == "awaiting_quarterly_vote"
    assert stored.validated is True
    assert stored.current_owner is None
    assert stored.validation_comment is None
    assert stored.relevance == 3


def test_approve_ignores_comment(awaiting_validation):
    validate_practice(awaiting_validation.id, VALIDATOR, True, comment="Nice work")
    assert reload(Practice, awaiting_validation.id).validation_comment is None


def test_reject_stores_trimmed_comment(awaiting_validation):
    validate_practice(awaiting_validation.id, VALIDATOR, False, comment="  Already in use at site B  ")

    stored = reload(Practice, awaiting_validation.id)
    assert stored.status == "concluded"
    assert stored.validated is False
    assert stored.eliminated is False
    assert stored.validation_comment == "Already in use at site B"
    assert stored.current_owner is None


@pytest.mark.parametrize("comment", [None, "", "   \n\t"])
def test_reject_without_comment_refused(awaiting_validation, comment):
    with pytest.raises(ValidationError) as exc:
        validate_practice(awaiting_validation.id, VALIDATOR, False, comment=comment)
    assert "comment" in exc.value.details

    stored = reload(Practice, awaiting_validation.id)
    assert stored.status == "awaiting_validation"
    assert stored.validated is None
    assert stored.current_owner == VALIDATOR


@pytest.mark.parametrize("approve", [None, "true", 1])
def test_approve_must_be_boolean(awaiting_validation, approve):
    with pytest.raises(ValidationError):
        validate_practice(awaiting_validation.id, VALIDATOR, approve)


def test_comment_must_be_string(awaiting_validation):
    with pytest.raises(ValidationError):
        validate_practice(awaiting_validation.id, VALIDATOR, False, comment=["no"])


def test_only_current_owner_may_decide(awaiting_validation):
    with pytest.raises(AuthorizationError):
        validate_practice(awaiting_validation.id, "123456", True)
    assert reload(Practice, awaiting_validation.id).status == "awaiting_validation"


def test_second_decision_conflicts(awaiting_validation):
    validate_practice(awaiting_validation.id, VALIDATOR, True)
    with pytest.raises(ConflictError) as exc:
        validate_practice(awaiting_validation.id, VALIDATOR, False, comment="Changed my mind")
    assert exc.value.current_status == "awaiting_quarterly_vote"


def test_validated_untouched_before_gate():
    practice = make_practice(status="awaiting_mgmt_eval", owner="300001")
    with pytest.raises(ConflictError):
        validate_practice(practice.id, "300001", True)
    assert reload(Practice, practice.id).validated is None
