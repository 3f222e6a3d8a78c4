"""Catalog service — evaluation items and contract responsibles.

Both catalogs are administrative configuration read by the workflow:
  - EvaluationItem: the active items are the checklist every review answers.
  - ContractResponsible: the reviewer mapping used by the responsibility router.
    Saving a mapping also assigns the contract's stalled practices.

Referential integrity:
  An item that already has responses keeps its meaning: its text and
  eliminatory flag cannot change and it cannot be deleted (ConflictError).
  Deactivating it is always allowed; it then leaves future checklists.
"""

from __future__ import annotations

import logging

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError

from practice_portal.core.exceptions import ConflictError, NotFoundError, ValidationError
from practice_portal.models import db
from practice_portal.models.audit import write_audit
from practice_portal.models.contract import ContractResponsible
from practice_portal.models.evaluation import EvaluationItem, EvaluationResponse
from practice_portal.models.practice import (
    STATUS_AWAITING_MGMT_EVAL,
    STATUS_AWAITING_SESMT_EVAL,
    Practice,
)
from practice_portal.services.practice_lifecycle import transfer_ownership

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _require_text(data: dict, name: str, max_len: int) -> str:
    value = data.get(name)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required", details={name: "required"})
    value = value.strip()
    if len(value) > max_len:
        raise ValidationError(f"{name} must be ≤ {max_len} characters", details={name: "too long"})
    return value


def _optional_bool(data: dict, name: str, default=None):
    if name not in data:
        return default
    value = data[name]
    if not isinstance(value, bool):
        raise ValidationError(f"{name} must be a boolean", details={name: "must be true or false"})
    return value


def _get_item(item_id: int) -> EvaluationItem:
    item = db.session.get(EvaluationItem, item_id)
    if item is None:
        raise NotFoundError(resource="EvaluationItem", resource_id=item_id)
    return item


def _item_in_use(item_id: int) -> bool:
    return db.session.execute(
        select(exists().where(EvaluationResponse.item_id == item_id))
    ).scalar()


# ---------------------------------------------------------------------------
# Evaluation items
# ---------------------------------------------------------------------------


def list_evaluation_items(include_inactive: bool = False) -> list[dict]:
    stmt = select(EvaluationItem).order_by(EvaluationItem.id)
    if not include_inactive:
        stmt = stmt.where(EvaluationItem.is_active.is_(True))
    return [item.to_dict() for item in db.session.execute(stmt).scalars()]


def create_evaluation_item(data: dict) -> dict:
    """Add a checklist item. ``is_eliminatory`` defaults to False, ``is_active`` to True."""
    item = EvaluationItem(
        text=_require_text(data, "text", 500),
        is_eliminatory=_optional_bool(data, "is_eliminatory", False),
        is_active=_optional_bool(data, "is_active", True),
    )
    db.session.add(item)
    db.session.commit()
    logger.info("EvaluationItem created", extra={"item_id": item.id})
    return item.to_dict()


def update_evaluation_item(item_id: int, data: dict) -> dict:
    """Edit an item. Text and eliminatory flag are frozen once the item has responses."""
    item = _get_item(item_id)

    new_text = _require_text(data, "text", 500) if "text" in data else item.text
    new_eliminatory = _optional_bool(data, "is_eliminatory", item.is_eliminatory)
    new_active = _optional_bool(data, "is_active", item.is_active)

    meaning_changed = new_text != item.text or new_eliminatory != item.is_eliminatory
    if meaning_changed and _item_in_use(item.id):
        raise ConflictError(
            f"EvaluationItem {item_id} has responses; only is_active can be changed",
            resource="EvaluationItem",
        )

    item.text = new_text
    item.is_eliminatory = new_eliminatory
    item.is_active = new_active
    db.session.commit()
    logger.info("EvaluationItem updated", extra={"item_id": item_id})
    return item.to_dict()


def delete_evaluation_item(item_id: int) -> None:
    item = _get_item(item_id)
    if _item_in_use(item.id):
        raise ConflictError(
            f"EvaluationItem {item_id} has responses; deactivate it instead",
            resource="EvaluationItem",
        )
    db.session.delete(item)
    try:
        db.session.commit()
    except IntegrityError as exc:
        # A response was written between the check and the delete
        db.session.rollback()
        raise ConflictError(
            f"EvaluationItem {item_id} has responses; deactivate it instead",
            resource="EvaluationItem",
        ) from exc
    logger.info("EvaluationItem deleted", extra={"item_id": item_id})


# ---------------------------------------------------------------------------
# Contract responsibles
# ---------------------------------------------------------------------------


def list_contract_responsibles() -> list[dict]:
    stmt = select(ContractResponsible).order_by(ContractResponsible.contract_code)
    return [cr.to_dict() for cr in db.session.execute(stmt).scalars()]


def _route_stalled_practices(mapping: ContractResponsible, actor_id) -> list[int]:
    """Hand the contract's unassigned review-stage practices to the configured reviewers."""
    reviewer_for = {
        STATUS_AWAITING_SESMT_EVAL: mapping.sesmt_reviewer,
        STATUS_AWAITING_MGMT_EVAL: mapping.management_reviewer,
    }
    stalled = db.session.execute(
        select(Practice)
        .where(
            Practice.contract == mapping.contract_code,
            Practice.status.in_(tuple(reviewer_for)),
            Practice.current_owner.is_(None),
        )
        .order_by(Practice.id)
        .with_for_update()
    ).scalars().all()

    for practice in stalled:
        previous = transfer_ownership(practice, reviewer_for[practice.status])
        write_audit(
            entity_type="practice",
            entity_id=practice.id,
            practice_id=practice.id,
            action="practice.reassign",
            actor=actor_id,
            diff={"current_owner": {"old": previous, "new": practice.current_owner}},
        )
    return [p.id for p in stalled]


def upsert_contract_responsible(data: dict, actor_id="system") -> tuple[dict, bool]:
    """Create or replace the reviewer mapping of one contract.

    Practices of the contract that were stalled in the SESMT or management
    stage for lack of a reviewer are assigned in the same transaction.

    Returns:
        (serialized mapping with ``reassigned_practice_ids``, created flag)
    """
    contract_code = _require_text(data, "contract_code", 64)
    sesmt_reviewer = _require_text(data, "sesmt_reviewer", 32)
    management_reviewer = _require_text(data, "management_reviewer", 32)

    mapping = db.session.execute(
        select(ContractResponsible).where(ContractResponsible.contract_code == contract_code)
    ).scalar_one_or_none()
    created = mapping is None
    if created:
        mapping = ContractResponsible(contract_code=contract_code)
        db.session.add(mapping)
    mapping.sesmt_reviewer = sesmt_reviewer
    mapping.management_reviewer = management_reviewer

    try:
        db.session.flush()
        reassigned = _route_stalled_practices(mapping, actor_id)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(
            f"Contract {contract_code} was configured by a concurrent request",
            resource="ContractResponsible",
            duplicate=True,
        ) from exc
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "ContractResponsible %s, %d stalled practice(s) assigned",
        "created" if created else "updated", len(reassigned),
        extra={"contract": contract_code},
    )
    result = mapping.to_dict()
    result["reassigned_practice_ids"] = reassigned
    return result, created


def delete_contract_responsible(mapping_id: int) -> None:
    mapping = db.session.get(ContractResponsible, mapping_id)
    if mapping is None:
        raise NotFoundError(resource="ContractResponsible", resource_id=mapping_id)
    contract_code = mapping.contract_code
    db.session.delete(mapping)
    db.session.commit()
    logger.info("ContractResponsible deleted", extra={"contract": contract_code})
