"""
Responsibility Router — per-contract reviewer resolution.

Pure lookup over ContractResponsible:
    resolve_sesmt_reviewer(contract)       → used when a practice is created
    resolve_management_reviewer(contract)  → used when the SESMT stage passes

A missing mapping is not an error: the router returns ``owner=None`` plus a
``ConfigurationGap`` that the caller surfaces as a warning. The practice is
then stalled ("unassigned") until an administrator configures the contract;
saving the mapping assigns it (catalog_service.upsert_contract_responsible).

The validation stage does not route through here; its reviewer is the
``DEFAULT_VALIDATOR_ID`` configuration value (see practice_lifecycle).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select

from practice_portal.models import db
from practice_portal.models.contract import ContractResponsible

logger = logging.getLogger(__name__)

ROLE_SESMT = "sesmt"
ROLE_MANAGEMENT = "management"

_ROLE_COLUMN = {
    ROLE_SESMT: ContractResponsible.sesmt_reviewer,
    ROLE_MANAGEMENT: ContractResponsible.management_reviewer,
}


@dataclass(frozen=True)
class ConfigurationGap:
    """Missing reviewer configuration for a contract. Non-fatal."""
    contract: str | None
    role: str

    code = "CONFIG_GAP"

    @property
    def message(self) -> str:
        if not self.contract:
            return f"Practice has no contract; no {self.role} reviewer can be assigned"
        return f"No {self.role} reviewer configured for contract {self.contract}"

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "contract": self.contract,
            "role": self.role,
        }


@dataclass(frozen=True)
class RoutingResult:
    """Outcome of a reviewer lookup: an owner, or a gap explaining why not."""
    owner: str | None
    gap: ConfigurationGap | None = None

    @property
    def warnings(self) -> list[dict]:
        return [self.gap.to_dict()] if self.gap else []


def _resolve(contract: str | None, role: str) -> RoutingResult:
    owner = None
    if contract:
        owner = db.session.execute(
            select(_ROLE_COLUMN[role]).where(ContractResponsible.contract_code == contract)
        ).scalar_one_or_none()

    if owner:
        return RoutingResult(owner=str(owner))

    gap = ConfigurationGap(contract=contract, role=role)
    logger.warning(gap.message, extra={"contract": contract, "stage": role})
    return RoutingResult(owner=None, gap=gap)


def resolve_sesmt_reviewer(contract: str | None) -> RoutingResult:
    """Return the contract's SESMT reviewer (first evaluation stage)."""
    return _resolve(contract, ROLE_SESMT)


def resolve_management_reviewer(contract: str | None) -> RoutingResult:
    """Return the contract's management reviewer (second evaluation stage)."""
    return _resolve(contract, ROLE_MANAGEMENT)

