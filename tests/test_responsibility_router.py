"""
Responsibility Router tests.

Covers:
  - mapped contract resolves both reviewers
  - unmapped contract / no contract → owner None + CONFIG_GAP, never raises
  - the gap is logged at WARNING
"""

import logging

from practice_portal.services.responsibility_router import (
    ConfigurationGap,
    resolve_management_reviewer,
    resolve_sesmt_reviewer,
)
from tests.factories import CONTRACT, MGMT_REVIEWER, OTHER_CONTRACT, SESMT_REVIEWER


def test_mapped_contract_resolves_both_roles(contract_mapping):
    sesmt = resolve_sesmt_reviewer(CONTRACT)
    mgmt = resolve_management_reviewer(CONTRACT)
    assert sesmt.owner == SESMT_REVIEWER
    assert mgmt.owner == MGMT_REVIEWER
    assert sesmt.gap is None
    assert sesmt.warnings == []


def test_unmapped_contract_returns_gap(contract_mapping):
    result = resolve_management_reviewer(OTHER_CONTRACT)
    assert result.owner is None
    assert result.gap == ConfigurationGap(contract=OTHER_CONTRACT, role="management")
    assert result.warnings == [{
        "code": "CONFIG_GAP",
        "message": f"No management reviewer configured for contract {OTHER_CONTRACT}",
        "contract": OTHER_CONTRACT,
        "role": "management",
    }]


def test_missing_contract_returns_gap():
    result = resolve_sesmt_reviewer(None)
    assert result.owner is None
    assert result.gap.contract is None
    assert "no contract" in result.gap.message


def test_gap_is_logged(caplog):
    with caplog.at_level(logging.WARNING, logger="practice_portal.services.responsibility_router"):
        resolve_sesmt_reviewer(OTHER_CONTRACT)
    assert any("No sesmt reviewer configured" in r.getMessage() for r in caplog.records)
