"""
Good Practice Portal
ContractResponsible — per-contract reviewer mapping.

Read by the responsibility router; written only by administrative
configuration endpoints.
"""

from datetime import datetime, timezone

from practice_portal.models import db


def _utcnow():
    return datetime.now(timezone.utc)


class ContractResponsible(db.Model):
    """Designated SESMT and management reviewers for one contract."""

    __tablename__ = "contract_responsibles"

    id = db.Column(db.Integer, primary_key=True)
    contract_code = db.Column(db.String(64), nullable=False, unique=True)
    sesmt_reviewer = db.Column(db.String(32), nullable=False, comment="Matricula of the SESMT reviewer")
    management_reviewer = db.Column(db.String(32), nullable=False, comment="Matricula of the management reviewer")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "contract_code": self.contract_code,
            "sesmt_reviewer": self.sesmt_reviewer,
            "management_reviewer": self.management_reviewer,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<ContractResponsible {self.contract_code}>"
