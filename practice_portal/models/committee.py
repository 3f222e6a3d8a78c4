"""
Good Practice Portal
Committee — the people expected to vote in each round.

    local      one per contract; its members vote in the quarterly round of
               that contract's practices
    corporate  at most one; its members vote in the annual round

Committees do not restrict who may cast a ballot (the voting ledger enforces
only the contract scope of the quarterly round); they name the expected
voters so the tally can show who has and has not voted.
"""

from datetime import datetime, timezone

from practice_portal.models import db
from practice_portal.models.voting import ROUND_ANNUAL, ROUND_QUARTERLY

COMMITTEE_LOCAL = "local"
COMMITTEE_CORPORATE = "corporate"
COMMITTEE_KINDS = (COMMITTEE_LOCAL, COMMITTEE_CORPORATE)

# Committee kind whose members are expected in each voting round
ROUND_COMMITTEE_KIND = {
    ROUND_QUARTERLY: COMMITTEE_LOCAL,
    ROUND_ANNUAL: COMMITTEE_CORPORATE,
}


def _utcnow():
    return datetime.now(timezone.utc)


class Committee(db.Model):
    __tablename__ = "committees"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    kind = db.Column(db.String(16), nullable=False, comment="local | corporate")
    contract_code = db.Column(
        db.String(64), nullable=True, index=True,
        comment="Contract of a local committee; NULL for the corporate committee",
    )
    created_by = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    members = db.relationship(
        "CommitteeMember", backref="committee", lazy="select",
        cascade="all, delete-orphan", passive_deletes=True,
        order_by="CommitteeMember.matricula",
    )

    __table_args__ = (
        db.CheckConstraint(
            f"(kind = '{COMMITTEE_LOCAL}' AND contract_code IS NOT NULL) OR "
            f"(kind = '{COMMITTEE_CORPORATE}' AND contract_code IS NULL)",
            name="ck_committee_kind_contract",
        ),
        db.UniqueConstraint("kind", "contract_code", name="uq_committee_kind_contract"),
    )

    @property
    def member_ids(self) -> list[str]:
        return [m.matricula for m in self.members]

    def to_summary_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind,
            "contract_code": self.contract_code,
        }

    def to_dict(self) -> dict:
        result = self.to_summary_dict()
        result.update({
            "description": self.description,
            "members": self.member_ids,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        })
        return result

    def __repr__(self):
        return f"<Committee {self.id} {self.kind} {self.contract_code or ''}>"


class CommitteeMember(db.Model):
    __tablename__ = "committee_members"

    id = db.Column(db.Integer, primary_key=True)
    committee_id = db.Column(
        db.Integer,
        db.ForeignKey("committees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    matricula = db.Column(db.String(32), nullable=False, index=True)

    __table_args__ = (
        db.UniqueConstraint("committee_id", "matricula", name="uq_committee_member"),
    )
