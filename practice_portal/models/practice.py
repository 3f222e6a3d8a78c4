"""
Good Practice Portal
Practice domain model — the central, long-lived workflow record.

Lifecycle states:
    awaiting_sesmt_eval → awaiting_mgmt_eval → awaiting_validation
    → awaiting_quarterly_vote → awaiting_annual_vote → concluded

    Short-circuit edges to concluded:
      awaiting_sesmt_eval / awaiting_mgmt_eval  (checklist elimination)
      awaiting_validation                       (validation gate rejection)

Invariants:
    - eliminated=True implies status=concluded (also a CHECK constraint)
    - current_owner is set only in the three "awaiting human action" states;
      it may still be None there when the contract has no reviewer mapping
      (stalled, reported as "unassigned")
"""

from datetime import datetime, timezone

from practice_portal.models import db


# ── Constants ────────────────────────────────────────────────────────────────

STATUS_AWAITING_SESMT_EVAL = "awaiting_sesmt_eval"
STATUS_AWAITING_MGMT_EVAL = "awaiting_mgmt_eval"
STATUS_AWAITING_VALIDATION = "awaiting_validation"
STATUS_AWAITING_QUARTERLY_VOTE = "awaiting_quarterly_vote"
STATUS_AWAITING_ANNUAL_VOTE = "awaiting_annual_vote"
STATUS_CONCLUDED = "concluded"

PRACTICE_STATUSES = (
    STATUS_AWAITING_SESMT_EVAL,
    STATUS_AWAITING_MGMT_EVAL,
    STATUS_AWAITING_VALIDATION,
    STATUS_AWAITING_QUARTERLY_VOTE,
    STATUS_AWAITING_ANNUAL_VOTE,
    STATUS_CONCLUDED,
)

# States in which exactly one person must act next
OWNER_STATES = frozenset({
    STATUS_AWAITING_SESMT_EVAL,
    STATUS_AWAITING_MGMT_EVAL,
    STATUS_AWAITING_VALIDATION,
})

VOTING_STATES = frozenset({
    STATUS_AWAITING_QUARTERLY_VOTE,
    STATUS_AWAITING_ANNUAL_VOTE,
})

RELEVANCE_MIN = 1
RELEVANCE_MAX = 5


# ── Lifecycle Transition Guards ──────────────────────────────────────────────

PRACTICE_TRANSITIONS = {
    STATUS_AWAITING_SESMT_EVAL:     [STATUS_AWAITING_MGMT_EVAL, STATUS_CONCLUDED],
    STATUS_AWAITING_MGMT_EVAL:      [STATUS_AWAITING_VALIDATION, STATUS_CONCLUDED],
    STATUS_AWAITING_VALIDATION:     [STATUS_AWAITING_QUARTERLY_VOTE, STATUS_CONCLUDED],
    STATUS_AWAITING_QUARTERLY_VOTE: [STATUS_AWAITING_ANNUAL_VOTE],
    STATUS_AWAITING_ANNUAL_VOTE:    [STATUS_CONCLUDED],
    STATUS_CONCLUDED:               [],
}


def validate_practice_transition(old_status, new_status):
    """Return True if the Practice status transition is valid."""
    return new_status in PRACTICE_TRANSITIONS.get(old_status, [])


def _utcnow():
    return datetime.now(timezone.utc)


class Practice(db.Model):
    """
    A submitted good-practice proposal moving through review and voting.

    Mutated only by the workflow services (practice_lifecycle and the
    stage services built on it). ``version`` is the ORM row version: a
    flush that finds a different stored version raises StaleDataError.
    """

    __tablename__ = "practices"

    id = db.Column(db.Integer, primary_key=True)

    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    problem_description = db.Column(db.Text, nullable=True)
    objective = db.Column(db.Text, nullable=True)
    results = db.Column(db.Text, nullable=True)

    contract = db.Column(
        db.String(64), nullable=True, index=True,
        comment="Organizational scope: drives reviewer routing and quarterly voting eligibility",
    )
    status = db.Column(
        db.String(32), nullable=False, default=STATUS_AWAITING_SESMT_EVAL, index=True,
        comment="awaiting_sesmt_eval | awaiting_mgmt_eval | awaiting_validation | "
                "awaiting_quarterly_vote | awaiting_annual_vote | concluded",
    )
    eliminated = db.Column(db.Boolean, nullable=False, default=False)
    validated = db.Column(
        db.Boolean, nullable=True,
        comment="Set exclusively by the validation gate; NULL until decided",
    )
    relevance = db.Column(db.Integer, nullable=True, comment="1..5, set by the management stage")
    current_owner = db.Column(
        db.String(32), nullable=True, index=True,
        comment="Matricula of whoever must act next; NULL when no action is pending",
    )
    validation_comment = db.Column(db.Text, nullable=True)

    creator_matricula = db.Column(db.String(32), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    version = db.Column(db.Integer, nullable=False, default=1)

    responses = db.relationship(
        "EvaluationResponse", backref="practice", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    votes = db.relationship(
        "Vote", backref="practice", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    involvements = db.relationship(
        "PracticeInvolvement", lazy="select",
        cascade="all, delete-orphan", passive_deletes=True,
        order_by="PracticeInvolvement.matricula",
    )

    __table_args__ = (
        db.CheckConstraint(
            f"eliminated = false OR status = '{STATUS_CONCLUDED}'",
            name="ck_practice_eliminated_concluded",
        ),
        db.CheckConstraint(
            f"relevance IS NULL OR (relevance >= {RELEVANCE_MIN} AND relevance <= {RELEVANCE_MAX})",
            name="ck_practice_relevance_range",
        ),
        db.Index("ix_practice_status_contract", "status", "contract"),
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def assignment(self) -> str | None:
        """'assigned' / 'unassigned' in owner states, None elsewhere."""
        if self.status not in OWNER_STATES:
            return None
        return "assigned" if self.current_owner else "unassigned"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "problem_description": self.problem_description,
            "objective": self.objective,
            "results": self.results,
            "contract": self.contract,
            "status": self.status,
            "eliminated": self.eliminated,
            "validated": self.validated,
            "relevance": self.relevance,
            "current_owner": self.current_owner,
            "assignment": self.assignment,
            "validation_comment": self.validation_comment,
            "creator_matricula": self.creator_matricula,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def to_summary_dict(self) -> dict:
        """Compact form for queues and listings."""
        return {
            "id": self.id,
            "title": self.title,
            "contract": self.contract,
            "status": self.status,
            "relevance": self.relevance,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Practice {self.id}: {self.status}>"


class PracticeInvolvement(db.Model):
    """A co-author named on a practice besides its creator."""

    __tablename__ = "practice_involvements"

    id = db.Column(db.Integer, primary_key=True)
    practice_id = db.Column(
        db.Integer,
        db.ForeignKey("practices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    matricula = db.Column(db.String(32), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        db.UniqueConstraint("practice_id", "matricula", name="uq_practice_involvement"),
    )
