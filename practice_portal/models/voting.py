"""
Good Practice Portal
Vote — append-only voting ledger.

One row per (practice, voter, round type). The unique constraint is the
only deduplication guard: the ledger never checks for an existing vote
before inserting, so concurrent double submissions cannot both succeed.
"""

from datetime import datetime, timezone

from practice_portal.models import db
from practice_portal.models.practice import (
    STATUS_AWAITING_ANNUAL_VOTE,
    STATUS_AWAITING_QUARTERLY_VOTE,
)

# ── Constants ────────────────────────────────────────────────────────────────

ROUND_QUARTERLY = "quarterly"
ROUND_ANNUAL = "annual"

VOTING_ROUNDS = (ROUND_QUARTERLY, ROUND_ANNUAL)

# Practice status in which each round accepts ballots
ROUND_STATUS = {
    ROUND_QUARTERLY: STATUS_AWAITING_QUARTERLY_VOTE,
    ROUND_ANNUAL: STATUS_AWAITING_ANNUAL_VOTE,
}

# Ballot questionnaire: five questions, each graded on a five-step scale
BALLOT_ANSWER_VALUES = {
    "insatisfatorio": 1,
    "satisfatorio": 2,
    "bom": 3,
    "muito bom": 4,
    "otimo": 5,
}

BALLOT_QUESTION_WEIGHTS = {
    "1": 1,
    "2": 3,
    "3": 2,
    "4": 5,
    "5": 4,
}


class Vote(db.Model):
    """A single ballot. Never updated or deleted by the workflow."""

    __tablename__ = "votes"

    id = db.Column(db.Integer, primary_key=True)
    practice_id = db.Column(
        db.Integer,
        db.ForeignKey("practices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    voter_matricula = db.Column(db.String(32), nullable=False, index=True)
    voter_contract = db.Column(db.String(64), nullable=True)
    round_type = db.Column(db.String(20), nullable=False, comment="quarterly | annual")

    answers = db.Column(db.JSON, nullable=True, comment='{"1": "bom", ..., "5": "otimo"}')
    score = db.Column(db.Integer, nullable=True, comment="Weighted ballot score when answers were given")

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint(
            "practice_id", "voter_matricula", "round_type",
            name="uq_vote_practice_voter_round",
        ),
        db.CheckConstraint(
            f"round_type IN ('{ROUND_QUARTERLY}', '{ROUND_ANNUAL}')",
            name="ck_vote_round_type",
        ),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "practice_id": self.practice_id,
            "voter_matricula": self.voter_matricula,
            "voter_contract": self.voter_contract,
            "round_type": self.round_type,
            "answers": self.answers,
            "score": self.score,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Vote p={self.practice_id} voter={self.voter_matricula} {self.round_type}>"
