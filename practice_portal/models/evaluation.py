"""
Good Practice Portal
Checklist models — evaluation items and per-stage responses.

Models:
    - EvaluationItem:      checklist question shared by both review stages
    - EvaluationResponse:  one boolean answer per (practice, item, stage)

The two review stages write to the same table; ``stage`` is an explicit
discriminant so replacing one stage's answers never touches the other's.
"""

from datetime import datetime, timezone

from practice_portal.models import db


# ── Constants ────────────────────────────────────────────────────────────────

STAGE_SESMT = "sesmt"
STAGE_MANAGEMENT = "management"

EVALUATION_STAGES = (STAGE_SESMT, STAGE_MANAGEMENT)


def _utcnow():
    return datetime.now(timezone.utc)


class EvaluationItem(db.Model):
    """
    Checklist question.

    Business rules:
    - The set of active items is the checklist every evaluation must answer
      in full.
    - An item referenced by a response keeps its text and eliminatory flag;
      it can be deactivated but never deleted (FK is RESTRICT).
    """

    __tablename__ = "evaluation_items"

    id = db.Column(db.Integer, primary_key=True)
    text = db.Column(db.String(500), nullable=False)
    is_eliminatory = db.Column(
        db.Boolean, nullable=False, default=False,
        comment="An affirmative answer unconditionally eliminates the practice",
    )
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "is_eliminatory": self.is_eliminatory,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        flag = " [E]" if self.is_eliminatory else ""
        return f"<EvaluationItem {self.id}{flag}: {self.text[:40]}>"


class EvaluationResponse(db.Model):
    """Answer to one checklist item, written inside a scoring transaction."""

    __tablename__ = "evaluation_responses"

    id = db.Column(db.Integer, primary_key=True)
    practice_id = db.Column(
        db.Integer,
        db.ForeignKey("practices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    item_id = db.Column(
        db.Integer,
        db.ForeignKey("evaluation_items.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    stage = db.Column(db.String(20), nullable=False, comment="sesmt | management")
    answer = db.Column(db.Boolean, nullable=False)
    evaluator_matricula = db.Column(db.String(32), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    item = db.relationship("EvaluationItem", lazy="joined")

    __table_args__ = (
        db.UniqueConstraint("practice_id", "item_id", "stage", name="uq_response_practice_item_stage"),
        db.CheckConstraint(
            f"stage IN ('{STAGE_SESMT}', '{STAGE_MANAGEMENT}')",
            name="ck_response_stage",
        ),
    )

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "item_text": self.item.text if self.item else None,
            "is_eliminatory": self.item.is_eliminatory if self.item else None,
            "stage": self.stage,
            "answer": self.answer,
            "evaluator_matricula": self.evaluator_matricula,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<EvaluationResponse p={self.practice_id} item={self.item_id} {self.stage}={self.answer}>"
