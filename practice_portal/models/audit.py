"""
Good Practice Portal
Audit domain model.

Models:
    - AuditLog: immutable, append-only audit trail for workflow events.
"""

import json
from datetime import UTC, datetime

from practice_portal.models import db


# ── Constants ────────────────────────────────────────────────────────────────

AUDIT_ACTIONS = {
    "practice.create",
    "practice.sesmt_evaluate",
    "practice.management_evaluate",
    "practice.validate",
    "practice.close_voting_round",
    "vote.cast",
}


class AuditLog(db.Model):
    """
    Immutable audit trail for every workflow event.

    One row per action.  ``diff_json`` carries an old→new snapshot of the
    fields a transition changed.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_entity", "entity_type", "entity_id"),
        db.Index("idx_audit_actor", "actor"),
        db.Index("idx_audit_action", "action"),
        db.Index("idx_audit_ts", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)

    # Polymorphic entity reference
    entity_type = db.Column(
        db.String(30), nullable=False,
        comment="practice | vote",
    )
    entity_id = db.Column(
        db.String(36), nullable=False,
        comment="PK of the referenced entity (int-as-string)",
    )
    practice_id = db.Column(
        db.Integer,
        db.ForeignKey("practices.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    action = db.Column(
        db.String(60), nullable=False,
        comment="practice.sesmt_evaluate | practice.validate | vote.cast | …",
    )
    actor = db.Column(
        db.String(32), nullable=False, default="system",
        comment="Matricula of the acting user, or 'system'",
    )

    diff_json = db.Column(
        db.Text, default="{}",
        comment="JSON: {field: {old, new}}",
    )

    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(UTC),
    )

    # ── Helpers ──────────────────────────────────────────────────────────

    @property
    def diff(self) -> dict:
        """Deserialise *diff_json* to a Python dict."""
        try:
            return json.loads(self.diff_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "practice_id": self.practice_id,
            "action": self.action,
            "actor": self.actor,
            "diff": self.diff,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.action} on {self.entity_type}/{self.entity_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_audit(
    *,
    entity_type: str,
    entity_id,
    action: str,
    actor: str = "system",
    practice_id: int | None = None,
    diff: dict | None = None,
) -> AuditLog:
    """
    Append a single audit row.  Uses ``flush`` so callers keep
    transaction control: the row commits or rolls back with the
    transition it describes.

    Returns the (flushed) AuditLog instance.
    """
    log = AuditLog(
        entity_type=entity_type,
        entity_id=str(entity_id),
        practice_id=practice_id,
        action=action,
        actor=str(actor),
        diff_json=json.dumps(diff or {}, default=str),
    )
    db.session.add(log)
    db.session.flush()
    return log
