"""practice_workflow_tables

Create the good-practice workflow schema: practices, checklist items and
responses, contract reviewer mapping, votes and the audit trail.

Revision ID: 5d1e7a2c9b40
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "5d1e7a2c9b40"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "practices" not in existing_tables:
        op.create_table(
            "practices",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("problem_description", sa.Text(), nullable=True),
            sa.Column("objective", sa.Text(), nullable=True),
            sa.Column("results", sa.Text(), nullable=True),
            sa.Column("contract", sa.String(length=64), nullable=True),
            sa.Column("status", sa.String(length=32), nullable=False),
            sa.Column("eliminated", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("validated", sa.Boolean(), nullable=True),
            sa.Column("relevance", sa.Integer(), nullable=True),
            sa.Column("current_owner", sa.String(length=32), nullable=True),
            sa.Column("validation_comment", sa.Text(), nullable=True),
            sa.Column("creator_matricula", sa.String(length=32), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint(
                "eliminated = false OR status = 'concluded'",
                name="ck_practice_eliminated_concluded",
            ),
            sa.CheckConstraint(
                "relevance IS NULL OR (relevance >= 1 AND relevance <= 5)",
                name="ck_practice_relevance_range",
            ),
        )
        op.create_index("ix_practices_contract", "practices", ["contract"])
        op.create_index("ix_practices_status", "practices", ["status"])
        op.create_index("ix_practices_current_owner", "practices", ["current_owner"])
        op.create_index("ix_practices_creator_matricula", "practices", ["creator_matricula"])
        op.create_index("ix_practice_status_contract", "practices", ["status", "contract"])

    if "evaluation_items" not in existing_tables:
        op.create_table(
            "evaluation_items",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("text", sa.String(length=500), nullable=False),
            sa.Column("is_eliminatory", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_evaluation_items_is_active", "evaluation_items", ["is_active"])

    if "evaluation_responses" not in existing_tables:
        op.create_table(
            "evaluation_responses",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("practice_id", sa.Integer(), nullable=False),
            sa.Column("item_id", sa.Integer(), nullable=False),
            sa.Column("stage", sa.String(length=20), nullable=False),
            sa.Column("answer", sa.Boolean(), nullable=False),
            sa.Column("evaluator_matricula", sa.String(length=32), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["practice_id"], ["practices.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["item_id"], ["evaluation_items.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("practice_id", "item_id", "stage", name="uq_response_practice_item_stage"),
            sa.CheckConstraint("stage IN ('sesmt', 'management')", name="ck_response_stage"),
        )
        op.create_index("ix_evaluation_responses_practice_id", "evaluation_responses", ["practice_id"])
        op.create_index("ix_evaluation_responses_item_id", "evaluation_responses", ["item_id"])

    if "contract_responsibles" not in existing_tables:
        op.create_table(
            "contract_responsibles",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("contract_code", sa.String(length=64), nullable=False),
            sa.Column("sesmt_reviewer", sa.String(length=32), nullable=False),
            sa.Column("management_reviewer", sa.String(length=32), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("contract_code"),
        )

    if "votes" not in existing_tables:
        op.create_table(
            "votes",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("practice_id", sa.Integer(), nullable=False),
            sa.Column("voter_matricula", sa.String(length=32), nullable=False),
            sa.Column("voter_contract", sa.String(length=64), nullable=True),
            sa.Column("round_type", sa.String(length=20), nullable=False),
            sa.Column("answers", sa.JSON(), nullable=True),
            sa.Column("score", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["practice_id"], ["practices.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint(
                "practice_id", "voter_matricula", "round_type",
                name="uq_vote_practice_voter_round",
            ),
            sa.CheckConstraint("round_type IN ('quarterly', 'annual')", name="ck_vote_round_type"),
        )
        op.create_index("ix_votes_practice_id", "votes", ["practice_id"])
        op.create_index("ix_votes_voter_matricula", "votes", ["voter_matricula"])

    if "audit_logs" not in existing_tables:
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("entity_type", sa.String(length=30), nullable=False),
            sa.Column("entity_id", sa.String(length=36), nullable=False),
            sa.Column("practice_id", sa.Integer(), nullable=True),
            sa.Column("action", sa.String(length=60), nullable=False),
            sa.Column("actor", sa.String(length=32), nullable=False),
            sa.Column("diff_json", sa.Text(), nullable=True),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["practice_id"], ["practices.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_audit_logs_practice_id", "audit_logs", ["practice_id"])
        op.create_index("idx_audit_entity", "audit_logs", ["entity_type", "entity_id"])
        op.create_index("idx_audit_actor", "audit_logs", ["actor"])
        op.create_index("idx_audit_action", "audit_logs", ["action"])
        op.create_index("idx_audit_ts", "audit_logs", ["timestamp"])


def downgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    for table in (
        "audit_logs",
        "votes",
        "contract_responsibles",
        "evaluation_responses",
        "evaluation_items",
        "practices",
    ):
        if table in existing_tables:
            op.drop_table(table)
