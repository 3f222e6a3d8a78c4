"""committees_and_involvements

Voting committees (one local per contract, one corporate) with their members,
and the co-authors named on a practice.

Revision ID: 7b3f0c8e1d52
Revises: 5d1e7a2c9b40
Create Date: 2026-10-18 14:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "7b3f0c8e1d52"
down_revision = "5d1e7a2c9b40"
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "committees" not in existing_tables:
        op.create_table(
            "committees",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("kind", sa.String(length=16), nullable=False),
            sa.Column("contract_code", sa.String(length=64), nullable=True),
            sa.Column("created_by", sa.String(length=32), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("kind", "contract_code", name="uq_committee_kind_contract"),
            sa.CheckConstraint(
                "(kind = 'local' AND contract_code IS NOT NULL) OR "
                "(kind = 'corporate' AND contract_code IS NULL)",
                name="ck_committee_kind_contract",
            ),
        )
        op.create_index("ix_committees_contract_code", "committees", ["contract_code"])

    if "committee_members" not in existing_tables:
        op.create_table(
            "committee_members",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("committee_id", sa.Integer(), nullable=False),
            sa.Column("matricula", sa.String(length=32), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.ForeignKeyConstraint(["committee_id"], ["committees.id"], ondelete="CASCADE"),
            sa.UniqueConstraint("committee_id", "matricula", name="uq_committee_member"),
        )
        op.create_index("ix_committee_members_committee_id", "committee_members", ["committee_id"])
        op.create_index("ix_committee_members_matricula", "committee_members", ["matricula"])

    if "practice_involvements" not in existing_tables:
        op.create_table(
            "practice_involvements",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("practice_id", sa.Integer(), nullable=False),
            sa.Column("matricula", sa.String(length=32), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.ForeignKeyConstraint(["practice_id"], ["practices.id"], ondelete="CASCADE"),
            sa.UniqueConstraint("practice_id", "matricula", name="uq_practice_involvement"),
        )
        op.create_index("ix_practice_involvements_practice_id", "practice_involvements", ["practice_id"])
        op.create_index("ix_practice_involvements_matricula", "practice_involvements", ["matricula"])


def downgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    for table in ("practice_involvements", "committee_members", "committees"):
        if table in existing_tables:
            op.drop_table(table)
