"""request_approval_chain

Create request_approvals: the ordered approver chain of a request.

Revision ID: 8b4e6d20c7a5
Revises: 5f1c2a9d0b31
Create Date: 2026-10-19 14:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "8b4e6d20c7a5"
down_revision = "5f1c2a9d0b31"
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "request_approvals" not in existing_tables:
        op.create_table(
            "request_approvals",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("request_id", sa.Integer(), nullable=False),
            sa.Column("approver_id", sa.Integer(), nullable=False),
            sa.Column("sequence_order", sa.Integer(), nullable=False),
            sa.Column("is_current", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("decision", sa.String(length=20), nullable=True),
            sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("comments", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["request_id"], ["provident_requests.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["approver_id"], ["users.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("request_id", "sequence_order", name="uq_request_approvals_sequence"),
            sa.UniqueConstraint("request_id", "approver_id", name="uq_request_approvals_approver"),
        )
        op.create_index("ix_request_approvals_approver", "request_approvals", ["approver_id"])


def downgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "request_approvals" in existing_tables:
        op.drop_index("ix_request_approvals_approver", table_name="request_approvals")
        op.drop_table("request_approvals")
