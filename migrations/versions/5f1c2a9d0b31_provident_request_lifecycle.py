"""provident_request_lifecycle

Create users, provident_requests, request_history and notifications.

Revision ID: 5f1c2a9d0b31
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "5f1c2a9d0b31"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("employee_no", sa.String(length=30), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=True),
            sa.Column("role", sa.String(length=20), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("employee_no"),
        )
        op.create_index("ix_users_role", "users", ["role"])

    if "provident_requests" not in existing_tables:
        op.create_table(
            "provident_requests",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("employee_id", sa.Integer(), nullable=False),
            sa.Column("request_kind", sa.String(length=20), nullable=False),
            sa.Column("request_type", sa.String(length=50), nullable=False),
            sa.Column("payout_amount", sa.Numeric(14, 2), nullable=False),
            sa.Column("purpose_detail", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False),
            sa.Column("assistant_id", sa.Integer(), nullable=True),
            sa.Column("officer_id", sa.Integer(), nullable=True),
            sa.Column("approver_id", sa.Integer(), nullable=True),
            sa.Column("released_by", sa.Integer(), nullable=True),
            sa.Column("payment_reference", sa.String(length=100), nullable=True),
            sa.Column("remarks", sa.Text(), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.CheckConstraint("payout_amount > 0", name="ck_provident_requests_amount_positive"),
            sa.ForeignKeyConstraint(["employee_id"], ["users.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["assistant_id"], ["users.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["officer_id"], ["users.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["approver_id"], ["users.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["released_by"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_provident_requests_status", "provident_requests", ["status"])
        op.create_index("ix_provident_requests_employee", "provident_requests", ["employee_id"])
        op.create_index("ix_provident_requests_created", "provident_requests", ["created_at"])

    if "request_history" not in existing_tables:
        op.create_table(
            "request_history",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("request_id", sa.Integer(), nullable=False),
            sa.Column("action", sa.String(length=80), nullable=False),
            sa.Column("actor_id", sa.Integer(), nullable=True),
            sa.Column("actor_role", sa.String(length=20), nullable=True),
            sa.Column("from_status", sa.String(length=20), nullable=True),
            sa.Column("to_status", sa.String(length=20), nullable=False),
            sa.Column("remarks", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["request_id"], ["provident_requests.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["actor_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_request_history_request_ts", "request_history", ["request_id", "created_at"])
        op.create_index("ix_request_history_actor", "request_history", ["actor_id"])

    if "notifications" not in existing_tables:
        op.create_table(
            "notifications",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("recipient_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("message", sa.Text(), nullable=True),
            sa.Column("severity", sa.String(length=20), nullable=True),
            sa.Column("data_json", sa.Text(), nullable=True),
            sa.Column("is_read", sa.Boolean(), nullable=True),
            sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["recipient_id"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"])


def downgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "notifications" in existing_tables:
        op.drop_index("ix_notifications_recipient_id", table_name="notifications")
        op.drop_table("notifications")
    if "request_history" in existing_tables:
        op.drop_index("ix_request_history_actor", table_name="request_history")
        op.drop_index("ix_request_history_request_ts", table_name="request_history")
        op.drop_table("request_history")
    if "provident_requests" in existing_tables:
        op.drop_index("ix_provident_requests_created", table_name="provident_requests")
        op.drop_index("ix_provident_requests_employee", table_name="provident_requests")
        op.drop_index("ix_provident_requests_status", table_name="provident_requests")
        op.drop_table("provident_requests")
    if "users" in existing_tables:
        op.drop_index("ix_users_role", table_name="users")
        op.drop_table("users")
