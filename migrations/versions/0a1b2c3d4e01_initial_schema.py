"""initial_schema

Users, programs and memberships, invites, milestones with weekly reports
and manager feedback, balance sheet cycles and expenses, notifications
and the audit trail.

Revision ID: 0a1b2c3d4e01
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "0a1b2c3d4e01"
down_revision = None
branch_labels = None
depends_on = None


def _created_at():
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=True)


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("password_hash", sa.String(length=256), nullable=False),
            sa.Column("role", sa.String(length=30), nullable=False, server_default="participant"),
            _created_at(),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_users_email", "users", ["email"], unique=True)

    if "programs" not in existing_tables:
        op.create_table(
            "programs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("start_date", sa.Date(), nullable=False),
            sa.Column("end_date", sa.Date(), nullable=False),
            sa.Column("created_by", sa.Integer(), nullable=True),
            _created_at(),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_programs_deleted_at", "programs", ["deleted_at"])

    for table, extra_col, constraint in (
        ("program_managers", sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
         "uq_program_manager"),
        ("program_participants", sa.Column("enrolled_at", sa.DateTime(timezone=True), nullable=True),
         "uq_program_participant"),
    ):
        if table in existing_tables:
            continue
        columns = [
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("program_id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
        ]
        if table == "program_participants":
            columns.append(sa.Column("status", sa.String(length=20), nullable=True, server_default="active"))
        op.create_table(
            table,
            *columns,
            extra_col,
            sa.ForeignKeyConstraint(["program_id"], ["programs.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("program_id", "user_id", name=constraint),
        )
        op.create_index(f"ix_{table}_program_id", table, ["program_id"])
        op.create_index(f"ix_{table}_user_id", table, ["user_id"])

    if "invites" not in existing_tables:
        op.create_table(
            "invites",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("program_id", sa.Integer(), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("invite_code", sa.String(length=64), nullable=False),
            sa.Column("invited_by", sa.Integer(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            _created_at(),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("accepted_by", sa.Integer(), nullable=True),
            sa.ForeignKeyConstraint(["program_id"], ["programs.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["invited_by"], ["users.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["accepted_by"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("invite_code"),
        )
        op.create_index("ix_invites_program_id", "invites", ["program_id"])
        op.create_index("ix_invites_email", "invites", ["email"])

    if "milestones" not in existing_tables:
        op.create_table(
            "milestones",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("program_id", sa.Integer(), nullable=True),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("category", sa.String(length=20), nullable=False, server_default="other"),
            sa.Column("start_date", sa.Date(), nullable=False),
            sa.Column("end_date", sa.Date(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="not_started"),
            sa.Column("assigned_by", sa.Integer(), nullable=True),
            sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("assignment_type", sa.String(length=30), nullable=False, server_default="self_created"),
            sa.Column("is_required", sa.Boolean(), nullable=True, server_default=sa.false()),
            sa.Column("can_decline", sa.Boolean(), nullable=True, server_default=sa.true()),
            sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("decline_reason", sa.Text(), nullable=True),
            sa.Column("declined_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("response_accepted", sa.Boolean(), nullable=True),
            sa.Column("response_comment", sa.Text(), nullable=True),
            sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
            _created_at(),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["program_id"], ["programs.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["assigned_by"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_milestone_owner", "milestones", ["user_id"])
        op.create_index("idx_milestone_program", "milestones", ["program_id"])

    if "progress_reports" not in existing_tables:
        op.create_table(
            "progress_reports",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("milestone_id", sa.Integer(), nullable=False),
            sa.Column("week_number", sa.Integer(), nullable=False),
            sa.Column("report_date", sa.Date(), nullable=False),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("hours_spent", sa.Float(), nullable=True),
            sa.Column("completion_percentage", sa.Integer(), nullable=True, server_default="0"),
            _created_at(),
            sa.ForeignKeyConstraint(["milestone_id"], ["milestones.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("milestone_id", "week_number", name="uq_report_milestone_week"),
        )
        op.create_index("ix_progress_reports_milestone_id", "progress_reports", ["milestone_id"])

    if "manager_feedback" not in existing_tables:
        op.create_table(
            "manager_feedback",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("report_id", sa.Integer(), nullable=False),
            sa.Column("manager_id", sa.Integer(), nullable=True),
            sa.Column("feedback", sa.Text(), nullable=False),
            sa.Column("feedback_date", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["report_id"], ["progress_reports.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["manager_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_manager_feedback_report_id", "manager_feedback", ["report_id"])

    if "balance_cycles" not in existing_tables:
        op.create_table(
            "balance_cycles",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("start_date", sa.Date(), nullable=False),
            sa.Column("end_date", sa.Date(), nullable=False),
            sa.Column("budget", sa.Float(), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            _created_at(),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_cycle_owner_active", "balance_cycles", ["user_id", "is_active"])

    if "expenses" not in existing_tables:
        op.create_table(
            "expenses",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("cycle_id", sa.Integer(), nullable=False),
            sa.Column("date", sa.Date(), nullable=False),
            sa.Column("item", sa.String(length=300), nullable=False),
            sa.Column("amount", sa.Float(), nullable=False, server_default="0"),
            sa.Column("category", sa.String(length=50), nullable=True),
            sa.Column("receipt_url", sa.Text(), nullable=True),
            sa.Column("contact", sa.String(length=200), nullable=True),
            sa.Column("remarks", sa.Text(), nullable=True),
            _created_at(),
            sa.ForeignKeyConstraint(["cycle_id"], ["balance_cycles.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_expenses_cycle_id", "expenses", ["cycle_id"])

    if "notifications" not in existing_tables:
        op.create_table(
            "notifications",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("type", sa.String(length=20), nullable=False, server_default="general"),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("message", sa.Text(), nullable=True),
            sa.Column("data_json", sa.Text(), nullable=True),
            sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
            _created_at(),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_notification_user_created", "notifications", ["user_id", "created_at"])

    if "notified_deadlines" not in existing_tables:
        op.create_table(
            "notified_deadlines",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("notification_key", sa.String(length=64), nullable=False),
            _created_at(),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("user_id", "notification_key", name="uq_notified_deadline"),
        )
        op.create_index("ix_notified_deadlines_user_id", "notified_deadlines", ["user_id"])

    if "audit_logs" not in existing_tables:
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=True, comment="Actor"),
            sa.Column("action", sa.String(length=60), nullable=False),
            sa.Column("target_id", sa.Integer(), nullable=True, comment="Affected user"),
            sa.Column("program_id", sa.Integer(), nullable=True),
            sa.Column("details_json", sa.Text(), nullable=True),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_audit_actor", "audit_logs", ["user_id"])
        op.create_index("idx_audit_target", "audit_logs", ["target_id"])
        op.create_index("idx_audit_program", "audit_logs", ["program_id"])
        op.create_index("idx_audit_action", "audit_logs", ["action"])
        op.create_index("idx_audit_ts", "audit_logs", ["timestamp"])


def downgrade():
    for table in (
        "audit_logs",
        "notified_deadlines",
        "notifications",
        "expenses",
        "balance_cycles",
        "manager_feedback",
        "progress_reports",
        "milestones",
        "invites",
        "program_participants",
        "program_managers",
        "programs",
        "users",
    ):
        op.drop_table(table)
