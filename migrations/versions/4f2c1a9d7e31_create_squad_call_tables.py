"""Create users, squads and standard call tables

Revision ID: 4f2c1a9d7e31
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "4f2c1a9d7e31"
down_revision = None
branch_labels = None
depends_on = None

_TS = sa.DateTime(timezone=True)
_ACTIVE = sa.text("status IN ('pending','confirmed')")


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("first_name", sa.String(length=120), nullable=True),
        sa.Column("timezone", sa.String(length=64), nullable=False, server_default="UTC"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("email_squad_call_24h", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("email_squad_call_1h", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", _TS, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", _TS, nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "squads",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_premium", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("chat_channel_id", sa.String(length=128), nullable=True),
        sa.Column("active_proposal_id", sa.Integer(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", _TS, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", _TS, nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "squad_memberships",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("squad_id", sa.Integer(), sa.ForeignKey("squads.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", _TS, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("squad_id", "user_id", name="uq_squad_memberships_squad_user"),
    )
    op.create_index("ix_squad_memberships_squad_id", "squad_memberships", ["squad_id"])
    op.create_index("ix_squad_memberships_user_id", "squad_memberships", ["user_id"])

    op.create_table(
        "call_proposals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("squad_id", sa.Integer(), sa.ForeignKey("squads.id", ondelete="CASCADE"), nullable=False),
        sa.Column("proposal_type", sa.String(length=10), nullable=False, server_default="new"),
        sa.Column("status", sa.String(length=12), nullable=False, server_default="pending"),
        sa.Column("start_at", _TS, nullable=True),
        sa.Column("timezone", sa.String(length=64), nullable=False, server_default=""),
        sa.Column("location", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("title", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("original_call_id", sa.Integer(), sa.ForeignKey("call_proposals.id", ondelete="SET NULL"), nullable=True),
        sa.Column("yes_count", sa.Integer(), nullable=False),
        sa.Column("no_count", sa.Integer(), nullable=False),
        sa.Column("required_votes", sa.Integer(), nullable=False),
        sa.Column("total_members", sa.Integer(), nullable=False),
        sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", _TS, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", _TS, nullable=False, server_default=sa.func.now()),
        sa.Column("confirmed_at", _TS, nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.CheckConstraint("proposal_type IN ('new','edit','delete')", name="ck_call_proposals_type_valid"),
        sa.CheckConstraint("status IN ('pending','confirmed','canceled')", name="ck_call_proposals_status_valid"),
        sa.CheckConstraint("yes_count >= 0 AND no_count >= 0", name="ck_call_proposals_tally_non_negative"),
    )
    op.create_index("ix_call_proposals_squad_id", "call_proposals", ["squad_id"])
    op.create_index("ix_call_proposals_status", "call_proposals", ["status"])
    op.create_index("ix_call_proposals_original_call_id", "call_proposals", ["original_call_id"])
    # At most one pending/confirmed proposal per squad
    op.create_index(
        "uq_call_proposals_active_squad",
        "call_proposals",
        ["squad_id"],
        unique=True,
        postgresql_where=_ACTIVE,
        sqlite_where=_ACTIVE,
    )

    op.create_table(
        "call_votes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("call_id", sa.Integer(), sa.ForeignKey("call_proposals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("squad_id", sa.Integer(), sa.ForeignKey("squads.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("vote", sa.String(length=3), nullable=False),
        sa.Column("created_at", _TS, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", _TS, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("call_id", "user_id", name="uq_call_votes_call_user"),
        sa.CheckConstraint("vote IN ('yes','no')", name="ck_call_votes_vote_valid"),
    )
    op.create_index("ix_call_votes_call_id", "call_votes", ["call_id"])
    op.create_index("ix_call_votes_squad_id", "call_votes", ["squad_id"])
    op.create_index("ix_call_votes_user_id", "call_votes", ["user_id"])

    op.create_table(
        "scheduled_call_jobs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("squad_id", sa.Integer(), sa.ForeignKey("squads.id", ondelete="CASCADE"), nullable=False),
        sa.Column("call_id", sa.Integer(), nullable=False),
        sa.Column("job_type", sa.String(length=32), nullable=False),
        sa.Column("scheduled_time", _TS, nullable=False),
        sa.Column("call_date_time", _TS, nullable=False),
        sa.Column("call_timezone", sa.String(length=64), nullable=False, server_default="UTC"),
        sa.Column("call_location", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("call_title", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("executed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("executed_at", _TS, nullable=True),
        sa.Column("error", sa.String(length=500), nullable=True),
        sa.Column("created_at", _TS, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", _TS, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("squad_id", "call_id", "job_type", name="uq_scheduled_call_jobs_call_type"),
    )
    op.create_index("ix_scheduled_call_jobs_squad_id", "scheduled_call_jobs", ["squad_id"])
    op.create_index("ix_scheduled_call_jobs_call_id", "scheduled_call_jobs", ["call_id"])
    op.create_index("ix_scheduled_call_jobs_scheduled_time", "scheduled_call_jobs", ["scheduled_time"])
    op.create_index("ix_scheduled_call_jobs_executed", "scheduled_call_jobs", ["executed"])

    op.create_table(
        "squad_call_reminders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("squad_id", sa.Integer(), sa.ForeignKey("squads.id", ondelete="CASCADE"), nullable=False),
        sa.Column("call_id", sa.Integer(), nullable=False),
        sa.Column("call_date_time", _TS, nullable=False),
        sa.Column("call_timezone", sa.String(length=64), nullable=False, server_default="UTC"),
        sa.Column("call_location", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("call_title", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("reminder_time", _TS, nullable=False),
        sa.Column("sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sent_at", _TS, nullable=True),
        sa.Column("error", sa.String(length=500), nullable=True),
        sa.Column("created_at", _TS, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", _TS, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_squad_call_reminders_squad_id", "squad_call_reminders", ["squad_id"], unique=True)
    op.create_index("ix_squad_call_reminders_call_id", "squad_call_reminders", ["call_id"])
    op.create_index("ix_squad_call_reminders_reminder_time", "squad_call_reminders", ["reminder_time"])
    op.create_index("ix_squad_call_reminders_sent", "squad_call_reminders", ["sent"])

    op.create_table(
        "squad_chat_messages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("squad_id", sa.Integer(), sa.ForeignKey("squads.id", ondelete="CASCADE"), nullable=False),
        sa.Column("channel_id", sa.String(length=128), nullable=True),
        sa.Column("notification_type", sa.String(length=32), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="queued"),
        sa.Column("meta", sa.JSON(), nullable=False),
        sa.Column("created_at", _TS, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_squad_chat_messages_squad_id", "squad_chat_messages", ["squad_id"])
    op.create_index("ix_squad_chat_messages_notification_type", "squad_chat_messages", ["notification_type"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(length=40), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("action_route", sa.String(length=255), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", _TS, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])

    op.create_table(
        "email_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("to_email", sa.String(length=320), nullable=False),
        sa.Column("template", sa.String(length=64), nullable=False),
        sa.Column("subject", sa.String(length=200), nullable=False),
        sa.Column("provider_msg_id", sa.String(length=128), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("meta", sa.JSON(), nullable=False),
        sa.Column("created_at", _TS, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_email_logs_to_email", "email_logs", ["to_email"])
    op.create_index("ix_email_logs_provider_msg_id", "email_logs", ["provider_msg_id"])
    op.create_index("ix_email_logs_status", "email_logs", ["status"])


def downgrade():
    op.drop_table("email_logs")
    op.drop_table("notifications")
    op.drop_table("squad_chat_messages")
    op.drop_table("squad_call_reminders")
    op.drop_table("scheduled_call_jobs")
    op.drop_table("call_votes")
    op.drop_index("uq_call_proposals_active_squad", table_name="call_proposals")
    op.drop_table("call_proposals")
    op.drop_table("squad_memberships")
    op.drop_table("squads")
    op.drop_table("users")
