"""001_initial_schema

Revision ID: 001
Revises:
Create Date: 2026-09-28 10:00:00.000000

Initial schema for the league event and roster system:
- users
- events (with roster_version, the per-event lock counter)
- event_registrations (one row per event/user, reactivated in place)
- event_captains
- audit_logs
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables and indexes."""
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("first_name", sa.String(), nullable=False),
        sa.Column("last_name", sa.String(), nullable=False),
        sa.Column("nickname", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("idx_users_email", "users", ["email"], unique=False)

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("league", sa.String(length=10), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("location", sa.String(), nullable=False, server_default="TBD"),
        sa.Column("rink", sa.String(), nullable=True),
        sa.Column("venue_key", sa.String(length=50), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("has_fee", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("cost_amount", sa.Float(), nullable=True),
        sa.Column("max_players", sa.Integer(), nullable=True),
        sa.Column("approval_needed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("roster_version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"], ondelete="SET NULL"),
        sa.CheckConstraint(
            "max_players IS NULL OR max_players >= 0", name="check_max_players_non_negative"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_events_start_time", "events", ["start_time"], unique=False)
    op.create_index("idx_events_league", "events", ["league"], unique=False)

    op.create_table(
        "event_registrations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("line", sa.Integer(), nullable=True),
        sa.Column("assigned_position", sa.String(), nullable=True),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("removed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("event_id", "user_id", name="uq_event_registrations_event_user"),
        sa.CheckConstraint(
            "status IN ('requested', 'going', 'waitlist', 'removed')",
            name="check_registration_status_valid",
        ),
        sa.CheckConstraint(
            "line IS NULL OR (line >= 1 AND line <= 5)", name="check_registration_line_range"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_event_registrations_event_status",
        "event_registrations",
        ["event_id", "status"],
        unique=False,
    )
    op.create_index(
        "idx_event_registrations_user", "event_registrations", ["user_id"], unique=False
    )

    op.create_table(
        "event_captains",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("event_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("event_id", "user_id", name="uq_event_captains_event_user"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_event_captains_event", "event_captains", ["event_id"], unique=False)

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=32), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_audit_logs_created_at", "audit_logs", ["created_at"], unique=False)
    op.create_index(
        "idx_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"], unique=False
    )


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.drop_index("idx_audit_logs_entity", table_name="audit_logs")
    op.drop_index("idx_audit_logs_created_at", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("idx_event_captains_event", table_name="event_captains")
    op.drop_table("event_captains")

    op.drop_index("idx_event_registrations_user", table_name="event_registrations")
    op.drop_index("idx_event_registrations_event_status", table_name="event_registrations")
    op.drop_table("event_registrations")

    op.drop_index("idx_events_league", table_name="events")
    op.drop_index("idx_events_start_time", table_name="events")
    op.drop_table("events")

    op.drop_index("idx_users_email", table_name="users")
    op.drop_table("users")
