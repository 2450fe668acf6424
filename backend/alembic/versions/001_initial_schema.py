# backend/alembic/versions/001_initial_schema.py
"""Initial schema - Users, bookings, recurring rules, payments and messages

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000

Instants are stored as UTC epoch milliseconds (BIGINT). Statuses and types
are VARCHAR with CHECK constraints instead of database ENUMs.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

BOOKING_STATUSES = (
    "'pending', 'awaiting_payment', 'processing_payment', 'confirmed', "
    "'awaiting_reschedule', 'completed', 'canceled', 'rejected'"
)
EVENT_TYPES = (
    "'created', 'accepted', 'rejected', 'rescheduled', 'canceled', 'completed', "
    "'payment_initiated', 'payment_succeeded', 'payment_failed', 'payment_refunded'"
)


def upgrade() -> None:
    """Create all tables."""
    print("Creating users table...")
    op.create_table(
        "users",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("name", sa.String(100), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="student"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("role IN ('student', 'tutor', 'admin')", name="ck_users_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    print("Creating recurring_rules table...")
    op.create_table(
        "recurring_rules",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("from_user_id", sa.String(26), nullable=False),
        sa.Column("to_user_id", sa.String(26), nullable=False),
        sa.Column("day_of_week", sa.String(10), nullable=False),
        sa.Column("hour_utc", sa.Integer(), nullable=False),
        sa.Column("minute_utc", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(10), nullable=False, server_default="active"),
        sa.Column("last_booking_created_at", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["from_user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["to_user_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint("hour_utc >= 0 AND hour_utc <= 23", name="ck_recurring_rules_hour"),
        sa.CheckConstraint("minute_utc >= 0 AND minute_utc <= 59", name="ck_recurring_rules_minute"),
        sa.CheckConstraint(
            "status IN ('active', 'paused', 'canceled')", name="ck_recurring_rules_status"
        ),
    )
    op.create_index("ix_recurring_rules_pair", "recurring_rules", ["from_user_id", "to_user_id"])
    op.create_index("ix_recurring_rules_status", "recurring_rules", ["status"])

    print("Creating bookings and booking_events tables...")
    op.create_table(
        "bookings",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("from_user_id", sa.String(26), nullable=False),
        sa.Column("to_user_id", sa.String(26), nullable=False),
        sa.Column("timestamp", sa.BigInteger(), nullable=False),
        sa.Column("booking_type", sa.String(10), nullable=False),
        sa.Column("status", sa.String(30), nullable=False, server_default="pending"),
        sa.Column("last_action_by_user_id", sa.String(26), nullable=True),
        sa.Column("recurring_rule_id", sa.String(26), nullable=True),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["from_user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["to_user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["last_action_by_user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["recurring_rule_id"], ["recurring_rules.id"], ondelete="SET NULL"),
        sa.CheckConstraint("booking_type IN ('free', 'paid')", name="ck_bookings_type"),
        sa.CheckConstraint(f"status IN ({BOOKING_STATUSES})", name="ck_bookings_status"),
        sa.CheckConstraint("from_user_id <> to_user_id", name="ck_bookings_distinct_parties"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    # Pair lookups run one query per direction; each direction needs its own index
    op.create_index(
        "ix_bookings_from_to_type_status",
        "bookings",
        ["from_user_id", "to_user_id", "booking_type", "status"],
    )
    op.create_index(
        "ix_bookings_to_from_type_status",
        "bookings",
        ["to_user_id", "from_user_id", "booking_type", "status"],
    )
    op.create_index("ix_bookings_status_timestamp", "bookings", ["status", "timestamp"])

    op.create_table(
        "booking_events",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("booking_id", sa.String(26), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("timestamp", sa.BigInteger(), nullable=False),
        sa.Column("user_id", sa.String(26), nullable=False),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["booking_id"], ["bookings.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.UniqueConstraint("booking_id", "sequence", name="uq_booking_events_sequence"),
        sa.CheckConstraint(f"type IN ({EVENT_TYPES})", name="ck_booking_events_type"),
    )

    print("Creating payments and messages tables...")
    op.create_table(
        "payments",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("booking_id", sa.String(26), nullable=False),
        sa.Column("user_id", sa.String(26), nullable=False),
        sa.Column("stripe_session_id", sa.String(255), nullable=False),
        sa.Column("stripe_payment_intent_id", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="gbp"),
        sa.Column("failure_reason", sa.String(500), nullable=True),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["booking_id"], ["bookings.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.UniqueConstraint("stripe_session_id"),
    )
    op.create_index("ix_payments_booking_id", "payments", ["booking_id"])

    op.create_table(
        "messages",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("booking_id", sa.String(26), nullable=False),
        sa.Column("sender_id", sa.String(26), nullable=False),
        sa.Column("text", sa.String(1000), nullable=False),
        sa.Column("timestamp", sa.BigInteger(), nullable=False),
        sa.Column("read_by", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["booking_id"], ["bookings.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_messages_booking_timestamp", "messages", ["booking_id", "timestamp"])

    print("Initial schema created successfully!")


def downgrade() -> None:
    """Drop all tables."""
    print("Dropping all tables...")

    op.drop_index("ix_messages_booking_timestamp", table_name="messages")
    op.drop_table("messages")
    op.drop_index("ix_payments_booking_id", table_name="payments")
    op.drop_table("payments")
    op.drop_table("booking_events")
    op.drop_index("ix_bookings_status_timestamp", table_name="bookings")
    op.drop_index("ix_bookings_to_from_type_status", table_name="bookings")
    op.drop_index("ix_bookings_from_to_type_status", table_name="bookings")
    op.drop_index("ix_bookings_id", table_name="bookings")
    op.drop_table("bookings")
    op.drop_index("ix_recurring_rules_status", table_name="recurring_rules")
    op.drop_index("ix_recurring_rules_pair", table_name="recurring_rules")
    op.drop_table("recurring_rules")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_index("ix_users_id", table_name="users")
    op.drop_table("users")

    print("All tables dropped.")
