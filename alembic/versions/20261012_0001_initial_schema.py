"""Initial schema

Revision ID: 20261012_0001
Revises:
Create Date: 2026-10-12 09:30:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261012_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


role_enum = sa.Enum("customer", "admin", "super_admin", name="role_enum", native_enum=False)
booking_status_enum = sa.Enum("reserved", "confirmed", "cancelled", name="booking_status_enum", native_enum=False)
payment_status_enum = sa.Enum(
    "pending",
    "advanced_paid",
    "full_paid",
    name="payment_status_enum",
    native_enum=False,
)
notification_status_enum = sa.Enum("pending", "sent", "failed", name="notification_status_enum", native_enum=False)
outbox_status_enum = sa.Enum("pending", "processed", "failed", name="outbox_status_enum", native_enum=False)


def _id_col() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _created_col() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated_col() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def upgrade() -> None:
    op.create_table(
        "roles",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("name", role_enum, nullable=False),
        sa.UniqueConstraint("name", name="uq_roles_name"),
    )

    op.create_table(
        "users",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("role_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], name="fk_users_role_id_roles", ondelete="RESTRICT"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=False)

    op.create_table(
        "grounds",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("address", sa.String(length=512), nullable=False),
        sa.Column("contact_number", sa.String(length=32), nullable=False),
        sa.Column("ground_type", sa.String(length=64), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("open_from", sa.String(length=5), nullable=False),
        sa.Column("open_to", sa.String(length=5), nullable=False),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"], name="fk_grounds_owner_id_users", ondelete="RESTRICT"),
    )
    op.create_index("ix_grounds_owner_id", "grounds", ["owner_id"], unique=False)

    op.create_table(
        "ground_sports",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("ground_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("price_per_hour", sa.Numeric(10, 2), nullable=False),
        sa.ForeignKeyConstraint(
            ["ground_id"],
            ["grounds.id"],
            name="fk_ground_sports_ground_id_grounds",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("ground_id", "name", name="uq_ground_sports_ground_id_name"),
        sa.CheckConstraint("price_per_hour > 0", name="ck_ground_sports_positive_price"),
    )
    op.create_index("ix_ground_sports_ground_id", "ground_sports", ["ground_id"], unique=False)

    op.create_table(
        "bookings",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("ground_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("sport_name", sa.String(length=64), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("guest_name", sa.String(length=255), nullable=True),
        sa.Column("guest_phone", sa.String(length=32), nullable=True),
        sa.Column("guest_email", sa.String(length=255), nullable=True),
        sa.Column("guest_national_id", sa.String(length=32), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", booking_status_enum, nullable=False),
        sa.Column("payment_status", payment_status_enum, nullable=False),
        sa.Column("payment_group_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("gateway_payment_id", sa.String(length=64), nullable=True),
        sa.Column("paid_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["ground_id"], ["grounds.id"], name="fk_bookings_ground_id_grounds", ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_bookings_user_id_users", ondelete="SET NULL"),
        sa.CheckConstraint("(user_id IS NULL) <> (guest_phone IS NULL)", name="ck_bookings_single_identity"),
        sa.CheckConstraint("total_amount >= 0", name="ck_bookings_non_negative_total"),
    )
    op.create_index("ix_bookings_ground_id", "bookings", ["ground_id"], unique=False)
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"], unique=False)
    op.create_index("ix_bookings_date", "bookings", ["date"], unique=False)
    op.create_index("ix_bookings_status", "bookings", ["status"], unique=False)
    op.create_index("ix_bookings_payment_group_id", "bookings", ["payment_group_id"], unique=False)

    op.create_table(
        "booking_slots",
        sa.Column("booking_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("ground_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(
            ["booking_id"],
            ["bookings.id"],
            name="fk_booking_slots_booking_id_bookings",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("booking_id", "start_time", name="pk_booking_slots"),
    )
    op.create_index(
        "uq_booking_slots_active_claim",
        "booking_slots",
        ["ground_id", "date", "start_time"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "notifications",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("recipient", sa.String(length=255), nullable=False),
        sa.Column("payment_group_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("status", notification_status_enum, nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_notifications_user_id_users", ondelete="SET NULL"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)
    op.create_index("ix_notifications_payment_group_id", "notifications", ["payment_group_id"], unique=False)
    op.create_index("ix_notifications_status", "notifications", ["status"], unique=False)

    op.create_table(
        "audit_logs",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=True),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.ForeignKeyConstraint(["actor_id"], ["users.id"], name="fk_audit_logs_actor_id_users", ondelete="SET NULL"),
    )
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"], unique=False)
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"], unique=False)
    op.create_index("ix_audit_logs_entity_id", "audit_logs", ["entity_id"], unique=False)

    op.create_table(
        "outbox_events",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("aggregate_type", sa.String(length=64), nullable=False),
        sa.Column("aggregate_id", sa.String(length=64), nullable=False),
        sa.Column("event_type", sa.String(length=128), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("status", outbox_status_enum, nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retries", sa.Integer(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
    )
    op.create_index("ix_outbox_events_aggregate_type", "outbox_events", ["aggregate_type"], unique=False)
    op.create_index("ix_outbox_events_aggregate_id", "outbox_events", ["aggregate_id"], unique=False)
    op.create_index("ix_outbox_events_event_type", "outbox_events", ["event_type"], unique=False)
    op.create_index("ix_outbox_events_status", "outbox_events", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_outbox_events_status", table_name="outbox_events")
    op.drop_index("ix_outbox_events_event_type", table_name="outbox_events")
    op.drop_index("ix_outbox_events_aggregate_id", table_name="outbox_events")
    op.drop_index("ix_outbox_events_aggregate_type", table_name="outbox_events")
    op.drop_table("outbox_events")

    op.drop_index("ix_audit_logs_entity_id", table_name="audit_logs")
    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_index("ix_audit_logs_actor_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_notifications_status", table_name="notifications")
    op.drop_index("ix_notifications_payment_group_id", table_name="notifications")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("uq_booking_slots_active_claim", table_name="booking_slots")
    op.drop_table("booking_slots")

    op.drop_index("ix_bookings_payment_group_id", table_name="bookings")
    op.drop_index("ix_bookings_status", table_name="bookings")
    op.drop_index("ix_bookings_date", table_name="bookings")
    op.drop_index("ix_bookings_user_id", table_name="bookings")
    op.drop_index("ix_bookings_ground_id", table_name="bookings")
    op.drop_table("bookings")

    op.drop_index("ix_ground_sports_ground_id", table_name="ground_sports")
    op.drop_table("ground_sports")

    op.drop_index("ix_grounds_owner_id", table_name="grounds")
    op.drop_table("grounds")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
    op.drop_table("roles")
