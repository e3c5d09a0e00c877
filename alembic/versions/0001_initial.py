"""initial marketplace schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

UUID = postgresql.UUID(as_uuid=True)
JSONB = postgresql.JSONB()


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


def upgrade() -> None:
    # ---- users ----
    op.create_table(
        "users",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("email", sa.String(length=256), nullable=False, unique=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("address", sa.String(length=256), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_users_role", "users", ["role"])

    # ---- technician_profiles ----
    op.create_table(
        "technician_profiles",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("experience_years", sa.Integer(), nullable=False),
        sa.Column("specializations", JSONB, nullable=False),
        sa.Column("biography", sa.String(length=500), nullable=True),
        sa.Column("service_radius_km", sa.Integer(), nullable=False, server_default=sa.text("10")),
        sa.Column("rating_average", sa.Float(), nullable=False),
        sa.Column("rating_count", sa.Integer(), nullable=False),
        sa.Column("rating_aspects", JSONB, nullable=False),
        sa.Column("total_jobs", sa.Integer(), nullable=False),
        sa.Column("completed_jobs", sa.Integer(), nullable=False),
        sa.Column("price_min", sa.Numeric(12, 2), nullable=False),
        sa.Column("price_max", sa.Numeric(12, 2), nullable=False),
        sa.Column("is_approved", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("approved_by", UUID, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "service_radius_km >= 1 AND service_radius_km <= 50",
            name="ck_technician_service_radius_range",
        ),
        sa.CheckConstraint("experience_years >= 0", name="ck_technician_experience_nonnegative"),
    )
    op.create_index("ix_technician_profiles_approved", "technician_profiles", ["is_approved"])

    # ---- repair_requests (accepted_bid FK added after bids) ----
    op.create_table(
        "repair_requests",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("customer_id", UUID, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=1000), nullable=False),
        sa.Column("device_info", JSONB, nullable=False),
        sa.Column("issue_type", sa.String(length=32), nullable=False),
        sa.Column("images", JSONB, nullable=False),
        sa.Column("urgency", sa.String(length=16), nullable=False),
        sa.Column("budget_min", sa.Numeric(12, 2), nullable=True),
        sa.Column("budget_max", sa.Numeric(12, 2), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("address", sa.String(length=256), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default=sa.text("'open'")),
        sa.Column("accepted_bid_id", UUID, nullable=True),
        sa.Column("assigned_technician_id", UUID, sa.ForeignKey("users.id"), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.String(length=500), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "(accepted_bid_id IS NULL AND assigned_technician_id IS NULL)"
            " OR (accepted_bid_id IS NOT NULL AND assigned_technician_id IS NOT NULL)",
            name="ck_repair_requests_assignment_pair",
        ),
    )
    op.create_index("ix_repair_requests_customer", "repair_requests", ["customer_id"])
    op.create_index("ix_repair_requests_status", "repair_requests", ["status"])
    op.create_index("ix_repair_requests_issue_type", "repair_requests", ["issue_type"])
    op.create_index("ix_repair_requests_created", "repair_requests", ["created_at"])
    op.create_index("ix_repair_requests_geo", "repair_requests", ["latitude", "longitude"])

    # ---- bids ----
    op.create_table(
        "bids",
        sa.Column("id", UUID, primary_key=True),
        sa.Column(
            "repair_request_id",
            UUID,
            sa.ForeignKey("repair_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("technician_id", UUID, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("estimated_time_value", sa.Integer(), nullable=False),
        sa.Column("estimated_time_unit", sa.String(length=8), nullable=False),
        sa.Column("estimated_time_text", sa.String(length=64), nullable=True),
        sa.Column("description", sa.String(length=500), nullable=False),
        sa.Column("parts_included", JSONB, nullable=False),
        sa.Column("warranty", JSONB, nullable=True),
        sa.Column("message", sa.String(length=1000), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("rejection_reason", sa.String(length=500), nullable=True),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("withdrawn_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("repair_request_id", "technician_id", name="uq_bid_request_technician"),
        sa.CheckConstraint("amount > 0", name="ck_bid_amount_positive"),
        sa.CheckConstraint("estimated_time_value > 0", name="ck_bid_estimate_positive"),
    )
    op.create_index(
        "uq_bid_one_accepted_per_request",
        "bids",
        ["repair_request_id"],
        unique=True,
        postgresql_where=sa.text("status = 'accepted'"),
    )
    op.create_index("ix_bids_technician", "bids", ["technician_id", "created_at"])
    op.create_index("ix_bids_request_status", "bids", ["repair_request_id", "status"])

    op.create_foreign_key(
        "fk_repair_requests_accepted_bid",
        "repair_requests",
        "bids",
        ["accepted_bid_id"],
        ["id"],
    )

    # ---- transactions ----
    op.create_table(
        "transactions",
        sa.Column("id", UUID, primary_key=True),
        sa.Column(
            "repair_request_id",
            UUID,
            sa.ForeignKey("repair_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("customer_id", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("technician_id", UUID, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("payment_method", sa.String(length=32), nullable=True),
        sa.Column("reference", sa.String(length=128), nullable=True, unique=True),
        sa.Column("gateway_response", JSONB, nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("failure_reason", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("repair_request_id", name="uq_transaction_repair_request"),
        sa.CheckConstraint("amount >= 0", name="ck_transaction_amount_nonnegative"),
    )
    op.create_index("ix_transactions_customer", "transactions", ["customer_id"])
    op.create_index("ix_transactions_technician", "transactions", ["technician_id"])

    # ---- notifications ----
    op.create_table(
        "notifications",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("user_id", UUID, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("message", sa.String(length=500), nullable=False),
        sa.Column("data", JSONB, nullable=False),
        sa.Column("priority", sa.String(length=8), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_notifications_user_unread", "notifications", ["user_id", "is_read"])


def downgrade() -> None:
    op.drop_index("ix_notifications_user_unread", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("ix_transactions_technician", table_name="transactions")
    op.drop_index("ix_transactions_customer", table_name="transactions")
    op.drop_table("transactions")

    op.drop_constraint("fk_repair_requests_accepted_bid", "repair_requests", type_="foreignkey")

    op.drop_index("ix_bids_request_status", table_name="bids")
    op.drop_index("ix_bids_technician", table_name="bids")
    op.drop_index("uq_bid_one_accepted_per_request", table_name="bids")
    op.drop_table("bids")

    op.drop_index("ix_repair_requests_geo", table_name="repair_requests")
    op.drop_index("ix_repair_requests_created", table_name="repair_requests")
    op.drop_index("ix_repair_requests_issue_type", table_name="repair_requests")
    op.drop_index("ix_repair_requests_status", table_name="repair_requests")
    op.drop_index("ix_repair_requests_customer", table_name="repair_requests")
    op.drop_table("repair_requests")

    op.drop_index("ix_technician_profiles_approved", table_name="technician_profiles")
    op.drop_table("technician_profiles")

    op.drop_index("ix_users_role", table_name="users")
    op.drop_table("users")
