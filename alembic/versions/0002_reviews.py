"""reviews

Revision ID: 0002_reviews
Revises: 0001_initial
Create Date: 2026-10-19 14:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "0002_reviews"
down_revision: Union[str, Sequence[str], None] = "0001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

UUID = postgresql.UUID(as_uuid=True)


def upgrade() -> None:
    op.create_table(
        "reviews",
        sa.Column("id", UUID, primary_key=True),
        sa.Column(
            "repair_request_id",
            UUID,
            sa.ForeignKey("repair_requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("customer_id", UUID, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("technician_id", UUID, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.String(length=500), nullable=True),
        sa.Column("aspects", postgresql.JSONB(), nullable=False),
        sa.Column("is_recommended", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("repair_request_id", name="uq_review_repair_request"),
        sa.CheckConstraint("rating >= 1 AND rating <= 5", name="ck_review_rating_range"),
    )
    op.create_index("ix_reviews_technician", "reviews", ["technician_id"])
    op.create_index("ix_reviews_customer", "reviews", ["customer_id"])


def downgrade() -> None:
    op.drop_index("ix_reviews_customer", table_name="reviews")
    op.drop_index("ix_reviews_technician", table_name="reviews")
    op.drop_table("reviews")
