# repairhub/models/review.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import (
    String,
    DateTime,
    Integer,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from repairhub.db.base import Base
from repairhub.models.types import JSONType

REVIEW_ASPECTS = ("quality", "timeliness", "communication", "value")


class Review(Base):
    """
    A customer's rating of the technician who did a repair.

    One per repair request (uq_review_repair_request); the technician's
    profile rating is recomputed from these rows on every write.
    """
    __tablename__ = "reviews"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    repair_request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("repair_requests.id", ondelete="CASCADE"), nullable=False
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    technician_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    # {"quality": 5, "timeliness": 4, ...}; any subset of REVIEW_ASPECTS
    aspects: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    is_recommended: Mapped[bool] = mapped_column(
        nullable=False, default=True, server_default=text("true")
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("repair_request_id", name="uq_review_repair_request"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_review_rating_range"),
        Index("ix_reviews_technician", "technician_id"),
        Index("ix_reviews_customer", "customer_id"),
    )
