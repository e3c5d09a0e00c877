# repairhub/models/bid.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    String,
    DateTime,
    Integer,
    Numeric,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from repairhub.db.base import Base
from repairhub.models.enums import BidStatus
from repairhub.models.types import JSONType


class Bid(Base):
    __tablename__ = "bids"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    repair_request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("repair_requests.id", ondelete="CASCADE"), nullable=False
    )
    technician_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    estimated_time_value: Mapped[int] = mapped_column(Integer, nullable=False)
    estimated_time_unit: Mapped[str] = mapped_column(String(8), nullable=False)
    # what the technician typed, kept for display
    estimated_time_text: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    description: Mapped[str] = mapped_column(String(500), nullable=False)
    # [{"name", "cost", "warranty"}]
    parts_included: Mapped[List[Dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    # {"duration": months, "terms": str}
    warranty: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    message: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=BidStatus.pending.value,
        server_default=text(f"'{BidStatus.pending.value}'"),
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    valid_until: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    withdrawn_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    repair_request = relationship(
        "RepairRequest", back_populates="bids", foreign_keys=[repair_request_id]
    )

    __table_args__ = (
        # one bid per technician per request
        UniqueConstraint("repair_request_id", "technician_id", name="uq_bid_request_technician"),
        # at most one accepted bid per request
        Index(
            "uq_bid_one_accepted_per_request",
            "repair_request_id",
            unique=True,
            postgresql_where=text("status = 'accepted'"),
            sqlite_where=text("status = 'accepted'"),
        ),
        CheckConstraint("amount > 0", name="ck_bid_amount_positive"),
        CheckConstraint("estimated_time_value > 0", name="ck_bid_estimate_positive"),
        Index("ix_bids_technician", "technician_id", "created_at"),
        Index("ix_bids_request_status", "repair_request_id", "status"),
    )
