# repairhub/models/repair_request.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    String,
    DateTime,
    Float,
    Numeric,
    ForeignKey,
    CheckConstraint,
    Index,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from repairhub.db.base import Base
from repairhub.models.enums import RequestStatus, Urgency
from repairhub.models.types import JSONType


class RepairRequest(Base):
    __tablename__ = "repair_requests"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(1000), nullable=False)

    # {"brand", "model", "color", "purchaseYear"}
    device_info: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    issue_type: Mapped[str] = mapped_column(String(32), nullable=False)
    # [{"url", "description", "uploadedAt"}]
    images: Mapped[List[Dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)

    urgency: Mapped[str] = mapped_column(
        String(16), nullable=False, default=Urgency.medium.value
    )
    budget_min: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    budget_max: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    address: Mapped[str] = mapped_column(String(256), nullable=False)

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=RequestStatus.open.value,
        server_default=text(f"'{RequestStatus.open.value}'"),
    )

    # both set or both unset (ck_repair_requests_assignment_pair)
    accepted_bid_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("bids.id", use_alter=True, name="fk_repair_requests_accepted_bid"),
        nullable=True,
    )
    assigned_technician_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=True
    )

    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    bids = relationship(
        "Bid",
        back_populates="repair_request",
        foreign_keys="Bid.repair_request_id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint(
            "(accepted_bid_id IS NULL AND assigned_technician_id IS NULL)"
            " OR (accepted_bid_id IS NOT NULL AND assigned_technician_id IS NOT NULL)",
            name="ck_repair_requests_assignment_pair",
        ),
        Index("ix_repair_requests_customer", "customer_id"),
        Index("ix_repair_requests_status", "status"),
        Index("ix_repair_requests_issue_type", "issue_type"),
        Index("ix_repair_requests_created", "created_at"),
        Index("ix_repair_requests_geo", "latitude", "longitude"),
    )
