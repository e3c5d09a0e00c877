# repairhub/models/technician_profile.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    String,
    DateTime,
    Integer,
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
from repairhub.models.types import JSONType

DEFAULT_PRICE_MIN = Decimal("0")
DEFAULT_PRICE_MAX = Decimal("10000")


class TechnicianProfile(Base):
    __tablename__ = "technician_profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # one-to-one with a technician user
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
    )

    experience_years: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    specializations: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)
    biography: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    service_radius_km: Mapped[int] = mapped_column(
        Integer, nullable=False, default=10, server_default=text("10")
    )

    rating_average: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    rating_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # per-aspect review averages, e.g. {"quality": 4.5, "timeliness": 4.0}
    rating_aspects: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    total_jobs: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_jobs: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    price_min: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=DEFAULT_PRICE_MIN)
    price_max: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=DEFAULT_PRICE_MAX)

    # 🔐 approval gate for bidding
    is_approved: Mapped[bool] = mapped_column(
        nullable=False, default=False, server_default=text("false")
    )
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    user = relationship("User", back_populates="technician_profile", foreign_keys=[user_id])

    __table_args__ = (
        CheckConstraint(
            "service_radius_km >= 1 AND service_radius_km <= 50",
            name="ck_technician_service_radius_range",
        ),
        CheckConstraint("experience_years >= 0", name="ck_technician_experience_nonnegative"),
        Index("ix_technician_profiles_approved", "is_approved"),
    )
