# repairhub/models/transaction.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import (
    String,
    DateTime,
    Numeric,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from repairhub.db.base import Base
from repairhub.models.enums import TransactionStatus, TransactionType
from repairhub.models.types import JSONType


class Transaction(Base):
    """
    Payment record for a repair request.

    At most one per repair request (uq_transaction_repair_request); the
    completion flow relies on this for idempotency.
    """
    __tablename__ = "transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    repair_request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("repair_requests.id", ondelete="CASCADE"), nullable=False
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    technician_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="PKR")

    type: Mapped[str] = mapped_column(
        String(32), nullable=False, default=TransactionType.repair_payment.value
    )
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=TransactionStatus.pending.value
    )
    payment_method: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    # external reference (gateway id, receipt no.)
    reference: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, unique=True)
    gateway_response: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)

    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("repair_request_id", name="uq_transaction_repair_request"),
        CheckConstraint("amount >= 0", name="ck_transaction_amount_nonnegative"),
        Index("ix_transactions_customer", "customer_id"),
        Index("ix_transactions_technician", "technician_id"),
    )
