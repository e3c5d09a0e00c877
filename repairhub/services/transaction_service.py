# repairhub/services/transaction_service.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from repairhub.core.errors import ForbiddenError, NotFoundError
from repairhub.core.result import lifecycle_operation
from repairhub.models.enums import (
    PaymentMethod,
    TransactionStatus,
    TransactionType,
    UserRole,
)
from repairhub.models.repair_request import RepairRequest
from repairhub.models.transaction import Transaction
from repairhub.schemas.views import TransactionView
from repairhub.services.lookups import require_request, require_user
from repairhub.services.read_models import transaction_view

logger = logging.getLogger(__name__)


def _now():
    return datetime.now(timezone.utc)


class TransactionService:
    def __init__(self, *, currency: str = "PKR"):
        self.currency = currency

    def find_for_request(self, db: Session, request_id: uuid.UUID) -> Optional[Transaction]:
        return db.execute(
            select(Transaction).where(Transaction.repair_request_id == request_id)
        ).scalar_one_or_none()

    def record_completion_payment(
        self,
        db: Session,
        *,
        request: RepairRequest,
        amount: Decimal,
        payment_method: PaymentMethod = PaymentMethod.cash,
        completed_at: Optional[datetime] = None,
    ) -> Tuple[Transaction, bool]:
        """
        Writes the single payment record for a completed request.

        Runs inside the caller's transaction and does not commit. Returns
        (transaction, created). When a record already exists, whether seen
        up front or raced in by a concurrent completer, it is returned with
        created=False; in the raced case the caller's transaction has been
        rolled back and must be restarted.
        """
        existing = self.find_for_request(db, request.id)
        if existing is not None:
            return existing, False

        tx = Transaction(
            repair_request_id=request.id,
            customer_id=request.customer_id,
            technician_id=request.assigned_technician_id,
            amount=amount,
            currency=self.currency,
            type=TransactionType.repair_payment.value,
            status=TransactionStatus.completed.value,
            payment_method=PaymentMethod(payment_method).value,
            completed_at=completed_at or _now(),
        )
        db.add(tx)
        try:
            db.flush()
        except IntegrityError:
            # uq_transaction_repair_request
            db.rollback()
            logger.info("[transactions] concurrent completion request=%s", request.id)
            return self.find_for_request(db, request.id), False

        logger.info(
            "[transactions] recorded request=%s amount=%s method=%s",
            request.id, amount, tx.payment_method,
        )
        return tx, True

    @lifecycle_operation("get_transaction_for_request")
    def get_for_request(
        self, db: Session, *, request_id: uuid.UUID, acting_user_id: uuid.UUID
    ) -> TransactionView:
        request = require_request(db, request_id)
        actor = require_user(db, acting_user_id)
        if actor.role != UserRole.admin.value and actor.id not in (
            request.customer_id,
            request.assigned_technician_id,
        ):
            raise ForbiddenError("Not authorized to view this transaction.")

        tx = self.find_for_request(db, request.id)
        if tx is None:
            raise NotFoundError("No transaction for this repair request.", code="TransactionNotFound")
        return transaction_view(tx)
