# repairhub/services/repair_request_service.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Union

from sqlalchemy import delete, desc, func, select, update
from sqlalchemy.orm import Session

from repairhub.core.errors import ConflictError, ForbiddenError
from repairhub.core.result import lifecycle_operation
from repairhub.models.bid import Bid
from repairhub.models.enums import (
    BidStatus,
    IssueType,
    NotificationType,
    PaymentMethod,
    RequestStatus,
    Urgency,
    UserRole,
)
from repairhub.models.repair_request import RepairRequest
from repairhub.models.technician_profile import TechnicianProfile
from repairhub.models.user import User
from repairhub.schemas.primitives import Pagination
from repairhub.schemas.repair_requests import (
    CompletionFields,
    RepairRequestCreate,
    RepairRequestUpdate,
)
from repairhub.schemas.views import RequestPage, RequestView
from repairhub.services.lookups import (
    bids_by_id,
    require_request,
    require_user,
    users_by_id,
)
from repairhub.services.notification_service import (
    NotificationEvent,
    NotificationSink,
    flush_events,
)
from repairhub.services.read_models import request_view
from repairhub.services.request_transitions import (
    CANCELLABLE,
    COMPLETABLE,
    DELETABLE,
    EDITABLE,
    assert_transition,
    guarded_status_update,
    sources_for,
)
from repairhub.services.transaction_service import TransactionService

logger = logging.getLogger(__name__)

S = RequestStatus

CANCELLED_BID_REASON = "The repair request was cancelled."


def _now():
    return datetime.now(timezone.utc)


def _detail_columns(changes: Dict[str, Any]) -> Dict[str, Any]:
    # API field names -> repair_requests columns
    values: Dict[str, Any] = {}
    if changes.get("title") is not None:
        values["title"] = changes["title"]
    if changes.get("description") is not None:
        values["description"] = changes["description"]
    if changes.get("deviceInfo") is not None:
        values["device_info"] = changes["deviceInfo"]
    if changes.get("urgency") is not None:
        values["urgency"] = Urgency(changes["urgency"]).value
    if changes.get("images") is not None:
        values["images"] = changes["images"]
    if "preferredBudget" in changes:
        budget = changes["preferredBudget"] or {}
        values["budget_min"] = budget.get("min")
        values["budget_max"] = budget.get("max")
    return values


class RepairRequestService:
    """
    Customer-side request lifecycle: create, read, edit, cancel, delete and
    complete. Completion also writes the payment record and moves the
    request on to `paid`.
    """

    def __init__(
        self,
        notifier: NotificationSink,
        *,
        transactions: Optional[TransactionService] = None,
        request_expiry_days: int = 7,
        currency: str = "PKR",
        clock: Callable[[], datetime] = _now,
    ):
        self.notifier = notifier
        self.transactions = transactions or TransactionService(currency=currency)
        self.request_expiry = timedelta(days=request_expiry_days)
        self.currency = currency
        self.clock = clock

    # ---- helpers ----

    def _compose(self, db: Session, request: RepairRequest) -> RequestView:
        users = users_by_id(db, [request.customer_id, request.assigned_technician_id])
        accepted = bids_by_id(db, [request.accepted_bid_id])
        return request_view(
            request,
            users.get(request.customer_id),
            users.get(request.assigned_technician_id),
            accepted.get(request.accepted_bid_id),
            now=self.clock(),
        )

    def _reload(self, db: Session, request_id: uuid.UUID) -> RequestView:
        request = db.get(RepairRequest, request_id, populate_existing=True)
        return self._compose(db, request)

    def _current_status(self, db: Session, request_id: uuid.UUID) -> str:
        return db.execute(
            select(RepairRequest.status).where(RepairRequest.id == request_id)
        ).scalar_one()

    @staticmethod
    def _require_participant(request: RepairRequest, actor: User) -> None:
        if actor.id not in (request.customer_id, request.assigned_technician_id):
            raise ForbiddenError("Not authorized to update this repair request.")

    @staticmethod
    def _require_owner(request: RepairRequest, actor_id: uuid.UUID, verb: str) -> None:
        if request.customer_id != actor_id:
            raise ForbiddenError(f"Not authorized to {verb} this repair request.")

    # ───────────────────────────── CREATE / READ ─────────────────────────────

    @lifecycle_operation("create_request")
    def create_request(
        self,
        db: Session,
        *,
        customer_id: uuid.UUID,
        fields: Union[RepairRequestCreate, Dict[str, Any]],
    ) -> RequestView:
        if not isinstance(fields, RepairRequestCreate):
            fields = RepairRequestCreate.model_validate(fields)

        customer = require_user(db, customer_id)
        if customer.role != UserRole.customer.value or not customer.is_active:
            raise ForbiddenError("Only active customers can create repair requests.")

        now = self.clock()
        budget = fields.preferredBudget
        request = RepairRequest(
            customer_id=customer.id,
            title=fields.title,
            description=fields.description,
            device_info=fields.deviceInfo.model_dump(mode="json"),
            issue_type=fields.issueType.value,
            images=[
                {**img.model_dump(mode="json"), "uploadedAt": now.isoformat()}
                for img in fields.images
            ],
            urgency=fields.urgency.value,
            budget_min=budget.min if budget else None,
            budget_max=budget.max if budget else None,
            latitude=fields.location.latitude,
            longitude=fields.location.longitude,
            address=fields.location.address,
            status=S.open.value,
            expires_at=now + self.request_expiry,
            created_at=now,
            updated_at=now,
        )
        db.add(request)
        db.commit()
        db.refresh(request)

        logger.info("[requests] created request=%s customer=%s", request.id, customer.id)

        technician_ids = db.execute(
            select(User.id)
            .join(TechnicianProfile, TechnicianProfile.user_id == User.id)
            .where(
                User.role == UserRole.technician.value,
                User.is_active.is_(True),
                TechnicianProfile.is_approved.is_(True),
            )
        ).scalars().all()

        flush_events(
            self.notifier,
            [
                NotificationEvent(
                    user_id=tid,
                    type=NotificationType.new_repair_request,
                    title="New Repair Request",
                    message=f"New {request.issue_type} repair request: {request.title}",
                    data={"repairRequestId": request.id},
                )
                for tid in technician_ids
            ],
        )
        return self._compose(db, request)

    @lifecycle_operation("get_request")
    def get_request(
        self, db: Session, *, request_id: uuid.UUID, acting_user_id: uuid.UUID
    ) -> RequestView:
        request = require_request(db, request_id)
        actor = require_user(db, acting_user_id)
        if actor.role == UserRole.customer.value and request.customer_id != actor.id:
            raise ForbiddenError("Not authorized to view this repair request.")
        return self._compose(db, request)

    @lifecycle_operation("list_customer_requests")
    def list_customer_requests(
        self,
        db: Session,
        *,
        customer_id: uuid.UUID,
        status: Optional[RequestStatus] = None,
        issue_type: Optional[IssueType] = None,
        page: int = 1,
        limit: int = 10,
    ) -> RequestPage:
        page = max(1, page)
        limit = max(1, min(limit, 100))

        filters = [RepairRequest.customer_id == customer_id]
        if status is not None:
            filters.append(RepairRequest.status == RequestStatus(status).value)
        if issue_type is not None:
            filters.append(RepairRequest.issue_type == IssueType(issue_type).value)

        total = db.execute(
            select(func.count()).select_from(RepairRequest).where(*filters)
        ).scalar_one()
        requests = db.execute(
            select(RepairRequest)
            .where(*filters)
            .order_by(desc(RepairRequest.created_at), desc(RepairRequest.id))
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()

        users = users_by_id(
            db, [r.customer_id for r in requests] + [r.assigned_technician_id for r in requests]
        )
        accepted = bids_by_id(db, [r.accepted_bid_id for r in requests])
        now = self.clock()
        return RequestPage(
            requests=[
                request_view(
                    r,
                    users.get(r.customer_id),
                    users.get(r.assigned_technician_id),
                    accepted.get(r.accepted_bid_id),
                    now=now,
                )
                for r in requests
            ],
            pagination=Pagination.of(page, limit, total),
        )

    # ───────────────────────────── UPDATE ─────────────────────────────

    @lifecycle_operation("update_request")
    def update_request(
        self,
        db: Session,
        *,
        request_id: uuid.UUID,
        acting_user_id: uuid.UUID,
        changes: Union[RepairRequestUpdate, Dict[str, Any]],
    ) -> RequestView:
        if not isinstance(changes, RepairRequestUpdate):
            changes = RepairRequestUpdate.model_validate(changes)

        request = require_request(db, request_id)
        actor = require_user(db, acting_user_id)
        # owner or the technician bound to the request
        self._require_participant(request, actor)

        details = _detail_columns(changes.detail_changes())
        if details:
            if not guarded_status_update(
                db, request.id, EDITABLE, updated_at=self.clock(), **details
            ):
                raise ConflictError(
                    "Repair request can no longer be edited.", code="RequestLocked"
                )

        target = changes.status
        if target is None:
            db.commit()
            logger.info("[requests] updated request=%s fields=%s", request.id, sorted(details))
            return self._reload(db, request.id)

        if target == S.completed:
            return self._complete(
                db,
                request,
                CompletionFields(
                    amount=changes.amount,
                    paymentMethod=changes.paymentMethod or PaymentMethod.cash,
                ),
            )
        if target == S.cancelled:
            self._require_owner(request, actor.id, "cancel")
            return self._cancel(db, request, reason=None)
        if target == S.in_progress:
            assert_transition(request.status, target)
            if not guarded_status_update(
                db, request.id, sources_for(target), status=target, updated_at=self.clock()
            ):
                raise ConflictError(
                    "Repair request changed state; retry with the current status.",
                    code="InvalidTransition",
                )
            db.commit()
            logger.info("[requests] started request=%s by=%s", request.id, actor.id)
            return self._reload(db, request.id)

        # open, bidding, assigned, paid are driven by bids and payment only
        raise ConflictError(
            f"Status {target.value} cannot be set directly.", code="InvalidTransition"
        )

    # ───────────────────────────── CANCEL / DELETE ─────────────────────────────

    def _cancel(self, db: Session, request: RepairRequest, *, reason: Optional[str]) -> RequestView:
        now = self.clock()
        if not guarded_status_update(
            db,
            request.id,
            CANCELLABLE,
            status=S.cancelled,
            cancelled_at=now,
            cancellation_reason=reason,
            updated_at=now,
        ):
            raise ConflictError(
                f"Repair request cannot be cancelled from {self._current_status(db, request.id)}.",
                code="InvalidTransition",
            )

        # a job that was already assigned keeps its accepted bid on record
        assignment = db.execute(
            select(RepairRequest.assigned_technician_id, RepairRequest.accepted_bid_id).where(
                RepairRequest.id == request.id
            )
        ).one()

        pending = db.execute(
            select(Bid.id, Bid.technician_id).where(
                Bid.repair_request_id == request.id,
                Bid.status == BidStatus.pending.value,
            )
        ).all()
        if pending:
            db.execute(
                update(Bid)
                .where(
                    Bid.id.in_([row.id for row in pending]),
                    Bid.status == BidStatus.pending.value,
                )
                .values(
                    status=BidStatus.rejected.value,
                    rejected_at=now,
                    rejection_reason=CANCELLED_BID_REASON,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )

        db.commit()
        logger.info(
            "[requests] cancelled request=%s rejected_bids=%d assigned_technician=%s",
            request.id, len(pending), assignment.assigned_technician_id,
        )

        events = [
            NotificationEvent(
                user_id=row.technician_id,
                type=NotificationType.bid_rejected,
                title="Bid Rejected",
                message="The repair request you bid on was cancelled",
                data={"repairRequestId": request.id, "bidId": row.id},
            )
            for row in pending
        ]
        if assignment.assigned_technician_id is not None:
            events.append(
                NotificationEvent(
                    user_id=assignment.assigned_technician_id,
                    type=NotificationType.request_cancelled,
                    title="Job Cancelled",
                    message="The customer cancelled a repair job assigned to you",
                    data={
                        "repairRequestId": request.id,
                        "bidId": assignment.accepted_bid_id,
                        "reason": reason,
                    },
                )
            )
        flush_events(self.notifier, events)
        return self._reload(db, request.id)

    @lifecycle_operation("cancel_request")
    def cancel_request(
        self,
        db: Session,
        *,
        request_id: uuid.UUID,
        acting_customer_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> RequestView:
        request = require_request(db, request_id)
        self._require_owner(request, acting_customer_id, "cancel")
        return self._cancel(db, request, reason=reason)

    @lifecycle_operation("delete_request")
    def delete_request(
        self, db: Session, *, request_id: uuid.UUID, acting_customer_id: uuid.UUID
    ) -> None:
        request = require_request(db, request_id)
        self._require_owner(request, acting_customer_id, "delete")

        res = db.execute(
            delete(RepairRequest)
            .where(RepairRequest.id == request.id, RepairRequest.status.in_(DELETABLE))
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            raise ConflictError(
                "Only open repair requests without an accepted bid can be deleted.",
                code="RequestLocked",
            )
        db.commit()
        logger.info("[requests] deleted request=%s", request_id)
        return None

    # ───────────────────────────── COMPLETE → PAID ─────────────────────────────

    def _complete(
        self, db: Session, request: RepairRequest, completion: CompletionFields
    ) -> RequestView:
        request_id = request.id
        status = request.status

        if status == S.paid.value:
            return self._compose(db, request)

        if status in COMPLETABLE:
            now = self.clock()
            moved = guarded_status_update(
                db, request_id, COMPLETABLE, status=S.completed, completed_at=now, updated_at=now
            )
            if not moved:
                status = self._current_status(db, request_id)
                if status == S.paid.value:
                    return self._reload(db, request_id)
                if status != S.completed.value:
                    raise ConflictError(
                        f"Repair request cannot be completed from {status}.",
                        code="InvalidTransition",
                    )
        elif status != S.completed.value:
            raise ConflictError(
                f"Repair request cannot be completed from {status}.", code="InvalidTransition"
            )

        accepted = db.get(Bid, request.accepted_bid_id)
        amount = completion.amount if completion.amount is not None else accepted.amount

        tx, created = self.transactions.record_completion_payment(
            db,
            request=request,
            amount=amount,
            payment_method=completion.paymentMethod,
            completed_at=self.clock(),
        )
        if not created:
            # someone else settled (or is settling) this request
            guarded_status_update(db, request_id, {S.completed.value}, status=S.paid)
            db.commit()
            return self._reload(db, request_id)

        db.execute(
            update(TechnicianProfile)
            .where(TechnicianProfile.user_id == request.assigned_technician_id)
            .values(
                completed_jobs=TechnicianProfile.completed_jobs + 1,
                total_jobs=TechnicianProfile.total_jobs + 1,
                updated_at=self.clock(),
            )
            .execution_options(synchronize_session=False)
        )
        guarded_status_update(db, request_id, {S.completed.value}, status=S.paid)

        customer_id = request.customer_id
        technician_id = request.assigned_technician_id
        db.commit()

        logger.info(
            "[requests] completed request=%s transaction=%s amount=%s",
            request_id, tx.id, tx.amount,
        )

        flush_events(
            self.notifier,
            [
                NotificationEvent(
                    user_id=customer_id,
                    type=NotificationType.job_completed,
                    title="Repair Completed",
                    message="Your repair has been marked as completed",
                    data={"repairRequestId": request_id, "transactionId": tx.id},
                ),
                NotificationEvent(
                    user_id=technician_id,
                    type=NotificationType.payment_received,
                    title="Payment Received",
                    message=f"Payment of {self.currency} {tx.amount} recorded for your repair job",
                    data={"repairRequestId": request_id, "transactionId": tx.id},
                ),
            ],
        )
        return self._reload(db, request_id)

    @lifecycle_operation("complete_request")
    def complete_request(
        self,
        db: Session,
        *,
        request_id: uuid.UUID,
        acting_user_id: uuid.UUID,
        completion: Union[CompletionFields, Dict[str, Any], None] = None,
    ) -> RequestView:
        """
        Marks the job done and records its payment. Safe to call more than
        once: a request already settled is returned as it is, and the
        Transaction for a request is only ever written once.
        """
        if completion is None:
            completion = CompletionFields()
        elif not isinstance(completion, CompletionFields):
            completion = CompletionFields.model_validate(completion)

        request = require_request(db, request_id)
        actor = require_user(db, acting_user_id)
        self._require_participant(request, actor)
        return self._complete(db, request, completion)
