# repairhub/services/bid_lifecycle_service.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError
from sqlalchemy import asc, desc, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from repairhub.core.errors import (
    ConflictError,
    DomainValidationError,
    ForbiddenError,
    InvalidEstimateFormat,
)
from repairhub.core.result import lifecycle_operation
from repairhub.models.bid import Bid
from repairhub.models.enums import BidStatus, NotificationType, RequestStatus, UserRole
from repairhub.models.repair_request import RepairRequest
from repairhub.models.technician_profile import TechnicianProfile
from repairhub.models.user import User
from repairhub.policies.eligibility import (
    DUPLICATE_BID,
    NOT_ELIGIBLE,
    REQUEST_CLOSED,
    can_bid,
    technician_is_eligible,
)
from repairhub.schemas.bids import BidFields, BidSortField, SortOrder
from repairhub.schemas.primitives import Pagination
from repairhub.schemas.views import BidPage, BidView
from repairhub.services.estimate_parser import parse_estimate
from repairhub.services.lookups import (
    load_technician,
    require_bid,
    require_request,
    require_user,
)
from repairhub.services.notification_service import (
    NotificationEvent,
    NotificationSink,
    flush_events,
)
from repairhub.services.read_models import bid_view
from repairhub.services.request_transitions import OPEN_FOR_BIDS, guarded_status_update

logger = logging.getLogger(__name__)

AUTO_REJECT_REASON = "Another bid was accepted for this repair request."


def _now():
    return datetime.now(timezone.utc)


def _coerce_fields(fields: Union[BidFields, Dict[str, Any]]) -> BidFields:
    if isinstance(fields, BidFields):
        return fields
    try:
        return BidFields.model_validate(fields)
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        loc = first.get("loc", ())
        code = "InvalidAmount" if loc and loc[0] == "amount" else "InvalidBid"
        raise DomainValidationError(
            f"Invalid bid field {'.'.join(str(p) for p in loc) or '?'}: {first.get('msg', 'invalid')}",
            code=code,
        )


def _denial(reason: str) -> Exception:
    if reason == NOT_ELIGIBLE:
        return ForbiddenError(
            "Technician is not approved or the account is inactive.", code=NOT_ELIGIBLE
        )
    if reason == REQUEST_CLOSED:
        return ConflictError(
            "This repair request is no longer accepting bids.", code=REQUEST_CLOSED
        )
    if reason == DUPLICATE_BID:
        return ConflictError(
            "You have already placed a bid on this repair request.", code="AlreadyBid"
        )
    return ConflictError(f"Bid not allowed: {reason}")


_SORT_COLUMNS = {
    BidSortField.amount: Bid.amount,
    BidSortField.createdAt: Bid.created_at,
    BidSortField.validUntil: Bid.valid_until,
    BidSortField.rating: TechnicianProfile.rating_average,
}


class BidLifecycleService:
    """
    Bid creation and resolution for repair requests.

    Every status write goes through a guarded (compare-and-swap) UPDATE so
    that concurrent callers cannot both win: the loser sees zero affected
    rows and gets a Conflict. Notifications are emitted only after commit.
    """

    def __init__(
        self,
        notifier: NotificationSink,
        *,
        bid_validity_hours: int = 48,
        currency: str = "PKR",
        clock: Callable[[], datetime] = _now,
    ):
        self.notifier = notifier
        self.bid_validity = timedelta(hours=bid_validity_hours)
        self.currency = currency
        self.clock = clock

    # -----------------------------------------------------------------
    # create
    # -----------------------------------------------------------------

    def _lock_eligible_technician(self, db: Session, technician_id: uuid.UUID) -> bool:
        """
        Re-read approval and activity inside the write transaction (FOR UPDATE).
        """
        profile_id = db.execute(
            select(TechnicianProfile.id)
            .join(User, User.id == TechnicianProfile.user_id)
            .where(
                TechnicianProfile.user_id == technician_id,
                TechnicianProfile.is_approved.is_(True),
                User.is_active.is_(True),
                User.role == UserRole.technician.value,
            )
            .with_for_update()
        ).scalar_one_or_none()
        return profile_id is not None

    @lifecycle_operation("create_bid")
    def create_bid(
        self,
        db: Session,
        *,
        request_id: uuid.UUID,
        technician_id: uuid.UUID,
        fields: Union[BidFields, Dict[str, Any]],
    ) -> Bid:
        fields = _coerce_fields(fields)

        technician = load_technician(db, technician_id)
        if not technician_is_eligible(technician):
            raise _denial(NOT_ELIGIBLE)
        request = require_request(db, request_id)

        existing = db.execute(
            select(Bid).where(
                Bid.repair_request_id == request.id,
                Bid.technician_id == technician_id,
            )
        ).scalar_one_or_none()

        decision = can_bid(request, technician, existing)
        if not decision.ok:
            raise _denial(decision.reason)

        try:
            estimate = parse_estimate(fields.estimatedTime)
        except InvalidEstimateFormat as e:
            raise DomainValidationError(e.message, code="InvalidEstimate")

        customer_id = request.customer_id
        now = self.clock()

        # write-time re-check; also serializes with accept/cancel on this row
        if not guarded_status_update(
            db, request.id, OPEN_FOR_BIDS, status=RequestStatus.bidding, updated_at=now
        ):
            raise _denial(REQUEST_CLOSED)

        # approval may have been revoked since the snapshot above; lock the
        # profile so a concurrent revocation waits for this insert
        if not self._lock_eligible_technician(db, technician_id):
            raise _denial(NOT_ELIGIBLE)

        bid = Bid(
            repair_request_id=request.id,
            technician_id=technician_id,
            amount=fields.amount,
            estimated_time_value=estimate.value,
            estimated_time_unit=estimate.unit.value,
            estimated_time_text=fields.estimatedTime.strip(),
            description=fields.description,
            parts_included=[p.model_dump(mode="json") for p in fields.partsIncluded],
            warranty=fields.warranty.model_dump(mode="json") if fields.warranty else None,
            message=fields.message,
            status=BidStatus.pending.value,
            valid_until=now + self.bid_validity,
            created_at=now,
            updated_at=now,
        )
        db.add(bid)
        try:
            db.flush()
        except IntegrityError:
            # uq_bid_request_technician: a concurrent duplicate got there first
            raise _denial(DUPLICATE_BID)

        db.commit()
        db.refresh(bid)

        logger.info(
            "[bids] created bid=%s request=%s technician=%s amount=%s",
            bid.id, bid.repair_request_id, technician_id, bid.amount,
        )

        flush_events(
            self.notifier,
            [
                NotificationEvent(
                    user_id=customer_id,
                    type=NotificationType.new_bid,
                    title="New Bid Received",
                    message=f"You received a new bid of {self.currency} {bid.amount} for your repair request",
                    data={"repairRequestId": bid.repair_request_id, "bidId": bid.id},
                )
            ],
        )
        return bid

    # -----------------------------------------------------------------
    # resolve
    # -----------------------------------------------------------------

    def _load_for_resolution(
        self, db: Session, bid_id: uuid.UUID, acting_customer_id: uuid.UUID, verb: str
    ):
        bid = require_bid(db, bid_id)
        request = require_request(db, bid.repair_request_id)

        if request.customer_id != acting_customer_id:
            raise ForbiddenError(f"Not authorized to {verb} this bid.")
        if bid.status != BidStatus.pending.value:
            raise ConflictError("This bid has already been processed.", code="AlreadyProcessed")
        return bid, request

    @lifecycle_operation("accept_bid")
    def accept_bid(
        self,
        db: Session,
        *,
        bid_id: uuid.UUID,
        acting_customer_id: uuid.UUID,
    ) -> Bid:
        bid, request = self._load_for_resolution(db, bid_id, acting_customer_id, "accept")

        winner_id = bid.technician_id
        now = self.clock()

        # single acceptance slot per request
        claimed = guarded_status_update(
            db,
            request.id,
            OPEN_FOR_BIDS,
            extra_where=(RepairRequest.accepted_bid_id.is_(None),),
            status=RequestStatus.assigned,
            accepted_bid_id=bid.id,
            assigned_technician_id=winner_id,
            updated_at=now,
        )
        if not claimed:
            raise ConflictError(
                "Another bid has already been accepted for this repair request.",
                code="AlreadyProcessed",
            )

        won = db.execute(
            update(Bid)
            .where(Bid.id == bid.id, Bid.status == BidStatus.pending.value)
            .values(status=BidStatus.accepted.value, accepted_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if won.rowcount != 1:
            # withdrawn between load and claim
            raise ConflictError("This bid has already been processed.", code="AlreadyProcessed")

        losers = db.execute(
            select(Bid.id, Bid.technician_id, Bid.amount).where(
                Bid.repair_request_id == request.id,
                Bid.id != bid.id,
                Bid.status == BidStatus.pending.value,
            )
        ).all()
        if losers:
            db.execute(
                update(Bid)
                .where(
                    Bid.id.in_([row.id for row in losers]),
                    Bid.status == BidStatus.pending.value,
                )
                .values(
                    status=BidStatus.rejected.value,
                    rejected_at=now,
                    rejection_reason=AUTO_REJECT_REASON,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )

        db.commit()
        db.refresh(bid)

        logger.info(
            "[bids] accepted bid=%s request=%s technician=%s auto_rejected=%d",
            bid.id, request.id, winner_id, len(losers),
        )

        events = [
            NotificationEvent(
                user_id=winner_id,
                type=NotificationType.bid_accepted,
                title="Bid Accepted!",
                message=f"Your bid of {self.currency} {bid.amount} has been accepted",
                data={"repairRequestId": bid.repair_request_id, "bidId": bid.id},
            )
        ]
        events.extend(
            NotificationEvent(
                user_id=row.technician_id,
                type=NotificationType.bid_rejected,
                title="Bid Rejected",
                message=f"Your bid of {self.currency} {row.amount} has been rejected",
                data={"repairRequestId": bid.repair_request_id, "bidId": row.id},
            )
            for row in losers
        )
        flush_events(self.notifier, events)
        return bid

    @lifecycle_operation("reject_bid")
    def reject_bid(
        self,
        db: Session,
        *,
        bid_id: uuid.UUID,
        acting_customer_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> None:
        bid, _ = self._load_for_resolution(db, bid_id, acting_customer_id, "reject")

        technician_id = bid.technician_id
        request_id = bid.repair_request_id
        amount = bid.amount
        now = self.clock()

        res = db.execute(
            update(Bid)
            .where(Bid.id == bid.id, Bid.status == BidStatus.pending.value)
            .values(
                status=BidStatus.rejected.value,
                rejected_at=now,
                rejection_reason=reason,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            raise ConflictError("This bid has already been processed.", code="AlreadyProcessed")

        db.commit()
        logger.info("[bids] rejected bid=%s request=%s", bid_id, request_id)

        flush_events(
            self.notifier,
            [
                NotificationEvent(
                    user_id=technician_id,
                    type=NotificationType.bid_rejected,
                    title="Bid Rejected",
                    message=f"Your bid of {self.currency} {amount} has been rejected",
                    data={"repairRequestId": request_id, "bidId": bid_id, "reason": reason},
                )
            ],
        )
        return None

    @lifecycle_operation("withdraw_bid")
    def withdraw_bid(
        self,
        db: Session,
        *,
        bid_id: uuid.UUID,
        acting_technician_id: uuid.UUID,
    ) -> Bid:
        bid = require_bid(db, bid_id)
        if bid.technician_id != acting_technician_id:
            raise ForbiddenError("Not authorized to withdraw this bid.")
        if bid.status != BidStatus.pending.value:
            raise ConflictError("This bid has already been processed.", code="AlreadyProcessed")

        now = self.clock()
        res = db.execute(
            update(Bid)
            .where(Bid.id == bid.id, Bid.status == BidStatus.pending.value)
            .values(status=BidStatus.withdrawn.value, withdrawn_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            raise ConflictError("This bid has already been processed.", code="AlreadyProcessed")

        db.commit()
        db.refresh(bid)
        logger.info("[bids] withdrawn bid=%s request=%s", bid.id, bid.repair_request_id)
        return bid

    # -----------------------------------------------------------------
    # reads
    # -----------------------------------------------------------------

    @lifecycle_operation("list_bids_for_request")
    def list_bids_for_request(
        self,
        db: Session,
        *,
        request_id: uuid.UUID,
        acting_user_id: uuid.UUID,
        sort_by: BidSortField = BidSortField.amount,
        order: SortOrder = SortOrder.asc,
    ) -> List[BidView]:
        request = require_request(db, request_id)
        actor = require_user(db, acting_user_id)

        # only the owning customer among customers; technicians and admins may look
        if actor.role == UserRole.customer.value and request.customer_id != actor.id:
            raise ForbiddenError("Not authorized to view bids for this repair request.")

        column = _SORT_COLUMNS[BidSortField(sort_by)]
        direction = desc if SortOrder(order) == SortOrder.desc else asc

        rows = db.execute(
            select(Bid, User, TechnicianProfile)
            .join(User, User.id == Bid.technician_id)
            .outerjoin(TechnicianProfile, TechnicianProfile.user_id == Bid.technician_id)
            .where(Bid.repair_request_id == request.id)
            .order_by(direction(column), asc(Bid.created_at), asc(Bid.id))
        ).all()

        now = self.clock()
        return [bid_view(b, u, p, now=now) for b, u, p in rows]

    @lifecycle_operation("list_technician_bids")
    def list_technician_bids(
        self,
        db: Session,
        *,
        technician_id: uuid.UUID,
        status: Optional[BidStatus] = None,
        page: int = 1,
        limit: int = 10,
    ) -> BidPage:
        page = max(1, page)
        limit = max(1, min(limit, 100))

        filters = [Bid.technician_id == technician_id]
        if status is not None:
            filters.append(Bid.status == BidStatus(status).value)

        total = db.execute(select(func.count()).select_from(Bid).where(*filters)).scalar_one()
        rows = db.execute(
            select(Bid, RepairRequest)
            .join(RepairRequest, RepairRequest.id == Bid.repair_request_id)
            .where(*filters)
            .order_by(desc(Bid.created_at), desc(Bid.id))
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()

        now = self.clock()
        return BidPage(
            bids=[bid_view(b, request=r, now=now) for b, r in rows],
            pagination=Pagination.of(page, limit, total),
        )
