# repairhub/services/read_models.py
"""
Read-side composition over already-fetched aggregates.

Nothing in here queries the store; callers load the rows (bid, request,
users, profiles) and these functions shape them into API views.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from repairhub.models.bid import Bid
from repairhub.models.enums import EstimateUnit
from repairhub.models.notification import Notification
from repairhub.models.repair_request import RepairRequest
from repairhub.models.review import Review
from repairhub.models.technician_profile import TechnicianProfile
from repairhub.models.transaction import Transaction
from repairhub.models.user import User
from repairhub.schemas.views import (
    BidView,
    Budget,
    EstimatedTime,
    Location,
    NotificationView,
    Rating,
    RequestBrief,
    RequestView,
    ReviewView,
    TechnicianProfileView,
    TechnicianSummary,
    TransactionView,
    UserSummary,
)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything stored is UTC
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _is_past(dt: Optional[datetime], now: Optional[datetime]) -> bool:
    if dt is None:
        return False
    return as_utc(dt) < (now or datetime.now(timezone.utc))


def user_summary(user: Optional[User]) -> Optional[UserSummary]:
    if user is None:
        return None
    return UserSummary(id=user.id, name=user.name, email=user.email, phone=user.phone)


def rating_of(profile: TechnicianProfile) -> Rating:
    return Rating(
        average=profile.rating_average or 0.0,
        count=profile.rating_count or 0,
        aspects=dict(profile.rating_aspects or {}),
    )


def technician_summary(
    user: Optional[User], profile: Optional[TechnicianProfile]
) -> Optional[TechnicianSummary]:
    if user is None:
        return None
    return TechnicianSummary(
        id=user.id,
        name=user.name,
        email=user.email,
        phone=user.phone,
        rating=rating_of(profile) if profile else None,
        experienceYears=profile.experience_years if profile else None,
        specializations=list(profile.specializations or []) if profile else [],
        isApproved=bool(profile.is_approved) if profile else False,
    )


def request_brief(request: RepairRequest) -> RequestBrief:
    return RequestBrief(
        id=request.id,
        title=request.title,
        status=request.status,
        deviceInfo=dict(request.device_info or {}),
        address=request.address,
    )


def bid_view(
    bid: Bid,
    technician: Optional[User] = None,
    profile: Optional[TechnicianProfile] = None,
    *,
    request: Optional[RepairRequest] = None,
    now: Optional[datetime] = None,
) -> BidView:
    return BidView(
        id=bid.id,
        repairRequestId=bid.repair_request_id,
        repairRequest=request_brief(request) if request else None,
        technicianId=bid.technician_id,
        technician=technician_summary(technician, profile),
        amount=bid.amount,
        estimatedTime=EstimatedTime(
            value=bid.estimated_time_value, unit=EstimateUnit(bid.estimated_time_unit)
        ),
        estimatedTimeText=bid.estimated_time_text,
        description=bid.description,
        partsIncluded=list(bid.parts_included or []),
        warranty=bid.warranty,
        message=bid.message,
        status=bid.status,
        rejectionReason=bid.rejection_reason,
        validUntil=as_utc(bid.valid_until),
        isExpired=_is_past(bid.valid_until, now),
        acceptedAt=as_utc(bid.accepted_at),
        rejectedAt=as_utc(bid.rejected_at),
        withdrawnAt=as_utc(bid.withdrawn_at),
        createdAt=as_utc(bid.created_at),
    )


def request_view(
    request: RepairRequest,
    customer: Optional[User] = None,
    assigned_technician: Optional[User] = None,
    accepted_bid: Optional[Bid] = None,
    *,
    distance_m: Optional[float] = None,
    now: Optional[datetime] = None,
) -> RequestView:
    return RequestView(
        id=request.id,
        customerId=request.customer_id,
        customer=user_summary(customer),
        title=request.title,
        description=request.description,
        deviceInfo=dict(request.device_info or {}),
        issueType=request.issue_type,
        images=list(request.images or []),
        urgency=request.urgency,
        budget=Budget(min=request.budget_min, max=request.budget_max),
        location=Location(
            latitude=request.latitude,
            longitude=request.longitude,
            address=request.address,
        ),
        status=request.status,
        acceptedBidId=request.accepted_bid_id,
        acceptedBid=bid_view(accepted_bid, now=now) if accepted_bid else None,
        assignedTechnicianId=request.assigned_technician_id,
        assignedTechnician=user_summary(assigned_technician),
        completedAt=as_utc(request.completed_at),
        cancelledAt=as_utc(request.cancelled_at),
        expiresAt=as_utc(request.expires_at),
        isExpired=_is_past(request.expires_at, now),
        createdAt=as_utc(request.created_at),
        updatedAt=as_utc(request.updated_at),
        distanceMeters=round(distance_m, 1) if distance_m is not None else None,
    )


def transaction_view(tx: Transaction) -> TransactionView:
    return TransactionView(
        id=tx.id,
        repairRequestId=tx.repair_request_id,
        customerId=tx.customer_id,
        technicianId=tx.technician_id,
        amount=tx.amount,
        currency=tx.currency,
        type=tx.type,
        status=tx.status,
        paymentMethod=tx.payment_method,
        completedAt=as_utc(tx.completed_at),
    )


def technician_profile_view(
    profile: TechnicianProfile, user: Optional[User] = None
) -> TechnicianProfileView:
    return TechnicianProfileView(
        id=profile.id,
        userId=profile.user_id,
        user=user_summary(user),
        experienceYears=profile.experience_years,
        specializations=list(profile.specializations or []),
        serviceRadiusKm=profile.service_radius_km,
        biography=profile.biography,
        rating=rating_of(profile),
        totalJobs=profile.total_jobs or 0,
        completedJobs=profile.completed_jobs or 0,
        priceRange=Budget(min=profile.price_min, max=profile.price_max),
        isApproved=bool(profile.is_approved),
        approvedAt=as_utc(profile.approved_at),
        rejectedAt=as_utc(profile.rejected_at),
        rejectionReason=profile.rejection_reason,
    )


def review_view(
    review: Review,
    customer: Optional[User] = None,
    request: Optional[RepairRequest] = None,
) -> ReviewView:
    return ReviewView(
        id=review.id,
        repairRequestId=review.repair_request_id,
        repairRequest=request_brief(request) if request else None,
        customerId=review.customer_id,
        customer=user_summary(customer),
        technicianId=review.technician_id,
        rating=review.rating,
        comment=review.comment,
        aspects=dict(review.aspects or {}),
        isRecommended=bool(review.is_recommended),
        createdAt=as_utc(review.created_at),
        updatedAt=as_utc(review.updated_at),
    )


def notification_view(n: Notification) -> NotificationView:
    return NotificationView(
        id=n.id,
        type=n.type,
        title=n.title,
        message=n.message,
        data=dict(n.data or {}),
        priority=n.priority,
        isRead=bool(n.is_read),
        readAt=as_utc(n.read_at),
        createdAt=as_utc(n.created_at),
    )
