# /repairhub/core/deps.py
from typing import TypeVar

from fastapi import Depends, HTTPException

from repairhub.core.config import get_settings
from repairhub.core.errors import HTTP_STATUS_BY_KIND
from repairhub.core.result import Result
from repairhub.db.session import SessionLocal
from repairhub.services.bid_lifecycle_service import BidLifecycleService
from repairhub.services.discovery_service import DiscoveryService
from repairhub.services.notification_inbox_service import NotificationInboxService
from repairhub.services.notification_service import NotificationSink, build_sink
from repairhub.services.repair_request_service import RepairRequestService
from repairhub.services.review_service import ReviewService
from repairhub.services.technician_service import TechnicianService
from repairhub.services.transaction_service import TransactionService

T = TypeVar("T")


def unwrap_or_raise(result: Result[T]) -> T:
    """
    Failed Result -> HTTPException with {"code", "message"} detail.
    """
    if result.ok:
        return result.value
    err = result.error
    raise HTTPException(
        status_code=HTTP_STATUS_BY_KIND[err.kind],
        detail={"code": err.code, "message": err.message},
    )


# ─────────── service providers ───────────

def get_notifier() -> NotificationSink:
    return build_sink(get_settings(), SessionLocal)


def get_bid_service(notifier: NotificationSink = Depends(get_notifier)) -> BidLifecycleService:
    s = get_settings()
    return BidLifecycleService(
        notifier, bid_validity_hours=s.bid_validity_hours, currency=s.currency
    )


def get_request_service(notifier: NotificationSink = Depends(get_notifier)) -> RepairRequestService:
    s = get_settings()
    return RepairRequestService(
        notifier,
        transactions=TransactionService(currency=s.currency),
        request_expiry_days=s.request_expiry_days,
        currency=s.currency,
    )


def get_technician_service(notifier: NotificationSink = Depends(get_notifier)) -> TechnicianService:
    return TechnicianService(notifier)


def get_discovery_service() -> DiscoveryService:
    return DiscoveryService(default_radius_km=get_settings().default_service_radius_km)


def get_transaction_service() -> TransactionService:
    return TransactionService(currency=get_settings().currency)


def get_review_service(notifier: NotificationSink = Depends(get_notifier)) -> ReviewService:
    return ReviewService(notifier, edit_window_days=get_settings().review_edit_window_days)


def get_inbox_service() -> NotificationInboxService:
    return NotificationInboxService()
