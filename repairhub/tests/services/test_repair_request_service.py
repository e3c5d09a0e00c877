import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from repairhub.core.errors import ErrorKind
from repairhub.models.bid import Bid
from repairhub.models.enums import BidStatus, NotificationType, RequestStatus
from repairhub.models.repair_request import RepairRequest
from repairhub.models.technician_profile import TechnicianProfile
from repairhub.models.transaction import Transaction
from repairhub.services.bid_lifecycle_service import BidLifecycleService
from repairhub.services.repair_request_service import RepairRequestService


@pytest.fixture
def requests_svc(sink):
    return RepairRequestService(sink)


@pytest.fixture
def bids_svc(sink):
    return BidLifecycleService(sink)


def new_request_fields(**overrides):
    fields = {
        "title": "Battery drains fast",
        "description": "Phone dies within two hours of a full charge.",
        "deviceInfo": {"brand": "Apple", "model": "iPhone 11"},
        "issueType": "battery",
        "urgency": "high",
        "preferredBudget": {"min": "2000", "max": "6000"},
        "location": {"latitude": 24.86, "longitude": 67.0, "address": "Saddar, Karachi"},
    }
    fields.update(overrides)
    return fields


@pytest.fixture
def assigned(db, factory, bids_svc, make_bid_fields):
    """A request with an accepted 750 bid."""
    customer = factory.customer()
    tech = factory.technician()
    req = factory.request(customer)
    bid = bids_svc.create_bid(db, request_id=req.id, technician_id=tech.id, fields=make_bid_fields("750")).unwrap()
    bids_svc.accept_bid(db, bid_id=bid.id, acting_customer_id=customer.id).unwrap()
    return customer, tech, req, bid


def _transactions(db, request_id):
    return db.execute(
        select(func.count()).select_from(Transaction).where(Transaction.repair_request_id == request_id)
    ).scalar_one()


# ---------------------------------------------------------------------
# create / read
# ---------------------------------------------------------------------

def test_create_request_opens_and_notifies_approved_technicians(db, factory, requests_svc, sink):
    customer = factory.customer()
    approved = factory.technician()
    factory.technician(approved=False)
    factory.technician(active=False)

    view = requests_svc.create_request(db, customer_id=customer.id, fields=new_request_fields()).unwrap()

    assert view.status == RequestStatus.open.value
    assert view.customer.id == customer.id
    assert view.budget.min == Decimal("2000")
    assert view.isExpired is False
    assert (view.expiresAt - view.createdAt) == timedelta(days=7)

    events = sink.of_type(NotificationType.new_repair_request)
    assert [e["user_id"] for e in events] == [approved.id]


def test_only_customers_create_requests(db, factory, requests_svc):
    tech = factory.technician()
    res = requests_svc.create_request(db, customer_id=tech.id, fields=new_request_fields())
    assert res.kind == ErrorKind.forbidden


def test_get_request_access(db, factory, requests_svc):
    owner, other = factory.customer(), factory.customer()
    tech = factory.technician()
    req = factory.request(owner)

    assert requests_svc.get_request(db, request_id=req.id, acting_user_id=owner.id).ok
    assert requests_svc.get_request(db, request_id=req.id, acting_user_id=tech.id).ok
    assert requests_svc.get_request(db, request_id=req.id, acting_user_id=other.id).kind == ErrorKind.forbidden
    assert requests_svc.get_request(db, request_id=uuid.uuid4(), acting_user_id=owner.id).code == "RequestNotFound"


def test_list_customer_requests_newest_first(db, factory, requests_svc):
    customer = factory.customer()
    base = datetime.now(timezone.utc)
    factory.request(customer, title="old", created_at=base - timedelta(days=2))
    factory.request(customer, title="new", created_at=base)
    factory.request(customer, title="gone", status=RequestStatus.cancelled, created_at=base - timedelta(days=1))
    factory.request(factory.customer(), title="someone else")

    page = requests_svc.list_customer_requests(db, customer_id=customer.id).unwrap()
    assert [r.title for r in page.requests] == ["new", "gone", "old"]
    assert page.pagination.total == 3

    open_only = requests_svc.list_customer_requests(
        db, customer_id=customer.id, status=RequestStatus.open
    ).unwrap()
    assert [r.title for r in open_only.requests] == ["new", "old"]


# ---------------------------------------------------------------------
# update
# ---------------------------------------------------------------------

def test_update_details_while_open(db, factory, requests_svc):
    customer = factory.customer()
    req = factory.request(customer)

    view = requests_svc.update_request(
        db, request_id=req.id, acting_user_id=customer.id, changes={"title": "Cracked and flickering", "urgency": "high"}
    ).unwrap()
    assert view.title == "Cracked and flickering"
    assert view.urgency == "high"


def test_update_details_locked_after_assignment(db, requests_svc, assigned):
    customer, _, req, _ = assigned
    res = requests_svc.update_request(db, request_id=req.id, acting_user_id=customer.id, changes={"title": "x"})
    assert res.kind == ErrorKind.conflict
    assert res.code == "RequestLocked"


def test_update_rejects_strangers_and_unknown_fields(db, factory, requests_svc):
    customer, stranger = factory.customer(), factory.customer()
    req = factory.request(customer)

    assert requests_svc.update_request(
        db, request_id=req.id, acting_user_id=stranger.id, changes={"title": "mine now"}
    ).kind == ErrorKind.forbidden

    # fields outside the schema are rejected before anything is touched
    res = requests_svc.update_request(
        db, request_id=req.id, acting_user_id=customer.id, changes={"customerId": str(stranger.id)}
    )
    assert res.kind == ErrorKind.validation
    assert res.code == "InvalidInput"
    assert db.get(RepairRequest, req.id, populate_existing=True).customer_id == customer.id


def test_assigned_technician_can_start_work(db, requests_svc, assigned):
    _, tech, req, _ = assigned
    view = requests_svc.update_request(
        db, request_id=req.id, acting_user_id=tech.id, changes={"status": "in_progress"}
    ).unwrap()
    assert view.status == RequestStatus.in_progress.value


@pytest.mark.parametrize("target", ["open", "bidding", "assigned", "paid"])
def test_status_cannot_be_set_backwards_or_directly(db, requests_svc, assigned, target):
    customer, _, req, _ = assigned
    res = requests_svc.update_request(db, request_id=req.id, acting_user_id=customer.id, changes={"status": target})
    assert res.code == "InvalidTransition"
    assert db.get(RepairRequest, req.id, populate_existing=True).status == RequestStatus.assigned.value


def test_in_progress_requires_assignment(db, factory, requests_svc):
    customer = factory.customer()
    req = factory.request(customer)
    res = requests_svc.update_request(
        db, request_id=req.id, acting_user_id=customer.id, changes={"status": "in_progress"}
    )
    assert res.code == "InvalidTransition"


def test_update_to_completed_routes_through_completion(db, requests_svc, assigned):
    customer, _, req, _ = assigned
    view = requests_svc.update_request(
        db, request_id=req.id, acting_user_id=customer.id, changes={"status": "completed", "paymentMethod": "jazzcash"}
    ).unwrap()
    assert view.status == RequestStatus.paid.value
    tx = db.execute(select(Transaction).where(Transaction.repair_request_id == req.id)).scalar_one()
    assert tx.payment_method == "jazzcash"


# ---------------------------------------------------------------------
# cancel / delete
# ---------------------------------------------------------------------

def test_cancel_rejects_pending_bids(db, factory, requests_svc, bids_svc, sink, make_bid_fields):
    customer = factory.customer()
    t1, t2 = factory.technician(), factory.technician()
    req = factory.request(customer)
    b1 = bids_svc.create_bid(db, request_id=req.id, technician_id=t1.id, fields=make_bid_fields()).unwrap()
    bids_svc.create_bid(db, request_id=req.id, technician_id=t2.id, fields=make_bid_fields()).unwrap()
    bids_svc.withdraw_bid(db, bid_id=b1.id, acting_technician_id=t1.id).unwrap()

    view = requests_svc.cancel_request(db, request_id=req.id, acting_customer_id=customer.id, reason="Fixed it myself").unwrap()

    assert view.status == RequestStatus.cancelled.value
    assert view.cancelledAt is not None
    statuses = {
        b.technician_id: b.status
        for b in db.execute(select(Bid).where(Bid.repair_request_id == req.id)).scalars()
    }
    assert statuses == {t1.id: BidStatus.withdrawn.value, t2.id: BidStatus.rejected.value}
    assert [e["user_id"] for e in sink.of_type(NotificationType.bid_rejected)] == [t2.id]


def test_cancel_assigned_notifies_assigned_technician(db, requests_svc, sink, assigned):
    customer, tech, req, bid = assigned
    sink.events.clear()

    view = requests_svc.cancel_request(
        db, request_id=req.id, acting_customer_id=customer.id, reason="Bought a new phone"
    ).unwrap()

    assert view.status == RequestStatus.cancelled.value
    assert view.assignedTechnicianId == tech.id

    cancelled = sink.of_type(NotificationType.request_cancelled)
    assert [e["user_id"] for e in cancelled] == [tech.id]
    assert cancelled[0]["data"]["bidId"] == bid.id
    assert cancelled[0]["data"]["reason"] == "Bought a new phone"
    assert sink.of_type(NotificationType.bid_rejected) == []

    # the accepted bid stays on record for the cancelled job
    assert db.get(Bid, bid.id, populate_existing=True).status == BidStatus.accepted.value


def test_cancel_assigned_is_allowed_but_not_after_work_starts(db, requests_svc, assigned):
    customer, tech, req, _ = assigned
    requests_svc.update_request(db, request_id=req.id, acting_user_id=tech.id, changes={"status": "in_progress"}).unwrap()

    res = requests_svc.cancel_request(db, request_id=req.id, acting_customer_id=customer.id)
    assert res.code == "InvalidTransition"


def test_cancel_is_owner_only_and_terminal(db, factory, requests_svc):
    customer, other = factory.customer(), factory.customer()
    req = factory.request(customer)

    assert requests_svc.cancel_request(db, request_id=req.id, acting_customer_id=other.id).kind == ErrorKind.forbidden
    assert requests_svc.cancel_request(db, request_id=req.id, acting_customer_id=customer.id).ok
    assert requests_svc.cancel_request(db, request_id=req.id, acting_customer_id=customer.id).code == "InvalidTransition"


def test_delete_open_request_removes_bids(db, factory, requests_svc, bids_svc, make_bid_fields):
    customer = factory.customer()
    tech = factory.technician()
    req = factory.request(customer)
    rid, customer_id = req.id, customer.id
    bids_svc.create_bid(db, request_id=rid, technician_id=tech.id, fields=make_bid_fields()).unwrap()

    assert requests_svc.delete_request(db, request_id=rid, acting_customer_id=customer_id).ok
    # the deleted instances are stale in the identity map
    db.expunge_all()
    assert db.get(RepairRequest, rid) is None
    assert db.execute(
        select(func.count()).select_from(Bid).where(Bid.repair_request_id == rid)
    ).scalar_one() == 0


def test_delete_locked_once_assigned(db, factory, requests_svc, assigned):
    customer, _, req, _ = assigned
    other = factory.customer()

    assert requests_svc.delete_request(db, request_id=req.id, acting_customer_id=other.id).kind == ErrorKind.forbidden
    res = requests_svc.delete_request(db, request_id=req.id, acting_customer_id=customer.id)
    assert res.code == "RequestLocked"
    assert db.get(RepairRequest, req.id, populate_existing=True) is not None


# ---------------------------------------------------------------------
# completion -> payment
# ---------------------------------------------------------------------

def test_complete_creates_transaction_and_marks_paid(db, requests_svc, sink, assigned):
    customer, tech, req, bid = assigned

    view = requests_svc.complete_request(db, request_id=req.id, acting_user_id=tech.id).unwrap()

    assert view.status == RequestStatus.paid.value
    assert view.completedAt is not None
    tx = db.execute(select(Transaction).where(Transaction.repair_request_id == req.id)).scalar_one()
    assert tx.amount == Decimal("750")
    assert tx.payment_method == "cash"
    assert tx.status == "completed"
    assert (tx.customer_id, tx.technician_id) == (customer.id, tech.id)

    profile = db.execute(select(TechnicianProfile).where(TechnicianProfile.user_id == tech.id)).scalar_one()
    assert profile.completed_jobs == 1

    assert [e["user_id"] for e in sink.of_type(NotificationType.job_completed)] == [customer.id]
    assert [e["user_id"] for e in sink.of_type(NotificationType.payment_received)] == [tech.id]


def test_complete_twice_creates_one_transaction(db, requests_svc, sink, assigned):
    customer, tech, req, _ = assigned

    first = requests_svc.complete_request(db, request_id=req.id, acting_user_id=customer.id)
    second = requests_svc.complete_request(db, request_id=req.id, acting_user_id=tech.id)

    assert first.ok and second.ok
    assert second.value.status == RequestStatus.paid.value
    assert _transactions(db, req.id) == 1
    assert len(sink.of_type(NotificationType.payment_received)) == 1
    profile = db.execute(select(TechnicianProfile).where(TechnicianProfile.user_id == tech.id)).scalar_one()
    assert profile.completed_jobs == 1


def test_complete_with_explicit_amount(db, requests_svc, assigned):
    customer, _, req, _ = assigned
    requests_svc.complete_request(
        db, request_id=req.id, acting_user_id=customer.id, completion={"amount": "820", "paymentMethod": "easypaisa"}
    ).unwrap()
    tx = db.execute(select(Transaction).where(Transaction.repair_request_id == req.id)).scalar_one()
    assert tx.amount == Decimal("820")
    assert tx.payment_method == "easypaisa"


def test_complete_requires_assignment(db, factory, requests_svc):
    customer = factory.customer()
    req = factory.request(customer, status=RequestStatus.bidding)
    res = requests_svc.complete_request(db, request_id=req.id, acting_user_id=customer.id)
    assert res.code == "InvalidTransition"
    assert _transactions(db, req.id) == 0


def test_complete_rejects_outsiders(db, factory, requests_svc, assigned):
    _, _, req, _ = assigned
    outsider = factory.technician()
    res = requests_svc.complete_request(db, request_id=req.id, acting_user_id=outsider.id)
    assert res.kind == ErrorKind.forbidden
    assert _transactions(db, req.id) == 0


def test_completion_survives_notification_failure(db, failing_sink, assigned):
    customer, _, req, _ = assigned
    svc = RepairRequestService(failing_sink)

    view = svc.complete_request(db, request_id=req.id, acting_user_id=customer.id).unwrap()
    assert view.status == RequestStatus.paid.value
    assert failing_sink.calls == 2
    assert _transactions(db, req.id) == 1
