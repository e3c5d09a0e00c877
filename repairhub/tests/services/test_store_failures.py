"""
Store outages surface as transient failures and leave no partial writes.
"""
import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from repairhub.core.errors import ErrorKind
from repairhub.models.bid import Bid
from repairhub.models.enums import BidStatus, RequestStatus
from repairhub.models.repair_request import RepairRequest
from repairhub.services.bid_lifecycle_service import BidLifecycleService


@pytest.fixture
def svc(sink):
    return BidLifecycleService(sink)


def _outage(statement):
    return OperationalError(str(statement), {}, Exception("server closed the connection unexpectedly"))


def test_flush_failure_rolls_back_request_status(db, factory, svc, sink, make_bid_fields, monkeypatch):
    customer = factory.customer()
    tech = factory.technician()
    req = factory.request(customer)
    rid, tid = req.id, tech.id

    def broken_flush(*args, **kwargs):
        raise _outage("INSERT INTO bids")

    monkeypatch.setattr(db, "flush", broken_flush)
    res = svc.create_bid(db, request_id=rid, technician_id=tid, fields=make_bid_fields())
    monkeypatch.undo()

    assert res.kind == ErrorKind.transient
    assert res.code == "StoreUnavailable"

    # the open -> bidding move ran before the failure and must be undone
    db.expire_all()
    assert db.get(RepairRequest, rid).status == RequestStatus.open.value
    assert db.execute(select(func.count()).select_from(Bid)).scalar_one() == 0
    assert sink.events == []


def test_execute_failure_mid_accept_leaves_request_unclaimed(
    db, factory, svc, sink, make_bid_fields, monkeypatch
):
    customer = factory.customer()
    t1, t2 = factory.technician(), factory.technician()
    req = factory.request(customer)
    rid, customer_id = req.id, customer.id
    b1 = svc.create_bid(db, request_id=rid, technician_id=t1.id, fields=make_bid_fields("500")).unwrap()
    b2 = svc.create_bid(db, request_id=rid, technician_id=t2.id, fields=make_bid_fields("450")).unwrap()
    b1_id, b2_id = b1.id, b2.id
    sink.events.clear()

    real_execute = db.execute

    # the request row is claimed first; the bid updates then hit the outage
    def failing_on_bid_writes(statement, *args, **kwargs):
        if getattr(statement, "is_dml", False) and statement.table.name == "bids":
            raise _outage(statement)
        return real_execute(statement, *args, **kwargs)

    monkeypatch.setattr(db, "execute", failing_on_bid_writes)
    res = svc.accept_bid(db, bid_id=b1_id, acting_customer_id=customer_id)
    monkeypatch.undo()

    assert not res.ok
    assert res.kind == ErrorKind.transient
    assert res.code == "StoreUnavailable"

    db.expire_all()
    r = db.get(RepairRequest, rid)
    assert r.status == RequestStatus.bidding.value
    assert r.accepted_bid_id is None
    assert r.assigned_technician_id is None
    statuses = db.execute(
        select(Bid.status).where(Bid.id.in_([b1_id, b2_id]))
    ).scalars().all()
    assert statuses == [BidStatus.pending.value, BidStatus.pending.value]
    assert sink.events == []

    # nothing was left half-applied, so a retry succeeds
    assert svc.accept_bid(db, bid_id=b1_id, acting_customer_id=customer_id).ok
