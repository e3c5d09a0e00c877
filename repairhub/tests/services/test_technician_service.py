import uuid
from decimal import Decimal

import pytest

from repairhub.core.errors import ErrorKind
from repairhub.models.enums import NotificationType
from repairhub.models.user import User
from repairhub.services.bid_lifecycle_service import BidLifecycleService
from repairhub.services.technician_service import TechnicianService


@pytest.fixture
def svc(sink):
    return TechnicianService(sink)


def profile_fields(**overrides):
    fields = {
        "experienceYears": 4,
        "specializations": ["screen_repair", "battery_replacement"],
        "serviceRadiusKm": 15,
        "biography": "Board-level repairs since 2019.",
        "priceRange": {"min": "500", "max": "20000"},
    }
    fields.update(overrides)
    return fields


def test_create_profile_starts_unapproved(db, factory, svc):
    tech = factory.technician(profile=False)

    view = svc.create_profile(db, user_id=tech.id, fields=profile_fields()).unwrap()

    assert view.userId == tech.id
    assert view.isApproved is False
    assert view.serviceRadiusKm == 15
    assert view.specializations == ["screen_repair", "battery_replacement"]


def test_one_profile_per_technician(db, factory, svc):
    tech = factory.technician(profile=False)
    assert svc.create_profile(db, user_id=tech.id, fields=profile_fields()).ok

    res = svc.create_profile(db, user_id=tech.id, fields=profile_fields())
    assert res.kind == ErrorKind.conflict
    assert res.code == "ProfileExists"


def test_customers_cannot_create_profiles(db, factory, svc):
    res = svc.create_profile(db, user_id=factory.customer().id, fields=profile_fields())
    assert res.kind == ErrorKind.forbidden


@pytest.mark.parametrize("radius", [0, 51])
def test_service_radius_bounds(db, factory, svc, radius):
    tech = factory.technician(profile=False)
    res = svc.create_profile(db, user_id=tech.id, fields=profile_fields(serviceRadiusKm=radius))
    assert res.kind == ErrorKind.validation


def test_update_profile_cannot_self_approve(db, factory, svc):
    tech = factory.technician(approved=False)

    res = svc.update_profile(db, user_id=tech.id, changes={"isApproved": True})
    assert res.kind == ErrorKind.validation

    view = svc.update_profile(db, user_id=tech.id, changes={"serviceRadiusKm": 25, "biography": None}).unwrap()
    assert view.serviceRadiusKm == 25
    assert view.biography is None
    assert view.isApproved is False


def test_one_sided_price_update_checked_against_stored_bound(db, factory, svc):
    tech = factory.technician(profile=False)
    svc.create_profile(db, user_id=tech.id, fields=profile_fields()).unwrap()

    res = svc.update_profile(db, user_id=tech.id, changes={"priceRange": {"min": "25000"}})
    assert res.kind == ErrorKind.validation
    assert res.code == "InvalidPriceRange"

    kept = svc.get_profile(db, user_id=tech.id).unwrap()
    assert (kept.priceRange.min, kept.priceRange.max) == (Decimal("500"), Decimal("20000"))

    view = svc.update_profile(db, user_id=tech.id, changes={"priceRange": {"max": "30000"}}).unwrap()
    assert (view.priceRange.min, view.priceRange.max) == (Decimal("500"), Decimal("30000"))


def test_create_profile_min_above_default_max(db, factory, svc):
    tech = factory.technician(profile=False)
    res = svc.create_profile(db, user_id=tech.id, fields=profile_fields(priceRange={"min": "15000"}))
    assert res.code == "InvalidPriceRange"


def test_get_profile(db, factory, svc):
    tech = factory.technician()
    assert svc.get_profile(db, user_id=tech.id).unwrap().userId == tech.id
    assert svc.get_profile(db, user_id=factory.technician(profile=False).id).code == "ProfileNotFound"
    assert svc.get_profile(db, user_id=uuid.uuid4()).code == "UserNotFound"


def test_approval_unlocks_bidding(db, factory, svc, sink, make_bid_fields):
    admin = factory.admin()
    tech = factory.technician(profile=False)
    profile = svc.create_profile(db, user_id=tech.id, fields=profile_fields()).unwrap()
    req = factory.request(factory.customer())
    bids = BidLifecycleService(sink)

    assert bids.create_bid(db, request_id=req.id, technician_id=tech.id, fields=make_bid_fields()).code == "NotEligible"

    view = svc.approve_technician(db, admin_id=admin.id, profile_id=profile.id, approved=True).unwrap()
    assert view.isApproved is True
    assert view.approvedAt is not None
    assert db.get(User, tech.id, populate_existing=True).is_verified is True
    assert [e["user_id"] for e in sink.of_type(NotificationType.profile_approved)] == [tech.id]

    assert bids.create_bid(db, request_id=req.id, technician_id=tech.id, fields=make_bid_fields()).ok


def test_rejection_records_reason(db, factory, svc, sink):
    admin = factory.admin()
    tech = factory.technician(approved=True)
    profile = svc.get_profile(db, user_id=tech.id).unwrap()

    view = svc.approve_technician(
        db, admin_id=admin.id, profile_id=profile.id, approved=False, reason="CNIC mismatch"
    ).unwrap()

    assert view.isApproved is False
    assert view.rejectionReason == "CNIC mismatch"
    assert view.rejectedAt is not None
    events = sink.of_type(NotificationType.profile_rejected)
    assert events[0]["data"]["reason"] == "CNIC mismatch"


def test_only_admins_approve(db, factory, svc):
    tech = factory.technician(approved=False)
    profile = svc.get_profile(db, user_id=tech.id).unwrap()
    res = svc.approve_technician(db, admin_id=factory.customer().id, profile_id=profile.id, approved=True)
    assert res.kind == ErrorKind.forbidden


def test_inactive_account_cannot_be_approved(db, factory, svc):
    admin = factory.admin()
    tech = factory.technician(approved=False, active=False)
    profile = svc.get_profile(db, user_id=tech.id).unwrap()

    res = svc.approve_technician(db, admin_id=admin.id, profile_id=profile.id, approved=True)
    assert res.code == "InactiveAccount"
    assert svc.get_profile(db, user_id=tech.id).unwrap().isApproved is False
