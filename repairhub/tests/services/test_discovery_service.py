import uuid
from datetime import datetime, timedelta, timezone

import pytest

from repairhub.core.geo import bounding_box, haversine_m, is_valid_point
from repairhub.models.enums import IssueType, RequestStatus
from repairhub.services.discovery_service import DiscoveryService

LAT, LNG = 24.8607, 67.0011


@pytest.fixture
def svc():
    return DiscoveryService(default_radius_km=10)


def test_haversine_known_distance():
    # one degree of latitude is ~111.2 km
    assert haversine_m(0.0, 10.0, 1.0, 10.0) == pytest.approx(111_195, rel=1e-3)
    assert haversine_m(LAT, LNG, LAT, LNG) == 0.0


def test_bounding_box_contains_circle():
    min_lat, max_lat, min_lng, max_lng = bounding_box(LAT, LNG, 10_000)
    assert min_lat < LAT < max_lat
    assert min_lng < LNG < max_lng
    assert haversine_m(LAT, LNG, max_lat, LNG) == pytest.approx(10_000, rel=1e-3)


def test_bounding_box_widens_across_antimeridian():
    _, _, min_lng, max_lng = bounding_box(10.0, 179.95, 50_000)
    assert (min_lng, max_lng) == (-180.0, 180.0)


@pytest.mark.parametrize(
    "lat, lng, ok",
    [(LAT, LNG, True), (None, LNG, False), (LAT, None, False), (0, 0, False), (0, LNG, False), (91, LNG, False)],
)
def test_valid_point(lat, lng, ok):
    assert is_valid_point(lat, lng) is ok


def test_radius_filter_nearest_first(db, factory, svc):
    tech = factory.technician(radius_km=10)
    customer = factory.customer()
    mid = factory.request(customer, lat=LAT + 0.05, title="mid")       # ~5.6 km
    near = factory.request(customer, lat=LAT + 0.02, title="near")     # ~2.2 km
    factory.request(customer, lat=LAT + 0.2, title="far")               # ~22 km
    factory.request(customer, lat=LAT + 0.01, title="taken", status=RequestStatus.assigned)

    page = svc.find_requests_for_technician(db, technician_id=tech.id).unwrap()

    assert page.geoFiltered is True
    assert [r.id for r in page.requests] == [near.id, mid.id]
    assert page.requests[0].distanceMeters == pytest.approx(2224, rel=0.01)
    assert page.pagination.total == 2


def test_profile_radius_governs(db, factory, svc):
    customer = factory.customer()
    factory.request(customer, lat=LAT + 0.2, title="far")  # ~22 km
    small = factory.technician(radius_km=5)
    large = factory.technician(radius_km=30)

    assert svc.find_requests_for_technician(db, technician_id=small.id).unwrap().requests == []
    assert len(svc.find_requests_for_technician(db, technician_id=large.id).unwrap().requests) == 1


def test_status_and_issue_type_filters(db, factory, svc):
    tech = factory.technician()
    customer = factory.customer()
    factory.request(customer, issue_type="screen", title="screen")
    factory.request(customer, issue_type="battery", title="battery")
    factory.request(customer, status=RequestStatus.assigned, title="assigned")

    batteries = svc.find_requests_for_technician(db, technician_id=tech.id, issue_type=IssueType.battery).unwrap()
    assert [r.title for r in batteries.requests] == ["battery"]

    assigned = svc.find_requests_for_technician(db, technician_id=tech.id, status=RequestStatus.assigned).unwrap()
    assert [r.title for r in assigned.requests] == ["assigned"]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"lat": None, "lng": None},
        {"lat": 0, "lng": 0},
        {"profile": False},
    ],
)
def test_falls_back_to_unfiltered_listing(db, factory, svc, kwargs):
    tech = factory.technician(**kwargs)
    customer = factory.customer()
    base = datetime.now(timezone.utc)
    factory.request(customer, lat=LAT + 5, title="older", created_at=base - timedelta(hours=2))
    factory.request(customer, lat=LAT - 5, title="newer", created_at=base)

    page = svc.find_requests_for_technician(db, technician_id=tech.id).unwrap()

    assert page.geoFiltered is False
    assert [r.title for r in page.requests] == ["newer", "older"]
    assert all(r.distanceMeters is None for r in page.requests)


def test_pagination_over_geo_hits(db, factory, svc):
    tech = factory.technician()
    customer = factory.customer()
    for i in range(5):
        factory.request(customer, lat=LAT + 0.001 * (i + 1), title=f"r{i}")

    first = svc.find_requests_for_technician(db, technician_id=tech.id, page=1, limit=2).unwrap()
    third = svc.find_requests_for_technician(db, technician_id=tech.id, page=3, limit=2).unwrap()

    assert [r.title for r in first.requests] == ["r0", "r1"]
    assert [r.title for r in third.requests] == ["r4"]
    assert first.pagination.pages == 3


def test_unknown_technician(db, svc):
    assert svc.find_requests_for_technician(db, technician_id=uuid.uuid4()).code == "UserNotFound"
