import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from repairhub.core.errors import ErrorKind
from repairhub.models.enums import NotificationType, RequestStatus
from repairhub.models.review import Review
from repairhub.models.technician_profile import TechnicianProfile
from repairhub.schemas.bids import BidSortField, SortOrder
from repairhub.services.bid_lifecycle_service import BidLifecycleService
from repairhub.services.repair_request_service import RepairRequestService
from repairhub.services.review_service import ReviewService, aggregate_ratings


@pytest.fixture
def svc(sink):
    return ReviewService(sink)


@pytest.fixture
def finish_job(db, sink, factory, make_bid_fields):
    """Runs a request through bid, accept and completion; returns its id."""
    bids = BidLifecycleService(sink)
    requests = RepairRequestService(sink)

    def _finish(customer, tech, amount="600"):
        req = factory.request(customer)
        rid = req.id
        bid = bids.create_bid(db, request_id=rid, technician_id=tech.id, fields=make_bid_fields(amount)).unwrap()
        bids.accept_bid(db, bid_id=bid.id, acting_customer_id=customer.id).unwrap()
        requests.complete_request(db, request_id=rid, acting_user_id=customer.id).unwrap()
        return rid

    return _finish


def _profile(db, tech_id):
    return db.execute(
        select(TechnicianProfile)
        .where(TechnicianProfile.user_id == tech_id)
        .execution_options(populate_existing=True)
    ).scalar_one()


def review_fields(request_id, rating=5, **extra):
    fields = {"repairRequestId": request_id, "rating": rating, "comment": "Quick and tidy work."}
    fields.update(extra)
    return fields


# ---------------------------------------------------------------------
# rating aggregate
# ---------------------------------------------------------------------

def test_aggregate_ratings_averages_scored_aspects_only():
    average, count, aspects = aggregate_ratings(
        [
            (5, {"quality": 5, "timeliness": 4}),
            (4, {"quality": 3}),
            (3, None),
        ]
    )
    assert (average, count) == (4.0, 3)
    assert aspects == {"quality": 4.0, "timeliness": 4.0, "communication": 0, "value": 0}


def test_aggregate_ratings_empty():
    assert aggregate_ratings([]) == (
        0.0,
        0,
        {"quality": 0, "timeliness": 0, "communication": 0, "value": 0},
    )


# ---------------------------------------------------------------------
# create
# ---------------------------------------------------------------------

def test_review_updates_technician_rating(db, factory, svc, sink, finish_job):
    customer = factory.customer()
    tech = factory.technician()
    rid = finish_job(customer, tech)
    sink.events.clear()

    view = svc.create_review(
        db,
        customer_id=customer.id,
        fields=review_fields(rid, 4, aspects={"quality": 5, "value": 3}),
    ).unwrap()

    assert view.technicianId == tech.id
    assert view.repairRequest.status == RequestStatus.paid.value
    assert view.aspects == {"quality": 5, "value": 3}

    profile = _profile(db, tech.id)
    assert profile.rating_average == 4.0
    assert profile.rating_count == 1
    assert profile.rating_aspects["quality"] == 5
    assert profile.rating_aspects["timeliness"] == 0

    events = sink.of_type(NotificationType.review_received)
    assert [e["user_id"] for e in events] == [tech.id]
    assert events[0]["data"]["reviewId"] == view.id


def test_average_rounds_to_two_places(db, factory, svc, finish_job):
    customer = factory.customer()
    tech = factory.technician()
    for rating in (5, 4, 4):
        rid = finish_job(customer, tech)
        svc.create_review(db, customer_id=customer.id, fields=review_fields(rid, rating)).unwrap()

    profile = _profile(db, tech.id)
    assert profile.rating_average == 4.33
    assert profile.rating_count == 3


def test_one_review_per_request(db, factory, svc, finish_job):
    customer = factory.customer()
    rid = finish_job(customer, factory.technician())
    assert svc.create_review(db, customer_id=customer.id, fields=review_fields(rid)).ok

    res = svc.create_review(db, customer_id=customer.id, fields=review_fields(rid, 1))
    assert res.kind == ErrorKind.conflict
    assert res.code == "ReviewExists"
    assert db.execute(select(func.count()).select_from(Review)).scalar_one() == 1


def test_only_finished_requests_can_be_reviewed(db, factory, svc, sink, make_bid_fields):
    customer = factory.customer()
    tech = factory.technician()
    req = factory.request(customer)
    rid = req.id
    bids = BidLifecycleService(sink)
    bid = bids.create_bid(db, request_id=rid, technician_id=tech.id, fields=make_bid_fields()).unwrap()
    bids.accept_bid(db, bid_id=bid.id, acting_customer_id=customer.id).unwrap()

    res = svc.create_review(db, customer_id=customer.id, fields=review_fields(rid))
    assert res.code == "RequestNotCompleted"
    assert _profile(db, tech.id).rating_count == 0


def test_only_the_owning_customer_reviews(db, factory, svc, finish_job):
    customer, stranger = factory.customer(), factory.customer()
    tech = factory.technician()
    rid = finish_job(customer, tech)

    assert svc.create_review(db, customer_id=stranger.id, fields=review_fields(rid)).kind == ErrorKind.forbidden
    assert svc.create_review(db, customer_id=tech.id, fields=review_fields(rid)).kind == ErrorKind.forbidden


@pytest.mark.parametrize("rating", [0, 6])
def test_rating_bounds(db, factory, svc, finish_job, rating):
    customer = factory.customer()
    rid = finish_job(customer, factory.technician())
    res = svc.create_review(db, customer_id=customer.id, fields=review_fields(rid, rating))
    assert res.kind == ErrorKind.validation
    assert res.code == "InvalidInput"


def test_unknown_request(db, factory, svc):
    res = svc.create_review(db, customer_id=factory.customer().id, fields=review_fields(uuid.uuid4()))
    assert res.code == "RequestNotFound"


def test_reviews_feed_bid_rating_sort(db, factory, svc, sink, finish_job, make_bid_fields):
    customer = factory.customer()
    good, poor = factory.technician(), factory.technician()
    svc.create_review(db, customer_id=customer.id, fields=review_fields(finish_job(customer, good), 5)).unwrap()
    svc.create_review(db, customer_id=customer.id, fields=review_fields(finish_job(customer, poor), 2)).unwrap()

    bids = BidLifecycleService(sink)
    req = factory.request(customer)
    rid = req.id
    bids.create_bid(db, request_id=rid, technician_id=poor.id, fields=make_bid_fields("300")).unwrap()
    bids.create_bid(db, request_id=rid, technician_id=good.id, fields=make_bid_fields("900")).unwrap()

    ranked = bids.list_bids_for_request(
        db, request_id=rid, acting_user_id=customer.id, sort_by=BidSortField.rating, order=SortOrder.desc
    ).unwrap()
    assert [b.technicianId for b in ranked] == [good.id, poor.id]
    assert ranked[0].technician.rating.average == 5.0


# ---------------------------------------------------------------------
# update / delete
# ---------------------------------------------------------------------

def test_update_recomputes_rating(db, factory, svc, finish_job):
    customer = factory.customer()
    tech = factory.technician()
    review = svc.create_review(db, customer_id=customer.id, fields=review_fields(finish_job(customer, tech), 5)).unwrap()

    view = svc.update_review(
        db, review_id=review.id, customer_id=customer.id, changes={"rating": 2, "comment": None}
    ).unwrap()

    assert view.rating == 2
    assert view.comment is None
    assert _profile(db, tech.id).rating_average == 2.0


def test_update_window_closes_after_thirty_days(db, factory, sink, finish_job):
    customer = factory.customer()
    tech = factory.technician()
    rid = finish_job(customer, tech)
    written = datetime(2026, 3, 1, tzinfo=timezone.utc)

    review = ReviewService(sink, clock=lambda: written).create_review(
        db, customer_id=customer.id, fields=review_fields(rid, 5)
    ).unwrap()

    late = ReviewService(sink, clock=lambda: written + timedelta(days=31))
    res = late.update_review(db, review_id=review.id, customer_id=customer.id, changes={"rating": 1})
    assert res.code == "ReviewEditWindowClosed"
    assert _profile(db, tech.id).rating_average == 5.0

    on_time = ReviewService(sink, clock=lambda: written + timedelta(days=29))
    assert on_time.update_review(db, review_id=review.id, customer_id=customer.id, changes={"rating": 1}).ok


def test_update_and_delete_are_owner_only(db, factory, svc, finish_job):
    customer, stranger = factory.customer(), factory.customer()
    review = svc.create_review(
        db, customer_id=customer.id, fields=review_fields(finish_job(customer, factory.technician()))
    ).unwrap()

    res = svc.update_review(db, review_id=review.id, customer_id=stranger.id, changes={"rating": 1})
    assert res.kind == ErrorKind.forbidden
    assert svc.delete_review(db, review_id=review.id, customer_id=stranger.id).kind == ErrorKind.forbidden
    assert svc.get_review(db, review_id=review.id).unwrap().rating == 5


def test_delete_recomputes_rating(db, factory, svc, finish_job):
    customer = factory.customer()
    tech = factory.technician()
    keep = svc.create_review(db, customer_id=customer.id, fields=review_fields(finish_job(customer, tech), 4)).unwrap()
    drop = svc.create_review(db, customer_id=customer.id, fields=review_fields(finish_job(customer, tech), 1)).unwrap()
    assert _profile(db, tech.id).rating_average == 2.5

    assert svc.delete_review(db, review_id=drop.id, customer_id=customer.id).ok

    profile = _profile(db, tech.id)
    assert (profile.rating_average, profile.rating_count) == (4.0, 1)
    assert svc.get_review(db, review_id=drop.id).code == "ReviewNotFound"
    assert svc.get_review(db, review_id=keep.id).ok


# ---------------------------------------------------------------------
# reads
# ---------------------------------------------------------------------

def test_technician_reviews_filter_and_stats(db, factory, svc, finish_job):
    customer = factory.customer()
    tech = factory.technician()
    for rating in (5, 5, 3):
        svc.create_review(db, customer_id=customer.id, fields=review_fields(finish_job(customer, tech), rating)).unwrap()

    page = svc.list_technician_reviews(db, technician_id=tech.id, min_rating=4).unwrap()

    assert [r.rating for r in page.reviews] == [5, 5]
    assert page.pagination.total == 2
    assert page.reviews[0].customer.id == customer.id
    # stats ignore the rating filter
    assert page.stats.totalReviews == 3
    assert page.stats.averageRating == 4.33
    assert page.stats.distribution == {"1": 0, "2": 0, "3": 1, "4": 0, "5": 2}


def test_technician_reviews_unknown_technician(db, factory, svc):
    assert svc.list_technician_reviews(db, technician_id=factory.customer().id).code == "TechnicianNotFound"


def test_my_reviews(db, factory, svc, finish_job):
    customer, other = factory.customer(), factory.customer()
    tech = factory.technician()
    svc.create_review(db, customer_id=customer.id, fields=review_fields(finish_job(customer, tech))).unwrap()
    svc.create_review(db, customer_id=other.id, fields=review_fields(finish_job(other, tech))).unwrap()

    page = svc.list_my_reviews(db, customer_id=customer.id).unwrap()
    assert [r.customerId for r in page.reviews] == [customer.id]
    assert page.stats is None
