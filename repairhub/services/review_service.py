# repairhub/services/review_service.py
"""
Customer reviews and the technician rating they feed.

Every write (create, update, delete) recomputes the technician profile's
rating_average / rating_count / rating_aspects from the review rows inside
the same transaction, with the profile row locked so concurrent reviews of
one technician serialize on it.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from sqlalchemy import desc, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from repairhub.core.errors import ConflictError, ForbiddenError, NotFoundError
from repairhub.core.result import lifecycle_operation
from repairhub.models.enums import NotificationType, RequestStatus, UserRole
from repairhub.models.repair_request import RepairRequest
from repairhub.models.review import REVIEW_ASPECTS, Review
from repairhub.models.technician_profile import TechnicianProfile
from repairhub.models.user import User
from repairhub.schemas.primitives import Pagination
from repairhub.schemas.reviews import ReviewCreate, ReviewUpdate
from repairhub.schemas.views import ReviewPage, ReviewStats, ReviewView
from repairhub.services.lookups import require_request, require_user, users_by_id
from repairhub.services.notification_service import (
    NotificationEvent,
    NotificationSink,
    flush_events,
)
from repairhub.services.read_models import as_utc, review_view

logger = logging.getLogger(__name__)

REVIEWABLE = (RequestStatus.completed.value, RequestStatus.paid.value)


def _now():
    return datetime.now(timezone.utc)


def aggregate_ratings(
    rows: Iterable[Tuple[int, Optional[Dict[str, Any]]]],
) -> Tuple[float, int, Dict[str, float]]:
    """
    (rating, aspects) rows -> (average, count, per-aspect averages).

    An aspect is averaged over the reviews that scored it; aspects nobody
    scored read 0.
    """
    total = 0
    count = 0
    sums = {a: 0 for a in REVIEW_ASPECTS}
    hits = {a: 0 for a in REVIEW_ASPECTS}
    for rating, aspects in rows:
        total += rating
        count += 1
        for name, score in (aspects or {}).items():
            if name in sums and score:
                sums[name] += score
                hits[name] += 1

    average = round(total / count, 2) if count else 0.0
    per_aspect = {a: (round(sums[a] / hits[a], 2) if hits[a] else 0) for a in REVIEW_ASPECTS}
    return average, count, per_aspect


def _aspects_dict(aspects) -> Dict[str, int]:
    if aspects is None:
        return {}
    return aspects.model_dump(exclude_none=True)


class ReviewService:
    def __init__(
        self,
        notifier: NotificationSink,
        *,
        edit_window_days: int = 30,
        clock: Callable[[], datetime] = _now,
    ):
        self.notifier = notifier
        self.edit_window = timedelta(days=edit_window_days)
        self.clock = clock

    # ------------------------------------------------------------------
    # rating aggregate
    # ------------------------------------------------------------------

    def _recompute_rating(self, db: Session, technician_id: uuid.UUID) -> None:
        db.flush()
        profile = db.execute(
            select(TechnicianProfile)
            .where(TechnicianProfile.user_id == technician_id)
            .with_for_update()
        ).scalar_one_or_none()
        if profile is None:
            logger.warning("[reviews] no profile to rate technician=%s", technician_id)
            return

        rows = db.execute(
            select(Review.rating, Review.aspects).where(Review.technician_id == technician_id)
        ).all()
        average, count, aspects = aggregate_ratings(rows)
        profile.rating_average = average
        profile.rating_count = count
        profile.rating_aspects = aspects
        profile.updated_at = self.clock()

    def _require_own_review(self, db: Session, review_id: uuid.UUID, customer_id: uuid.UUID) -> Review:
        review = db.get(Review, review_id)
        if not review:
            raise NotFoundError("Review not found.", code="ReviewNotFound")
        if review.customer_id != customer_id:
            raise ForbiddenError("Not authorized to modify this review.")
        return review

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------

    @lifecycle_operation("create_review")
    def create_review(
        self,
        db: Session,
        *,
        customer_id: uuid.UUID,
        fields: Union[ReviewCreate, Dict[str, Any]],
    ) -> ReviewView:
        if not isinstance(fields, ReviewCreate):
            fields = ReviewCreate.model_validate(fields)

        customer = require_user(db, customer_id)
        if customer.role != UserRole.customer.value:
            raise ForbiddenError("Only customers can review repairs.")

        request = require_request(db, fields.repairRequestId)
        if request.customer_id != customer.id:
            raise ForbiddenError("You can only review your own repair requests.")
        if request.status not in REVIEWABLE or request.assigned_technician_id is None:
            raise ConflictError(
                "Only completed repairs can be reviewed.", code="RequestNotCompleted"
            )

        existing = db.execute(
            select(Review.id).where(Review.repair_request_id == request.id)
        ).scalar_one_or_none()
        if existing is not None:
            raise ConflictError("This repair has already been reviewed.", code="ReviewExists")

        now = self.clock()
        review = Review(
            repair_request_id=request.id,
            customer_id=customer.id,
            technician_id=request.assigned_technician_id,
            rating=fields.rating,
            comment=fields.comment,
            aspects=_aspects_dict(fields.aspects),
            is_recommended=fields.isRecommended,
            created_at=now,
            updated_at=now,
        )
        db.add(review)
        try:
            db.flush()
        except IntegrityError:
            # a concurrent review of the same request won
            raise ConflictError("This repair has already been reviewed.", code="ReviewExists")

        self._recompute_rating(db, review.technician_id)
        db.commit()
        db.refresh(review)

        logger.info(
            "[reviews] created review=%s request=%s technician=%s rating=%d",
            review.id, request.id, review.technician_id, review.rating,
        )
        flush_events(
            self.notifier,
            [
                NotificationEvent(
                    user_id=review.technician_id,
                    type=NotificationType.review_received,
                    title="New Review",
                    message=f"{customer.name} rated your repair {review.rating}/5",
                    data={"repairRequestId": request.id, "reviewId": review.id},
                )
            ],
        )
        return review_view(review, customer, request)

    @lifecycle_operation("update_review")
    def update_review(
        self,
        db: Session,
        *,
        review_id: uuid.UUID,
        customer_id: uuid.UUID,
        changes: Union[ReviewUpdate, Dict[str, Any]],
    ) -> ReviewView:
        if not isinstance(changes, ReviewUpdate):
            changes = ReviewUpdate.model_validate(changes)

        review = self._require_own_review(db, review_id, customer_id)
        now = self.clock()
        if as_utc(review.created_at) < now - self.edit_window:
            raise ConflictError(
                f"Reviews can only be edited within {self.edit_window.days} days.",
                code="ReviewEditWindowClosed",
            )

        data = changes.model_dump(exclude_unset=True)
        if data.get("rating") is not None:
            review.rating = data["rating"]
        if "comment" in data:
            review.comment = data["comment"]
        if "aspects" in data:
            review.aspects = _aspects_dict(changes.aspects)
        if data.get("isRecommended") is not None:
            review.is_recommended = data["isRecommended"]
        review.updated_at = now

        self._recompute_rating(db, review.technician_id)
        db.commit()
        db.refresh(review)

        logger.info("[reviews] updated review=%s fields=%s", review.id, sorted(data))
        return review_view(review, require_user(db, customer_id))

    @lifecycle_operation("delete_review")
    def delete_review(self, db: Session, *, review_id: uuid.UUID, customer_id: uuid.UUID) -> None:
        review = self._require_own_review(db, review_id, customer_id)
        technician_id = review.technician_id

        db.delete(review)
        self._recompute_rating(db, technician_id)
        db.commit()

        logger.info("[reviews] deleted review=%s technician=%s", review_id, technician_id)

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    @lifecycle_operation("get_review")
    def get_review(self, db: Session, *, review_id: uuid.UUID) -> ReviewView:
        review = db.get(Review, review_id)
        if not review:
            raise NotFoundError("Review not found.", code="ReviewNotFound")
        return review_view(
            review,
            db.get(User, review.customer_id),
            db.get(RepairRequest, review.repair_request_id),
        )

    def _page(self, db: Session, filters: Sequence, page: int, limit: int) -> Tuple[List[ReviewView], Pagination]:
        page = max(1, page)
        limit = max(1, min(limit, 100))

        total = db.execute(select(func.count()).select_from(Review).where(*filters)).scalar_one()
        reviews = db.execute(
            select(Review)
            .where(*filters)
            .order_by(desc(Review.created_at), desc(Review.id))
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()

        customers = users_by_id(db, [r.customer_id for r in reviews])
        request_ids = {r.repair_request_id for r in reviews}
        requests = {}
        if request_ids:
            requests = {
                r.id: r
                for r in db.execute(
                    select(RepairRequest).where(RepairRequest.id.in_(request_ids))
                ).scalars()
            }
        views = [
            review_view(r, customers.get(r.customer_id), requests.get(r.repair_request_id))
            for r in reviews
        ]
        return views, Pagination.of(page, limit, total)

    @lifecycle_operation("list_technician_reviews")
    def list_technician_reviews(
        self,
        db: Session,
        *,
        technician_id: uuid.UUID,
        min_rating: Optional[int] = None,
        max_rating: Optional[int] = None,
        page: int = 1,
        limit: int = 10,
    ) -> ReviewPage:
        technician = require_user(db, technician_id)
        if technician.role != UserRole.technician.value:
            raise NotFoundError("Technician not found.", code="TechnicianNotFound")

        filters = [Review.technician_id == technician.id]
        if min_rating is not None:
            filters.append(Review.rating >= min_rating)
        if max_rating is not None:
            filters.append(Review.rating <= max_rating)
        views, pagination = self._page(db, filters, page, limit)

        # stats cover every review of the technician, not just the filtered page
        counts = dict(
            db.execute(
                select(Review.rating, func.count())
                .where(Review.technician_id == technician.id)
                .group_by(Review.rating)
            ).all()
        )
        total = sum(counts.values())
        stats = ReviewStats(
            averageRating=round(sum(r * c for r, c in counts.items()) / total, 2) if total else 0.0,
            totalReviews=total,
            distribution={str(star): counts.get(star, 0) for star in range(1, 6)},
        )
        return ReviewPage(reviews=views, pagination=pagination, stats=stats)

    @lifecycle_operation("list_my_reviews")
    def list_my_reviews(
        self, db: Session, *, customer_id: uuid.UUID, page: int = 1, limit: int = 10
    ) -> ReviewPage:
        views, pagination = self._page(db, [Review.customer_id == customer_id], page, limit)
        return ReviewPage(reviews=views, pagination=pagination)
