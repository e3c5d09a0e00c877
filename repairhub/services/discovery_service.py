# repairhub/services/discovery_service.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session

from repairhub.core.geo import bounding_box, haversine_m, is_valid_point
from repairhub.core.result import lifecycle_operation
from repairhub.models.enums import IssueType, RequestStatus
from repairhub.models.repair_request import RepairRequest
from repairhub.schemas.primitives import Pagination
from repairhub.schemas.views import RequestPage
from repairhub.services.lookups import bids_by_id, get_profile_for_user, require_user, users_by_id
from repairhub.services.read_models import request_view
from repairhub.services.request_transitions import OPEN_FOR_BIDS

logger = logging.getLogger(__name__)


def _now():
    return datetime.now(timezone.utc)


class DiscoveryService:
    """
    Repair requests a technician can see.

    With a usable location the listing is limited to the technician's
    service radius and sorted nearest first. Without one (no profile, no
    coordinates, or the (0, 0) placeholder) the technician still gets the
    plain listing, newest first.
    """

    def __init__(
        self,
        *,
        default_radius_km: int = 10,
        clock: Callable[[], datetime] = _now,
    ):
        self.default_radius_km = default_radius_km
        self.clock = clock

    def _filters(self, status: Optional[RequestStatus], issue_type: Optional[IssueType]) -> list:
        if status is not None:
            filters = [RepairRequest.status == RequestStatus(status).value]
        else:
            filters = [RepairRequest.status.in_(OPEN_FOR_BIDS)]
        if issue_type is not None:
            filters.append(RepairRequest.issue_type == IssueType(issue_type).value)
        return filters

    def _page(
        self,
        db: Session,
        hits: Sequence[Tuple[RepairRequest, Optional[float]]],
        *,
        page: int,
        limit: int,
        total: int,
        geo_filtered: bool,
    ) -> RequestPage:
        requests = [r for r, _ in hits]
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
                    distance_m=distance,
                    now=now,
                )
                for r, distance in hits
            ],
            pagination=Pagination.of(page, limit, total),
            geoFiltered=geo_filtered,
        )

    def within_radius(
        self,
        db: Session,
        *,
        latitude: float,
        longitude: float,
        radius_m: float,
        filters: Iterable,
    ) -> List[Tuple[RepairRequest, float]]:
        min_lat, max_lat, min_lng, max_lng = bounding_box(latitude, longitude, radius_m)
        candidates = db.execute(
            select(RepairRequest).where(
                *filters,
                RepairRequest.latitude.between(min_lat, max_lat),
                RepairRequest.longitude.between(min_lng, max_lng),
            )
        ).scalars().all()

        hits = []
        for r in candidates:
            d = haversine_m(latitude, longitude, r.latitude, r.longitude)
            if d <= radius_m:
                hits.append((r, d))
        hits.sort(key=lambda h: (h[1], str(h[0].id)))
        return hits

    @lifecycle_operation("find_requests_for_technician")
    def find_requests_for_technician(
        self,
        db: Session,
        *,
        technician_id: uuid.UUID,
        status: Optional[RequestStatus] = None,
        issue_type: Optional[IssueType] = None,
        page: int = 1,
        limit: int = 10,
        radius_km: Optional[float] = None,
    ) -> RequestPage:
        page = max(1, page)
        limit = max(1, min(limit, 100))
        filters = self._filters(status, issue_type)

        technician = require_user(db, technician_id)
        profile = get_profile_for_user(db, technician.id)

        if profile is not None and is_valid_point(technician.latitude, technician.longitude):
            km = profile.service_radius_km or radius_km or self.default_radius_km
            hits = self.within_radius(
                db,
                latitude=technician.latitude,
                longitude=technician.longitude,
                radius_m=float(km) * 1000.0,
                filters=filters,
            )
            start = (page - 1) * limit
            return self._page(
                db,
                hits[start:start + limit],
                page=page,
                limit=limit,
                total=len(hits),
                geo_filtered=True,
            )

        logger.warning(
            "[discovery] no usable location for technician=%s (profile=%s); unfiltered listing",
            technician.id,
            profile is not None,
        )
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
        return self._page(
            db,
            [(r, None) for r in requests],
            page=page,
            limit=limit,
            total=total,
            geo_filtered=False,
        )
