# repairhub/api/v1/reviews.py
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from repairhub.core.auth_deps import get_current_principal, require_role_action
from repairhub.core.deps import get_review_service, unwrap_or_raise
from repairhub.db.session import get_db
from repairhub.policies.rbac import ACTION_WRITE_REVIEW, Principal
from repairhub.schemas.reviews import ReviewCreate, ReviewUpdate
from repairhub.schemas.views import ReviewPage, ReviewView
from repairhub.services.review_service import ReviewService

router = APIRouter(prefix="/reviews")


@router.post("", response_model=ReviewView, status_code=201)
def create_review(
    req: ReviewCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_role_action(ACTION_WRITE_REVIEW)),
    svc: ReviewService = Depends(get_review_service),
):
    return unwrap_or_raise(svc.create_review(db, customer_id=principal.user_id, fields=req))


@router.get("/technician/{technician_id}", response_model=ReviewPage)
def list_technician_reviews(
    technician_id: uuid.UUID,
    minRating: Optional[int] = Query(None, ge=1, le=5),
    maxRating: Optional[int] = Query(None, ge=1, le=5),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: ReviewService = Depends(get_review_service),
):
    return unwrap_or_raise(
        svc.list_technician_reviews(
            db,
            technician_id=technician_id,
            min_rating=minRating,
            max_rating=maxRating,
            page=page,
            limit=limit,
        )
    )


@router.get("/my-reviews", response_model=ReviewPage)
def list_my_reviews(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_role_action(ACTION_WRITE_REVIEW)),
    svc: ReviewService = Depends(get_review_service),
):
    return unwrap_or_raise(
        svc.list_my_reviews(db, customer_id=principal.user_id, page=page, limit=limit)
    )


@router.get("/{review_id}", response_model=ReviewView)
def get_review(
    review_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: ReviewService = Depends(get_review_service),
):
    return unwrap_or_raise(svc.get_review(db, review_id=review_id))


@router.put("/{review_id}", response_model=ReviewView)
def update_review(
    review_id: uuid.UUID,
    req: ReviewUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_role_action(ACTION_WRITE_REVIEW)),
    svc: ReviewService = Depends(get_review_service),
):
    return unwrap_or_raise(
        svc.update_review(db, review_id=review_id, customer_id=principal.user_id, changes=req)
    )


@router.delete("/{review_id}")
def delete_review(
    review_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_role_action(ACTION_WRITE_REVIEW)),
    svc: ReviewService = Depends(get_review_service),
):
    unwrap_or_raise(svc.delete_review(db, review_id=review_id, customer_id=principal.user_id))
    return {"id": str(review_id), "deleted": True}
