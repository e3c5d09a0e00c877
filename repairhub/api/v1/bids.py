# repairhub/api/v1/bids.py
from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from repairhub.core.auth_deps import get_current_principal, require_role_action
from repairhub.core.deps import get_bid_service, unwrap_or_raise
from repairhub.db.session import get_db
from repairhub.models.enums import BidStatus, UserRole
from repairhub.policies.rbac import (
    ACTION_CREATE_BID,
    ACTION_RESOLVE_BID,
    ACTION_WITHDRAW_BID,
    Principal,
)
from repairhub.schemas.bids import BidCreate, BidRejectBody, BidSortField, SortOrder
from repairhub.schemas.views import BidPage, BidView
from repairhub.services.bid_lifecycle_service import BidLifecycleService
from repairhub.services.read_models import bid_view

router = APIRouter(prefix="/bids")


# ─────────────────────────────────────────────────────────────
# CREATE (technician)
# ─────────────────────────────────────────────────────────────

@router.post("", response_model=BidView, status_code=201)
def create_bid(
    req: BidCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_role_action(ACTION_CREATE_BID)),
    svc: BidLifecycleService = Depends(get_bid_service),
):
    bid = unwrap_or_raise(
        svc.create_bid(
            db,
            request_id=req.repairRequestId,
            technician_id=principal.user_id,
            fields=req,
        )
    )
    return bid_view(bid)


# ─────────────────────────────────────────────────────────────
# READS
# ─────────────────────────────────────────────────────────────

@router.get("/repair-request/{request_id}", response_model=List[BidView])
def list_bids_for_request(
    request_id: uuid.UUID,
    sortBy: BidSortField = Query(BidSortField.amount),
    order: SortOrder = Query(SortOrder.asc),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: BidLifecycleService = Depends(get_bid_service),
):
    return unwrap_or_raise(
        svc.list_bids_for_request(
            db,
            request_id=request_id,
            acting_user_id=principal.user_id,
            sort_by=sortBy,
            order=order,
        )
    )


@router.get("/my-bids", response_model=BidPage)
def my_bids(
    status: Optional[BidStatus] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: BidLifecycleService = Depends(get_bid_service),
):
    if principal.role != UserRole.technician:
        raise HTTPException(status_code=403, detail="Only technicians have bids.")
    return unwrap_or_raise(
        svc.list_technician_bids(
            db, technician_id=principal.user_id, status=status, page=page, limit=limit
        )
    )


# ─────────────────────────────────────────────────────────────
# RESOLVE (customer) / WITHDRAW (technician)
# ─────────────────────────────────────────────────────────────

@router.put("/{bid_id}/accept", response_model=BidView)
def accept_bid(
    bid_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_role_action(ACTION_RESOLVE_BID)),
    svc: BidLifecycleService = Depends(get_bid_service),
):
    bid = unwrap_or_raise(
        svc.accept_bid(db, bid_id=bid_id, acting_customer_id=principal.user_id)
    )
    return bid_view(bid)


@router.put("/{bid_id}/reject")
def reject_bid(
    bid_id: uuid.UUID,
    req: Optional[BidRejectBody] = Body(None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_role_action(ACTION_RESOLVE_BID)),
    svc: BidLifecycleService = Depends(get_bid_service),
):
    unwrap_or_raise(
        svc.reject_bid(
            db,
            bid_id=bid_id,
            acting_customer_id=principal.user_id,
            reason=req.reason if req else None,
        )
    )
    return {"id": str(bid_id), "status": BidStatus.rejected.value}


@router.put("/{bid_id}/withdraw", response_model=BidView)
def withdraw_bid(
    bid_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_role_action(ACTION_WITHDRAW_BID)),
    svc: BidLifecycleService = Depends(get_bid_service),
):
    bid = unwrap_or_raise(
        svc.withdraw_bid(db, bid_id=bid_id, acting_technician_id=principal.user_id)
    )
    return bid_view(bid)
