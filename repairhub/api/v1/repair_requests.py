# repairhub/api/v1/repair_requests.py
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from repairhub.core.auth_deps import get_current_principal, require_role_action
from repairhub.core.deps import (
    get_discovery_service,
    get_request_service,
    get_transaction_service,
    unwrap_or_raise,
)
from repairhub.db.session import get_db
from repairhub.models.enums import IssueType, RequestStatus, UserRole
from repairhub.policies.rbac import ACTION_CREATE_REQUEST, Principal
from repairhub.schemas.repair_requests import (
    CancelBody,
    CompletionFields,
    RepairRequestCreate,
    RepairRequestUpdate,
)
from repairhub.schemas.views import RequestPage, RequestView, TransactionView
from repairhub.services.discovery_service import DiscoveryService
from repairhub.services.repair_request_service import RepairRequestService
from repairhub.services.transaction_service import TransactionService

router = APIRouter(prefix="/repair-requests")


@router.post("", response_model=RequestView, status_code=201)
def create_request(
    req: RepairRequestCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_role_action(ACTION_CREATE_REQUEST)),
    svc: RepairRequestService = Depends(get_request_service),
):
    return unwrap_or_raise(svc.create_request(db, customer_id=principal.user_id, fields=req))


@router.get("", response_model=RequestPage)
def list_requests(
    status: Optional[RequestStatus] = Query(None),
    issueType: Optional[IssueType] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    radius: Optional[float] = Query(None, gt=0, le=50, description="km, used when the profile has none"),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: RepairRequestService = Depends(get_request_service),
    discovery: DiscoveryService = Depends(get_discovery_service),
):
    # customers see their own; technicians and admins browse nearby work
    if principal.role == UserRole.customer:
        result = svc.list_customer_requests(
            db,
            customer_id=principal.user_id,
            status=status,
            issue_type=issueType,
            page=page,
            limit=limit,
        )
    else:
        result = discovery.find_requests_for_technician(
            db,
            technician_id=principal.user_id,
            status=status,
            issue_type=issueType,
            page=page,
            limit=limit,
            radius_km=radius,
        )
    return unwrap_or_raise(result)


@router.get("/{request_id}", response_model=RequestView)
def get_request(
    request_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: RepairRequestService = Depends(get_request_service),
):
    return unwrap_or_raise(
        svc.get_request(db, request_id=request_id, acting_user_id=principal.user_id)
    )


@router.put("/{request_id}", response_model=RequestView)
def update_request(
    request_id: uuid.UUID,
    req: RepairRequestUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: RepairRequestService = Depends(get_request_service),
):
    return unwrap_or_raise(
        svc.update_request(
            db, request_id=request_id, acting_user_id=principal.user_id, changes=req
        )
    )


@router.delete("/{request_id}")
def delete_request(
    request_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: RepairRequestService = Depends(get_request_service),
):
    unwrap_or_raise(
        svc.delete_request(db, request_id=request_id, acting_customer_id=principal.user_id)
    )
    return {"id": str(request_id), "deleted": True}


@router.post("/{request_id}/cancel", response_model=RequestView)
def cancel_request(
    request_id: uuid.UUID,
    req: Optional[CancelBody] = Body(None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: RepairRequestService = Depends(get_request_service),
):
    return unwrap_or_raise(
        svc.cancel_request(
            db,
            request_id=request_id,
            acting_customer_id=principal.user_id,
            reason=req.reason if req else None,
        )
    )


@router.post("/{request_id}/complete", response_model=RequestView)
def complete_request(
    request_id: uuid.UUID,
    req: Optional[CompletionFields] = Body(None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: RepairRequestService = Depends(get_request_service),
):
    return unwrap_or_raise(
        svc.complete_request(
            db, request_id=request_id, acting_user_id=principal.user_id, completion=req
        )
    )


@router.get("/{request_id}/transaction", response_model=TransactionView)
def get_transaction(
    request_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: TransactionService = Depends(get_transaction_service),
):
    return unwrap_or_raise(
        svc.get_for_request(db, request_id=request_id, acting_user_id=principal.user_id)
    )
