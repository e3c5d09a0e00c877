# repairhub/api/v1/technicians.py
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from repairhub.core.auth_deps import get_current_principal, require_role_action
from repairhub.core.deps import get_technician_service, unwrap_or_raise
from repairhub.db.session import get_db
from repairhub.policies.rbac import (
    ACTION_APPROVE_TECHNICIAN,
    ACTION_MANAGE_PROFILE,
    Principal,
)
from repairhub.schemas.technicians import (
    ApprovalDecision,
    TechnicianProfileCreate,
    TechnicianProfileUpdate,
)
from repairhub.schemas.views import TechnicianProfileView
from repairhub.services.technician_service import TechnicianService

router = APIRouter(prefix="/technicians")


@router.post("/profile", response_model=TechnicianProfileView, status_code=201)
def create_profile(
    req: TechnicianProfileCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_role_action(ACTION_MANAGE_PROFILE)),
    svc: TechnicianService = Depends(get_technician_service),
):
    return unwrap_or_raise(svc.create_profile(db, user_id=principal.user_id, fields=req))


@router.put("/profile", response_model=TechnicianProfileView)
def update_profile(
    req: TechnicianProfileUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_role_action(ACTION_MANAGE_PROFILE)),
    svc: TechnicianService = Depends(get_technician_service),
):
    return unwrap_or_raise(svc.update_profile(db, user_id=principal.user_id, changes=req))


@router.get("/profile/{user_id}", response_model=TechnicianProfileView)
def get_profile(
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: TechnicianService = Depends(get_technician_service),
):
    return unwrap_or_raise(svc.get_profile(db, user_id=user_id))


@router.put("/{profile_id}/approval", response_model=TechnicianProfileView)
def set_approval(
    profile_id: uuid.UUID,
    req: ApprovalDecision,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_role_action(ACTION_APPROVE_TECHNICIAN)),
    svc: TechnicianService = Depends(get_technician_service),
):
    return unwrap_or_raise(
        svc.approve_technician(
            db,
            admin_id=principal.user_id,
            profile_id=profile_id,
            approved=req.approved,
            reason=req.reason,
        )
    )
