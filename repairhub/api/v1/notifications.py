# repairhub/api/v1/notifications.py
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from repairhub.core.auth_deps import get_current_principal
from repairhub.core.deps import get_inbox_service, unwrap_or_raise
from repairhub.db.session import get_db
from repairhub.models.enums import NotificationType
from repairhub.policies.rbac import Principal
from repairhub.schemas.views import NotificationPage, NotificationView
from repairhub.services.notification_inbox_service import NotificationInboxService

router = APIRouter(prefix="/notifications")


@router.get("", response_model=NotificationPage)
def list_notifications(
    isRead: Optional[bool] = Query(None),
    type: Optional[NotificationType] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: NotificationInboxService = Depends(get_inbox_service),
):
    return unwrap_or_raise(
        svc.list_notifications(
            db, user_id=principal.user_id, is_read=isRead, type=type, page=page, limit=limit
        )
    )


@router.get("/unread-count")
def unread_count(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: NotificationInboxService = Depends(get_inbox_service),
):
    return {"unreadCount": unwrap_or_raise(svc.unread_count(db, user_id=principal.user_id))}


# before /{notification_id} so "mark-all-read" is not parsed as an id
@router.put("/mark-all-read")
def mark_all_read(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: NotificationInboxService = Depends(get_inbox_service),
):
    return {"updated": unwrap_or_raise(svc.mark_all_read(db, user_id=principal.user_id))}


@router.put("/{notification_id}/read", response_model=NotificationView)
def mark_read(
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: NotificationInboxService = Depends(get_inbox_service),
):
    return unwrap_or_raise(
        svc.mark_read(db, notification_id=notification_id, user_id=principal.user_id)
    )


@router.delete("/{notification_id}")
def delete_notification(
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: NotificationInboxService = Depends(get_inbox_service),
):
    unwrap_or_raise(
        svc.delete_notification(db, notification_id=notification_id, user_id=principal.user_id)
    )
    return {"id": str(notification_id), "deleted": True}


@router.delete("")
def delete_all_notifications(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    svc: NotificationInboxService = Depends(get_inbox_service),
):
    return {"deleted": unwrap_or_raise(svc.delete_all_notifications(db, user_id=principal.user_id))}
