# repairhub/services/notification_inbox_service.py
"""
Read side of stored notifications: a user's inbox.

Rows are written by StoredNotificationSink; every operation here is
scoped to the owning user.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy import delete, desc, func, select, update
from sqlalchemy.orm import Session

from repairhub.core.errors import ForbiddenError, NotFoundError
from repairhub.core.result import lifecycle_operation
from repairhub.models.enums import NotificationType
from repairhub.models.notification import Notification
from repairhub.schemas.primitives import Pagination
from repairhub.schemas.views import NotificationPage, NotificationView
from repairhub.services.read_models import notification_view

logger = logging.getLogger(__name__)


def _now():
    return datetime.now(timezone.utc)


class NotificationInboxService:
    def __init__(self, *, clock: Callable[[], datetime] = _now):
        self.clock = clock

    def _unread_count(self, db: Session, user_id: uuid.UUID) -> int:
        return db.execute(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        ).scalar_one()

    def _require_own(self, db: Session, notification_id: uuid.UUID, user_id: uuid.UUID) -> Notification:
        n = db.get(Notification, notification_id)
        if not n:
            raise NotFoundError("Notification not found.", code="NotificationNotFound")
        if n.user_id != user_id:
            raise ForbiddenError("Not authorized to access this notification.")
        return n

    @lifecycle_operation("list_notifications")
    def list_notifications(
        self,
        db: Session,
        *,
        user_id: uuid.UUID,
        is_read: Optional[bool] = None,
        type: Optional[NotificationType] = None,
        page: int = 1,
        limit: int = 20,
    ) -> NotificationPage:
        page = max(1, page)
        limit = max(1, min(limit, 100))

        filters = [Notification.user_id == user_id]
        if is_read is not None:
            filters.append(Notification.is_read.is_(is_read))
        if type is not None:
            filters.append(Notification.type == NotificationType(type).value)

        total = db.execute(
            select(func.count()).select_from(Notification).where(*filters)
        ).scalar_one()
        rows = db.execute(
            select(Notification)
            .where(*filters)
            .order_by(desc(Notification.created_at), desc(Notification.id))
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()

        return NotificationPage(
            notifications=[notification_view(n) for n in rows],
            unreadCount=self._unread_count(db, user_id),
            pagination=Pagination.of(page, limit, total),
        )

    @lifecycle_operation("unread_count")
    def unread_count(self, db: Session, *, user_id: uuid.UUID) -> int:
        return self._unread_count(db, user_id)

    @lifecycle_operation("mark_read")
    def mark_read(
        self, db: Session, *, notification_id: uuid.UUID, user_id: uuid.UUID
    ) -> NotificationView:
        n = self._require_own(db, notification_id, user_id)
        # already-read notifications keep their first read_at
        if not n.is_read:
            n.is_read = True
            n.read_at = self.clock()
            db.commit()
            db.refresh(n)
        return notification_view(n)

    @lifecycle_operation("mark_all_read")
    def mark_all_read(self, db: Session, *, user_id: uuid.UUID) -> int:
        res = db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=self.clock())
            .execution_options(synchronize_session=False)
        )
        db.commit()
        logger.info("[inbox] marked read user=%s count=%d", user_id, res.rowcount)
        return res.rowcount

    @lifecycle_operation("delete_notification")
    def delete_notification(
        self, db: Session, *, notification_id: uuid.UUID, user_id: uuid.UUID
    ) -> None:
        n = self._require_own(db, notification_id, user_id)
        db.delete(n)
        db.commit()

    @lifecycle_operation("delete_all_notifications")
    def delete_all_notifications(self, db: Session, *, user_id: uuid.UUID) -> int:
        res = db.execute(
            delete(Notification)
            .where(Notification.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        logger.info("[inbox] cleared user=%s count=%d", user_id, res.rowcount)
        return res.rowcount
