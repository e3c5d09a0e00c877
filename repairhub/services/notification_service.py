# repairhub/services/notification_service.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Protocol

from sqlalchemy.orm import Session

from repairhub.core.config import Settings
from repairhub.models.enums import NotificationType
from repairhub.models.notification import Notification

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def emit(
        self,
        user_id: uuid.UUID,
        type: NotificationType,
        title: str,
        message: str,
        data: Dict[str, Any],
    ) -> None:
        ...


@dataclass(frozen=True)
class NotificationEvent:
    user_id: uuid.UUID
    type: NotificationType
    title: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)


def _json_safe(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


class LoggingNotificationSink:
    """Delivery stand-in: writes the event to the log only."""

    def emit(self, user_id, type, title, message, data) -> None:
        logger.info(
            "[notify] user=%s type=%s title=%s",
            user_id,
            type.value,
            title,
            extra={"notification_data": _json_safe(data)},
        )


class StoredNotificationSink:
    """
    Persists notifications in their own session so a failure here can never
    touch the lifecycle transaction that produced them.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def emit(self, user_id, type, title, message, data) -> None:
        db = self.session_factory()
        try:
            db.add(
                Notification(
                    user_id=user_id,
                    type=type.value,
                    title=title[:100],
                    message=message[:500],
                    data=_json_safe(data),
                )
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


def safe_emit(sink: NotificationSink, event: NotificationEvent) -> None:
    """
    Fire-and-forget: errors are logged and swallowed.
    """
    try:
        sink.emit(event.user_id, event.type, event.title, event.message, event.data)
    except Exception:
        logger.warning(
            "[notify] delivery failed user=%s type=%s",
            event.user_id,
            event.type.value,
            exc_info=True,
        )


def flush_events(sink: NotificationSink, events: Iterable[NotificationEvent]) -> None:
    for ev in events:
        safe_emit(sink, ev)


def build_sink(settings: Settings, session_factory: Callable[[], Session]) -> NotificationSink:
    if settings.notification_sink == "log":
        return LoggingNotificationSink()
    return StoredNotificationSink(session_factory)
