# repairhub/services/technician_service.py
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from repairhub.core.errors import (
    ConflictError,
    DomainValidationError,
    ForbiddenError,
    NotFoundError,
)
from repairhub.core.result import lifecycle_operation
from repairhub.models.enums import NotificationType, UserRole
from repairhub.models.technician_profile import (
    DEFAULT_PRICE_MAX,
    DEFAULT_PRICE_MIN,
    TechnicianProfile,
)
from repairhub.schemas.technicians import TechnicianProfileCreate, TechnicianProfileUpdate
from repairhub.schemas.views import TechnicianProfileView
from repairhub.services.lookups import get_profile_for_user, require_user
from repairhub.services.notification_service import (
    NotificationEvent,
    NotificationSink,
    flush_events,
)
from repairhub.services.read_models import technician_profile_view

logger = logging.getLogger(__name__)


def _now():
    return datetime.now(timezone.utc)


def _require_profile_for(db: Session, user_id: uuid.UUID) -> TechnicianProfile:
    profile = get_profile_for_user(db, user_id)
    if not profile:
        raise NotFoundError("Technician profile not found.", code="ProfileNotFound")
    return profile


def _merged_price_range(price, current_min, current_max):
    """One-sided updates are checked against the stored (or default) bound."""
    new_min = price.min if price.min is not None else current_min
    new_max = price.max if price.max is not None else current_max
    if new_min is not None and new_max is not None and new_min > new_max:
        raise DomainValidationError(
            f"Price range minimum {new_min} exceeds maximum {new_max}.",
            code="InvalidPriceRange",
        )
    return new_min, new_max


class TechnicianService:
    def __init__(self, notifier: NotificationSink, *, clock: Callable[[], datetime] = _now):
        self.notifier = notifier
        self.clock = clock

    @lifecycle_operation("create_profile")
    def create_profile(
        self,
        db: Session,
        *,
        user_id: uuid.UUID,
        fields: Union[TechnicianProfileCreate, Dict[str, Any]],
    ) -> TechnicianProfileView:
        if not isinstance(fields, TechnicianProfileCreate):
            fields = TechnicianProfileCreate.model_validate(fields)

        user = require_user(db, user_id)
        if user.role != UserRole.technician.value:
            raise ForbiddenError("Only technicians can create a technician profile.")
        if get_profile_for_user(db, user.id) is not None:
            raise ConflictError("Technician profile already exists.", code="ProfileExists")

        now = self.clock()
        price = fields.priceRange
        profile = TechnicianProfile(
            user_id=user.id,
            experience_years=fields.experienceYears,
            specializations=[s.value for s in fields.specializations],
            service_radius_km=fields.serviceRadiusKm,
            biography=fields.biography,
            is_approved=False,
            created_at=now,
            updated_at=now,
        )
        if price is not None:
            profile.price_min, profile.price_max = _merged_price_range(
                price, DEFAULT_PRICE_MIN, DEFAULT_PRICE_MAX
            )

        db.add(profile)
        try:
            db.flush()
        except IntegrityError:
            raise ConflictError("Technician profile already exists.", code="ProfileExists")
        db.commit()
        db.refresh(profile)

        logger.info("[technicians] profile created user=%s profile=%s", user.id, profile.id)
        return technician_profile_view(profile, user)

    @lifecycle_operation("update_profile")
    def update_profile(
        self,
        db: Session,
        *,
        user_id: uuid.UUID,
        changes: Union[TechnicianProfileUpdate, Dict[str, Any]],
    ) -> TechnicianProfileView:
        # unknown keys (isApproved, ...) are rejected by the schema
        if not isinstance(changes, TechnicianProfileUpdate):
            changes = TechnicianProfileUpdate.model_validate(changes)

        user = require_user(db, user_id)
        profile = _require_profile_for(db, user.id)

        data = changes.model_dump(exclude_unset=True)
        if data.get("experienceYears") is not None:
            profile.experience_years = data["experienceYears"]
        if data.get("specializations") is not None:
            profile.specializations = [s.value for s in changes.specializations]
        if data.get("serviceRadiusKm") is not None:
            profile.service_radius_km = data["serviceRadiusKm"]
        if "biography" in data:
            profile.biography = data["biography"]
        if changes.priceRange is not None:
            profile.price_min, profile.price_max = _merged_price_range(
                changes.priceRange, profile.price_min, profile.price_max
            )
        profile.updated_at = self.clock()

        db.commit()
        db.refresh(profile)
        logger.info("[technicians] profile updated user=%s fields=%s", user.id, sorted(data))
        return technician_profile_view(profile, user)

    @lifecycle_operation("get_profile")
    def get_profile(self, db: Session, *, user_id: uuid.UUID) -> TechnicianProfileView:
        user = require_user(db, user_id)
        return technician_profile_view(_require_profile_for(db, user.id), user)

    @lifecycle_operation("approve_technician")
    def approve_technician(
        self,
        db: Session,
        *,
        admin_id: uuid.UUID,
        profile_id: uuid.UUID,
        approved: bool,
        reason: Optional[str] = None,
    ) -> TechnicianProfileView:
        admin = require_user(db, admin_id)
        if admin.role != UserRole.admin.value:
            raise ForbiddenError("Only admins can approve technicians.")

        profile = db.get(TechnicianProfile, profile_id)
        if not profile:
            raise NotFoundError("Technician profile not found.", code="ProfileNotFound")
        user = require_user(db, profile.user_id)

        now = self.clock()
        if approved:
            if not user.is_active:
                raise ConflictError(
                    "Inactive accounts cannot be approved.", code="InactiveAccount"
                )
            profile.is_approved = True
            profile.approved_by = admin.id
            profile.approved_at = now
            profile.rejected_at = None
            profile.rejection_reason = None
            user.is_verified = True
        else:
            profile.is_approved = False
            profile.rejected_at = now
            profile.rejection_reason = reason
            user.is_verified = False
        profile.updated_at = now

        db.commit()
        db.refresh(profile)

        logger.info(
            "[technicians] %s profile=%s user=%s by=%s",
            "approved" if approved else "rejected", profile.id, user.id, admin.id,
        )

        if approved:
            event = NotificationEvent(
                user_id=user.id,
                type=NotificationType.profile_approved,
                title="Profile Approved",
                message="Your technician profile has been approved. You can now bid on repair requests.",
                data={"profileId": profile.id},
            )
        else:
            event = NotificationEvent(
                user_id=user.id,
                type=NotificationType.profile_rejected,
                title="Profile Rejected",
                message=f"Your technician profile was not approved{': ' + reason if reason else '.'}",
                data={"profileId": profile.id, "reason": reason},
            )
        flush_events(self.notifier, [event])
        return technician_profile_view(profile, user)
