# repairhub/services/lookups.py
from __future__ import annotations

import uuid
from typing import Dict, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from repairhub.core.errors import NotFoundError
from repairhub.models.bid import Bid
from repairhub.models.repair_request import RepairRequest
from repairhub.models.technician_profile import TechnicianProfile
from repairhub.models.user import User
from repairhub.policies.eligibility import TechnicianSnapshot


def require_request(db: Session, request_id: uuid.UUID) -> RepairRequest:
    request = db.get(RepairRequest, request_id)
    if not request:
        raise NotFoundError("Repair request not found.", code="RequestNotFound")
    return request


def require_bid(db: Session, bid_id: uuid.UUID) -> Bid:
    bid = db.get(Bid, bid_id)
    if not bid:
        raise NotFoundError("Bid not found.", code="BidNotFound")
    return bid


def require_user(db: Session, user_id: uuid.UUID) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found.", code="UserNotFound")
    return user


def get_profile_for_user(db: Session, user_id: uuid.UUID) -> Optional[TechnicianProfile]:
    return db.execute(
        select(TechnicianProfile).where(TechnicianProfile.user_id == user_id)
    ).scalar_one_or_none()


def load_technician(db: Session, user_id: uuid.UUID) -> TechnicianSnapshot:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundError("Technician not found.", code="TechnicianNotFound")
    return TechnicianSnapshot(user=user, profile=get_profile_for_user(db, user_id))


def users_by_id(db: Session, ids: Iterable[Optional[uuid.UUID]]) -> Dict[uuid.UUID, User]:
    wanted = {i for i in ids if i is not None}
    if not wanted:
        return {}
    rows = db.execute(select(User).where(User.id.in_(wanted))).scalars().all()
    return {u.id: u for u in rows}


def bids_by_id(db: Session, ids: Iterable[Optional[uuid.UUID]]) -> Dict[uuid.UUID, Bid]:
    wanted = {i for i in ids if i is not None}
    if not wanted:
        return {}
    rows = db.execute(select(Bid).where(Bid.id.in_(wanted))).scalars().all()
    return {b.id: b for b in rows}
