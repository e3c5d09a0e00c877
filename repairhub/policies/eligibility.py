# repairhub/policies/eligibility.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from repairhub.models.bid import Bid
from repairhub.models.enums import RequestStatus, UserRole
from repairhub.models.repair_request import RepairRequest
from repairhub.models.technician_profile import TechnicianProfile
from repairhub.models.user import User

OPEN_FOR_BIDS = frozenset({RequestStatus.open.value, RequestStatus.bidding.value})

# reasons
NOT_ELIGIBLE = "NotEligible"
REQUEST_CLOSED = "RequestClosed"
DUPLICATE_BID = "DuplicateBid"


@dataclass(frozen=True)
class TechnicianSnapshot:
    """
    A technician user composed with its (optional) profile.
    """
    user: User
    profile: Optional[TechnicianProfile]


@dataclass(frozen=True)
class EligibilityDecision:
    ok: bool
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "EligibilityDecision":
        return cls(ok=True)

    @classmethod
    def deny(cls, reason: str) -> "EligibilityDecision":
        return cls(ok=False, reason=reason)


def technician_is_eligible(technician: TechnicianSnapshot) -> bool:
    user, profile = technician.user, technician.profile
    if user.role != UserRole.technician.value:
        return False
    if not user.is_active:
        return False
    return profile is not None and bool(profile.is_approved)


def can_bid(
    request: RepairRequest,
    technician: TechnicianSnapshot,
    existing_bid: Optional[Bid],
) -> EligibilityDecision:
    """
    Pure predicate over the current snapshot.

    Technician gating is evaluated first so an unapproved or inactive
    technician is told NotEligible whatever state the request is in.
    Writers must re-check at write time (status CAS + unique index).
    """
    if not technician_is_eligible(technician):
        return EligibilityDecision.deny(NOT_ELIGIBLE)

    if request.status not in OPEN_FOR_BIDS:
        return EligibilityDecision.deny(REQUEST_CLOSED)

    if existing_bid is not None:
        return EligibilityDecision.deny(DUPLICATE_BID)

    return EligibilityDecision.allow()
