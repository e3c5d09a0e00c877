#repairhub/policies/rbac.py
from __future__ import annotations
import uuid
from dataclasses import dataclass
from typing import Set

from repairhub.models.enums import UserRole


@dataclass(frozen=True)
class Principal:
    user_id: uuid.UUID
    role: UserRole
    display_name: str


# --- Core action constants ---
ACTION_CREATE_REQUEST = "CREATE_REQUEST"
ACTION_RESOLVE_BID = "RESOLVE_BID"
ACTION_CREATE_BID = "CREATE_BID"
ACTION_WITHDRAW_BID = "WITHDRAW_BID"
ACTION_MANAGE_PROFILE = "MANAGE_PROFILE"
ACTION_APPROVE_TECHNICIAN = "APPROVE_TECHNICIAN"
ACTION_WRITE_REVIEW = "WRITE_REVIEW"


def allowed_actions(role: UserRole) -> Set[str]:
    """
    Pure RBAC: which actions a role may attempt.
    Ownership of the aggregate is checked by the services.
    """

    if role == UserRole.customer:
        return {ACTION_CREATE_REQUEST, ACTION_RESOLVE_BID, ACTION_WRITE_REVIEW}

    if role == UserRole.technician:
        return {ACTION_CREATE_BID, ACTION_WITHDRAW_BID, ACTION_MANAGE_PROFILE}

    if role == UserRole.admin:
        return {ACTION_APPROVE_TECHNICIAN}

    return set()


def require_action(principal: Principal, action: str) -> None:
    if action not in allowed_actions(principal.role):
        raise PermissionError(
            f"Role {principal.role.value} not permitted for action {action}."
        )
