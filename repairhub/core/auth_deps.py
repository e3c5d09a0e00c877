#repairhub/core/auth_deps.py
from __future__ import annotations

import uuid

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from repairhub.core.security import decode_token
from repairhub.models.enums import UserRole
from repairhub.policies.rbac import Principal, require_action

bearer = HTTPBearer(auto_error=True)


def get_current_principal(
    request: Request,
    creds: HTTPAuthorizationCredentials = Depends(bearer),
) -> Principal:
    """
    Canonical authentication dependency.

    Guarantees:
    - JWT is valid
    - subject (user id) and role are present
    - role is a valid UserRole
    """

    try:
        payload = decode_token(creds.credentials)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token.")

    subject = payload.get("user_id") or payload.get("sub")
    role = payload.get("role")
    display_name = payload.get("display_name") or "Unknown"

    if not role or not subject:
        raise HTTPException(status_code=401, detail="Token missing required claims.")

    try:
        user_id = uuid.UUID(str(subject))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid subject in token.")

    try:
        role_enum = UserRole(role)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid role in token.")

    principal = Principal(
        user_id=user_id,
        role=role_enum,
        display_name=str(display_name),
    )

    # Make principal available to downstream middleware / handlers
    request.state.principal = principal

    return principal


def require_role_action(action: str):
    """
    Route-level RBAC gate; ownership checks stay in the services.
    """

    def _dep(principal: Principal = Depends(get_current_principal)) -> Principal:
        try:
            require_action(principal, action)
        except PermissionError as e:
            raise HTTPException(status_code=403, detail=str(e))
        return principal

    return _dep
