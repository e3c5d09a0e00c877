# repairhub/core/errors.py
from __future__ import annotations

from enum import Enum
from typing import Dict, Optional


class ErrorKind(str, Enum):
    not_found = "not_found"
    forbidden = "forbidden"
    conflict = "conflict"
    validation = "validation"
    transient = "transient"


# transport mapping (kind -> HTTP status)
HTTP_STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.not_found: 404,
    ErrorKind.forbidden: 403,
    ErrorKind.conflict: 409,
    ErrorKind.validation: 422,
    ErrorKind.transient: 503,
}


class LifecycleError(Exception):
    """
    Base of every expected failure raised inside the lifecycle services.

    `code` is the stable machine-readable reason (e.g. "AlreadyProcessed"),
    `kind` decides how the transport reports it.
    """

    kind: ErrorKind = ErrorKind.conflict
    default_code: str = "Conflict"

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class NotFoundError(LifecycleError):
    kind = ErrorKind.not_found
    default_code = "NotFound"


class ForbiddenError(LifecycleError):
    kind = ErrorKind.forbidden
    default_code = "Forbidden"


class ConflictError(LifecycleError):
    kind = ErrorKind.conflict
    default_code = "Conflict"


class DomainValidationError(LifecycleError):
    kind = ErrorKind.validation
    default_code = "Validation"


class TransientError(LifecycleError):
    kind = ErrorKind.transient
    default_code = "StoreUnavailable"


class InvalidEstimateFormat(DomainValidationError):
    default_code = "InvalidEstimateFormat"
