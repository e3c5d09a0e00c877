# repairhub/services/request_transitions.py
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable

from sqlalchemy import update
from sqlalchemy.orm import Session

from repairhub.core.errors import ConflictError
from repairhub.models.enums import RequestStatus
from repairhub.models.repair_request import RepairRequest

S = RequestStatus

# forward-only; cancelled and paid are terminal
ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    S.open.value: frozenset({S.bidding.value, S.assigned.value, S.cancelled.value}),
    S.bidding.value: frozenset({S.assigned.value, S.cancelled.value}),
    S.assigned.value: frozenset({S.in_progress.value, S.completed.value, S.cancelled.value}),
    S.in_progress.value: frozenset({S.completed.value}),
    S.completed.value: frozenset({S.paid.value}),
    S.paid.value: frozenset(),
    S.cancelled.value: frozenset(),
}

OPEN_FOR_BIDS = frozenset({S.open.value, S.bidding.value})
DELETABLE = OPEN_FOR_BIDS
EDITABLE = OPEN_FOR_BIDS
CANCELLABLE = frozenset({S.open.value, S.bidding.value, S.assigned.value})
COMPLETABLE = frozenset({S.assigned.value, S.in_progress.value})
TERMINAL = frozenset({S.paid.value, S.cancelled.value})


def _now():
    return datetime.now(timezone.utc)


def _value(status: Any) -> str:
    return status.value if isinstance(status, RequestStatus) else str(status)


def can_transition(current: Any, target: Any) -> bool:
    return _value(target) in ALLOWED_TRANSITIONS.get(_value(current), frozenset())


def assert_transition(current: Any, target: Any) -> None:
    if not can_transition(current, target):
        raise ConflictError(
            f"Repair request cannot move from {_value(current)} to {_value(target)}.",
            code="InvalidTransition",
        )


def sources_for(target: Any) -> FrozenSet[str]:
    """
    Every status from which `target` is reachable in one step.
    """
    t = _value(target)
    return frozenset(src for src, dsts in ALLOWED_TRANSITIONS.items() if t in dsts)


def guarded_status_update(
    db: Session,
    request_id: uuid.UUID,
    from_states: Iterable[Any],
    *,
    extra_where: Iterable[Any] = (),
    **values: Any,
) -> bool:
    """
    Compare-and-swap on repair_requests: applies `values` only while the row
    is still in one of `from_states`. Returns True iff exactly one row moved.

    On Postgres the UPDATE takes the row lock, so a concurrent writer blocks
    and then re-evaluates the status predicate against the committed row.
    `extra_where` adds further predicates on the same row.
    """
    states = [_value(s) for s in from_states]
    if "status" in values:
        values["status"] = _value(values["status"])
    values.setdefault("updated_at", _now())

    stmt = (
        update(RepairRequest)
        .where(RepairRequest.id == request_id, RepairRequest.status.in_(states), *extra_where)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    res = db.execute(stmt)
    return res.rowcount == 1
