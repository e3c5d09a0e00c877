# repairhub/core/result.py
from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from repairhub.core.errors import (
    DomainValidationError,
    ErrorKind,
    LifecycleError,
    TransientError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of a public lifecycle operation: either `value` or `error`.
    """

    value: Optional[T] = None
    error: Optional[LifecycleError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error else None

    @property
    def code(self) -> Optional[str]:
        return self.error.code if self.error else None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value

    @classmethod
    def success(cls, value: T = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: LifecycleError) -> "Result[T]":
        return cls(error=error)


def lifecycle_operation(name: str) -> Callable:
    """
    Wraps a service method `(self, db, ...)` so that it returns a Result.

    - LifecycleError   -> rollback, failed Result with the same kind/code
    - ValidationError  -> rollback, failed Result of kind validation
    - SQLAlchemyError  -> rollback, failed Result of kind transient
    Nothing is retried here; callers own the retry policy.
    """

    def decorator(fn: Callable[..., T]) -> Callable[..., Result[T]]:
        @functools.wraps(fn)
        def wrapper(self, db: Session, *args: Any, **kwargs: Any) -> Result[T]:
            try:
                return Result.success(fn(self, db, *args, **kwargs))
            except LifecycleError as e:
                db.rollback()
                logger.info("[%s] rejected code=%s message=%s", name, e.code, e.message)
                return Result.failure(e)
            except ValidationError as e:
                db.rollback()
                first = e.errors()[0] if e.errors() else {}
                field = ".".join(str(p) for p in first.get("loc", ())) or "input"
                logger.info("[%s] invalid input field=%s", name, field)
                return Result.failure(
                    DomainValidationError(
                        f"Invalid {field}: {first.get('msg', 'invalid value')}",
                        code="InvalidInput",
                    )
                )
            except SQLAlchemyError as e:
                db.rollback()
                logger.exception("[%s] store failure", name)
                return Result.failure(
                    TransientError(f"Store unavailable during {name}: {type(e).__name__}")
                )

        return wrapper

    return decorator
