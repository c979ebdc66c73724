"""
Operation Results

Retryable operations report their outcome as a value instead of raising,
so the retry loop decides purely on `Failure.retryable`.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Generic, Optional, TypeVar

from ..errors import ErrorCategory

T = TypeVar("T")


@dataclass(frozen=True)
class Failure:
    """Why an operation did not produce a value."""

    message: str
    retryable: bool
    category: ErrorCategory = ErrorCategory.UNKNOWN


@dataclass(frozen=True)
class Result(Generic[T]):
    """Value or failure of one operation, plus how many attempts it took."""

    value: Optional[T] = None
    failure: Optional[Failure] = None
    attempts: int = 1

    @classmethod
    def succeeded(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failed(
        cls,
        message: str,
        *,
        retryable: bool,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
    ) -> "Result[T]":
        return cls(failure=Failure(message=message, retryable=retryable, category=category))

    @property
    def is_ok(self) -> bool:
        return self.failure is None

    @property
    def retryable(self) -> bool:
        return self.failure is not None and self.failure.retryable

    def with_attempts(self, attempts: int) -> "Result[T]":
        return replace(self, attempts=attempts)

    def unwrap(self) -> T:
        if self.failure is not None:
            raise ValueError(f"Result has no value: {self.failure.message}")
        return self.value  # type: ignore[return-value]
