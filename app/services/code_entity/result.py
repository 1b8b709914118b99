"""Result envelope returned by every business operation."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorKind(StrEnum):
    INVALID = "invalid"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    STORAGE = "storage"


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    """``success`` with ``data``, or failure with a human-readable ``error``.

    ``kind`` tags a failure so callers can tell bad input from storage faults
    without parsing the message.
    """

    success: bool
    data: T | None = None
    error: str | None = None
    kind: ErrorKind | None = None

    @classmethod
    def ok(cls, data: T) -> "ServiceResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, kind: ErrorKind = ErrorKind.INVALID) -> "ServiceResult[T]":
        return cls(success=False, error=error, kind=kind)


@dataclass(frozen=True)
class ValidationResult:
    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors
