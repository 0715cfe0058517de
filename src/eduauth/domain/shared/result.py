"""Result type used instead of exceptions for expected failure paths."""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")


class ErrorKind(StrEnum):
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    INFRASTRUCTURE = "infrastructure"


class ResultAccessError(RuntimeError):
    """Raised when reading the payload of a failure or the error of a success."""


@dataclass(frozen=True)
class Result(Generic[T]):
    """Exactly one of success(data) or failure(error, details).

    Build instances with ``Result.ok`` and ``Result.fail``; the constructor is
    not part of the public surface.
    """

    is_success: bool
    _data: T | None = None
    _error: str | None = None
    details: dict[str, Any] | None = None
    kind: ErrorKind | None = None

    @classmethod
    def ok(cls, data: T) -> Result[T]:
        return cls(True, _data=data)

    @classmethod
    def fail(
        cls,
        error: str,
        details: dict[str, Any] | None = None,
        *,
        kind: ErrorKind = ErrorKind.VALIDATION,
    ) -> Result[Any]:
        return cls(False, _error=error, details=details, kind=kind)

    @property
    def is_failure(self) -> bool:
        return not self.is_success

    @property
    def data(self) -> T:
        if not self.is_success:
            raise ResultAccessError("Cannot access data from a failed result")
        return self._data  # type: ignore[return-value]

    @property
    def error(self) -> str:
        if self.is_success:
            raise ResultAccessError("Cannot access error from a successful result")
        return self._error  # type: ignore[return-value]

    def _propagate(self) -> Result[Any]:
        return Result(False, _error=self._error, details=self.details, kind=self.kind)

    def map(self, fn: Callable[[T], U]) -> Result[U]:
        if self.is_success:
            return Result.ok(fn(self._data))  # type: ignore[arg-type]
        return self._propagate()

    def flat_map(self, fn: Callable[[T], Result[U]]) -> Result[U]:
        if self.is_success:
            return fn(self._data)  # type: ignore[arg-type]
        return self._propagate()

    def match(
        self,
        on_success: Callable[[T], U],
        on_failure: Callable[[str, dict[str, Any] | None], U],
    ) -> U:
        if self.is_success:
            return on_success(self._data)  # type: ignore[arg-type]
        return on_failure(self._error, self.details)  # type: ignore[arg-type]

    def unwrap_or(self, default: T) -> T:
        return self._data if self.is_success else default  # type: ignore[return-value]

    def unwrap_or_raise(self) -> T:
        if self.is_success:
            return self._data  # type: ignore[return-value]
        raise ResultAccessError(self._error)
