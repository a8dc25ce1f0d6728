# src/social_repository/base/result.py
"""
Tagged results returned by the data-access layer.

``Ok`` carries a value, ``NotFound`` means the query ran and matched nothing,
``Err`` means the statement failed to execute. Construction errors are never
wrapped here; they are raised.
"""

from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar, Union

from .exceptions import ObjectNotFoundException

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: Any) -> T:
        return self.value

    def map(self, fn: Callable[[T], U]) -> "Ok[U]":
        return Ok(fn(self.value))


@dataclass(frozen=True)
class NotFound:
    context: str = ""

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self):
        raise ObjectNotFoundException(self.context or "The requested object was not found.")

    def unwrap_or(self, default: Any) -> Any:
        return default

    def map(self, fn: Callable) -> "NotFound":
        return self


@dataclass(frozen=True)
class Err:
    cause: BaseException
    context: str = ""

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self):
        raise self.cause

    def unwrap_or(self, default: Any) -> Any:
        return default

    def map(self, fn: Callable) -> "Err":
        return self


Result = Union[Ok[T], NotFound, Err]


def from_optional(value: Optional[T], context: str = "") -> "Result[T]":
    """Ok(value) unless value is None."""
    if value is None:
        return NotFound(context)
    return Ok(value)
