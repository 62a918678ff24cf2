"""
Explicit result types for lookups that may legitimately fail.

Stores return ``Ok(value)`` or ``Err(error)`` instead of ``None`` so callers
decide on a fallback deliberately. ``unwrap()`` raises the carried
``GatewayException`` and lets the service error handler render it.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from shared.errors import GatewayException

T = TypeVar("T")
E = TypeVar("E", bound=GatewayException)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E

    @property
    def is_ok(self) -> bool:
        return False

    def unwrap(self):
        raise self.error


Result = Union[Ok[T], Err[E]]
