from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from injlens.services.errors import ServiceError

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    """Operation value; ``stale`` is set when any input came from the last-known-good store."""

    value: T
    stale: bool = False

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    code: str
    message: str
    status_code: int

    @property
    def ok(self) -> bool:
        return False

    @classmethod
    def from_error(cls, exc: ServiceError) -> "Failure":
        return cls(code=exc.code, message=exc.message, status_code=exc.status_code)


Result = Union[Success[T], Failure]
