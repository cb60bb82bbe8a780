"""Success/failure union returned across the client boundary.

A `Result` is either `Ok(value)` or `Fail(error)`; the `ok` tag tells them
apart so callers can branch without isinstance checks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, Literal, TypeVar, Union

from .errors import AppError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    ok: Literal[True] = field(default=True, init=False)


@dataclass(frozen=True)
class Fail:
    error: AppError
    ok: Literal[False] = field(default=False, init=False)


Result = Union[Ok[T], Fail]


def ok(value: T) -> Ok[T]:
    return Ok(value)


def fail(error: AppError) -> Fail:
    if not isinstance(error, AppError):
        raise TypeError("fail() requires an AppError")
    return Fail(error)
