"""Result type for operations whose failure is an expected outcome.

Used where the caller branches on success, such as reading settings from the
environment:

    match Settings.from_env():
        case Ok(settings): ...
        case Err(error): ...

``unwrap()`` is for callers that treat failure as fatal: it returns the
value of an Ok and raises the error of an Err.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, NoReturn, TypeVar

T = TypeVar("T")
E = TypeVar("E", bound=Exception)


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E

    def unwrap(self) -> NoReturn:
        raise self.error


type Result[T, E] = Ok[T] | Err[E]
