"""
Result -- typed success/failure value for pure resolver functions.

Pure functions in the engine (filter application, variable resolution,
expression evaluation) return a ``Result`` instead of raising, so callers
can compose and short-circuit.  Orchestration code converts a failure into
a typed exception with ``unwrap()`` or by inspecting ``error``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Either a value or an error message, never both.

    Contract:
        ``is_ok`` is True iff ``error`` is None.
        ``bool(result) == result.is_ok`` for convenience.
    """

    value: T | None = None
    error: str | None = None

    @classmethod
    def ok(cls, value: T) -> Result[T]:
        return cls(value=value, error=None)

    @classmethod
    def fail(cls, error: str) -> Result[T]:
        return cls(value=None, error=error)

    @property
    def is_ok(self) -> bool:
        return self.error is None

    def __bool__(self) -> bool:
        return self.is_ok

    def map(self, fn: Callable[[T], U]) -> Result[U]:
        """Apply ``fn`` to the value of a successful result."""
        if not self.is_ok:
            return Result.fail(self.error)
        return Result.ok(fn(self.value))

    def map_error(self, fn: Callable[[str], str]) -> Result[T]:
        """Rewrite the error message of a failed result."""
        if self.is_ok:
            return self
        return Result.fail(fn(self.error))

    def unwrap(self, exc_factory: Callable[[str], Exception] = ValueError) -> T:
        """Return the value or raise ``exc_factory(error)``."""
        if not self.is_ok:
            raise exc_factory(self.error)
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value if self.is_ok else default
