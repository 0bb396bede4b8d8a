"""
Typed Results

Every operation of the service layer returns a `Result` instead of raising
for expected conditions (bad input, unknown alias, exhausted collision
space, store failures).

- `ErrorCategory`: the closed set of error kinds callers branch on
- `Err`: error payload with an append-only provenance trail
- `Result`: success value or `Err`, never both

The provenance trail (`called_from`) is a list of (location, message) pairs.
Each layer that hands an error upwards appends its own location with
`Err.rewrap()`, so a log line shows where the error was produced and every
place it travelled through, without needing a stack unwind.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Generic, Optional, TypeVar

__all__ = ["ErrorCategory", "Err", "Result"]

T = TypeVar("T")
U = TypeVar("U")
R = TypeVar("R")


class ErrorCategory(Enum):
    """Error categories returned by the service layer."""
    CLIENT_ERROR = "client_error"
    NOT_FOUND = "not_found"
    COLLISION_EXHAUSTED = "collision_exhausted"
    UNEXPECTED = "unexpected"


class Err:
    """
    Error payload carried by a failed `Result`.

    Args:
        message: Human readable description (safe for logs, not always for end users)
        category: Which kind of failure this is
        location: Where the error was produced, e.g. "UrlService.create"
        exception: Underlying exception, if any
    """

    __slots__ = ("message", "category", "exception", "called_from")

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNEXPECTED,
        location: Optional[str] = None,
        exception: Optional[BaseException] = None,
        called_from: Optional[tuple[tuple[str, str], ...]] = None,
    ):
        self.message = message
        self.category = category
        self.exception = exception
        trail = tuple(called_from or ())
        if location is not None:
            trail = trail + ((location, message),)
        self.called_from = trail

    def rewrap(self, location: str, message: Optional[str] = None) -> "Err":
        """
        Return a copy of this error with one more provenance entry.

        The original message, category and exception are preserved.
        """
        return Err(
            self.message,
            category=self.category,
            exception=self.exception,
            called_from=self.called_from + ((location, message or self.message),),
        )

    def format_called_from(self) -> str:
        """Render the provenance trail, innermost location first."""
        if not self.called_from:
            return "<unknown>"
        lines = [f"{self.called_from[0][0]}: {self.called_from[0][1]}"]
        for location, message in self.called_from[1:]:
            lines.append(f"    called from --> {location}: {message}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"Err(category={self.category.name}, message={self.message!r})"


class Result(Generic[T]):
    """
    Either a success value or an `Err`.

    Use the constructors instead of calling the class directly:

        Result.ok(row)
        Result.fail(Err("boom", ErrorCategory.UNEXPECTED, "Store.insert"))
    """

    __slots__ = ("_success", "_value", "_error")

    def __init__(self, success: bool, value: Optional[T] = None, error: Optional[Err] = None):
        if success and error is not None:
            raise ValueError("A successful result cannot carry an error")
        if not success and error is None:
            raise ValueError("A failed result must carry an error")
        self._success = success
        self._value = value
        self._error = error

    @classmethod
    def ok(cls, value: T = None) -> "Result[T]":
        return cls(True, value=value)

    @classmethod
    def fail(cls, error: Err) -> "Result[T]":
        return cls(False, error=error)

    @classmethod
    def from_error(cls, other: "Result[U]", location: str) -> "Result[T]":
        """
        Re-type a failed result, appending `location` to its provenance.

        Raises:
            ValueError: If `other` is a success (there is no error to carry over)
        """
        if other.success:
            raise ValueError("Expected error result, not ok.")
        return cls.fail(other.error.rewrap(location))

    @property
    def success(self) -> bool:
        return self._success

    @property
    def value(self) -> T:
        if not self._success:
            raise ValueError(f"Result is an error: {self._error!r}")
        return self._value

    @property
    def error(self) -> Optional[Err]:
        return self._error

    def match(self, if_ok: Callable[[T], R], if_err: Callable[[Err], R]) -> R:
        if self._success:
            return if_ok(self._value)
        return if_err(self._error)

    def __repr__(self) -> str:
        if self._success:
            return f"Result.ok({self._value!r})"
        return f"Result.fail({self._error!r})"
