"""Result pattern for the query service seam.

Engine operations raise exceptions from the taxonomy in
``delegation_tree.hierarchy.errors``. Callers that prefer explicit outcomes use
``DelegationQueryService``, which turns each engine call into one of:
- Ok: the query value
- Err: error message, error code and retryable flag copied from the exception

Results collapse to a single value through fold.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Callable, Generic, Optional, TypeVar, cast

T = TypeVar("T")
U = TypeVar("U")


class Result(ABC, Generic[T]):
    """Base class for Ok / Err."""

    @abstractmethod
    def is_ok(self) -> bool:
        """Return True if this is an Ok result."""

    @abstractmethod
    def is_err(self) -> bool:
        """Return True if this is an Err result."""

    @abstractmethod
    def unwrap(self) -> T:
        """Return the value from Ok, or raise ValueError."""

    @abstractmethod
    def unwrap_or(self, default: T) -> T:
        """Return the value from Ok, or default otherwise."""

    @abstractmethod
    def to_json(self) -> str:
        """Serialize this Result to a JSON string."""


class Ok(Result[T]):
    """Successful query result."""

    def __init__(self, value: T):
        self._value = value

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self._value

    def unwrap_or(self, default: T) -> T:
        return self._value

    def to_json(self) -> str:
        value = self._value
        if hasattr(value, "to_dict"):
            value = value.to_dict()
        return json.dumps({"type": "ok", "value": value}, default=str)

    def __repr__(self) -> str:
        return f"Ok({self._value!r})"

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Ok):
            return False
        return self._value == other._value

    def __hash__(self) -> int:
        return hash(("Ok", self._value))


class Err(Result[T]):
    """Failed query result."""

    def __init__(self, error: str, code: Optional[str] = None, retryable: bool = False):
        """Initialize Err with error information.

        Args:
            error: Error message describing what went wrong.
            code: Error code, one of the taxonomy codes (e.g. ``NOT_FOUND``).
            retryable: Whether repeating the query may succeed.
        """
        self.error = error
        self.code = code
        self.retryable = retryable

    @classmethod
    def from_exception(cls, exc: Exception) -> "Err[Any]":
        """Build an Err from a raised exception, keeping its code and retry flag."""
        return cls(
            error=str(exc),
            code=getattr(exc, "code", None),
            retryable=getattr(exc, "retryable", False),
        )

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        raise ValueError(self.error)

    def unwrap_or(self, default: T) -> T:
        return default

    def to_json(self) -> str:
        return json.dumps(
            {"type": "err", "error": self.error, "code": self.code, "retryable": self.retryable},
            default=str,
        )

    def __repr__(self) -> str:
        if self.code:
            return f"Err({self.error!r}, code={self.code!r}, retryable={self.retryable})"
        return f"Err({self.error!r})"

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Err):
            return False
        return (
            self.error == other.error
            and self.code == other.code
            and self.retryable == other.retryable
        )

    def __hash__(self) -> int:
        return hash(("Err", self.error, self.code, self.retryable))


def fold(
    result: Result[T],
    on_ok: Callable[[T], U],
    on_err: Callable[[Err[Any]], U],
) -> U:
    """Collapse a Result to a single value.

    Unlike ``Result.unwrap`` the Err branch receives the whole Err so callers
    can branch on ``code``.
    """
    if result.is_ok():
        return on_ok(result.unwrap())
    return on_err(cast(Err[Any], result))
