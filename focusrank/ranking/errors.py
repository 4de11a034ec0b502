"""Exceptions raised by the ranking engine."""

from __future__ import annotations

from typing import Any, Iterable, Optional


class LeaderboardError(Exception):
    """Base class for leaderboard failures."""


class InvalidLeaderboardRequest(LeaderboardError, ValueError):
    """A query parameter holds a value the engine does not support."""

    def __init__(
        self, field: str, value: Any, allowed: Optional[Iterable[str]] = None
    ) -> None:
        self.field = field
        self.value = value
        self.allowed = tuple(allowed) if allowed is not None else ()
        message = f"Invalid {field} parameter: {value!r}"
        if self.allowed:
            message += f" (expected one of {', '.join(self.allowed)})"
        super().__init__(message)


class StoreFailure(LeaderboardError):
    """A backing-store query failed (timeout, connection error, ...)."""

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        self.message = message
        super().__init__(f"{operation} failed: {message}")
