"""
Non-reentrancy guard for the grid aggregate's mutating entry points.

The venue is an untrusted external call made from inside those entry points;
while one is in progress every other guarded entry (including one attempted
by the venue itself) is rejected instead of queued.
"""

from __future__ import annotations

import functools
from typing import Any, Awaitable, Callable, TypeVar

from .errors import ReentrancyError

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


class NonReentrantGuard:
    """Explicit in-progress flag, cleared on every exit path."""

    def __init__(self) -> None:
        self._entered = False
        self._owner: str = ""

    @property
    def locked(self) -> bool:
        return self._entered

    def enter(self, operation: str) -> None:
        if self._entered:
            raise ReentrancyError(
                f"Cannot run {operation} while {self._owner} is in progress"
            )
        self._entered = True
        self._owner = operation

    def exit(self) -> None:
        self._entered = False
        self._owner = ""


def non_reentrant(method: F) -> F:
    """Wrap an async method of an object exposing ``self._guard``."""

    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        guard: NonReentrantGuard = self._guard
        guard.enter(method.__name__)
        try:
            return await method(self, *args, **kwargs)
        finally:
            guard.exit()

    return wrapper  # type: ignore[return-value]
