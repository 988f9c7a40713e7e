"""
Shared data structures, exceptions, and utilities for venue clients.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Generic, Optional, TypeVar

T = TypeVar("T")

ZERO_ADDRESS = "0x" + "0" * 40


class VenueError(Exception):
    """Raised by venue clients when a query or swap cannot be completed."""
    pass


class TransferError(Exception):
    """Raised when an asset transfer or allowance update fails."""
    pass


@dataclass(frozen=True)
class PoolSlot:
    """Instantaneous pool state returned by ``slot0``."""

    sqrt_price_x96: int
    tick: int


@dataclass(frozen=True)
class SwapParams:
    """Single-pool exact-input swap request."""

    token_in: str
    token_out: str
    fee: int
    recipient: str
    deadline: int
    amount_in: int
    amount_out_minimum: int
    sqrt_price_limit_x96: int = 0


@dataclass(frozen=True)
class VenueCallResult(Generic[T]):
    """
    Outcome of a call into the venue.

    Venue calls are untrusted; callers branch on ``success`` instead of
    relying on exceptions for control flow.
    """

    success: bool
    value: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, value: T) -> "VenueCallResult[T]":
        return cls(success=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "VenueCallResult[T]":
        return cls(success=False, error=error)


async def capture_venue_call(call: Awaitable[T]) -> VenueCallResult[T]:
    """
    Await a venue call and fold any exception into a failed result.

    Guard violations raised while the venue re-enters the engine are part of
    the failure: the call did not complete and the engine state is untouched.
    """
    try:
        value = await call
    except Exception as exc:
        return VenueCallResult.failure(f"{type(exc).__name__}: {exc}")
    return VenueCallResult.ok(value)


def describe_amount(amount: Any, decimals: int) -> str:
    """Render an integer token amount in whole units for log lines."""
    try:
        whole = int(amount) / (10 ** decimals)
    except (TypeError, ValueError):
        return str(amount)
    return f"{whole:.8g}"
