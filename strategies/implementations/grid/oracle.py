"""
Price oracle adapter for the grid engine.

Derives a 1e18-scaled quote-per-base price from the venue's tick
accumulator (TWAP) or from its instantaneous tick (spot). Venue failures
never propagate: they are logged and reported as the sentinel price 0.
"""

from __future__ import annotations

from typing import Optional

from helpers.unified_logger import get_core_logger
from venue_clients.base_client import BaseVenueClient
from venue_clients.base_models import capture_venue_call
from venue_clients.tick_math import MAX_TICK, MIN_TICK, average_tick, tick_to_price

from .errors import InvalidIntervalError

PRICE_UNAVAILABLE = 0


class PriceOracleAdapter:
    """
    Reference-price source backed by a venue's price history.

    Example:
        oracle = PriceOracleAdapter(venue)
        price = await oracle.get_twap_price(pool, 300, 18, 6, base_is_first=True)
        if price == PRICE_UNAVAILABLE:
            ...
    """

    def __init__(self, venue: BaseVenueClient, logger=None) -> None:
        self.venue = venue
        self.logger = logger or get_core_logger("price_oracle")

    async def get_twap_price(
        self,
        pool: str,
        interval: int,
        base_decimals: int,
        quote_decimals: int,
        base_is_first: bool,
    ) -> int:
        """
        Time-weighted average price over the last ``interval`` seconds.

        Raises:
            InvalidIntervalError: If ``interval`` is zero.

        Returns:
            Price scaled by 1e18, or ``PRICE_UNAVAILABLE`` when the venue
            cannot answer.
        """
        if interval == 0:
            raise InvalidIntervalError("TWAP interval must be non-zero")

        result = await capture_venue_call(self.venue.observe(pool, [interval, 0]))
        if not result.success:
            self.logger.log(f"Oracle: observe failed for {pool}: {result.error}", "WARNING")
            return PRICE_UNAVAILABLE

        cumulatives = result.value
        try:
            cumulative_past, cumulative_now = (int(value) for value in cumulatives)
        except (TypeError, ValueError):
            self.logger.log(
                f"Oracle: malformed observe reply for {pool}: {cumulatives!r}",
                "WARNING",
            )
            return PRICE_UNAVAILABLE

        mean_tick = average_tick(cumulative_now, cumulative_past, interval)
        return self._price_from_tick(mean_tick, base_decimals, quote_decimals, base_is_first, pool)

    async def get_spot_price(
        self,
        pool: str,
        base_decimals: int,
        quote_decimals: int,
        base_is_first: bool,
    ) -> int:
        """Instantaneous price from the pool's current tick (not manipulation resistant)."""
        result = await capture_venue_call(self.venue.slot0(pool))
        if not result.success:
            self.logger.log(f"Oracle: slot0 failed for {pool}: {result.error}", "WARNING")
            return PRICE_UNAVAILABLE

        tick: Optional[int] = getattr(result.value, "tick", None)
        if tick is None:
            self.logger.log(f"Oracle: slot0 reply for {pool} has no tick", "WARNING")
            return PRICE_UNAVAILABLE

        return self._price_from_tick(int(tick), base_decimals, quote_decimals, base_is_first, pool)

    def _price_from_tick(
        self,
        tick: int,
        base_decimals: int,
        quote_decimals: int,
        base_is_first: bool,
        pool: str,
    ) -> int:
        if not MIN_TICK <= tick <= MAX_TICK:
            self.logger.log(f"Oracle: tick {tick} out of range for {pool}", "WARNING")
            return PRICE_UNAVAILABLE

        price = tick_to_price(tick, base_decimals, quote_decimals, base_is_first)
        self.logger.log(f"Oracle: {pool} tick={tick} price={price}", "DEBUG")
        return price
