"""
Grid level state machine.

Owns configuration and the level ladder inside ``GridState``: validates and
applies configurations, lays out trigger prices, and answers which levels
are eligible to fire.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Union

from venue_clients.base_client import BaseAssetLedger, BaseVenueClient
from venue_clients.base_models import ZERO_ADDRESS, capture_venue_call
from venue_clients.tick_math import PRICE_PRECISION, is_base_first

from .config import (
    GridConfiguration,
    parse_configuration,
    validate_cooldown,
    validate_slippage,
    validate_twap_interval,
)
from .errors import ConfigValidationError, GridStateError, PoolNotFoundError
from .models import GridLevel, GridState, LevelSide
from .oracle import PRICE_UNAVAILABLE, PriceOracleAdapter


def is_level_eligible(level: GridLevel, price: int, now: int, cooldown: int) -> bool:
    """
    Trigger predicate shared by every execution path.

    A level fires when it is active, its cooldown has elapsed, and the price
    has reached it from the correct side: at or below for buys, at or above
    for sells.
    """
    if not level.active:
        return False
    if now < level.last_executed + cooldown:
        return False
    if level.is_buy:
        return price <= level.price
    return price >= level.price


def compute_level_price(index: int, level_count: int, lower_price: int, upper_price: int) -> int:
    """
    Trigger price for ``index``.

    Interior levels use a linear/quadratic blend ``(f + f**2) / 2`` of the
    fractional position ``f``, evaluated in 1e18 fixed point. This is not
    geometric spacing; boundaries depend on this exact curve.
    """
    if index == 0:
        return lower_price
    if index == level_count - 1:
        return upper_price

    fraction = index * PRICE_PRECISION // (level_count - 1)
    blended = (fraction + fraction * fraction // PRICE_PRECISION) // 2
    return lower_price + (upper_price - lower_price) * blended // PRICE_PRECISION


class GridStateMachine:
    """Configuration and level lifecycle for one grid."""

    def __init__(
        self,
        state: GridState,
        venue: BaseVenueClient,
        ledger: BaseAssetLedger,
        oracle: PriceOracleAdapter,
        logger,
    ) -> None:
        self.state = state
        self.venue = venue
        self.ledger = ledger
        self.oracle = oracle
        self.logger = logger

    # ------------------------------------------------------------------ #
    # Configuration
    # ------------------------------------------------------------------ #
    async def configure(self, config: Union[GridConfiguration, Mapping[str, Any]]) -> GridConfiguration:
        """
        Validate and apply a configuration.

        Existing levels are always discarded: a configuration change must
        be followed by ``initialize_levels`` before anything can execute.

        Raises:
            ConfigValidationError: If any invariant is violated.
            PoolNotFoundError: If the venue has no pool for the pair and fee tier.
        """
        validated = parse_configuration(config)

        lookup = await capture_venue_call(
            self.venue.get_pool(validated.base_asset, validated.quote_asset, validated.fee_tier)
        )
        if not lookup.success or lookup.value in (None, "", ZERO_ADDRESS):
            raise PoolNotFoundError(
                f"No pool for {validated.base_asset}/{validated.quote_asset} "
                f"fee {validated.fee_tier}: {lookup.error or 'not deployed'}"
            )

        base_decimals = await self.ledger.decimals(validated.base_asset)
        quote_decimals = await self.ledger.decimals(validated.quote_asset)

        self.state.configuration = validated
        self.state.pool = lookup.value
        self.state.base_decimals = base_decimals
        self.state.quote_decimals = quote_decimals
        self.state.base_is_first = is_base_first(validated.base_asset, validated.quote_asset)
        self.state.levels = []
        self.state.levels_initialized = False

        self.logger.log(
            f"Grid configured: {validated.base_asset}/{validated.quote_asset} "
            f"pool={lookup.value} levels={validated.level_count} "
            f"range=[{validated.lower_price}, {validated.upper_price}]",
            "INFO",
        )
        return validated

    def require_configured(self) -> GridConfiguration:
        if not self.state.configured:
            raise GridStateError("Grid is not configured")
        return self.state.configuration

    def require_initialized(self) -> GridConfiguration:
        config = self.require_configured()
        if not self.state.levels_initialized:
            raise GridStateError("Grid levels are not initialized")
        return config

    # ------------------------------------------------------------------ #
    # Levels
    # ------------------------------------------------------------------ #
    async def initialize_levels(self) -> List[GridLevel]:
        """
        Lay out the level ladder and assign each level its first side.

        Levels below the reference price buy, levels at or above it sell.
        The reference is the TWAP, or the midpoint of the bounds when the
        venue cannot provide one.
        """
        config = self.require_configured()

        reference_price = await self.current_price()
        if reference_price == PRICE_UNAVAILABLE:
            reference_price = (config.lower_price + config.upper_price) // 2
            self.logger.log(
                f"Grid: TWAP unavailable, using range midpoint {reference_price} as reference",
                "WARNING",
            )

        levels: List[GridLevel] = []
        for index in range(config.level_count):
            price = compute_level_price(index, config.level_count, config.lower_price, config.upper_price)
            side = LevelSide.BUY if price < reference_price else LevelSide.SELL
            levels.append(GridLevel(price=price, side=side))

        self.state.levels = levels
        self.state.levels_initialized = True

        buys = sum(1 for level in levels if level.is_buy)
        self.logger.log(
            f"Grid levels initialized: {buys} buy / {len(levels) - buys} sell "
            f"around reference {reference_price}",
            "INFO",
        )
        return levels

    def level(self, index: int) -> GridLevel:
        self.require_initialized()
        if not 0 <= index < len(self.state.levels):
            raise ConfigValidationError(
                f"Level index {index} out of range [0, {len(self.state.levels)})"
            )
        return self.state.levels[index]

    def activate_level(self, index: int) -> GridLevel:
        level = self.level(index)
        level.active = True
        return level

    def deactivate_level(self, index: int) -> GridLevel:
        level = self.level(index)
        level.active = False
        return level

    def reset_level_cooldown(self, index: int) -> GridLevel:
        level = self.level(index)
        level.last_executed = 0
        return level

    def eligible_indices(self, price: int, now: int) -> List[int]:
        cooldown = self.state.settings.cooldown_seconds
        return [
            index
            for index, level in enumerate(self.state.levels)
            if is_level_eligible(level, price, now, cooldown)
        ]

    # ------------------------------------------------------------------ #
    # Prices
    # ------------------------------------------------------------------ #
    async def current_price(self) -> int:
        """Reference TWAP price, or ``PRICE_UNAVAILABLE`` when unconfigured or unreadable."""
        if not self.state.configured:
            return PRICE_UNAVAILABLE
        return await self.oracle.get_twap_price(
            self.state.pool,
            self.state.settings.twap_interval,
            self.state.base_decimals,
            self.state.quote_decimals,
            self.state.base_is_first,
        )

    async def spot_price(self) -> int:
        if not self.state.configured:
            return PRICE_UNAVAILABLE
        return await self.oracle.get_spot_price(
            self.state.pool,
            self.state.base_decimals,
            self.state.quote_decimals,
            self.state.base_is_first,
        )

    # ------------------------------------------------------------------ #
    # Runtime settings
    # ------------------------------------------------------------------ #
    def set_twap_interval(self, seconds: int) -> None:
        self.state.settings.twap_interval = validate_twap_interval(seconds)

    def set_cooldown(self, seconds: int) -> None:
        self.state.settings.cooldown_seconds = validate_cooldown(seconds)

    def set_max_slippage(self, bps: int) -> GridConfiguration:
        """Tighten or loosen the slippage bound; trigger prices are unaffected so levels survive."""
        config = self.require_configured()
        updated = parse_configuration(
            {**config.model_dump(), 'max_slippage_bps': validate_slippage(bps)}
        )
        self.state.configuration = updated
        return updated
