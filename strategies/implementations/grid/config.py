"""
Grid Engine Configuration

Pydantic models for grid configuration and runtime settings.
Prices are integers scaled by 1e18; order sizes are integers in each
asset's smallest unit.
"""

from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import ConfigValidationError, InvalidIntervalError

MIN_LEVEL_COUNT = 2
MAX_LEVEL_COUNT = 100
MAX_SLIPPAGE_BPS = 1000

MIN_TWAP_INTERVAL = 10
MAX_TWAP_INTERVAL = 3600
DEFAULT_TWAP_INTERVAL = 300

MAX_COOLDOWN_SECONDS = 86400
DEFAULT_COOLDOWN_SECONDS = 300

DEFAULT_SWAP_DEADLINE_SECONDS = 300


class GridConfiguration(BaseModel):
    """Immutable description of one grid. Replacing it invalidates all levels."""

    model_config = ConfigDict(frozen=True, extra='forbid')

    base_asset: str = Field(..., min_length=1, description="Asset bought on buy levels")
    quote_asset: str = Field(..., min_length=1, description="Asset spent on buy levels")
    lower_price: int = Field(..., gt=0, description="Lowest trigger price (1e18-scaled)")
    upper_price: int = Field(..., gt=0, description="Highest trigger price (1e18-scaled)")
    level_count: int = Field(
        ...,
        ge=MIN_LEVEL_COUNT,
        le=MAX_LEVEL_COUNT,
        description="Number of trigger levels, bounds included",
    )
    base_order_size: int = Field(..., gt=0, description="Base amount sold per sell level")
    quote_order_size: int = Field(..., gt=0, description="Quote amount spent per buy level")
    fee_tier: int = Field(..., gt=0, description="Venue fee tier selecting the pool")
    max_slippage_bps: int = Field(
        ...,
        gt=0,
        le=MAX_SLIPPAGE_BPS,
        description="Maximum tolerated output shortfall in basis points",
    )

    @model_validator(mode='after')
    def validate_bounds(self) -> 'GridConfiguration':
        """Price bounds must be ordered and the pair must be two distinct assets."""
        if self.lower_price >= self.upper_price:
            raise ValueError("lower_price must be below upper_price")
        if self.base_asset == self.quote_asset:
            raise ValueError("base_asset and quote_asset must differ")
        return self


class EngineSettings(BaseModel):
    """Operator-tunable runtime settings, independent of the level set."""

    model_config = ConfigDict(validate_assignment=True, extra='forbid')

    twap_interval: int = Field(
        DEFAULT_TWAP_INTERVAL,
        ge=MIN_TWAP_INTERVAL,
        le=MAX_TWAP_INTERVAL,
        description="TWAP window in seconds",
    )
    cooldown_seconds: int = Field(
        DEFAULT_COOLDOWN_SECONDS,
        ge=0,
        le=MAX_COOLDOWN_SECONDS,
        description="Minimum time between two firings of the same level",
    )
    swap_deadline_seconds: int = Field(
        DEFAULT_SWAP_DEADLINE_SECONDS,
        gt=0,
        description="Staleness bound passed to the venue with every swap",
    )


def parse_configuration(
    config: Union[GridConfiguration, Mapping[str, Any]],
) -> GridConfiguration:
    """
    Validate a configuration, converting pydantic errors to ``ConfigValidationError``.

    Instances are re-validated from their field values so a model built with
    ``model_construct`` cannot bypass the invariants.
    """
    data = config.model_dump() if isinstance(config, GridConfiguration) else dict(config)
    try:
        return GridConfiguration.model_validate(data)
    except ValidationError as exc:
        raise ConfigValidationError(f"Invalid grid configuration: {exc}") from exc


def validate_twap_interval(seconds: int) -> int:
    if seconds == 0 or not MIN_TWAP_INTERVAL <= seconds <= MAX_TWAP_INTERVAL:
        raise InvalidIntervalError(
            f"TWAP interval must be within [{MIN_TWAP_INTERVAL}, {MAX_TWAP_INTERVAL}] seconds, got {seconds}"
        )
    return seconds


def validate_cooldown(seconds: int) -> int:
    if not 0 <= seconds <= MAX_COOLDOWN_SECONDS:
        raise ConfigValidationError(
            f"Cooldown must be within [0, {MAX_COOLDOWN_SECONDS}] seconds, got {seconds}"
        )
    return seconds


def validate_slippage(bps: int) -> int:
    if not 0 < bps <= MAX_SLIPPAGE_BPS:
        raise ConfigValidationError(
            f"Slippage must be within (0, {MAX_SLIPPAGE_BPS}] bps, got {bps}"
        )
    return bps


class GridStrategyConfig(BaseModel):
    """
    Everything needed to stand up a grid engine: identities, venue, runtime
    settings and (optionally) the grid to configure on startup.
    """

    model_config = ConfigDict(extra='forbid')

    owner: str = Field(..., min_length=1, description="Identity allowed to call privileged operations")
    account: str = Field(..., min_length=1, description="Account holding the engine's assets")
    venue: str = Field('simulated', description="Venue name registered with VenueFactory")
    settings: EngineSettings = Field(default_factory=EngineSettings)
    grid: Optional[GridConfiguration] = None

    @property
    def pair(self) -> str:
        if self.grid is None:
            return 'unconfigured'
        return f"{self.grid.base_asset}/{self.grid.quote_asset}"
