"""
YAML Configuration File Support

Handles loading and saving grid engine configurations to/from YAML files.

Features:
- Load config from YAML (floats are read as Decimal)
- Save config to YAML
- Build the validated strategy config, scaling human prices to 1e18
- Config merging (file + CLI overrides)

File layout::

    strategy: grid
    version: "1.0"
    config:
      owner: operator           # or GRID_OWNER
      account: grid-engine      # or GRID_ACCOUNT
      twap_interval: 300
      cooldown_seconds: 300
      grid:
        base_asset: WETH
        quote_asset: USDC
        lower_price: 1800.0     # quote per base, human units
        upper_price: 2200.0
        level_count: 10
        base_order_size: 100000000000000000   # smallest units
        quote_order_size: 200000000
        fee_tier: 3000
        max_slippage_bps: 100
    venue:
      name: simulated
      ...                       # passed to the venue's from_config
"""

import os
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml
from pydantic import ValidationError

from strategies.implementations.grid.config import GridStrategyConfig
from strategies.implementations.grid.errors import ConfigValidationError
from venue_clients.tick_math import PRICE_PRECISION

PRICE_FIELDS = ("lower_price", "upper_price")
SETTINGS_FIELDS = ("twap_interval", "cooldown_seconds", "swap_deadline_seconds")


# ============================================================================
# YAML loader/dumper with Decimal support
# ============================================================================

class DecimalSafeLoader(yaml.SafeLoader):
    """SafeLoader that keeps floats exact."""


class DecimalSafeDumper(yaml.SafeDumper):
    """SafeDumper that writes Decimal as a plain float scalar."""


def decimal_representer(dumper, data):
    return dumper.represent_scalar('tag:yaml.org,2002:float', str(data))


def decimal_constructor(loader, node):
    return Decimal(loader.construct_scalar(node))


DecimalSafeLoader.add_constructor('tag:yaml.org,2002:float', decimal_constructor)
DecimalSafeDumper.add_representer(Decimal, decimal_representer)


# ============================================================================
# YAML Config Operations
# ============================================================================

def save_config_to_yaml(
    strategy_name: str,
    config: Dict[str, Any],
    file_path: Path,
    venue: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Save configuration to YAML file.

    Args:
        strategy_name: Name of the strategy
        config: Strategy configuration dictionary
        file_path: Path to save to
        venue: Optional venue section
    """
    full_config: Dict[str, Any] = {
        "strategy": strategy_name,
        "created_at": datetime.now().isoformat(),
        "version": "1.0",
        "config": config,
    }
    if venue is not None:
        full_config["venue"] = venue

    with open(file_path, 'w', encoding='utf-8') as f:
        yaml.dump(
            full_config,
            f,
            Dumper=DecimalSafeDumper,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
            indent=2
        )


def load_config_from_yaml(file_path: Path) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Returns:
        Dictionary with 'strategy', 'config', 'venue' and 'metadata' keys

    Raises:
        FileNotFoundError: If file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If config structure is invalid
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"Config file not found: {file_path}")

    with open(file_path, 'r', encoding='utf-8') as f:
        full_config = yaml.load(f, Loader=DecimalSafeLoader)

    if not isinstance(full_config, dict):
        raise ValueError("Invalid config file: must be a YAML dictionary")

    if "strategy" not in full_config:
        raise ValueError("Invalid config file: missing 'strategy' field")

    if not isinstance(full_config.get("config"), dict):
        raise ValueError("Invalid config file: missing 'config' section")

    venue = full_config.get("venue") or {}
    if not isinstance(venue, dict):
        raise ValueError("Invalid config file: 'venue' must be a mapping")

    return {
        "strategy": full_config["strategy"],
        "config": full_config["config"],
        "venue": venue,
        "metadata": {
            "created_at": full_config.get("created_at"),
            "version": full_config.get("version", "1.0")
        }
    }


def scale_price(value: Any) -> int:
    """Human quote-per-base price to a 1e18-scaled integer (truncated)."""
    try:
        scaled = Decimal(str(value)) * PRICE_PRECISION
    except InvalidOperation as exc:
        raise ConfigValidationError(f"Invalid price {value!r}") from exc
    return int(scaled)


def unscale_price(value: int) -> Decimal:
    return Decimal(value) / PRICE_PRECISION


def build_grid_strategy_config(
    config: Mapping[str, Any],
    venue: Optional[Mapping[str, Any]] = None,
    env: Optional[Mapping[str, str]] = None,
) -> GridStrategyConfig:
    """
    Turn a loaded ``config`` section into a validated ``GridStrategyConfig``.

    Owner and account fall back to ``GRID_OWNER``/``GRID_ACCOUNT``; prices in
    the ``grid`` block are human-readable and scaled by 1e18 here.

    Raises:
        ConfigValidationError: If required values are missing or invalid.
    """
    env = os.environ if env is None else env
    venue = venue or {}

    data: Dict[str, Any] = {
        "owner": config.get("owner") or env.get("GRID_OWNER"),
        "account": config.get("account") or env.get("GRID_ACCOUNT"),
        "venue": venue.get("name", config.get("venue", "simulated")),
        "settings": {key: int(config[key]) for key in SETTINGS_FIELDS if config.get(key) is not None},
    }

    grid = config.get("grid")
    if grid:
        grid_data = dict(grid)
        for key in PRICE_FIELDS:
            if key in grid_data:
                grid_data[key] = scale_price(grid_data[key])
        data["grid"] = grid_data

    try:
        return GridStrategyConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigValidationError(f"Invalid grid strategy configuration: {exc}") from exc


def dump_grid_strategy_config(strategy_config: GridStrategyConfig) -> Dict[str, Any]:
    """Inverse of ``build_grid_strategy_config`` for saving."""
    data: Dict[str, Any] = {
        "owner": strategy_config.owner,
        "account": strategy_config.account,
        **strategy_config.settings.model_dump(),
    }
    if strategy_config.grid is not None:
        grid = strategy_config.grid.model_dump()
        for key in PRICE_FIELDS:
            grid[key] = unscale_price(grid[key])
        data["grid"] = grid
    return data


def validate_config_file(file_path: Path) -> Tuple[bool, Optional[str]]:
    """
    Validate a config file.

    Returns:
        (is_valid, error_message)
    """
    try:
        loaded = load_config_from_yaml(file_path)
        if loaded["strategy"] != "grid":
            return False, f"Unknown strategy: {loaded['strategy']}"
        build_grid_strategy_config(loaded["config"], loaded["venue"])
        return True, None
    except (OSError, ValueError, yaml.YAMLError) as e:
        return False, str(e)


def merge_configs(base_config: Dict, overrides: Dict) -> Dict:
    """
    Merge two configurations (for CLI override support).

    ``None`` overrides leave the base value in place.
    """
    merged = base_config.copy()

    for key, value in overrides.items():
        if value is not None:
            merged[key] = value

    return merged
