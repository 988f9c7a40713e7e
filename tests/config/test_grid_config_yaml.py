from decimal import Decimal

import pytest

from conftest import ACCOUNT, E18, OWNER, PROJECT_ROOT
from strategies.implementations.grid.errors import ConfigValidationError
from trading_config.config_yaml import (
    build_grid_strategy_config,
    dump_grid_strategy_config,
    load_config_from_yaml,
    merge_configs,
    save_config_to_yaml,
    scale_price,
    unscale_price,
    validate_config_file,
)

EXAMPLE_CONFIG = PROJECT_ROOT / "configs" / "example_grid.yml"


def test_example_config_builds():
    loaded = load_config_from_yaml(EXAMPLE_CONFIG)

    config = build_grid_strategy_config(loaded["config"], loaded["venue"], env={})

    assert loaded["strategy"] == "grid"
    assert config.owner == OWNER
    assert config.account == ACCOUNT
    assert config.venue == "simulated"
    assert config.pair == "WETH/USDC"
    assert config.grid.lower_price == 1800 * E18
    assert config.grid.upper_price == 2200 * E18
    assert config.grid.quote_order_size == 200_000_000
    assert config.settings.twap_interval == 300


def test_floats_load_as_decimal():
    loaded = load_config_from_yaml(EXAMPLE_CONFIG)

    assert loaded["config"]["grid"]["lower_price"] == Decimal("1800.0")
    assert isinstance(loaded["config"]["grid"]["level_count"], int)


def test_scale_price_truncates_to_integer():
    assert scale_price("1972.5") == 19725 * 10**17
    assert scale_price(Decimal("0.000000000000000001")) == 1
    assert scale_price("0.0000000000000000009") == 0
    assert unscale_price(2000 * E18) == Decimal(2000)


def test_scale_price_rejects_garbage():
    with pytest.raises(ConfigValidationError):
        scale_price("two thousand")


def test_identities_fall_back_to_environment():
    config = build_grid_strategy_config(
        {"twap_interval": 600},
        env={"GRID_OWNER": "env-owner", "GRID_ACCOUNT": "env-account"},
    )

    assert config.owner == "env-owner"
    assert config.account == "env-account"
    assert config.grid is None
    assert config.pair == "unconfigured"
    assert config.settings.twap_interval == 600


def test_missing_identities_are_rejected():
    with pytest.raises(ConfigValidationError):
        build_grid_strategy_config({}, env={})


def test_invalid_grid_is_rejected():
    section = {
        "owner": OWNER,
        "account": ACCOUNT,
        "grid": {
            "base_asset": "WETH",
            "quote_asset": "USDC",
            "lower_price": Decimal("2200"),
            "upper_price": Decimal("1800"),
            "level_count": 10,
            "base_order_size": 1,
            "quote_order_size": 1,
            "fee_tier": 3000,
            "max_slippage_bps": 100,
        },
    }

    with pytest.raises(ConfigValidationError):
        build_grid_strategy_config(section, env={})


def test_save_and_reload_preserves_configuration(tmp_path):
    loaded = load_config_from_yaml(EXAMPLE_CONFIG)
    original = build_grid_strategy_config(loaded["config"], loaded["venue"], env={})
    path = tmp_path / "grid.yml"

    save_config_to_yaml("grid", dump_grid_strategy_config(original), path, venue=loaded["venue"])
    reloaded = load_config_from_yaml(path)

    assert reloaded["metadata"]["created_at"]
    assert reloaded["venue"]["name"] == "simulated"
    assert build_grid_strategy_config(reloaded["config"], reloaded["venue"], env={}) == original


def test_validate_config_file(tmp_path):
    assert validate_config_file(EXAMPLE_CONFIG) == (True, None)

    missing_ok, missing_error = validate_config_file(tmp_path / "absent.yml")
    assert missing_ok is False
    assert "not found" in missing_error

    other = tmp_path / "other.yml"
    other.write_text("strategy: martingale\nconfig: {}\n", encoding="utf-8")
    assert validate_config_file(other) == (False, "Unknown strategy: martingale")

    broken = tmp_path / "broken.yml"
    broken.write_text("- just\n- a list\n", encoding="utf-8")
    ok, error = validate_config_file(broken)
    assert ok is False
    assert "YAML dictionary" in error


def test_merge_configs_skips_none_overrides():
    merged = merge_configs({"twap_interval": 300, "cooldown_seconds": 60}, {"twap_interval": 900, "cooldown_seconds": None})

    assert merged == {"twap_interval": 900, "cooldown_seconds": 60}
