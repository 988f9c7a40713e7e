"""GridStrategy surface: permissions, funds, guard, events and status."""

import pytest

from conftest import (
    ACCOUNT,
    BASE,
    E18,
    ONE_USDC,
    ONE_WETH,
    OWNER,
    QUOTE,
    TWAP,
    grid_config,
    move_price,
    ready_strategy,
)
from strategies import StrategyFactory
from strategies.implementations.grid import GridStrategy, GridStrategyConfig
from strategies.implementations.grid.config import EngineSettings
from strategies.implementations.grid.errors import (
    ConfigValidationError,
    GridPermissionError,
    GridStateError,
    InsufficientBalanceError,
    ReentrancyError,
)
from strategies.implementations.grid.models import LevelSide

STRANGER = "someone-else"


# ---------------------------------------------------------------------------
# Permissions
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize(
    "call",
    [
        lambda s: s.configure(STRANGER, grid_config()),
        lambda s: s.initialize_levels(STRANGER),
        lambda s: s.execute_grid(STRANGER),
        lambda s: s.deposit(STRANGER, QUOTE, ONE_USDC),
        lambda s: s.withdraw(STRANGER, QUOTE, ONE_USDC),
        lambda s: s.emergency_withdraw(STRANGER),
    ],
)
async def test_async_privileged_calls_reject_non_owner(strategy, call):
    with pytest.raises(GridPermissionError):
        await call(strategy)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "call",
    [
        lambda s: s.pause(STRANGER),
        lambda s: s.unpause(STRANGER),
        lambda s: s.set_max_slippage(STRANGER, 50),
        lambda s: s.set_cooldown(STRANGER, 60),
        lambda s: s.set_twap_interval(STRANGER, 600),
        lambda s: s.activate_level(STRANGER, 0),
        lambda s: s.deactivate_level(STRANGER, 0),
        lambda s: s.reset_level_cooldown(STRANGER, 0),
    ],
)
async def test_runtime_controls_reject_non_owner(strategy, call):
    await ready_strategy(strategy)
    with pytest.raises(GridPermissionError):
        call(strategy)
    assert strategy.is_paused() is False


@pytest.mark.asyncio
async def test_automation_is_open_to_any_caller(strategy, venue, clock):
    await ready_strategy(strategy)
    move_price(venue, clock, 1960)

    # check/perform take no caller identity
    check = await strategy.check_upkeep()
    result = await strategy.perform_upkeep(check.perform_data)

    assert result.executed_count == 1


# ---------------------------------------------------------------------------
# Funds
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_deposit_moves_owner_funds_to_account(strategy, ledger):
    balance = await strategy.deposit(OWNER, QUOTE, 500 * ONE_USDC)

    assert balance == 2_500 * ONE_USDC
    assert ledger.balance(QUOTE, ACCOUNT) == 2_500 * ONE_USDC
    assert ledger.balance(QUOTE, OWNER) == 9_500 * ONE_USDC


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -1])
async def test_deposit_rejects_non_positive_amount(strategy, amount):
    with pytest.raises(ConfigValidationError):
        await strategy.deposit(OWNER, QUOTE, amount)


@pytest.mark.asyncio
async def test_withdraw_returns_funds_to_owner(strategy, ledger):
    remaining = await strategy.withdraw(OWNER, BASE, ONE_WETH // 4)

    assert remaining == 3 * ONE_WETH // 4
    assert ledger.balance(BASE, OWNER) == 10 * ONE_WETH + ONE_WETH // 4


@pytest.mark.asyncio
async def test_withdraw_more_than_balance_fails_without_transfer(strategy, ledger):
    with pytest.raises(InsufficientBalanceError):
        await strategy.withdraw(OWNER, QUOTE, 2_001 * ONE_USDC)

    assert ledger.balance(QUOTE, ACCOUNT) == 2_000 * ONE_USDC


@pytest.mark.asyncio
async def test_emergency_withdraw_requires_configuration(strategy):
    with pytest.raises(GridStateError):
        await strategy.emergency_withdraw(OWNER)


@pytest.mark.asyncio
async def test_emergency_withdraw_pauses_and_sweeps(strategy, venue, ledger, clock, notifier):
    await ready_strategy(strategy)

    swept = await strategy.emergency_withdraw(OWNER)

    assert swept == {BASE: ONE_WETH, QUOTE: 2_000 * ONE_USDC}
    assert strategy.is_paused() is True
    assert ledger.balance(BASE, ACCOUNT) == 0
    assert ledger.balance(QUOTE, ACCOUNT) == 0
    assert ledger.balance(BASE, OWNER) == 11 * ONE_WETH

    move_price(venue, clock, 1960)
    assert (await strategy.check_upkeep()).upkeep_needed is False
    assert notifier.of_type("emergency_withdraw")[0]["level"] == "WARNING"


# ---------------------------------------------------------------------------
# Direct execution
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_execute_grid_fires_all_eligible_levels(strategy, venue, clock):
    await ready_strategy(strategy)
    move_price(venue, clock, 1900)

    result = await strategy.execute_grid(OWNER)

    assert [record.level_index for record in result.records] == [4, 5]
    assert strategy.get_level(4).side is LevelSide.SELL
    assert strategy.get_level(5).side is LevelSide.SELL
    assert strategy.total_executions == 2


@pytest.mark.asyncio
async def test_execute_grid_requires_initialized_grid(strategy):
    await strategy.configure(OWNER, grid_config())

    with pytest.raises(GridStateError):
        await strategy.execute_grid(OWNER)


# ---------------------------------------------------------------------------
# Reentrancy
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_venue_reentry_is_rejected_and_level_untouched(strategy, venue, ledger, clock):
    await ready_strategy(strategy)
    move_price(venue, clock, 1960)
    attempts = []

    async def reenter(params):
        try:
            await strategy.deposit(OWNER, QUOTE, ONE_USDC)
        except ReentrancyError as exc:
            attempts.append(exc)
            raise

    venue.swap_hook = reenter
    result = await strategy.perform_upkeep([5])

    assert len(attempts) == 1
    assert result.failed == [5]
    assert strategy.get_level(5).side is LevelSide.BUY
    assert ledger.balance(QUOTE, ACCOUNT) == 2_000 * ONE_USDC
    assert strategy._guard.locked is False


@pytest.mark.asyncio
async def test_guard_released_after_failure(strategy):
    with pytest.raises(GridPermissionError):
        await strategy.deposit(STRANGER, QUOTE, ONE_USDC)

    assert strategy._guard.locked is False
    assert await strategy.deposit(OWNER, QUOTE, ONE_USDC) == 2_001 * ONE_USDC


@pytest.mark.asyncio
async def test_guarded_call_while_locked_raises(strategy):
    strategy._guard.enter("perform_upkeep")
    try:
        with pytest.raises(ReentrancyError):
            await strategy.withdraw(OWNER, QUOTE, ONE_USDC)
    finally:
        strategy._guard.exit()


# ---------------------------------------------------------------------------
# Events and listeners
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_execution_emits_event_and_dispatches_listener(strategy, venue, clock, notifier):
    received = []
    strategy.add_listener("level_executed", received.append)
    await ready_strategy(strategy)
    move_price(venue, clock, 1960)

    await strategy.perform_upkeep([5])

    events = notifier.of_type("level_executed")
    assert len(events) == 1
    assert events[0]["payload"]["level_index"] == 5
    assert events[0]["payload"]["asset_in"] == QUOTE
    assert [record.level_index for record in received] == [5]


@pytest.mark.asyncio
async def test_failing_listener_does_not_break_pass(strategy, venue, clock):
    def explode(record):
        raise RuntimeError("listener bug")

    strategy.add_listener("level_executed", explode)
    await ready_strategy(strategy)
    move_price(venue, clock, 1960)

    result = await strategy.perform_upkeep([5])

    assert result.executed_count == 1


@pytest.mark.asyncio
async def test_admin_calls_emit_events(strategy, notifier):
    await ready_strategy(strategy)
    strategy.set_max_slippage(OWNER, 250)
    strategy.pause(OWNER)

    assert notifier.of_type("grid_configured")
    assert notifier.of_type("levels_initialized")[0]["payload"]["buy_levels"] == 6
    assert notifier.of_type("slippage_updated")[0]["payload"]["max_slippage_bps"] == 250
    assert notifier.of_type("grid_paused")[0]["level"] == "WARNING"
    assert strategy.get_configuration().max_slippage_bps == 250


# ---------------------------------------------------------------------------
# Status and lifecycle
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_status_before_configuration(strategy):
    status = await strategy.get_status()

    assert status["configured"] is False
    assert status["initialized"] is False
    assert status["levels"] == []
    assert "balances" not in status


@pytest.mark.asyncio
async def test_status_after_initialization(strategy):
    await ready_strategy(strategy)

    status = await strategy.get_status()

    assert status["configured"] is True
    assert status["initialized"] is True
    assert status["paused"] is False
    assert len(status["levels"]) == 10
    assert status["balances"] == {BASE: str(ONE_WETH), QUOTE: str(2_000 * ONE_USDC)}
    assert 1990 * E18 < int(status["current_price"]) < 2010 * E18
    assert status["settings"]["twap_interval"] == TWAP


@pytest.mark.asyncio
async def test_execute_strategy_waits_then_executes(strategy, venue, clock):
    await ready_strategy(strategy)

    assert await strategy.should_execute() is False
    assert (await strategy.execute_strategy())["action"] == "wait"

    move_price(venue, clock, 1960)
    assert await strategy.should_execute() is True
    outcome = await strategy.execute_strategy()

    assert outcome["action"] == "executed"
    assert outcome["executed"] == [5]
    assert outcome["failed"] == []


@pytest.mark.asyncio
async def test_initialize_applies_startup_grid(venue, ledger, clock, notifier):
    config = GridStrategyConfig(
        owner=OWNER,
        account=ACCOUNT,
        settings=EngineSettings(twap_interval=TWAP),
        grid=grid_config(),
    )
    strategy = GridStrategy(config, venue, ledger, clock=clock, event_notifier=notifier)

    await strategy.initialize()

    assert strategy.is_initialized is True
    assert len(strategy.get_levels()) == 10
    assert strategy.get_strategy_name() == "Grid Trading"


@pytest.mark.asyncio
async def test_strategies_keep_independent_settings(venue, ledger, clock, notifier):
    settings = EngineSettings(cooldown_seconds=120)
    config = GridStrategyConfig(owner=OWNER, account=ACCOUNT, settings=settings)
    strategy = GridStrategy(config, venue, ledger, clock=clock, event_notifier=notifier)

    strategy.set_cooldown(OWNER, 900)

    assert strategy.grid_state.settings.cooldown_seconds == 900
    assert settings.cooldown_seconds == 120


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def test_factory_builds_grid_strategy_from_mapping(venue, clock, notifier):
    strategy = StrategyFactory.create_strategy(
        "GRID",
        {"owner": OWNER, "account": ACCOUNT},
        venue,
        clock=clock,
        event_notifier=notifier,
    )

    assert isinstance(strategy, GridStrategy)
    assert strategy.ledger is venue.get_asset_ledger()


def test_factory_rejects_unknown_strategy(venue):
    with pytest.raises(ValueError, match="Unsupported strategy"):
        StrategyFactory.create_strategy("martingale", {}, venue)


def test_factory_requires_venue():
    with pytest.raises(ValueError, match="requires a venue"):
        StrategyFactory.create_strategy("grid", {"owner": OWNER, "account": ACCOUNT}, None)


def test_factory_info_lists_required_fields():
    info = StrategyFactory.get_strategy_info("grid")

    assert info["class"] == "GridStrategy"
    assert set(info["required_parameters"]) == {"owner", "account"}
    assert "grid" in StrategyFactory.get_supported_strategies()


def test_factory_registers_additional_strategy(venue, clock, notifier, monkeypatch):
    monkeypatch.setattr(StrategyFactory, "_strategies", dict(StrategyFactory._strategies))
    monkeypatch.setattr(StrategyFactory, "_config_models", dict(StrategyFactory._config_models))

    class PassiveGridStrategy(GridStrategy):
        """Grid that never trades on its own."""

        async def should_execute(self) -> bool:
            return False

    StrategyFactory.register_strategy("Passive", PassiveGridStrategy, GridStrategyConfig)
    strategy = StrategyFactory.create_strategy(
        "passive",
        {"owner": OWNER, "account": ACCOUNT},
        venue,
        clock=clock,
        event_notifier=notifier,
    )

    assert isinstance(strategy, PassiveGridStrategy)
    assert "passive" in StrategyFactory.get_supported_strategies()
    assert StrategyFactory.get_strategy_info("passive")["description"] == "Grid that never trades on its own."


def test_factory_refuses_non_strategy_class(monkeypatch):
    monkeypatch.setattr(StrategyFactory, "_strategies", dict(StrategyFactory._strategies))

    with pytest.raises(ValueError, match="must inherit from BaseStrategy"):
        StrategyFactory.register_strategy("broken", dict)


@pytest.mark.asyncio
async def test_removed_listener_is_not_called(strategy, venue, clock):
    received = []
    strategy.add_listener("level_executed", received.append)
    strategy.remove_listener("level_executed")
    strategy.remove_listener("never_registered")
    await ready_strategy(strategy)
    move_price(venue, clock, 1960)

    await strategy.perform_upkeep([5])

    assert received == []
