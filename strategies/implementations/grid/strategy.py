"""
Grid Trading Strategy

Owns the grid aggregate and exposes the engine's surface: privileged
operator calls, read-only accessors, and the two-phase automation
interface. Inherits directly from BaseStrategy and composes the oracle,
state machine, execution controller and automation gateway.
"""

import time
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Union

from helpers.event_notifier import GridEventNotifier
from strategies.base_strategy import BaseStrategy
from venue_clients.base_client import BaseAssetLedger, BaseVenueClient
from venue_clients.base_models import describe_amount

from .automation import AutomationGateway
from .config import GridConfiguration, GridStrategyConfig
from .errors import (
    ConfigValidationError,
    GridPermissionError,
    InsufficientBalanceError,
    SlippageViolationError,
)
from .execution import ExecutionController
from .guard import NonReentrantGuard, non_reentrant
from .models import GridLevel, GridState, PassResult, UpkeepCheck
from .oracle import PriceOracleAdapter
from .state_machine import GridStateMachine


class GridStrategy(BaseStrategy):
    """
    Autonomous grid engine for one trading pair on one venue.

    Every state-mutating entry point runs under a single non-reentrancy
    guard, so a venue that calls back into the engine mid-swap is rejected.
    Privileged operations take the caller identity as their first argument
    and fail with ``GridPermissionError`` unless it is the owner.
    """

    def __init__(
        self,
        config: GridStrategyConfig,
        venue_client: BaseVenueClient,
        ledger: Optional[BaseAssetLedger] = None,
        *,
        clock: Optional[Callable[[], int]] = None,
        event_notifier: Optional[GridEventNotifier] = None,
    ):
        """
        Initialize grid strategy.

        Args:
            config: Identities, venue name, runtime settings and optional startup grid
            venue_client: Venue used for prices and swaps
            ledger: Asset ledger; defaults to the venue's own ledger
            clock: Returns the current unix time in seconds
            event_notifier: Event sink; defaults to the JSONL/Telegram notifier
        """
        super().__init__(config=config, venue_client=venue_client)

        self.venue = venue_client
        self.ledger = ledger or venue_client.get_asset_ledger()
        self.owner = config.owner
        self.account = config.account
        self.clock = clock or (lambda: int(time.time()))

        self.grid_state = GridState(settings=config.settings.model_copy())
        self._guard = NonReentrantGuard()

        self.event_notifier = event_notifier or GridEventNotifier(
            strategy="grid",
            venue=str(config.venue),
            pair=config.pair,
        )

        # Compose engine components around the shared aggregate
        self.oracle = PriceOracleAdapter(venue_client, logger=self.logger)
        self.state_machine = GridStateMachine(
            state=self.grid_state,
            venue=venue_client,
            ledger=self.ledger,
            oracle=self.oracle,
            logger=self.logger,
        )
        self.executor = ExecutionController(
            state=self.grid_state,
            venue=venue_client,
            ledger=self.ledger,
            account=self.account,
            logger=self.logger,
        )
        self.automation = AutomationGateway(
            state=self.grid_state,
            state_machine=self.state_machine,
            executor=self.executor,
            logger=self.logger,
            clock=self.clock,
        )

        settings = self.grid_state.settings
        self.logger.log("Grid engine initialized with parameters:", "INFO")
        self.logger.log(f"  - Venue: {config.venue}", "INFO")
        self.logger.log(f"  - Owner: {self.owner}", "INFO")
        self.logger.log(f"  - Account: {self.account}", "INFO")
        self.logger.log(f"  - TWAP Interval: {settings.twap_interval}s", "INFO")
        self.logger.log(f"  - Cooldown: {settings.cooldown_seconds}s", "INFO")
        self.logger.log(f"  - Swap Deadline: {settings.swap_deadline_seconds}s", "INFO")

    def _log_event(self, event_type: str, message: str, level: str = "INFO", **context: Any) -> None:
        """Emit structured grid engine event."""
        payload = {
            "event_type": event_type,
            "pool": self.grid_state.pool,
            **context,
        }
        self.logger.log(message, level.upper(), **payload)

        if self.event_notifier:
            self.event_notifier.notify(
                event_type=event_type,
                level=level.upper(),
                message=message,
                payload=payload,
            )

    def _require_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise GridPermissionError(f"Caller {caller} is not the grid owner")

    async def _initialize_strategy(self):
        """Configure and lay out the startup grid, if one was supplied."""
        startup_grid = self.config.grid
        if startup_grid is None or self.grid_state.configured:
            return
        await self.configure(self.owner, startup_grid)
        await self.initialize_levels(self.owner)

    # ------------------------------------------------------------------ #
    # Privileged configuration
    # ------------------------------------------------------------------ #
    @non_reentrant
    async def configure(
        self,
        caller: str,
        config: Union[GridConfiguration, Mapping[str, Any]],
    ) -> GridConfiguration:
        """Apply a new configuration; levels must be initialized again afterwards."""
        self._require_owner(caller)
        applied = await self.state_machine.configure(config)
        self._log_event(
            "grid_configured",
            f"Grid configured for {applied.base_asset}/{applied.quote_asset}",
            level_count=applied.level_count,
            lower_price=str(applied.lower_price),
            upper_price=str(applied.upper_price),
            fee_tier=applied.fee_tier,
        )
        return applied

    @non_reentrant
    async def initialize_levels(self, caller: str) -> List[GridLevel]:
        self._require_owner(caller)
        levels = await self.state_machine.initialize_levels()
        self._log_event(
            "levels_initialized",
            f"Grid levels initialized ({len(levels)} levels)",
            buy_levels=sum(1 for level in levels if level.is_buy),
            level_count=len(levels),
        )
        return levels

    @non_reentrant
    async def execute_grid(self, caller: str) -> PassResult:
        """
        Direct execution path: fire every currently eligible level.

        Uses the same trigger predicate and pass bound as ``perform_upkeep``.
        """
        self._require_owner(caller)
        price = await self.automation.validated_price()
        indices = self.state_machine.eligible_indices(price, self.clock())
        return await self._finish_pass(self.automation.run_pass(indices, price))

    # ------------------------------------------------------------------ #
    # Funds
    # ------------------------------------------------------------------ #
    @non_reentrant
    async def deposit(self, caller: str, asset: str, amount: int) -> int:
        """Move ``amount`` of ``asset`` from the owner into the engine account."""
        self._require_owner(caller)
        if amount <= 0:
            raise ConfigValidationError(f"Deposit amount must be positive, got {amount}")

        await self.ledger.transfer(asset, self.owner, self.account, amount)
        balance = await self.ledger.balance_of(asset, self.account)
        self._log_event(
            "deposit",
            f"Deposited {amount} {asset}",
            asset=asset,
            amount=str(amount),
            balance=str(balance),
        )
        return balance

    @non_reentrant
    async def withdraw(self, caller: str, asset: str, amount: int) -> int:
        """
        Move ``amount`` of ``asset`` from the engine account back to the owner.

        Raises:
            InsufficientBalanceError: If the account holds less than ``amount``.
        """
        self._require_owner(caller)
        if amount <= 0:
            raise ConfigValidationError(f"Withdraw amount must be positive, got {amount}")

        balance = await self.ledger.balance_of(asset, self.account)
        if balance < amount:
            raise InsufficientBalanceError(
                f"Cannot withdraw {amount} {asset}: account holds {balance}"
            )

        await self.ledger.transfer(asset, self.account, self.owner, amount)
        remaining = balance - amount
        self._log_event(
            "withdraw",
            f"Withdrew {amount} {asset}",
            asset=asset,
            amount=str(amount),
            balance=str(remaining),
        )
        return remaining

    @non_reentrant
    async def emergency_withdraw(self, caller: str) -> Dict[str, int]:
        """Pause the grid and sweep both configured assets to the owner."""
        self._require_owner(caller)
        config = self.state_machine.require_configured()
        self.grid_state.paused = True

        swept: Dict[str, int] = {}
        for asset in (config.base_asset, config.quote_asset):
            balance = await self.ledger.balance_of(asset, self.account)
            if balance > 0:
                await self.ledger.transfer(asset, self.account, self.owner, balance)
            swept[asset] = balance

        self._log_event(
            "emergency_withdraw",
            "Emergency withdraw: grid paused and balances returned to owner",
            level="WARNING",
            swept={asset: str(amount) for asset, amount in swept.items()},
        )
        return swept

    # ------------------------------------------------------------------ #
    # Privileged runtime controls
    # ------------------------------------------------------------------ #
    def pause(self, caller: str) -> None:
        self._require_owner(caller)
        self.grid_state.paused = True
        self._log_event("grid_paused", "Grid paused", level="WARNING")

    def unpause(self, caller: str) -> None:
        self._require_owner(caller)
        self.grid_state.paused = False
        self._log_event("grid_unpaused", "Grid unpaused")

    def set_max_slippage(self, caller: str, bps: int) -> None:
        self._require_owner(caller)
        self.state_machine.set_max_slippage(bps)
        self._log_event("slippage_updated", f"Max slippage set to {bps} bps", max_slippage_bps=bps)

    def set_cooldown(self, caller: str, seconds: int) -> None:
        self._require_owner(caller)
        self.state_machine.set_cooldown(seconds)
        self._log_event("cooldown_updated", f"Cooldown set to {seconds}s", cooldown_seconds=seconds)

    def set_twap_interval(self, caller: str, seconds: int) -> None:
        self._require_owner(caller)
        self.state_machine.set_twap_interval(seconds)
        self._log_event("twap_interval_updated", f"TWAP interval set to {seconds}s", twap_interval=seconds)

    def activate_level(self, caller: str, index: int) -> GridLevel:
        self._require_owner(caller)
        level = self.state_machine.activate_level(index)
        self._log_event("level_activated", f"Level {index} activated", level_index=index)
        return level

    def deactivate_level(self, caller: str, index: int) -> GridLevel:
        self._require_owner(caller)
        level = self.state_machine.deactivate_level(index)
        self._log_event("level_deactivated", f"Level {index} deactivated", level_index=index)
        return level

    def reset_level_cooldown(self, caller: str, index: int) -> GridLevel:
        self._require_owner(caller)
        level = self.state_machine.reset_level_cooldown(index)
        self._log_event("level_cooldown_reset", f"Level {index} cooldown reset", level_index=index)
        return level

    # ------------------------------------------------------------------ #
    # Automation (any caller)
    # ------------------------------------------------------------------ #
    async def check_upkeep(self) -> UpkeepCheck:
        return await self.automation.check_upkeep()

    @non_reentrant
    async def perform_upkeep(self, level_indices: Sequence[int]) -> PassResult:
        return await self._finish_pass(self.automation.perform_upkeep(level_indices))

    async def _finish_pass(self, run: Awaitable[PassResult]) -> PassResult:
        try:
            result = await run
        except SlippageViolationError as exc:
            self._log_event(
                "slippage_violation",
                f"Pass aborted: level {exc.level_index} returned {exc.amount_out} below minimum {exc.min_out}",
                level="CRITICAL",
                level_index=exc.level_index,
                amount_out=str(exc.amount_out),
                min_out=str(exc.min_out),
            )
            raise

        for record in result.records:
            self.logger.log_transaction(
                order_id=f"level-{record.level_index}",
                side=f"{record.asset_in}->{record.asset_out}",
                quantity=describe_amount(record.amount_in, self.executor.decimals_of(record.asset_in)),
                price=record.execution_price,
                status="FILLED",
            )
            self._log_event(
                "level_executed",
                f"Level {record.level_index} executed",
                **record.to_dict(),
            )
            self.dispatch_event("level_executed", record)

        if result.failed:
            self._log_event(
                "venue_failures",
                f"Venue failed for levels {result.failed}",
                level="WARNING",
                failed_levels=list(result.failed),
            )
        return result

    # ------------------------------------------------------------------ #
    # Read-only accessors
    # ------------------------------------------------------------------ #
    def get_configuration(self) -> Optional[GridConfiguration]:
        return self.grid_state.configuration

    def get_level(self, index: int) -> GridLevel:
        return self.state_machine.level(index)

    def get_levels(self) -> List[GridLevel]:
        return list(self.grid_state.levels)

    async def get_current_price(self) -> int:
        """Reference TWAP price (1e18-scaled), 0 when unavailable."""
        return await self.state_machine.current_price()

    async def get_spot_price(self) -> int:
        return await self.state_machine.spot_price()

    async def get_balances(self) -> Dict[str, int]:
        config = self.state_machine.require_configured()
        return {
            asset: await self.ledger.balance_of(asset, self.account)
            for asset in (config.base_asset, config.quote_asset)
        }

    def is_paused(self) -> bool:
        return self.grid_state.paused

    @property
    def total_executions(self) -> int:
        return self.grid_state.total_executions

    async def should_execute(self) -> bool:
        check = await self.check_upkeep()
        return check.upkeep_needed

    async def execute_strategy(self) -> Dict[str, Any]:
        """
        Run one check/perform cycle the way an external scheduler would.

        Returns:
            Dictionary with execution result
        """
        check = await self.check_upkeep()
        if not check.upkeep_needed:
            return {"action": "wait", "message": "Grid: no eligible levels"}

        result = await self.perform_upkeep(check.perform_data)
        return {
            "action": "executed",
            "executed": [record.level_index for record in result.records],
            "skipped_unfunded": list(result.skipped_unfunded),
            "failed": list(result.failed),
            "ignored": list(result.ignored),
        }

    async def get_status(self) -> Dict[str, Any]:
        """Get current engine status."""
        state = self.grid_state
        status: Dict[str, Any] = {
            "strategy": "grid",
            "configured": state.configured,
            "initialized": state.levels_initialized,
            "paused": state.paused,
            "pool": state.pool,
            "total_executions": state.total_executions,
            "settings": state.settings.model_dump(),
            "levels": [level.to_dict() for level in state.levels],
        }
        if state.configured:
            status["configuration"] = state.configuration.model_dump()
            status["current_price"] = str(await self.get_current_price())
            status["balances"] = {
                asset: str(amount) for asset, amount in (await self.get_balances()).items()
            }
        return status

    def get_strategy_name(self) -> str:
        """Get the strategy name."""
        return "Grid Trading"

    async def cleanup(self):
        """Let in-flight alerts finish before the base cleanup flushes logs."""
        await self.event_notifier.wait_pending()
        await super().cleanup()
