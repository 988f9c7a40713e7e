"""
Execution controller for the grid engine.

Turns triggered levels into bounded-slippage swaps. Each level commits on
its own: an unfunded level is skipped, a failed venue call leaves the level
untouched, and only a post-swap slippage violation aborts the whole pass.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from venue_clients.base_client import BaseAssetLedger, BaseVenueClient
from venue_clients.base_models import SwapParams, capture_venue_call, describe_amount
from venue_clients.tick_math import PRICE_PRECISION

from .config import GridConfiguration
from .errors import SlippageViolationError
from .models import ExecutionRecord, GridLevel, GridState, LevelSide, PassResult

MAX_LEVELS_PER_PASS = 10
BPS_DENOMINATOR = 10_000


def expected_output(
    side: LevelSide,
    amount_in: int,
    price: int,
    base_decimals: int,
    quote_decimals: int,
) -> int:
    """
    Output implied by ``price`` for ``amount_in`` of the input asset.

    Buys spend quote for base, sells spend base for quote; the result is
    rescaled by the decimal difference between the two assets.
    """
    if side is LevelSide.BUY:
        amount_out = amount_in * PRICE_PRECISION // price
        if base_decimals > quote_decimals:
            return amount_out * 10 ** (base_decimals - quote_decimals)
        return amount_out // 10 ** (quote_decimals - base_decimals)

    amount_out = amount_in * price // PRICE_PRECISION
    if base_decimals > quote_decimals:
        return amount_out // 10 ** (base_decimals - quote_decimals)
    return amount_out * 10 ** (quote_decimals - base_decimals)


def minimum_output(expected: int, max_slippage_bps: int) -> int:
    return expected * (BPS_DENOMINATOR - max_slippage_bps) // BPS_DENOMINATOR


def realized_price(base_amount: int, quote_amount: int, base_decimals: int, quote_decimals: int) -> int:
    """Quote-per-base price actually obtained, 1e18-scaled (0 for an empty base leg)."""
    if base_amount == 0:
        return 0
    return (
        quote_amount * PRICE_PRECISION * 10 ** base_decimals
        // (base_amount * 10 ** quote_decimals)
    )


@dataclass(frozen=True)
class SwapPlan:
    """Everything needed to submit and verify one level's swap."""
    level_index: int
    side: LevelSide
    asset_in: str
    asset_out: str
    amount_in: int
    expected_out: int
    min_out: int


class ExecutionController:
    """Executes triggered levels through the venue for the engine account."""

    def __init__(
        self,
        state: GridState,
        venue: BaseVenueClient,
        ledger: BaseAssetLedger,
        account: str,
        logger,
    ) -> None:
        self.state = state
        self.venue = venue
        self.ledger = ledger
        self.account = account
        self.logger = logger

    def plan_swap(self, index: int, level: GridLevel, price: int) -> SwapPlan:
        config: GridConfiguration = self.state.configuration
        if level.is_buy:
            asset_in, asset_out, amount_in = config.quote_asset, config.base_asset, config.quote_order_size
        else:
            asset_in, asset_out, amount_in = config.base_asset, config.quote_asset, config.base_order_size

        expected = expected_output(
            level.side,
            amount_in,
            price,
            self.state.base_decimals,
            self.state.quote_decimals,
        )
        return SwapPlan(
            level_index=index,
            side=level.side,
            asset_in=asset_in,
            asset_out=asset_out,
            amount_in=amount_in,
            expected_out=expected,
            min_out=minimum_output(expected, config.max_slippage_bps),
        )

    async def has_funds_for(self, level: GridLevel) -> bool:
        """Balance pre-check shared by the check phase and every pass."""
        config = self.state.configuration
        if level.is_buy:
            asset, required = config.quote_asset, config.quote_order_size
        else:
            asset, required = config.base_asset, config.base_order_size
        return await self.ledger.balance_of(asset, self.account) >= required

    async def execute_pass(
        self,
        indices: Sequence[int],
        price: int,
        now: int,
        is_eligible: Callable[[int], bool],
    ) -> PassResult:
        """
        Execute candidate levels until ``MAX_LEVELS_PER_PASS`` have reached the venue.

        Out-of-range, ineligible and unfunded candidates do not count toward
        the bound; candidates left after it is reached wait for the next pass.

        ``is_eligible`` is evaluated immediately before each level runs so
        earlier executions in the same pass are taken into account.

        Raises:
            SlippageViolationError: The venue under-delivered. Level state and
                the lifetime counter are restored to their values at the start
                of the pass and no records are returned.
        """
        result = PassResult()
        snapshot = self.state.snapshot_levels()

        attempted = 0
        for index in indices:
            if attempted >= MAX_LEVELS_PER_PASS:
                break
            if not 0 <= index < len(self.state.levels) or not is_eligible(index):
                result.ignored.append(index)
                continue
            if not await self.has_funds_for(self.state.levels[index]):
                self.logger.log(f"Grid: level {index} skipped, insufficient balance", "DEBUG")
                result.skipped_unfunded.append(index)
                continue

            attempted += 1

            try:
                record = await self._execute_level(index, price, now, result)
            except SlippageViolationError:
                self.state.restore_levels(snapshot)
                raise

            if record is not None:
                result.records.append(record)

        return result

    async def _execute_level(
        self,
        index: int,
        price: int,
        now: int,
        result: PassResult,
    ) -> Optional[ExecutionRecord]:
        level = self.state.levels[index]
        plan = self.plan_swap(index, level, price)

        config = self.state.configuration
        params = SwapParams(
            token_in=plan.asset_in,
            token_out=plan.asset_out,
            fee=config.fee_tier,
            recipient=self.account,
            deadline=now + self.state.settings.swap_deadline_seconds,
            amount_in=plan.amount_in,
            amount_out_minimum=plan.min_out,
        )

        router = self.venue.get_router_address()
        try:
            swap = await capture_venue_call(
                self.ledger.approve(plan.asset_in, self.account, router, plan.amount_in)
            )
            if swap.success:
                swap = await capture_venue_call(self.venue.exact_input_single(params))
        finally:
            await self.ledger.approve(plan.asset_in, self.account, router, 0)

        if not swap.success or not isinstance(swap.value, int) or swap.value < 0:
            self.logger.log(
                f"Grid: level {index} swap failed: {swap.error or f'invalid output {swap.value!r}'}",
                "WARNING",
            )
            result.failed.append(index)
            return None

        amount_out = swap.value
        if amount_out < plan.min_out:
            raise SlippageViolationError(index, amount_out, plan.min_out)

        level.side = level.side.flipped()
        level.last_executed = now
        self.state.total_executions += 1

        if plan.side is LevelSide.BUY:
            base_amount, quote_amount = amount_out, plan.amount_in
        else:
            base_amount, quote_amount = plan.amount_in, amount_out

        record = ExecutionRecord(
            level_index=index,
            asset_in=plan.asset_in,
            asset_out=plan.asset_out,
            amount_in=plan.amount_in,
            amount_out=amount_out,
            execution_price=realized_price(
                base_amount,
                quote_amount,
                self.state.base_decimals,
                self.state.quote_decimals,
            ),
            timestamp=now,
        )
        self.logger.log(
            f"Grid: level {index} {plan.side.value} filled "
            f"{describe_amount(plan.amount_in, self.decimals_of(plan.asset_in))} {plan.asset_in} -> "
            f"{describe_amount(amount_out, self.decimals_of(plan.asset_out))} {plan.asset_out}",
            "INFO",
        )
        return record

    def decimals_of(self, asset: str) -> int:
        if asset == self.state.configuration.base_asset:
            return self.state.base_decimals
        return self.state.quote_decimals
