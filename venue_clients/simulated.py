"""
In-memory venue and asset ledger.

Used for paper runs and tests: pools keep a tick accumulator driven by an
injectable clock, and swaps settle at the current pool price minus the fee
tier by pulling funds through the ledger's allowance mechanism.
"""

from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from helpers.unified_logger import get_venue_logger

from .base_client import BaseAssetLedger, BaseVenueClient
from .base_models import PoolSlot, SwapParams, TransferError, VenueError
from .tick_math import get_sqrt_ratio_at_tick, price_ratio_from_sqrt, sort_assets

Clock = Callable[[], int]
SwapHook = Callable[[SwapParams], Awaitable[None]]

FEE_DENOMINATOR = 1_000_000
# Configured pools start with this much flat tick history so a TWAP is
# available immediately
DEFAULT_POOL_HISTORY_SECONDS = 3600


def wall_clock() -> int:
    return int(time.time())


class InMemoryAssetLedger(BaseAssetLedger):
    """Strict balance/allowance book keyed by (asset, account)."""

    def __init__(self, decimals: Optional[Dict[str, int]] = None) -> None:
        self._decimals: Dict[str, int] = dict(decimals or {})
        self._balances: Dict[Tuple[str, str], int] = defaultdict(int)
        self._allowances: Dict[Tuple[str, str, str], int] = defaultdict(int)

    # ------------------------------------------------------------------ #
    # Setup helpers
    # ------------------------------------------------------------------ #
    def register_asset(self, asset: str, decimals: int) -> None:
        self._decimals[asset] = decimals

    def mint(self, asset: str, account: str, amount: int) -> None:
        if amount < 0:
            raise TransferError("Cannot mint a negative amount")
        self._balances[(asset, account)] += amount

    def balance(self, asset: str, account: str) -> int:
        """Synchronous balance lookup for setup and assertions."""
        return self._balances[(asset, account)]

    # ------------------------------------------------------------------ #
    # BaseAssetLedger
    # ------------------------------------------------------------------ #
    async def balance_of(self, asset: str, account: str) -> int:
        return self._balances[(asset, account)]

    async def decimals(self, asset: str) -> int:
        if asset not in self._decimals:
            raise TransferError(f"Unknown asset {asset}")
        return self._decimals[asset]

    async def allowance(self, asset: str, owner: str, spender: str) -> int:
        return self._allowances[(asset, owner, spender)]

    async def approve(self, asset: str, owner: str, spender: str, amount: int) -> None:
        if amount < 0:
            raise TransferError("Allowance cannot be negative")
        self._allowances[(asset, owner, spender)] = amount

    async def transfer(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        self._move(asset, sender, recipient, amount)

    async def transfer_from(
        self,
        asset: str,
        spender: str,
        owner: str,
        recipient: str,
        amount: int,
    ) -> None:
        """Move funds on behalf of ``owner`` using ``spender``'s allowance."""
        key = (asset, owner, spender)
        if self._allowances[key] < amount:
            raise TransferError(
                f"Allowance {self._allowances[key]} below requested {amount} for {asset}"
            )
        self._move(asset, owner, recipient, amount)
        self._allowances[key] -= amount

    def _move(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        if amount < 0:
            raise TransferError("Transfer amount cannot be negative")
        if self._balances[(asset, sender)] < amount:
            raise TransferError(
                f"Insufficient {asset} balance for {sender}: "
                f"{self._balances[(asset, sender)]} < {amount}"
            )
        self._balances[(asset, sender)] -= amount
        self._balances[(asset, recipient)] += amount


@dataclass
class SimulatedPool:
    """Single pool with a piecewise-constant tick history."""

    pool_id: str
    token0: str
    token1: str
    fee: int
    tick: int
    # (timestamp, tick_cumulative at timestamp, tick in effect from timestamp)
    observations: List[Tuple[int, int, int]] = field(default_factory=list)

    def cumulative_at(self, timestamp: int) -> int:
        if not self.observations or timestamp < self.observations[0][0]:
            raise VenueError("OLD: observation window not available")
        for obs_time, cumulative, tick in reversed(self.observations):
            if obs_time <= timestamp:
                return cumulative + tick * (timestamp - obs_time)
        raise VenueError("OLD: observation window not available")

    def update_tick(self, tick: int, now: int) -> None:
        cumulative = self.cumulative_at(now)
        self.observations.append((now, cumulative, tick))
        self.tick = tick


class SimulatedVenue(BaseVenueClient):
    """
    Venue backed by ``SimulatedPool`` objects and an ``InMemoryAssetLedger``.

    Swaps pull ``amount_in`` from the swap recipient (the router's caller)
    through the router allowance and pay out of the pool's own balance.

    Test hooks:
        fail_next_swap: message to raise on the next swap
        output_override: amount reported (and paid) regardless of price,
            skipping the minimum-output check like a compromised venue would
        swap_hook: coroutine awaited at the start of every swap
    """

    def __init__(
        self,
        ledger: InMemoryAssetLedger,
        clock: Optional[Clock] = None,
        router_address: str = "simulated-router",
        config: Optional[Dict] = None,
    ) -> None:
        super().__init__(config)
        self.ledger = ledger
        self.clock: Clock = clock or wall_clock
        self.router_address = router_address
        self._pools: Dict[str, SimulatedPool] = {}
        self.logger = get_venue_logger("simulated", router=router_address)

        self.fail_next_swap: Optional[str] = None
        self.output_override: Optional[int] = None
        self.swap_hook: Optional[SwapHook] = None
        self.swaps: List[SwapParams] = []

    def get_venue_name(self) -> str:
        return "simulated"

    def get_router_address(self) -> str:
        return self.router_address

    def get_asset_ledger(self) -> InMemoryAssetLedger:
        return self.ledger

    @classmethod
    def from_config(cls, config: Dict) -> "SimulatedVenue":
        """
        Build a venue from a ``venue:`` config section.

        Example section:
            assets: {WETH: 18, USDC: 6}
            pools: [{asset_a: WETH, asset_b: USDC, fee: 3000, tick: 200311, history_seconds: 3600}]
            balances: [{asset: USDC, account: grid-engine, amount: 5000000000}]
        """
        ledger = InMemoryAssetLedger(decimals=config.get("assets") or {})
        venue = cls(
            ledger,
            router_address=config.get("router_address", "simulated-router"),
            config=config,
        )
        for pool in config.get("pools") or []:
            venue.create_pool(
                pool["asset_a"],
                pool["asset_b"],
                int(pool["fee"]),
                int(pool["tick"]),
                created_at=venue.clock() - int(pool.get("history_seconds", DEFAULT_POOL_HISTORY_SECONDS)),
            )
            pool_id = venue.pool_key(pool["asset_a"], pool["asset_b"], int(pool["fee"]))
            for asset, amount in (pool.get("reserves") or {}).items():
                ledger.mint(asset, pool_id, int(amount))
        for entry in config.get("balances") or []:
            ledger.mint(entry["asset"], entry["account"], int(entry["amount"]))
        return venue

    # ------------------------------------------------------------------ #
    # Pool management
    # ------------------------------------------------------------------ #
    @staticmethod
    def pool_key(asset_a: str, asset_b: str, fee: int) -> str:
        token0, token1 = sort_assets(asset_a, asset_b)
        return f"{token0}/{token1}/{fee}"

    def create_pool(
        self,
        asset_a: str,
        asset_b: str,
        fee: int,
        tick: int,
        created_at: Optional[int] = None,
    ) -> str:
        token0, token1 = sort_assets(asset_a, asset_b)
        pool_id = self.pool_key(asset_a, asset_b, fee)
        start = self.clock() if created_at is None else created_at
        self._pools[pool_id] = SimulatedPool(
            pool_id=pool_id,
            token0=token0,
            token1=token1,
            fee=fee,
            tick=tick,
            observations=[(start, 0, tick)],
        )
        self.logger.debug(f"Pool {pool_id} created at tick {tick}")
        return pool_id

    def set_tick(self, pool_id: str, tick: int) -> None:
        self._require_pool(pool_id).update_tick(tick, self.clock())

    def pool(self, pool_id: str) -> SimulatedPool:
        return self._require_pool(pool_id)

    def _require_pool(self, pool_id: str) -> SimulatedPool:
        pool = self._pools.get(pool_id)
        if pool is None:
            raise VenueError(f"Unknown pool {pool_id}")
        return pool

    # ------------------------------------------------------------------ #
    # BaseVenueClient
    # ------------------------------------------------------------------ #
    async def observe(self, pool: str, seconds_agos: Sequence[int]) -> List[int]:
        target = self._require_pool(pool)
        now = self.clock()
        return [target.cumulative_at(now - seconds_ago) for seconds_ago in seconds_agos]

    async def slot0(self, pool: str) -> PoolSlot:
        target = self._require_pool(pool)
        return PoolSlot(sqrt_price_x96=get_sqrt_ratio_at_tick(target.tick), tick=target.tick)

    async def get_pool(self, asset_a: str, asset_b: str, fee: int) -> Optional[str]:
        pool_id = self.pool_key(asset_a, asset_b, fee)
        return pool_id if pool_id in self._pools else None

    def quote_exact_input(self, pool: SimulatedPool, token_in: str, amount_in: int) -> int:
        """Output for ``amount_in`` at the current tick after the fee tier."""
        amount_after_fee = amount_in * (FEE_DENOMINATOR - pool.fee) // FEE_DENOMINATOR
        ratio, denominator = price_ratio_from_sqrt(get_sqrt_ratio_at_tick(pool.tick))
        if token_in == pool.token0:
            return amount_after_fee * ratio // denominator
        return amount_after_fee * denominator // ratio

    async def exact_input_single(self, params: SwapParams) -> int:
        if self.swap_hook is not None:
            await self.swap_hook(params)

        if params.deadline < self.clock():
            raise VenueError("Transaction too old")

        pool = self._require_pool(self.pool_key(params.token_in, params.token_out, params.fee))

        if self.fail_next_swap is not None:
            message = self.fail_next_swap
            self.fail_next_swap = None
            self.logger.warning(f"Injected swap failure: {message}")
            raise VenueError(message)

        if self.output_override is not None:
            amount_out = self.output_override
        else:
            amount_out = self.quote_exact_input(pool, params.token_in, params.amount_in)
            if amount_out < params.amount_out_minimum:
                raise VenueError("Too little received")

        # Both legs must be able to settle before either moves
        reserve = self.ledger.balance(params.token_out, pool.pool_id)
        if reserve < amount_out:
            raise VenueError(f"Insufficient liquidity: pool holds {reserve} {params.token_out}, owes {amount_out}")

        await self.ledger.transfer_from(
            params.token_in,
            self.router_address,
            params.recipient,
            pool.pool_id,
            params.amount_in,
        )
        await self.ledger.transfer(params.token_out, pool.pool_id, params.recipient, amount_out)
        self.swaps.append(params)
        self.logger.debug(
            f"Swap {params.amount_in} {params.token_in} -> {amount_out} {params.token_out} "
            f"via {pool.pool_id} at tick {pool.tick}"
        )
        return amount_out
