"""Base interfaces for liquidity venues and asset ledgers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from .base_models import PoolSlot, SwapParams


class BaseVenueClient(ABC):
    """
    Base interface for a concentrated-liquidity swap venue.

    The grid engine consumes exactly four capabilities from a venue:
        - price history (cumulative tick samples)
        - instantaneous pool state
        - pool lookup by asset pair and fee tier
        - single-pool exact-input swaps

    Implementation Pattern:
        ```python
        class MyVenue(BaseVenueClient):
            async def observe(self, pool, seconds_agos):
                ...
        ```

    Every method may raise; the engine wraps calls with
    ``capture_venue_call`` and treats any exception as a venue failure.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}

    @abstractmethod
    def get_venue_name(self) -> str:
        """Venue identifier (e.g. ``"simulated"``)."""
        pass

    @abstractmethod
    def get_router_address(self) -> str:
        """Account the engine must approve before swapping."""
        pass

    @abstractmethod
    def get_asset_ledger(self) -> "BaseAssetLedger":
        """Custody primitives for the assets traded on this venue."""
        pass

    @abstractmethod
    async def observe(self, pool: str, seconds_agos: Sequence[int]) -> List[int]:
        """
        Return cumulative tick values for each requested lookback.

        Args:
            pool: Pool identifier from ``get_pool``
            seconds_agos: Lookback offsets in seconds (0 = now)

        Returns:
            One tick cumulative per offset, in the same order
        """
        pass

    @abstractmethod
    async def slot0(self, pool: str) -> PoolSlot:
        """Return the pool's current sqrt price and tick."""
        pass

    @abstractmethod
    async def get_pool(self, asset_a: str, asset_b: str, fee: int) -> Optional[str]:
        """Resolve the pool for a pair and fee tier, or ``None`` when absent."""
        pass

    @abstractmethod
    async def exact_input_single(self, params: SwapParams) -> int:
        """
        Swap ``params.amount_in`` of ``token_in`` for ``token_out``.

        Returns:
            Amount of ``token_out`` delivered to ``params.recipient``
        """
        pass


class BaseAssetLedger(ABC):
    """
    Custody primitives for fungible assets.

    Amounts are integers in the asset's smallest unit. Failures raise
    ``TransferError``; no method fails silently.
    """

    @abstractmethod
    async def balance_of(self, asset: str, account: str) -> int:
        pass

    @abstractmethod
    async def decimals(self, asset: str) -> int:
        pass

    @abstractmethod
    async def allowance(self, asset: str, owner: str, spender: str) -> int:
        pass

    @abstractmethod
    async def approve(self, asset: str, owner: str, spender: str, amount: int) -> None:
        """Set ``spender``'s allowance over ``owner``'s funds to exactly ``amount``."""
        pass

    @abstractmethod
    async def transfer(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        """Move exactly ``amount`` from ``sender`` to ``recipient``."""
        pass
