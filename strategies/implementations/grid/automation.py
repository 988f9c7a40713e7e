"""
Two-phase automation gateway for an external, untrusted scheduler.

``check_upkeep`` is read-only and tells the scheduler which levels look
eligible. ``perform_upkeep`` receives that list later, possibly stale or
forged, and re-verifies everything against current state before acting.
"""

from __future__ import annotations

import time
from typing import Callable, List, Optional, Sequence

from .errors import GridStateError, PriceUnavailableError
from .execution import ExecutionController
from .models import GridState, PassResult, UpkeepCheck
from .oracle import PRICE_UNAVAILABLE
from .state_machine import GridStateMachine, is_level_eligible

Clock = Callable[[], int]


class AutomationGateway:
    """Check/perform interface composed over the state machine and executor."""

    def __init__(
        self,
        state: GridState,
        state_machine: GridStateMachine,
        executor: ExecutionController,
        logger,
        clock: Optional[Clock] = None,
    ) -> None:
        self.state = state
        self.state_machine = state_machine
        self.executor = executor
        self.logger = logger
        self.clock: Clock = clock or (lambda: int(time.time()))

    async def check_upkeep(self) -> UpkeepCheck:
        """Eligible, funded level indices; "not needed" when the grid cannot run."""
        if not self.state.ready:
            return UpkeepCheck.not_needed()

        price = await self.state_machine.current_price()
        if price == PRICE_UNAVAILABLE:
            return UpkeepCheck.not_needed()

        now = self.clock()
        indices: List[int] = []
        for index in self.state_machine.eligible_indices(price, now):
            if await self.executor.has_funds_for(self.state.levels[index]):
                indices.append(index)

        if not indices:
            return UpkeepCheck.not_needed()
        return UpkeepCheck(upkeep_needed=True, level_indices=tuple(indices))

    async def perform_upkeep(self, level_indices: Sequence[int]) -> PassResult:
        """
        Execute the requested levels that are still eligible right now.

        Out-of-range indices are skipped silently; every other index is
        re-checked with the trigger predicate before it executes.

        Raises:
            GridStateError: If the grid is paused, unconfigured or uninitialized.
            PriceUnavailableError: If no reference price can be read.
            SlippageViolationError: Propagated from the executor; the pass is void.
        """
        price = await self.validated_price()
        return await self.run_pass(level_indices, price)

    async def validated_price(self) -> int:
        if self.state.paused:
            raise GridStateError("Grid is paused")
        self.state_machine.require_initialized()

        price = await self.state_machine.current_price()
        if price == PRICE_UNAVAILABLE:
            raise PriceUnavailableError("Reference price unavailable")
        return price

    async def run_pass(self, level_indices: Sequence[int], price: int) -> PassResult:
        """Shared by the automation and direct execution paths."""
        now = self.clock()
        cooldown = self.state.settings.cooldown_seconds

        def still_eligible(index: int) -> bool:
            return is_level_eligible(self.state.levels[index], price, now, cooldown)

        result = await self.executor.execute_pass(level_indices, price, now, still_eligible)
        if result.ignored:
            self.logger.log(f"Grid: ignored stale or invalid levels {result.ignored}", "DEBUG")
        return result
