"""
Grid Keeper Bot - polls the grid engine's automation interface.

Stands in for an external scheduler: it repeatedly asks the engine whether
upkeep is needed and, when it is, hands the returned level list back to
``perform_upkeep``.
"""

import asyncio
import signal
import traceback
from typing import Any, Callable, Dict, Optional

from helpers.event_notifier import GridEventNotifier
from helpers.unified_logger import UnifiedLogger, get_service_logger, log_stage
from strategies import StrategyFactory
from strategies.implementations.grid.config import GridStrategyConfig
from strategies.implementations.grid.errors import GridError, SlippageViolationError
from venue_clients.base_client import BaseVenueClient
from venue_clients.factory import VenueFactory

DEFAULT_POLL_INTERVAL = 15.0


class GridKeeperBot:
    """Keeper loop around one ``GridStrategy``."""

    def __init__(
        self,
        config: GridStrategyConfig,
        venue_config: Optional[Dict[str, Any]] = None,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        venue_client: Optional[BaseVenueClient] = None,
        clock: Optional[Callable[[], int]] = None,
        event_notifier: Optional[GridEventNotifier] = None,
    ):
        """
        Initialize the keeper.

        Args:
            config: Validated grid strategy configuration
            venue_config: ``venue`` section passed to the venue factory
            poll_interval: Seconds between upkeep checks
            venue_client: Pre-built venue; skips the factory when given
            clock: Unix-seconds clock handed to the strategy
            event_notifier: Event sink handed to the strategy
        """
        self.config = config
        self.poll_interval = poll_interval
        self.logger = get_service_logger("keeper", venue=config.venue, pair=config.pair)

        try:
            self.venue_client = venue_client or VenueFactory.create_venue(config.venue, venue_config or {})
        except (ImportError, ValueError) as e:
            raise ValueError(f"Failed to create venue client: {e}")

        strategy_kwargs: Dict[str, Any] = {}
        if clock is not None:
            strategy_kwargs["clock"] = clock
        if event_notifier is not None:
            strategy_kwargs["event_notifier"] = event_notifier
        self.strategy = StrategyFactory.create_strategy(
            "grid",
            config,
            self.venue_client,
            **strategy_kwargs,
        )
        self.logger.info("Strategy 'grid' created successfully")

        self.shutdown_requested = False
        self._stop_event: Optional[asyncio.Event] = None
        self.passes_run = 0

    def _log_configuration(self):
        settings = self.config.settings
        self.logger.info("=== Keeper Configuration ===")
        self.logger.info(f"Venue: {self.config.venue}")
        self.logger.info(f"Pair: {self.config.pair}")
        self.logger.info(f"Owner: {self.config.owner}")
        self.logger.info(f"Account: {self.config.account}")
        self.logger.info(f"Poll interval: {self.poll_interval}s")
        self.logger.info(f"TWAP interval: {settings.twap_interval}s, cooldown: {settings.cooldown_seconds}s")
        if self.config.grid is None:
            self.logger.warning("No startup grid configured; waiting for the owner to configure one")
        self.logger.info("============================")

    async def run_once(self) -> Dict[str, Any]:
        """One check/perform cycle; engine errors are logged, not raised."""
        try:
            result = await self.strategy.execute_strategy()
        except SlippageViolationError as e:
            self.logger.critical(f"Pass aborted by slippage violation: {e}")
            return {"action": "aborted", "message": str(e)}
        except GridError as e:
            self.logger.error(f"Upkeep failed: {e}")
            return {"action": "error", "message": str(e)}

        if result.get("action") == "executed":
            self.passes_run += 1
            self.logger.info(
                f"Upkeep pass: executed={result['executed']} "
                f"unfunded={result['skipped_unfunded']} failed={result['failed']}"
            )
        return result

    async def _run_keeper_loop(self):
        while not self.shutdown_requested:
            await self.run_once()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                continue

    def request_shutdown(self, reason: str = "Shutdown requested"):
        if not self.shutdown_requested:
            self.logger.info(f"Shutdown requested: {reason}")
        self.shutdown_requested = True
        if self._stop_event is not None:
            self._stop_event.set()

    def _install_signal_handlers(self):
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_shutdown, sig.name)
            except (NotImplementedError, RuntimeError):
                # add_signal_handler is unavailable on some platforms/threads
                self.logger.debug(f"Signal handler for {sig.name} not installed")

    def _remove_signal_handlers(self):
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                continue

    async def graceful_shutdown(self, reason: str = "Unknown"):
        """Stop the strategy and flush logs."""
        self.logger.info(f"Graceful shutdown initiated: {reason}")
        self.shutdown_requested = True
        try:
            status = await self.strategy.get_status()
            self.logger.info(
                f"Final status: executions={status['total_executions']} paused={status['paused']}"
            )
        except GridError as e:
            self.logger.warning(f"Could not read final status: {e}")
        self._remove_signal_handlers()
        self.strategy.stop()
        await self.strategy.cleanup()
        UnifiedLogger.flush_all_handlers()

    async def run(self, once: bool = False):
        """Initialize the engine and poll until shutdown (or a single cycle with ``once``)."""
        self._stop_event = asyncio.Event()
        try:
            log_stage(self.logger, "Grid keeper starting")
            self._log_configuration()
            self._install_signal_handlers()

            await self.strategy.initialize()
            self.strategy.start()

            if once:
                await self.run_once()
            else:
                await self._run_keeper_loop()

            await self.graceful_shutdown("Run completed" if once else "Shutdown requested")
        except KeyboardInterrupt:
            await self.graceful_shutdown("User interruption (Ctrl+C)")
        except Exception as e:
            self.logger.error(f"Critical error: {e}")
            self.logger.error(f"Traceback: {traceback.format_exc()}")
            await self.graceful_shutdown(f"Critical error: {e}")
            raise
