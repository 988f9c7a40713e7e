"""
Base Strategy Interface
Defines the contract that all trading strategies must implement.

Lifecycle:
- initialize() once before the first pass
- start()/stop() bracket event listener registration
- should_execute()/execute_strategy() drive one pass
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict

from helpers.unified_logger import get_strategy_logger


class BaseStrategy(ABC):
    """
    Base class for all trading strategies.

    Provides logger setup, lifecycle management and a small event listener
    registry that concrete strategies dispatch into.
    """

    def __init__(self, config, venue_client=None):
        """
        Initialize strategy with configuration and venue client.

        Args:
            config: Strategy configuration
            venue_client: Venue the strategy trades through
        """
        self.config = config
        self.venue_client = venue_client

        context = {
            'venue': getattr(config, 'venue', 'unknown'),
            'pair': getattr(config, 'pair', 'unknown'),
        }
        account = getattr(config, 'account', None)
        if account:
            context['account'] = account

        self.logger = get_strategy_logger(
            self.get_strategy_name().lower().replace(' ', '_'),
            **context
        )

        self.is_initialized = False
        self._event_listeners: Dict[str, Callable] = {}

    async def initialize(self):
        """Initialize strategy-specific components."""
        if not self.is_initialized:
            await self._initialize_strategy()
            self.is_initialized = True
            self.logger.info(f"Strategy '{self.get_strategy_name()}' initialized")

    @abstractmethod
    async def _initialize_strategy(self):
        """Strategy-specific initialization logic."""
        pass

    def start(self):
        """Register event listeners and mark the strategy as running."""
        self.register_events()
        self.logger.info(f"Strategy '{self.get_strategy_name()}' started")

    def stop(self):
        """Unregister event listeners."""
        self.unregister_events()
        self.logger.info(f"Strategy '{self.get_strategy_name()}' terminated")

    def register_events(self):
        """
        Register event listeners.

        Override in child strategy to add listeners:

        Example:
        --------
        def register_events(self):
            self.add_listener('level_executed', self._on_level_executed)
        """
        pass

    def unregister_events(self):
        """Cleanup all event listeners"""
        self._event_listeners.clear()

    def add_listener(self, event_name: str, callback: Callable):
        """
        Add an event listener.

        Args:
            event_name: Event name (e.g., 'level_executed')
            callback: Function to call when event occurs
        """
        self._event_listeners[event_name] = callback

    def remove_listener(self, event_name: str):
        if event_name in self._event_listeners:
            del self._event_listeners[event_name]

    def dispatch_event(self, event_name: str, payload: Any) -> None:
        """Invoke the listener registered for ``event_name``, if any."""
        callback = self._event_listeners.get(event_name)
        if callback is None:
            return
        try:
            callback(payload)
        except Exception as exc:
            self.logger.error(f"Listener for '{event_name}' failed: {exc}")

    @abstractmethod
    async def should_execute(self) -> bool:
        """Determine if strategy should execute based on market conditions."""
        pass

    @abstractmethod
    async def execute_strategy(self):
        """Execute the strategy and return the result."""
        pass

    @abstractmethod
    def get_strategy_name(self) -> str:
        """Get the strategy name."""
        pass

    async def cleanup(self):
        """Cleanup strategy resources."""
        self.logger.info(f"Strategy '{self.get_strategy_name()}' cleanup completed")
        if hasattr(self.logger, 'flush'):
            self.logger.flush()
