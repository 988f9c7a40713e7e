"""
Strategy Factory
Creates strategy instances based on configuration.
"""

from typing import Any, Dict, List, Type

from pydantic import BaseModel

from .base_strategy import BaseStrategy
from .implementations.grid import GridStrategy, GridStrategyConfig


class StrategyFactory:
    """Factory for creating trading strategy instances."""

    # Registry of available strategies and the config model each one expects
    _strategies: Dict[str, Type[BaseStrategy]] = {
        'grid': GridStrategy,
    }
    _config_models: Dict[str, Type[BaseModel]] = {
        'grid': GridStrategyConfig,
    }

    @classmethod
    def create_strategy(
        cls,
        strategy_name: str,
        config,
        venue_client,
        **kwargs: Any,
    ) -> BaseStrategy:
        """Create a strategy instance.

        Args:
            strategy_name: Name of the strategy to create
            config: Config model instance or plain mapping
            venue_client: Venue client instance the strategy trades through
            **kwargs: Strategy-specific keyword arguments (ledger, clock, ...)

        Returns:
            BaseStrategy: Strategy instance

        Raises:
            ValueError: If strategy name is not supported
        """
        strategy_name = strategy_name.lower()

        if strategy_name not in cls._strategies:
            available = ', '.join(cls._strategies.keys())
            raise ValueError(f"Unsupported strategy: {strategy_name}. Available: {available}")

        if venue_client is None:
            raise ValueError(f"Strategy '{strategy_name}' requires a venue client")

        strategy_class = cls._strategies[strategy_name]
        config_model = cls._config_models.get(strategy_name)
        prepared_config = config
        if config_model is not None and not isinstance(config, config_model):
            prepared_config = config_model.model_validate(dict(config))

        return strategy_class(prepared_config, venue_client, **kwargs)

    @classmethod
    def register_strategy(
        cls,
        name: str,
        strategy_class: Type[BaseStrategy],
        config_model: Type[BaseModel] = None,
    ):
        """Register a new strategy.

        Args:
            name: Strategy name
            strategy_class: Strategy class that inherits from BaseStrategy
            config_model: Optional pydantic model used to validate mapping configs
        """
        if not issubclass(strategy_class, BaseStrategy):
            raise ValueError(f"Strategy class {strategy_class.__name__} must inherit from BaseStrategy")

        cls._strategies[name.lower()] = strategy_class
        if config_model is not None:
            cls._config_models[name.lower()] = config_model

    @classmethod
    def get_supported_strategies(cls) -> List[str]:
        """Get list of supported strategy names."""
        return list(cls._strategies.keys())

    @classmethod
    def get_strategy_info(cls, strategy_name: str) -> Dict[str, Any]:
        """Get information about a strategy.

        Args:
            strategy_name: Name of the strategy

        Returns:
            Dict containing strategy information
        """
        strategy_name = strategy_name.lower()

        if strategy_name not in cls._strategies:
            raise ValueError(f"Unknown strategy: {strategy_name}")

        strategy_class = cls._strategies[strategy_name]
        config_model = cls._config_models.get(strategy_name)
        required_params = []
        if config_model is not None:
            required_params = [
                name for name, field in config_model.model_fields.items() if field.is_required()
            ]

        return {
            'name': strategy_name,
            'class': strategy_class.__name__,
            'description': strategy_class.__doc__ or "No description available",
            'required_parameters': required_params,
        }
