"""
Trading Strategies Module
Provides strategy abstraction and implementations.

- BaseStrategy: Minimal abstract interface that all strategies implement
- Concrete Strategies: GridStrategy
  - Each strategy inherits from BaseStrategy
  - Each strategy composes what it needs (oracle, state machine, executor, ...)

Philosophy: Composition over Inheritance
"""

from .base_strategy import BaseStrategy
from .factory import StrategyFactory

from .implementations.grid import GridStrategy, GridStrategyConfig

__all__ = [
    'BaseStrategy',
    'StrategyFactory',
    'GridStrategy',
    'GridStrategyConfig',
]
