"""
Strategy Implementations

Concrete strategy implementations organized by type:
- grid: Single-venue DEX grid engine
"""

from .grid import GridStrategy, GridStrategyConfig

__all__ = [
    'GridStrategy',
    'GridStrategyConfig',
]
