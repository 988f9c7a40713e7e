"""
Grid Trading Engine Implementation

An autonomous DEX grid engine that:
- Derives a manipulation-resistant reference price from the venue's TWAP
- Lays out a ladder of buy/sell trigger levels between two price bounds
- Fires eligible levels as bounded-slippage swaps, flipping each level's side
- Exposes a two-phase check/perform interface for external schedulers
"""

from .automation import AutomationGateway
from .config import EngineSettings, GridConfiguration, GridStrategyConfig
from .execution import ExecutionController
from .models import ExecutionRecord, GridLevel, GridState, LevelSide, PassResult, UpkeepCheck
from .oracle import PriceOracleAdapter
from .state_machine import GridStateMachine, is_level_eligible
from .strategy import GridStrategy

__all__ = [
    'GridStrategy',
    'GridStrategyConfig',
    'GridConfiguration',
    'EngineSettings',
    'GridState',
    'GridLevel',
    'LevelSide',
    'ExecutionRecord',
    'PassResult',
    'UpkeepCheck',
    'PriceOracleAdapter',
    'GridStateMachine',
    'ExecutionController',
    'AutomationGateway',
    'is_level_eligible',
]
