"""
Grid Engine Data Models

Data structures owned by the grid engine: the level ladder, the aggregate
state every component operates on, and per-pass results.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Tuple

from .config import EngineSettings, GridConfiguration


class LevelSide(Enum):
    """Side a level trades on when it next fires."""
    BUY = "buy"
    SELL = "sell"

    def flipped(self) -> "LevelSide":
        return LevelSide.SELL if self is LevelSide.BUY else LevelSide.BUY


@dataclass
class GridLevel:
    """One trigger price and the side it will trade when crossed."""
    price: int
    side: LevelSide
    active: bool = True
    last_executed: int = 0

    @property
    def is_buy(self) -> bool:
        return self.side is LevelSide.BUY

    def to_dict(self) -> dict:
        """Convert to dictionary for status output."""
        return {
            'price': str(self.price),
            'side': self.side.value,
            'active': self.active,
            'last_executed': self.last_executed,
        }


@dataclass(frozen=True)
class ExecutionRecord:
    """Result of one successful level execution."""
    level_index: int
    asset_in: str
    asset_out: str
    amount_in: int
    amount_out: int
    execution_price: int
    timestamp: int

    def to_dict(self) -> dict:
        return {
            'level_index': self.level_index,
            'asset_in': self.asset_in,
            'asset_out': self.asset_out,
            'amount_in': str(self.amount_in),
            'amount_out': str(self.amount_out),
            'execution_price': str(self.execution_price),
            'timestamp': self.timestamp,
        }


@dataclass(frozen=True)
class UpkeepCheck:
    """Check-phase answer for the external scheduler."""
    upkeep_needed: bool
    level_indices: Tuple[int, ...] = ()

    @property
    def perform_data(self) -> List[int]:
        return list(self.level_indices)

    @classmethod
    def not_needed(cls) -> "UpkeepCheck":
        return cls(upkeep_needed=False)


@dataclass
class PassResult:
    """Outcome of one execution pass."""
    records: List[ExecutionRecord] = field(default_factory=list)
    skipped_unfunded: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)
    ignored: List[int] = field(default_factory=list)

    @property
    def executed_count(self) -> int:
        return len(self.records)


@dataclass
class GridState:
    """
    The engine's single owned aggregate.

    Components receive this object by reference; nothing else holds grid
    state.
    """
    settings: EngineSettings = field(default_factory=EngineSettings)
    configuration: Optional[GridConfiguration] = None
    pool: Optional[str] = None
    base_decimals: int = 0
    quote_decimals: int = 0
    base_is_first: bool = True
    levels: List[GridLevel] = field(default_factory=list)
    levels_initialized: bool = False
    paused: bool = False
    total_executions: int = 0

    @property
    def configured(self) -> bool:
        return self.configuration is not None and self.pool is not None

    @property
    def ready(self) -> bool:
        """Configured, initialized and not paused."""
        return self.configured and self.levels_initialized and not self.paused

    def snapshot_levels(self) -> Tuple[List[GridLevel], int]:
        """Copy of the mutable execution state, used to roll back an aborted pass."""
        return [replace(level) for level in self.levels], self.total_executions

    def restore_levels(self, snapshot: Tuple[List[GridLevel], int]) -> None:
        levels, total_executions = snapshot
        for level, saved in zip(self.levels, levels):
            level.side = saved.side
            level.active = saved.active
            level.last_executed = saved.last_executed
        self.total_executions = total_executions
