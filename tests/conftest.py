"""Pytest configuration and shared fixtures for grid engine tests."""

import math
import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, List

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Keep test runs from writing into the project's logs/ directory
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="dex-grid-logs-"))

from strategies.implementations.grid.config import EngineSettings, GridStrategyConfig  # noqa: E402
from strategies.implementations.grid.strategy import GridStrategy  # noqa: E402
from venue_clients.simulated import InMemoryAssetLedger, SimulatedVenue  # noqa: E402

OWNER = "operator"
ACCOUNT = "grid-engine"
BASE = "WETH"
QUOTE = "USDC"
FEE = 3000
START_TIME = 1_700_000_000
TWAP = 300

ONE_WETH = 10**18
ONE_USDC = 10**6
E18 = 10**18


def tick_for_price(price: float) -> int:
    """Pool tick giving ``price`` USDC per WETH (USDC is the pool's first token)."""
    return round(math.log((10**12) / price) / math.log(1.0001))


class ManualClock:
    """Deterministic unix-seconds clock."""

    def __init__(self, now: int = START_TIME) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


class RecordingNotifier:
    """In-memory stand-in for GridEventNotifier."""

    def __init__(self) -> None:
        self.events: List[Dict[str, Any]] = []
        self.drained = False

    def notify(self, **event):
        self.events.append(event)
        return event

    async def wait_pending(self) -> None:
        self.drained = True

    def of_type(self, event_type: str) -> List[Dict[str, Any]]:
        return [event for event in self.events if event["event_type"] == event_type]


def grid_config(**overrides) -> Dict[str, Any]:
    config = {
        "base_asset": BASE,
        "quote_asset": QUOTE,
        "lower_price": 1800 * E18,
        "upper_price": 2200 * E18,
        "level_count": 10,
        "base_order_size": ONE_WETH // 10,
        "quote_order_size": 200 * ONE_USDC,
        "fee_tier": FEE,
        "max_slippage_bps": 100,
    }
    config.update(overrides)
    return config


def move_price(venue: SimulatedVenue, clock: ManualClock, price: float, settle: int = TWAP) -> None:
    """Set the pool price and let the TWAP window fill with it."""
    venue.set_tick(venue.pool_key(BASE, QUOTE, FEE), tick_for_price(price))
    clock.advance(settle)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def ledger():
    ledger = InMemoryAssetLedger({BASE: 18, QUOTE: 6})
    ledger.mint(BASE, ACCOUNT, ONE_WETH)
    ledger.mint(QUOTE, ACCOUNT, 2_000 * ONE_USDC)
    ledger.mint(BASE, OWNER, 10 * ONE_WETH)
    ledger.mint(QUOTE, OWNER, 10_000 * ONE_USDC)
    return ledger


@pytest.fixture
def venue(ledger, clock):
    venue = SimulatedVenue(ledger, clock=clock)
    pool_id = venue.create_pool(BASE, QUOTE, FEE, tick_for_price(2000), created_at=clock.now - 3600)
    ledger.mint(BASE, pool_id, 1_000 * ONE_WETH)
    ledger.mint(QUOTE, pool_id, 2_000_000 * ONE_USDC)
    return venue


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def strategy(venue, ledger, clock, notifier):
    config = GridStrategyConfig(
        owner=OWNER,
        account=ACCOUNT,
        settings=EngineSettings(twap_interval=TWAP, cooldown_seconds=300),
    )
    return GridStrategy(config, venue, ledger, clock=clock, event_notifier=notifier)


async def ready_strategy(strategy: GridStrategy, **overrides) -> GridStrategy:
    """Configure and initialize ``strategy`` with the default WETH/USDC grid."""
    await strategy.configure(OWNER, grid_config(**overrides))
    await strategy.initialize_levels(OWNER)
    return strategy
