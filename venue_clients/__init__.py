"""
Shared Venue Clients Library

Unified interfaces for the swap venues and asset ledgers consumed by the
grid engine.

Modules:
    - base_client: Venue and ledger interfaces (BaseVenueClient, BaseAssetLedger)
    - base_models: Shared dataclasses, result type and exceptions
    - tick_math: Fixed-point tick/price conversion
    - simulated: In-memory venue for paper runs and tests
"""

from .base_client import BaseAssetLedger, BaseVenueClient
from .base_models import (
    PoolSlot,
    SwapParams,
    TransferError,
    VenueCallResult,
    VenueError,
    capture_venue_call,
)

__all__ = [
    "BaseAssetLedger",
    "BaseVenueClient",
    "PoolSlot",
    "SwapParams",
    "TransferError",
    "VenueCallResult",
    "VenueError",
    "capture_venue_call",
]

__version__ = "1.0.0"
