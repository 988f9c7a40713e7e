"""
Grid engine exception hierarchy.

Admin and configuration errors always surface to the caller. Execution-time
problems are contained per level unless they indicate a trust violation.
"""


class GridError(Exception):
    """Base class for grid engine errors."""


class ConfigValidationError(GridError, ValueError):
    """Configuration or parameter failed validation; no state was changed."""


class InvalidIntervalError(ConfigValidationError):
    """TWAP window is zero or outside the supported bounds."""


class GridPermissionError(GridError, PermissionError):
    """Caller is not allowed to perform a privileged operation."""


class GridStateError(GridError):
    """Operation is not valid for the current lifecycle stage."""


class ReentrancyError(GridStateError):
    """A guarded entry point was entered while another call was in progress."""


class InsufficientBalanceError(GridError):
    """Engine account does not hold enough of an asset."""


class ExternalFailure(GridError):
    """Venue call failed or returned an unusable result."""


class PoolNotFoundError(ExternalFailure):
    """No pool exists for the configured asset pair and fee tier."""


class PriceUnavailableError(ExternalFailure):
    """Reference price could not be derived from the venue."""


class SlippageViolationError(ExternalFailure):
    """Venue delivered less than the minimum output; the whole pass is aborted."""

    def __init__(self, level_index: int, amount_out: int, min_out: int):
        super().__init__(
            f"Level {level_index}: venue returned {amount_out} below minimum {min_out}"
        )
        self.level_index = level_index
        self.amount_out = amount_out
        self.min_out = min_out
