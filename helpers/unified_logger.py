"""
Unified logging system for dex-grid-tools

Provides consistent, colored logging across all components:
- Venue clients
- Grid engine and its components
- Keeper loop and CLI

Based on loguru with component-specific context bound to every record.
Log files go to ``logs/`` at the project root unless ``LOG_DIR`` is set.
"""

import os
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger as _logger

_CONSOLE_WIDTH = 50

_FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | "
    "{level:<8} | "
    "{extra[component_id]:<35} | "
    "{message}"
)


def resolve_logs_dir() -> Path:
    """Directory for history/session logs and the event journal."""
    configured = os.getenv("LOG_DIR")
    logs_dir = Path(configured) if configured else Path(__file__).parent.parent / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir


def _shorten_source(record) -> bool:
    """Right-align ``module:function:line`` so messages start in one column."""
    module_name = record.get("module") or record.get("name", "")
    suffix = f":{record.get('function', '')}:{record.get('line', 0)}"

    room = _CONSOLE_WIDTH - len(suffix)
    if room <= 3:
        module_name = "..."
    elif len(module_name) > room:
        module_name = "..." + module_name[-(room - 3):]

    record["extra"]["short_name"] = f"{module_name + suffix:>{_CONSOLE_WIDTH}}"
    return True


def _ensure_component(record) -> bool:
    record["extra"].setdefault("component_id", "UNKNOWN")
    return True


class UnifiedLogger:
    """
    Unified logger that provides consistent formatting across all components.

    Handlers are installed once per process and shared: a coloured console
    sink, a cumulative history file and a per-session file.
    """

    def __init__(
        self,
        component_type: str,  # "venue", "strategy", "service", "core"
        component_name: str,  # "simulated", "grid_trading", "keeper", ...
        context: Optional[Dict[str, Any]] = None,
        log_to_console: bool = True,
        log_level: str = "INFO"
    ):
        """
        Initialize unified logger.

        Args:
            component_type: Type of component (venue, strategy, service, core)
            component_name: Name of specific component
            context: Additional context (venue, pair, account, ...)
            log_to_console: Whether to log to console
            log_level: Minimum console log level
        """
        self.component_type = component_type.upper()
        self.component_name = component_name.upper()
        self.context = context or {}
        self.log_level = log_level.upper()

        self.component_id = f"{self.component_type}:{self.component_name}"
        if self.context:
            context_str = ":".join(f"{k}={v}" for k, v in self.context.items())
            self.component_id = f"{self.component_id}:{context_str}"

        self.logger_name = f"dex_grid_{component_type}_{component_name}"
        self._setup_logger(log_to_console)

    def _setup_logger(self, log_to_console: bool):
        """Install shared handlers on first use and bind this component's context."""
        if not hasattr(_logger, "_dex_grid_console_setup"):
            _logger.remove()
            if log_to_console:
                _logger.add(
                    sys.stdout,
                    format=(
                        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                        "<level>{level: <8}</level> | "
                        "<cyan>{extra[short_name]}</cyan> | "
                        "<level>{message}</level>"
                    ),
                    level=self.log_level,
                    colorize=True,
                    filter=lambda record: bool(record["extra"].get("component_id")) and _shorten_source(record),
                    backtrace=True,
                    diagnose=False,
                )
            _logger._dex_grid_console_setup = True

        if not hasattr(_logger, "_dex_grid_file_setup"):
            logs_dir = resolve_logs_dir()
            session_ts = datetime.now().strftime("%Y%m%d_%H%M%S")
            for path in (logs_dir / "unified_history.log", logs_dir / f"session_{session_ts}.log"):
                _logger.add(
                    str(path),
                    format=_FILE_FORMAT,
                    level="DEBUG",
                    filter=_ensure_component,
                    backtrace=False,
                    diagnose=False,
                    enqueue=True,  # writes happen on loguru's worker thread
                    catch=True
                )
            _logger._dex_grid_file_setup = True

        self._logger = _logger.bind(component_id=self.component_id)

    def debug(self, message: str, **kwargs):
        self._logger.bind(**kwargs).opt(depth=1).debug(message)

    def info(self, message: str, **kwargs):
        self._logger.bind(**kwargs).opt(depth=1).info(message)

    def warning(self, message: str, **kwargs):
        self._logger.bind(**kwargs).opt(depth=1).warning(message)

    def error(self, message: str, **kwargs):
        self._logger.bind(**kwargs).opt(depth=1).error(message)

    def critical(self, message: str, **kwargs):
        self._logger.bind(**kwargs).opt(depth=1).critical(message)

    def log(self, message: str, level: str = "INFO", **kwargs):
        """
        Level-as-string logging used throughout the engine.

        Args:
            message: Log message
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            **kwargs: Structured context bound to the record
        """
        level = level.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            level = "INFO"
        # Context goes into ``extra`` only; messages are never re-formatted
        self._logger.bind(**kwargs).opt(depth=1).log(level, message)

    def log_transaction(self, order_id: str, side: str, quantity: Any, price: Any, status: str):
        """
        Log an executed swap with structured data.
        """
        transaction_data = {
            "order_id": order_id,
            "side": side,
            "quantity": str(quantity),
            "price": str(price),
            "status": status,
            "transaction": True
        }

        self._logger.bind(**transaction_data).opt(depth=1).info(
            f"TRANSACTION: {side.upper()} {quantity} @ {price} | Order: {order_id} | Status: {status}"
        )

    def flush(self):
        """Give enqueued file writes a moment to drain and flush the console streams."""
        self._logger.opt(depth=1).debug("LOG_FLUSH_MARKER")
        time.sleep(0.05)
        sys.stdout.flush()
        sys.stderr.flush()

    @staticmethod
    def flush_all_handlers():
        """
        Wait for every enqueued record to be written.

        Call this before process exit; ``enqueue=True`` sinks write from a
        background thread.
        """
        _logger.complete()
        sys.stdout.flush()
        sys.stderr.flush()


def get_logger(
    component_type: str,
    component_name: str,
    context: Optional[Dict[str, Any]] = None,
    log_to_console: bool = True,
    log_level: Optional[str] = None
) -> UnifiedLogger:
    """
    Factory function to create unified loggers.

    Args:
        component_type: Type of component (venue, strategy, service, core)
        component_name: Name of specific component
        context: Additional context (venue, pair, account, ...)
        log_to_console: Whether to log to console
        log_level: Log level (defaults to env LOG_LEVEL or INFO)

    Examples:
        logger = get_logger("venue", "simulated")
        logger = get_logger("strategy", "grid_trading", {"pair": "WETH/USDC"})
    """
    if log_level is None:
        log_level = os.getenv('LOG_LEVEL', 'INFO')

    return UnifiedLogger(
        component_type=component_type,
        component_name=component_name,
        context=context,
        log_to_console=log_to_console,
        log_level=log_level
    )


def get_venue_logger(venue_name: str, **context) -> UnifiedLogger:
    """Get logger for venue clients."""
    return get_logger("venue", venue_name, context)


def get_strategy_logger(strategy_name: str, **context) -> UnifiedLogger:
    """Get logger for trading strategies."""
    return get_logger("strategy", strategy_name, context)


def get_service_logger(service_name: str, **context) -> UnifiedLogger:
    """Get logger for long-running services (keeper loop)."""
    return get_logger("service", service_name, context)


def get_core_logger(module_name: str, **context) -> UnifiedLogger:
    """Get logger for core utilities."""
    return get_logger("core", module_name, context)


def log_stage(logger_obj: Any, title: str, *, border: str = "=", width: int = 55, level: str = "INFO") -> None:
    """Log a separator banner to highlight an execution phase."""
    border_line = border * width
    for line in (border_line, title, border_line):
        logger_obj.log(line, level.upper())
