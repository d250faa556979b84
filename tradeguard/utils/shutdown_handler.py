"""
Graceful shutdown handler for tradeguard.

Provides centralized shutdown logic to:
- Stop the risk and ledger tickers of every registered trading system
- Optionally liquidate open positions (emergency stop)
- Flush logs
"""
import logging
import signal
import sys
from typing import Any, List, Optional

from .logging import get_logger

LOGGER = get_logger(__name__)


class ShutdownHandler:
    """Handles graceful shutdown of trading systems."""

    def __init__(self, liquidate: bool = False):
        self.liquidate = liquidate
        self._shutdown_initiated = False
        self._systems: List[Any] = []

    @property
    def shutdown_initiated(self) -> bool:
        return self._shutdown_initiated

    def register_system(self, system: Any) -> None:
        """Register a TradingSystem (anything with shutdown()/emergency_stop())."""
        if system not in self._systems:
            self._systems.append(system)

    def install(self) -> None:
        """Route SIGINT and SIGTERM to this handler."""
        signal.signal(signal.SIGINT, self)
        signal.signal(signal.SIGTERM, self)

    def shutdown(self, signal_num: Optional[int] = None, frame: Optional[Any] = None) -> None:
        """
        Execute graceful shutdown sequence. Runs once; later calls are ignored.

        Args:
            signal_num: Signal number if called from signal handler
            frame: Frame object if called from signal handler
        """
        if self._shutdown_initiated:
            LOGGER.warning("Shutdown already in progress, ignoring duplicate call")
            return

        self._shutdown_initiated = True

        if signal_num is not None:
            signal_name = signal.Signals(signal_num).name
            LOGGER.info(f"Received signal {signal_name} ({signal_num}), initiating graceful shutdown...")
        else:
            LOGGER.info("Initiating graceful shutdown...")

        for system in self._systems:
            name = system.__class__.__name__
            try:
                if self.liquidate:
                    closed = system.emergency_stop("shutdown")
                    LOGGER.info(f"{name}: liquidated {len(closed)} position(s)")
                else:
                    system.shutdown()
                    LOGGER.info(f"{name}: stopped")
            except Exception as e:
                LOGGER.error(f"Error shutting down {name}: {e}", exc_info=True)

        for handler in logging.getLogger().handlers + LOGGER.handlers:
            handler.flush()

        LOGGER.info("Graceful shutdown complete")

    def __call__(self, signal_num: int, frame: Any) -> None:
        """Allow instance to be used as signal handler."""
        self.shutdown(signal_num, frame)
        sys.exit(0)


# Global shutdown handler instance
SHUTDOWN_HANDLER = ShutdownHandler()
