"""Background ticker with an explicit cancellation token."""
from __future__ import annotations
import threading
from typing import Callable, Optional

from .logging import get_logger
from .validation import validate_positive

LOGGER = get_logger(__name__)


class CancellationToken:
    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Sleep up to `timeout` seconds; returns True as soon as cancelled."""
        return self._event.wait(timeout)


class Ticker:
    """Runs `callback` every `interval_seconds` on a daemon thread.

    Usage:
        ticker = Ticker(30.0, engine.tick, name="risk-monitor")
        token = ticker.start()
        ...
        ticker.cancel()   # waits for an in-flight tick to finish
    """

    def __init__(self, interval_seconds: float, callback: Callable[[], None], name: str = "ticker"):
        self.interval = validate_positive(interval_seconds, "interval_seconds")
        self.callback = callback
        self.name = name
        self.token = CancellationToken()
        self.tick_count = 0
        self._thread: Optional[threading.Thread] = None

    @property
    def is_active(self) -> bool:
        return (
            self._thread is not None
            and self._thread.is_alive()
            and not self.token.cancelled
        )

    def start(self) -> CancellationToken:
        if self.token.cancelled:
            raise RuntimeError(f"Ticker {self.name} was cancelled and cannot be restarted")
        if self.is_active:
            LOGGER.warning(f"Ticker {self.name} already running")
            return self.token
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        LOGGER.info(f"Ticker {self.name} started (interval: {self.interval}s)")
        return self.token

    def cancel(self, wait: bool = True, timeout: Optional[float] = 10.0) -> None:
        already = self.token.cancelled
        self.token.cancel()
        thread = self._thread
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        if not already:
            LOGGER.info(f"Ticker {self.name} cancelled")

    def tick(self) -> None:
        """Run the callback once on the calling thread."""
        self.tick_count += 1
        try:
            self.callback()
        except Exception as e:
            LOGGER.error(f"Error in {self.name} tick: {e}", exc_info=True)

    def _run(self) -> None:
        while not self.token.wait(self.interval):
            self.tick()
