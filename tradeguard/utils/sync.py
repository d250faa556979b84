"""Single critical section shared by the market cache, ledger and risk engine.

Every mutation (market update, open, close, monitoring tick) runs inside
`CriticalSection.hold()`. Alerts posted while the section is held are queued
and only handed to the sink after the outermost `hold()` releases the lock, so
no sink I/O ever happens under the lock.
"""
from __future__ import annotations
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional

from .alerts import Alert, AlertLevel, AlertSink, LoggingAlertSink
from .clock import Clock, SystemClock
from .logging import get_logger

LOGGER = get_logger(__name__)


class CriticalSection:
    def __init__(self, sink: Optional[AlertSink] = None, clock: Optional[Clock] = None):
        self.sink = sink if sink is not None else LoggingAlertSink()
        self.clock = clock if clock is not None else SystemClock()
        self._lock = threading.RLock()
        self._depth = 0
        self._outbox: List[Alert] = []
        self._listeners: List[Callable[[Alert], None]] = []

    @contextmanager
    def hold(self) -> Iterator["CriticalSection"]:
        self._lock.acquire()
        self._depth += 1
        try:
            yield self
        finally:
            self._depth -= 1
            pending: List[Alert] = []
            if self._depth == 0:
                pending, self._outbox = self._outbox, []
            self._lock.release()
            for alert in pending:
                self._deliver(alert)

    @property
    def held(self) -> bool:
        """True while any thread is inside `hold()`."""
        return self._depth > 0

    def post(self, level: AlertLevel | str, message: str, context: Optional[Dict[str, Any]] = None) -> Alert:
        """Queue an alert; it is delivered once the section is released."""
        alert = Alert(AlertLevel.parse(level), message, dict(context or {}), self.clock.now())
        with self.hold():
            self._outbox.append(alert)
        return alert

    def add_listener(self, listener: Callable[[Alert], None]) -> None:
        """Register a callback run after each alert is delivered (outside the lock)."""
        self._listeners.append(listener)

    def _deliver(self, alert: Alert) -> None:
        try:
            self.sink.notify(alert.level, alert.message, alert.context)
        except Exception as e:
            LOGGER.warning(f"Alert delivery failed ({alert.level.value} {alert.message}): {e}")
        for listener in list(self._listeners):
            try:
                listener(alert)
            except Exception as e:
                LOGGER.error(f"Alert listener failed: {e}", exc_info=True)
