"""Alert sinks: where findings, recommendations and breaches are delivered.

- AlertSink: interface consumed by the ledger and risk engine (`notify(level, message, context)`)
- LoggingAlertSink: writes alerts to the structured log
- WebhookAlertSink: best-effort JSON POST (url from arg or env TRADEGUARD_ALERT_WEBHOOK)
- AlertHistory: bounded in-memory record of recent alerts with simple statistics
- CompositeAlertSink: fan-out to several sinks

No third-party deps for delivery; uses urllib from stdlib.
"""
from __future__ import annotations
import json
import os
import urllib.request
import uuid
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Deque, Dict, Iterable, List, Optional

from .clock import Clock, SystemClock
from .logging import get_logger

LOGGER = get_logger(__name__)


class AlertLevel(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @classmethod
    def parse(cls, value: "AlertLevel | str") -> "AlertLevel":
        if isinstance(value, AlertLevel):
            return value
        return cls(str(value).upper())

    @property
    def rank(self) -> int:
        return _LEVEL_RANK[self]


_LEVEL_RANK = {
    AlertLevel.INFO: 0,
    AlertLevel.WARNING: 1,
    AlertLevel.ERROR: 2,
    AlertLevel.CRITICAL: 3,
}

_LOG_METHOD = {
    AlertLevel.INFO: "info",
    AlertLevel.WARNING: "warning",
    AlertLevel.ERROR: "error",
    AlertLevel.CRITICAL: "critical",
}


@dataclass
class Alert:
    level: AlertLevel
    message: str
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[datetime] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "level": self.level.value,
            "message": self.message,
            "context": self.context,
        }


class AlertSink(ABC):
    """Receiver of alerts raised by the trading core."""

    @abstractmethod
    def notify(self, level: AlertLevel | str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        raise NotImplementedError


class LoggingAlertSink(AlertSink):
    def notify(self, level, message, context=None):
        lvl = AlertLevel.parse(level)
        extra = {"alert_level": lvl.value}
        ctx = context or {}
        for key in ("asset", "side", "size", "price", "position_id", "strategy", "reason"):
            if key in ctx:
                extra[key] = ctx[key]
        getattr(LOGGER, _LOG_METHOD[lvl])(f"[{lvl.value}] {message}", extra=extra)


class WebhookAlertSink(AlertSink):
    """POST alerts to a webhook. Delivery failures are logged, never raised."""

    def __init__(self, url: Optional[str] = None, *, min_level: AlertLevel | str = AlertLevel.WARNING,
                 timeout: float = 5.0):
        self.url = url or os.getenv("TRADEGUARD_ALERT_WEBHOOK")
        self.min_level = AlertLevel.parse(min_level)
        self.timeout = timeout

    def notify(self, level, message, context=None):
        lvl = AlertLevel.parse(level)
        if not self.url or lvl.rank < self.min_level.rank:
            return
        payload = {
            "text": f"Alert: {lvl.value} - {message}",
            "data": {"level": lvl.value, "message": message, "context": context or {}},
        }
        try:
            data = json.dumps(payload, default=str).encode("utf-8")
            req = urllib.request.Request(self.url, data=data, headers={"Content-Type": "application/json"})
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:  # nosec B310 (webhook opt-in)
                _ = resp.read()
        except Exception as e:
            LOGGER.warning(f"Alert webhook failed: {e}")


class AlertHistory(AlertSink):
    """Keeps the most recent alerts in memory (oldest dropped first)."""

    def __init__(self, max_size: int = 100, clock: Optional[Clock] = None):
        self.clock = clock if clock is not None else SystemClock()
        self._alerts: Deque[Alert] = deque(maxlen=max_size)

    def notify(self, level, message, context=None):
        self.record(Alert(AlertLevel.parse(level), message, dict(context or {}), self.clock.now()))

    def record(self, alert: Alert) -> Alert:
        if alert.timestamp is None:
            alert.timestamp = self.clock.now()
        self._alerts.append(alert)
        return alert

    def __len__(self) -> int:
        return len(self._alerts)

    def get_active_alerts(self, level: AlertLevel | str | None = None) -> List[Alert]:
        if level is None:
            return list(self._alerts)
        lvl = AlertLevel.parse(level)
        return [a for a in self._alerts if a.level == lvl]

    def clear_old_alerts(self, max_age: timedelta = timedelta(hours=24)) -> int:
        """Drop alerts older than `max_age`. Returns how many were removed."""
        cutoff = self.clock.now() - max_age
        kept = [a for a in self._alerts if a.timestamp is not None and a.timestamp > cutoff]
        removed = len(self._alerts) - len(kept)
        self._alerts.clear()
        self._alerts.extend(kept)
        return removed

    def get_alert_stats(self, recent_window: timedelta = timedelta(hours=1)) -> Dict[str, Any]:
        by_level: Dict[str, int] = {}
        for a in self._alerts:
            by_level[a.level.value] = by_level.get(a.level.value, 0) + 1
        cutoff = self.clock.now() - recent_window
        recent = [a for a in self._alerts if a.timestamp is not None and a.timestamp > cutoff]
        return {"total": len(self._alerts), "by_level": by_level, "recent": recent}


class CompositeAlertSink(AlertSink):
    def __init__(self, sinks: Iterable[AlertSink]):
        self.sinks: List[AlertSink] = list(sinks)

    def add(self, sink: AlertSink) -> None:
        self.sinks.append(sink)

    def notify(self, level, message, context=None):
        for sink in self.sinks:
            try:
                sink.notify(level, message, context)
            except Exception as e:
                LOGGER.error(f"Alert sink {sink.__class__.__name__} failed: {e}", exc_info=True)
