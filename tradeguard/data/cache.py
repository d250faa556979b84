"""In-memory market data cache: latest snapshot plus bounded price history per asset.

Subscribers are notified after every update, still inside the shared critical
section, so a price-driven close check cannot interleave with a trade.
"""
from __future__ import annotations
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional

import numpy as np
import pandas as pd

from .models import MarketSnapshot, PricePoint
from ..utils.clock import Clock, SystemClock
from ..utils.logging import get_logger
from ..utils.sync import CriticalSection

LOGGER = get_logger(__name__)

DEFAULT_HISTORY_CAPACITY = 1000

SnapshotListener = Callable[[str, MarketSnapshot], None]


class MarketDataCache:
    def __init__(
        self,
        capacity: int = DEFAULT_HISTORY_CAPACITY,
        section: Optional[CriticalSection] = None,
        clock: Optional[Clock] = None,
    ):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = int(capacity)
        if clock is None:
            clock = section.clock if section is not None else SystemClock()
        self.clock = clock
        self.section = section if section is not None else CriticalSection(clock=self.clock)
        self._snapshots: Dict[str, MarketSnapshot] = {}
        self._history: Dict[str, Deque[PricePoint]] = {}
        self._listeners: List[SnapshotListener] = []

    def subscribe(self, listener: SnapshotListener) -> None:
        self._listeners.append(listener)

    def update_snapshot(self, asset: str, snapshot: MarketSnapshot | Mapping[str, Any]) -> MarketSnapshot:
        """Store the latest snapshot, append to history and notify subscribers."""
        if not isinstance(snapshot, MarketSnapshot):
            snapshot = MarketSnapshot.from_mapping(asset, snapshot)
        with self.section.hold():
            snap = snapshot.stamped(asset, self.clock.now())
            self._snapshots[asset] = snap
            history = self._history.get(asset)
            if history is None:
                history = deque(maxlen=self.capacity)
                self._history[asset] = history
            history.append(PricePoint(snap.price, snap.volume, snap.timestamp))
            for listener in list(self._listeners):
                listener(asset, snap)
        return snap

    def get_snapshot(self, asset: str) -> Optional[MarketSnapshot]:
        snap = self._snapshots.get(asset)
        if snap is None:
            LOGGER.warning(f"No market data available for {asset}", extra={"asset": asset})
        return snap

    def peek(self, asset: str) -> Optional[MarketSnapshot]:
        """Like `get_snapshot` but silent on a miss."""
        return self._snapshots.get(asset)

    def has_data(self, asset: str) -> bool:
        return asset in self._snapshots

    def get_history(self, asset: str) -> List[PricePoint]:
        """Copy of the price history (oldest first); empty if unknown."""
        history = self._history.get(asset)
        if history is None:
            LOGGER.warning(f"No price history for {asset}", extra={"asset": asset})
            return []
        return list(history)

    def prices(self, asset: str) -> np.ndarray:
        history = self._history.get(asset, ())
        return np.fromiter((p.price for p in history), dtype=float, count=len(history))

    def volumes(self, asset: str) -> np.ndarray:
        history = self._history.get(asset, ())
        return np.fromiter((p.volume for p in history), dtype=float, count=len(history))

    def get_frame(self, asset: str) -> pd.DataFrame:
        """History as a DataFrame indexed by timestamp (columns: price, volume)."""
        history = self._history.get(asset)
        if not history:
            return pd.DataFrame(columns=["price", "volume"])
        df = pd.DataFrame(
            {"price": [p.price for p in history], "volume": [p.volume for p in history]},
            index=pd.DatetimeIndex([p.timestamp for p in history], name="timestamp"),
        )
        return df

    def assets(self) -> List[str]:
        return list(self._snapshots)

    def clear(self) -> None:
        with self.section.hold():
            self._snapshots.clear()
            self._history.clear()
