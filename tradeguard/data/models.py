"""Market data records pushed by the external feed."""
from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Mapping, Optional

from ..utils.validation import validate_positive


@dataclass(frozen=True)
class MarketSnapshot:
    """Latest quote for an asset. Missing bid/ask fall back to the last price."""
    asset: str
    price: float
    bid: Optional[float] = None
    ask: Optional[float] = None
    volume: float = 0.0
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        price = validate_positive(self.price, "price")
        object.__setattr__(self, "price", price)
        object.__setattr__(self, "bid", price if self.bid is None else validate_positive(self.bid, "bid"))
        object.__setattr__(self, "ask", price if self.ask is None else validate_positive(self.ask, "ask"))
        object.__setattr__(self, "volume", validate_positive(self.volume or 0.0, "volume", allow_zero=True))

    @property
    def spread(self) -> float:
        return self.ask - self.bid

    @property
    def mid(self) -> float:
        return (self.ask + self.bid) / 2.0

    @classmethod
    def from_mapping(cls, asset: str, data: Mapping[str, Any]) -> "MarketSnapshot":
        return cls(
            asset=asset,
            price=data["price"],
            bid=data.get("bid"),
            ask=data.get("ask"),
            volume=data.get("volume") or 0.0,
            timestamp=data.get("timestamp"),
        )

    def stamped(self, asset: str, timestamp: datetime) -> "MarketSnapshot":
        """Copy keyed to `asset`, with `timestamp` filled in if missing."""
        return replace(self, asset=asset, timestamp=self.timestamp or timestamp)


@dataclass(frozen=True)
class PricePoint:
    price: float
    volume: float
    timestamp: datetime
