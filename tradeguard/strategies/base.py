"""Base types for rule-based strategies."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from ..data.models import MarketSnapshot
from ..ledger.models import Position, Side
from ..utils.validation import ValidationError


class UnknownStrategyError(KeyError):
    """Raised for a strategy name outside `StrategyName`."""

    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown strategy: {self.name}. Available: {[s.value for s in StrategyName]}"


class StrategyName(str, Enum):
    MOMENTUM = "momentum"
    MEAN_REVERSION = "mean_reversion"
    BREAKOUT = "breakout"
    SCALPING = "scalping"
    SWING = "swing"

    @classmethod
    def parse(cls, value: "StrategyName | str") -> "StrategyName":
        if isinstance(value, StrategyName):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnknownStrategyError(str(value)) from None


class Signal(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"

    @classmethod
    def parse(cls, value: "Signal | str") -> "Signal":
        if isinstance(value, Signal):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValidationError(f"signal must be BUY, SELL or HOLD, got {value!r}") from None


class OrderAction(str, Enum):
    OPEN = "OPEN"
    CLOSE = "CLOSE"


@dataclass(frozen=True)
class Order:
    """Proposed ledger action. `side` and `size` are only meaningful for OPEN."""
    action: OrderAction
    asset: str
    strategy: StrategyName
    reason: str
    side: Optional[Side] = None
    size: float = 0.0


@dataclass(frozen=True)
class MarketView:
    """What a rule sees: the latest quote, price/volume history and any open position."""
    asset: str
    snapshot: MarketSnapshot
    prices: np.ndarray
    volumes: np.ndarray
    position: Optional[Position]
    tick_size: float

    @property
    def price(self) -> float:
        return self.snapshot.price


class BaseRule(ABC):
    """Entry and exit rules for one named strategy.

    `entry` returns the side to open (or None); `extra_exit` returns a close
    reason beyond the stop-loss / take-profit check (or None).
    """
    name: StrategyName
    size_factor: float = 1.0

    @abstractmethod
    def entry(self, view: MarketView, signal: Signal) -> Optional[Side]:
        raise NotImplementedError

    def extra_exit(self, view: MarketView) -> Optional[str]:
        return None
