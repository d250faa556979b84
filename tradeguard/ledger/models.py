"""Ledger records: positions, portfolio totals, performance counters, parameters."""
from __future__ import annotations
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from ..utils.validation import ValidationError, validate_positive, validate_probability, validate_fields


class Side(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"

    @classmethod
    def parse(cls, value: "Side | str") -> "Side":
        if isinstance(value, Side):
            return value
        key = str(value).strip().upper()
        if key in ("LONG", "BUY"):
            return cls.LONG
        if key in ("SHORT", "SELL"):
            return cls.SHORT
        raise ValidationError(f"side must be LONG or SHORT, got {value!r}")

    @property
    def sign(self) -> int:
        return 1 if self is Side.LONG else -1


class PositionStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


@dataclass
class Position:
    asset: str
    side: Side
    size: float
    entry_price: float
    entry_time: datetime
    stop_loss: float
    take_profit: float
    status: PositionStatus = PositionStatus.OPEN
    pnl: float = 0.0
    fees: float = 0.0
    exit_price: Optional[float] = None
    exit_time: Optional[datetime] = None
    strategy: Optional[str] = None
    close_reason: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    @property
    def notional(self) -> float:
        """Entry notional (size * entry price)."""
        return self.size * self.entry_price

    @property
    def is_open(self) -> bool:
        return self.status is PositionStatus.OPEN

    def unrealized_pnl(self, price: float) -> float:
        return (price - self.entry_price) * self.size * self.side.sign

    def stop_breached(self, price: float) -> bool:
        """True when `price` is at or beyond the stop-loss or take-profit."""
        if self.side is Side.LONG:
            return price <= self.stop_loss or price >= self.take_profit
        return price >= self.stop_loss or price <= self.take_profit

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["side"] = self.side.value
        d["status"] = self.status.value
        d["entry_time"] = self.entry_time.isoformat() if self.entry_time else None
        d["exit_time"] = self.exit_time.isoformat() if self.exit_time else None
        return d


@dataclass
class Portfolio:
    cash: float
    margin_used: float = 0.0
    total_value: float = 0.0
    peak_value: float = 0.0

    def __post_init__(self):
        if not self.total_value:
            self.total_value = self.cash
        if not self.peak_value:
            self.peak_value = self.total_value


@dataclass
class PerformanceStats:
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    total_pnl: float = 0.0
    win_rate: float = 0.0
    sharpe_ratio: float = 0.0
    max_drawdown: float = 0.0

    def record(self, pnl: float) -> None:
        """Count one closed trade."""
        self.total_trades += 1
        self.total_pnl += pnl
        if pnl > 0:
            self.winning_trades += 1
        else:
            self.losing_trades += 1
        self.win_rate = self.winning_trades / self.total_trades


@dataclass(frozen=True)
class TradingParams:
    """Immutable ledger parameters."""
    initial_cash: float = 100_000.0
    max_position_size: float = 0.1
    max_drawdown: float = 0.2
    stop_loss_percent: float = 0.05
    take_profit_percent: float = 0.1
    leverage: float = 1.0
    min_order_size: float = 10.0
    fee_rate: float = 0.001
    history_capacity: int = 1000
    default_tick_size: float = 0.01
    tick_sizes: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        validate_fields(self, {
            "initial_cash": lambda v: validate_positive(v, "initial_cash"),
            "max_position_size": lambda v: validate_probability(v, "max_position_size"),
            "max_drawdown": lambda v: validate_probability(v, "max_drawdown"),
            "stop_loss_percent": lambda v: validate_positive(v, "stop_loss_percent"),
            "take_profit_percent": lambda v: validate_positive(v, "take_profit_percent"),
            "leverage": lambda v: validate_positive(v, "leverage"),
            "min_order_size": lambda v: validate_positive(v, "min_order_size"),
            "fee_rate": lambda v: validate_probability(v, "fee_rate"),
            "history_capacity": lambda v: validate_positive(v, "history_capacity"),
            "default_tick_size": lambda v: validate_positive(v, "default_tick_size"),
        })
        object.__setattr__(self, "tick_sizes", dict(self.tick_sizes))

    def tick_size(self, asset: str) -> float:
        return float(self.tick_sizes.get(asset, self.default_tick_size))

    @classmethod
    def from_config(cls, cfg) -> "TradingParams":
        """Build from a `TradingConfig` (or any object with the same attributes)."""
        return cls(
            initial_cash=cfg.initial_cash,
            max_position_size=cfg.max_position_size,
            max_drawdown=cfg.max_drawdown,
            stop_loss_percent=cfg.stop_loss_percent,
            take_profit_percent=cfg.take_profit_percent,
            leverage=cfg.leverage,
            min_order_size=cfg.min_order_size,
            fee_rate=cfg.fee_rate,
            history_capacity=cfg.history_capacity,
            default_tick_size=cfg.default_tick_size,
            tick_sizes=dict(cfg.tick_sizes),
        )
