"""tradeguard: position ledger and risk engine for simulated leveraged trading."""
from .trading.system import TradingSystem
from .ledger import PositionLedger, Position, Side, TradingParams
from .risk import RiskEngine, RiskParams, RiskLevel
from .strategies import StrategyName, Signal, UnknownStrategyError
from .data import MarketDataCache, MarketSnapshot

__version__ = "0.1.0"

__all__ = [
    "TradingSystem",
    "PositionLedger",
    "Position",
    "Side",
    "TradingParams",
    "RiskEngine",
    "RiskParams",
    "RiskLevel",
    "StrategyName",
    "Signal",
    "UnknownStrategyError",
    "MarketDataCache",
    "MarketSnapshot",
    "__version__",
]
