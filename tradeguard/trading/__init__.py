"""Trading system facade."""
from .system import TradingSystem

__all__ = ["TradingSystem"]
