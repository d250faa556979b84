"""Market data: snapshot records and the per-asset cache."""
from .models import MarketSnapshot, PricePoint
from .cache import MarketDataCache, DEFAULT_HISTORY_CAPACITY

__all__ = ["MarketSnapshot", "PricePoint", "MarketDataCache", "DEFAULT_HISTORY_CAPACITY"]
