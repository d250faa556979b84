"""
Pytest Configuration and Fixtures
==================================
Shared fixtures for all tests: a manual clock, an in-memory alert sink and
pre-wired cache / ledger / risk engine / trading system.
"""
import pytest
import numpy as np
from pathlib import Path
import sys

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from tradeguard.config.schemas import Config
from tradeguard.data.cache import MarketDataCache
from tradeguard.ledger.ledger import PositionLedger
from tradeguard.ledger.models import TradingParams
from tradeguard.risk.engine import RiskEngine
from tradeguard.risk.models import RiskParams
from tradeguard.trading.system import TradingSystem
from tradeguard.utils.alerts import AlertHistory
from tradeguard.utils.clock import ManualClock
from tradeguard.utils.sync import CriticalSection

DEFAULT_CONFIG = PROJECT_ROOT / "configs" / "default.yaml"


@pytest.fixture(autouse=True)
def log_dir(tmp_path_factory, monkeypatch):
    """Keep log files out of the working tree."""
    path = tmp_path_factory.mktemp("logs")
    monkeypatch.setenv("TRADEGUARD_LOG_DIR", str(path))
    monkeypatch.delenv("TRADEGUARD_ALERT_WEBHOOK", raising=False)
    return path


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def alerts(clock) -> AlertHistory:
    """Records every alert delivered by the critical section."""
    return AlertHistory(max_size=1000, clock=clock)


@pytest.fixture
def section(alerts, clock) -> CriticalSection:
    return CriticalSection(sink=alerts, clock=clock)


@pytest.fixture
def cache(section, clock) -> MarketDataCache:
    return MarketDataCache(capacity=1000, section=section, clock=clock)


@pytest.fixture
def make_quote():
    """Build a snapshot mapping: bid/ask straddle `price` by `spread`."""
    def _quote(price, spread=1.0, volume=1e9):
        return {"price": price, "bid": price - spread / 2, "ask": price + spread / 2, "volume": volume}
    return _quote


@pytest.fixture
def make_ledger(cache, section, clock):
    def _make(**params) -> PositionLedger:
        return PositionLedger(TradingParams(**params), cache, section, clock)
    return _make


@pytest.fixture
def ledger(make_ledger) -> PositionLedger:
    return make_ledger()


@pytest.fixture
def engine(ledger) -> RiskEngine:
    eng = RiskEngine(RiskParams(), ledger)
    yield eng
    eng.shutdown()


@pytest.fixture
def system(clock) -> TradingSystem:
    sys_ = TradingSystem(Config(), clock=clock)
    yield sys_
    sys_.shutdown()


@pytest.fixture
def feed():
    """Push a list of prices (constant volume) into a cache or system."""
    def _feed(target, asset, prices, spread=0.01, volume=1e9):
        update = getattr(target, "update_snapshot", None) or target.update_market_data
        for p in prices:
            update(asset, {"price": float(p), "bid": p - spread / 2, "ask": p + spread / 2, "volume": volume})
    return _feed


@pytest.fixture
def random_walk() -> np.ndarray:
    np.random.seed(42)
    return 100.0 * np.exp(np.cumsum(np.random.normal(0, 0.01, 200)))
