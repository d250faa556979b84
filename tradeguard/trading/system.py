"""Trading system facade.

Wires the market data cache, position ledger, risk engine and strategy
evaluator around one critical section and one alert sink, and exposes the
operations external layers (API, CLI) call.

Usage:
    system = TradingSystem.from_config("configs/default.yaml")
    system.update_market_data("BTC", {"price": 100.0, "bid": 99.5, "ask": 100.5, "volume": 1e6})
    system.execute_strategy("BTC", "momentum", "BUY")
    system.start()      # risk and ledger tickers
    ...
    system.shutdown()
"""
from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from ..config.manager import ConfigManager
from ..config.schemas import Config
from ..data.cache import MarketDataCache
from ..data.models import MarketSnapshot
from ..ledger.ledger import LedgerListener, PositionLedger
from ..ledger.models import Position, Side, TradingParams
from ..risk.engine import RiskEngine
from ..risk.kill_switch import KillSwitch
from ..risk.models import LimitStatus, RiskAssessment, RiskParams
from ..strategies.base import OrderAction, Signal, StrategyName, UnknownStrategyError
from ..strategies.registry import StrategyEvaluator
from ..utils.alerts import (
    AlertHistory,
    AlertLevel,
    AlertSink,
    CompositeAlertSink,
    LoggingAlertSink,
    WebhookAlertSink,
)
from ..utils.clock import Clock, SystemClock
from ..utils.logging import TradeLogger, get_logger
from ..utils.scheduler import Ticker
from ..utils.sync import CriticalSection

LOGGER = get_logger(__name__)


class TradingSystem(LedgerListener):
    def __init__(
        self,
        config: Optional[Config] = None,
        clock: Optional[Clock] = None,
        sinks: Optional[List[AlertSink]] = None,
    ):
        self.config = config if config is not None else Config()
        self.clock = clock if clock is not None else SystemClock()

        self.alert_history = AlertHistory(max_size=self.config.alerts.history_size, clock=self.clock)
        self.alerts = CompositeAlertSink([
            LoggingAlertSink(),
            self.alert_history,
            WebhookAlertSink(self.config.alerts.webhook_url, min_level=self.config.alerts.webhook_min_level),
            *(sinks or []),
        ])
        self.section = CriticalSection(sink=self.alerts, clock=self.clock)

        self.trading_params = TradingParams.from_config(self.config.trading)
        self.risk_params = RiskParams.from_config(self.config.risk)
        self.cache = MarketDataCache(self.trading_params.history_capacity, section=self.section, clock=self.clock)
        self.ledger = PositionLedger(self.trading_params, self.cache, self.section, self.clock)

        kill_file = self.config.monitoring.kill_switch_file
        self.risk = RiskEngine(
            self.risk_params,
            self.ledger,
            kill_switch=KillSwitch(kill_file) if kill_file else None,
        )
        self.evaluator = StrategyEvaluator(self.ledger, self.risk.calculate_position_size)
        self._ledger_ticker: Optional[Ticker] = None
        self.ledger.subscribe(self)

    @classmethod
    def from_config(cls, source: Union[None, str, Path, ConfigManager, Config] = None, **kwargs) -> "TradingSystem":
        """Build from a YAML path, a ConfigManager, a Config, or the environment (None)."""
        if source is None:
            config = ConfigManager.from_env().config
        elif isinstance(source, Config):
            config = source
        elif isinstance(source, ConfigManager):
            config = source.config
        else:
            config = ConfigManager.from_yaml(source).config
        return cls(config, **kwargs)

    @property
    def is_running(self) -> bool:
        return self.risk.is_active

    @property
    def maintenance_active(self) -> bool:
        return self._ledger_ticker is not None and self._ledger_ticker.is_active

    def on_emergency_stop(self, reason: str, closed: List[Position]) -> None:
        # may run on the risk ticker thread while the section is held
        if self._ledger_ticker is not None:
            self._ledger_ticker.cancel(wait=False)

    # --- market data ---

    def update_market_data(self, asset: str, data: MarketSnapshot | Mapping[str, Any]) -> MarketSnapshot:
        return self.cache.update_snapshot(asset, data)

    # --- trading ---

    def execute_strategy(self, asset: str, strategy: StrategyName | str, signal: Signal | str) -> Optional[Position]:
        """Evaluate a strategy signal and apply the resulting order.

        Returns the opened or closed position, or None when no order was
        produced or the ledger rejected it.
        """
        with TradeLogger(LOGGER, asset, str(getattr(strategy, "value", strategy))) as trade_log:
            with self.section.hold():
                try:
                    order = self.evaluator.evaluate(asset, strategy, signal)
                except UnknownStrategyError as e:
                    self.section.post(AlertLevel.ERROR, str(e), {"asset": asset, "strategy": str(strategy)})
                    return None
                if order is None:
                    if not self.cache.has_data(asset):
                        self.section.post(AlertLevel.WARNING, f"No market data for {asset}",
                                          {"asset": asset, "strategy": str(strategy)})
                    return None

                price = self.ledger.current_price(asset)
                trade_log.log_decision(order.action.value, order.side.value if order.side else None,
                                       order.size, price, order.reason)
                if order.action is OrderAction.OPEN:
                    pos = self.ledger.open_position(asset, order.side, order.size, strategy=order.strategy.value)
                    if pos is not None:
                        trade_log.log_execution(pos.id, pos.side.value, pos.size, pos.entry_price)
                else:
                    pos = self.ledger.close_position(asset, reason=order.reason)
                    if pos is not None:
                        trade_log.log_execution(pos.id, pos.side.value, pos.size, pos.exit_price)
                return pos

    def open_position(self, asset: str, side: Side | str, size: float) -> Optional[Position]:
        return self.ledger.open_position(asset, side, size)

    def close_position(self, asset: str, reason: str = "manual") -> Optional[Position]:
        return self.ledger.close_position(asset, reason=reason)

    # --- queries ---

    def get_stats(self) -> Dict[str, Any]:
        stats = self.ledger.get_stats()
        stats["risk"] = self.risk.state.to_dict()
        stats["engine_state"] = self.risk.engine_state.value
        alert_stats = self.alert_history.get_alert_stats()
        stats["alerts"] = {"total": alert_stats["total"], "by_level": alert_stats["by_level"]}
        return stats

    def perform_risk_assessment(self) -> RiskAssessment:
        return self.risk.perform_risk_assessment()

    def check_risk_limits(self) -> Dict[str, LimitStatus]:
        return self.risk.check_risk_limits()

    def get_risk_report(self) -> Dict[str, Any]:
        return self.risk.get_risk_report()

    # --- lifecycle ---

    def start(self) -> None:
        """Start the risk monitor and the ledger maintenance tickers."""
        monitoring = self.config.monitoring
        self.risk.start_monitoring(monitoring.risk_interval_seconds)
        if self._ledger_ticker is None:
            self._ledger_ticker = Ticker(monitoring.ledger_interval_seconds, self.ledger.run_maintenance,
                                         name="ledger-maintenance")
        self._ledger_ticker.start()
        LOGGER.info("Trading system started")

    def emergency_stop(self, reason: str) -> List[Position]:
        self._stop_ledger_ticker()
        return self.risk.emergency_stop(reason)

    def shutdown(self) -> None:
        """Stop both tickers without liquidating."""
        self._stop_ledger_ticker()
        self.risk.shutdown()
        LOGGER.info("Trading system shut down")

    def _stop_ledger_ticker(self) -> None:
        if self._ledger_ticker is not None:
            self._ledger_ticker.cancel(wait=True)
