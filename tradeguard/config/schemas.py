"""Pydantic schemas for configuration validation."""
from __future__ import annotations
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

GATE_CHECKS = ("POSITION_SIZE", "CONCENTRATION", "CORRELATION", "LIQUIDITY", "LEVERAGE")


class TradingConfig(BaseModel):
    """Ledger parameters: capital, sizing, stops and fees."""
    model_config = ConfigDict(validate_assignment=True)

    initial_cash: float = Field(default=100_000.0, gt=0, description="Starting cash")
    max_position_size: float = Field(default=0.1, gt=0, le=1, description="Max position value as fraction of cash")
    max_drawdown: float = Field(default=0.2, gt=0, le=1, description="Drawdown that triggers a CRITICAL alert")
    stop_loss_percent: float = Field(default=0.05, gt=0, lt=1, description="Stop-loss offset from entry")
    take_profit_percent: float = Field(default=0.1, gt=0, description="Take-profit offset from entry")
    leverage: float = Field(default=1.0, ge=1, description="Margin multiple of cash allowed")
    min_order_size: float = Field(default=10.0, gt=0, description="Smallest suggested order size")
    fee_rate: float = Field(default=0.001, ge=0, lt=1, description="Fee as fraction of notional")
    history_capacity: int = Field(default=1000, ge=20, description="Price points kept per asset")
    default_tick_size: float = Field(default=0.01, gt=0, description="Tick size when none is configured")
    tick_sizes: Dict[str, float] = Field(default_factory=dict, description="Per-asset tick sizes")


class RiskConfig(BaseModel):
    """Risk engine limits."""
    model_config = ConfigDict(validate_assignment=True)

    max_drawdown: float = Field(default=0.2, gt=0, le=1)
    max_daily_loss: float = Field(default=0.1, gt=0, le=1)
    max_position_size: float = Field(default=0.1, gt=0, le=1)
    max_leverage: float = Field(default=5.0, ge=1)
    max_concentration: float = Field(default=0.25, gt=0, le=1)
    var_limit: float = Field(default=0.15, gt=0, le=1)
    var_confidence: float = Field(default=0.95, gt=0, lt=1)
    correlation_limit: float = Field(default=0.8, gt=0, le=1)
    liquidity_threshold: float = Field(default=0.7, ge=0, le=1)
    blocking_checks: List[str] = Field(default_factory=lambda: ["LEVERAGE"],
                                       description="Gate checks whose findings block an open")

    @field_validator("blocking_checks")
    @classmethod
    def validate_blocking_checks(cls, v):
        checks = [str(c).upper() for c in v]
        unknown = sorted(set(checks) - set(GATE_CHECKS))
        if unknown:
            raise ValueError(f"unknown gate checks: {unknown}")
        return checks


class MonitoringConfig(BaseModel):
    """Ticker intervals and kill switch."""
    model_config = ConfigDict(validate_assignment=True)

    risk_interval_seconds: float = Field(default=30.0, gt=0)
    ledger_interval_seconds: float = Field(default=60.0, gt=0)
    kill_switch_file: Optional[str] = Field(default=None, description="Emergency stop when this file exists")


class AlertsConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    webhook_url: Optional[str] = None
    webhook_min_level: str = Field(default="WARNING")
    history_size: int = Field(default=100, ge=1)

    @field_validator("webhook_min_level")
    @classmethod
    def validate_level(cls, v):
        level = str(v).upper()
        if level not in {"INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"invalid alert level: {v}")
        return level


class Config(BaseModel):
    """Main configuration schema."""
    model_config = ConfigDict(validate_assignment=True)

    trading: TradingConfig = Field(default_factory=TradingConfig)
    risk: RiskConfig = Field(default_factory=RiskConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    alerts: AlertsConfig = Field(default_factory=AlertsConfig)
