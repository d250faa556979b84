"""Risk assessment: pre-trade gate, continuous scoring, sizing and emergency stop."""
from .models import (
    Severity,
    RiskLevel,
    EngineState,
    RiskParams,
    RiskFinding,
    GateDecision,
    RiskState,
    RiskAssessment,
    LimitStatus,
)
from .gate import PreTradeGate, leverage_ratio, liquidity_score
from .engine import RiskEngine, assess_alert_risk
from .sizing import position_size
from .kill_switch import KillSwitch

__all__ = [
    "Severity",
    "RiskLevel",
    "EngineState",
    "RiskParams",
    "RiskFinding",
    "GateDecision",
    "RiskState",
    "RiskAssessment",
    "LimitStatus",
    "PreTradeGate",
    "leverage_ratio",
    "liquidity_score",
    "RiskEngine",
    "assess_alert_risk",
    "position_size",
    "KillSwitch",
]
