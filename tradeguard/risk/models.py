"""Risk records: parameters, findings, aggregate state and assessments."""
from __future__ import annotations
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Tuple

from ..config.schemas import GATE_CHECKS
from ..utils.validation import ValidationError, validate_fields, validate_positive, validate_probability, validate_range


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class RiskLevel(str, Enum):
    VERY_LOW = "VERY_LOW"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @classmethod
    def from_score(cls, score: float) -> "RiskLevel":
        if score < 20:
            return cls.VERY_LOW
        if score < 40:
            return cls.LOW
        if score < 60:
            return cls.MEDIUM
        if score < 80:
            return cls.HIGH
        return cls.CRITICAL


class EngineState(str, Enum):
    ACTIVE = "ACTIVE"
    STOPPING = "STOPPING"
    STOPPED = "STOPPED"


@dataclass(frozen=True)
class RiskParams:
    """Immutable risk limits."""
    max_drawdown: float = 0.2
    max_daily_loss: float = 0.1
    max_position_size: float = 0.1
    max_leverage: float = 5.0
    max_concentration: float = 0.25
    var_limit: float = 0.15
    var_confidence: float = 0.95
    correlation_limit: float = 0.8
    liquidity_threshold: float = 0.7
    blocking_checks: Tuple[str, ...] = ("LEVERAGE",)

    def __post_init__(self):
        validate_fields(self, {
            "max_drawdown": lambda v: validate_probability(v, "max_drawdown"),
            "max_daily_loss": lambda v: validate_probability(v, "max_daily_loss"),
            "max_position_size": lambda v: validate_probability(v, "max_position_size"),
            "max_leverage": lambda v: validate_range(v, "max_leverage", min_val=1.0),
            "max_concentration": lambda v: validate_probability(v, "max_concentration"),
            "var_limit": lambda v: validate_positive(v, "var_limit"),
            "var_confidence": lambda v: validate_range(v, "var_confidence", 0.0, 1.0, inclusive=False),
            "correlation_limit": lambda v: validate_probability(v, "correlation_limit"),
            "liquidity_threshold": lambda v: validate_probability(v, "liquidity_threshold"),
        })
        checks = tuple(str(c).upper() for c in self.blocking_checks)
        unknown = sorted(set(checks) - set(GATE_CHECKS))
        if unknown:
            raise ValidationError(f"unknown gate checks: {unknown}")
        object.__setattr__(self, "blocking_checks", checks)

    @classmethod
    def from_config(cls, cfg) -> "RiskParams":
        """Build from a `RiskConfig`."""
        return cls(
            max_drawdown=cfg.max_drawdown,
            max_daily_loss=cfg.max_daily_loss,
            max_position_size=cfg.max_position_size,
            max_leverage=cfg.max_leverage,
            max_concentration=cfg.max_concentration,
            var_limit=cfg.var_limit,
            var_confidence=cfg.var_confidence,
            correlation_limit=cfg.correlation_limit,
            liquidity_threshold=cfg.liquidity_threshold,
            blocking_checks=tuple(cfg.blocking_checks),
        )

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["blocking_checks"] = list(self.blocking_checks)
        return d


@dataclass
class RiskFinding:
    type: str
    severity: Severity
    value: float
    limit: float
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "severity": self.severity.value, "value": self.value,
                "limit": self.limit, "message": self.message}


@dataclass
class GateDecision:
    findings: List[RiskFinding] = field(default_factory=list)

    @property
    def blocked(self) -> bool:
        return any(f.severity is Severity.CRITICAL for f in self.findings)


@dataclass
class Breach:
    timestamp: datetime
    type: str
    message: str
    level: str
    impact: str
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["timestamp"] = self.timestamp.isoformat()
        return d


@dataclass
class RiskState:
    current_drawdown: float = 0.0
    daily_pnl: float = 0.0
    portfolio_var: float = 0.0
    concentration_risk: Dict[str, float] = field(default_factory=dict)
    correlation_risk: Dict[str, float] = field(default_factory=dict)
    liquidity_risk: Dict[str, float] = field(default_factory=dict)
    risk_score: float = 0.0
    breaches: List[Breach] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_drawdown": self.current_drawdown,
            "daily_pnl": self.daily_pnl,
            "portfolio_var": self.portfolio_var,
            "concentration_risk": dict(self.concentration_risk),
            "correlation_risk": dict(self.correlation_risk),
            "liquidity_risk": dict(self.liquidity_risk),
            "risk_score": self.risk_score,
            "breaches": [b.to_dict() for b in self.breaches],
        }


@dataclass
class RiskFactor:
    type: str
    severity: Severity
    value: float
    limit: float
    description: str


@dataclass
class Recommendation:
    type: str
    priority: Severity
    message: str
    action: str


@dataclass
class LimitStatus:
    current: float
    limit: float
    status: str  # OK / BREACHED

    @property
    def breached(self) -> bool:
        return self.status == "BREACHED"


@dataclass
class RiskAssessment:
    timestamp: datetime
    overall_risk: RiskLevel
    risk_score: float
    risk_factors: List[RiskFactor] = field(default_factory=list)
    recommendations: List[Recommendation] = field(default_factory=list)
    limits: Dict[str, LimitStatus] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["timestamp"] = self.timestamp.isoformat()
        d["overall_risk"] = self.overall_risk.value
        for item in d["risk_factors"]:
            item["severity"] = item["severity"].value
        for item in d["recommendations"]:
            item["priority"] = item["priority"].value
        return d


def pair_key(a: str, b: str) -> str:
    """Order-independent key for an asset pair, e.g. 'BTC_ETH'."""
    first, second = sorted((a, b))
    return f"{first}_{second}"


def limit_status(current: float, limit: float) -> LimitStatus:
    return LimitStatus(current=current, limit=limit, status="BREACHED" if current > limit else "OK")


__all__ = [
    "Severity", "RiskLevel", "EngineState", "RiskParams", "RiskFinding", "GateDecision",
    "Breach", "RiskState", "RiskFactor", "Recommendation", "LimitStatus", "RiskAssessment",
    "pair_key", "limit_status",
]
