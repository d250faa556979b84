"""Pre-trade risk gate.

Runs five independent checks on a candidate open and returns a GateDecision.
Only CRITICAL findings block; checks named in `RiskParams.blocking_checks` are
escalated to CRITICAL. Advisory findings are reported as a WARNING alert.
"""
from __future__ import annotations
import math
from typing import Callable, List, Optional

from .models import GateDecision, RiskFinding, RiskParams, Severity
from ..data.cache import MarketDataCache
from ..ledger.ledger import PositionLedger
from ..ledger.models import Side
from ..quant.indicators import correlation
from ..utils.alerts import AlertLevel
from ..utils.logging import get_logger

LOGGER = get_logger(__name__)

LIQUIDITY_MULTIPLIER = 100.0


def leverage_ratio(total_value: float, margin_used: float) -> float:
    """total_value / (total_value - margin_used); 1 with no margin, inf when equity is gone."""
    if margin_used <= 0:
        return 1.0
    equity = total_value - margin_used
    if equity <= 0:
        return math.inf
    return total_value / equity


def liquidity_score(volume: float, notional: float) -> float:
    """min(1, volume / (notional * 100)); 1 for a zero notional."""
    if notional <= 0:
        return 1.0
    return min(1.0, volume / (notional * LIQUIDITY_MULTIPLIER))


def aligned_correlation(cache: MarketDataCache, asset_a: str, asset_b: str) -> float:
    """Return correlation over the common tail of two price histories."""
    a = cache.prices(asset_a)
    b = cache.prices(asset_b)
    n = min(a.size, b.size)
    if n < 3:
        return 0.0
    return correlation(a[-n:], b[-n:])


class PreTradeGate:
    def __init__(self, params: RiskParams, ledger: PositionLedger,
                 halted: Optional[Callable[[], bool]] = None):
        self.params = params
        self.ledger = ledger
        self.halted = halted if halted is not None else (lambda: False)

    def __call__(self, asset: str, side: Side, size: float, price: float) -> GateDecision:
        return self.evaluate(asset, side, size, price)

    def evaluate(self, asset: str, side: Side, size: float, price: float) -> GateDecision:
        if self.halted():
            finding = RiskFinding("HALTED", Severity.CRITICAL, 1.0, 0.0, "Risk engine is stopped")
            LOGGER.warning(f"Gate blocked {asset}: risk engine stopped", extra={"asset": asset})
            return GateDecision([finding])

        notional = size * price
        total_value = self.ledger.valuation()
        findings: List[RiskFinding] = []
        for check in (self.check_position_size, self.check_concentration, self.check_correlation,
                      self.check_liquidity, self.check_leverage):
            finding = check(asset, notional, total_value)
            if finding is not None:
                if finding.type in self.params.blocking_checks:
                    finding.severity = Severity.CRITICAL
                elif finding.severity is Severity.CRITICAL:
                    finding.severity = Severity.HIGH
                findings.append(finding)

        decision = GateDecision(findings)
        advisory = [f for f in findings if f.severity is not Severity.CRITICAL]
        if advisory:
            self.ledger.section.post(
                AlertLevel.WARNING,
                f"Pre-trade risk findings for {asset}: " + ", ".join(f.type for f in advisory),
                {"asset": asset, "side": side.value, "size": size, "price": price,
                 "findings": [f.to_dict() for f in advisory]},
            )
        if decision.blocked:
            LOGGER.warning(f"Gate blocked {asset}: {[f.type for f in findings if f.severity is Severity.CRITICAL]}",
                           extra={"asset": asset})
        return decision

    def check_position_size(self, asset: str, notional: float, total_value: float) -> Optional[RiskFinding]:
        fraction = notional / total_value if total_value > 0 else math.inf
        if fraction > self.params.max_position_size:
            return RiskFinding("POSITION_SIZE", Severity.HIGH, fraction, self.params.max_position_size,
                               f"Position is {fraction:.2%} of portfolio")
        return None

    def check_concentration(self, asset: str, notional: float, total_value: float) -> Optional[RiskFinding]:
        existing = 0.0
        pos = self.ledger.get_position(asset)
        if pos is not None:
            existing = pos.size * self.ledger.current_price(asset, pos.entry_price)
        fraction = (existing + notional) / total_value if total_value > 0 else math.inf
        if fraction > self.params.max_concentration:
            return RiskFinding("CONCENTRATION", Severity.HIGH, fraction, self.params.max_concentration,
                               f"{asset} would be {fraction:.2%} of portfolio")
        return None

    def check_correlation(self, asset: str, notional: float, total_value: float) -> Optional[RiskFinding]:
        worst = 0.0
        for held in self.ledger.open_positions():
            if held == asset:
                continue
            worst = max(worst, abs(aligned_correlation(self.ledger.cache, asset, held)))
        if worst > self.params.correlation_limit:
            return RiskFinding("CORRELATION", Severity.MEDIUM, worst, self.params.correlation_limit,
                               f"{asset} correlation {worst:.2f} with held assets")
        return None

    def check_liquidity(self, asset: str, notional: float, total_value: float) -> Optional[RiskFinding]:
        snap = self.ledger.cache.peek(asset)
        volume = snap.volume if snap is not None else 0.0
        score = liquidity_score(volume, notional)
        if score < self.params.liquidity_threshold:
            return RiskFinding("LIQUIDITY", Severity.MEDIUM, score, self.params.liquidity_threshold,
                               f"Liquidity score {score:.2f} for {asset}")
        return None

    def check_leverage(self, asset: str, notional: float, total_value: float) -> Optional[RiskFinding]:
        ratio = leverage_ratio(total_value, self.ledger.portfolio.margin_used)
        if ratio > self.params.max_leverage:
            return RiskFinding("LEVERAGE", Severity.CRITICAL, ratio, self.params.max_leverage,
                               f"Leverage {ratio:.2f}x exceeds {self.params.max_leverage}x")
        return None
