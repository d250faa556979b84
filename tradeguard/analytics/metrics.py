"""Risk and performance metrics: VaR, Sharpe, Sortino, Calmar, Max Drawdown."""
from __future__ import annotations
import math
from typing import Sequence, Union

import numpy as np
import pandas as pd

RISK_FREE_RATE = 0.02        # annual
PERIODS_PER_YEAR = 252
MIN_VAR_SAMPLES = 30
MIN_RATIO_SAMPLES = 2
EPSILON = 1e-12

Series = Union[pd.Series, Sequence[float], np.ndarray]


def _clean(values: Series) -> np.ndarray:
    r = pd.Series(values, dtype=float).dropna().values
    return r[np.isfinite(r)]


def value_at_risk(series: Series, confidence: float = 0.95) -> float:
    """Empirical VaR of a P&L (or return) series, as a positive loss.

    Losses are the absolute values of the negative entries, sorted ascending;
    the result is the one at index floor(n_losses * (1 - confidence)).
    Fewer than 30 samples, or no losses at all, gives 0.
    """
    r = _clean(series)
    if r.size < MIN_VAR_SAMPLES:
        return 0.0
    losses = np.sort(-r[r < 0])
    if losses.size == 0:
        return 0.0
    index = int(math.floor(losses.size * (1.0 - confidence)))
    if index >= losses.size:
        return 0.0
    return float(losses[index])


def sharpe(returns: Series, risk_free_rate: float = RISK_FREE_RATE,
           periods_per_year: int = PERIODS_PER_YEAR) -> float:
    r = _clean(returns)
    if r.size < MIN_RATIO_SAMPLES:
        return 0.0
    excess = r - risk_free_rate / periods_per_year
    sd = np.std(r, ddof=1)
    if sd < EPSILON or not np.isfinite(sd):
        return 0.0
    return float(np.mean(excess) / sd * np.sqrt(periods_per_year))


def sortino(returns: Series, risk_free_rate: float = RISK_FREE_RATE,
            periods_per_year: int = PERIODS_PER_YEAR) -> float:
    r = _clean(returns)
    if r.size < MIN_RATIO_SAMPLES:
        return 0.0
    excess = r - risk_free_rate / periods_per_year
    downside = np.minimum(excess, 0.0)
    dd = np.sqrt(np.mean(downside ** 2))
    if dd < EPSILON or not np.isfinite(dd):
        return 0.0
    return float(np.mean(excess) / dd * np.sqrt(periods_per_year))


def max_drawdown(equity_curve: Series) -> float:
    """Largest peak-to-trough decline as a negative fraction (0 if none)."""
    ec = _clean(equity_curve)
    if ec.size == 0:
        return 0.0
    peak = np.maximum.accumulate(ec)
    with np.errstate(divide="ignore", invalid="ignore"):
        dd = np.where(peak > 0, (ec - peak) / peak, 0.0)
    return float(np.min(dd))


def calmar(returns: Series, risk_free_rate: float = RISK_FREE_RATE,
           periods_per_year: int = PERIODS_PER_YEAR) -> float:
    """Annualized excess return divided by the max drawdown of the compounded curve."""
    r = _clean(returns)
    if r.size < MIN_RATIO_SAMPLES:
        return 0.0
    equity = np.concatenate(([1.0], np.cumprod(1.0 + r)))
    mdd = abs(max_drawdown(equity))
    if mdd < EPSILON:
        return 0.0
    total = equity[-1]
    annualized = total ** (periods_per_year / r.size) - 1.0 if total > 0 else -1.0
    return float((annualized - risk_free_rate) / mdd)


def win_rate(returns: Series) -> float:
    r = _clean(returns)
    if r.size == 0:
        return 0.0
    return float((r > 0).sum()) / float(r.size)


def profit_factor(returns: Series) -> float:
    r = _clean(returns)
    if r.size == 0:
        return 0.0
    gains = r[r > 0].sum()
    losses = -r[r < 0].sum()
    return float(gains) / float(losses) if losses > 0 else float("inf")
