"""Technical indicators over a rolling price window.

All functions are pure and take plain price (or volume) sequences, oldest
first. Each one returns a fixed neutral value when the window is too short;
strategies rely on those values to stay flat until enough data has arrived.
"""
from __future__ import annotations
from typing import Sequence, Tuple

import numpy as np

WINDOW = 20          # samples needed by the 20-point indicators
HALF_WINDOW = 10
RSI_PERIOD = 14
RSI_NEUTRAL = 50.0

BREAKOUT_BUFFER = 0.02
SUPPORT_BUFFER = 0.01
EPSILON = 1e-12


def _arr(values: Sequence[float]) -> np.ndarray:
    return np.asarray(values, dtype=float)


def simple_returns(prices: Sequence[float]) -> np.ndarray:
    """p[i] / p[i-1] - 1 for consecutive prices."""
    p = _arr(prices)
    if p.size < 2:
        return np.empty(0)
    prev = p[:-1]
    with np.errstate(divide="ignore", invalid="ignore"):
        r = np.where(prev != 0, (p[1:] - prev) / prev, 0.0)
    return r


def momentum(prices: Sequence[float]) -> float:
    """Relative change of the mean of the last 10 prices vs the 10 before."""
    p = _arr(prices)
    if p.size < WINDOW:
        return 0.0
    recent = p[-HALF_WINDOW:].mean()
    older = p[-WINDOW:-HALF_WINDOW].mean()
    if older == 0:
        return 0.0
    return float((recent - older) / older)


def z_score(prices: Sequence[float]) -> float:
    """(latest - mean20) / stdev20."""
    p = _arr(prices)
    if p.size < WINDOW:
        return 0.0
    window = p[-WINDOW:]
    sd = window.std()
    if sd < EPSILON:
        return 0.0
    return float((window[-1] - window.mean()) / sd)


def rsi(prices: Sequence[float], period: int = RSI_PERIOD) -> float:
    """Relative Strength Index over the last `period` price changes, in [0, 100]."""
    p = _arr(prices)
    if period < 1 or p.size < period + 1:
        return RSI_NEUTRAL
    changes = np.diff(p[-(period + 1):])
    avg_gain = changes[changes > 0].sum() / period
    avg_loss = -changes[changes < 0].sum() / period
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return float(100.0 - 100.0 / (1.0 + rs))


def volatility(prices: Sequence[float]) -> float:
    """Standard deviation of simple returns over the whole window."""
    p = _arr(prices)
    if p.size < WINDOW:
        return 0.0
    return float(simple_returns(p).std())


def trend(prices: Sequence[float]) -> int:
    """Sign of the least-squares slope over the last 20 prices (-1, 0 or 1)."""
    p = _arr(prices)
    if p.size < WINDOW:
        return 0
    y = p[-WINDOW:]
    x = np.arange(WINDOW, dtype=float)
    n = float(WINDOW)
    denom = n * (x * x).sum() - x.sum() ** 2
    slope = (n * (x * y).sum() - x.sum() * y.sum()) / denom
    if slope > 0:
        return 1
    if slope < 0:
        return -1
    return 0


def breakout_levels(prices: Sequence[float]) -> Tuple[float, float]:
    """(upper, lower): 2% above the 20-point high and 2% below the 20-point low."""
    p = _arr(prices)
    if p.size < WINDOW:
        return 0.0, 0.0
    window = p[-WINDOW:]
    return float(window.max() * (1 + BREAKOUT_BUFFER)), float(window.min() * (1 - BREAKOUT_BUFFER))


def support(prices: Sequence[float]) -> float:
    """1% above the lowest of the last 20 prices."""
    p = _arr(prices)
    if p.size < WINDOW:
        return 0.0
    return float(p[-WINDOW:].min() * (1 + SUPPORT_BUFFER))


def resistance(prices: Sequence[float]) -> float:
    """1% below the highest of the last 20 prices."""
    p = _arr(prices)
    if p.size < WINDOW:
        return 0.0
    return float(p[-WINDOW:].max() * (1 - SUPPORT_BUFFER))


def volume_trend(volumes: Sequence[float]) -> float:
    """Latest volume relative to the mean of the last 10 (missing volume counts as 1)."""
    v = _arr(volumes)
    if v.size < WINDOW:
        return 0.0
    recent = v[-HALF_WINDOW:]
    recent = np.where(recent > 0, recent, 1.0)
    return float(recent[-1] / recent.mean())


def correlation(prices_a: Sequence[float], prices_b: Sequence[float]) -> float:
    """Pearson correlation of simple returns of two aligned, equal-length histories."""
    a = _arr(prices_a)
    b = _arr(prices_b)
    if a.size != b.size or a.size < 3:
        return 0.0
    ra = simple_returns(a)
    rb = simple_returns(b)
    da = ra - ra.mean()
    db = rb - rb.mean()
    denom = np.sqrt((da * da).sum() * (db * db).sum())
    if denom < EPSILON or not np.isfinite(denom):
        return 0.0
    return float((da * db).sum() / denom)
