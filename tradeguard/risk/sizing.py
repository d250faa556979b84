"""Volatility-adjusted position sizing.

risk_amount = cash * max_position_size
raw         = risk_amount / (price * stop_loss_percent)
adjusted    = raw * (1 - volatility)
size        = clamp(adjusted, min_order_size, risk_amount / price)

The lower bound wins when the two bounds cross.
"""
from __future__ import annotations

from ..ledger.models import TradingParams
from ..utils.logging import get_logger
from ..utils.validation import validate_params, validate_positive_param

LOGGER = get_logger(__name__)


@validate_params(
    cash=validate_positive_param("cash", allow_zero=True),
    price=validate_positive_param("price"),
    volatility=validate_positive_param("volatility", allow_zero=True),
)
def position_size(cash: float, price: float, volatility: float, params: TradingParams) -> float:
    """Units to trade for one entry.

    Args:
        cash: Available cash.
        price: Current asset price.
        volatility: Stdev of simple returns (0 when unknown).
        params: Ledger parameters (max_position_size, stop_loss_percent, min_order_size).
    """
    risk_amount = cash * params.max_position_size
    raw = risk_amount / (price * params.stop_loss_percent)
    adjusted = raw * (1.0 - volatility)
    cap = risk_amount / price
    size = max(params.min_order_size, min(adjusted, cap))
    LOGGER.debug(f"Position size: {size:.4f} (raw={raw:.4f}, vol={volatility:.4f}, cap={cap:.4f})")
    return size
