"""
Trend-following momentum simulator.

**Conceptual**: Momentum compares the current price with the mean of the
momentum_period samples before it. A move further than momentum_threshold
percent away from that mean is read as a trend: above opens a long, below
opens a short. The position is held until it hits stop loss or take profit,
or until momentum swings past the threshold the other way.

**Signals** (threshold t, momentum m):
  - Flat, m > t       -> open long   ("Momentum 5.00%")
  - Flat, m < -t      -> open short  ("Momentum -3.10%")
  - Long, m < -t      -> close       ("Momentum reversal")
  - Short, m > t      -> close       ("Momentum reversal")

The first momentum_period samples only record flat equity.
"""

from typing import Optional, Sequence, Union

from src.analytics.indicators import compute_trailing_momentum
from src.backtesting.models import BacktestConfig, PricePoint, TradeSide
from src.strategies.base import Long, Short, SinglePositionSimulator

MOMENTUM_REVERSAL_REASON = "Momentum reversal"


class MomentumSimulator(SinglePositionSimulator):
    """Single-position momentum strategy."""

    def warmup(self, config: BacktestConfig) -> int:
        return config.momentum_period

    def indicator(self, config: BacktestConfig, prices: Sequence[PricePoint], index: int) -> float:
        window = [point.price for point in prices[index - config.momentum_period:index]]
        return compute_trailing_momentum(window, prices[index].price)

    def entry_side(self, config: BacktestConfig, value: float) -> Optional[TradeSide]:
        if abs(value) <= config.momentum_threshold:
            return None
        return TradeSide.LONG if value > 0 else TradeSide.SHORT

    def entry_reason(self, value: float, side: TradeSide) -> str:
        return f"Momentum {value:.2f}%"

    def signal_exit_reason(
        self,
        config: BacktestConfig,
        position: Union[Long, Short],
        value: float,
    ) -> Optional[str]:
        if isinstance(position, Long) and value < -config.momentum_threshold:
            return MOMENTUM_REVERSAL_REASON
        if isinstance(position, Short) and value > config.momentum_threshold:
            return MOMENTUM_REVERSAL_REASON
        return None
