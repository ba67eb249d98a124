"""
RSI mean-reversion simulator.

**Conceptual**: Mean reversion bets that stretched moves snap back. RSI over
the rsi_period samples before the current one measures the stretch: below
rsi_oversold the market has fallen "too far" and a long opens; above
rsi_overbought it has risen "too far" and a short opens. The trade is
considered done once RSI crosses back through the 50 midpoint.

**Signals** (oversold o, overbought b):
  - Flat, RSI < o    -> open long   ("RSI 22.00 (oversold)")
  - Flat, RSI > b    -> open short  ("RSI 81.40 (overbought)")
  - Long, RSI > 50   -> close       ("RSI normalized")
  - Short, RSI < 50  -> close       ("RSI normalized")

Stop loss and take profit are checked before the RSI exit.
"""

from typing import Optional, Sequence, Union

from src.analytics.indicators import compute_rsi
from src.backtesting.models import BacktestConfig, PricePoint, TradeSide
from src.strategies.base import Long, Short, SinglePositionSimulator

RSI_MIDPOINT = 50.0
RSI_NORMALIZED_REASON = "RSI normalized"


class MeanReversionSimulator(SinglePositionSimulator):
    """Single-position RSI mean-reversion strategy."""

    def warmup(self, config: BacktestConfig) -> int:
        return config.rsi_period

    def indicator(self, config: BacktestConfig, prices: Sequence[PricePoint], index: int) -> float:
        window = [point.price for point in prices[index - config.rsi_period:index]]
        return compute_rsi(window)

    def entry_side(self, config: BacktestConfig, value: float) -> Optional[TradeSide]:
        if value < config.rsi_oversold:
            return TradeSide.LONG
        if value > config.rsi_overbought:
            return TradeSide.SHORT
        return None

    def entry_reason(self, value: float, side: TradeSide) -> str:
        label = "oversold" if side == TradeSide.LONG else "overbought"
        return f"RSI {value:.2f} ({label})"

    def signal_exit_reason(
        self,
        config: BacktestConfig,
        position: Union[Long, Short],
        value: float,
    ) -> Optional[str]:
        if isinstance(position, Long) and value > RSI_MIDPOINT:
            return RSI_NORMALIZED_REASON
        if isinstance(position, Short) and value < RSI_MIDPOINT:
            return RSI_NORMALIZED_REASON
        return None
