"""
In-memory price provider over one already loaded series.

**Conceptual**: A comparison run fetches a series once and replays it for
every strategy. StaticPriceProvider wraps that series so it can be handed to
BacktestEngine.run_backtest() like any network provider, and it is also the
natural test double.

**Window**: get_prices(market, days) returns the samples no older than `days`
before the series' last timestamp, i.e. "the last N days" relative to the
data rather than to the wall clock. Replays stay deterministic.

**Other markets**: delegated to an optional fallback provider; without one
they raise UnsupportedMarketError.
"""

from typing import List, Optional, Sequence

import pandas as pd

from src.backtesting.models import PricePoint
from src.venues.base import PriceSeriesProvider, UnsupportedMarketError


class StaticPriceProvider:
    """
    Serves a fixed series for one market.

    Example:
        >>> provider = StaticPriceProvider("SOL-PERP", read_price_series_csv(path))
        >>> engine = BacktestEngine(provider)
    """

    def __init__(
        self,
        market: str,
        prices: Sequence[PricePoint],
        fallback: Optional[PriceSeriesProvider] = None,
    ):
        """
        Args:
            market: Market symbol this series belongs to (case-insensitive).
            prices: Ascending, deduplicated samples.
            fallback: Provider for any other market.
        """
        self.market = market
        self.prices = list(prices)
        self.fallback = fallback

    def serves(self, market: str) -> bool:
        return (market or "").strip().upper() == self.market.strip().upper()

    def get_prices(self, market: str, days: int) -> List[PricePoint]:
        """
        Trailing `days` window of the stored series.

        Raises:
            ValueError: If days <= 0.
            UnsupportedMarketError: For another market with no fallback.
        """
        if days <= 0:
            raise ValueError(f"days must be positive, got: {days}")

        if not self.serves(market):
            if self.fallback is None:
                raise UnsupportedMarketError(
                    f"No cached series for {market!r} (cached market: {self.market!r})"
                )
            return self.fallback.get_prices(market, days)

        if not self.prices:
            return []

        cutoff = pd.Timestamp(self.prices[-1].timestamp) - pd.Timedelta(days=days)
        return [point for point in self.prices if point.timestamp >= cutoff]
