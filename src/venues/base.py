"""
Base abstractions for price providers (venues).

**Conceptual**: This module defines the PriceSeriesProvider protocol, the one
interface the backtest engine needs from the outside world. By defining a
common protocol, the engine stays decoupled from specific vendors (CoinGecko,
Yahoo Finance, a cached CSV, an in-memory series in a test).

**Why protocols over inheritance?**
  - Protocols are structural typing - any class with a matching get_prices()
    is a provider, no base class needed.
  - Test doubles are one-method classes.

**Data guarantees**:
All PriceSeriesProvider implementations MUST return:
  1. PricePoint samples with timezone-aware UTC timestamps.
  2. Strictly ascending timestamp order (oldest first).
  3. No duplicate timestamps.
The engine trusts these and does not re-sort or re-validate.
"""

from typing import List, Protocol

from src.backtesting.models import PricePoint


class UnsupportedMarketError(ValueError):
    """Raised when a provider has no mapping for the requested market symbol."""
    pass


class PriceSeriesProvider(Protocol):
    """
    Protocol for fetching a historical price series for one market.

    **Example usage**:
        >>> provider = CoinGeckoPriceProvider(settings.coingecko)
        >>> prices = provider.get_prices("SOL-PERP", days=7)
        >>> prices[0].timestamp < prices[-1].timestamp
        True
    """

    def get_prices(self, market: str, days: int) -> List[PricePoint]:
        """
        Fetch the trailing `days` of prices for market.

        Args:
            market: Market symbol (e.g. "SOL-PERP", "BTC").
            days: Number of days of history, > 0.

        Returns:
            PricePoint list, ascending by timestamp, deduplicated. May be empty
            if the vendor has no data; the engine turns that into an error.

        Raises:
            ValueError: If days <= 0.
            UnsupportedMarketError: If the market can't be mapped to a vendor id.
        """
        ...
