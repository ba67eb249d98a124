"""
Build the price provider named by the run settings.

Keeps actions free of "if source == ..." branches: they call
create_price_provider(settings) and get something with get_prices().
"""

from src.config.settings import Settings
from src.venues.base import PriceSeriesProvider
from src.venues.coingecko_price_provider import CoinGeckoPriceProvider
from src.venues.yfinance_price_provider import YFinancePriceProvider


def create_price_provider(settings: Settings) -> PriceSeriesProvider:
    """
    Provider for settings.run.price_source.

    Raises:
        ValueError: If the price source is unknown. RunSettings already rejects
                    unknown sources, so this only fires for hand-built objects.
    """
    source = settings.run.price_source
    if source == "coingecko":
        return CoinGeckoPriceProvider(settings.coingecko)
    if source == "yfinance":
        return YFinancePriceProvider(settings.yfinance)
    raise ValueError(f"Unknown price source: {source!r}")
