"""
CoinGecko price provider.

**Conceptual**: Maps a market symbol ("SOL-PERP", "btc") to a CoinGecko coin
id, fetches the trailing window with CoinGeckoClient, and converts the
[ms, price] pairs to an ascending, deduplicated PricePoint list.

**Symbol mapping**: Perpetual markets are priced off their spot coin, so
"SOL-PERP" and "SOL" both map to "solana". Matching is case-insensitive.

**Granularity** (chosen by CoinGecko from days):
  - 1 day       -> ~5 minute samples
  - 2-90 days   -> hourly samples
  - > 90 days   -> daily samples
"""

from typing import List, Optional

import pandas as pd
from loguru import logger

from src.backtesting.models import PricePoint
from src.config.settings import CoinGeckoSettings
from src.data.io import frame_to_price_points
from src.venues.base import UnsupportedMarketError
from src.venues.coingecko_client import CoinGeckoClient

COINGECKO_COIN_IDS = {
    "SOL": "solana",
    "SOL-PERP": "solana",
    "BTC": "bitcoin",
    "BTC-PERP": "bitcoin",
    "ETH": "ethereum",
    "ETH-PERP": "ethereum",
    "BONK": "bonk",
    "BONK-PERP": "bonk",
    "JUP": "jupiter-exchange-solana",
    "JUP-PERP": "jupiter-exchange-solana",
}


def resolve_coin_id(market: str) -> str:
    """
    CoinGecko coin id for a market symbol.

    Raises:
        UnsupportedMarketError: If the symbol has no mapping.

    Example:
        >>> resolve_coin_id("sol-perp")
        'solana'
    """
    key = (market or "").strip().upper()
    try:
        return COINGECKO_COIN_IDS[key]
    except KeyError:
        raise UnsupportedMarketError(
            f"Unsupported market: {market!r}. "
            f"Supported: {', '.join(supported_markets())}"
        ) from None


def is_supported(market: str) -> bool:
    return (market or "").strip().upper() in COINGECKO_COIN_IDS


def supported_markets() -> List[str]:
    return sorted(COINGECKO_COIN_IDS)


class CoinGeckoPriceProvider:
    """
    PriceSeriesProvider backed by CoinGecko's market chart endpoint.

    Example:
        >>> provider = CoinGeckoPriceProvider(settings.coingecko)
        >>> prices = provider.get_prices("SOL-PERP", days=7)
        >>> len(prices)  # hourly samples
        169
    """

    def __init__(
        self,
        settings: CoinGeckoSettings,
        client: Optional[CoinGeckoClient] = None,
    ):
        """
        Args:
            settings: CoinGecko configuration.
            client: Optional pre-built client (tests pass a mock here).
        """
        self.settings = settings
        self.client = client or CoinGeckoClient(settings)

    def get_prices(self, market: str, days: int) -> List[PricePoint]:
        """
        Fetch the trailing `days` of prices for market.

        Raises:
            ValueError: If days <= 0.
            UnsupportedMarketError: If the market has no coin id.
            CoinGeckoClientError: On API failures (see CoinGeckoClient).
        """
        if days <= 0:
            raise ValueError(f"days must be positive, got: {days}")
        coin_id = resolve_coin_id(market)

        rows = self.client.get_market_chart(coin_id, days)
        if not rows:
            logger.warning("[coingecko] no prices returned for {} ({})", market, coin_id)
            return []

        df = pd.DataFrame([row[:2] for row in rows], columns=["timestamp", "price"])
        df["timestamp"] = pd.to_datetime(df["timestamp"], unit="ms", utc=True)
        prices = frame_to_price_points(df, context=f"coingecko:{coin_id}")

        logger.info(
            "[coingecko] {} samples for {} from {} to {}",
            len(prices), market, prices[0].timestamp, prices[-1].timestamp,
        )
        return prices

    def close(self):
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
