"""
Yahoo Finance price provider via the yfinance library.

**Conceptual**: A keyless alternative to CoinGecko. Yahoo lists crypto pairs
as "<COIN>-USD" tickers that trade 24/7, so a market symbol like "SOL-PERP"
maps to "SOL-USD" and the closing price of each bar becomes one PricePoint.

**Limitations**:
  - Web scraping can be unreliable (Yahoo may change their website).
  - Hourly history only reaches back 730 days.
  - JUP is listed under a suffixed ticker (JUP29210-USD); see YAHOO_TICKERS.

**Data transformation pipeline**:
  1. Map market -> Yahoo ticker.
  2. yf.download(ticker, period=f"{days}d", interval=settings.interval).
  3. Flatten MultiIndex columns (yfinance returns them even for one ticker).
  4. Keep the Close column, index -> timestamp column.
  5. Normalize to ascending, deduplicated UTC PricePoints.
"""

from typing import List

import pandas as pd
import yfinance as yf
from loguru import logger

from src.backtesting.models import PricePoint
from src.config.settings import YFinanceSettings
from src.data.io import frame_to_price_points
from src.venues.base import UnsupportedMarketError

YAHOO_TICKERS = {
    "SOL": "SOL-USD",
    "BTC": "BTC-USD",
    "ETH": "ETH-USD",
    "BONK": "BONK-USD",
    "JUP": "JUP29210-USD",
}


class YFinanceError(RuntimeError):
    """
    Generic error when fetching data from yfinance.

    **Recovery**:
      - Check internet connection.
      - Try again later (Yahoo Finance may be temporarily down).
      - Switch PRICE_SOURCE to coingecko.
    """
    pass


def resolve_yahoo_ticker(market: str) -> str:
    """
    Yahoo ticker for a market symbol.

    "SOL-PERP", "sol" and "SOL-USD" all resolve to "SOL-USD".

    Raises:
        UnsupportedMarketError: If the base coin has no mapping.
    """
    key = (market or "").strip().upper()
    for suffix in ("-PERP", "-USD"):
        if key.endswith(suffix):
            key = key[: -len(suffix)]
            break
    try:
        return YAHOO_TICKERS[key]
    except KeyError:
        raise UnsupportedMarketError(
            f"Unsupported market for yfinance: {market!r}. "
            f"Supported coins: {', '.join(sorted(YAHOO_TICKERS))}"
        ) from None


class YFinancePriceProvider:
    """
    PriceSeriesProvider backed by Yahoo Finance.

    Example:
        >>> from src.config.settings import YFinanceSettings
        >>> provider = YFinancePriceProvider(YFinanceSettings(interval="1h"))
        >>> prices = provider.get_prices("BTC-PERP", days=7)
    """

    def __init__(self, settings: YFinanceSettings):
        self.settings = settings

    def get_prices(self, market: str, days: int) -> List[PricePoint]:
        """
        Fetch the trailing `days` of bar closes for market.

        An empty download returns [] (logged as a warning); the engine rejects
        empty series.

        Raises:
            ValueError: If days <= 0.
            UnsupportedMarketError: If the market has no Yahoo ticker.
            YFinanceError: If the download fails or the response lacks Close.
        """
        if days <= 0:
            raise ValueError(f"days must be positive, got: {days}")
        ticker = resolve_yahoo_ticker(market)

        try:
            df = yf.download(
                ticker,
                period=f"{days}d",
                interval=self.settings.interval,
                auto_adjust=self.settings.auto_adjust,
                prepost=self.settings.prepost,
                progress=False,
                threads=self.settings.threads,
            )
        except Exception as e:
            raise YFinanceError(
                f"Error fetching data from yfinance for ticker '{ticker}': {e}"
            ) from e

        if df is None or df.empty:
            logger.warning(
                "[yfinance] no bars for {} over the last {} days at interval {}",
                ticker, days, self.settings.interval,
            )
            return []

        if isinstance(df.columns, pd.MultiIndex):
            df.columns = df.columns.get_level_values(0)

        if "Close" not in df.columns:
            raise YFinanceError(
                f"Column 'Close' missing from yfinance response. "
                f"Available columns: {list(df.columns)}"
            )

        frame = pd.DataFrame({
            "timestamp": pd.to_datetime(df.index, utc=True),
            "price": df["Close"].to_numpy(dtype=float),
        }).dropna(subset=["price"])

        prices = frame_to_price_points(frame, context=f"yfinance:{ticker}")
        logger.info("[yfinance] {} samples for {} ({})", len(prices), market, ticker)
        return prices
