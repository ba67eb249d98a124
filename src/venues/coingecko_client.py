"""
HTTP client for the CoinGecko API.

**Conceptual**: This module provides a thin wrapper around HTTP requests to
CoinGecko. It handles headers, request construction, error mapping and JSON
parsing. It does NOT know about markets like "SOL-PERP" or about PricePoints;
CoinGeckoPriceProvider maps symbols to coin ids and converts the response.

**Why separate HTTP client from provider?**
  - The client can be tested against mocked responses without any pandas.
  - The provider can be tested with a fake client, without HTTP.

**Endpoint used**:
    GET {base_url}/coins/{coin_id}/market_chart?vs_currency=usd&days=N
returns {"prices": [[ms_timestamp, price], ...], "market_caps": ..., ...}.
CoinGecko picks the granularity from N: 5-minutely for 1 day, hourly for
2-90 days, daily beyond that.
"""

from typing import Any, Dict, List

import requests
from loguru import logger

from src.config.settings import CoinGeckoSettings


class CoinGeckoClientError(Exception):
    """
    Base exception for CoinGecko API client errors.

    Catch this to handle every CoinGecko failure, or a subclass for a
    specific one.
    """
    pass


class CoinGeckoNotFoundError(CoinGeckoClientError):
    """Raised when the coin id is unknown to CoinGecko (HTTP 404)."""
    pass


class CoinGeckoRateLimitError(CoinGeckoClientError):
    """
    Raised when CoinGecko rejects the request for rate limiting (HTTP 429).

    **Recovery**: wait a minute, or configure COINGECKO_API_KEY for a higher
    limit.
    """
    pass


class CoinGeckoServerError(CoinGeckoClientError):
    """Raised on HTTP 5xx; usually transient, safe to retry later."""
    pass


class CoinGeckoClient:
    """
    HTTP client for CoinGecko's market chart endpoint.

    Example:
        >>> with CoinGeckoClient(settings.coingecko) as client:
        ...     rows = client.get_market_chart("solana", days=7)
        >>> rows[0]
        [1717200000000, 165.42]
    """

    def __init__(self, settings: CoinGeckoSettings):
        """
        Args:
            settings: CoinGecko configuration (base_url, api_key, timeout, currency).
        """
        self.settings = settings
        self.session = requests.Session()

        headers = {
            "Accept": "application/json",
            "User-Agent": "saffron-backtester/0.1",
        }
        if self.settings.api_key:
            headers["x-cg-demo-api-key"] = self.settings.api_key
        self.session.headers.update(headers)

    def get_market_chart(self, coin_id: str, days: int) -> List[List[float]]:
        """
        Fetch the raw [timestamp_ms, price] pairs for a coin.

        Args:
            coin_id: CoinGecko coin id (e.g. "solana").
            days: Days of history, > 0.

        Returns:
            The "prices" list from the response, as returned by CoinGecko
            (ascending by timestamp). May be empty.

        Raises:
            ValueError: If coin_id is empty or days <= 0.
            CoinGeckoNotFoundError: 404.
            CoinGeckoRateLimitError: 429.
            CoinGeckoServerError: 5xx.
            CoinGeckoClientError: Other 4xx, malformed JSON, connection failures.
            requests.Timeout: If the request exceeds timeout_seconds.
        """
        if not coin_id or not coin_id.strip():
            raise ValueError("coin_id cannot be empty")
        if days <= 0:
            raise ValueError(f"days must be positive, got: {days}")

        url = f"{self.settings.base_url}/coins/{coin_id.strip()}/market_chart"
        params = {
            "vs_currency": self.settings.vs_currency,
            "days": days,
        }

        try:
            logger.debug("[coingecko] GET {} days={}", url, days)
            response = self.session.get(
                url,
                params=params,
                timeout=self.settings.timeout_seconds,
            )

            if response.status_code == 404:
                raise CoinGeckoNotFoundError(
                    f"Coin '{coin_id}' not found. Response: {response.text}"
                )

            if response.status_code == 429:
                raise CoinGeckoRateLimitError(
                    f"Rate limit exceeded. Slow down requests. Response: {response.text}"
                )

            if response.status_code >= 500:
                raise CoinGeckoServerError(
                    f"CoinGecko server error (status {response.status_code}). "
                    f"Response: {response.text}"
                )

            if 400 <= response.status_code < 500:
                raise CoinGeckoClientError(
                    f"Client error (status {response.status_code}). "
                    f"Request may be malformed. Response: {response.text}"
                )

            response.raise_for_status()

            try:
                data: Dict[str, Any] = response.json()
            except ValueError as e:
                raise CoinGeckoClientError(
                    f"Failed to parse JSON response: {e}. Response: {response.text}"
                )

            prices = data.get("prices")
            if prices is None:
                raise CoinGeckoClientError(
                    f"Response missing 'prices' field. Keys: {list(data.keys())}"
                )
            if not isinstance(prices, list):
                raise CoinGeckoClientError(
                    f"Expected 'prices' to be a list, got {type(prices)}"
                )

            return prices

        except requests.Timeout as e:
            raise requests.Timeout(
                f"Request to CoinGecko timed out after {self.settings.timeout_seconds}s. "
                f"Check network connection or increase COINGECKO_TIMEOUT_SECONDS."
            ) from e

        except requests.ConnectionError as e:
            raise CoinGeckoClientError(
                f"Failed to connect to CoinGecko at {self.settings.base_url}. "
                f"Check network connection and base URL."
            ) from e

        except requests.RequestException as e:
            raise CoinGeckoClientError(f"HTTP request failed: {e}") from e

    def close(self):
        """Close the HTTP session and release pooled connections."""
        self.session.close()

    def __enter__(self):
        """Enable context manager support (with statement)."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Clean up session when exiting context manager."""
        self.close()
        return False
