"""
Tests for CoinGeckoClient HTTP wrapper.

**Purpose**: Verify that CoinGeckoClient correctly constructs requests, handles
responses, and raises appropriate exceptions for different HTTP error codes.

**Testing philosophy**: Use mocked HTTP responses (no real API calls).
  - Fast (no network I/O)
  - Deterministic (no flaky tests due to network issues)
  - Can test error conditions (rate limits, server errors) easily
"""

from unittest.mock import Mock, patch

import pytest
import requests

from src.config.settings import CoinGeckoSettings
from src.venues.coingecko_client import (
    CoinGeckoClient,
    CoinGeckoClientError,
    CoinGeckoNotFoundError,
    CoinGeckoRateLimitError,
    CoinGeckoServerError,
)


@pytest.fixture
def coingecko_settings():
    """CoinGeckoSettings pointed at a fake host, public tier (no key)."""
    return CoinGeckoSettings(
        base_url="https://api.test-coingecko.com/api/v3",
        timeout_seconds=30,
    )


def make_response(status_code, payload=None, text=""):
    response = Mock()
    response.status_code = status_code
    response.text = text
    response.json.return_value = payload
    return response


def test_client_initialization_without_key(coingecko_settings):
    client = CoinGeckoClient(coingecko_settings)

    assert client.session.headers["Accept"] == "application/json"
    assert "x-cg-demo-api-key" not in client.session.headers


def test_client_initialization_with_key():
    client = CoinGeckoClient(CoinGeckoSettings(api_key="demo_key_123"))

    assert client.session.headers["x-cg-demo-api-key"] == "demo_key_123"


@patch("src.venues.coingecko_client.requests.Session.get")
def test_get_market_chart_success(mock_get, coingecko_settings):
    """
    Test the happy path.

    **Mock response structure**: CoinGecko returns prices, market_caps and
    total_volumes; only prices is used.
    """
    mock_get.return_value = make_response(200, {
        "prices": [[1704067200000, 101.5], [1704070800000, 102.25]],
        "market_caps": [],
        "total_volumes": [],
    })

    client = CoinGeckoClient(coingecko_settings)
    rows = client.get_market_chart("solana", days=7)

    mock_get.assert_called_once()
    call_args = mock_get.call_args
    assert call_args.args[0] == "https://api.test-coingecko.com/api/v3/coins/solana/market_chart"
    assert call_args.kwargs["params"] == {"vs_currency": "usd", "days": 7}
    assert call_args.kwargs["timeout"] == 30
    assert rows == [[1704067200000, 101.5], [1704070800000, 102.25]]


@patch("src.venues.coingecko_client.requests.Session.get")
def test_get_market_chart_strips_coin_id(mock_get, coingecko_settings):
    mock_get.return_value = make_response(200, {"prices": []})

    rows = CoinGeckoClient(coingecko_settings).get_market_chart("  bitcoin ", days=1)

    assert rows == []
    assert mock_get.call_args.args[0].endswith("/coins/bitcoin/market_chart")


@pytest.mark.parametrize(
    "status_code, error, match",
    [
        (404, CoinGeckoNotFoundError, "not found"),
        (429, CoinGeckoRateLimitError, "Rate limit exceeded"),
        (500, CoinGeckoServerError, "server error"),
        (503, CoinGeckoServerError, "server error"),
        (400, CoinGeckoClientError, "Client error"),
    ],
)
@patch("src.venues.coingecko_client.requests.Session.get")
def test_get_market_chart_http_errors(mock_get, status_code, error, match, coingecko_settings):
    mock_get.return_value = make_response(status_code, text="error body")

    client = CoinGeckoClient(coingecko_settings)

    with pytest.raises(error, match=match):
        client.get_market_chart("solana", days=7)


def test_error_hierarchy():
    """Callers can catch every CoinGecko failure with one except clause."""
    for error in (CoinGeckoNotFoundError, CoinGeckoRateLimitError, CoinGeckoServerError):
        assert issubclass(error, CoinGeckoClientError)


@patch("src.venues.coingecko_client.requests.Session.get")
def test_get_market_chart_timeout(mock_get, coingecko_settings):
    mock_get.side_effect = requests.Timeout("Connection timed out")

    client = CoinGeckoClient(coingecko_settings)

    with pytest.raises(requests.Timeout, match="timed out after 30s"):
        client.get_market_chart("solana", days=7)


@patch("src.venues.coingecko_client.requests.Session.get")
def test_get_market_chart_connection_error(mock_get, coingecko_settings):
    mock_get.side_effect = requests.ConnectionError("Failed to connect")

    client = CoinGeckoClient(coingecko_settings)

    with pytest.raises(CoinGeckoClientError, match="Failed to connect"):
        client.get_market_chart("solana", days=7)


@patch("src.venues.coingecko_client.requests.Session.get")
def test_get_market_chart_malformed_json(mock_get, coingecko_settings):
    response = make_response(200, text="This is not JSON")
    response.json.side_effect = ValueError("No JSON object could be decoded")
    mock_get.return_value = response

    client = CoinGeckoClient(coingecko_settings)

    with pytest.raises(CoinGeckoClientError, match="Failed to parse JSON"):
        client.get_market_chart("solana", days=7)


@patch("src.venues.coingecko_client.requests.Session.get")
def test_get_market_chart_missing_prices(mock_get, coingecko_settings):
    mock_get.return_value = make_response(200, {"error": "coin not listed"})

    client = CoinGeckoClient(coingecko_settings)

    with pytest.raises(CoinGeckoClientError, match="missing 'prices'"):
        client.get_market_chart("solana", days=7)


@patch("src.venues.coingecko_client.requests.Session.get")
def test_get_market_chart_prices_not_a_list(mock_get, coingecko_settings):
    mock_get.return_value = make_response(200, {"prices": {"0": 1.0}})

    client = CoinGeckoClient(coingecko_settings)

    with pytest.raises(CoinGeckoClientError, match="to be a list"):
        client.get_market_chart("solana", days=7)


def test_get_market_chart_validates_arguments(coingecko_settings):
    client = CoinGeckoClient(coingecko_settings)

    with pytest.raises(ValueError, match="coin_id cannot be empty"):
        client.get_market_chart("   ", days=7)

    with pytest.raises(ValueError, match="days must be positive"):
        client.get_market_chart("solana", days=0)


def test_client_context_manager_closes_session(coingecko_settings):
    client = CoinGeckoClient(coingecko_settings)

    with patch.object(client.session, "close") as mock_close:
        with client as entered:
            assert entered is client
        mock_close.assert_called_once()
