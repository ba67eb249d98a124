"""
Price providers.

Defines the ``get_prices(market, days)`` contract and adapters for CoinGecko,
Yahoo Finance, and in-memory replay of a cached series.
"""
