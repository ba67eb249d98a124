#!/usr/bin/env python3
"""
Run all four strategies over one market and compare them.

**Purpose**: This script shows how the pieces fit together:
  1. Load settings (.env) and configure logging.
  2. Fetch the price series once (CoinGecko or yfinance, or a cached CSV).
  3. Replay DCA, grid, momentum and mean reversion over that same series.
  4. Print a comparison table and the best strategy by return.
  5. Save a JSON report to the reports directory.

**Usage**:
    From project root:
    ```bash
    python actions/run_strategy_backtests.py                 # SOL-PERP, 7 days
    python actions/run_strategy_backtests.py btc 30
    python actions/run_strategy_backtests.py SOL-PERP 7 --capital 5000
    python actions/run_strategy_backtests.py sol 7 --prices-csv data/prices/SOL-PERP.csv
    python actions/run_strategy_backtests.py sol 14 --save-prices data/prices/SOL-PERP.csv
    ```

**Outputs**:
  - backtest-report-{MARKET}-{DAYS}d.json in BACKTEST_REPORTS_DIR
    (default data/reports/), or --output-dir.

**Exit codes**:
  - 0: Success
  - 1: Fetch, data or configuration error
  - 2: No price data for the market
"""

import argparse
import datetime as dt
import sys
from pathlib import Path
from typing import List, Optional, Sequence

import pandas as pd
import requests

# Ensure project root is on path for imports
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from src.backtesting.engine import BacktestEngine, select_best_result
from src.backtesting.errors import BacktestError
from src.backtesting.models import BacktestConfig, BacktestResult, StrategyKind
from src.config.settings import get_settings
from src.data.io import (
    build_backtest_report,
    read_price_series_csv,
    write_backtest_report_json,
    write_price_series_csv,
)
from src.data.schemas import SchemaValidationError
from src.utils.logging import configure_logging
from src.venues.base import UnsupportedMarketError
from src.venues.coingecko_client import CoinGeckoClientError
from src.venues.coingecko_price_provider import is_supported, supported_markets
from src.venues.factory import create_price_provider
from src.venues.static_price_provider import StaticPriceProvider
from src.venues.yfinance_price_provider import YFinanceError

DEFAULT_MARKET = "SOL-PERP"
DEFAULT_DAYS = 7
DEFAULT_CAPITAL = 1000.0

MARKET_ALIASES = {
    "sol": "SOL-PERP",
    "btc": "BTC-PERP",
    "eth": "ETH-PERP",
    "bonk": "BONK-PERP",
    "jup": "JUP-PERP",
}

STRATEGY_LABELS = {
    StrategyKind.DCA: "DCA",
    StrategyKind.GRID: "Grid",
    StrategyKind.MOMENTUM: "Momentum",
    StrategyKind.MEAN_REVERSION: "Mean Reversion",
}


def normalize_market(market: Optional[str]) -> str:
    """
    Resolve a command-line market argument to a supported symbol.

    Short aliases ("sol") expand to perp symbols, supported symbols pass
    through upper-cased, and a bare coin falls back to its "-PERP" symbol.
    Blank input means DEFAULT_MARKET.

    Raises:
        UnsupportedMarketError: If no supported symbol matches.

    Example:
        >>> normalize_market("sol"), normalize_market("btc-perp")
        ('SOL-PERP', 'BTC-PERP')
    """
    trimmed = (market or "").strip()
    if not trimmed:
        return DEFAULT_MARKET

    alias = MARKET_ALIASES.get(trimmed.lower())
    if alias is not None:
        return alias

    upper = trimmed.upper()
    if is_supported(upper):
        return upper
    perp = upper if upper.endswith("-PERP") else f"{upper}-PERP"
    if is_supported(perp):
        return perp

    raise UnsupportedMarketError(
        f"Unsupported market: {market!r}. Supported symbols: {', '.join(supported_markets())}"
    )


def build_strategy_configs(
    market: str,
    days: int,
    capital: float,
    end: Optional[pd.Timestamp] = None,
) -> List[BacktestConfig]:
    """
    The four comparison configs, sharing market, window and capital.

    Sizing is per strategy: DCA buys small and often, momentum takes one
    larger position, grid and mean reversion sit in between.

    Args:
        market: Market symbol.
        days: Lookback window in days.
        capital: Initial capital for every strategy.
        end: End of the window (default: now, UTC).
    """
    end = pd.Timestamp(end) if end is not None else pd.Timestamp.now(tz="UTC")
    start = end - pd.Timedelta(days=days)
    shared = dict(market=market, start_date=start, end_date=end, initial_capital=capital)

    return [
        BacktestConfig(
            strategy=StrategyKind.DCA, leverage=1, position_size=50,
            stop_loss=5, take_profit=10, dca_amount=50, dca_interval_hours=12,
            **shared,
        ),
        BacktestConfig(
            strategy=StrategyKind.GRID, leverage=3, position_size=100,
            stop_loss=3, take_profit=5, grid_levels=10, grid_spacing=1,
            **shared,
        ),
        BacktestConfig(
            strategy=StrategyKind.MOMENTUM, leverage=5, position_size=200,
            stop_loss=2, take_profit=8, momentum_period=20, momentum_threshold=2,
            **shared,
        ),
        BacktestConfig(
            strategy=StrategyKind.MEAN_REVERSION, leverage=3, position_size=150,
            stop_loss=3, take_profit=6, rsi_period=14, rsi_oversold=30, rsi_overbought=70,
            **shared,
        ),
    ]


def format_comparison_table(results: Sequence[BacktestResult]) -> str:
    """Fixed-width comparison table, one row per strategy."""
    header = (
        f"{'Strategy':<16}{'Return':>12}{'Return %':>10}{'Trades':>8}"
        f"{'Win %':>8}{'Max DD %':>10}{'Sharpe':>9}{'PF':>8}{'Max Inv %':>11}"
    )
    lines = [header, "-" * len(header)]
    for result in results:
        m = result.metrics
        profit_factor = "inf" if m.profit_factor == float("inf") else f"{m.profit_factor:.2f}"
        lines.append(
            f"{STRATEGY_LABELS[result.strategy]:<16}"
            f"{m.total_return:>12.2f}"
            f"{m.total_return_percent:>9.2f}%"
            f"{m.total_trades:>8d}"
            f"{m.win_rate:>7.1f}%"
            f"{m.max_drawdown_percent:>9.2f}%"
            f"{m.sharpe_ratio:>9.2f}"
            f"{profit_factor:>8}"
            f"{m.capital_usage.max_invested_percent:>10.1f}%"
        )
    return "\n".join(lines)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main entry point for the strategy comparison script.

    Returns:
        Process exit code (see module docstring).
    """
    parser = argparse.ArgumentParser(
        description="Backtest DCA, grid, momentum and mean reversion on one market.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "market",
        nargs="?",
        default=DEFAULT_MARKET,
        help=f"Market symbol or alias ({', '.join(MARKET_ALIASES)}). Default: {DEFAULT_MARKET}.",
    )
    parser.add_argument(
        "days",
        nargs="?",
        type=int,
        default=DEFAULT_DAYS,
        help=f"Lookback window in days. Default: {DEFAULT_DAYS}.",
    )
    parser.add_argument(
        "--capital",
        type=float,
        default=DEFAULT_CAPITAL,
        help=f"Initial capital per strategy. Default: {DEFAULT_CAPITAL:.0f}.",
    )
    parser.add_argument(
        "--prices-csv",
        type=Path,
        default=None,
        help="Replay a cached price series (timestamp,price CSV) instead of fetching.",
    )
    parser.add_argument(
        "--save-prices",
        type=Path,
        default=None,
        help="Also write the fetched series to this CSV for later replays.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Directory for the JSON report. Default: BACKTEST_REPORTS_DIR.",
    )
    args = parser.parse_args(argv)

    if args.days <= 0:
        print(f"ERROR: days must be positive, got {args.days}")
        return 1

    try:
        settings = get_settings()
    except ValueError as e:
        print(f"ERROR: Invalid configuration: {e}")
        return 1
    configure_logging(settings.run.log_level)

    try:
        market = normalize_market(args.market)
    except UnsupportedMarketError as e:
        print(f"ERROR: {e}")
        return 1

    output_dir = args.output_dir or settings.run.reports_dir

    print("=" * 80)
    print(f"Strategy comparison: {market}, last {args.days} days, capital {args.capital:.2f}")
    print("=" * 80)

    try:
        if args.prices_csv is not None:
            provider = StaticPriceProvider(market, read_price_series_csv(args.prices_csv))
            print(f"  Price source: {args.prices_csv}")
        else:
            provider = create_price_provider(settings)
            print(f"  Price source: {settings.run.price_source}")

        prices = provider.get_prices(market, args.days)
        if not prices:
            print(f"ERROR: No price data for {market}.")
            return 2

        if args.save_prices is not None:
            write_price_series_csv(prices, args.save_prices)
            print(f"  Saved price series to {args.save_prices}")

        values = [point.price for point in prices]
        print(
            f"  {len(prices)} samples from {prices[0].timestamp} to {prices[-1].timestamp}, "
            f"range {min(values):.4f} - {max(values):.4f}"
        )
        print()

        engine = BacktestEngine(provider)
        configs = build_strategy_configs(market, args.days, args.capital)
        results = engine.run_many_on_prices(configs, prices)

    except (
        BacktestError,
        CoinGeckoClientError,
        YFinanceError,
        UnsupportedMarketError,
        SchemaValidationError,
        FileNotFoundError,
        requests.RequestException,
    ) as e:
        print(f"ERROR: {e}")
        return 1

    print(format_comparison_table(results))
    print()

    best = select_best_result(results)
    if best is not None:
        print(
            f"Best strategy: {STRATEGY_LABELS[best.strategy]} "
            f"({best.metrics.total_return_percent:+.2f}%)"
        )

    report = build_backtest_report(
        results,
        market=market,
        days=args.days,
        prices=prices,
        initial_capital=args.capital,
        best=best,
        generated_at=dt.datetime.now(dt.timezone.utc),
    )
    report_path = write_backtest_report_json(
        report, Path(output_dir) / f"backtest-report-{market}-{args.days}d.json"
    )
    print(f"Report saved to {report_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
