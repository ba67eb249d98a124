"""
Price-series and report I/O.

**Conceptual**: This module is the I/O boundary for everything the backtester
reads or writes outside a vendor API:
  - Conversions between the canonical price frame and PricePoint lists.
  - Price-series CSVs (a cached series can be replayed without a network call).
  - The JSON comparison report written by the strategy-comparison action.

**Rule**: Providers and actions go through these functions instead of calling
pd.read_csv / json.dump directly, so the CSV layout and the report shape are
defined in one place.

**CSV layout**:
    timestamp,price
    2024-06-01T00:00:00+00:00,165.42
Rows ascending by timestamp, ISO 8601 UTC timestamps.
"""

import datetime as dt
import json
import math
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from src.backtesting.models import BacktestResult, PricePoint
from src.data.schemas import (
    PRICE_SERIES_COLUMNS,
    SchemaValidationError,
    normalize_price_frame,
)


def frame_to_price_points(df: pd.DataFrame, context: str | None = None) -> List[PricePoint]:
    """
    Normalize a (timestamp, price) frame and convert it to PricePoints.

    Args:
        df: Frame with 'timestamp' and 'price' columns in any order.
        context: Source description for error messages.

    Returns:
        PricePoint list ascending by timestamp, deduplicated. Empty for an
        empty frame.

    Raises:
        SchemaValidationError: If the frame is malformed.
    """
    if df.empty:
        return []
    frame = normalize_price_frame(df, context=context)
    return [
        PricePoint(timestamp=ts, price=float(price))
        for ts, price in zip(frame["timestamp"], frame["price"])
    ]


def price_points_to_frame(prices: Sequence[PricePoint]) -> pd.DataFrame:
    """Canonical (timestamp, price) frame for a PricePoint list."""
    return pd.DataFrame(
        {
            "timestamp": pd.to_datetime([point.timestamp for point in prices], utc=True),
            "price": [float(point.price) for point in prices],
        },
        columns=PRICE_SERIES_COLUMNS,
    )


def read_price_series_csv(path: Path | str) -> List[PricePoint]:
    """
    Read a cached price series.

    Rows may be in any order; they are sorted and deduplicated on read.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        SchemaValidationError: If the CSV can't be parsed or fails validation.

    Example:
        >>> prices = read_price_series_csv("data/prices/SOL-PERP.csv")
        >>> prices[0].price
        165.42
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(
            f"Price series CSV not found: {path}. "
            f"Ensure the file exists and the path is correct."
        )

    try:
        df = pd.read_csv(path)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise SchemaValidationError(f"{path}: Failed to read CSV. Error: {e}")

    return frame_to_price_points(df, context=str(path))


def write_price_series_csv(prices: Sequence[PricePoint], path: Path | str) -> None:
    """
    Write a price series to CSV (ascending, ISO 8601 UTC timestamps).

    The parent directory is created if needed.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    frame = price_points_to_frame(prices)
    if not frame.empty:
        frame = normalize_price_frame(frame, context=str(path))
    frame["timestamp"] = frame["timestamp"].map(lambda ts: ts.isoformat())
    frame.to_csv(path, index=False, columns=PRICE_SERIES_COLUMNS)


def build_backtest_report(
    results: Sequence[BacktestResult],
    market: str,
    days: int,
    prices: Sequence[PricePoint],
    initial_capital: float,
    best: Optional[BacktestResult] = None,
    generated_at: Optional[dt.datetime] = None,
) -> Dict[str, Any]:
    """
    Summarize a strategy comparison run as a JSON-ready dict.

    **Shape**:
        {
          "generatedAt": "...",
          "parameters": {"market", "days", "initialCapital"},
          "priceSummary": {"start", "end", "min", "max"},
          "dataPoints": int,
          "strategies": [{"name", "totalReturn", "totalReturnPercent", "winRate",
                          "totalTrades", "maxDrawdownPercent", "sharpeRatio",
                          "profitFactor", "capitalUsage"}, ...],
          "bestStrategy": {"name", "totalReturnPercent"} | None
        }

    Args:
        results: One result per strategy, in display order.
        market: Market symbol the series was fetched for.
        days: Lookback in days.
        prices: The shared price series.
        initial_capital: Starting capital used by every strategy.
        best: The winning result (see select_best_result), if any.
        generated_at: Report timestamp (default: now, UTC).
    """
    generated_at = generated_at or dt.datetime.now(dt.timezone.utc)
    values = [point.price for point in prices]

    price_summary = None
    if values:
        price_summary = {
            "start": values[0],
            "end": values[-1],
            "min": min(values),
            "max": max(values),
        }

    strategies = []
    for result in results:
        metrics = result.metrics
        strategies.append({
            "name": result.strategy.value,
            "totalReturn": metrics.total_return,
            "totalReturnPercent": metrics.total_return_percent,
            "winRate": metrics.win_rate,
            "totalTrades": metrics.total_trades,
            "maxDrawdownPercent": metrics.max_drawdown_percent,
            "sharpeRatio": metrics.sharpe_ratio,
            "profitFactor": metrics.profit_factor,
            "capitalUsage": metrics.capital_usage.to_dict(),
        })

    best_strategy = None
    if best is not None:
        best_strategy = {
            "name": best.strategy.value,
            "totalReturnPercent": best.metrics.total_return_percent,
        }

    return {
        "generatedAt": generated_at.isoformat(),
        "parameters": {
            "market": market,
            "days": days,
            "initialCapital": initial_capital,
        },
        "priceSummary": price_summary,
        "dataPoints": len(values),
        "strategies": strategies,
        "bestStrategy": best_strategy,
    }


def write_backtest_report_json(report: Dict[str, Any], path: Path | str) -> Path:
    """
    Write a report dict as indented JSON.

    Non-finite floats (a profit factor of inf) are written as null so the
    file is strict JSON.

    Returns:
        The path written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(_finite_or_none(report), handle, indent=2, allow_nan=False)
        handle.write("\n")
    return path


def _finite_or_none(value: Any) -> Any:
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {key: _finite_or_none(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_finite_or_none(item) for item in value]
    return value
