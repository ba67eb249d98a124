"""
Tests for src/strategies/mean_reversion.py

The crafted dip: 100, then +2.2, then twelve steps of -0.65. Over those 14
samples gains/losses = 2.2/7.8, so RSI = 100 - 100 / (1 + 2.2/7.8) = 22.
"""

import pandas as pd
import pytest

from src.analytics.synthetic_data import to_price_points
from src.backtesting.models import BacktestConfig, TradeSide, TradeType
from src.strategies.mean_reversion import MeanReversionSimulator


def hourly_prices(values):
    return to_price_points(pd.Series(values, dtype=float), start="2024-01-01", freq="h")


def crafted_dip():
    return [100.0, 102.2] + [102.2 - 0.65 * k for k in range(1, 13)]


def crafted_spike():
    return [100.0, 97.8] + [97.8 + 0.65 * k for k in range(1, 13)]


def make_config(**overrides) -> BacktestConfig:
    fields = dict(
        strategy="meanReversion",
        market="SOL-PERP",
        start_date=pd.Timestamp("2024-01-01", tz="UTC"),
        end_date=pd.Timestamp("2024-01-08", tz="UTC"),
        initial_capital=1000.0,
        position_size=150.0,
        stop_loss=3.0,
        take_profit=6.0,
    )
    fields.update(overrides)
    return BacktestConfig(**fields)


def test_oversold_rsi_opens_long():
    """RSI 22 < 30 at sample 14 -> long entry tagged oversold."""
    prices = hourly_prices(crafted_dip() + [94.0])
    output = MeanReversionSimulator().simulate(make_config(), prices)

    entry = output.trades[0]
    assert entry.type == TradeType.ENTRY
    assert entry.side == TradeSide.LONG
    assert entry.timestamp == prices[14].timestamp
    assert "oversold" in entry.reason
    assert entry.reason == "RSI 22.00 (oversold)"
    assert entry.size == pytest.approx(150.0 / 94.0)


def test_overbought_rsi_opens_short():
    prices = hourly_prices(crafted_spike() + [106.0])
    output = MeanReversionSimulator().simulate(make_config(), prices)

    entry = output.trades[0]
    assert entry.side == TradeSide.SHORT
    assert entry.reason == "RSI 78.00 (overbought)"


def test_long_exits_once_rsi_back_above_midpoint():
    """
    Long at 94 (sample 14), then +1 per sample. At sample 14+k the window has
    k-1 gains of 1 and (13-k) losses of 0.65 plus one of 0.4:
      k=5: gains 4, losses 5.6  -> RSI < 50, hold
      k=6: gains 5, losses 4.95 -> RSI 50.25 > 50, exit "RSI normalized"
    Wide stops keep stop loss / take profit out of the way.
    """
    prices = hourly_prices(crafted_dip() + [94.0 + j for j in range(0, 7)])
    output = MeanReversionSimulator().simulate(make_config(stop_loss=50.0, take_profit=50.0), prices)

    entry, exit_trade = output.trades
    assert entry.timestamp == prices[14].timestamp
    assert exit_trade.timestamp == prices[20].timestamp
    assert exit_trade.reason == "RSI normalized"
    assert exit_trade.pnl == pytest.approx((100.0 - 94.0) * 150.0 / 94.0)


def test_short_exits_once_rsi_back_below_midpoint():
    """
    Mirror of the long case: short at 106 (sample 14), then -1 per sample.
    At sample 14+k the window has k-1 losses of 1 against gains of 0.65 and 0.4:
      k=5: gains 5.6, losses 4  -> RSI > 50, hold
      k=6: gains 4.95, losses 5 -> RSI 49.75 < 50, exit "RSI normalized"
    """
    prices = hourly_prices(crafted_spike() + [106.0 - j for j in range(0, 7)])
    output = MeanReversionSimulator().simulate(make_config(stop_loss=50.0, take_profit=50.0), prices)

    entry, exit_trade = output.trades
    assert entry.side == TradeSide.SHORT
    assert entry.timestamp == prices[14].timestamp
    assert exit_trade.type == TradeType.EXIT
    assert exit_trade.side == TradeSide.SHORT
    assert exit_trade.timestamp == prices[20].timestamp
    assert exit_trade.reason == "RSI normalized"
    assert exit_trade.pnl == pytest.approx((106.0 - 100.0) * 150.0 / 106.0)


def test_take_profit_before_rsi_exit():
    """With the default 6% take profit a quick bounce closes before RSI recovers."""
    prices = hourly_prices(crafted_dip() + [94.0, 96.0, 99.8])
    output = MeanReversionSimulator().simulate(make_config(), prices)

    exit_trade = output.trades[1]
    # 99.8 / 94 - 1 = 6.17% >= 6%
    assert exit_trade.reason == "Take profit"
    assert exit_trade.timestamp == prices[16].timestamp


def test_short_series_yields_no_trades():
    """Fewer samples than rsi_period is not an error: flat equity, no trades."""
    prices = hourly_prices([100.0, 90.0, 80.0])
    output = MeanReversionSimulator().simulate(make_config(), prices)

    assert output.trades == ()
    assert [p.value for p in output.equity_curve] == [1000.0] * 3
    assert output.final_cash == 1000.0
