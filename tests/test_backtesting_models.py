"""
Tests for src/backtesting/models.py

Covers strategy discriminator parsing, config validation and defaults, the
lookback-day calculation, and the serializable result shape.
"""

import math

import pandas as pd
import pytest

from src.backtesting.errors import BacktestConfigError
from src.backtesting.models import (
    BacktestConfig,
    BacktestMetrics,
    BacktestResult,
    CapitalUsage,
    EquityPoint,
    StrategyKind,
    Trade,
    TradeSide,
    TradeType,
)


def make_config(**overrides) -> BacktestConfig:
    """Momentum config over one week; override any field."""
    fields = dict(
        strategy="momentum",
        market="SOL-PERP",
        start_date=pd.Timestamp("2024-01-01", tz="UTC"),
        end_date=pd.Timestamp("2024-01-08", tz="UTC"),
        initial_capital=1000.0,
        position_size=100.0,
        stop_loss=2.0,
        take_profit=8.0,
    )
    fields.update(overrides)
    return BacktestConfig(**fields)


def make_metrics(**overrides) -> BacktestMetrics:
    fields = dict(
        total_trades=1, winning_trades=1, losing_trades=0, win_rate=100.0,
        initial_capital=1000.0, final_capital=1010.0, total_return=10.0,
        total_return_percent=1.0, max_drawdown=0.0, max_drawdown_percent=0.0,
        sharpe_ratio=1.5, profit_factor=math.inf, avg_win=10.0, avg_loss=0.0,
        largest_win=10.0, largest_loss=0.0,
        capital_usage=CapitalUsage(100.0, 10.0, 50.0, 5.0),
    )
    fields.update(overrides)
    return BacktestMetrics(**fields)


def test_strategy_kind_parse_accepts_all_discriminators():
    """The four external strategy names map to their kinds."""
    assert StrategyKind.parse("dca") is StrategyKind.DCA
    assert StrategyKind.parse("grid") is StrategyKind.GRID
    assert StrategyKind.parse("momentum") is StrategyKind.MOMENTUM
    assert StrategyKind.parse("meanReversion") is StrategyKind.MEAN_REVERSION
    assert StrategyKind.parse(StrategyKind.GRID) is StrategyKind.GRID


def test_strategy_kind_parse_rejects_unknown_value():
    """Unknown names raise a config error listing the valid ones."""
    with pytest.raises(BacktestConfigError, match="Unknown strategy"):
        StrategyKind.parse("arbitrage")

    # Case matters: the discriminator is camelCase
    with pytest.raises(BacktestConfigError):
        StrategyKind.parse("meanreversion")


def test_config_error_is_a_value_error():
    """Callers that already catch ValueError also catch config errors."""
    with pytest.raises(ValueError):
        make_config(strategy="nope").validate()


def test_validate_returns_kind_for_valid_config():
    assert make_config().validate() is StrategyKind.MOMENTUM


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"initial_capital": -1.0}, "initial_capital"),
        ({"position_size": 0.0}, "position_size"),
        ({"leverage": 0.0}, "leverage"),
        ({"stop_loss": -1.0}, "stop_loss"),
        ({"market": " "}, "market"),
        ({"dca_amount": 0.0}, "dca_amount"),
        ({"grid_levels": 0}, "grid_levels"),
        ({"momentum_period": -5}, "momentum_period"),
        ({"rsi_period": 1}, "rsi_period"),
        ({"end_date": pd.Timestamp("2023-12-31", tz="UTC")}, "start_date"),
        ({"momentum_threshold": -1.0}, "momentum_threshold"),
        ({"rsi_oversold": 70.0}, "rsi_oversold"),
        ({"rsi_oversold": 40.0, "rsi_overbought": 35.0}, "rsi_oversold"),
    ],
)
def test_validate_rejects_out_of_range_fields(overrides, message):
    """Invalid numeric fields fail fast with the field name in the message."""
    with pytest.raises(BacktestConfigError, match=message):
        make_config(**overrides).validate()


@pytest.mark.parametrize(
    "overrides, name",
    [
        ({"momentum_period": 20.0}, "momentum_period"),
        ({"rsi_period": 14.0}, "rsi_period"),
        ({"grid_levels": 10.0}, "grid_levels"),
        ({"grid_levels": True}, "grid_levels"),
    ],
)
def test_validate_rejects_non_integer_counts(overrides, name):
    """Window lengths and level counts slice the series, so floats and bools are refused."""
    with pytest.raises(BacktestConfigError, match=f"{name} must be an integer"):
        make_config(**overrides).validate()


def test_zero_initial_capital_is_valid():
    """A zero-capital run is allowed; it simply never trades."""
    assert make_config(initial_capital=0.0).validate() is StrategyKind.MOMENTUM


def test_with_defaults_fills_strategy_fields():
    """Unset strategy fields resolve to the documented defaults."""
    config = make_config(position_size=75.0).with_defaults()

    assert config.strategy is StrategyKind.MOMENTUM
    assert config.dca_amount == 75.0  # falls back to position_size
    assert config.dca_interval_hours == 24
    assert config.grid_levels == 10
    assert config.momentum_period == 20
    assert config.momentum_threshold == 2.0
    assert config.rsi_period == 14
    assert config.rsi_oversold == 30
    assert config.rsi_overbought == 70


def test_with_defaults_keeps_explicit_values():
    config = make_config(dca_amount=50.0, grid_levels=4, rsi_oversold=25.0).with_defaults()

    assert config.dca_amount == 50.0
    assert config.grid_levels == 4
    assert config.rsi_oversold == 25.0


def test_lookback_days_rounds_partial_days_up():
    """A 6.5 day window needs 7 days of data."""
    config = make_config(
        start_date=pd.Timestamp("2024-01-01 00:00", tz="UTC"),
        end_date=pd.Timestamp("2024-01-07 12:00", tz="UTC"),
    )
    assert config.lookback_days == 7


def test_lookback_days_is_at_least_one():
    ts = pd.Timestamp("2024-01-01", tz="UTC")
    assert make_config(start_date=ts, end_date=ts).lookback_days == 1


def test_trade_is_closed_exit_only_for_exits_with_pnl():
    ts = pd.Timestamp("2024-01-01", tz="UTC")
    entry = Trade(ts, TradeType.ENTRY, TradeSide.LONG, 100.0, 1.0, "DCA interval")
    exit_ = Trade(ts, TradeType.EXIT, TradeSide.LONG, 101.0, 1.0, "Take profit", pnl=1.0)

    assert not entry.is_closed_exit
    assert exit_.is_closed_exit
    assert "pnl" not in entry.to_dict()
    assert exit_.to_dict()["pnl"] == 1.0


def test_result_to_dict_has_flat_camel_case_shape():
    """Metrics are flattened next to strategy/market/period, trades and equity."""
    start = pd.Timestamp("2024-01-01", tz="UTC")
    end = pd.Timestamp("2024-01-02", tz="UTC")
    result = BacktestResult(
        strategy=StrategyKind.MEAN_REVERSION,
        market="SOL-PERP",
        period_start=start,
        period_end=end,
        metrics=make_metrics(),
        trades=(Trade(start, TradeType.ENTRY, TradeSide.SHORT, 100.0, 1.5, "RSI 81.00 (overbought)"),),
        equity_curve=(EquityPoint(start, 1000.0), EquityPoint(end, 1010.0)),
    )

    data = result.to_dict()

    assert data["strategy"] == "meanReversion"
    assert data["period"] == {"start": start.isoformat(), "end": end.isoformat()}
    assert data["totalTrades"] == 1
    assert data["finalCapital"] == 1010.0
    assert data["capitalUsage"]["maxInvestedPercent"] == 10.0
    assert data["trades"][0]["side"] == "short"
    assert data["trades"][0]["type"] == "entry"
    assert [point["value"] for point in data["equity"]] == [1000.0, 1010.0]


def test_equity_series_is_indexed_by_timestamp():
    start = pd.Timestamp("2024-01-01", tz="UTC")
    later = start + pd.Timedelta(hours=1)
    result = BacktestResult(
        strategy=StrategyKind.DCA,
        market="SOL-PERP",
        period_start=start,
        period_end=later,
        metrics=make_metrics(),
        equity_curve=(EquityPoint(start, 1000.0), EquityPoint(later, 990.0)),
    )

    series = result.equity_series()

    assert list(series.values) == [1000.0, 990.0]
    assert series.index[1] == later
