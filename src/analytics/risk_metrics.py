"""
Risk and performance metrics for backtest results.

This module turns a simulator's raw output (trade ledger, equity curve, cash
history) into the statistics a strategy comparison is judged on. Metrics are
grouped into:
  - Return: final capital, total return in currency and percent
  - Drawdown/pain: worst peak-to-trough drop of the equity curve
  - Risk-adjusted: Sharpe ratio of per-step equity returns
  - Trade-style: win rate, profit factor, average/largest win and loss
  - Capital usage: how much of the starting capital was tied up in positions

Everything here is strategy-agnostic and side-effect free. Every division is
guarded, so no function returns NaN; the one deliberate non-finite value is
a profit factor of math.inf for a run with wins and no losses.
"""

import math
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np
import pandas as pd
from loguru import logger

from src.backtesting.models import (
    BacktestMetrics,
    CapitalUsage,
    EquityPoint,
    Trade,
)

# Annualization constant for the Sharpe ratio, applied regardless of sample cadence
SHARPE_ANNUALIZATION_PERIODS = 365

# Standard deviations below this are treated as zero volatility
_ZERO_VOLATILITY = 1e-12


@dataclass(frozen=True)
class ExitTradeStats:
    """Win/loss breakdown of the exit trades that carry a realized pnl."""
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    gross_profit: float
    gross_loss: float
    avg_win: float
    avg_loss: float
    largest_win: float
    largest_loss: float


def compute_max_drawdown_with_peak(
    equity: Sequence[float],
    initial_capital: float,
) -> Tuple[float, float]:
    """
    Compute the maximum drawdown and the peak the running tracker ends on.

    **Conceptual**: Drawdown is how far equity sits below the best value seen
    so far. The tracker starts at the initial capital, so a run that loses
    from the very first sample still shows a drawdown.

    **Mathematical**:
        peak_t     = max(initial_capital, equity_0, ..., equity_t)
        drawdown_t = peak_t - equity_t
        max_dd     = max(0, drawdown_0, ..., drawdown_T)

    **Final peak**: The second return value is peak_T, the highest value seen
    over the whole curve, which is not necessarily the peak the worst drawdown
    was measured from. compute_max_drawdown_percent() divides by it.

    Args:
        equity: Equity values in time order.
        initial_capital: Starting capital (seed of the running peak).

    Returns:
        (max_drawdown, final_peak). (0.0, initial_capital) for an empty curve.

    Example:
        >>> compute_max_drawdown_with_peak([100, 80, 120], 100)
        (20.0, 120.0)
    """
    values = np.asarray(equity, dtype=float)
    if values.size == 0:
        return 0.0, float(initial_capital)

    peaks = np.maximum.accumulate(np.concatenate(([initial_capital], values)))[1:]
    drawdowns = peaks - values
    return float(max(drawdowns.max(), 0.0)), float(peaks[-1])


def compute_max_drawdown_percent(max_drawdown: float, peak: float) -> float:
    """max_drawdown as a percentage of peak; 0 when the peak is not positive."""
    if peak <= 0:
        return 0.0
    return max_drawdown / peak * 100


def compute_step_returns(equity: Sequence[float]) -> pd.Series:
    """
    Per-step simple returns of an equity curve.

    r_i = (equity_i - equity_{i-1}) / equity_{i-1}, for i >= 1.

    Steps whose previous equity is 0 have no defined return and are dropped,
    as are any other non-finite values.

    Args:
        equity: Equity values in time order.

    Returns:
        Series of finite returns (possibly empty).
    """
    series = pd.Series(np.asarray(equity, dtype=float))
    returns = series.pct_change(fill_method=None).iloc[1:]
    return returns[np.isfinite(returns)]


def compute_step_sharpe_ratio(
    returns: pd.Series,
    periods_per_year: int = SHARPE_ANNUALIZATION_PERIODS,
) -> float:
    """
    Sharpe ratio of per-step returns with a fixed annualization constant.

    **Mathematical**:
        Sharpe = mean(r) / std(r) * sqrt(periods_per_year)
    with the population standard deviation (ddof=0) and no risk-free rate.

    **Cadence**: The default sqrt(365) is applied whether samples are hourly or
    daily. Compare Sharpe ratios only between runs at the same cadence.

    **Edge cases**:
      - No returns -> 0.0.
      - Zero volatility (flat equity, or a constant return) -> 0.0.

    Args:
        returns: Per-step returns (finite values).
        periods_per_year: Annualization constant (default 365).

    Returns:
        Sharpe ratio as a scalar.
    """
    clean_returns = returns.dropna()
    if clean_returns.empty:
        return 0.0

    vol_per_step = clean_returns.std(ddof=0)
    if not np.isfinite(vol_per_step) or vol_per_step < _ZERO_VOLATILITY:
        return 0.0

    return float(clean_returns.mean() / vol_per_step * np.sqrt(periods_per_year))


def compute_profit_factor(gross_profit: float, gross_loss: float) -> float:
    """
    Gross profit divided by gross loss.

    **Edge cases**:
      - gross_loss == 0 and gross_profit > 0 -> math.inf (no losing trade).
      - gross_loss == 0 and gross_profit == 0 -> 0.0 (nothing won or lost).

    Args:
        gross_profit: Sum of winning pnls (>= 0).
        gross_loss: Absolute sum of losing pnls (>= 0).
    """
    if gross_loss == 0:
        return math.inf if gross_profit > 0 else 0.0
    return gross_profit / gross_loss


def summarize_exit_trades(trades: Sequence[Trade]) -> ExitTradeStats:
    """
    Win/loss statistics over exit trades with a realized pnl.

    Entry trades are ignored. A pnl of exactly 0 counts toward total_trades
    but is neither a win nor a loss.

    Returns:
        ExitTradeStats. avg_loss is a positive magnitude; largest_loss is the
        most negative pnl. Every field is 0 for an empty subset.
    """
    pnls = np.array([trade.pnl for trade in trades if trade.is_closed_exit], dtype=float)
    wins = pnls[pnls > 0]
    losses = pnls[pnls < 0]

    gross_profit = float(wins.sum())
    gross_loss = float(abs(losses.sum()))

    return ExitTradeStats(
        total_trades=int(pnls.size),
        winning_trades=int(wins.size),
        losing_trades=int(losses.size),
        win_rate=float(wins.size / pnls.size * 100) if pnls.size else 0.0,
        gross_profit=gross_profit,
        gross_loss=gross_loss,
        avg_win=gross_profit / wins.size if wins.size else 0.0,
        avg_loss=gross_loss / losses.size if losses.size else 0.0,
        largest_win=float(wins.max()) if wins.size else 0.0,
        largest_loss=float(losses.min()) if losses.size else 0.0,
    )


def compute_capital_usage(cash_history: Sequence[float], initial_capital: float) -> CapitalUsage:
    """
    How much of the initial capital was tied up in open positions.

    **Mathematical**:
        max_invested = initial_capital - min(cash_history)
        avg_invested = initial_capital - mean(cash_history)
    Percentages are relative to initial_capital, 0 when it is 0.

    An empty cash history is treated as [initial_capital] (nothing invested).
    """
    cash = np.asarray(cash_history, dtype=float)
    if cash.size == 0:
        cash = np.array([initial_capital], dtype=float)

    max_invested = float(initial_capital - cash.min())
    avg_invested = float(initial_capital - cash.mean())

    if initial_capital == 0:
        return CapitalUsage(max_invested, 0.0, avg_invested, 0.0)

    return CapitalUsage(
        max_invested=max_invested,
        max_invested_percent=max_invested / initial_capital * 100,
        avg_invested=avg_invested,
        avg_invested_percent=avg_invested / initial_capital * 100,
    )


def compute_backtest_metrics(
    trades: Sequence[Trade],
    equity_curve: Sequence[EquityPoint],
    cash_history: Sequence[float],
    initial_capital: float,
) -> BacktestMetrics:
    """
    Aggregate a simulation's outputs into BacktestMetrics.

    **Conceptual**: This is the single entry point the engine calls. It is a
    pure function of its four inputs; which strategy produced them doesn't
    matter.

    **Final capital** is the last cash-history value. Simulators close every
    position before the series ends and append the post-close cash, so this is
    cash with no residual position value. An empty history means nothing
    happened: final capital is the initial capital.

    Args:
        trades: Trade ledger.
        equity_curve: Equity points in time order.
        cash_history: Uninvested cash series from the simulator.
        initial_capital: Starting capital of the run.

    Returns:
        BacktestMetrics with no NaN fields.
    """
    final_capital = float(cash_history[-1]) if len(cash_history) else float(initial_capital)
    total_return = final_capital - initial_capital
    total_return_percent = total_return / initial_capital * 100 if initial_capital else 0.0

    equity = [point.value for point in equity_curve]
    max_drawdown, final_peak = compute_max_drawdown_with_peak(equity, initial_capital)
    sharpe = compute_step_sharpe_ratio(compute_step_returns(equity))

    stats = summarize_exit_trades(trades)
    profit_factor = compute_profit_factor(stats.gross_profit, stats.gross_loss)

    logger.debug(
        "[metrics] {} exits, return {:.2f}%, max drawdown {:.2f}, sharpe {:.3f}",
        stats.total_trades, total_return_percent, max_drawdown, sharpe,
    )

    return BacktestMetrics(
        total_trades=stats.total_trades,
        winning_trades=stats.winning_trades,
        losing_trades=stats.losing_trades,
        win_rate=stats.win_rate,
        initial_capital=float(initial_capital),
        final_capital=final_capital,
        total_return=total_return,
        total_return_percent=total_return_percent,
        max_drawdown=max_drawdown,
        max_drawdown_percent=compute_max_drawdown_percent(max_drawdown, final_peak),
        sharpe_ratio=sharpe,
        profit_factor=profit_factor,
        avg_win=stats.avg_win,
        avg_loss=stats.avg_loss,
        largest_win=stats.largest_win,
        largest_loss=stats.largest_loss,
        capital_usage=compute_capital_usage(cash_history, initial_capital),
    )
