"""
Data model for the backtest engine.

**Conceptual**: Everything the engine consumes or produces is a frozen
dataclass: the run configuration, the price samples, the trade ledger, the
equity curve and the computed metrics. Freezing them means a result can be
shared between threads (e.g. four strategies replayed in parallel over one
fetched series) without anyone mutating it underneath the others.

**Units**:
  - Prices and capital are floats in the quote currency (USD).
  - Sizes are units of the base asset (e.g. SOL).
  - stop_loss / take_profit / thresholds are percentages (5.0 means 5%).
  - Timestamps are timezone-aware pandas Timestamps (UTC).
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import pandas as pd

from src.backtesting.errors import BacktestConfigError


class StrategyKind(str, Enum):
    """Strategy discriminator. Values match the external config vocabulary."""
    DCA = "dca"
    GRID = "grid"
    MOMENTUM = "momentum"
    MEAN_REVERSION = "meanReversion"

    @classmethod
    def parse(cls, value) -> "StrategyKind":
        """
        Resolve a discriminator string (or StrategyKind) to a StrategyKind.

        Raises:
            BacktestConfigError: If the value is not one of the four strategies.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            valid = ", ".join(kind.value for kind in cls)
            raise BacktestConfigError(
                f"Unknown strategy: {value!r}. Expected one of: {valid}"
            ) from None


class TradeType(str, Enum):
    ENTRY = "entry"
    EXIT = "exit"


class TradeSide(str, Enum):
    LONG = "long"
    SHORT = "short"


# Defaults applied to optional strategy fields left as None
DEFAULT_DCA_INTERVAL_HOURS = 24.0
DEFAULT_GRID_LEVELS = 10
DEFAULT_MOMENTUM_PERIOD = 20
DEFAULT_MOMENTUM_THRESHOLD = 2.0
DEFAULT_RSI_PERIOD = 14
DEFAULT_RSI_OVERSOLD = 30.0
DEFAULT_RSI_OVERBOUGHT = 70.0


@dataclass(frozen=True)
class BacktestConfig:
    """
    Configuration for one backtest run.

    **Conceptual**: One config describes one strategy on one market over one
    date range. Running a strategy comparison means building four configs that
    share market, dates and capital but differ in strategy and sizing.

    Strategy-specific fields are optional. with_defaults() fills the ones left
    as None, so a momentum config doesn't need to spell out RSI settings.

    **Carried but inert**: leverage and grid_spacing are echoed back in reports
    but do not change the simulation. Grid spacing is always derived from the
    observed price range and grid_levels.

    Attributes:
        strategy: "dca", "grid", "momentum" or "meanReversion" (or StrategyKind).
        market: Market symbol as understood by the price provider (e.g. "SOL-PERP").
        start_date: Start of the backtest window.
        end_date: End of the backtest window.
        initial_capital: Starting cash in quote currency.
        leverage: Nominal leverage (not applied to position sizing).
        position_size: Notional per trigger (grid/momentum/mean reversion).
        stop_loss: Stop-loss threshold in percent.
        take_profit: Take-profit threshold in percent.
        dca_amount: Notional per DCA buy (defaults to position_size).
        dca_interval_hours: Hours between DCA buys (default 24).
        grid_levels: Number of equal bands between series min and max (default 10).
        grid_spacing: Nominal spacing, echoed only.
        momentum_period: Trailing window length for the momentum average (default 20).
        momentum_threshold: Entry/reversal threshold in percent (default 2).
        rsi_period: Trailing window length for RSI (default 14).
        rsi_oversold: RSI level below which a long opens (default 30).
        rsi_overbought: RSI level above which a short opens (default 70).
    """
    strategy: Any
    market: str
    start_date: pd.Timestamp
    end_date: pd.Timestamp
    initial_capital: float
    position_size: float
    stop_loss: float
    take_profit: float
    leverage: float = 1.0
    dca_amount: Optional[float] = None
    dca_interval_hours: Optional[float] = None
    grid_levels: Optional[int] = None
    grid_spacing: Optional[float] = None
    momentum_period: Optional[int] = None
    momentum_threshold: Optional[float] = None
    rsi_period: Optional[int] = None
    rsi_oversold: Optional[float] = None
    rsi_overbought: Optional[float] = None

    @property
    def kind(self) -> StrategyKind:
        return StrategyKind.parse(self.strategy)

    @property
    def lookback_days(self) -> int:
        """Whole days spanned by [start_date, end_date], rounded up, at least 1."""
        span = pd.Timestamp(self.end_date) - pd.Timestamp(self.start_date)
        days = math.ceil(span / pd.Timedelta(days=1))
        return max(days, 1)

    def validate(self) -> StrategyKind:
        """
        Check the config before any data is fetched.

        Returns:
            The parsed StrategyKind.

        Raises:
            BacktestConfigError: On an unknown strategy or an out-of-range field.
        """
        kind = StrategyKind.parse(self.strategy)

        if not self.market or not str(self.market).strip():
            raise BacktestConfigError("market must not be empty")
        if pd.Timestamp(self.start_date) > pd.Timestamp(self.end_date):
            raise BacktestConfigError(
                f"start_date ({self.start_date}) must be <= end_date ({self.end_date})"
            )
        if self.initial_capital < 0:
            raise BacktestConfigError(
                f"initial_capital must be non-negative, got: {self.initial_capital}"
            )
        if self.position_size <= 0:
            raise BacktestConfigError(
                f"position_size must be positive, got: {self.position_size}"
            )
        if self.leverage <= 0:
            raise BacktestConfigError(f"leverage must be positive, got: {self.leverage}")
        if self.stop_loss < 0 or self.take_profit < 0:
            raise BacktestConfigError(
                "stop_loss and take_profit must be non-negative percentages"
            )

        # Window and level counts index into the series
        integer_optionals = {
            "grid_levels": self.grid_levels,
            "momentum_period": self.momentum_period,
            "rsi_period": self.rsi_period,
        }
        for name, value in integer_optionals.items():
            if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                raise BacktestConfigError(f"{name} must be an integer, got: {value!r}")

        positive_optionals = {
            "dca_amount": self.dca_amount,
            "dca_interval_hours": self.dca_interval_hours,
            "grid_levels": self.grid_levels,
            "momentum_period": self.momentum_period,
            "rsi_period": self.rsi_period,
        }
        for name, value in positive_optionals.items():
            if value is not None and value <= 0:
                raise BacktestConfigError(f"{name} must be positive, got: {value}")

        if self.rsi_period is not None and self.rsi_period < 2:
            raise BacktestConfigError(
                f"rsi_period needs at least 2 samples for one delta, got: {self.rsi_period}"
            )
        if self.momentum_threshold is not None and self.momentum_threshold < 0:
            raise BacktestConfigError(
                f"momentum_threshold must be non-negative, got: {self.momentum_threshold}"
            )

        oversold = _default(self.rsi_oversold, DEFAULT_RSI_OVERSOLD)
        overbought = _default(self.rsi_overbought, DEFAULT_RSI_OVERBOUGHT)
        if oversold >= overbought:
            raise BacktestConfigError(
                f"rsi_oversold ({oversold}) must be below rsi_overbought ({overbought})"
            )

        return kind

    def with_defaults(self) -> "BacktestConfig":
        """Return a copy with every optional strategy field resolved."""
        return replace(
            self,
            strategy=StrategyKind.parse(self.strategy),
            dca_amount=self.position_size if self.dca_amount is None else self.dca_amount,
            dca_interval_hours=_default(self.dca_interval_hours, DEFAULT_DCA_INTERVAL_HOURS),
            grid_levels=_default(self.grid_levels, DEFAULT_GRID_LEVELS),
            momentum_period=_default(self.momentum_period, DEFAULT_MOMENTUM_PERIOD),
            momentum_threshold=_default(self.momentum_threshold, DEFAULT_MOMENTUM_THRESHOLD),
            rsi_period=_default(self.rsi_period, DEFAULT_RSI_PERIOD),
            rsi_oversold=_default(self.rsi_oversold, DEFAULT_RSI_OVERSOLD),
            rsi_overbought=_default(self.rsi_overbought, DEFAULT_RSI_OVERBOUGHT),
        )


def _default(value, fallback):
    return fallback if value is None else value


@dataclass(frozen=True)
class PricePoint:
    """One (timestamp, price) sample. Series are ascending and deduplicated."""
    timestamp: pd.Timestamp
    price: float


@dataclass(frozen=True)
class Trade:
    """
    One ledger entry.

    pnl is set only on exits. Entries of a grid run are always long; the exit
    that closes a grid sub-position is recorded with side "long" too, since it
    closes a long.
    """
    timestamp: pd.Timestamp
    type: TradeType
    side: TradeSide
    price: float
    size: float
    reason: str
    pnl: Optional[float] = None

    @property
    def is_closed_exit(self) -> bool:
        """True for exit trades that carry a realized pnl (the ones metrics count)."""
        return self.type == TradeType.EXIT and self.pnl is not None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "timestamp": _iso(self.timestamp),
            "type": self.type.value,
            "side": self.side.value,
            "price": self.price,
            "size": self.size,
            "reason": self.reason,
        }
        if self.pnl is not None:
            data["pnl"] = self.pnl
        return data


@dataclass(frozen=True)
class EquityPoint:
    """Total portfolio value (cash + mark-to-market) at one timestamp."""
    timestamp: pd.Timestamp
    value: float


@dataclass(frozen=True)
class CapitalUsage:
    """How much of the initial capital was tied up in positions."""
    max_invested: float
    max_invested_percent: float
    avg_invested: float
    avg_invested_percent: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "maxInvested": self.max_invested,
            "maxInvestedPercent": self.max_invested_percent,
            "avgInvested": self.avg_invested,
            "avgInvestedPercent": self.avg_invested_percent,
        }


@dataclass(frozen=True)
class BacktestMetrics:
    """
    Aggregated statistics for one run.

    avg_loss is a positive magnitude; largest_loss is the most negative pnl.
    profit_factor is math.inf when there are wins and no losses.
    """
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    initial_capital: float
    final_capital: float
    total_return: float
    total_return_percent: float
    max_drawdown: float
    max_drawdown_percent: float
    sharpe_ratio: float
    profit_factor: float
    avg_win: float
    avg_loss: float
    largest_win: float
    largest_loss: float
    capital_usage: CapitalUsage

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalTrades": self.total_trades,
            "winningTrades": self.winning_trades,
            "losingTrades": self.losing_trades,
            "winRate": self.win_rate,
            "initialCapital": self.initial_capital,
            "finalCapital": self.final_capital,
            "totalReturn": self.total_return,
            "totalReturnPercent": self.total_return_percent,
            "maxDrawdown": self.max_drawdown,
            "maxDrawdownPercent": self.max_drawdown_percent,
            "sharpeRatio": self.sharpe_ratio,
            "profitFactor": self.profit_factor,
            "avgWin": self.avg_win,
            "avgLoss": self.avg_loss,
            "largestWin": self.largest_win,
            "largestLoss": self.largest_loss,
            "capitalUsage": self.capital_usage.to_dict(),
        }


@dataclass(frozen=True)
class BacktestResult:
    """
    Output of one backtest run.

    **Conceptual**: Echoes what was run (strategy, market, period) next to what
    happened (trades, equity curve) and how it scored (metrics). to_dict()
    gives the flat camelCase shape that reporting layers render; the engine
    itself never formats output.

    Attributes:
        strategy: Which simulator produced this result.
        market: Market symbol from the config.
        period_start: Config start date.
        period_end: Config end date.
        metrics: Aggregated statistics.
        trades: Full trade ledger in timestamp order.
        equity_curve: One point per price sample.
    """
    strategy: StrategyKind
    market: str
    period_start: pd.Timestamp
    period_end: pd.Timestamp
    metrics: BacktestMetrics
    trades: Tuple[Trade, ...] = field(default_factory=tuple)
    equity_curve: Tuple[EquityPoint, ...] = field(default_factory=tuple)

    def equity_series(self) -> pd.Series:
        """Equity curve as a pandas Series indexed by timestamp."""
        return pd.Series(
            [point.value for point in self.equity_curve],
            index=pd.DatetimeIndex([point.timestamp for point in self.equity_curve]),
            name="equity",
            dtype=float,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "strategy": self.strategy.value,
            "market": self.market,
            "period": {
                "start": _iso(self.period_start),
                "end": _iso(self.period_end),
            },
        }
        data.update(self.metrics.to_dict())
        data["trades"] = [trade.to_dict() for trade in self.trades]
        data["equity"] = [
            {"timestamp": _iso(point.timestamp), "value": point.value}
            for point in self.equity_curve
        ]
        return data


def _iso(ts) -> str:
    return pd.Timestamp(ts).isoformat()
