"""
Simulator interface and shared position accounting.

**Conceptual**: A strategy simulator replays one strategy over a price series
and reports what it did. Every simulator has the same contract:

    simulate(config, prices) -> SimulationOutput(trades, equity_curve, cash_history)

The engine doesn't know which strategy it's running; it dispatches on the
config's strategy kind and hands the output to the metrics calculator.

**Position state**: momentum and mean reversion hold at most one directional
position, modelled as an explicit tagged state (Flat | Long | Short). A
transition is always "replace the state", never "mutate the position", so each
step's logic is a match over three cases. Grid and DCA keep their own state
(a FIFO of lots, a weighted-average accumulator) in their modules.

**Accounting rules** (shared by every simulator):
  - Opening a position of notional N moves N out of cash. An entry is only
    taken when cash >= N; otherwise the trigger is skipped.
  - A long is worth size * price.
  - A short is worth size * (2 * entry - price): the reserved notional plus
    the unrealized pnl. Closing it returns exactly that amount to cash.
  - Because closing returns the mark-to-market value, cash after the forced
    end-of-series close equals the last equity value, and the sum of realized
    pnl equals final cash minus initial capital.

**Teaching note**: Simulators hold no state between calls. Each simulate()
builds a fresh SimulationLedger, so the same simulator object can replay many
configs, including from several threads at once.
"""

from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Tuple, Union

import pandas as pd

from src.backtesting.models import (
    BacktestConfig,
    EquityPoint,
    PricePoint,
    Trade,
    TradeSide,
    TradeType,
)

STOP_LOSS_REASON = "Stop loss"
TAKE_PROFIT_REASON = "Take profit"
END_OF_BACKTEST_REASON = "End of backtest"


@dataclass(frozen=True)
class SimulationOutput:
    """
    Raw output of one simulation, before metrics.

    Attributes:
        trades: Ledger in timestamp order.
        equity_curve: One point per price sample.
        cash_history: Uninvested cash after each sample, plus one trailing entry
                      after an end-of-series forced close.
        final_cash: Cash after every position has been closed.
    """
    trades: Tuple[Trade, ...]
    equity_curve: Tuple[EquityPoint, ...]
    cash_history: Tuple[float, ...]
    final_cash: float


class StrategySimulator(Protocol):
    """Contract shared by the four strategy simulators."""

    def simulate(
        self,
        config: BacktestConfig,
        prices: Sequence[PricePoint],
    ) -> SimulationOutput:
        """
        Replay the strategy over prices.

        Args:
            config: Run configuration. Optional fields may be None; simulators
                    resolve defaults themselves.
            prices: Samples sorted ascending by timestamp, deduplicated.

        Returns:
            SimulationOutput with every position closed by the last sample.
        """
        ...


# ============================================================================
# Tagged position state
# ============================================================================

@dataclass(frozen=True)
class Flat:
    """No open position."""
    pass


@dataclass(frozen=True)
class Long:
    entry_price: float
    size: float

    @property
    def side(self) -> TradeSide:
        return TradeSide.LONG


@dataclass(frozen=True)
class Short:
    entry_price: float
    size: float

    @property
    def side(self) -> TradeSide:
        return TradeSide.SHORT


PositionState = Union[Flat, Long, Short]
FLAT = Flat()


def open_position(side: TradeSide, price: float, notional: float) -> Union[Long, Short]:
    """Open a position of the given notional at price (size = notional / price)."""
    size = notional / price
    if side == TradeSide.LONG:
        return Long(entry_price=price, size=size)
    return Short(entry_price=price, size=size)


def position_pnl(position: PositionState, price: float) -> float:
    """Unrealized pnl of position at price, in quote currency."""
    if isinstance(position, Long):
        return (price - position.entry_price) * position.size
    if isinstance(position, Short):
        return (position.entry_price - price) * position.size
    return 0.0


def position_pnl_percent(position: PositionState, price: float) -> float:
    """
    Unrealized pnl in percent of entry price, direction-aware.

    A long at 100 marked at 95 is -5.0; a short at 100 marked at 95 is +5.0.
    """
    if isinstance(position, Long):
        return (price - position.entry_price) / position.entry_price * 100
    if isinstance(position, Short):
        return (position.entry_price - price) / position.entry_price * 100
    return 0.0


def position_value(position: PositionState, price: float) -> float:
    """Mark-to-market value of position at price (what closing it returns to cash)."""
    if isinstance(position, Long):
        return position.size * price
    if isinstance(position, Short):
        return position.size * (2 * position.entry_price - price)
    return 0.0


def risk_exit_reason(pnl_percent: float, stop_loss: float, take_profit: float) -> Optional[str]:
    """
    Stop-loss / take-profit check on a percentage pnl.

    Stop loss is checked first, so with both thresholds at 0 a flat position
    is stopped out rather than taken for profit.
    """
    if pnl_percent <= -stop_loss:
        return STOP_LOSS_REASON
    if pnl_percent >= take_profit:
        return TAKE_PROFIT_REASON
    return None


# ============================================================================
# Ledger
# ============================================================================

class SimulationLedger:
    """
    Append-only trade ledger, equity curve and cash history for one run.

    Example:
        >>> ledger = SimulationLedger()
        >>> ledger.mark(ts, cash=1000.0, position_value=0.0)
        >>> output = ledger.to_output(final_cash=1000.0)
    """

    def __init__(self):
        self.trades: List[Trade] = []
        self.equity_curve: List[EquityPoint] = []
        self.cash_history: List[float] = []

    def record_entry(
        self,
        timestamp: pd.Timestamp,
        side: TradeSide,
        price: float,
        size: float,
        reason: str,
    ):
        self.trades.append(
            Trade(
                timestamp=timestamp,
                type=TradeType.ENTRY,
                side=side,
                price=price,
                size=size,
                reason=reason,
            )
        )

    def record_exit(
        self,
        timestamp: pd.Timestamp,
        side: TradeSide,
        price: float,
        size: float,
        pnl: float,
        reason: str,
    ):
        self.trades.append(
            Trade(
                timestamp=timestamp,
                type=TradeType.EXIT,
                side=side,
                price=price,
                size=size,
                reason=reason,
                pnl=pnl,
            )
        )

    def mark(self, timestamp: pd.Timestamp, cash: float, position_value: float):
        """Record equity (cash + open value) and cash for one sample."""
        self.equity_curve.append(EquityPoint(timestamp=timestamp, value=cash + position_value))
        self.cash_history.append(cash)

    def record_cash(self, cash: float):
        self.cash_history.append(cash)

    def to_output(self, final_cash: float) -> SimulationOutput:
        return SimulationOutput(
            trades=tuple(self.trades),
            equity_curve=tuple(self.equity_curve),
            cash_history=tuple(self.cash_history),
            final_cash=final_cash,
        )


# ============================================================================
# Single-position skeleton (momentum, mean reversion)
# ============================================================================

class SinglePositionSimulator:
    """
    Step loop shared by the momentum and mean-reversion simulators.

    **Conceptual**: Both strategies wait out a warm-up window, compute one
    indicator value per sample, open at most one position on an entry signal,
    and close it on stop loss, take profit or an indicator-specific exit
    signal (checked in that order). Subclasses supply the indicator and the
    signal rules:

      - warmup(config) -> number of samples with no action
      - indicator(config, prices, index) -> float
      - entry_side(config, value) -> TradeSide | None
      - entry_reason(value, side) -> str
      - signal_exit_reason(config, position, value) -> str | None

    A position opened at a sample is not checked for exit until the next
    sample, and a position closed at a sample is not reopened at that sample.
    """

    def warmup(self, config: BacktestConfig) -> int:
        raise NotImplementedError

    def indicator(self, config: BacktestConfig, prices: Sequence[PricePoint], index: int) -> float:
        raise NotImplementedError

    def entry_side(self, config: BacktestConfig, value: float) -> Optional[TradeSide]:
        raise NotImplementedError

    def entry_reason(self, value: float, side: TradeSide) -> str:
        raise NotImplementedError

    def signal_exit_reason(
        self,
        config: BacktestConfig,
        position: Union[Long, Short],
        value: float,
    ) -> Optional[str]:
        raise NotImplementedError

    def simulate(self, config: BacktestConfig, prices: Sequence[PricePoint]) -> SimulationOutput:
        config = config.with_defaults()
        ledger = SimulationLedger()
        cash = config.initial_capital
        position: PositionState = FLAT
        warmup = self.warmup(config)

        for index, point in enumerate(prices):
            if index < warmup:
                ledger.mark(point.timestamp, cash, 0.0)
                continue

            price = point.price
            value = self.indicator(config, prices, index)

            if isinstance(position, Flat):
                side = self.entry_side(config, value)
                if side is not None and cash >= config.position_size:
                    position = open_position(side, price, config.position_size)
                    cash -= config.position_size
                    ledger.record_entry(
                        point.timestamp, side, price, position.size, self.entry_reason(value, side)
                    )
            else:
                reason = risk_exit_reason(
                    position_pnl_percent(position, price), config.stop_loss, config.take_profit
                ) or self.signal_exit_reason(config, position, value)
                if reason is not None:
                    cash += position_value(position, price)
                    ledger.record_exit(
                        point.timestamp,
                        position.side,
                        price,
                        position.size,
                        position_pnl(position, price),
                        reason,
                    )
                    position = FLAT

            ledger.mark(point.timestamp, cash, position_value(position, price))

        if not isinstance(position, Flat):
            last = prices[-1]
            cash += position_value(position, last.price)
            ledger.record_exit(
                last.timestamp,
                position.side,
                last.price,
                position.size,
                position_pnl(position, last.price),
                END_OF_BACKTEST_REASON,
            )
            ledger.record_cash(cash)

        return ledger.to_output(final_cash=cash)
