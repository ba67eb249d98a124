"""
Dollar-cost averaging (DCA) simulator.

**Conceptual**: DCA buys a fixed notional (dca_amount) every dca_interval_hours
regardless of price. Holdings are tracked as one accumulated size with a
weighted-average entry price:

    new_avg = (avg * size + price * bought) / (size + bought)

After every sample the whole position is checked against stop loss / take
profit, measured from the weighted average. A hit sells everything at the
current price; accumulation then continues on the same schedule.

**Schedule**:
  - The first sample always buys (it seeds the ladder).
  - After that, a buy happens once at least dca_interval_hours have elapsed
    since the last buy, measured on the sample timestamps.
  - A buy skipped for lack of cash doesn't reset the clock, so the next
    sample retries.

Example: 1000 capital, dca_amount=50, interval 12h over 168 hourly samples at
a constant $100 -> 14 buys of 0.5 units, closed at the end with zero pnl.
"""

from typing import Optional, Sequence

import pandas as pd

from src.backtesting.models import BacktestConfig, PricePoint, TradeSide
from src.strategies.base import (
    END_OF_BACKTEST_REASON,
    SimulationLedger,
    SimulationOutput,
    risk_exit_reason,
)

DCA_REASON = "DCA interval"


class DcaSimulator:
    """Scheduled-accumulation strategy with whole-position stop loss / take profit."""

    def simulate(self, config: BacktestConfig, prices: Sequence[PricePoint]) -> SimulationOutput:
        config = config.with_defaults()
        ledger = SimulationLedger()
        interval = pd.Timedelta(hours=config.dca_interval_hours)
        amount = config.dca_amount

        cash = config.initial_capital
        size = 0.0
        avg_entry = 0.0
        last_buy: Optional[pd.Timestamp] = None

        for point in prices:
            price = point.price

            due = last_buy is None or point.timestamp - last_buy >= interval
            if due and cash >= amount:
                bought = amount / price
                avg_entry = (avg_entry * size + price * bought) / (size + bought)
                size += bought
                cash -= amount
                last_buy = point.timestamp
                ledger.record_entry(point.timestamp, TradeSide.LONG, price, bought, DCA_REASON)

            if size > 0:
                pnl_percent = (price - avg_entry) / avg_entry * 100
                reason = risk_exit_reason(pnl_percent, config.stop_loss, config.take_profit)
                if reason is not None:
                    cash += size * price
                    ledger.record_exit(
                        point.timestamp,
                        TradeSide.LONG,
                        price,
                        size,
                        (price - avg_entry) * size,
                        reason,
                    )
                    size = 0.0
                    avg_entry = 0.0

            ledger.mark(point.timestamp, cash, size * price)

        if size > 0:
            last = prices[-1]
            cash += size * last.price
            ledger.record_exit(
                last.timestamp,
                TradeSide.LONG,
                last.price,
                size,
                (last.price - avg_entry) * size,
                END_OF_BACKTEST_REASON,
            )
            ledger.record_cash(cash)

        return ledger.to_output(final_cash=cash)
