"""
Grid trading simulator.

**Conceptual**: A grid strategy lays equally spaced price levels over a range
and trades every time price crosses one. Falling through a level buys a small
fixed-notional lot; rising through a level sells the oldest lot (FIFO). In a
choppy market the grid harvests the chop; in a one-way trend it either
accumulates lots (falling) or does nothing (rising with no lots to sell).

**Grid construction**: grid_levels bands between the series minimum and
maximum, i.e. grid_levels + 1 prices:

    level_i = min + i * (max - min) / grid_levels,   i = 0..grid_levels

**Look-ahead**: min and max are taken from the *whole* series before the
first step. A live grid bot could not know them. Kept as-is so results stay
comparable with earlier runs; treat grid returns as optimistic.

**Crossings**: level g is crossed between prev and cur when
prev < g <= cur (rising) or prev > g >= cur (falling). Every level crossed in
one step is processed, lowest first, with the step's direction. There is no
stop loss / take profit on lots; they only leave via a rising crossing or the
end-of-series close.
"""

from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Sequence

import numpy as np
from loguru import logger

from src.backtesting.models import BacktestConfig, PricePoint, TradeSide
from src.strategies.base import (
    END_OF_BACKTEST_REASON,
    SimulationLedger,
    SimulationOutput,
)


@dataclass(frozen=True)
class GridLot:
    """One long sub-position bought at a grid crossing."""
    entry_price: float
    size: float


def build_grid_levels(prices: Sequence[float], levels: int) -> List[float]:
    """
    Equally spaced grid prices across the observed range of prices.

    A flat series gives levels + 1 copies of the same price, which no step can
    cross.

    Example:
        >>> build_grid_levels([90.0, 110.0], 4)
        [90.0, 95.0, 100.0, 105.0, 110.0]
    """
    values = np.asarray(prices, dtype=float)
    low = float(values.min())
    high = float(values.max())
    spacing = (high - low) / levels
    return [low + i * spacing for i in range(levels + 1)]


def crossed_levels(grid: Sequence[float], previous: float, current: float) -> List[float]:
    """Levels crossed moving from previous to current, in ascending order."""
    return [
        level for level in grid
        if (previous < level <= current) or (previous > level >= current)
    ]


class GridSimulator:
    """FIFO grid strategy over a whole-series price range."""

    def simulate(self, config: BacktestConfig, prices: Sequence[PricePoint]) -> SimulationOutput:
        config = config.with_defaults()
        ledger = SimulationLedger()
        cash = config.initial_capital
        lots: Deque[GridLot] = deque()

        if not prices:
            return ledger.to_output(final_cash=cash)

        grid = build_grid_levels([point.price for point in prices], config.grid_levels)
        logger.debug(
            "[grid] {} levels from {:.4f} to {:.4f} (spacing {:.4f})",
            len(grid), grid[0], grid[-1], grid[1] - grid[0] if len(grid) > 1 else 0.0,
        )

        previous = prices[0].price
        ledger.mark(prices[0].timestamp, cash, 0.0)

        for point in prices[1:]:
            price = point.price
            rising = price > previous

            for level in crossed_levels(grid, previous, price):
                reason = f"Grid level ${level:.2f}"
                if rising:
                    if lots:
                        lot = lots.popleft()
                        cash += lot.size * price
                        ledger.record_exit(
                            point.timestamp,
                            TradeSide.LONG,
                            price,
                            lot.size,
                            (price - lot.entry_price) * lot.size,
                            reason,
                        )
                elif cash >= config.position_size:
                    lot = GridLot(entry_price=price, size=config.position_size / price)
                    lots.append(lot)
                    cash -= config.position_size
                    ledger.record_entry(point.timestamp, TradeSide.LONG, price, lot.size, reason)

            previous = price
            ledger.mark(point.timestamp, cash, sum(lot.size * price for lot in lots))

        last = prices[-1]
        while lots:
            lot = lots.popleft()
            cash += lot.size * last.price
            ledger.record_exit(
                last.timestamp,
                TradeSide.LONG,
                last.price,
                lot.size,
                (last.price - lot.entry_price) * lot.size,
                END_OF_BACKTEST_REASON,
            )
        ledger.record_cash(cash)

        return ledger.to_output(final_cash=cash)
