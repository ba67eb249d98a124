"""
Backtest engine: validate, fetch, simulate, score.

**Conceptual**: The engine is the orchestrator that brings together a price
provider, the four strategy simulators and the metrics calculator. For one
BacktestConfig it:
  1. Validates the config (unknown strategy -> BacktestConfigError, before
     any network call).
  2. Fetches lookback_days of prices for the config's market.
  3. Rejects an empty series (EmptyPriceSeriesError).
  4. Dispatches to the simulator registered for the strategy kind.
  5. Feeds the simulator output to compute_backtest_metrics().
  6. Returns a frozen BacktestResult.

**Stateless**: A BacktestEngine holds only its price provider and a
read-only simulator registry. Runs share nothing mutable, so callers can
build one engine per test, or replay four strategies over one fetched series
from several threads. There is no module-level engine instance.

**Determinism**: Given the same config and price series, run_on_prices()
returns identical results. The only I/O is the provider fetch in
run_backtest().
"""

from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from loguru import logger

from src.analytics.risk_metrics import compute_backtest_metrics
from src.backtesting.errors import EmptyPriceSeriesError
from src.backtesting.models import (
    BacktestConfig,
    BacktestResult,
    PricePoint,
    StrategyKind,
)
from src.strategies.base import StrategySimulator
from src.strategies.dca import DcaSimulator
from src.strategies.grid import GridSimulator
from src.strategies.mean_reversion import MeanReversionSimulator
from src.strategies.momentum import MomentumSimulator
from src.venues.base import PriceSeriesProvider


def default_simulators() -> Dict[StrategyKind, StrategySimulator]:
    """Registry mapping every StrategyKind to its simulator."""
    return {
        StrategyKind.DCA: DcaSimulator(),
        StrategyKind.GRID: GridSimulator(),
        StrategyKind.MOMENTUM: MomentumSimulator(),
        StrategyKind.MEAN_REVERSION: MeanReversionSimulator(),
    }


class BacktestEngine:
    """
    Runs backtests against a price provider.

    Example:
        >>> from src.venues.coingecko_price_provider import CoinGeckoPriceProvider
        >>> engine = BacktestEngine(CoinGeckoPriceProvider(settings.coingecko))
        >>> result = engine.run_backtest(config)
        >>> print(result.metrics.total_return_percent)
    """

    def __init__(
        self,
        price_provider: PriceSeriesProvider,
        simulators: Optional[Mapping[StrategyKind, StrategySimulator]] = None,
    ):
        """
        Args:
            price_provider: Anything with get_prices(market, days).
            simulators: Optional registry override (tests inject fakes here).
                        Defaults to default_simulators().
        """
        self.price_provider = price_provider
        self.simulators = dict(simulators) if simulators is not None else default_simulators()

    def run_backtest(self, config: BacktestConfig) -> BacktestResult:
        """
        Fetch prices for config and run it.

        Raises:
            BacktestConfigError: If the config is invalid (checked before fetching).
            EmptyPriceSeriesError: If the provider returns no samples.
            Any error raised by the price provider propagates unchanged.
        """
        config.validate()
        days = config.lookback_days

        logger.info(
            "[engine] fetching {} days of {} for {}", days, config.market, config.kind.value
        )
        prices = self.price_provider.get_prices(config.market, days)
        return self.run_on_prices(config, prices)

    def run_on_prices(
        self,
        config: BacktestConfig,
        prices: Sequence[PricePoint],
    ) -> BacktestResult:
        """
        Run config over an already fetched price series.

        The series must be ascending by timestamp and deduplicated; it is not
        re-sorted here.

        Raises:
            BacktestConfigError: If the config is invalid.
            EmptyPriceSeriesError: If prices is empty.
        """
        kind = config.validate()
        prices = list(prices)
        if not prices:
            raise EmptyPriceSeriesError(
                f"No price data for {config.market}. "
                f"Check the market symbol and date range."
            )

        simulator = self.simulators[kind]
        output = simulator.simulate(config, prices)
        metrics = compute_backtest_metrics(
            output.trades,
            output.equity_curve,
            output.cash_history,
            config.initial_capital,
        )

        logger.info(
            "[engine] {} on {}: {} samples, {} trades, return {:.2f}%",
            kind.value,
            config.market,
            len(prices),
            metrics.total_trades,
            metrics.total_return_percent,
        )

        return BacktestResult(
            strategy=kind,
            market=config.market,
            period_start=config.start_date,
            period_end=config.end_date,
            metrics=metrics,
            trades=output.trades,
            equity_curve=output.equity_curve,
        )

    def run_many_on_prices(
        self,
        configs: Iterable[BacktestConfig],
        prices: Sequence[PricePoint],
    ) -> List[BacktestResult]:
        """Run several configs over one shared series (fetched once by the caller)."""
        prices = list(prices)
        return [self.run_on_prices(config, prices) for config in configs]


def select_best_result(results: Sequence[BacktestResult]) -> Optional[BacktestResult]:
    """
    Result with the highest total return percent; None for no results.

    Ties keep the earliest result in the sequence.
    """
    best: Optional[BacktestResult] = None
    for result in results:
        if best is None or result.metrics.total_return_percent > best.metrics.total_return_percent:
            best = result
    return best
