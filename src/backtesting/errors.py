"""
Exceptions raised by the backtest engine.

Callers can catch BacktestError for anything the engine rejects, or the
ValueError-compatible subclasses where they already handle bad input.
Insufficient cash and too-short series are not errors: the simulators skip
the trigger or return a flat equity curve.
"""


class BacktestError(Exception):
    """Base exception for backtest engine errors."""
    pass


class BacktestConfigError(BacktestError, ValueError):
    """
    Raised when a BacktestConfig is rejected before any price fetch.

    Examples: an unknown strategy discriminator, a non-positive position
    size, or a start date after the end date.
    """
    pass


class EmptyPriceSeriesError(BacktestError, ValueError):
    """Raised when the price provider returns zero samples for a market."""
    pass
