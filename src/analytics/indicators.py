"""
Trailing indicators used by the signal-driven simulators.

**Conceptual**: Both indicators are computed from a window of samples that
ends just before the current sample. The current price is compared against
the window (momentum) or excluded from it entirely (RSI), so nothing here
reads a price the simulator hasn't reached yet.

Both functions are pure and take plain sequences (lists or numpy arrays), so
they can be tested without building a full price series.
"""

from typing import Sequence

import numpy as np


def compute_trailing_momentum(window: Sequence[float], price: float) -> float:
    """
    Percentage deviation of price from the mean of the trailing window.

    **Mathematical**:
        momentum = (price - mean(window)) / mean(window) * 100

    Args:
        window: Prices immediately preceding the current sample (non-empty).
        price: Current price.

    Returns:
        Momentum in percent. 5.0 means price is 5% above the trailing mean.

    Raises:
        ValueError: If the window is empty.

    Example:
        >>> compute_trailing_momentum([100.0] * 20, 105.0)
        5.0
    """
    values = np.asarray(window, dtype=float)
    if values.size == 0:
        raise ValueError("Momentum window must not be empty")

    average = values.mean()
    if average == 0:
        return 0.0
    return float((price - average) / average * 100)


def compute_rsi(window: Sequence[float]) -> float:
    """
    Relative Strength Index over a window of prices.

    **Mathematical**: With deltas d_i = p_i - p_{i-1} over the window of n
    prices:
        gains  = sum(d_i for d_i > 0) / n
        losses = sum(|d_i| for d_i < 0) / n
        RSI    = 100                            if losses == 0
               = 100 - 100 / (1 + gains/losses) otherwise

    Dividing both sums by the same n keeps their ratio (and so RSI) equal to
    the ratio of the raw sums.

    **Edge cases**:
      - No losses (flat or rising window) -> 100, even when gains are also 0.
      - A window shorter than 2 prices has no deltas -> 100.

    Args:
        window: Prices preceding the current sample, oldest first.

    Returns:
        RSI in [0, 100].

    Example:
        >>> compute_rsi([100, 101, 102, 103])
        100.0
    """
    values = np.asarray(window, dtype=float)
    deltas = np.diff(values)
    n = max(values.size, 1)

    gains = deltas[deltas > 0].sum() / n
    losses = -deltas[deltas < 0].sum() / n

    if losses == 0:
        return 100.0
    relative_strength = gains / losses
    return float(100 - 100 / (1 + relative_strength))
