"""
Tests for src/analytics/indicators.py

Trailing momentum and RSI on small hand-computed windows.
"""

import numpy as np
import pytest

from src.analytics.indicators import compute_rsi, compute_trailing_momentum


def test_momentum_against_flat_window():
    """Price 5% above a flat window -> momentum 5."""
    assert compute_trailing_momentum([100.0] * 20, 105.0) == pytest.approx(5.0)


def test_momentum_negative_below_mean():
    # mean(98, 100, 102) = 100 -> (97 - 100) / 100 * 100 = -3
    assert compute_trailing_momentum([98.0, 100.0, 102.0], 97.0) == pytest.approx(-3.0)


def test_momentum_empty_window_raises():
    with pytest.raises(ValueError, match="empty"):
        compute_trailing_momentum([], 100.0)


def test_rsi_no_losses_is_100():
    """Rising or flat windows have no losses -> RSI pinned at 100."""
    assert compute_rsi([100.0, 101.0, 102.0, 103.0]) == 100.0
    assert compute_rsi([100.0] * 14) == 100.0


def test_rsi_no_gains_is_0():
    assert compute_rsi([103.0, 102.0, 101.0, 100.0]) == pytest.approx(0.0)


def test_rsi_matches_gain_loss_ratio():
    """One +2.2 move and twelve -0.65 moves -> RSI = 100 - 100 / (1 + 2.2/7.8) = 22."""
    window = [100.0, 102.2] + [102.2 - 0.65 * k for k in range(1, 13)]
    assert len(window) == 14

    assert compute_rsi(window) == pytest.approx(22.0)


def test_rsi_balanced_moves_is_50():
    assert compute_rsi([100.0, 101.0, 100.0, 101.0, 100.0]) == pytest.approx(50.0)


def test_rsi_accepts_numpy_arrays():
    window = np.array([10.0, 9.0, 10.0, 11.0])
    # gains 2, losses 1 -> 100 - 100/3
    assert compute_rsi(window) == pytest.approx(100 - 100 / 3)
