import numpy as np
import pytest

from market_signals.config import MACDParameters
from market_signals.indicator_types import Momentum, ResultStatus, Signal, Slope, Trend
from market_signals.trend import MACDIndicator, calculate_macd


def test_flat_28_bars_is_insufficient_with_zero_histogram():
    result = calculate_macd([10.0] * 28)

    assert result.status is ResultStatus.INSUFFICIENT_DATA
    assert result.insufficient_data
    assert result.latest_histogram == 0
    assert result.histogram.isna().all()
    assert len(result.histogram) == 28
    assert result.trend is Trend.NEUTRAL


def test_flat_series_has_zero_macd_and_histogram():
    result = calculate_macd([10.0] * 60)

    assert result.ok
    assert np.allclose(result.macd.dropna(), 0.0)
    assert np.allclose(result.histogram.dropna(), 0.0)
    assert result.latest_histogram == pytest.approx(0.0)
    assert result.momentum is Momentum.WEAK


def test_signal_line_aligned_after_compaction():
    result = calculate_macd(np.arange(1, 36, dtype=float))

    assert result.ok
    # MACD defined from index 25, signal seeded 8 defined values later
    assert result.macd.first_valid_index() == 25
    assert result.signal.first_valid_index() == 33
    assert result.histogram.notna().sum() == 2


def test_accelerating_rally_is_bullish():
    close = 100 + 0.05 * np.arange(80, dtype=float) ** 2
    result = calculate_macd(close)

    assert result.trend is Trend.BULLISH
    assert result.latest_histogram > 0
    assert result.momentum is Momentum.STRONG


def test_accelerating_selloff_is_bearish():
    close = 500 - 0.05 * np.arange(80, dtype=float) ** 2
    result = calculate_macd(close)

    assert result.trend is Trend.BEARISH
    assert result.latest_histogram < 0


def test_bullish_crossover_on_reversal_bar():
    # Accelerating decline keeps MACD under its signal; a sharp jump on the last bar flips it
    close = list(300 - 0.03 * np.arange(60, dtype=float) ** 2) + [260.0]
    result = calculate_macd(close)

    assert result.signal_event is Signal.BULLISH
    assert result.trend is Trend.BULLISH
    assert result.momentum_direction is Slope.INCREASING


def test_custom_periods_change_minimum():
    indicator = MACDIndicator(MACDParameters(fast=3, slow=6, signal=2))
    assert indicator.min_bars == 8
    assert indicator.analyze([1.0] * 8).ok
    assert indicator.analyze([1.0] * 7).insufficient_data


def test_non_positive_period_rejected():
    with pytest.raises(ValueError):
        MACDIndicator(MACDParameters(fast=0))


def test_bearish_crossover_on_reversal_bar():
    # Mirror of the bullish case: accelerating rally, then a sharp drop on the last bar
    close = list(300 + 0.03 * np.arange(60, dtype=float) ** 2) + [340.0]
    result = calculate_macd(close)

    assert result.signal_event is Signal.BEARISH
    assert result.trend is Trend.BEARISH
    assert result.momentum_direction is Slope.DECREASING
