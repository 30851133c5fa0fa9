import numpy as np
import pandas as pd
import pytest

from conftest import make_frame
from market_signals.config import ATRParameters
from market_signals.indicator_types import ResultStatus, Slope, Trend, VolatilityLevel, Zone
from market_signals.volatility import AverageTrueRange, BollingerBands


def ranged_frame(ranges, price=10.0):
    ranges = np.asarray(ranges, dtype=float)
    close = np.full(len(ranges), price)
    return make_frame(close, close + ranges / 2, close - ranges / 2)


# =============================================================================
# ATR
# =============================================================================

def test_atr_non_negative(random_frame):
    atr = AverageTrueRange().analyze(random_frame).atr.dropna()
    assert len(atr) > 0
    assert (atr >= 0).all()


def test_atr_seed_and_wilder_smoothing():
    result = AverageTrueRange(ATRParameters(period=3)).analyze(ranged_frame(range(8)))

    expected = [2.0, 8 / 3, 31 / 9, 116 / 27, 421 / 81]
    assert result.atr.iloc[:3].isna().all()
    assert list(result.atr.iloc[3:]) == pytest.approx(expected)
    assert np.isnan(result.true_range.iloc[0])


def test_atr_rising_range_classification():
    result = AverageTrueRange(ATRParameters(period=3)).analyze(ranged_frame(range(8)))

    assert result.trend is Slope.INCREASING
    assert result.volatility is VolatilityLevel.HIGH
    assert result.latest_atr_percent == pytest.approx(421 / 81 / 10 * 100)


def test_atr_constant_range_is_stable_medium():
    result = AverageTrueRange().analyze(ranged_frame([2.0] * 30))

    assert result.latest_atr == pytest.approx(2.0)
    assert result.average_atr == pytest.approx(2.0)
    assert result.trend is Slope.STABLE
    assert result.volatility is VolatilityLevel.MEDIUM


def test_atr_true_range_uses_previous_close():
    frame = make_frame(close=[10, 12], high=[10.5, 12.5], low=[9.5, 11.5])
    tr = AverageTrueRange.calculate_true_range(frame["high"], frame["low"], frame["close"])
    # Gap up: |high - prev close| dominates the bar range
    assert tr.iloc[1] == pytest.approx(2.5)


def test_atr_minimum_bars():
    assert AverageTrueRange().analyze(ranged_frame([1.0] * 18)).status is ResultStatus.INSUFFICIENT_DATA
    assert AverageTrueRange().analyze(ranged_frame([1.0] * 19)).ok


def test_atr_rejects_short_trend_window():
    with pytest.raises(ValueError):
        AverageTrueRange(ATRParameters(trend_window=4))


def test_atr_slope_ignores_trend_window_length():
    # Bars 4-5 back match the latest two; the spike is further back
    atr = pd.Series([10.0, 10.0, 10.0, 1.0, 1.0, 2.0, 1.0, 1.0])
    for trend_window in (5, 8):
        indicator = AverageTrueRange(ATRParameters(trend_window=trend_window))
        assert indicator.classify_trend(atr) is Slope.STABLE

    assert AverageTrueRange().classify_trend(pd.Series([1.0, 1.0, 2.0, 1.5, 1.5])) is Slope.INCREASING


# =============================================================================
# BOLLINGER BANDS
# =============================================================================

def test_bollinger_flat_series():
    result = BollingerBands().analyze([10.0] * 30)

    assert result.latest_percent_b == 50.0
    assert result.latest_bandwidth == 0.0
    assert result.zone is Zone.NEUTRAL
    assert not result.squeeze
    assert result.volatility is VolatilityLevel.MEDIUM


def test_bollinger_population_std():
    close = np.arange(20, dtype=float)
    result = BollingerBands().analyze(close)

    sigma = np.std(close)  # ddof=0
    assert result.upper.iloc[-1] == pytest.approx(9.5 + 2 * sigma)
    assert result.lower.iloc[-1] == pytest.approx(9.5 - 2 * sigma)


def test_bollinger_steady_rally_walks_upper_band():
    result = BollingerBands().analyze(np.arange(100, 140, dtype=float))

    assert result.latest_percent_b > 80
    assert result.zone is Zone.OVERBOUGHT
    assert result.walking is Trend.BULLISH


def test_bollinger_squeeze_after_volatile_period():
    rng = np.random.RandomState(3)
    noisy = 100 + rng.normal(0, 5, 40)
    calm = 100 + rng.normal(0, 0.05, 20)
    result = BollingerBands().analyze(np.concatenate([noisy, calm]))

    assert result.squeeze
    assert result.volatility is VolatilityLevel.LOW


def test_bollinger_insufficient():
    result = BollingerBands().analyze([1.0] * 19)
    assert result.insufficient_data
    assert result.latest_percent_b == 50.0
    assert result.upper.isna().all()
