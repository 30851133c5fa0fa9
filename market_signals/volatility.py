"""
Volatility Indicators

    - ATR: Wilder, 1978 - Wilder-smoothed True Range
    - Bollinger Bands: Bollinger, 1980s - SMA envelope of +/- k population
      standard deviations

Both report a volatility level relative to their own trailing average so the
classification adapts to the instrument's normal range.
"""

from __future__ import annotations

import logging
from typing import Tuple

import numpy as np
import pandas as pd

from market_signals.config import (
    ATR_SLOPE_LOOKBACK,
    AVERAGE_LOOKBACK,
    ATRParameters,
    BollingerParameters,
    validate_period,
)
from market_signals.indicator_types import (
    ATRResult,
    BollingerResult,
    ResultStatus,
    Slope,
    Trend,
    VolatilityLevel,
    Zone,
    unset_like,
)
from market_signals.moving_averages import as_series, sma, wilder
from market_signals.price_data import MissingFieldPolicy, normalize_frame, resolve_high_low

logger = logging.getLogger(__name__)


def _relative_level(current: float, average: float, low: float, high: float) -> VolatilityLevel:
    """Classify ``current`` against ``average`` using ratio cut-offs."""
    if not np.isfinite(average) or average <= 0:
        return VolatilityLevel.MEDIUM
    if current > average * high:
        return VolatilityLevel.HIGH
    if current < average * low:
        return VolatilityLevel.LOW
    return VolatilityLevel.MEDIUM


# =============================================================================
# ATR
# =============================================================================

class AverageTrueRange:
    """
    Average True Range.

    TR[i]     = max(H - L, |H - C[i-1]|, |L - C[i-1]|)     for i >= 1
    ATR[p]    = mean(TR[1..p])
    ATR[i]    = (ATR[i-1] * (p - 1) + TR[i]) / p          for i > p
    """

    def __init__(self, params: ATRParameters = ATRParameters()):
        validate_period(params.period)
        validate_period(params.average_window, "average_window")
        if params.trend_window < ATR_SLOPE_LOOKBACK:
            raise ValueError(
                f"trend_window must be >= {ATR_SLOPE_LOOKBACK}, got {params.trend_window}"
            )
        self.params = params

    @property
    def min_bars(self) -> int:
        return self.params.period + self.params.trend_window

    @staticmethod
    def calculate_true_range(high: pd.Series, low: pd.Series, close: pd.Series) -> pd.Series:
        """True Range per bar; the first bar has no previous close and is NaN."""
        prev_close = close.shift(1)
        tr1 = high - low
        tr2 = (high - prev_close).abs()
        tr3 = (low - prev_close).abs()
        tr = pd.concat([tr1, tr2, tr3], axis=1).max(axis=1)
        tr.iloc[:1] = np.nan
        return tr

    @staticmethod
    def calculate_atr(true_range: pd.Series, period: int) -> pd.Series:
        """Wilder-smoothed ATR seeded with the simple mean of TR[1..period]."""
        return wilder(true_range, period)

    def classify_trend(self, atr: pd.Series) -> Slope:
        """Mean of the last two ATRs versus the ATRs four and five bars back."""
        window = atr.dropna()
        if len(window) < ATR_SLOPE_LOOKBACK:
            return Slope.STABLE
        recent = window.iloc[-2:].mean()
        older = window.iloc[-ATR_SLOPE_LOOKBACK:-ATR_SLOPE_LOOKBACK + 2].mean()
        band = self.params.trend_band
        if recent > older * (1 + band):
            return Slope.INCREASING
        if recent < older * (1 - band):
            return Slope.DECREASING
        return Slope.STABLE

    def analyze(
        self,
        frame: pd.DataFrame,
        policy: MissingFieldPolicy = MissingFieldPolicy.STRICT
    ) -> ATRResult:
        """Compute TR, ATR, ATR% and classify volatility and ATR slope."""
        frame = normalize_frame(frame)
        index = frame.index

        bounds = resolve_high_low(frame, policy)
        if bounds.missing:
            return ATRResult(
                status=ResultStatus.MISSING_FIELD,
                true_range=unset_like(index),
                atr=unset_like(index),
                atr_percent=unset_like(index),
                missing_fields=bounds.missing,
            )
        if len(frame) < self.min_bars:
            logger.debug(f"ATR needs {self.min_bars} bars, got {len(frame)}")
            return ATRResult(
                status=ResultStatus.INSUFFICIENT_DATA,
                true_range=unset_like(index),
                atr=unset_like(index),
                atr_percent=unset_like(index),
                synthetic_fields=bounds.synthetic,
            )

        close = frame["close"]
        true_range = self.calculate_true_range(bounds.high, bounds.low, close)
        atr = self.calculate_atr(true_range, self.params.period)
        atr_percent = atr / close.replace(0, np.nan) * 100

        current = float(atr.iloc[-1])
        average = float(atr.dropna().iloc[-self.params.average_window:].mean())
        current_pct = atr_percent.iloc[-1]

        return ATRResult(
            status=ResultStatus.OK,
            true_range=true_range,
            atr=atr,
            atr_percent=atr_percent,
            latest_atr=current,
            average_atr=average,
            latest_atr_percent=float(current_pct) if pd.notna(current_pct) else 0.0,
            volatility=_relative_level(
                current, average, self.params.low_ratio, self.params.high_ratio
            ),
            trend=self.classify_trend(atr),
            synthetic_fields=bounds.synthetic,
        )


# =============================================================================
# BOLLINGER BANDS
# =============================================================================

class BollingerBands:
    """
    Bollinger Bands with %B zones, squeeze and band-walk detection.

    Middle    = SMA(close, period)
    Upper     = Middle + std_dev * sigma    (population standard deviation)
    Lower     = Middle - std_dev * sigma
    Bandwidth = (Upper - Lower) / Middle * 100
    %B        = (Close - Lower) / (Upper - Lower) * 100
    """

    def __init__(self, params: BollingerParameters = BollingerParameters()):
        validate_period(params.period)
        validate_period(params.walk_window, "walk_window")
        self.params = params

    @property
    def min_bars(self) -> int:
        return self.params.period

    @staticmethod
    def calculate_bollinger_bands(
        close: pd.Series,
        period: int,
        std_dev: float
    ) -> Tuple[pd.Series, pd.Series, pd.Series, pd.Series, pd.Series]:
        """
        Calculate Bollinger Bands.

        Returns
        -------
        Tuple[pd.Series, pd.Series, pd.Series, pd.Series, pd.Series]
            (Upper, Middle, Lower, Bandwidth, %B)
        """
        middle = sma(close, period)
        std = close.rolling(window=period, min_periods=period).std(ddof=0)

        upper = middle + std_dev * std
        lower = middle - std_dev * std
        width = upper - lower

        bandwidth = width / middle.replace(0, np.nan) * 100

        # %B is the midpoint on zero-width bands
        percent_b = (close - lower) / width.replace(0, np.nan) * 100
        percent_b = percent_b.where(width != 0, 50.0).where(width.notna())

        return upper, middle, lower, bandwidth, percent_b

    @staticmethod
    def classify_zone(percent_b: float) -> Zone:
        if percent_b > 80:
            return Zone.OVERBOUGHT
        if percent_b < 20:
            return Zone.OVERSOLD
        if percent_b > 60:
            return Zone.NEAR_UPPER
        if percent_b < 40:
            return Zone.NEAR_LOWER
        return Zone.NEUTRAL

    def detect_band_walk(self, percent_b: pd.Series) -> Trend:
        """Bullish when every recent %B is above 70, bearish when all are below 30."""
        recent = percent_b.dropna().iloc[-self.params.walk_window:]
        if len(recent) < self.params.walk_window:
            return Trend.NEUTRAL
        if (recent > 70).all():
            return Trend.BULLISH
        if (recent < 30).all():
            return Trend.BEARISH
        return Trend.NEUTRAL

    def analyze(self, close) -> BollingerResult:
        close = as_series(close)
        index = close.index
        if len(close) < self.min_bars:
            logger.debug(f"Bollinger Bands need {self.min_bars} bars, got {len(close)}")
            return BollingerResult(
                status=ResultStatus.INSUFFICIENT_DATA,
                upper=unset_like(index),
                middle=unset_like(index),
                lower=unset_like(index),
                bandwidth=unset_like(index),
                percent_b=unset_like(index),
            )

        upper, middle, lower, bandwidth, percent_b = self.calculate_bollinger_bands(
            close, self.params.period, self.params.std_dev
        )

        current_b = float(percent_b.iloc[-1])
        current_bw = bandwidth.iloc[-1]
        current_bw = float(current_bw) if pd.notna(current_bw) else 0.0
        average_bw = float(bandwidth.dropna().iloc[-AVERAGE_LOOKBACK:].mean())

        squeeze = bool(
            np.isfinite(average_bw) and average_bw > 0
            and current_bw < average_bw * self.params.squeeze_ratio
        )

        return BollingerResult(
            status=ResultStatus.OK,
            upper=upper,
            middle=middle,
            lower=lower,
            bandwidth=bandwidth,
            percent_b=percent_b,
            latest_percent_b=current_b,
            latest_bandwidth=current_bw,
            zone=self.classify_zone(current_b),
            volatility=_relative_level(current_bw, average_bw, 0.7, 1.3),
            squeeze=squeeze,
            walking=self.detect_band_walk(percent_b),
        )
