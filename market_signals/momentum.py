"""
Momentum Oscillators

    - Stochastic Oscillator: Lane, 1950s - close relative to the recent range
    - Williams %R: Williams, 1973 - inverted stochastic in [-100, 0]
    - RSI: Wilder, 1978 - ratio of smoothed gains to losses
    - CCI: Lambert, 1980 - typical-price deviation from its mean

All oscillators use rolling windows over high/low. A window whose range is
zero (flat market) yields the oscillator's neutral midpoint rather than a
division by zero.
"""

from __future__ import annotations

import logging
from typing import Tuple

import numpy as np
import pandas as pd

from market_signals.config import (
    AVERAGE_LOOKBACK,
    CCIParameters,
    RSIParameters,
    StochasticParameters,
    WilliamsParameters,
    validate_period,
)
from market_signals.indicator_types import (
    CCIResult,
    ResultStatus,
    RSIResult,
    Signal,
    StochasticResult,
    WilliamsResult,
    Zone,
    bar_direction,
    crossover,
    unset_like,
)
from market_signals.moving_averages import as_series, sma
from market_signals.price_data import MissingFieldPolicy, normalize_frame, resolve_high_low

logger = logging.getLogger(__name__)


def _trailing_mean(values: pd.Series, window: int = AVERAGE_LOOKBACK) -> float:
    """Mean of the last ``window`` defined values."""
    defined = values.dropna()
    if defined.empty:
        return float("nan")
    return float(defined.iloc[-window:].mean())


# =============================================================================
# STOCHASTIC OSCILLATOR
# =============================================================================

class StochasticOscillator:
    """
    Stochastic %K / %D.

    %K = 100 * (Close - Lowest Low) / (Highest High - Lowest Low)
    %D = SMA(%K, d_period)
    """

    def __init__(self, params: StochasticParameters = StochasticParameters()):
        validate_period(params.k_period, "k_period")
        validate_period(params.d_period, "d_period")
        self.params = params

    @property
    def min_bars(self) -> int:
        return self.params.k_period + self.params.d_period

    @staticmethod
    def calculate_stochastic(
        high: pd.Series,
        low: pd.Series,
        close: pd.Series,
        k_period: int,
        d_period: int
    ) -> Tuple[pd.Series, pd.Series]:
        """
        Calculate Stochastic Oscillator (%K and %D).

        Returns
        -------
        Tuple[pd.Series, pd.Series]
            (%K, %D) both in range [0, 100], NaN during warm-up
        """
        lowest_low = low.rolling(window=k_period, min_periods=k_period).min()
        highest_high = high.rolling(window=k_period, min_periods=k_period).max()

        range_hl = highest_high - lowest_low
        k = 100.0 * (close - lowest_low) / range_hl.replace(0, np.nan)
        k = k.where(range_hl != 0, 50.0).where(range_hl.notna())

        # Close may sit outside a surrogate or inconsistent range
        k = k.clip(0.0, 100.0)
        d = sma(k, d_period)
        return k, d

    def classify_zone(self, k: float) -> Zone:
        if k > self.params.overbought:
            return Zone.OVERBOUGHT
        if k < self.params.oversold:
            return Zone.OVERSOLD
        return Zone.NEUTRAL

    def analyze(
        self,
        frame: pd.DataFrame,
        policy: MissingFieldPolicy = MissingFieldPolicy.STRICT
    ) -> StochasticResult:
        """Compute %K/%D and classify zone and crossover at the latest bar."""
        frame = normalize_frame(frame)
        index = frame.index

        bounds = resolve_high_low(frame, policy)
        if bounds.missing:
            return StochasticResult(
                status=ResultStatus.MISSING_FIELD,
                k=unset_like(index),
                d=unset_like(index),
                missing_fields=bounds.missing,
            )
        if len(frame) < self.min_bars:
            logger.debug(f"Stochastic needs {self.min_bars} bars, got {len(frame)}")
            return StochasticResult(
                status=ResultStatus.INSUFFICIENT_DATA,
                k=unset_like(index),
                d=unset_like(index),
                synthetic_fields=bounds.synthetic,
            )

        k, d = self.calculate_stochastic(
            bounds.high, bounds.low, frame["close"],
            self.params.k_period, self.params.d_period
        )
        current_k, current_d = float(k.iloc[-1]), float(d.iloc[-1])

        return StochasticResult(
            status=ResultStatus.OK,
            k=k,
            d=d,
            latest_k=current_k,
            latest_d=current_d,
            zone=self.classify_zone(current_k),
            signal_event=crossover(float(k.iloc[-2]), float(d.iloc[-2]), current_k, current_d),
            synthetic_fields=bounds.synthetic,
        )


# =============================================================================
# WILLIAMS %R
# =============================================================================

class WilliamsR:
    """
    Williams %R.

    %R = -100 * (Highest High - Close) / (Highest High - Lowest Low)

    Signals use asymmetric thresholds: bullish when %R rises through the
    oversold line (-80), bearish when it falls through the overbought line
    (-20).
    """

    def __init__(self, params: WilliamsParameters = WilliamsParameters()):
        validate_period(params.period)
        self.params = params

    @property
    def min_bars(self) -> int:
        return self.params.period + 1

    @staticmethod
    def calculate_williams_r(
        high: pd.Series,
        low: pd.Series,
        close: pd.Series,
        period: int
    ) -> pd.Series:
        """
        Calculate Williams %R.

        Returns
        -------
        pd.Series
            Williams %R values [-100, 0], NaN during warm-up
        """
        highest_high = high.rolling(window=period, min_periods=period).max()
        lowest_low = low.rolling(window=period, min_periods=period).min()

        range_hl = highest_high - lowest_low
        williams_r = -100.0 * (highest_high - close) / range_hl.replace(0, np.nan)
        williams_r = williams_r.where(range_hl != 0, -50.0).where(range_hl.notna())

        return williams_r.clip(-100.0, 0.0)

    def classify_zone(self, value: float) -> Zone:
        if value > self.params.overbought:
            return Zone.OVERBOUGHT
        if value < self.params.oversold:
            return Zone.OVERSOLD
        return Zone.NEUTRAL

    def classify_signal(self, previous: float, current: float) -> Signal:
        if previous < self.params.oversold and current > self.params.oversold:
            return Signal.BULLISH
        if previous > self.params.overbought and current < self.params.overbought:
            return Signal.BEARISH
        return Signal.NEUTRAL

    def analyze(
        self,
        frame: pd.DataFrame,
        policy: MissingFieldPolicy = MissingFieldPolicy.STRICT
    ) -> WilliamsResult:
        """Compute %R and classify zone, direction and threshold crossings."""
        frame = normalize_frame(frame)
        index = frame.index

        bounds = resolve_high_low(frame, policy)
        if bounds.missing:
            return WilliamsResult(
                status=ResultStatus.MISSING_FIELD,
                williams_r=unset_like(index),
                missing_fields=bounds.missing,
            )
        if len(frame) < self.min_bars:
            logger.debug(f"Williams %R needs {self.min_bars} bars, got {len(frame)}")
            return WilliamsResult(
                status=ResultStatus.INSUFFICIENT_DATA,
                williams_r=unset_like(index),
                synthetic_fields=bounds.synthetic,
            )

        williams_r = self.calculate_williams_r(
            bounds.high, bounds.low, frame["close"], self.params.period
        )
        current = float(williams_r.iloc[-1])
        previous = float(williams_r.iloc[-2])

        return WilliamsResult(
            status=ResultStatus.OK,
            williams_r=williams_r,
            latest_value=current,
            average_value=_trailing_mean(williams_r),
            zone=self.classify_zone(current),
            trend=bar_direction(previous, current),
            signal_event=self.classify_signal(previous, current),
            synthetic_fields=bounds.synthetic,
        )


# =============================================================================
# RSI
# =============================================================================

class RSI:
    """Relative Strength Index with Wilder smoothing."""

    def __init__(self, params: RSIParameters = RSIParameters()):
        validate_period(params.period)
        self.params = params

    @property
    def min_bars(self) -> int:
        return self.params.period + 1

    @staticmethod
    def calculate_rsi(close: pd.Series, period: int) -> pd.Series:
        """
        Calculate Relative Strength Index using Wilder's smoothing.

        RSI = 100 - (100 / (1 + RS))
        where RS = Average Gain / Average Loss

        Returns
        -------
        pd.Series
            RSI values [0, 100]; 50 where there was no movement at all,
            100 where there were gains and no losses
        """
        delta = close.diff()

        gains = delta.clip(lower=0.0)
        losses = (-delta).clip(lower=0.0)

        # Wilder's smoothing (exponential with alpha = 1/period)
        alpha = 1.0 / period
        avg_gain = gains.ewm(alpha=alpha, adjust=False, min_periods=period).mean()
        avg_loss = losses.ewm(alpha=alpha, adjust=False, min_periods=period).mean()

        rs = avg_gain / avg_loss.replace(0, np.nan)
        rsi = 100.0 - (100.0 / (1.0 + rs))

        no_loss = (avg_loss == 0)
        rsi = rsi.mask(no_loss & (avg_gain > 0), 100.0)
        rsi = rsi.mask(no_loss & (avg_gain == 0), 50.0)
        return rsi

    def classify_zone(self, value: float) -> Zone:
        if value >= self.params.overbought:
            return Zone.OVERBOUGHT
        if value <= self.params.oversold:
            return Zone.OVERSOLD
        return Zone.NEUTRAL

    def analyze(self, close) -> RSIResult:
        close = as_series(close)
        if len(close) < self.min_bars:
            logger.debug(f"RSI needs {self.min_bars} bars, got {len(close)}")
            return RSIResult(status=ResultStatus.INSUFFICIENT_DATA, rsi=unset_like(close.index))

        rsi = self.calculate_rsi(close, self.params.period)
        current = float(rsi.iloc[-1])
        return RSIResult(
            status=ResultStatus.OK,
            rsi=rsi,
            latest_value=current,
            zone=self.classify_zone(current),
        )


# =============================================================================
# CCI
# =============================================================================

class CCI:
    """
    Commodity Channel Index.

    TP  = (High + Low + Close) / 3
    CCI = (TP - SMA(TP)) / (constant * MeanDeviation(TP))
    """

    # Bars beyond the period before the reading is considered settled
    SETTLE_BARS = 5

    def __init__(self, params: CCIParameters = CCIParameters()):
        validate_period(params.period)
        self.params = params

    @property
    def min_bars(self) -> int:
        return self.params.period + self.SETTLE_BARS

    @staticmethod
    def calculate_cci(
        high: pd.Series,
        low: pd.Series,
        close: pd.Series,
        period: int,
        constant: float
    ) -> pd.Series:
        typical = (high + low + close) / 3.0
        mean_tp = typical.rolling(window=period, min_periods=period).mean()
        mean_dev = typical.rolling(window=period, min_periods=period).apply(
            lambda x: np.mean(np.abs(x - x.mean())), raw=True
        )

        cci = (typical - mean_tp) / (constant * mean_dev.replace(0, np.nan))
        return cci.where(mean_dev != 0, 0.0).where(mean_dev.notna())

    def classify_zone(self, value: float) -> Zone:
        p = self.params
        if value > p.extreme_level:
            return Zone.EXTREME_OVERBOUGHT
        if value > p.level:
            return Zone.OVERBOUGHT
        if value < -p.extreme_level:
            return Zone.EXTREME_OVERSOLD
        if value < -p.level:
            return Zone.OVERSOLD
        return Zone.NEUTRAL

    def classify_signal(self, previous: float, current: float) -> Signal:
        level = self.params.level
        if previous < -level and current > -level:
            return Signal.BULLISH
        if previous > level and current < level:
            return Signal.BEARISH
        return Signal.NEUTRAL

    def analyze(
        self,
        frame: pd.DataFrame,
        policy: MissingFieldPolicy = MissingFieldPolicy.STRICT
    ) -> CCIResult:
        frame = normalize_frame(frame)
        index = frame.index

        bounds = resolve_high_low(frame, policy)
        if bounds.missing:
            return CCIResult(
                status=ResultStatus.MISSING_FIELD,
                cci=unset_like(index),
                missing_fields=bounds.missing,
            )
        if len(frame) < self.min_bars:
            logger.debug(f"CCI needs {self.min_bars} bars, got {len(frame)}")
            return CCIResult(
                status=ResultStatus.INSUFFICIENT_DATA,
                cci=unset_like(index),
                synthetic_fields=bounds.synthetic,
            )

        cci = self.calculate_cci(
            bounds.high, bounds.low, frame["close"],
            self.params.period, self.params.constant
        )
        current = float(cci.iloc[-1])
        previous = float(cci.iloc[-2])

        return CCIResult(
            status=ResultStatus.OK,
            cci=cci,
            latest_value=current,
            average_value=_trailing_mean(cci),
            zone=self.classify_zone(current),
            trend=bar_direction(previous, current),
            signal_event=self.classify_signal(previous, current),
            synthetic_fields=bounds.synthetic,
        )
