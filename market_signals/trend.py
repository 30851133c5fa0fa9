"""
Trend-Following Indicators

    - MACD: Appel, 1979 - EMA convergence/divergence with a signal line
    - Parabolic SAR: Wilder, 1978 - stop-and-reverse trend tracker
    - ADX / DMI: Wilder, 1978 - directional movement and trend strength
    - Ichimoku Kinko Hyo: Hosoda, 1969 - equilibrium chart with a forward cloud

MACD
    MACD      = EMA(close, fast) - EMA(close, slow)
    Signal    = EMA(MACD, signal), computed over the defined MACD values only
                and re-aligned to the original index
    Histogram = MACD - Signal

PARABOLIC SAR
    A single-pass fold over an immutable state record (trend, sar, ep, af).
    Each bar derives a new state from the previous one; bars must be
    processed strictly in chronological order.

ADX / DMI
    Every smoothing step uses Wilder's recursion seeded with a simple mean.
    Strength cut-offs: 50 very strong, 25 strong, 20 moderate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from market_signals.config import (
    ADX_SETTLE_BARS,
    ICHIMOKU_SETTLE_BARS,
    SAR_MIN_BARS,
    ADXParameters,
    IchimokuParameters,
    MACDParameters,
    SARParameters,
    validate_period,
)
from market_signals.indicator_types import (
    ADXResult,
    CloudPosition,
    IchimokuResult,
    MACDResult,
    Momentum,
    ResultStatus,
    SARResult,
    SARTrend,
    Signal,
    Slope,
    Trend,
    TrendStrength,
    bar_direction,
    crossover,
    unset_like,
)
from market_signals.moving_averages import as_series, ema, wilder
from market_signals.price_data import MissingFieldPolicy, normalize_frame, resolve_high_low

logger = logging.getLogger(__name__)


# =============================================================================
# MACD
# =============================================================================

class MACDIndicator:
    """
    MACD computation and latest-bar classification.

    Classification at the latest bar:
        trend         bullish if MACD > signal, bearish if MACD < signal
        signal_event  bullish on a same-bar cross above the signal line,
                      bearish on a cross below
        momentum      strong if |histogram| > 0.01 (price units; callers
                      rescale for assets not quoted near 1 USD)
    """

    def __init__(self, params: MACDParameters = MACDParameters()):
        validate_period(params.fast, "fast")
        validate_period(params.slow, "slow")
        validate_period(params.signal, "signal")
        self.params = params

    @property
    def min_bars(self) -> int:
        """Bars needed for two defined histogram values."""
        return max(self.params.fast, self.params.slow) + self.params.signal

    @staticmethod
    def calculate_macd(
        close: pd.Series,
        fast: int,
        slow: int,
        signal: int
    ) -> Tuple[pd.Series, pd.Series, pd.Series]:
        """
        Calculate MACD, Signal line, and Histogram.

        Returns
        -------
        Tuple[pd.Series, pd.Series, pd.Series]
            (MACD line, Signal line, Histogram), NaN during warm-up
        """
        macd_line = ema(close, fast) - ema(close, slow)

        defined = macd_line.dropna()
        signal_line = ema(defined, signal).reindex(close.index)

        histogram = macd_line - signal_line
        return macd_line, signal_line, histogram

    def analyze(self, close) -> MACDResult:
        """
        Compute MACD over a closing-price series and classify the latest bar.

        A series shorter than ``slow + signal`` bars yields an
        INSUFFICIENT_DATA result with all-NaN series and zero readings.
        """
        close = as_series(close)
        if len(close) < self.min_bars:
            logger.debug(f"MACD needs {self.min_bars} bars, got {len(close)}")
            empty = unset_like(close.index)
            return MACDResult(
                status=ResultStatus.INSUFFICIENT_DATA,
                macd=empty,
                signal=empty.copy(),
                histogram=empty.copy(),
            )

        macd_line, signal_line, histogram = self.calculate_macd(
            close, self.params.fast, self.params.slow, self.params.signal
        )

        current_macd = float(macd_line.iloc[-1])
        current_signal = float(signal_line.iloc[-1])
        current_hist = float(histogram.iloc[-1])
        prev_hist = float(histogram.iloc[-2])

        if current_macd > current_signal:
            trend = Trend.BULLISH
        elif current_macd < current_signal:
            trend = Trend.BEARISH
        else:
            trend = Trend.NEUTRAL

        event = crossover(
            float(macd_line.iloc[-2]), float(signal_line.iloc[-2]),
            current_macd, current_signal
        )

        momentum = (
            Momentum.STRONG if abs(current_hist) > self.params.strong_histogram
            else Momentum.WEAK
        )
        hist_change = current_hist - prev_hist
        if hist_change > 0:
            direction = Slope.INCREASING
        elif hist_change < 0:
            direction = Slope.DECREASING
        else:
            direction = Slope.STABLE

        return MACDResult(
            status=ResultStatus.OK,
            macd=macd_line,
            signal=signal_line,
            histogram=histogram,
            latest_macd=current_macd,
            latest_signal=current_signal,
            latest_histogram=current_hist,
            trend=trend,
            signal_event=event,
            momentum=momentum,
            momentum_direction=direction,
        )


def calculate_macd(close, params: MACDParameters = MACDParameters()) -> MACDResult:
    """Functional shortcut for ``MACDIndicator(params).analyze(close)``."""
    return MACDIndicator(params).analyze(close)


# =============================================================================
# PARABOLIC SAR
# =============================================================================

@dataclass(frozen=True)
class SARState:
    """State carried from one bar to the next."""
    trend: SARTrend
    sar: float
    ep: float       # Extreme point of the current trend
    af: float       # Acceleration factor


class ParabolicSAR:
    """
    Parabolic Stop-And-Reverse.

    Per bar:
        1. candidate = sar + af * (ep - sar)
        2. clamp the candidate so it never penetrates the prior one or two
           bars' low (uptrend) or high (downtrend)
        3. uptrend and low < candidate: flip down, sar = ep, ep = low,
           af = af_start (symmetric for a downtrend using high)
        4. otherwise a new extreme in the trend direction moves ep and
           steps af by af_increment, capped at af_max
    """

    def __init__(self, params: SARParameters = SARParameters()):
        if not 0 < params.af_start <= params.af_max:
            raise ValueError(
                f"af_start must be in (0, af_max], got {params.af_start} / {params.af_max}"
            )
        if params.af_increment < 0:
            raise ValueError(f"af_increment must be >= 0, got {params.af_increment}")
        self.params = params

    def initial_state(self, high: float, low: float) -> SARState:
        """Start in an uptrend with SAR at the first low."""
        return SARState(trend=SARTrend.UP, sar=low, ep=high, af=self.params.af_start)

    def step(
        self,
        state: SARState,
        high: float,
        low: float,
        prior_highs: Tuple[float, ...],
        prior_lows: Tuple[float, ...]
    ) -> Tuple[SARState, bool]:
        """
        Advance the state by one bar.

        Parameters
        ----------
        state : SARState
            State after the previous bar
        high, low : float
            Current bar bounds
        prior_highs, prior_lows : Tuple[float, ...]
            Bounds of the previous one or two bars

        Returns
        -------
        Tuple[SARState, bool]
            New state and whether the bar reversed the trend
        """
        p = self.params
        candidate = state.sar + state.af * (state.ep - state.sar)

        if state.trend is SARTrend.UP:
            candidate = min(candidate, *prior_lows)
            if low < candidate:
                return SARState(SARTrend.DOWN, sar=state.ep, ep=low, af=p.af_start), True
            if high > state.ep:
                return SARState(
                    SARTrend.UP, sar=candidate, ep=high,
                    af=min(state.af + p.af_increment, p.af_max)
                ), False
        else:
            candidate = max(candidate, *prior_highs)
            if high > candidate:
                return SARState(SARTrend.UP, sar=state.ep, ep=high, af=p.af_start), True
            if low < state.ep:
                return SARState(
                    SARTrend.DOWN, sar=candidate, ep=low,
                    af=min(state.af + p.af_increment, p.af_max)
                ), False

        return replace(state, sar=candidate), False

    def calculate(
        self,
        high: pd.Series,
        low: pd.Series
    ) -> Tuple[pd.Series, pd.Series, List[int]]:
        """
        Fold the state machine over the series.

        Returns
        -------
        Tuple[pd.Series, pd.Series, List[int]]
            (SAR per bar, SARTrend per bar, positional reversal indices)
        """
        highs = high.to_numpy(dtype=float)
        lows = low.to_numpy(dtype=float)
        n = len(highs)

        sar_values = np.full(n, np.nan)
        trends: List[Optional[SARTrend]] = [None] * n
        reversals: List[int] = []
        if n == 0:
            return pd.Series(sar_values, index=high.index), pd.Series(trends, index=high.index, dtype=object), reversals

        state = self.initial_state(highs[0], lows[0])
        sar_values[0] = state.sar
        trends[0] = state.trend

        for i in range(1, n):
            window = slice(max(0, i - 2), i)
            state, reversed_ = self.step(
                state, highs[i], lows[i],
                tuple(highs[window]), tuple(lows[window])
            )
            if reversed_:
                reversals.append(i)
            sar_values[i] = state.sar
            trends[i] = state.trend

        return (
            pd.Series(sar_values, index=high.index),
            pd.Series(trends, index=high.index, dtype=object),
            reversals,
        )

    def analyze(
        self,
        frame: pd.DataFrame,
        policy: MissingFieldPolicy = MissingFieldPolicy.STRICT
    ) -> SARResult:
        """
        Run Parabolic SAR over an OHLC frame.

        Parameters
        ----------
        frame : pd.DataFrame
            Price frame (see ``price_data.normalize_frame``)
        policy : MissingFieldPolicy
            Treatment of absent high/low values
        """
        frame = normalize_frame(frame)
        index = frame.index
        empty_trend = pd.Series([None] * len(index), index=index, dtype=object)

        bounds = resolve_high_low(frame, policy)
        if bounds.missing:
            return SARResult(
                status=ResultStatus.MISSING_FIELD,
                sar=unset_like(index),
                trend_series=empty_trend,
                missing_fields=bounds.missing,
            )

        if len(frame) < SAR_MIN_BARS:
            logger.debug(f"Parabolic SAR needs {SAR_MIN_BARS} bars, got {len(frame)}")
            return SARResult(
                status=ResultStatus.INSUFFICIENT_DATA,
                sar=unset_like(index),
                trend_series=empty_trend,
                synthetic_fields=bounds.synthetic,
            )

        sar, trends, reversals = self.calculate(bounds.high, bounds.low)

        current_trend = trends.iloc[-1]
        previous_trend = trends.iloc[-2]
        trend = Trend.BULLISH if current_trend is SARTrend.UP else Trend.BEARISH

        event = Signal.NEUTRAL
        if current_trend is not previous_trend:
            event = Signal.BULLISH if current_trend is SARTrend.UP else Signal.BEARISH

        close = float(frame["close"].iloc[-1])
        current_sar = float(sar.iloc[-1])
        distance = close - current_sar
        distance_percent = distance / close * 100 if close != 0 else 0.0

        # Bars in the current trend, counting the reversal bar itself
        last_reversal = reversals[-1] if reversals else 0
        trend_duration = len(frame) - last_reversal

        return SARResult(
            status=ResultStatus.OK,
            sar=sar,
            trend_series=trends,
            reversal_points=tuple(reversals),
            latest_sar=current_sar,
            trend=trend,
            signal_event=event,
            distance=distance,
            distance_percent=distance_percent,
            trend_duration=trend_duration,
            synthetic_fields=bounds.synthetic,
        )


def calculate_parabolic_sar(
    frame: pd.DataFrame,
    params: SARParameters = SARParameters(),
    policy: MissingFieldPolicy = MissingFieldPolicy.STRICT
) -> SARResult:
    """Functional shortcut for ``ParabolicSAR(params).analyze(frame, policy)``."""
    return ParabolicSAR(params).analyze(frame, policy)


# =============================================================================
# ADX / DMI
# =============================================================================

class ADXIndicator:
    """
    Average Directional Index with the +DI / -DI pair.

    +DM = up move if it beats the down move and is positive, else 0
    -DM = down move if it beats the up move and is positive, else 0
    +DI = 100 * Wilder(+DM) / Wilder(TR)            (-DI likewise)
    DX  = 100 * |+DI - -DI| / (+DI + -DI)
    ADX = Wilder(DX)

    ADX measures trend strength regardless of direction; the DI pair gives
    the direction and its crossings the signal.
    """

    def __init__(self, params: ADXParameters = ADXParameters()):
        validate_period(params.period)
        if not params.moderate <= params.strong <= params.very_strong:
            raise ValueError(
                f"ADX cut-offs must be ascending, got "
                f"{params.moderate}/{params.strong}/{params.very_strong}"
            )
        self.params = params

    @property
    def min_bars(self) -> int:
        return 2 * self.params.period + ADX_SETTLE_BARS

    @staticmethod
    def calculate_adx_dmi(
        high: pd.Series,
        low: pd.Series,
        close: pd.Series,
        period: int
    ) -> Tuple[pd.Series, pd.Series, pd.Series]:
        """
        Calculate ADX and Directional Movement indicators.

        Returns
        -------
        Tuple[pd.Series, pd.Series, pd.Series]
            (ADX, +DI, -DI); the DI pair starts at bar ``period`` and ADX at
            bar ``2 * period - 1``
        """
        prev_close = close.shift(1)
        tr = pd.concat(
            [high - low, (high - prev_close).abs(), (low - prev_close).abs()], axis=1
        ).max(axis=1)

        up_move = high - high.shift(1)
        down_move = low.shift(1) - low
        plus_dm = pd.Series(
            np.where((up_move > down_move) & (up_move > 0), up_move, 0.0), index=high.index
        )
        minus_dm = pd.Series(
            np.where((down_move > up_move) & (down_move > 0), down_move, 0.0), index=high.index
        )

        # The first bar has no predecessor
        for series in (tr, plus_dm, minus_dm):
            series.iloc[:1] = np.nan

        smoothed_tr = wilder(tr, period)
        plus_di = (100.0 * wilder(plus_dm, period) / smoothed_tr).where(smoothed_tr != 0, 0.0)
        minus_di = (100.0 * wilder(minus_dm, period) / smoothed_tr).where(smoothed_tr != 0, 0.0)

        di_sum = plus_di + minus_di
        dx = (100.0 * (plus_di - minus_di).abs() / di_sum).where(di_sum != 0, 0.0)
        adx = wilder(dx, period)

        return adx, plus_di, minus_di

    def classify_strength(self, adx: float) -> TrendStrength:
        p = self.params
        if adx >= p.very_strong:
            return TrendStrength.VERY_STRONG
        if adx >= p.strong:
            return TrendStrength.STRONG
        if adx >= p.moderate:
            return TrendStrength.MODERATE
        return TrendStrength.WEAK

    def analyze(
        self,
        frame: pd.DataFrame,
        policy: MissingFieldPolicy = MissingFieldPolicy.STRICT
    ) -> ADXResult:
        """Compute ADX/DMI and classify strength, direction and DI crossover."""
        frame = normalize_frame(frame)
        index = frame.index

        bounds = resolve_high_low(frame, policy)
        if bounds.missing:
            return ADXResult(
                status=ResultStatus.MISSING_FIELD,
                adx=unset_like(index),
                plus_di=unset_like(index),
                minus_di=unset_like(index),
                missing_fields=bounds.missing,
            )
        if len(frame) < self.min_bars:
            logger.debug(f"ADX needs {self.min_bars} bars, got {len(frame)}")
            return ADXResult(
                status=ResultStatus.INSUFFICIENT_DATA,
                adx=unset_like(index),
                plus_di=unset_like(index),
                minus_di=unset_like(index),
                synthetic_fields=bounds.synthetic,
            )

        adx, plus_di, minus_di = self.calculate_adx_dmi(
            bounds.high, bounds.low, frame["close"], self.params.period
        )
        current_adx = float(adx.iloc[-1])
        current_plus, current_minus = float(plus_di.iloc[-1]), float(minus_di.iloc[-1])

        if current_plus > current_minus:
            trend = Trend.BULLISH
        elif current_plus < current_minus:
            trend = Trend.BEARISH
        else:
            trend = Trend.NEUTRAL

        return ADXResult(
            status=ResultStatus.OK,
            adx=adx,
            plus_di=plus_di,
            minus_di=minus_di,
            latest_adx=current_adx,
            latest_plus_di=current_plus,
            latest_minus_di=current_minus,
            strength=self.classify_strength(current_adx),
            trend=trend,
            signal_event=crossover(
                float(plus_di.iloc[-2]), float(minus_di.iloc[-2]), current_plus, current_minus
            ),
            synthetic_fields=bounds.synthetic,
        )


# =============================================================================
# ICHIMOKU KINKO HYO
# =============================================================================

class Ichimoku:
    """
    Ichimoku Kinko Hyo.

    1. Tenkan-sen (Conversion Line): tenkan_period midpoint
    2. Kijun-sen (Base Line): kijun_period midpoint
    3. Senkou Span A: (Tenkan + Kijun) / 2, displaced forward
    4. Senkou Span B: senkou_b_period midpoint, displaced forward
    5. Chikou Span: close displaced backward

    Every line stays on the input index. The forward displacement is a
    shift, so the spans at a bar are the cloud that bar trades against.
    """

    def __init__(self, params: IchimokuParameters = IchimokuParameters()):
        validate_period(params.tenkan_period, "tenkan_period")
        validate_period(params.kijun_period, "kijun_period")
        validate_period(params.senkou_b_period, "senkou_b_period")
        validate_period(params.displacement, "displacement")
        self.params = params

    @property
    def min_bars(self) -> int:
        p = self.params
        return max(p.tenkan_period, p.kijun_period, p.senkou_b_period) + ICHIMOKU_SETTLE_BARS

    @staticmethod
    def _midpoint(high: pd.Series, low: pd.Series, period: int) -> pd.Series:
        """Calculate period midpoint (highest high + lowest low) / 2."""
        highest = high.rolling(window=period, min_periods=period).max()
        lowest = low.rolling(window=period, min_periods=period).min()
        return (highest + lowest) / 2

    def calculate(
        self,
        high: pd.Series,
        low: pd.Series,
        close: pd.Series
    ) -> Dict[str, pd.Series]:
        """
        Calculate all Ichimoku components.

        Returns
        -------
        Dict[str, pd.Series]
            tenkan_sen, kijun_sen, senkou_span_a, senkou_span_b, chikou_span
        """
        p = self.params
        tenkan = self._midpoint(high, low, p.tenkan_period)
        kijun = self._midpoint(high, low, p.kijun_period)

        return {
            'tenkan_sen': tenkan,
            'kijun_sen': kijun,
            'senkou_span_a': ((tenkan + kijun) / 2).shift(p.displacement),
            'senkou_span_b': self._midpoint(high, low, p.senkou_b_period).shift(p.displacement),
            'chikou_span': close.shift(-p.displacement),
        }

    def analyze(
        self,
        frame: pd.DataFrame,
        policy: MissingFieldPolicy = MissingFieldPolicy.STRICT
    ) -> IchimokuResult:
        """Compute the Ichimoku lines and classify the latest bar against them."""
        frame = normalize_frame(frame)
        index = frame.index

        bounds = resolve_high_low(frame, policy)
        if bounds.missing:
            return IchimokuResult(
                status=ResultStatus.MISSING_FIELD,
                tenkan=unset_like(index),
                kijun=unset_like(index),
                senkou_a=unset_like(index),
                senkou_b=unset_like(index),
                chikou=unset_like(index),
                missing_fields=bounds.missing,
            )
        if len(frame) < self.min_bars:
            logger.debug(f"Ichimoku needs {self.min_bars} bars, got {len(frame)}")
            return IchimokuResult(
                status=ResultStatus.INSUFFICIENT_DATA,
                tenkan=unset_like(index),
                kijun=unset_like(index),
                senkou_a=unset_like(index),
                senkou_b=unset_like(index),
                chikou=unset_like(index),
                synthetic_fields=bounds.synthetic,
            )

        close = frame["close"]
        components = self.calculate(bounds.high, bounds.low, close)
        tenkan = components['tenkan_sen']
        kijun = components['kijun_sen']
        span_a = components['senkou_span_a']
        span_b = components['senkou_span_b']

        current_close = float(close.iloc[-1])
        current_tenkan, current_kijun = float(tenkan.iloc[-1]), float(kijun.iloc[-1])
        current_a, current_b = span_a.iloc[-1], span_b.iloc[-1]

        # Cloud
        cloud_top = cloud_bottom = 0.0
        position = CloudPosition.UNDEFINED
        cloud_color = Trend.NEUTRAL
        if pd.notna(current_a) and pd.notna(current_b):
            cloud_top = float(max(current_a, current_b))
            cloud_bottom = float(min(current_a, current_b))
            if current_close > cloud_top:
                position = CloudPosition.ABOVE
            elif current_close < cloud_bottom:
                position = CloudPosition.BELOW
            else:
                position = CloudPosition.INSIDE
            cloud_color = bar_direction(float(current_b), float(current_a))

        displacement = self.params.displacement
        lagging_trend = Trend.NEUTRAL
        if len(close) > displacement:
            lagging_trend = bar_direction(float(close.iloc[-displacement - 1]), current_close)

        return IchimokuResult(
            status=ResultStatus.OK,
            tenkan=tenkan,
            kijun=kijun,
            senkou_a=span_a,
            senkou_b=span_b,
            chikou=components['chikou_span'],
            latest_tenkan=current_tenkan,
            latest_kijun=current_kijun,
            cloud_top=cloud_top,
            cloud_bottom=cloud_bottom,
            position=position,
            cloud_color=cloud_color,
            trend=bar_direction(current_kijun, current_tenkan),
            signal_event=crossover(
                float(tenkan.iloc[-2]), float(kijun.iloc[-2]), current_tenkan, current_kijun
            ),
            lagging_trend=lagging_trend,
            synthetic_fields=bounds.synthetic,
        )


def calculate_adx(
    frame: pd.DataFrame,
    params: ADXParameters = ADXParameters(),
    policy: MissingFieldPolicy = MissingFieldPolicy.STRICT
) -> ADXResult:
    """Functional shortcut for ``ADXIndicator(params).analyze(frame, policy)``."""
    return ADXIndicator(params).analyze(frame, policy)


def calculate_ichimoku(
    frame: pd.DataFrame,
    params: IchimokuParameters = IchimokuParameters(),
    policy: MissingFieldPolicy = MissingFieldPolicy.STRICT
) -> IchimokuResult:
    """Functional shortcut for ``Ichimoku(params).analyze(frame, policy)``."""
    return Ichimoku(params).analyze(frame, policy)
