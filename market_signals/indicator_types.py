"""
Shared enumerations and result records for the indicator families.

Every classification axis (trend, zone, crossover signal, ...) is a closed
Enum so consumers can match exhaustively instead of comparing strings.
Result records carry a ResultStatus so that a neutral "not enough history"
result is distinguishable from a computed-but-neutral one.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Tuple

import pandas as pd


# =============================================================================
# ENUMERATIONS
# =============================================================================

class ResultStatus(Enum):
    """Outcome of an indicator computation."""
    OK = "OK"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"   # Series shorter than the warm-up
    MISSING_FIELD = "MISSING_FIELD"           # high/low/volume absent


class Trend(Enum):
    """Directional state at the latest bar."""
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class Signal(Enum):
    """Same-bar crossover event (not merely above/below)."""
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class Zone(Enum):
    """Oscillator zone classification."""
    EXTREME_OVERBOUGHT = "extreme_overbought"
    OVERBOUGHT = "overbought"
    NEAR_UPPER = "near_upper"
    NEUTRAL = "neutral"
    NEAR_LOWER = "near_lower"
    OVERSOLD = "oversold"
    EXTREME_OVERSOLD = "extreme_oversold"


class Momentum(Enum):
    """MACD histogram magnitude."""
    STRONG = "strong"
    WEAK = "weak"


class Slope(Enum):
    """Direction of change of a derived quantity (ATR, histogram)."""
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class VolatilityLevel(Enum):
    """Current volatility relative to its trailing average."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class VolumeFlow(Enum):
    """OBV position relative to its moving average."""
    ACCUMULATION = "accumulation"
    DISTRIBUTION = "distribution"


class SARTrend(Enum):
    """Parabolic SAR trend side."""
    UP = "up"
    DOWN = "down"


class TrendStrength(Enum):
    """ADX trend-strength bucket."""
    VERY_STRONG = "very_strong"
    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"


class CloudPosition(Enum):
    """Close relative to the Ichimoku cloud."""
    ABOVE = "above"
    INSIDE = "inside"
    BELOW = "below"
    UNDEFINED = "undefined"     # Cloud not yet formed at the latest bar


class DivergenceType(Enum):
    """Price-indicator divergence classification."""
    REGULAR_BULLISH = "REGULAR_BULLISH"     # Price LL, indicator HL - reversal
    REGULAR_BEARISH = "REGULAR_BEARISH"     # Price HH, indicator LH - reversal
    HIDDEN_BULLISH = "HIDDEN_BULLISH"       # Price HL, indicator LL - continuation
    HIDDEN_BEARISH = "HIDDEN_BEARISH"       # Price LH, indicator HH - continuation


# =============================================================================
# RESULT STATUS MIXIN
# =============================================================================

class StatusMixin:
    """Convenience flags derived from a record's ``status`` field."""

    status: ResultStatus

    @property
    def ok(self) -> bool:
        return self.status is ResultStatus.OK

    @property
    def insufficient_data(self) -> bool:
        return self.status is ResultStatus.INSUFFICIENT_DATA

    @property
    def missing_field(self) -> bool:
        return self.status is ResultStatus.MISSING_FIELD


# =============================================================================
# RESULT RECORDS
# =============================================================================

@dataclass(frozen=True)
class MACDResult(StatusMixin):
    """MACD line, signal line and histogram with latest-bar classification."""
    status: ResultStatus
    macd: pd.Series
    signal: pd.Series
    histogram: pd.Series
    latest_macd: float = 0.0
    latest_signal: float = 0.0
    latest_histogram: float = 0.0
    trend: Trend = Trend.NEUTRAL
    signal_event: Signal = Signal.NEUTRAL
    momentum: Momentum = Momentum.WEAK
    momentum_direction: Slope = Slope.STABLE


@dataclass(frozen=True)
class StochasticResult(StatusMixin):
    """Stochastic %K / %D lines with zone and crossover event."""
    status: ResultStatus
    k: pd.Series
    d: pd.Series
    latest_k: float = 50.0
    latest_d: float = 50.0
    zone: Zone = Zone.NEUTRAL
    signal_event: Signal = Signal.NEUTRAL
    missing_fields: Tuple[str, ...] = ()
    synthetic_fields: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ATRResult(StatusMixin):
    """True Range, Wilder-smoothed ATR and volatility classification."""
    status: ResultStatus
    true_range: pd.Series
    atr: pd.Series
    atr_percent: pd.Series
    latest_atr: float = 0.0
    average_atr: float = 0.0
    latest_atr_percent: float = 0.0
    volatility: VolatilityLevel = VolatilityLevel.MEDIUM
    trend: Slope = Slope.STABLE
    missing_fields: Tuple[str, ...] = ()
    synthetic_fields: Tuple[str, ...] = ()


@dataclass(frozen=True)
class OBVResult(StatusMixin):
    """On-Balance Volume with moving-average overlay."""
    status: ResultStatus
    obv: pd.Series
    obv_ma: pd.Series
    latest_obv: float = 0.0
    latest_ma: float = 0.0
    change_percent: float = 0.0
    flow: VolumeFlow = VolumeFlow.DISTRIBUTION
    trend: Trend = Trend.NEUTRAL
    signal_event: Signal = Signal.NEUTRAL
    missing_fields: Tuple[str, ...] = ()


@dataclass(frozen=True)
class WilliamsResult(StatusMixin):
    """Williams %R with zone, bar direction and threshold-crossing event."""
    status: ResultStatus
    williams_r: pd.Series
    latest_value: float = -50.0
    average_value: float = -50.0
    zone: Zone = Zone.NEUTRAL
    trend: Trend = Trend.NEUTRAL
    signal_event: Signal = Signal.NEUTRAL
    missing_fields: Tuple[str, ...] = ()
    synthetic_fields: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SARResult(StatusMixin):
    """Parabolic SAR per bar with reversal log."""
    status: ResultStatus
    sar: pd.Series
    trend_series: pd.Series                  # SARTrend per bar (object dtype)
    reversal_points: Tuple[int, ...] = ()    # Positional indices of flips
    latest_sar: float = 0.0
    trend: Trend = Trend.NEUTRAL
    signal_event: Signal = Signal.NEUTRAL
    distance: float = 0.0                    # close - SAR
    distance_percent: float = 0.0
    trend_duration: int = 0
    missing_fields: Tuple[str, ...] = ()
    synthetic_fields: Tuple[str, ...] = ()

    @property
    def reversal_count(self) -> int:
        return len(self.reversal_points)


@dataclass(frozen=True)
class RSIResult(StatusMixin):
    """Relative Strength Index with zone."""
    status: ResultStatus
    rsi: pd.Series
    latest_value: float = 50.0
    zone: Zone = Zone.NEUTRAL


@dataclass(frozen=True)
class BollingerResult(StatusMixin):
    """Bollinger Bands with %B zone, squeeze and band-walk detection."""
    status: ResultStatus
    upper: pd.Series
    middle: pd.Series
    lower: pd.Series
    bandwidth: pd.Series
    percent_b: pd.Series
    latest_percent_b: float = 50.0
    latest_bandwidth: float = 0.0
    zone: Zone = Zone.NEUTRAL
    volatility: VolatilityLevel = VolatilityLevel.MEDIUM
    squeeze: bool = False
    walking: Trend = Trend.NEUTRAL


@dataclass(frozen=True)
class CCIResult(StatusMixin):
    """Commodity Channel Index with zone and ±100 crossing events."""
    status: ResultStatus
    cci: pd.Series
    latest_value: float = 0.0
    average_value: float = 0.0
    zone: Zone = Zone.NEUTRAL
    trend: Trend = Trend.NEUTRAL
    signal_event: Signal = Signal.NEUTRAL
    missing_fields: Tuple[str, ...] = ()
    synthetic_fields: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ADXResult(StatusMixin):
    """ADX with +DI / -DI, trend strength and DI crossover event."""
    status: ResultStatus
    adx: pd.Series
    plus_di: pd.Series
    minus_di: pd.Series
    latest_adx: float = 0.0
    latest_plus_di: float = 0.0
    latest_minus_di: float = 0.0
    strength: TrendStrength = TrendStrength.WEAK
    trend: Trend = Trend.NEUTRAL
    signal_event: Signal = Signal.NEUTRAL
    missing_fields: Tuple[str, ...] = ()
    synthetic_fields: Tuple[str, ...] = ()


@dataclass(frozen=True)
class IchimokuResult(StatusMixin):
    """
    Ichimoku lines aligned to the input index.

    ``senkou_a``/``senkou_b`` hold the cloud that applies to each bar, i.e.
    the spans computed ``displacement`` bars earlier. ``chikou`` is close
    plotted ``displacement`` bars back (NaN over the last ``displacement``
    bars).
    """
    status: ResultStatus
    tenkan: pd.Series
    kijun: pd.Series
    senkou_a: pd.Series
    senkou_b: pd.Series
    chikou: pd.Series
    latest_tenkan: float = 0.0
    latest_kijun: float = 0.0
    cloud_top: float = 0.0
    cloud_bottom: float = 0.0
    position: CloudPosition = CloudPosition.UNDEFINED
    cloud_color: Trend = Trend.NEUTRAL        # span A above span B = bullish
    trend: Trend = Trend.NEUTRAL              # tenkan vs kijun
    signal_event: Signal = Signal.NEUTRAL     # tenkan/kijun cross
    lagging_trend: Trend = Trend.NEUTRAL      # close vs close displacement bars back
    missing_fields: Tuple[str, ...] = ()
    synthetic_fields: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DivergenceSignal:
    """
    Detected divergence between price and an indicator.

    Positions are bar offsets into the analysed series; labels are the
    matching index labels (dates).
    """
    divergence_type: DivergenceType
    indicator_name: str
    start_label: str
    end_label: str
    price_start: float
    price_end: float
    indicator_start: float
    indicator_end: float
    strength: float                          # 0.0 to 1.0
    bars_duration: int


# =============================================================================
# HELPERS
# =============================================================================

def unset_like(index: pd.Index) -> pd.Series:
    """All-unset (NaN) series aligned to ``index``."""
    return pd.Series(float("nan"), index=index, dtype=float)


def crossover(prev_fast: float, prev_slow: float, fast: float, slow: float) -> Signal:
    """
    Classify a same-bar crossover of ``fast`` around ``slow``.

    Bullish when the previous bar had fast <= slow and the current bar has
    fast > slow; bearish symmetrically.
    """
    if prev_fast <= prev_slow and fast > slow:
        return Signal.BULLISH
    if prev_fast >= prev_slow and fast < slow:
        return Signal.BEARISH
    return Signal.NEUTRAL


def bar_direction(previous: float, current: float) -> Trend:
    """Bar-to-bar direction of a value."""
    if current > previous:
        return Trend.BULLISH
    if current < previous:
        return Trend.BEARISH
    return Trend.NEUTRAL
