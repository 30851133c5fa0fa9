"""
Configuration Module for the Market Signal Engine

Centralizes indicator periods, classification thresholds, and the canonical
sentiment scoring table used by the analytics dashboard.

All "magic numbers" live here so that:
1. Every indicator and the composite scorer read a single source of truth
2. Consumers (AI sentiment, fear/greed, trading signals) share one weight set
3. Thresholds can be tuned without touching the computation code
"""

import numbers
from dataclasses import dataclass
from typing import Tuple


# =============================================================================
# INDICATOR PERIODS
# =============================================================================

MACD_FAST: int = 12
MACD_SLOW: int = 26
MACD_SIGNAL: int = 9
MACD_STRONG_HISTOGRAM: float = 0.01

STOCH_K_PERIOD: int = 14
STOCH_D_PERIOD: int = 3
STOCH_OVERBOUGHT: float = 80.0
STOCH_OVERSOLD: float = 20.0

ATR_PERIOD: int = 14
ATR_AVERAGE_WINDOW: int = 20
ATR_TREND_WINDOW: int = 5
ATR_SLOPE_LOOKBACK: int = 5     # last two ATRs vs the two 4-5 bars back

OBV_MA_PERIOD: int = 20
OBV_CHANGE_WINDOW: int = 7

WILLIAMS_PERIOD: int = 14
WILLIAMS_OVERBOUGHT: float = -20.0
WILLIAMS_OVERSOLD: float = -80.0

SAR_AF_START: float = 0.02
SAR_AF_INCREMENT: float = 0.02
SAR_AF_MAX: float = 0.2
SAR_MIN_BARS: int = 2

RSI_PERIOD: int = 14
RSI_OVERBOUGHT: float = 70.0
RSI_OVERSOLD: float = 30.0

BB_PERIOD: int = 20
BB_STD_DEV: float = 2.0

CCI_PERIOD: int = 20
CCI_CONSTANT: float = 0.015

ADX_PERIOD: int = 14
ADX_MODERATE_TREND: float = 20.0
ADX_STRONG_TREND: float = 25.0
ADX_VERY_STRONG: float = 50.0
ADX_SETTLE_BARS: int = 5

ICHIMOKU_TENKAN: int = 9
ICHIMOKU_KIJUN: int = 26
ICHIMOKU_SENKOU_B: int = 52
ICHIMOKU_DISPLACEMENT: int = 26
ICHIMOKU_SETTLE_BARS: int = 10

# Trailing window used for "average value" context on oscillators
AVERAGE_LOOKBACK: int = 20

# Divergence detection
DIVERGENCE_LOOKBACK: int = 14
DIVERGENCE_ORDER: int = 5

# Surrogate bounds used when high/low are absent (SURROGATE policy only)
SURROGATE_HIGH_FACTOR: float = 1.01
SURROGATE_LOW_FACTOR: float = 0.99

ENGINE_VERSION: str = "1.0.0"


# =============================================================================
# INDICATOR PARAMETER SETS
# =============================================================================

@dataclass(frozen=True)
class MACDParameters:
    """Periods for the MACD line and its signal line."""
    fast: int = MACD_FAST
    slow: int = MACD_SLOW
    signal: int = MACD_SIGNAL
    strong_histogram: float = MACD_STRONG_HISTOGRAM  # |histogram| above this = strong


@dataclass(frozen=True)
class StochasticParameters:
    """Stochastic %K lookback, %D smoothing and zone thresholds."""
    k_period: int = STOCH_K_PERIOD
    d_period: int = STOCH_D_PERIOD
    overbought: float = STOCH_OVERBOUGHT
    oversold: float = STOCH_OVERSOLD


@dataclass(frozen=True)
class ATRParameters:
    """ATR smoothing period and classification windows."""
    period: int = ATR_PERIOD
    average_window: int = ATR_AVERAGE_WINDOW
    trend_window: int = ATR_TREND_WINDOW
    high_ratio: float = 1.3     # current ATR above 1.3x average = high volatility
    low_ratio: float = 0.7      # current ATR below 0.7x average = low volatility
    trend_band: float = 0.10    # +/-10% neutral band for ATR slope


@dataclass(frozen=True)
class OBVParameters:
    """OBV moving-average overlay and change window."""
    ma_period: int = OBV_MA_PERIOD
    change_window: int = OBV_CHANGE_WINDOW


@dataclass(frozen=True)
class WilliamsParameters:
    """Williams %R lookback and (asymmetric) signal thresholds."""
    period: int = WILLIAMS_PERIOD
    overbought: float = WILLIAMS_OVERBOUGHT
    oversold: float = WILLIAMS_OVERSOLD


@dataclass(frozen=True)
class SARParameters:
    """Parabolic SAR acceleration factor schedule."""
    af_start: float = SAR_AF_START
    af_increment: float = SAR_AF_INCREMENT
    af_max: float = SAR_AF_MAX


@dataclass(frozen=True)
class RSIParameters:
    """RSI period and zone thresholds."""
    period: int = RSI_PERIOD
    overbought: float = RSI_OVERBOUGHT
    oversold: float = RSI_OVERSOLD


@dataclass(frozen=True)
class BollingerParameters:
    """Bollinger Band period and width."""
    period: int = BB_PERIOD
    std_dev: float = BB_STD_DEV
    squeeze_ratio: float = 0.6
    walk_window: int = 5


@dataclass(frozen=True)
class CCIParameters:
    """Commodity Channel Index period and zone levels."""
    period: int = CCI_PERIOD
    constant: float = CCI_CONSTANT
    level: float = 100.0
    extreme_level: float = 200.0


@dataclass(frozen=True)
class ADXParameters:
    """Directional movement smoothing period and trend-strength cut-offs."""
    period: int = ADX_PERIOD
    moderate: float = ADX_MODERATE_TREND
    strong: float = ADX_STRONG_TREND
    very_strong: float = ADX_VERY_STRONG


@dataclass(frozen=True)
class IchimokuParameters:
    """Ichimoku midpoint periods and cloud displacement."""
    tenkan_period: int = ICHIMOKU_TENKAN
    kijun_period: int = ICHIMOKU_KIJUN
    senkou_b_period: int = ICHIMOKU_SENKOU_B
    displacement: int = ICHIMOKU_DISPLACEMENT



@dataclass(frozen=True)
class IndicatorParameters:
    """Bundle of every indicator parameter set used by the engine."""
    macd: MACDParameters = MACDParameters()
    stochastic: StochasticParameters = StochasticParameters()
    atr: ATRParameters = ATRParameters()
    obv: OBVParameters = OBVParameters()
    williams: WilliamsParameters = WilliamsParameters()
    sar: SARParameters = SARParameters()
    rsi: RSIParameters = RSIParameters()
    bollinger: BollingerParameters = BollingerParameters()
    cci: CCIParameters = CCIParameters()
    adx: ADXParameters = ADXParameters()
    ichimoku: IchimokuParameters = IchimokuParameters()


# =============================================================================
# CANONICAL SENTIMENT MODEL
# =============================================================================

@dataclass(frozen=True)
class SentimentModel:
    """
    Canonical weight table and reference constants for snapshot scoring.

    One instance is shared by the AI-sentiment, fear/greed and trading-signal
    consumers; each of them only picks a different label from the result.
    """

    # Sub-score weights (sum to 1.0)
    trend_weight: float = 0.25
    momentum_weight: float = 0.25
    volume_weight: float = 0.20
    pressure_weight: float = 0.20
    liquidity_weight: float = 0.10

    # Every sub-score and the final score live in [-bound, +bound]
    score_bound: float = 100.0

    # Reference constants
    reference_volume: float = 40_000_000.0
    reference_liquidity: float = 350_000_000.0
    liquidity_floor: float = 300_000_000.0

    # Input change that saturates each sub-score
    momentum_scale: float = 1.0      # percentage points of h1 - h6/6
    volume_band: float = 0.5         # volume ratio distance from 1.0
    pressure_band: float = 0.2       # buy ratio distance from 0.5
    liquidity_band: float = 0.3      # liquidity ratio distance from 1.0

    # Factor status cut-off on the sub-score scale
    factor_threshold: float = 25.0

    # Level thresholds: very bullish, bullish, bearish, very bearish
    level_thresholds: Tuple[float, float, float, float] = (40.0, 15.0, -15.0, -40.0)

    # Fear/greed index thresholds on the 0-100 scale
    fear_greed_thresholds: Tuple[float, float, float, float] = (80.0, 60.0, 40.0, 20.0)

    # Trading action thresholds: strong buy, buy, sell, strong sell
    action_thresholds: Tuple[float, float, float, float] = (60.0, 25.0, -25.0, -60.0)

    # Price targets
    short_term_threshold: float = 15.0
    short_term_rate: float = 0.1     # % move per score point
    short_term_cap: float = 5.0      # max % move
    short_term_range: float = 0.02
    medium_term_threshold: float = 20.0
    medium_term_rate: float = 0.2
    medium_term_cap: float = 15.0
    medium_term_range: float = 0.05
    key_level_margin: float = 0.02

    # Trading levels
    base_volatility: float = 0.03
    stop_margin: float = 0.02
    entry_band: float = 0.01
    take_profit_multiples: Tuple[float, float, float] = (1.5, 2.5, 4.0)

    @property
    def weights(self) -> Tuple[float, float, float, float, float]:
        """Weights in (momentum, volume, pressure, liquidity, trend) order."""
        return (
            self.momentum_weight,
            self.volume_weight,
            self.pressure_weight,
            self.liquidity_weight,
            self.trend_weight,
        )


# =============================================================================
# GLOBAL CONFIGURATION INSTANCES
# =============================================================================

DEFAULT_PARAMETERS = IndicatorParameters()
DEFAULT_SENTIMENT_MODEL = SentimentModel()


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def validate_period(period: int, name: str = "period") -> int:
    """
    Reject non-positive window lengths.

    Args:
        period: Window length supplied by the caller
        name: Parameter name used in the error message

    Returns:
        The period, unchanged

    Raises:
        ValueError: If the period is not a positive integer
    """
    if isinstance(period, bool) or not isinstance(period, numbers.Integral) or period <= 0:
        raise ValueError(f"{name} must be a positive integer, got {period!r}")
    return int(period)
