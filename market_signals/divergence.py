"""
Price / indicator divergence detection.

Divergences occur when price and an indicator move in opposite directions,
often preceding reversals or continuations.

Types:
- Regular Bullish: Price makes lower low, indicator makes higher low (reversal up)
- Regular Bearish: Price makes higher high, indicator makes lower high (reversal down)
- Hidden Bullish: Price makes higher low, indicator makes lower low (continuation up)
- Hidden Bearish: Price makes lower high, indicator makes higher high (continuation down)
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd
from scipy.signal import argrelextrema

from market_signals.config import DIVERGENCE_LOOKBACK, DIVERGENCE_ORDER, validate_period
from market_signals.indicator_types import DivergenceSignal, DivergenceType

logger = logging.getLogger(__name__)


class DivergenceDetector:
    """
    Swing-point divergence detection between a price series and an indicator.

    Swing points are located independently on each series with
    ``argrelextrema``; the two most recent swing lows (highs) of price are
    compared with the two most recent swing lows (highs) of the indicator.
    """

    def __init__(
        self,
        lookback: int = DIVERGENCE_LOOKBACK,
        order: int = DIVERGENCE_ORDER
    ):
        """
        Initialize divergence detector.

        Parameters
        ----------
        lookback : int
            Number of most recent swing points kept per series
        order : int
            How many points on each side to use for comparison
        """
        self.lookback = validate_period(lookback, "lookback")
        self.order = validate_period(order, "order")

    def find_swing_points(self, series: pd.Series) -> Tuple[pd.Series, pd.Series]:
        """
        Find local maxima and minima in a series.

        Returns
        -------
        Tuple[pd.Series, pd.Series]
            (highs, lows) - Series with NaN except at swing points
        """
        values = series.to_numpy(dtype=float)
        high_idx = argrelextrema(values, np.greater, order=self.order)[0]
        low_idx = argrelextrema(values, np.less, order=self.order)[0]

        highs = pd.Series(np.nan, index=series.index, dtype=float)
        lows = pd.Series(np.nan, index=series.index, dtype=float)

        highs.iloc[high_idx] = values[high_idx]
        lows.iloc[low_idx] = values[low_idx]

        return highs, lows

    def _compare(
        self,
        price_swings: pd.Series,
        indicator_swings: pd.Series,
        positions: pd.Series,
        indicator_name: str,
        regular: DivergenceType,
        hidden: DivergenceType,
        lows: bool
    ) -> Optional[DivergenceSignal]:
        recent_price = price_swings.dropna().tail(self.lookback)
        recent_ind = indicator_swings.dropna().tail(self.lookback)
        if len(recent_price) < 2 or len(recent_ind) < 2:
            return None

        p1, p2 = float(recent_price.iloc[-2]), float(recent_price.iloc[-1])
        i1, i2 = float(recent_ind.iloc[-2]), float(recent_ind.iloc[-1])

        price_lower, ind_lower = p2 < p1, i2 < i1
        price_higher, ind_higher = p2 > p1, i2 > i1

        if lows:
            # Bullish side: regular = price LL / indicator HL
            is_regular = price_lower and ind_higher
            is_hidden = price_higher and ind_lower
        else:
            # Bearish side: regular = price HH / indicator LH
            is_regular = price_higher and ind_lower
            is_hidden = price_lower and ind_higher

        if not (is_regular or is_hidden):
            return None

        strength = abs(i2 - i1) / abs(i1) if i1 != 0 else 0.0
        start, end = recent_price.index[-2], recent_price.index[-1]

        return DivergenceSignal(
            divergence_type=regular if is_regular else hidden,
            indicator_name=indicator_name,
            start_label=str(start),
            end_label=str(end),
            price_start=p1,
            price_end=p2,
            indicator_start=i1,
            indicator_end=i2,
            strength=float(min(1.0, max(0.0, strength))),
            bars_duration=int(positions[end] - positions[start]),
        )

    def detect(
        self,
        price: pd.Series,
        indicator: pd.Series,
        indicator_name: str
    ) -> List[DivergenceSignal]:
        """
        Detect divergences between price and indicator.

        Bars where either series is unset are ignored, so indicator warm-up
        periods never produce swing points.

        Parameters
        ----------
        price : pd.Series
            Price series (typically Close)
        indicator : pd.Series
            Indicator values aligned to ``price``
        indicator_name : str
            Name of the indicator

        Returns
        -------
        List[DivergenceSignal]
            Zero, one or two divergences (one per swing side)
        """
        aligned = pd.DataFrame({"price": price, "indicator": indicator})
        positions = pd.Series(np.arange(len(aligned)), index=aligned.index)
        aligned = aligned.dropna()
        if len(aligned) < 2 * self.order + 1:
            return []

        price_highs, price_lows = self.find_swing_points(aligned["price"])
        ind_highs, ind_lows = self.find_swing_points(aligned["indicator"])

        divergences = []
        bullish = self._compare(
            price_lows, ind_lows, positions, indicator_name,
            DivergenceType.REGULAR_BULLISH, DivergenceType.HIDDEN_BULLISH, lows=True
        )
        if bullish is not None:
            divergences.append(bullish)

        bearish = self._compare(
            price_highs, ind_highs, positions, indicator_name,
            DivergenceType.REGULAR_BEARISH, DivergenceType.HIDDEN_BEARISH, lows=False
        )
        if bearish is not None:
            divergences.append(bearish)

        if divergences:
            logger.debug(
                f"{indicator_name}: {', '.join(d.divergence_type.value for d in divergences)}"
            )
        return divergences
