"""
Volume Indicators

    - OBV (On-Balance Volume): Granville, 1963

OBV adds volume on up bars and subtracts it on down bars, creating a
cumulative indicator of buying/selling pressure. Volume is never
approximated: a frame without a volume figure on every bar produces a
MISSING_FIELD result.
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd

from market_signals.config import OBVParameters, validate_period
from market_signals.indicator_types import (
    OBVResult,
    ResultStatus,
    VolumeFlow,
    bar_direction,
    crossover,
    unset_like,
)
from market_signals.moving_averages import sma
from market_signals.price_data import has_volume, normalize_frame

logger = logging.getLogger(__name__)


class OnBalanceVolume:
    """
    On-Balance Volume with a simple moving-average overlay.

    Classification at the latest bar:
        flow          accumulation when OBV > MA, distribution otherwise
        trend         OBV direction versus the previous bar
        signal_event  OBV crossing its MA (same rule as MACD)
        change        percent change against the bar ``change_window - 1``
                      bars back (the first bar when the series is shorter)
    """

    def __init__(self, params: OBVParameters = OBVParameters()):
        validate_period(params.ma_period, "ma_period")
        validate_period(params.change_window, "change_window")
        self.params = params

    @property
    def min_bars(self) -> int:
        return self.params.ma_period + 1

    @staticmethod
    def calculate_obv(close: pd.Series, volume: pd.Series) -> pd.Series:
        """
        Calculate On-Balance Volume.

        Parameters
        ----------
        close : pd.Series
            Closing prices
        volume : pd.Series
            Volume data

        Returns
        -------
        pd.Series
            OBV values, starting from the first bar's volume
        """
        direction = np.sign(close.diff())
        direction.iloc[0] = 1

        obv = (direction * volume).cumsum()

        return obv

    def change_percent(self, obv: pd.Series) -> float:
        reference = float(obv.iloc[-min(self.params.change_window, len(obv))])
        if reference == 0:
            return 0.0
        return (float(obv.iloc[-1]) - reference) / abs(reference) * 100

    def analyze(self, frame: pd.DataFrame) -> OBVResult:
        """Compute OBV and its moving average and classify the latest bar."""
        frame = normalize_frame(frame)
        index = frame.index

        if not has_volume(frame):
            logger.debug("OBV requires volume on every bar")
            return OBVResult(
                status=ResultStatus.MISSING_FIELD,
                obv=unset_like(index),
                obv_ma=unset_like(index),
                missing_fields=("volume",),
            )
        if len(frame) < self.min_bars:
            logger.debug(f"OBV needs {self.min_bars} bars, got {len(frame)}")
            return OBVResult(
                status=ResultStatus.INSUFFICIENT_DATA,
                obv=unset_like(index),
                obv_ma=unset_like(index),
            )

        obv = self.calculate_obv(frame["close"], frame["volume"])
        obv_ma = sma(obv, self.params.ma_period)

        current, previous = float(obv.iloc[-1]), float(obv.iloc[-2])
        current_ma, previous_ma = float(obv_ma.iloc[-1]), float(obv_ma.iloc[-2])

        flow = VolumeFlow.ACCUMULATION if current > current_ma else VolumeFlow.DISTRIBUTION

        return OBVResult(
            status=ResultStatus.OK,
            obv=obv,
            obv_ma=obv_ma,
            latest_obv=current,
            latest_ma=current_ma,
            change_percent=self.change_percent(obv),
            flow=flow,
            trend=bar_direction(previous, current),
            signal_event=crossover(previous, previous_ma, current, current_ma),
        )
