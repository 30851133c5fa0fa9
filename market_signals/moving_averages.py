"""
Moving-average primitives shared by the indicator families.

Every average returns a series aligned to the input, with NaN marking the
warm-up region. A series shorter than the period yields an all-NaN result
rather than an exception; callers check for NaN before using a value.
"""

from __future__ import annotations

from typing import Sequence, Union

import numpy as np
import pandas as pd

from market_signals.config import validate_period

SeriesLike = Union[pd.Series, Sequence[float], np.ndarray]


def as_series(values: SeriesLike) -> pd.Series:
    """Coerce a list/array into a float Series (index kept for Series input)."""
    if isinstance(values, pd.Series):
        return values.astype(float)
    return pd.Series(np.asarray(values, dtype=float))


def sma(values: SeriesLike, period: int) -> pd.Series:
    """
    Simple moving average over the trailing ``period`` values.

    Parameters
    ----------
    values : SeriesLike
        Input series
    period : int
        Window length

    Returns
    -------
    pd.Series
        NaN for the first ``period - 1`` positions (and wherever the window
        contains NaN), the arithmetic mean otherwise
    """
    period = validate_period(period)
    series = as_series(values)
    if len(series) < period:
        return pd.Series(np.nan, index=series.index, dtype=float)
    return series.rolling(window=period, min_periods=period).mean()


def ema(values: SeriesLike, period: int) -> pd.Series:
    """
    Exponential moving average seeded with an SMA.

    ema[period-1] = mean(values[0:period])
    ema[i]        = (values[i] - ema[i-1]) * k + ema[i-1],  k = 2 / (period + 1)

    The input must be gap-free; compact a partially defined series with
    ``dropna()`` first and re-align the output with ``reindex``.

    Parameters
    ----------
    values : SeriesLike
        Input series
    period : int
        Smoothing period

    Returns
    -------
    pd.Series
        NaN before the seed index, the recursive average afterwards
    """
    period = validate_period(period)
    series = as_series(values)
    raw = series.to_numpy(dtype=float)
    out = np.full(len(raw), np.nan)

    if len(raw) >= period:
        k = 2.0 / (period + 1)
        out[period - 1] = raw[:period].mean()
        for i in range(period, len(raw)):
            out[i] = (raw[i] - out[i - 1]) * k + out[i - 1]

    return pd.Series(out, index=series.index)


def wilder(values: SeriesLike, period: int) -> pd.Series:
    """
    Wilder smoothing seeded with the mean of the first ``period`` defined values.

    Leading NaNs are skipped: with the first defined value at ``s`` the seed
    sits at ``s + period - 1`` and every later bar uses

        out[i] = (out[i-1] * (period - 1) + values[i]) / period
    """
    period = validate_period(period)
    series = as_series(values)
    raw = series.to_numpy(dtype=float)
    out = np.full(len(raw), np.nan)

    defined = np.flatnonzero(~np.isnan(raw))
    if len(defined) >= period:
        start = defined[0]
        seed = start + period - 1
        if seed < len(raw):
            out[seed] = raw[start:seed + 1].mean()
            for i in range(seed + 1, len(raw)):
                out[i] = (out[i - 1] * (period - 1) + raw[i]) / period

    return pd.Series(out, index=series.index)
