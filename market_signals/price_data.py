"""
Input contract for the indicator engine and the composite scorer.

Two shapes of market data enter the library:

    PricePoint / DataFrame
        Chronological OHLCV bars (close required; high, low and volume
        optional). Converted to a DataFrame indexed by the date label with
        lower-case ``close``, ``high``, ``low``, ``volume`` columns.

    MarketSnapshot
        A single point-in-time aggregate from the market-data layer: price,
        multi-horizon price changes, 24h volume, liquidity and transaction
        counts.

MISSING FIELD POLICY
    STRICT      Indicators needing high/low report MISSING_FIELD when any bar
                lacks them. This is the default.
    SURROGATE   Absent high/low are replaced per bar with close*1.01 and
                close*0.99. The substitution is reported in the result's
                ``synthetic_fields`` and logged as a warning.

    Volume is never fabricated: OBV reports MISSING_FIELD without it.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from market_signals.config import SURROGATE_HIGH_FACTOR, SURROGATE_LOW_FACTOR

logger = logging.getLogger(__name__)


PRICE_COLUMNS: Tuple[str, ...] = ("close", "high", "low", "volume")

# Accepted in place of close, in order of discovery
CLOSE_FALLBACKS: Tuple[str, ...] = ("adj close", "price")


# =============================================================================
# PRICE SERIES
# =============================================================================

class MissingFieldPolicy(Enum):
    """How high/low-based indicators treat absent bounds."""
    STRICT = "STRICT"
    SURROGATE = "SURROGATE"


@dataclass(frozen=True)
class PricePoint:
    """One bar of the chronological price history."""
    date: str
    close: float
    high: Optional[float] = None
    low: Optional[float] = None
    volume: Optional[float] = None


@dataclass(frozen=True)
class HighLow:
    """
    Resolved high/low bounds for a frame.

    ``high`` and ``low`` are None when the STRICT policy found absent values;
    ``missing`` then names the columns. ``synthetic`` names columns that were
    filled with surrogates.
    """
    high: Optional[pd.Series]
    low: Optional[pd.Series]
    missing: Tuple[str, ...] = ()
    synthetic: Tuple[str, ...] = ()


def to_frame(points: Iterable[PricePoint]) -> pd.DataFrame:
    """
    Convert price points into the engine's DataFrame layout.

    Parameters
    ----------
    points : Iterable[PricePoint]
        Chronological bars; order is preserved as given

    Returns
    -------
    pd.DataFrame
        Indexed by date label with float columns close, high, low, volume
        (NaN where a field is absent)
    """
    rows = [
        {
            "date": p.date,
            "close": p.close,
            "high": p.high,
            "low": p.low,
            "volume": p.volume,
        }
        for p in points
    ]
    if not rows:
        return pd.DataFrame(columns=list(PRICE_COLUMNS), dtype=float)

    frame = pd.DataFrame(rows).set_index("date")
    return frame.astype(float)


def normalize_frame(df: pd.DataFrame) -> pd.DataFrame:
    """
    Map an OHLCV frame onto lower-case close/high/low/volume columns.

    Accepts both the ``Close``/``High``/``Low``/``Volume`` convention and
    lower-case names. ``Adj Close`` or ``Price`` stands in for close only
    when the frame has no close column of its own; every other column is
    dropped.

    Raises
    ------
    ValueError
        If no close column is present
    """
    rename: Dict[Any, str] = {}
    fallback = None
    for column in df.columns:
        key = str(column).strip().lower()
        if key in PRICE_COLUMNS:
            if key not in rename.values():
                rename[column] = key
        elif key in CLOSE_FALLBACKS and fallback is None:
            fallback = column

    if "close" not in rename.values():
        if fallback is None:
            raise ValueError(f"Missing required column: close (got {list(df.columns)})")
        rename[fallback] = "close"

    frame = pd.DataFrame(
        {key: df[column] for column, key in rename.items()},
        index=df.index,
    )
    for column in PRICE_COLUMNS:
        if column not in frame.columns:
            frame[column] = np.nan
    return frame[list(PRICE_COLUMNS)].astype(float)


def resolve_high_low(
    frame: pd.DataFrame,
    policy: MissingFieldPolicy = MissingFieldPolicy.STRICT
) -> HighLow:
    """
    Resolve the high/low columns of a normalized frame under ``policy``.

    Parameters
    ----------
    frame : pd.DataFrame
        Output of ``normalize_frame`` or ``to_frame``
    policy : MissingFieldPolicy
        STRICT reports absent bounds; SURROGATE fills them from close

    Returns
    -------
    HighLow
        Resolved series plus the names of missing or synthetic columns
    """
    high = frame["high"]
    low = frame["low"]
    absent = tuple(
        name for name, series in (("high", high), ("low", low))
        if series.isna().any()
    )

    if not absent:
        return HighLow(high=high, low=low)

    if policy is MissingFieldPolicy.STRICT:
        logger.debug(f"Absent {', '.join(absent)} under STRICT policy")
        return HighLow(high=None, low=None, missing=absent)

    close = frame["close"]
    high = high.fillna(close * SURROGATE_HIGH_FACTOR)
    low = low.fillna(close * SURROGATE_LOW_FACTOR)
    logger.warning(
        f"Substituting surrogate {', '.join(absent)} from close "
        f"(x{SURROGATE_HIGH_FACTOR}/x{SURROGATE_LOW_FACTOR}); values are approximate"
    )
    return HighLow(high=high, low=low, synthetic=absent)


def has_volume(frame: pd.DataFrame) -> bool:
    """True when every bar carries a volume figure."""
    return "volume" in frame.columns and not frame["volume"].isna().any()


# =============================================================================
# MARKET SNAPSHOT
# =============================================================================

def _number(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    """Coerce a JSON scalar (number or numeric string) to float."""
    if value is None or isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(result):
        return default
    return result


def _section(payload: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = payload.get(key)
    return value if isinstance(value, Mapping) else {}


@dataclass(frozen=True)
class PriceChange:
    """Percentage price change over several horizons."""
    h1: Optional[float] = None
    h6: Optional[float] = None
    h24: Optional[float] = None


@dataclass(frozen=True)
class MarketSnapshot:
    """
    Point-in-time market aggregate consumed by the composite scorer.

    Percentages are expressed in percent (``3.5`` means +3.5%).
    """
    price_usd: float
    price_change_24h: float = 0.0
    price_change: PriceChange = PriceChange()
    volume_24h: float = 0.0
    liquidity_usd: float = 0.0
    buys_24h: float = 0.0
    sells_24h: float = 0.0

    @property
    def buy_ratio(self) -> float:
        """Share of buy transactions; exactly 0.5 when there were none."""
        total = self.buys_24h + self.sells_24h
        if total <= 0:
            return 0.5
        return self.buys_24h / total

    @property
    def change_1h(self) -> float:
        return self.price_change.h1 or 0.0

    @property
    def change_6h(self) -> float:
        return self.price_change.h6 or 0.0

    @property
    def change_24h(self) -> float:
        """24h change, preferring the top-level figure."""
        if self.price_change_24h:
            return self.price_change_24h
        return self.price_change.h24 or 0.0

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "MarketSnapshot":
        """
        Build a snapshot from the market-data layer's JSON shape.

        Expected keys: ``priceUsd``, ``priceChange24h``,
        ``priceChange.{h1,h6,h24}``, ``volume.h24``, ``liquidity.usd``,
        ``txns.h24.{buys,sells}``. Absent or malformed values become 0
        (or None for optional horizons).
        """
        changes = _section(payload, "priceChange")
        txns = _section(_section(payload, "txns"), "h24")
        return cls(
            price_usd=_number(payload.get("priceUsd")),
            price_change_24h=_number(payload.get("priceChange24h")),
            price_change=PriceChange(
                h1=_number(changes.get("h1"), None),
                h6=_number(changes.get("h6"), None),
                h24=_number(changes.get("h24"), None),
            ),
            volume_24h=_number(_section(payload, "volume").get("h24")),
            liquidity_usd=_number(_section(payload, "liquidity").get("usd")),
            buys_24h=_number(txns.get("buys")),
            sells_24h=_number(txns.get("sells")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Inverse of ``from_dict``."""
        return {
            "priceUsd": self.price_usd,
            "priceChange24h": self.price_change_24h,
            "priceChange": {
                "h1": self.price_change.h1,
                "h6": self.price_change.h6,
                "h24": self.price_change.h24,
            },
            "volume": {"h24": self.volume_24h},
            "liquidity": {"usd": self.liquidity_usd},
            "txns": {"h24": {"buys": self.buys_24h, "sells": self.sells_24h}},
        }
