import numpy as np
import pandas as pd
import pytest


def make_frame(close, high=None, low=None, volume=None, start="2024-01-01"):
    """Lower-case OHLCV frame indexed by ISO date labels."""
    n = len(close)
    index = pd.date_range(start=start, periods=n, freq="D").strftime("%Y-%m-%d")
    data = {"close": np.asarray(close, dtype=float)}
    if high is not None:
        data["high"] = np.asarray(high, dtype=float)
    if low is not None:
        data["low"] = np.asarray(low, dtype=float)
    if volume is not None:
        data["volume"] = np.asarray(volume, dtype=float)
    return pd.DataFrame(data, index=index)


@pytest.fixture
def random_frame():
    """120 bars of a seeded random walk with consistent OHLCV."""
    rng = np.random.RandomState(7)
    n = 120
    close = 100 * np.exp(np.cumsum(rng.normal(0.0005, 0.02, n)))
    spread = np.abs(rng.normal(0.0, 0.01, n))
    high = close * (1 + spread)
    low = close * (1 - spread)
    volume = rng.uniform(1e5, 5e5, n)
    return make_frame(close, high, low, volume)


@pytest.fixture
def sar_frame():
    """Ten bars with a single down-spike at bar 4 and recovery at bar 5."""
    return make_frame(
        close=[10, 10.5, 11, 11.5, 9.5, 12, 12.5, 13, 13.5, 14],
        high=[10.5, 11, 11.5, 12, 11.5, 12.5, 13, 13.5, 14, 14.5],
        low=[9.5, 10, 10.5, 11, 9.0, 11.0, 12, 12.5, 13, 13.5],
    )


@pytest.fixture
def bullish_payload():
    return {
        "priceUsd": "1.5",
        "priceChange24h": 15,
        "priceChange": {"h1": 3, "h6": 10, "h24": 15},
        "volume": {"h24": 70_000_000},
        "liquidity": {"usd": 400_000_000},
        "txns": {"h24": {"buys": 150_000, "sells": 50_000}},
    }
