import numpy as np
import pandas as pd
import pytest

from market_signals.price_data import (
    MarketSnapshot,
    MissingFieldPolicy,
    PricePoint,
    normalize_frame,
    resolve_high_low,
    to_frame,
)


def test_to_frame_keeps_order_and_marks_absent_fields():
    points = [
        PricePoint("2024-01-02", 10.0, 10.5, 9.5, 1000),
        PricePoint("2024-01-01", 11.0),
    ]
    frame = to_frame(points)

    assert list(frame.index) == ["2024-01-02", "2024-01-01"]
    assert list(frame.columns) == ["close", "high", "low", "volume"]
    assert frame.loc["2024-01-01", "close"] == 11.0
    assert np.isnan(frame.loc["2024-01-01", "high"])


def test_to_frame_empty():
    frame = to_frame([])
    assert frame.empty
    assert list(frame.columns) == ["close", "high", "low", "volume"]


def test_normalize_capitalised_columns():
    df = pd.DataFrame({
        "Open": [1.0, 2.0],
        "High": [1.5, 2.5],
        "Low": [0.5, 1.5],
        "Close": [1.2, 2.2],
        "Volume": [10, 20],
    })
    frame = normalize_frame(df)

    assert list(frame.columns) == ["close", "high", "low", "volume"]
    assert list(frame["close"]) == [1.2, 2.2]


def test_normalize_adds_missing_optional_columns():
    frame = normalize_frame(pd.DataFrame({"close": [1.0, 2.0]}))
    assert frame["high"].isna().all()
    assert frame["volume"].isna().all()


def test_normalize_requires_close():
    with pytest.raises(ValueError, match="close"):
        normalize_frame(pd.DataFrame({"high": [1.0]}))


def test_resolve_high_low_strict_reports_missing():
    frame = normalize_frame(pd.DataFrame({"close": [1.0, 2.0], "high": [1.1, np.nan], "low": [0.9, 1.9]}))
    bounds = resolve_high_low(frame, MissingFieldPolicy.STRICT)

    assert bounds.high is None and bounds.low is None
    assert bounds.missing == ("high",)


def test_resolve_high_low_surrogate_fills_per_bar(caplog):
    frame = normalize_frame(pd.DataFrame({"close": [100.0, 200.0], "high": [101.5, np.nan]}))

    with caplog.at_level("WARNING"):
        bounds = resolve_high_low(frame, MissingFieldPolicy.SURROGATE)

    assert list(bounds.high) == pytest.approx([101.5, 202.0])
    assert list(bounds.low) == pytest.approx([99.0, 198.0])
    assert bounds.synthetic == ("high", "low")
    assert "surrogate" in caplog.text


def test_snapshot_from_dict(bullish_payload):
    snapshot = MarketSnapshot.from_dict(bullish_payload)

    assert snapshot.price_usd == 1.5
    assert snapshot.change_1h == 3.0
    assert snapshot.change_6h == 10.0
    assert snapshot.change_24h == 15.0
    assert snapshot.volume_24h == 70_000_000
    assert snapshot.liquidity_usd == 400_000_000
    assert snapshot.buy_ratio == 0.75


def test_snapshot_tolerates_malformed_payload():
    snapshot = MarketSnapshot.from_dict({
        "priceUsd": "n/a",
        "priceChange": {"h1": None, "h24": "4.5"},
        "volume": "oops",
    })

    assert snapshot.price_usd == 0.0
    assert snapshot.price_change.h1 is None
    assert snapshot.change_1h == 0.0
    assert snapshot.change_24h == 4.5
    assert snapshot.volume_24h == 0.0
    assert snapshot.buy_ratio == 0.5


def test_zero_transactions_buy_ratio_is_neutral():
    snapshot = MarketSnapshot(price_usd=1.0, buys_24h=0, sells_24h=0)
    assert snapshot.buy_ratio == 0.5


def test_snapshot_round_trip_shape(bullish_payload):
    payload = MarketSnapshot.from_dict(bullish_payload).to_dict()
    assert payload["txns"]["h24"] == {"buys": 150_000, "sells": 50_000}
    assert payload["priceChange"]["h6"] == 10.0


def test_normalize_prefers_close_over_adjusted_close():
    df = pd.DataFrame({
        "Open": [1.0, 2.0],
        "High": [1.5, 2.5],
        "Low": [0.5, 1.5],
        "Close": [1.2, 2.2],
        "Adj Close": [1.1, 2.1],
        "Volume": [10, 20],
    })
    frame = normalize_frame(df)

    assert list(frame.columns) == ["close", "high", "low", "volume"]
    assert list(frame["close"]) == [1.2, 2.2]


def test_normalize_falls_back_to_adjusted_close():
    frame = normalize_frame(pd.DataFrame({"Adj Close": [1.1, 2.1], "Price": [9.0, 9.0]}))
    assert list(frame["close"]) == [1.1, 2.1]
