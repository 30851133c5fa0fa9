import json

import numpy as np
import pandas as pd
import pytest

from market_signals import engine as engine_module
from market_signals.engine import TechnicalIndicatorEngine, print_indicator_report
from market_signals.indicator_types import ResultStatus
from market_signals.price_data import MarketSnapshot, MissingFieldPolicy, PricePoint


def test_full_frame_computes_every_indicator(random_frame):
    report = TechnicalIndicatorEngine().process(random_frame)

    assert all(result.ok for result in report.results.values())
    assert report.bars == 120
    assert report.period == (random_frame.index[0], random_frame.index[-1])
    assert list(report.indicators_df.index) == list(random_frame.index)
    for column in ("macd_histogram", "psar", "psar_trend", "stoch_k", "williams_r",
                   "atr", "obv", "rsi", "bb_percent_b", "cci", "adx", "plus_di",
                   "ichimoku_tenkan", "ichimoku_span_a", "ichimoku_chikou"):
        assert column in report.indicators_df.columns
    assert set(report.indicators_df["psar_trend"].dropna()) <= {"up", "down"}


def test_capitalised_columns_are_accepted(random_frame):
    frame = random_frame.rename(columns=str.capitalize)
    report = TechnicalIndicatorEngine().process(frame)
    assert report.macd.ok and report.obv.ok


def test_frame_with_adjusted_close_column(random_frame):
    frame = random_frame.rename(columns=str.capitalize)
    frame.insert(0, "Open", frame["Close"].shift(1).fillna(frame["Close"]))
    frame["Adj Close"] = frame["Close"] * 0.98

    report = TechnicalIndicatorEngine().process(frame)

    assert all(result.ok for result in report.results.values())
    assert list(report.indicators_df["close"]) == pytest.approx(list(random_frame["close"]))


def test_close_only_frame_under_strict_policy():
    close = 100 + np.cumsum(np.random.RandomState(2).normal(0, 1, 60))
    frame = pd.DataFrame({"close": close})

    report = TechnicalIndicatorEngine().process(frame)

    for result in (report.stochastic, report.williams, report.atr, report.sar, report.cci,
                   report.adx, report.ichimoku):
        assert result.status is ResultStatus.MISSING_FIELD
        assert result.missing_fields == ("high", "low")
    assert report.obv.missing_fields == ("volume",)
    assert report.macd.ok and report.rsi.ok and report.bollinger.ok


def test_close_only_frame_under_surrogate_policy():
    close = 100 + np.cumsum(np.random.RandomState(2).normal(0, 1, 60))
    frame = pd.DataFrame({"close": close})

    report = TechnicalIndicatorEngine(policy=MissingFieldPolicy.SURROGATE).process(frame)

    for result in (report.stochastic, report.williams, report.atr, report.sar, report.cci, report.adx):
        assert result.ok
        assert result.synthetic_fields == ("high", "low")
    # 60 bars are short of the 62 the cloud needs
    assert report.ichimoku.insufficient_data
    assert report.ichimoku.synthetic_fields == ("high", "low")
    # Volume is never approximated
    assert report.obv.missing_field


def test_price_points_and_short_history():
    points = [PricePoint(f"2024-01-{day:02d}", 10.0, 10.0, 10.0, 100.0) for day in range(1, 29)]
    report = TechnicalIndicatorEngine().process(points)

    assert report.macd.insufficient_data
    # Unset reading, not a computed histogram
    assert report.macd.histogram.isna().all()
    assert report.macd.latest_histogram == 0
    assert report.sar.ok
    assert report.period == ("2024-01-01", "2024-01-28")


def test_empty_input():
    report = TechnicalIndicatorEngine().process([])
    assert report.bars == 0
    assert report.macd.insufficient_data
    assert report.divergences == []


def test_missing_close_raises():
    with pytest.raises(ValueError):
        TechnicalIndicatorEngine().process(pd.DataFrame({"high": [1.0, 2.0]}))


def test_report_dict_is_json_serialisable(random_frame, bullish_payload):
    snapshot = MarketSnapshot.from_dict(bullish_payload)
    report = TechnicalIndicatorEngine().process(random_frame, snapshot=snapshot)

    payload = json.loads(json.dumps(report.to_dict()))

    assert payload["bars"] == 120
    assert payload["policy"] == "STRICT"
    assert payload["indicators"]["macd"]["status"] == "OK"
    assert "histogram" not in payload["indicators"]["macd"]
    assert payload["sentiment"]["level"] == "very_bullish"


def test_divergence_can_be_disabled(random_frame):
    report = TechnicalIndicatorEngine(enable_divergence=False).process(random_frame)
    assert report.divergences == []


def test_print_report(random_frame, bullish_payload, capsys):
    snapshot = MarketSnapshot.from_dict(bullish_payload)
    print_indicator_report(TechnicalIndicatorEngine().process(random_frame, snapshot=snapshot))

    out = capsys.readouterr().out
    assert "MARKET SIGNAL REPORT" in out
    assert "Parabolic SAR" in out
    assert "Ichimoku" in out
    assert "STRONG_BUY" in out


def test_cli_writes_report(tmp_path, random_frame, bullish_payload, monkeypatch):
    prices = tmp_path / "prices.csv"
    random_frame.rename_axis("Date").rename(columns=str.capitalize).to_csv(prices)
    snapshot = tmp_path / "snapshot.json"
    snapshot.write_text(json.dumps(bullish_payload), encoding="utf-8")
    output = tmp_path / "report.json"

    monkeypatch.setattr("sys.argv", [
        "engine", "--input", str(prices), "--snapshot", str(snapshot), "--output", str(output),
    ])
    assert engine_module.main() == 0

    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["period"] == [random_frame.index[0], random_frame.index[-1]]
    assert payload["sentiment"]["trading"]["action"] == "strong_buy"


def test_cli_reports_failure(tmp_path, monkeypatch):
    prices = tmp_path / "bad.csv"
    prices.write_text("date,high\n2024-01-01,1.0\n", encoding="utf-8")
    monkeypatch.setattr("sys.argv", ["engine", "--input", str(prices)])

    assert engine_module.main() == 1
