"""
Market Signal Engine

Runs every indicator family over one chronological price frame and, when a
market snapshot is supplied, scores it with the composite sentiment model.

INDICATOR FAMILIES
    Trend        MACD, Parabolic SAR, ADX/DMI, Ichimoku
    Momentum     Stochastic, Williams %R, RSI, CCI
    Volatility   ATR, Bollinger Bands
    Volume       OBV

    Divergences are checked between close and the MACD histogram, OBV and
    Williams %R.

Every indicator reports a ResultStatus. Short series or absent fields never
raise; they produce INSUFFICIENT_DATA or MISSING_FIELD results with unset
series so the report can render them as "not enough history".

Usage
-----
>>> engine = TechnicalIndicatorEngine()
>>> report = engine.process(df)
>>> report.macd.trend
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd

from market_signals.config import (
    DEFAULT_PARAMETERS,
    DEFAULT_SENTIMENT_MODEL,
    ENGINE_VERSION,
    IndicatorParameters,
    SentimentModel,
)
from market_signals.divergence import DivergenceDetector
from market_signals.indicator_types import (
    ADXResult,
    ATRResult,
    BollingerResult,
    CCIResult,
    DivergenceSignal,
    IchimokuResult,
    MACDResult,
    OBVResult,
    RSIResult,
    SARResult,
    StochasticResult,
    WilliamsResult,
)
from market_signals.momentum import CCI, RSI, StochasticOscillator, WilliamsR
from market_signals.price_data import (
    MarketSnapshot,
    MissingFieldPolicy,
    PricePoint,
    normalize_frame,
    to_frame,
)
from market_signals.sentiment import SentimentResult, SentimentScorer
from market_signals.trend import ADXIndicator, Ichimoku, MACDIndicator, ParabolicSAR
from market_signals.volatility import AverageTrueRange, BollingerBands
from market_signals.volume import OnBalanceVolume

logger = logging.getLogger(__name__)


# =============================================================================
# OUTPUT
# =============================================================================

def _json_value(value: Any) -> Any:
    """Convert enums, tuples and NaN into JSON-friendly values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (tuple, list)):
        return [_json_value(v) for v in value]
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def summarize_result(result: Any) -> Dict[str, Any]:
    """Latest-bar readings of an indicator result, without its series."""
    summary = {}
    for f in fields(result):
        value = getattr(result, f.name)
        if isinstance(value, pd.Series):
            continue
        summary[f.name] = _json_value(value)
    return summary


@dataclass
class IndicatorReport:
    """
    Complete output from the indicator engine.

    Contains every indicator result, the combined per-bar indicator frame
    and the detected divergences.
    """
    macd: MACDResult
    stochastic: StochasticResult
    atr: ATRResult
    obv: OBVResult
    williams: WilliamsResult
    sar: SARResult
    rsi: RSIResult
    bollinger: BollingerResult
    cci: CCIResult
    adx: ADXResult
    ichimoku: IchimokuResult

    indicators_df: pd.DataFrame
    divergences: List[DivergenceSignal] = field(default_factory=list)
    sentiment: Optional[SentimentResult] = None

    # Metadata
    period: Tuple[str, str] = ("", "")
    bars: int = 0
    policy: MissingFieldPolicy = MissingFieldPolicy.STRICT
    generated_at: str = ""
    version: str = ENGINE_VERSION

    @property
    def results(self) -> Dict[str, Any]:
        return {
            "macd": self.macd,
            "stochastic": self.stochastic,
            "atr": self.atr,
            "obv": self.obv,
            "williams_r": self.williams,
            "parabolic_sar": self.sar,
            "rsi": self.rsi,
            "bollinger": self.bollinger,
            "cci": self.cci,
            "adx": self.adx,
            "ichimoku": self.ichimoku,
        }

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serializable summary (latest readings, no per-bar series)."""
        payload = {
            "period": list(self.period),
            "bars": self.bars,
            "policy": self.policy.value,
            "generated_at": self.generated_at,
            "version": self.version,
            "indicators": {
                name: summarize_result(result) for name, result in self.results.items()
            },
            "divergences": [summarize_result(d) for d in self.divergences],
        }
        if self.sentiment is not None:
            payload["sentiment"] = self.sentiment.to_dict()
        return payload


# =============================================================================
# ENGINE
# =============================================================================

class TechnicalIndicatorEngine:
    """
    Main orchestrator for indicator computation.

    Parameters
    ----------
    policy : MissingFieldPolicy
        Treatment of absent high/low values (volume is never approximated)
    parameters : IndicatorParameters
        Periods and thresholds for every indicator
    sentiment_model : SentimentModel
        Weight table used when a snapshot is scored
    enable_divergence : bool
        Whether to detect divergences
    """

    def __init__(
        self,
        policy: MissingFieldPolicy = MissingFieldPolicy.STRICT,
        parameters: IndicatorParameters = DEFAULT_PARAMETERS,
        sentiment_model: SentimentModel = DEFAULT_SENTIMENT_MODEL,
        enable_divergence: bool = True
    ):
        self.policy = policy
        self.parameters = parameters
        self.enable_divergence = enable_divergence

        self.macd = MACDIndicator(parameters.macd)
        self.sar = ParabolicSAR(parameters.sar)
        self.adx = ADXIndicator(parameters.adx)
        self.ichimoku = Ichimoku(parameters.ichimoku)
        self.stochastic = StochasticOscillator(parameters.stochastic)
        self.williams = WilliamsR(parameters.williams)
        self.rsi = RSI(parameters.rsi)
        self.cci = CCI(parameters.cci)
        self.atr = AverageTrueRange(parameters.atr)
        self.bollinger = BollingerBands(parameters.bollinger)
        self.obv = OnBalanceVolume(parameters.obv)

        self.divergence_detector = DivergenceDetector()
        self.scorer = SentimentScorer(sentiment_model)

        logger.info(f"TechnicalIndicatorEngine initialized with {policy.value} policy")

    def process(
        self,
        data: Union[pd.DataFrame, Sequence[PricePoint]],
        snapshot: Optional[MarketSnapshot] = None
    ) -> IndicatorReport:
        """
        Process a price history through the complete indicator pipeline.

        Parameters
        ----------
        data : pd.DataFrame or Sequence[PricePoint]
            Chronological bars; a frame needs a close column and may carry
            high, low and volume (either capitalisation)
        snapshot : MarketSnapshot, optional
            Market aggregate to score alongside the indicators

        Returns
        -------
        IndicatorReport
            Every indicator result plus divergences and optional sentiment

        Raises
        ------
        ValueError
            If the frame has no close column
        """
        frame = data if isinstance(data, pd.DataFrame) else to_frame(data)
        frame = normalize_frame(frame)
        close = frame["close"]
        logger.info(f"Processing {len(frame)} bars of data")

        # 1. Trend
        macd = self.macd.analyze(close)
        sar = self.sar.analyze(frame, self.policy)
        adx = self.adx.analyze(frame, self.policy)
        ichimoku = self.ichimoku.analyze(frame, self.policy)

        # 2. Momentum
        stochastic = self.stochastic.analyze(frame, self.policy)
        williams = self.williams.analyze(frame, self.policy)
        rsi = self.rsi.analyze(close)
        cci = self.cci.analyze(frame, self.policy)

        # 3. Volatility
        atr = self.atr.analyze(frame, self.policy)
        bollinger = self.bollinger.analyze(close)

        # 4. Volume
        obv = self.obv.analyze(frame)

        indicators_df = pd.DataFrame(
            {
                "close": close,
                "macd": macd.macd,
                "macd_signal": macd.signal,
                "macd_histogram": macd.histogram,
                "psar": sar.sar,
                "psar_trend": sar.trend_series.map(
                    lambda t: t.value if t is not None else None
                ),
                "adx": adx.adx,
                "plus_di": adx.plus_di,
                "minus_di": adx.minus_di,
                "ichimoku_tenkan": ichimoku.tenkan,
                "ichimoku_kijun": ichimoku.kijun,
                "ichimoku_span_a": ichimoku.senkou_a,
                "ichimoku_span_b": ichimoku.senkou_b,
                "ichimoku_chikou": ichimoku.chikou,
                "stoch_k": stochastic.k,
                "stoch_d": stochastic.d,
                "williams_r": williams.williams_r,
                "rsi": rsi.rsi,
                "cci": cci.cci,
                "true_range": atr.true_range,
                "atr": atr.atr,
                "atr_percent": atr.atr_percent,
                "bb_upper": bollinger.upper,
                "bb_middle": bollinger.middle,
                "bb_lower": bollinger.lower,
                "bb_bandwidth": bollinger.bandwidth,
                "bb_percent_b": bollinger.percent_b,
                "obv": obv.obv,
                "obv_ma": obv.obv_ma,
            },
            index=frame.index,
        )

        # 5. Divergences
        divergences: List[DivergenceSignal] = []
        if self.enable_divergence:
            for name, result, column in (
                ("MACD", macd, "macd_histogram"),
                ("OBV", obv, "obv"),
                ("Williams %R", williams, "williams_r"),
            ):
                if result.ok:
                    divergences.extend(
                        self.divergence_detector.detect(close, indicators_df[column], name)
                    )

        # 6. Composite sentiment
        sentiment = self.scorer.score(snapshot) if snapshot is not None else None

        period = ("", "")
        if len(frame):
            period = (str(frame.index[0]), str(frame.index[-1]))

        return IndicatorReport(
            macd=macd,
            stochastic=stochastic,
            atr=atr,
            obv=obv,
            williams=williams,
            sar=sar,
            rsi=rsi,
            bollinger=bollinger,
            cci=cci,
            adx=adx,
            ichimoku=ichimoku,
            indicators_df=indicators_df,
            divergences=divergences,
            sentiment=sentiment,
            period=period,
            bars=len(frame),
            policy=self.policy,
            generated_at=datetime.now().isoformat(),
        )


# =============================================================================
# REPORT GENERATION
# =============================================================================

def _status_line(name: str, result: Any, detail: str) -> str:
    if result.ok:
        return f"  {name:<16} {detail}"
    missing = getattr(result, "missing_fields", ())
    suffix = f" ({', '.join(missing)})" if missing else ""
    return f"  {name:<16} {result.status.value}{suffix}"


def print_indicator_report(report: IndicatorReport) -> None:
    """
    Print an indicator report to console.

    Parameters
    ----------
    report : IndicatorReport
        Output from TechnicalIndicatorEngine.process()
    """
    print("\n" + "=" * 70)
    print("MARKET SIGNAL REPORT")
    print("=" * 70)
    print(f"Period: {report.period[0]} to {report.period[1]} ({report.bars} bars)")
    print(f"Missing-field policy: {report.policy.value}")
    print(f"Generated: {report.generated_at}")
    print(f"Version: {report.version}")

    print("\n" + "-" * 70)
    print("INDICATORS")
    print("-" * 70)

    m = report.macd
    print(_status_line(
        "MACD", m,
        f"{m.latest_macd:.4f} / signal {m.latest_signal:.4f} / hist {m.latest_histogram:.4f}"
        f"  {m.trend.value}, {m.momentum.value} {m.momentum_direction.value}"
        f", event {m.signal_event.value}"
    ))
    s = report.sar
    print(_status_line(
        "Parabolic SAR", s,
        f"{s.latest_sar:.4f}  {s.trend.value} for {s.trend_duration} bars"
        f", {s.reversal_count} reversals, distance {s.distance_percent:+.2f}%"
    ))
    d = report.adx
    print(_status_line(
        "ADX", d,
        f"{d.latest_adx:.1f} (+DI {d.latest_plus_di:.1f} / -DI {d.latest_minus_di:.1f})"
        f"  {d.strength.value}, {d.trend.value}, event {d.signal_event.value}"
    ))
    i = report.ichimoku
    print(_status_line(
        "Ichimoku", i,
        f"tenkan {i.latest_tenkan:.4f} / kijun {i.latest_kijun:.4f}  price {i.position.value} cloud"
        f", cloud {i.cloud_color.value}, {i.trend.value}, event {i.signal_event.value}"
    ))
    k = report.stochastic
    print(_status_line(
        "Stochastic", k,
        f"%K {k.latest_k:.1f} / %D {k.latest_d:.1f}  {k.zone.value}, event {k.signal_event.value}"
    ))
    w = report.williams
    print(_status_line(
        "Williams %R", w,
        f"{w.latest_value:.1f} (avg {w.average_value:.1f})  {w.zone.value}"
        f", {w.trend.value}, event {w.signal_event.value}"
    ))
    r = report.rsi
    print(_status_line("RSI", r, f"{r.latest_value:.1f}  {r.zone.value}"))
    c = report.cci
    print(_status_line(
        "CCI", c,
        f"{c.latest_value:.1f} (avg {c.average_value:.1f})  {c.zone.value}"
        f", {c.trend.value}, event {c.signal_event.value}"
    ))
    a = report.atr
    print(_status_line(
        "ATR", a,
        f"{a.latest_atr:.4f} ({a.latest_atr_percent:.2f}%)  volatility {a.volatility.value}"
        f", {a.trend.value}"
    ))
    b = report.bollinger
    print(_status_line(
        "Bollinger", b,
        f"%B {b.latest_percent_b:.1f}, width {b.latest_bandwidth:.2f}%  {b.zone.value}"
        f", volatility {b.volatility.value}{', SQUEEZE' if b.squeeze else ''}"
    ))
    o = report.obv
    print(_status_line(
        "OBV", o,
        f"{o.latest_obv:,.0f} (MA {o.latest_ma:,.0f})  {o.flow.value}"
        f", {o.change_percent:+.2f}%, event {o.signal_event.value}"
    ))

    synthetic = sorted({
        name for result in report.results.values()
        for name in getattr(result, "synthetic_fields", ())
    })
    if synthetic:
        print(f"\n  ! Surrogate values used for: {', '.join(synthetic)}")

    if report.divergences:
        print("\n" + "-" * 70)
        print("DETECTED DIVERGENCES")
        print("-" * 70)
        for div in report.divergences:
            print(f"  {div.divergence_type.value} on {div.indicator_name}")
            print(f"    Period: {div.bars_duration} bars, Strength: {div.strength:.1%}")

    if report.sentiment is not None:
        print_sentiment_report(report.sentiment)

    print("\n" + "=" * 70)


def print_sentiment_report(result: SentimentResult) -> None:
    """Print the composite score and its derived views."""
    print("\n" + "-" * 70)
    print("COMPOSITE SENTIMENT")
    print("-" * 70)
    print(f"  Score: {result.score:+.2f}  ({result.level.value})")
    print(f"  Fear & Greed: {result.fear_greed.index:.1f}  ({result.fear_greed.level.value})")
    print(f"  Buy ratio: {result.buy_ratio:.1%}")
    for factor in result.factors:
        print(
            f"    {factor.name:<10} {factor.score:+7.2f} x {factor.weight:.2f}"
            f" = {factor.contribution:+7.2f}  {factor.status.value}"
        )

    if result.targets is not None:
        t = result.targets
        for label, horizon in (("Short term", t.short_term), ("Medium term", t.medium_term)):
            print(
                f"  {label}: {horizon.direction.value} {horizon.move_percent:+.2f}%"
                f" -> {horizon.target:.6g} [{horizon.low:.6g}, {horizon.high:.6g}]"
                f" ({horizon.confidence:.0f}%)"
            )
        print(
            f"  Support {t.key_levels.support:.6g} / Pivot {t.key_levels.pivot:.6g}"
            f" / Resistance {t.key_levels.resistance:.6g}  risk {t.risk_level.value}"
        )

    if result.trading is not None:
        s = result.trading
        print(f"  Action: {s.action.value.upper()} ({s.confidence:.0f}%)")
        print(f"    Entry: {s.entry_low:.6g} - {s.entry_high:.6g}, Stop: {s.stop_loss:.6g}")
        print(f"    Take profit: {', '.join(f'{tp:.6g}' for tp in s.take_profits)}")
        print(f"    Risk/Reward: 1:{s.risk_reward:.2f}")


# =============================================================================
# COMMAND LINE INTERFACE
# =============================================================================

def load_price_csv(path: str) -> pd.DataFrame:
    """Read a CSV of bars, using a date/time column as the index when present."""
    df = pd.read_csv(path)
    for column in df.columns:
        if str(column).strip().lower() in ("date", "datetime", "time", "timestamp"):
            return df.set_index(column)
    return df


def load_snapshot(path: str) -> MarketSnapshot:
    with open(path, "r", encoding="utf-8") as fh:
        return MarketSnapshot.from_dict(json.load(fh))


def main() -> int:
    """
    Main entry point for command-line execution.

    Returns
    -------
    int
        Exit code (0 for success, 1 for failure)
    """
    import argparse
    import traceback

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    parser = argparse.ArgumentParser(
        description="Market Signal Engine - technical indicators and composite sentiment"
    )
    parser.add_argument("--input", "-i", required=True,
                        help="CSV file of chronological bars (close required)")
    parser.add_argument("--snapshot", "-s", default=None,
                        help="JSON market snapshot to score")
    parser.add_argument("--surrogate", action="store_true",
                        help="Fill absent high/low from close instead of reporting them missing")
    parser.add_argument("--output", "-o", default=None,
                        help="Output JSON file for the report summary")

    args = parser.parse_args()

    try:
        logger.info(f"Loading data from {args.input}")
        df = load_price_csv(args.input)
        snapshot = load_snapshot(args.snapshot) if args.snapshot else None

        policy = MissingFieldPolicy.SURROGATE if args.surrogate else MissingFieldPolicy.STRICT
        engine = TechnicalIndicatorEngine(policy=policy)
        report = engine.process(df, snapshot=snapshot)

        print_indicator_report(report)

        if args.output:
            with open(args.output, "w", encoding="utf-8") as fh:
                json.dump(report.to_dict(), fh, indent=2)
            logger.info(f"Saved report to {args.output}")

        return 0

    except Exception as e:
        logger.error(f"Processing failed: {e}")
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    import sys
    sys.exit(main())
