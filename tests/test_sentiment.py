import itertools

import pytest

from market_signals.config import SentimentModel
from market_signals.indicator_types import Trend
from market_signals.price_data import MarketSnapshot, PriceChange
from market_signals.sentiment import (
    FearGreedLevel,
    PriceDirection,
    RiskLevel,
    SentimentLevel,
    SentimentProfile,
    SentimentScorer,
    TradingAction,
    score_snapshot,
)


def neutral_snapshot(**overrides):
    fields = dict(
        price_usd=1.0,
        price_change=PriceChange(h1=0.0, h6=0.0, h24=0.0),
        volume_24h=40_000_000,
        liquidity_usd=350_000_000,
        buys_24h=1000,
        sells_24h=1000,
    )
    fields.update(overrides)
    return MarketSnapshot(**fields)


# =============================================================================
# SCORING
# =============================================================================

def test_strong_rally_is_most_bullish(bullish_payload):
    result = score_snapshot(MarketSnapshot.from_dict(bullish_payload))
    sub = result.sub_scores

    assert result.buy_ratio == 0.75
    assert (sub.momentum, sub.trend, sub.volume, sub.pressure) == (100, 100, 100, 100)
    assert sub.liquidity == pytest.approx((400 / 350 - 1) / 0.3 * 100)
    assert result.score == pytest.approx(90 + 0.1 * sub.liquidity)
    assert result.level is SentimentLevel.VERY_BULLISH
    assert result.fear_greed.level is FearGreedLevel.EXTREME_GREED
    assert result.trading.action is TradingAction.STRONG_BUY


def test_zero_transactions_give_neutral_pressure():
    result = score_snapshot(neutral_snapshot(buys_24h=0, sells_24h=0))

    assert result.buy_ratio == 0.5
    assert result.sub_scores.pressure == 0.0


def test_neutral_snapshot_scores_zero():
    result = score_snapshot(neutral_snapshot())

    assert result.score == pytest.approx(0.0)
    assert result.level is SentimentLevel.NEUTRAL
    assert result.fear_greed.index == pytest.approx(50.0)
    assert result.fear_greed.level is FearGreedLevel.NEUTRAL
    assert result.trading.action is TradingAction.HOLD
    assert all(f.status is Trend.NEUTRAL for f in result.factors)


def test_trend_counts_sign_agreement():
    scorer = SentimentScorer()
    mixed = neutral_snapshot(price_change=PriceChange(h1=1.0, h6=-2.0, h24=3.0))
    flat = neutral_snapshot(price_change=PriceChange(h1=0.0, h6=0.0, h24=-3.0))

    assert scorer.sub_scores(mixed).trend == pytest.approx(100 / 3)
    assert scorer.sub_scores(flat).trend == pytest.approx(-100 / 3)


EXTREMES = [-1000.0, 0.0, 1000.0]


@pytest.mark.parametrize("change, volume, liquidity, buys", list(itertools.product(
    EXTREMES, [0.0, 1e12], [0.0, 1e13], [0, 10**9],
)))
def test_scores_stay_bounded(change, volume, liquidity, buys):
    snapshot = MarketSnapshot(
        price_usd=1.0,
        price_change_24h=change,
        price_change=PriceChange(h1=change, h6=-change, h24=change),
        volume_24h=volume,
        liquidity_usd=liquidity,
        buys_24h=buys,
        sells_24h=1,
    )
    result = score_snapshot(snapshot)

    assert -100 <= result.score <= 100
    assert all(-100 <= v <= 100 for v in result.sub_scores.as_dict().values())
    assert 0 <= result.fear_greed.index <= 100


@pytest.mark.parametrize("score, level", [
    (40, SentimentLevel.VERY_BULLISH),
    (39.9, SentimentLevel.BULLISH),
    (15, SentimentLevel.BULLISH),
    (0, SentimentLevel.NEUTRAL),
    (-15, SentimentLevel.NEUTRAL),
    (-15.1, SentimentLevel.BEARISH),
    (-40, SentimentLevel.BEARISH),
    (-40.1, SentimentLevel.VERY_BEARISH),
])
def test_level_thresholds(score, level):
    assert SentimentScorer().classify_level(score) is level


@pytest.mark.parametrize("score, action", [
    (60, TradingAction.STRONG_BUY),
    (25, TradingAction.BUY),
    (24.9, TradingAction.HOLD),
    (-25, TradingAction.HOLD),
    (-25.1, TradingAction.SELL),
    (-60.1, TradingAction.STRONG_SELL),
])
def test_action_thresholds(score, action):
    assert SentimentScorer().classify_action(score) is action


@pytest.mark.parametrize("score, level", [
    (60, FearGreedLevel.EXTREME_GREED),
    (20, FearGreedLevel.GREED),
    (0, FearGreedLevel.NEUTRAL),
    (-20, FearGreedLevel.NEUTRAL),
    (-40, FearGreedLevel.FEAR),
    (-61, FearGreedLevel.EXTREME_FEAR),
])
def test_fear_greed_thresholds(score, level):
    assert SentimentScorer().fear_greed(score).level is level


def test_weights_must_sum_to_one():
    with pytest.raises(ValueError):
        SentimentScorer(SentimentModel(trend_weight=0.5))


# =============================================================================
# TARGETS AND TRADING LEVELS
# =============================================================================

def test_bullish_targets(bullish_payload):
    result = score_snapshot(MarketSnapshot.from_dict(bullish_payload))
    targets = result.targets

    assert targets.short_term.direction is PriceDirection.UP
    assert targets.short_term.move_percent == pytest.approx(5.0)
    assert targets.short_term.target == pytest.approx(1.575)
    assert targets.short_term.low == pytest.approx(1.575 * 0.98)
    assert targets.short_term.confidence == 85
    assert targets.medium_term.move_percent == pytest.approx(15.0)
    assert targets.medium_term.high == pytest.approx(1.725 * 1.05)
    assert targets.medium_term.confidence == 75
    assert targets.key_levels.support == pytest.approx(1.5 * 0.83)
    assert targets.key_levels.resistance == pytest.approx(1.5 * 1.17)
    assert targets.key_levels.pivot == pytest.approx(1.5)
    # 24h move above 10% (30) and one-sided order flow (20)
    assert targets.risk_points == 50
    assert targets.risk_level is RiskLevel.MEDIUM


def test_neutral_targets_are_sideways():
    targets = score_snapshot(neutral_snapshot()).targets

    assert targets.short_term.direction is PriceDirection.SIDEWAYS
    assert targets.short_term.target == pytest.approx(1.0)
    assert targets.short_term.confidence == 50
    assert targets.medium_term.confidence == 45
    assert targets.risk_level is RiskLevel.LOW


def test_thin_market_is_high_risk():
    snapshot = neutral_snapshot(
        price_change_24h=-20.0,
        volume_24h=1_000_000,
        liquidity_usd=10_000_000,
    )
    targets = score_snapshot(snapshot).targets
    assert targets.risk_points == 80
    assert targets.risk_level is RiskLevel.HIGH


def test_buy_levels(bullish_payload):
    signal = score_snapshot(MarketSnapshot.from_dict(bullish_payload)).trading

    assert signal.volatility == pytest.approx(0.15)
    assert (signal.entry_low, signal.entry_high) == pytest.approx((1.485, 1.515))
    assert signal.stop_loss == pytest.approx(1.5 * 0.83)
    assert signal.take_profits == pytest.approx((1.5 * 1.225, 1.5 * 1.375, 1.5 * 1.6))
    assert signal.risk_reward == pytest.approx(0.225 / 0.17)
    assert signal.confidence == 90


def test_hold_levels_mirror_short_side():
    signal = score_snapshot(neutral_snapshot()).trading

    assert signal.volatility == pytest.approx(0.03)
    assert signal.stop_loss == pytest.approx(1.05)
    assert signal.take_profits == pytest.approx((0.955, 0.925, 0.88))
    assert signal.risk_reward == pytest.approx(0.045 / 0.05)
    assert signal.confidence == 50


def test_crash_levels_never_go_negative():
    snapshot = neutral_snapshot(
        price_change=PriceChange(h1=-3.0, h6=-10.0, h24=-30.0),
        volume_24h=10_000_000,
        buys_24h=250,
        sells_24h=750,
    )
    signal = score_snapshot(snapshot).trading

    assert signal.action is TradingAction.STRONG_SELL
    assert signal.take_profits == pytest.approx((0.55, 0.25, 0.0))
    assert signal.stop_loss == pytest.approx(1.32)
    assert signal.risk_reward == pytest.approx(0.45 / 0.32)


def test_wide_rally_floors_stop_and_support():
    snapshot = neutral_snapshot(
        price_change=PriceChange(h1=3.0, h6=10.0, h24=120.0),
        volume_24h=70_000_000,
        buys_24h=750,
        sells_24h=250,
    )
    result = score_snapshot(snapshot)

    assert result.trading.action is TradingAction.STRONG_BUY
    assert result.trading.stop_loss == 0.0
    assert result.trading.risk_reward == pytest.approx(1.8)
    assert result.targets.key_levels.support == 0.0
    assert all(level >= 0 for level in result.trading.take_profits)


def test_zero_price_has_zero_risk_reward():
    signal = score_snapshot(neutral_snapshot(price_usd=0.0)).trading
    assert signal.risk_reward == 0.0


def test_optional_views_can_be_skipped():
    result = SentimentScorer().score(neutral_snapshot(), with_targets=False, with_trading_action=False)
    assert result.targets is None
    assert result.trading is None
    with pytest.raises(ValueError):
        result.label(SentimentProfile.TRADING_SIGNAL)


# =============================================================================
# PROFILES
# =============================================================================

def test_profiles_read_one_result(bullish_payload):
    result = score_snapshot(MarketSnapshot.from_dict(bullish_payload))

    assert result.label(SentimentProfile.AI_SENTIMENT) == "very_bullish"
    assert result.label(SentimentProfile.FEAR_GREED) == "extreme_greed"
    assert result.label(SentimentProfile.TRADING_SIGNAL) == "strong_buy"


def test_to_dict_is_plain(bullish_payload):
    payload = score_snapshot(MarketSnapshot.from_dict(bullish_payload)).to_dict()

    assert payload["level"] == "very_bullish"
    assert payload["trading"]["action"] == "strong_buy"
    assert len(payload["trading"]["take_profits"]) == 3
    assert [f["name"] for f in payload["factors"]] == [
        "trend", "momentum", "volume", "pressure", "liquidity",
    ]
