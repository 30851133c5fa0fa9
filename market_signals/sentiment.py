"""
Composite Sentiment Scorer

Turns one MarketSnapshot into a bounded directional score plus the derived
views consumed by the dashboard (AI sentiment level, fear/greed index, price
targets and a trading action). Every view is read from the same
SentimentResult; consumers differ only in which label they select.

SUB-SCORES (each clipped to [-100, 100])
    momentum   = (h1 - h6/6) / momentum_scale * 100
    trend      = mean(sign(h1), sign(h6), sign(h24)) * 100
    volume     = (volume24h / reference_volume - 1) / volume_band * 100
    pressure   = (buy_ratio - 0.5) / pressure_band * 100
    liquidity  = (liquidity / reference_liquidity - 1) / liquidity_band * 100

FINAL SCORE
    weighted sum of the sub-scores, clipped to [-100, 100]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

import numpy as np

from market_signals.config import DEFAULT_SENTIMENT_MODEL, SentimentModel
from market_signals.indicator_types import Trend
from market_signals.price_data import MarketSnapshot

logger = logging.getLogger(__name__)


# =============================================================================
# ENUMERATIONS
# =============================================================================

class SentimentLevel(Enum):
    """Five-way AI sentiment label."""
    VERY_BULLISH = "very_bullish"
    BULLISH = "bullish"
    NEUTRAL = "neutral"
    BEARISH = "bearish"
    VERY_BEARISH = "very_bearish"


class FearGreedLevel(Enum):
    """Five-way fear/greed label."""
    EXTREME_GREED = "extreme_greed"
    GREED = "greed"
    NEUTRAL = "neutral"
    FEAR = "fear"
    EXTREME_FEAR = "extreme_fear"


class TradingAction(Enum):
    """Five-way trading recommendation."""
    STRONG_BUY = "strong_buy"
    BUY = "buy"
    HOLD = "hold"
    SELL = "sell"
    STRONG_SELL = "strong_sell"

    @property
    def is_buy(self) -> bool:
        return self in (TradingAction.STRONG_BUY, TradingAction.BUY)


class RiskLevel(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PriceDirection(Enum):
    UP = "up"
    DOWN = "down"
    SIDEWAYS = "sideways"


class SentimentProfile(Enum):
    """Presentation profile selecting which label a consumer reads."""
    AI_SENTIMENT = "AI_SENTIMENT"
    FEAR_GREED = "FEAR_GREED"
    TRADING_SIGNAL = "TRADING_SIGNAL"


# =============================================================================
# RESULT RECORDS
# =============================================================================

@dataclass(frozen=True)
class SubScores:
    """The five bounded inputs to the composite score."""
    momentum: float
    trend: float
    volume: float
    pressure: float
    liquidity: float

    def as_dict(self) -> Dict[str, float]:
        return {
            "momentum": self.momentum,
            "trend": self.trend,
            "volume": self.volume,
            "pressure": self.pressure,
            "liquidity": self.liquidity,
        }


@dataclass(frozen=True)
class FactorSignal:
    """One sub-score with its weight, contribution and status."""
    name: str
    score: float
    weight: float
    contribution: float
    status: Trend


@dataclass(frozen=True)
class FearGreedReading:
    index: float            # 0 = extreme fear, 100 = extreme greed
    level: FearGreedLevel


@dataclass(frozen=True)
class HorizonTarget:
    """Price target for one horizon."""
    direction: PriceDirection
    move_percent: float
    target: float
    low: float
    high: float
    confidence: float


@dataclass(frozen=True)
class KeyLevels:
    support: float
    resistance: float
    pivot: float


@dataclass(frozen=True)
class PriceTargets:
    """Short/medium-term targets, key levels and risk assessment."""
    short_term: HorizonTarget
    medium_term: HorizonTarget
    key_levels: KeyLevels
    risk_level: RiskLevel
    risk_points: float


@dataclass(frozen=True)
class TradingSignal:
    """Trading recommendation with entry zone, stop and take-profit ladder."""
    action: TradingAction
    confidence: float
    volatility: float
    entry_low: float
    entry_high: float
    stop_loss: float
    take_profits: Tuple[float, float, float]
    risk_reward: float


@dataclass(frozen=True)
class SentimentResult:
    """Everything derived from one snapshot."""
    score: float
    level: SentimentLevel
    sub_scores: SubScores
    factors: Tuple[FactorSignal, ...]
    fear_greed: FearGreedReading
    buy_ratio: float
    targets: Optional[PriceTargets] = None
    trading: Optional[TradingSignal] = None

    def label(self, profile: SentimentProfile) -> str:
        """Discrete label for a presentation profile."""
        if profile is SentimentProfile.AI_SENTIMENT:
            return self.level.value
        if profile is SentimentProfile.FEAR_GREED:
            return self.fear_greed.level.value
        if profile is SentimentProfile.TRADING_SIGNAL:
            if self.trading is None:
                raise ValueError("Result was scored without a trading action")
            return self.trading.action.value
        raise ValueError(f"Unknown profile: {profile!r}")

    def to_dict(self) -> Dict:
        payload = {
            "score": self.score,
            "level": self.level.value,
            "buy_ratio": self.buy_ratio,
            "sub_scores": self.sub_scores.as_dict(),
            "factors": [
                {
                    "name": f.name,
                    "score": f.score,
                    "weight": f.weight,
                    "contribution": f.contribution,
                    "status": f.status.value,
                }
                for f in self.factors
            ],
            "fear_greed": {
                "index": self.fear_greed.index,
                "level": self.fear_greed.level.value,
            },
        }
        if self.targets is not None:
            t = self.targets
            payload["targets"] = {
                "short_term": _horizon_dict(t.short_term),
                "medium_term": _horizon_dict(t.medium_term),
                "key_levels": {
                    "support": t.key_levels.support,
                    "resistance": t.key_levels.resistance,
                    "pivot": t.key_levels.pivot,
                },
                "risk_level": t.risk_level.value,
                "risk_points": t.risk_points,
            }
        if self.trading is not None:
            s = self.trading
            payload["trading"] = {
                "action": s.action.value,
                "confidence": s.confidence,
                "volatility": s.volatility,
                "entry_zone": [s.entry_low, s.entry_high],
                "stop_loss": s.stop_loss,
                "take_profits": list(s.take_profits),
                "risk_reward": s.risk_reward,
            }
        return payload


def _horizon_dict(target: HorizonTarget) -> Dict:
    return {
        "direction": target.direction.value,
        "move_percent": target.move_percent,
        "target": target.target,
        "range": [target.low, target.high],
        "confidence": target.confidence,
    }


# =============================================================================
# SCORER
# =============================================================================

class SentimentScorer:
    """
    Single scorer driven by one SentimentModel.

    Parameters
    ----------
    model : SentimentModel
        Weights, reference constants and thresholds
    """

    def __init__(self, model: SentimentModel = DEFAULT_SENTIMENT_MODEL):
        total = sum(model.weights)
        if not np.isclose(total, 1.0):
            raise ValueError(f"Sentiment weights must sum to 1.0, got {total}")
        self.model = model

    def _bound(self, value: float) -> float:
        b = self.model.score_bound
        return float(np.clip(value, -b, b))

    # -------------------------------------------------------------------------
    # Sub-scores
    # -------------------------------------------------------------------------

    def sub_scores(self, snapshot: MarketSnapshot) -> SubScores:
        m = self.model
        h1, h6, h24 = snapshot.change_1h, snapshot.change_6h, snapshot.change_24h

        momentum = (h1 - h6 / 6) / m.momentum_scale * 100
        trend = float(np.mean(np.sign([h1, h6, h24]))) * 100
        volume = (snapshot.volume_24h / m.reference_volume - 1) / m.volume_band * 100
        pressure = (snapshot.buy_ratio - 0.5) / m.pressure_band * 100
        liquidity = (snapshot.liquidity_usd / m.reference_liquidity - 1) / m.liquidity_band * 100

        return SubScores(
            momentum=self._bound(momentum),
            trend=self._bound(trend),
            volume=self._bound(volume),
            pressure=self._bound(pressure),
            liquidity=self._bound(liquidity),
        )

    def factor_status(self, score: float) -> Trend:
        if score > self.model.factor_threshold:
            return Trend.BULLISH
        if score < -self.model.factor_threshold:
            return Trend.BEARISH
        return Trend.NEUTRAL

    def factors(self, sub: SubScores) -> Tuple[FactorSignal, ...]:
        m = self.model
        weighted = (
            ("trend", sub.trend, m.trend_weight),
            ("momentum", sub.momentum, m.momentum_weight),
            ("volume", sub.volume, m.volume_weight),
            ("pressure", sub.pressure, m.pressure_weight),
            ("liquidity", sub.liquidity, m.liquidity_weight),
        )
        return tuple(
            FactorSignal(
                name=name,
                score=score,
                weight=weight,
                contribution=score * weight,
                status=self.factor_status(score),
            )
            for name, score, weight in weighted
        )

    # -------------------------------------------------------------------------
    # Labels
    # -------------------------------------------------------------------------

    def classify_level(self, score: float) -> SentimentLevel:
        very_bull, bull, bear, very_bear = self.model.level_thresholds
        if score >= very_bull:
            return SentimentLevel.VERY_BULLISH
        if score >= bull:
            return SentimentLevel.BULLISH
        if score >= bear:
            return SentimentLevel.NEUTRAL
        if score >= very_bear:
            return SentimentLevel.BEARISH
        return SentimentLevel.VERY_BEARISH

    def fear_greed(self, score: float) -> FearGreedReading:
        index = (score + self.model.score_bound) / (2 * self.model.score_bound) * 100
        extreme_greed, greed, neutral, fear = self.model.fear_greed_thresholds
        if index >= extreme_greed:
            level = FearGreedLevel.EXTREME_GREED
        elif index >= greed:
            level = FearGreedLevel.GREED
        elif index >= neutral:
            level = FearGreedLevel.NEUTRAL
        elif index >= fear:
            level = FearGreedLevel.FEAR
        else:
            level = FearGreedLevel.EXTREME_FEAR
        return FearGreedReading(index=index, level=level)

    def classify_action(self, score: float) -> TradingAction:
        strong_buy, buy, sell, strong_sell = self.model.action_thresholds
        if score >= strong_buy:
            return TradingAction.STRONG_BUY
        if score >= buy:
            return TradingAction.BUY
        if score >= sell:
            return TradingAction.HOLD
        if score >= strong_sell:
            return TradingAction.SELL
        return TradingAction.STRONG_SELL

    # -------------------------------------------------------------------------
    # Price targets
    # -------------------------------------------------------------------------

    @staticmethod
    def _horizon(
        price: float,
        score: float,
        threshold: float,
        rate: float,
        cap: float,
        band: float,
        confidence: float
    ) -> HorizonTarget:
        if score > threshold:
            direction = PriceDirection.UP
        elif score < -threshold:
            direction = PriceDirection.DOWN
        else:
            direction = PriceDirection.SIDEWAYS

        move = 0.0
        if direction is not PriceDirection.SIDEWAYS:
            move = min(cap, abs(score) * rate)
            if direction is PriceDirection.DOWN:
                move = -move

        target = price * (1 + move / 100)
        return HorizonTarget(
            direction=direction,
            move_percent=move,
            target=target,
            low=target * (1 - band),
            high=target * (1 + band),
            confidence=confidence,
        )

    def risk_points(self, snapshot: MarketSnapshot) -> float:
        m = self.model
        points = 0.0
        if abs(snapshot.change_24h) > 10:
            points += 30
        if snapshot.volume_24h / m.reference_volume < 0.6:
            points += 25
        if snapshot.liquidity_usd < m.liquidity_floor:
            points += 25
        if abs(snapshot.buy_ratio - 0.5) > 0.2:
            points += 20
        return points

    def price_targets(self, snapshot: MarketSnapshot, score: float) -> PriceTargets:
        m = self.model
        price = snapshot.price_usd
        strength = abs(score)

        short_term = self._horizon(
            price, score, m.short_term_threshold, m.short_term_rate,
            m.short_term_cap, m.short_term_range,
            confidence=float(np.clip(50 + strength, 40, 85)),
        )
        medium_term = self._horizon(
            price, score, m.medium_term_threshold, m.medium_term_rate,
            m.medium_term_cap, m.medium_term_range,
            confidence=float(np.clip(45 + strength * 0.5, 35, 75)),
        )

        margin = m.key_level_margin + abs(snapshot.change_24h) / 100
        support = max(0.0, price * (1 - margin))
        resistance = price * (1 + margin)
        key_levels = KeyLevels(
            support=support,
            resistance=resistance,
            pivot=(support + resistance + price) / 3,
        )

        points = self.risk_points(snapshot)
        if points > 50:
            risk = RiskLevel.HIGH
        elif points > 25:
            risk = RiskLevel.MEDIUM
        else:
            risk = RiskLevel.LOW

        return PriceTargets(
            short_term=short_term,
            medium_term=medium_term,
            key_levels=key_levels,
            risk_level=risk,
            risk_points=points,
        )

    # -------------------------------------------------------------------------
    # Trading action
    # -------------------------------------------------------------------------

    def trading_signal(self, snapshot: MarketSnapshot, score: float) -> TradingSignal:
        """
        Build the trading recommendation.

        Buy actions place the stop below price and take-profits above it;
        hold and sell actions mirror the ladder on the short side. Levels
        never go below zero, so a wide 24h move can leave the deepest
        short-side take-profits at 0. The risk/reward ratio is anchored on
        the first take-profit level.
        """
        m = self.model
        price = snapshot.price_usd
        action = self.classify_action(score)
        volatility = max(m.base_volatility, abs(snapshot.change_24h) / 100)

        if action.is_buy:
            stop_loss = max(0.0, price * (1 - volatility - m.stop_margin))
            take_profits = tuple(price * (1 + volatility * k) for k in m.take_profit_multiples)
        else:
            stop_loss = price * (1 + volatility + m.stop_margin)
            take_profits = tuple(
                max(0.0, price * (1 - volatility * k)) for k in m.take_profit_multiples
            )

        loss = abs(price - stop_loss)
        profit = abs(take_profits[0] - price)
        risk_reward = profit / loss if loss > 0 else 0.0

        return TradingSignal(
            action=action,
            confidence=float(np.clip(50 + abs(score) * 0.5, 40, 90)),
            volatility=volatility,
            entry_low=price * (1 - m.entry_band),
            entry_high=price * (1 + m.entry_band),
            stop_loss=stop_loss,
            take_profits=take_profits,
            risk_reward=risk_reward,
        )

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    def score(
        self,
        snapshot: MarketSnapshot,
        with_targets: bool = True,
        with_trading_action: bool = True
    ) -> SentimentResult:
        """
        Score one snapshot.

        Parameters
        ----------
        snapshot : MarketSnapshot
            Point-in-time market aggregate
        with_targets : bool
            Compute price targets and risk level
        with_trading_action : bool
            Compute the trading recommendation

        Returns
        -------
        SentimentResult
            Bounded score with every derived view
        """
        sub = self.sub_scores(snapshot)
        factors = self.factors(sub)
        score = self._bound(sum(f.contribution for f in factors))
        level = self.classify_level(score)

        logger.debug(f"Sentiment score {score:.2f} ({level.value})")

        return SentimentResult(
            score=score,
            level=level,
            sub_scores=sub,
            factors=factors,
            fear_greed=self.fear_greed(score),
            buy_ratio=snapshot.buy_ratio,
            targets=self.price_targets(snapshot, score) if with_targets else None,
            trading=self.trading_signal(snapshot, score) if with_trading_action else None,
        )


def score_snapshot(
    snapshot: MarketSnapshot,
    model: SentimentModel = DEFAULT_SENTIMENT_MODEL,
    with_targets: bool = True,
    with_trading_action: bool = True
) -> SentimentResult:
    """Functional shortcut for ``SentimentScorer(model).score(snapshot)``."""
    return SentimentScorer(model).score(snapshot, with_targets, with_trading_action)
