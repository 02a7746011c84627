"""Momentum scoring: fuses technical and fundamental analysis into one decision signal."""

import logging
from typing import Callable, List, Optional, Tuple

from ..domain.models import (
    FundamentalAnalysis,
    Grade,
    MomentumScore,
    RiskLevel,
    TechnicalIndicators,
    TradeSignal,
    TrendSignal,
    VolumeSignal,
    ZoneSignal,
)
from ..utils import clamp, round_half_up, round_int

logger = logging.getLogger(__name__)

TECHNICAL_WEIGHT = 0.6
FUNDAMENTAL_WEIGHT = 0.4
MAX_MULTIPLIER = 10.0
MIN_CONFIDENCE = 20
MAX_CONFIDENCE = 95


# Each rule returns a 0-100 sub-score, or None when its indicator is unavailable.
IndicatorRule = Callable[[TechnicalIndicators], Optional[float]]


def _rsi_rule(ta: TechnicalIndicators) -> Optional[float]:
    if ta.rsi is None:
        return None
    if ta.rsi < 30:
        return 85  # oversold = buying opportunity
    if ta.rsi < 40:
        return 70
    if ta.rsi > 70:
        return 25
    if ta.rsi > 60:
        return 40
    return 55


def _macd_rule(ta: TechnicalIndicators) -> Optional[float]:
    if ta.macd is None:
        return None
    if ta.macd.signal == TrendSignal.BULLISH:
        return 80 if ta.macd.histogram > 0 else 65
    if ta.macd.signal == TrendSignal.BEARISH:
        return 20 if ta.macd.histogram < 0 else 35
    return 50


def _bollinger_rule(ta: TechnicalIndicators) -> Optional[float]:
    if ta.bollinger_bands is None:
        return None
    if ta.bollinger_bands.signal == ZoneSignal.OVERSOLD:
        return 80
    if ta.bollinger_bands.signal == ZoneSignal.OVERBOUGHT:
        return 25
    return 55


def _sma_rule(ta: TechnicalIndicators) -> Optional[float]:
    if ta.sma is None:
        return None
    if ta.sma.golden_cross:
        return 90
    if ta.sma.death_cross:
        return 15
    return 50


def _ema_rule(ta: TechnicalIndicators) -> Optional[float]:
    if ta.ema is None:
        return None
    return 75 if ta.ema.signal == TrendSignal.BULLISH else 30


def _volume_rule(ta: TechnicalIndicators) -> Optional[float]:
    if ta.volume_analysis is None:
        return None
    if ta.volume_analysis.signal == VolumeSignal.HIGH:
        return 80
    if ta.volume_analysis.signal == VolumeSignal.LOW:
        return 30
    return 50


def _stochastic_rule(ta: TechnicalIndicators) -> Optional[float]:
    if ta.stochastic is None:
        return None
    if ta.stochastic.signal == ZoneSignal.OVERSOLD:
        return 80
    if ta.stochastic.signal == ZoneSignal.OVERBOUGHT:
        return 25
    return 50


def _momentum_rule(ta: TechnicalIndicators) -> Optional[float]:
    if ta.momentum is None:
        return None
    return 70 if ta.momentum > 0 else 30


TECHNICAL_RULES: List[Tuple[str, int, IndicatorRule]] = [
    ("rsi", 20, _rsi_rule),
    ("macd", 20, _macd_rule),
    ("bollinger_bands", 15, _bollinger_rule),
    ("sma", 15, _sma_rule),
    ("ema", 10, _ema_rule),
    ("volume", 10, _volume_rule),
    ("stochastic", 5, _stochastic_rule),
    ("momentum", 5, _momentum_rule),
]


def calculate_technical_score(ta: TechnicalIndicators) -> int:
    """
    Weighted average over the indicators that are present.

    Missing indicators drop out of both numerator and denominator, so the
    score is always re-normalised over the available weight (50 if none).
    """
    total = 0.0
    available_weight = 0
    for _name, weight, rule in TECHNICAL_RULES:
        sub_score = rule(ta)
        if sub_score is None:
            continue
        total += sub_score * weight
        available_weight += weight

    if available_weight == 0:
        return 50
    return round_int(total / available_weight)


def get_grade(score: float) -> Grade:
    """Letter grade for an overall score."""
    if score >= 90:
        return Grade.A_PLUS
    if score >= 80:
        return Grade.A
    if score >= 70:
        return Grade.B_PLUS
    if score >= 60:
        return Grade.B
    if score >= 50:
        return Grade.C_PLUS
    if score >= 40:
        return Grade.C
    if score >= 30:
        return Grade.D
    return Grade.F


def get_signal(score: float) -> TradeSignal:
    """Trade signal for an overall score."""
    if score >= 80:
        return TradeSignal.STRONG_BUY
    if score >= 65:
        return TradeSignal.BUY
    if score >= 45:
        return TradeSignal.HOLD
    if score >= 30:
        return TradeSignal.SELL
    return TradeSignal.STRONG_SELL


def get_risk_level(ta: TechnicalIndicators, fa: FundamentalAnalysis) -> RiskLevel:
    """Bucket an additive risk score built from size, volatility, RSI extremes and backing."""
    risk_score = 0

    if fa.market_cap_score < 30:
        risk_score += 3
    elif fa.market_cap_score < 50:
        risk_score += 2
    elif fa.market_cap_score < 70:
        risk_score += 1

    bands = ta.bollinger_bands
    if bands is not None and bands.bandwidth > 0.15:
        risk_score += 2
    elif bands is not None and bands.bandwidth > 0.08:
        risk_score += 1

    if ta.rsi is not None and (ta.rsi > 85 or ta.rsi < 15):
        risk_score += 2
    elif ta.rsi is not None and (ta.rsi > 75 or ta.rsi < 25):
        risk_score += 1

    if fa.developer_score < 30:
        risk_score += 1
    if fa.community_score < 30:
        risk_score += 1

    if risk_score >= 7:
        return RiskLevel.EXTREME
    if risk_score >= 5:
        return RiskLevel.HIGH
    if risk_score >= 3:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def calculate_potential_multiplier(
    ta: TechnicalIndicators,
    fa: FundamentalAnalysis,
    price_change_30d: float,
) -> float:
    """Speculative upside estimate in [1.0, 10.0], one decimal."""
    base = 1.0

    if ta.rsi is not None and ta.rsi < 30 and fa.overall_fundamental_score > 60:
        base += 2.0
    elif ta.rsi is not None and ta.rsi < 40:
        base += 1.0

    if ta.macd is not None and ta.macd.signal == TrendSignal.BULLISH:
        base += 0.5

    if fa.ath_recovery_potential > 80:
        base += 1.5
    elif fa.ath_recovery_potential > 60:
        base += 0.8

    if ta.volume_analysis is not None and ta.volume_analysis.signal == VolumeSignal.HIGH:
        base += 0.5

    if price_change_30d < -30:
        base += 1.0  # bounce potential
    elif price_change_30d > 50:
        base -= 0.5  # already extended

    if fa.community_score > 70 and fa.developer_score > 70:
        base += 0.5

    return round_half_up(clamp(base, 1.0, MAX_MULTIPLIER), 1)


def calculate_confidence(ta: TechnicalIndicators, fa: FundamentalAnalysis) -> int:
    """Confidence (20-95): indicator coverage, directional agreement and fundamental data."""
    confidence = 50

    # More indicators available = higher confidence
    if ta.rsi is not None:
        confidence += 5
    if ta.macd is not None:
        confidence += 5
    if ta.bollinger_bands is not None:
        confidence += 5
    if ta.sma is not None:
        confidence += 3
    if ta.ema is not None:
        confidence += 3
    if ta.volume_analysis is not None:
        confidence += 5
    if ta.stochastic is not None:
        confidence += 3

    directions: List[TrendSignal] = []
    if ta.rsi is not None:
        directions.append(TrendSignal.BULLISH if ta.rsi < 50 else TrendSignal.BEARISH)
    if ta.macd is not None:
        directions.append(ta.macd.signal)
    if ta.ema is not None:
        directions.append(ta.ema.signal)

    bullish = directions.count(TrendSignal.BULLISH)
    bearish = directions.count(TrendSignal.BEARISH)

    # An empty direction list counts as unanimous.
    if bullish == len(directions) or bearish == len(directions):
        confidence += 15
    elif bullish >= len(directions) * 0.7 or bearish >= len(directions) * 0.7:
        confidence += 8

    if fa.community_score > 0:
        confidence += 3
    if fa.developer_score > 0:
        confidence += 3

    return int(clamp(confidence, MIN_CONFIDENCE, MAX_CONFIDENCE))


def calculate(
    ta: TechnicalIndicators,
    fa: FundamentalAnalysis,
    price_change_30d: float = 0.0,
) -> MomentumScore:
    """
    Complete momentum score for one asset.

    Args:
        ta: Technical indicators
        fa: Fundamental analysis
        price_change_30d: 30-day price change in percent

    Returns:
        MomentumScore (overall = 60% technical + 40% fundamental)
    """
    technical_score = calculate_technical_score(ta)
    fundamental_score = fa.overall_fundamental_score
    overall_score = round_int(
        technical_score * TECHNICAL_WEIGHT + fundamental_score * FUNDAMENTAL_WEIGHT
    )

    return MomentumScore(
        technical_score=technical_score,
        fundamental_score=fundamental_score,
        overall_score=overall_score,
        grade=get_grade(overall_score),
        signal=get_signal(overall_score),
        risk_level=get_risk_level(ta, fa),
        potential_multiplier=calculate_potential_multiplier(ta, fa, price_change_30d),
        confidence=calculate_confidence(ta, fa),
    )
