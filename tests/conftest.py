import math

import pytest

from screener.domain.models import (
    FundamentalAnalysis,
    MarketSnapshot,
    MomentumScore,
    RiskLevel,
    ScannedCoin,
    SupplyMetrics,
    TechnicalIndicators,
)
from screener.analytics.momentum import get_grade, get_signal


def wave_prices(n: int = 168, base: float = 100.0, amplitude: float = 5.0, drift: float = 0.05):
    """Hourly-like series with both gains and losses."""
    return [base + amplitude * math.sin(i / 6) + drift * i for i in range(n)]


def build_snapshot(coin_id: str = "bitcoin", **overrides) -> MarketSnapshot:
    values = dict(
        id=coin_id,
        symbol=coin_id[:3],
        name=coin_id.title(),
        image=f"https://img.example/{coin_id}.png",
        current_price=100.0,
        market_cap=1_000_000_000.0,
        market_cap_rank=50,
        total_volume=50_000_000.0,
        price_change_24h=1.5,
        price_change_7d=4.0,
        price_change_30d=-12.0,
        circulating_supply=19_000_000.0,
        total_supply=21_000_000.0,
        max_supply=21_000_000.0,
        ath=200.0,
        ath_change_percentage=-50.0,
        sparkline=tuple(wave_prices()),
        last_updated="2026-01-01T00:00:00.000Z",
    )
    values.update(overrides)
    return MarketSnapshot(**values)


def build_fundamentals(**overrides) -> FundamentalAnalysis:
    values = dict(
        market_cap_score=65,
        volume_to_market_cap_ratio=0.05,
        supply_metrics=SupplyMetrics(circulating_ratio=0.9, is_deflationary=True),
        community_score=50,
        developer_score=50,
        sentiment_score=50,
        ath_recovery_potential=45,
        overall_fundamental_score=55,
    )
    values.update(overrides)
    return FundamentalAnalysis(**values)


def build_scanned_coin(
    coin_id: str,
    overall: int = 60,
    risk: RiskLevel = RiskLevel.MEDIUM,
    potential: float = 2.0,
    confidence: int = 70,
    market_cap: float = 1_000_000_000.0,
    change_7d: float = 5.0,
) -> ScannedCoin:
    score = MomentumScore(
        technical_score=overall,
        fundamental_score=overall,
        overall_score=overall,
        grade=get_grade(overall),
        signal=get_signal(overall),
        risk_level=risk,
        potential_multiplier=potential,
        confidence=confidence,
    )
    return ScannedCoin(
        id=coin_id,
        symbol=coin_id[:3],
        name=coin_id.title(),
        image="",
        current_price=1.0,
        market_cap=market_cap,
        market_cap_rank=10,
        volume_24h=1_000_000.0,
        price_change_24h=0.0,
        price_change_7d=change_7d,
        price_change_30d=0.0,
        sparkline=(),
        technical_indicators=TechnicalIndicators(),
        fundamental_analysis=build_fundamentals(),
        momentum_score=score,
    )


@pytest.fixture
def make_snapshot():
    return build_snapshot


@pytest.fixture
def make_coin():
    return build_scanned_coin


@pytest.fixture
def make_fundamentals():
    return build_fundamentals
