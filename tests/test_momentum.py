import itertools
import math

from screener.analytics.momentum import (
    calculate,
    calculate_confidence,
    calculate_potential_multiplier,
    calculate_technical_score,
    get_grade,
    get_risk_level,
    get_signal,
)
from screener.domain.models import (
    BollingerBands,
    EMABundle,
    Grade,
    MACDResult,
    RiskLevel,
    SMABundle,
    StochasticResult,
    TechnicalIndicators,
    TradeSignal,
    TrendSignal,
    VolumeAnalysis,
    VolumeSignal,
    ZoneSignal,
)

MACD_BULL = MACDResult(macd_line=1.0, signal_line=0.5, histogram=0.5, signal=TrendSignal.BULLISH)
BANDS = BollingerBands(
    upper=110.0, middle=100.0, lower=90.0, percent_b=0.1, bandwidth=0.2, signal=ZoneSignal.OVERSOLD
)
SMA = SMABundle(sma20=100.0, sma50=101.0, sma200=99.0, golden_cross=True, death_cross=False)
EMA = EMABundle(ema12=101.0, ema26=100.0, signal=TrendSignal.BULLISH)
VOLUME_HIGH = VolumeAnalysis(
    current_volume=300.0, average_volume=100.0, volume_ratio=3.0, signal=VolumeSignal.HIGH
)
STOCH = StochasticResult(k=10.0, d=12.0, signal=ZoneSignal.OVERSOLD)

OPTIONAL_FIELDS = {
    "rsi": 25.0,
    "macd": MACD_BULL,
    "bollinger_bands": BANDS,
    "sma": SMA,
    "ema": EMA,
    "volume_analysis": VOLUME_HIGH,
    "stochastic": STOCH,
    "momentum": 3.0,
}


class TestTechnicalScore:
    def test_no_indicators_is_neutral(self):
        assert calculate_technical_score(TechnicalIndicators()) == 50

    def test_renormalises_over_present_weight(self):
        assert calculate_technical_score(TechnicalIndicators(rsi=25.0)) == 85
        # (85*20 + 80*20) / 40 = 82.5 -> 83
        assert calculate_technical_score(TechnicalIndicators(rsi=25.0, macd=MACD_BULL)) == 83


class TestOverallScore:
    def test_overall_is_rounded_weighted_blend_for_every_indicator_subset(self, make_fundamentals):
        names = list(OPTIONAL_FIELDS)
        for mask in itertools.product([False, True], repeat=len(names)):
            kwargs = {name: OPTIONAL_FIELDS[name] for name, keep in zip(names, mask) if keep}
            ta = TechnicalIndicators(**kwargs)
            for fundamental_score in (0, 37, 55, 100):
                fa = make_fundamentals(overall_fundamental_score=fundamental_score)
                score = calculate(ta, fa, 0.0)
                expected = math.floor(score.technical_score * 0.6 + fundamental_score * 0.4 + 0.5)
                assert score.overall_score == expected
                assert 1.0 <= score.potential_multiplier <= 10.0
                assert 20 <= score.confidence <= 95

    def test_grade_and_signal_follow_overall(self, make_fundamentals):
        score = calculate(TechnicalIndicators(), make_fundamentals(overall_fundamental_score=50))
        assert score.overall_score == 50
        assert score.grade == Grade.C_PLUS
        assert score.signal == TradeSignal.HOLD


class TestGradeAndSignal:
    def test_grade_thresholds(self):
        assert get_grade(90) == Grade.A_PLUS
        assert get_grade(89) == Grade.A
        assert get_grade(70) == Grade.B_PLUS
        assert get_grade(30) == Grade.D
        assert get_grade(29) == Grade.F

    def test_signal_thresholds(self):
        assert get_signal(80) == TradeSignal.STRONG_BUY
        assert get_signal(79) == TradeSignal.BUY
        assert get_signal(64) == TradeSignal.HOLD
        assert get_signal(44) == TradeSignal.SELL
        assert get_signal(29) == TradeSignal.STRONG_SELL


class TestRiskLevel:
    def test_small_volatile_extreme_rsi_is_extreme(self, make_fundamentals):
        ta = TechnicalIndicators(rsi=90.0, bollinger_bands=BANDS)
        fa = make_fundamentals(market_cap_score=20)
        assert get_risk_level(ta, fa) == RiskLevel.EXTREME

    def test_large_cap_calm_is_low(self, make_fundamentals):
        fa = make_fundamentals(market_cap_score=95)
        assert get_risk_level(TechnicalIndicators(rsi=50.0), fa) == RiskLevel.LOW

    def test_weak_backing_adds_risk(self, make_fundamentals):
        fa = make_fundamentals(market_cap_score=60, developer_score=10, community_score=10)
        assert get_risk_level(TechnicalIndicators(), fa) == RiskLevel.MEDIUM


class TestPotentialMultiplier:
    def test_stacked_bonuses(self, make_fundamentals):
        ta = TechnicalIndicators(rsi=20.0, macd=MACD_BULL, volume_analysis=VOLUME_HIGH)
        fa = make_fundamentals(
            overall_fundamental_score=70,
            ath_recovery_potential=95,
            community_score=80,
            developer_score=80,
        )
        # 1 + 2 + 0.5 + 1.5 + 0.5 + 1 + 0.5
        assert calculate_potential_multiplier(ta, fa, -50.0) == 7.0

    def test_floor_is_one(self, make_fundamentals):
        fa = make_fundamentals(ath_recovery_potential=15)
        assert calculate_potential_multiplier(TechnicalIndicators(), fa, 60.0) == 1.0


class TestConfidence:
    def test_empty_directions_count_as_unanimous(self, make_fundamentals):
        fa = make_fundamentals(community_score=0, developer_score=0)
        assert calculate_confidence(TechnicalIndicators(), fa) == 65

    def test_full_coverage_is_capped(self, make_fundamentals):
        ta = TechnicalIndicators(**OPTIONAL_FIELDS)
        # 50 + 29 coverage + 15 agreement + 6 data = 100 -> 95
        assert calculate_confidence(ta, make_fundamentals()) == 95

    def test_split_directions(self, make_fundamentals):
        macd_bear = MACDResult(macd_line=-1.0, signal_line=0.0, histogram=-1.0, signal=TrendSignal.BEARISH)
        ta = TechnicalIndicators(rsi=25.0, macd=macd_bear, ema=EMA)
        # 50 + 5 + 5 + 3, 2/3 bullish is below 0.7, +6 data
        assert calculate_confidence(ta, make_fundamentals()) == 69
