import pytest

from screener.analytics.fundamental import (
    analyze,
    calculate_ath_recovery,
    calculate_community_score,
    calculate_developer_score,
    calculate_market_cap_score,
    calculate_sentiment_score,
    calculate_supply_metrics,
)
from screener.domain.models import CommunityData, DetailMetadata, DeveloperData


class TestWithoutDetail:
    def test_rank_5_capped_supply_example(self, make_snapshot):
        snapshot = make_snapshot(
            market_cap_rank=5,
            max_supply=21_000_000.0,
            circulating_supply=19_000_000.0,
        )
        fa = analyze(snapshot, None)

        assert fa.market_cap_score == 95
        assert fa.supply_metrics.is_deflationary is True
        assert fa.supply_metrics.circulating_ratio == pytest.approx(0.905, abs=1e-3)
        assert fa.community_score == 50
        assert fa.developer_score == 50
        assert fa.sentiment_score == 50

    def test_weighted_overall(self, make_snapshot):
        snapshot = make_snapshot(
            market_cap_rank=5,
            market_cap=1e12,
            total_volume=2e10,
            ath=69_000.0,
            ath_change_percentage=-10.0,
        )
        # 95*.2 + 10*.15 + 80*.1 + 50*.15 + 50*.15 + 50*.1 + 15*.15 = 50.75
        assert analyze(snapshot).overall_fundamental_score == 51


class TestBounds:
    def test_degenerate_inputs_stay_in_range(self, make_snapshot):
        snapshot = make_snapshot(
            market_cap=0.0,
            market_cap_rank=None,
            total_volume=0.0,
            max_supply=0.0,
            total_supply=None,
            circulating_supply=0.0,
            ath=0.0,
            ath_change_percentage=0.0,
        )
        fa = analyze(snapshot)
        assert 0 <= fa.overall_fundamental_score <= 100
        assert fa.market_cap_score == 0
        assert fa.volume_to_market_cap_ratio == 0
        assert fa.supply_metrics.is_deflationary is False
        assert fa.supply_metrics.circulating_ratio == 1.0
        assert fa.ath_recovery_potential == 0

    def test_maxed_inputs_stay_in_range(self, make_snapshot):
        snapshot = make_snapshot(
            market_cap_rank=1,
            market_cap=1.0,
            total_volume=1e15,
            ath_change_percentage=-99.0,
        )
        detail = DetailMetadata(
            community=CommunityData(5_000_000, 5_000_000, 1000.0, 1000.0),
            developer=DeveloperData(100_000, 100_000, 10_000, 10, 10, 100_000),
            sentiment_up_percentage=100.0,
            watchlist_users=5_000_000,
        )
        fa = analyze(snapshot, detail)
        assert fa.overall_fundamental_score == 96
        assert 0 <= fa.overall_fundamental_score <= 100


class TestSubScores:
    def test_market_cap_bands(self):
        assert calculate_market_cap_score(10) == 95
        assert calculate_market_cap_score(11) == 85
        assert calculate_market_cap_score(250) == 50
        assert calculate_market_cap_score(501) == 20
        assert calculate_market_cap_score(None) == 0

    def test_supply_falls_back_to_total(self):
        supply = calculate_supply_metrics(50.0, 100.0, None)
        assert supply.circulating_ratio == 0.5
        assert supply.is_deflationary is False

    def test_infinite_max_supply_is_not_a_cap(self):
        supply = calculate_supply_metrics(50.0, 100.0, float("inf"))
        assert supply.is_deflationary is False
        assert supply.circulating_ratio == 0.5

    def test_community_bands(self):
        detail = DetailMetadata(
            community=CommunityData(2_000_000, 600_000, 10.0, 30.0),
            watchlist_users=2_000_000,
        )
        assert calculate_community_score(detail) == 100

    def test_community_without_section_uses_zeroes(self):
        # twitter 20, reddit 15, activity 0, watchlist 15
        assert calculate_community_score(DetailMetadata()) == 13

    def test_developer_missing_section_is_30(self):
        assert calculate_developer_score(DetailMetadata()) == 30
        assert calculate_developer_score(None) == 50

    def test_issue_resolution_only_with_issues(self):
        no_issues = DetailMetadata(developer=DeveloperData(20_000, 6_000, 300, 0, 0, 2_000))
        assert calculate_developer_score(no_issues) == 100

        half_closed = DetailMetadata(developer=DeveloperData(20_000, 6_000, 300, 10, 5, 2_000))
        assert calculate_developer_score(half_closed) == 90

    def test_sentiment_rounds_half_up(self):
        assert calculate_sentiment_score(DetailMetadata(sentiment_up_percentage=73.5)) == 74
        assert calculate_sentiment_score(DetailMetadata()) == 50

    def test_ath_recovery_bands(self):
        assert calculate_ath_recovery(100.0, -95.0) == 95
        assert calculate_ath_recovery(100.0, -55.0) == 60
        assert calculate_ath_recovery(100.0, -5.0) == 15
        assert calculate_ath_recovery(0.0, -95.0) == 0
