import asyncio
import unittest

import pytest

from screener.cache import InMemoryCache
from screener.config import Config
from screener.domain.models import (
    CommunityData,
    DetailedAnalysis,
    DetailMetadata,
    DeveloperData,
    MarketChart,
    OHLCBar,
    PortfolioSimulation,
    RiskLevel,
    RiskProfile,
    ScannerFilters,
    SortKey,
)
from screener.errors import CoinNotFoundError, UpstreamFetchError
from screener.services.scan_pipeline import (
    Scanner,
    analyze_coin,
    basic_analysis,
    score_snapshots,
    sort_coins,
)
from tests.conftest import build_scanned_coin, build_snapshot, wave_prices


def _snapshots():
    return [
        build_snapshot("bitcoin", market_cap=9e11, total_volume=3e10, market_cap_rank=1),
        build_snapshot("ethereum", market_cap=4e11, total_volume=2e10, market_cap_rank=2),
        build_snapshot("solana", market_cap=8e10, total_volume=5e9, market_cap_rank=5),
        build_snapshot("dogecoin", market_cap=2e10, total_volume=1e9, market_cap_rank=9, max_supply=None),
    ]


class _FakeMarketProvider:
    def __init__(self, snapshots=None, error=None):
        self.snapshots = snapshots if snapshots is not None else _snapshots()
        self.error = error
        self.market_calls = []

    async def get_market_data(self, page=1, per_page=100, sparkline=True, api_key=None):
        self.market_calls.append(per_page)
        if self.error:
            raise self.error
        return self.snapshots[:per_page]

    async def get_coin_detail(self, coin_id, api_key=None):
        return DetailMetadata(
            community=CommunityData(2_000_000, 600_000, 10.0, 30.0),
            developer=DeveloperData(20_000, 6_000, 300, 10, 9, 2_000),
            sentiment_up_percentage=80.0,
            watchlist_users=1_500_000,
        )

    async def get_ohlc(self, coin_id, days=30, api_key=None):
        return [
            OHLCBar(timestamp=i * 14_400_000, open=c, high=c + 1, low=c - 1, close=c)
            for i, c in enumerate(wave_prices(180))
        ]

    async def get_market_chart(self, coin_id, days=30, api_key=None):
        return MarketChart(prices=((1.0, 100.0), (2.0, 101.0)))


def _faulty_analyzer(bad_id):
    def analyzer(snapshot):
        if snapshot.id == bad_id:
            raise ValueError("malformed snapshot")
        return analyze_coin(snapshot)
    return analyzer


class TestScoreSnapshots:
    def test_fault_on_one_asset_keeps_batch(self):
        snapshots = _snapshots()
        results = score_snapshots(snapshots, ScannerFilters(), _faulty_analyzer("solana"))

        assert [r.coin.id for r in results] == [s.id for s in snapshots]
        failed = [r for r in results if not r.success]
        assert len(failed) == 1
        assert failed[0].coin.id == "solana"
        assert failed[0].coin.degraded is True
        assert failed[0].error == "malformed snapshot"

    def test_pre_filters_reject_before_scoring(self):
        calls = []

        def analyzer(snapshot):
            calls.append(snapshot.id)
            return analyze_coin(snapshot)

        filters = ScannerFilters(min_market_cap=5e10, max_market_cap=5e11, min_volume=1e9)
        results = score_snapshots(_snapshots(), filters, analyzer)
        assert calls == ["ethereum", "solana"]
        assert [r.coin.id for r in results] == ["ethereum", "solana"]

    def test_post_filters(self):
        results = score_snapshots(_snapshots(), ScannerFilters(min_momentum_score=100))
        assert results == []

        coin = analyze_coin(build_snapshot())
        results = score_snapshots([build_snapshot()], ScannerFilters(signals=(coin.momentum_score.signal,)))
        assert len(results) == 1

    def test_degraded_coin_uses_neutral_inputs(self):
        coin = basic_analysis(build_snapshot(price_change_30d=-60.0))
        assert coin.degraded is True
        assert coin.technical_indicators.volume_analysis is None
        assert coin.price_change_30d == -60.0

    def test_sparkline_trimmed_to_48_points(self):
        coin = analyze_coin(build_snapshot())
        assert len(coin.sparkline) == 48
        assert coin.sparkline[-1] == build_snapshot().sparkline[-1]


class TestSort:
    def test_ties_keep_snapshot_order(self):
        coins = [
            analyze_coin(build_snapshot("a", market_cap=1e9)),
            analyze_coin(build_snapshot("b", market_cap=5e9)),
            analyze_coin(build_snapshot("c", market_cap=1e9)),
            analyze_coin(build_snapshot("d", market_cap=5e9)),
        ]
        ordered = sort_coins(coins, SortKey.MARKET_CAP)
        assert [c.id for c in ordered] == ["b", "d", "a", "c"]

    def test_sort_by_price_change(self):
        coins = [
            analyze_coin(build_snapshot("a", price_change_24h=-2.0)),
            analyze_coin(build_snapshot("b", price_change_24h=7.0)),
        ]
        assert [c.id for c in sort_coins(coins, SortKey.PRICE_CHANGE)] == ["b", "a"]


class TestScanner(unittest.IsolatedAsyncioTestCase):
    def _scanner(self, provider):
        return Scanner(provider, InMemoryCache(default_ttl=60), Config())

    async def test_scan_returns_all_assets_with_injected_fault(self):
        provider = _FakeMarketProvider()
        scanner = self._scanner(provider)
        scanner.analyzer = _faulty_analyzer("ethereum")

        coins = await scanner.scan_market(ScannerFilters(limit=10))

        self.assertEqual(4, len(coins))
        degraded = [c.id for c in coins if c.degraded]
        self.assertEqual(["ethereum"], degraded)

    async def test_limit_bounds_batch_and_output(self):
        provider = _FakeMarketProvider()
        scanner = self._scanner(provider)

        coins = await scanner.scan_market(ScannerFilters(limit=2))
        self.assertEqual([2], provider.market_calls)
        self.assertLessEqual(len(coins), 2)

        await scanner.scan_market(ScannerFilters(limit=150))
        self.assertEqual([2, 100], provider.market_calls)

    async def test_results_cached_by_filters(self):
        provider = _FakeMarketProvider()
        scanner = self._scanner(provider)

        first = await scanner.scan_market()
        second = await scanner.scan_market()
        self.assertIs(first, second)
        self.assertEqual(1, len(provider.market_calls))

        await scanner.scan_market(ScannerFilters(sort_by=SortKey.VOLUME))
        self.assertEqual(2, len(provider.market_calls))

    async def test_upstream_failure_propagates(self):
        provider = _FakeMarketProvider(error=UpstreamFetchError("market_data", "timeout"))
        scanner = self._scanner(provider)
        with self.assertRaises(UpstreamFetchError):
            await scanner.scan_market()

    async def test_detailed_analysis_uses_ohlc_and_detail(self):
        scanner = self._scanner(_FakeMarketProvider())
        result = await scanner.detailed_analysis("bitcoin")

        self.assertIsInstance(result, DetailedAnalysis)
        self.assertEqual("bitcoin", result.id)
        self.assertEqual(180, len(result.ohlc))
        self.assertIsNotNone(result.technical_indicators.atr)
        self.assertIsNotNone(result.technical_indicators.stochastic)
        self.assertIsNotNone(result.technical_indicators.volume_analysis)
        self.assertEqual(100, result.fundamental_analysis.community_score)
        self.assertEqual(80, result.fundamental_analysis.sentiment_score)
        self.assertEqual(((1.0, 100.0), (2.0, 101.0)), result.chart.prices)

    async def test_detailed_analysis_unknown_coin(self):
        scanner = self._scanner(_FakeMarketProvider())
        with self.assertRaises(CoinNotFoundError):
            await scanner.detailed_analysis("not-a-coin")

    async def test_simulate_portfolio_rescans_wider_pool(self):
        overall_by_id = {"btc": 74, "eth": 70, "sol": 66, "ada": 63, "xrp": 60, "doge": 41}
        provider = _FakeMarketProvider([build_snapshot(coin_id) for coin_id in overall_by_id])
        scanner = self._scanner(provider)
        scanner.analyzer = lambda snapshot: build_scanned_coin(
            snapshot.id, overall=overall_by_id[snapshot.id], risk=RiskLevel.LOW
        )

        result = await scanner.simulate_portfolio(100, 1000, RiskProfile.LOW)

        self.assertIsInstance(result, PortfolioSimulation)
        self.assertEqual(RiskProfile.LOW, result.risk_profile)
        self.assertEqual([80], provider.market_calls)
        self.assertEqual(5, len(result.allocations))
        self.assertNotIn("doge", {a.coin_id for a in result.allocations})
        self.assertAlmostEqual(100.0, sum(a.allocation_percent for a in result.allocations), places=6)
        self.assertAlmostEqual(100.0, sum(a.invested_amount for a in result.allocations), delta=0.05)

    async def test_simulate_portfolio_rejects_bad_amounts(self):
        provider = _FakeMarketProvider()
        scanner = self._scanner(provider)
        with self.assertRaises(ValueError):
            await scanner.simulate_portfolio(0, 1000)
        self.assertEqual([], provider.market_calls)


def test_concurrent_scans_with_different_filters():
    async def run():
        scanner = Scanner(_FakeMarketProvider(), InMemoryCache(), Config())
        return await asyncio.gather(
            scanner.scan_market(ScannerFilters(sort_by=SortKey.MARKET_CAP)),
            scanner.scan_market(ScannerFilters(sort_by=SortKey.VOLUME)),
        )

    by_cap, by_volume = asyncio.run(run())
    assert [c.id for c in by_cap] == ["bitcoin", "ethereum", "solana", "dogecoin"]
    assert [c.id for c in by_volume] == ["bitcoin", "ethereum", "solana", "dogecoin"]


@pytest.mark.parametrize("sort_by", list(SortKey))
def test_every_sort_key_is_supported(sort_by):
    coins = [analyze_coin(s) for s in _snapshots()]
    assert len(sort_coins(coins, sort_by)) == len(coins)
