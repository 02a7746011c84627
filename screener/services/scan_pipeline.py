"""Market scan pipeline - orchestrates TA, FA and momentum scoring over a market snapshot."""

import asyncio
import dataclasses
import logging
from typing import Callable, List, Optional, Sequence

from ..analytics import fundamental, momentum, technical
from ..analytics.portfolio import CANDIDATE_POOL_SIZE, build_portfolio, get_profile_config
from ..cache import InMemoryCache
from ..config import Config
from ..domain.models import (
    DetailedAnalysis,
    FundamentalAnalysis,
    MarketSnapshot,
    MomentumScore,
    OHLCBar,
    PortfolioSimulation,
    RiskProfile,
    ScannedCoin,
    ScannerFilters,
    ScanResult,
    SortKey,
    TechnicalIndicators,
)
from ..errors import CoinNotFoundError

logger = logging.getLogger(__name__)

SPARKLINE_POINTS = 48
DEFAULT_SCAN_LIMIT = 50
MAX_SCAN_BATCH = 100
DETAIL_SNAPSHOT_SIZE = 250
DETAIL_HISTORY_DAYS = 30
AVERAGE_VOLUME_FACTOR = 0.8  # no volume history upstream, estimate the average from 24h volume

SORT_KEYS = {
    SortKey.MOMENTUM: lambda coin: coin.momentum_score.overall_score,
    SortKey.PRICE_CHANGE: lambda coin: coin.price_change_24h,
    SortKey.VOLUME: lambda coin: coin.volume_24h,
    SortKey.MARKET_CAP: lambda coin: coin.market_cap,
}


def _to_scanned_coin(
    snapshot: MarketSnapshot,
    ta: TechnicalIndicators,
    fa: FundamentalAnalysis,
    score: MomentumScore,
    price_change_30d: float,
    degraded: bool = False,
) -> ScannedCoin:
    return ScannedCoin(
        id=snapshot.id,
        symbol=snapshot.symbol,
        name=snapshot.name,
        image=snapshot.image,
        current_price=snapshot.current_price,
        market_cap=snapshot.market_cap,
        market_cap_rank=snapshot.market_cap_rank,
        volume_24h=snapshot.total_volume,
        price_change_24h=snapshot.price_change_24h,
        price_change_7d=snapshot.price_change_7d or 0.0,
        price_change_30d=price_change_30d,
        sparkline=tuple(snapshot.sparkline[-SPARKLINE_POINTS:]),
        technical_indicators=ta,
        fundamental_analysis=fa,
        momentum_score=score,
        last_updated=snapshot.last_updated,
        degraded=degraded,
    )


def analyze_coin(snapshot: MarketSnapshot) -> ScannedCoin:
    """
    Score one asset from its market snapshot alone.

    TA comes from the sparkline (volume compared against an estimated
    average), FA runs without detail metadata.
    """
    ta = technical.analyze_from_sparkline(
        snapshot.sparkline,
        snapshot.total_volume,
        snapshot.total_volume * AVERAGE_VOLUME_FACTOR,
    )
    fa = fundamental.analyze(snapshot, None)
    price_change_30d = snapshot.price_change_30d or 0.0
    score = momentum.calculate(ta, fa, price_change_30d)
    return _to_scanned_coin(snapshot, ta, fa, score, price_change_30d)


def basic_analysis(snapshot: MarketSnapshot) -> ScannedCoin:
    """Degraded fallback: sparkline-only TA, no volume, no detail, 0% 30-day change."""
    ta = technical.analyze_from_sparkline(snapshot.sparkline)
    fa = fundamental.analyze(snapshot)
    score = momentum.calculate(ta, fa, 0.0)
    return _to_scanned_coin(
        snapshot, ta, fa, score, snapshot.price_change_30d or 0.0, degraded=True
    )


def _passes_pre_filters(snapshot: MarketSnapshot, filters: ScannerFilters) -> bool:
    if filters.min_market_cap and snapshot.market_cap < filters.min_market_cap:
        return False
    if filters.max_market_cap and snapshot.market_cap > filters.max_market_cap:
        return False
    if filters.min_volume and snapshot.total_volume < filters.min_volume:
        return False
    return True


def _passes_post_filters(coin: ScannedCoin, filters: ScannerFilters) -> bool:
    if filters.min_momentum_score and coin.momentum_score.overall_score < filters.min_momentum_score:
        return False
    if filters.signals and coin.momentum_score.signal not in filters.signals:
        return False
    return True


def score_snapshots(
    snapshots: List[MarketSnapshot],
    filters: ScannerFilters,
    analyzer: Callable[[MarketSnapshot], ScannedCoin] = analyze_coin,
) -> List[ScanResult]:
    """
    Run the per-asset pipeline over a snapshot list.

    A scoring failure on one asset never aborts the batch: the asset is
    emitted through ``basic_analysis`` as a failed ScanResult carrying the
    degraded coin. Degraded coins skip the momentum/signal post-filters.

    Args:
        snapshots: Market snapshots in upstream order
        filters: Scan filters
        analyzer: Per-asset scoring function

    Returns:
        ScanResult list in snapshot order
    """
    results: List[ScanResult] = []

    for snapshot in snapshots:
        if not _passes_pre_filters(snapshot, filters):
            continue

        try:
            coin = analyzer(snapshot)
        except Exception as exc:
            logger.error("Error analyzing %s: %s", snapshot.id, exc, exc_info=True)
            try:
                fallback = basic_analysis(snapshot)
            except Exception as fallback_exc:
                logger.error("Basic analysis failed for %s, skipping: %s", snapshot.id, fallback_exc)
                continue
            results.append(ScanResult(coin=fallback, success=False, error=str(exc)))
            continue

        if _passes_post_filters(coin, filters):
            results.append(ScanResult(coin=coin))

    return results


def sort_coins(coins: List[ScannedCoin], sort_by: SortKey = SortKey.MOMENTUM) -> List[ScannedCoin]:
    """Descending by the selected key; ties keep their input order."""
    key = SORT_KEYS.get(SortKey(sort_by), SORT_KEYS[SortKey.MOMENTUM])
    return sorted(coins, key=key, reverse=True)


class Scanner:
    """
    Scan, detailed-analysis and portfolio operations over a market provider.

    The provider is any object exposing the async CoinGeckoProvider
    methods; only its upstream failures propagate from here.
    """

    def __init__(self, provider, cache: InMemoryCache, config: Optional[Config] = None):
        self.provider = provider
        self.cache = cache
        self.config = config or Config()
        self.analyzer = analyze_coin

    async def scan_market(
        self,
        filters: Optional[ScannerFilters] = None,
        api_key: Optional[str] = None,
    ) -> List[ScannedCoin]:
        """
        Scan the top of the market and return scored coins.

        Pipeline:
        1. Fetch min(limit, 100) snapshots in one batched call
        2. Pre-filter, score, post-filter each asset (failures isolated)
        3. Sort by the requested key and truncate to ``limit``

        Raises:
            UpstreamFetchError: if the market snapshot cannot be fetched
        """
        filters = filters or ScannerFilters()
        cache_key = filters.cache_key()
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug("Scan cache hit: %s", cache_key)
            return cached

        limit = filters.limit or DEFAULT_SCAN_LIMIT
        per_page = min(limit, MAX_SCAN_BATCH)
        snapshots = await self.provider.get_market_data(1, per_page, True, api_key)

        logger.info("Starting scan over %d coins", len(snapshots))
        results = score_snapshots(snapshots, filters, self.analyzer)

        degraded = [r.coin.id for r in results if not r.success]
        if degraded:
            logger.warning("Scan used basic analysis for %d coins: %s", len(degraded), ", ".join(degraded))

        coins = sort_coins([r.coin for r in results], filters.sort_by)[:limit]
        logger.info("Scan complete: %d/%d coins returned", len(coins), len(snapshots))

        self.cache.set(cache_key, coins, self.config.scan_cache_ttl)
        return coins

    async def detailed_analysis(self, coin_id: str, api_key: Optional[str] = None) -> DetailedAnalysis:
        """
        Full analysis of one coin from OHLC bars and detail metadata.

        The four upstream fetches run concurrently. TA comes from OHLC with
        the sparkline-derived volume analysis borrowed in, FA uses the full
        detail metadata.

        Raises:
            UpstreamFetchError: if any upstream fetch fails
            CoinNotFoundError: if the coin is not in the top-250 snapshot
        """
        cache_key = f"detailed:{coin_id}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        snapshots, detail, ohlc, chart = await asyncio.gather(
            self.provider.get_market_data(1, DETAIL_SNAPSHOT_SIZE, True, api_key),
            self.provider.get_coin_detail(coin_id, api_key),
            self.provider.get_ohlc(coin_id, DETAIL_HISTORY_DAYS, api_key),
            self.provider.get_market_chart(coin_id, DETAIL_HISTORY_DAYS, api_key),
        )

        snapshot = next((s for s in snapshots if s.id == coin_id), None)
        if snapshot is None:
            raise CoinNotFoundError(coin_id)

        ta = self._detailed_indicators(snapshot, ohlc)
        fa = fundamental.analyze(snapshot, detail)
        price_change_30d = snapshot.price_change_30d or 0.0
        score = momentum.calculate(ta, fa, price_change_30d)

        base = _to_scanned_coin(snapshot, ta, fa, score, price_change_30d)
        result = DetailedAnalysis(
            **{f.name: getattr(base, f.name) for f in dataclasses.fields(base)},
            ohlc=tuple(ohlc),
            chart=chart,
        )

        logger.info(
            "Detailed analysis for %s: score=%d signal=%s (%d OHLC bars)",
            coin_id, score.overall_score, score.signal.value, len(ohlc),
        )
        self.cache.set(cache_key, result, self.config.detailed_analysis_cache_ttl)
        return result

    @staticmethod
    def _detailed_indicators(snapshot: MarketSnapshot, ohlc: Sequence[OHLCBar]) -> TechnicalIndicators:
        from_ohlc = technical.analyze_from_ohlc(ohlc)
        from_sparkline = technical.analyze_from_sparkline(
            snapshot.sparkline,
            snapshot.total_volume,
            snapshot.total_volume * AVERAGE_VOLUME_FACTOR,
        )
        return technical.with_volume_analysis(from_ohlc, from_sparkline)

    async def simulate_portfolio(
        self,
        initial_investment: float = 100,
        target_amount: float = 1000,
        risk_profile: RiskProfile = RiskProfile.MEDIUM,
        api_key: Optional[str] = None,
    ) -> PortfolioSimulation:
        """
        Re-scan a wider pool with the profile's momentum floor and build a portfolio.

        Raises:
            ValueError: if the investment or target is not positive
            UpstreamFetchError: if the market snapshot cannot be fetched
        """
        if initial_investment <= 0:
            raise ValueError("initial_investment must be positive")
        if target_amount <= 0:
            raise ValueError("target_amount must be positive")

        profile_config = get_profile_config(risk_profile)
        scanned = await self.scan_market(
            ScannerFilters(
                min_momentum_score=profile_config.min_momentum_score,
                sort_by=SortKey.MOMENTUM,
                limit=CANDIDATE_POOL_SIZE,
            ),
            api_key,
        )
        return build_portfolio(scanned, initial_investment, target_amount, profile_config.profile)


__all__ = [
    "Scanner",
    "analyze_coin",
    "basic_analysis",
    "score_snapshots",
    "sort_coins",
]
