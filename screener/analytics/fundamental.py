"""Fundamental analysis: market structure, supply, community, developer and sentiment scores."""

import logging
import math
from typing import Optional

from ..domain.models import (
    DetailMetadata,
    FundamentalAnalysis,
    MarketSnapshot,
    SupplyMetrics,
)
from ..utils import clamp, round_int

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 50
MISSING_DEVELOPER_SCORE = 30


def calculate_market_cap_score(market_cap_rank: Optional[int]) -> int:
    """Calculate market cap score (0-100) from rank; unranked scores 0."""
    if not market_cap_rank:
        return 0
    if market_cap_rank <= 10:
        return 95
    if market_cap_rank <= 25:
        return 85
    if market_cap_rank <= 50:
        return 75
    if market_cap_rank <= 100:
        return 65
    if market_cap_rank <= 250:
        return 50
    if market_cap_rank <= 500:
        return 35
    return 20


def calculate_volume_to_market_cap(volume: float, market_cap: float) -> float:
    """Raw 24h volume / market cap fraction (0 when market cap is 0)."""
    if not market_cap:
        return 0.0
    return volume / market_cap


def calculate_supply_metrics(
    circulating_supply: float,
    total_supply: Optional[float],
    max_supply: Optional[float],
) -> SupplyMetrics:
    """
    Circulating ratio against max supply, falling back to total and then circulating.

    A hard cap (positive finite max supply) marks the asset as deflationary;
    a non-finite max supply counts as no cap.
    """
    is_deflationary = max_supply is not None and math.isfinite(max_supply) and max_supply > 0
    effective_total = (max_supply if is_deflationary else None) or total_supply or circulating_supply
    circulating_ratio = circulating_supply / effective_total if effective_total > 0 else 1.0
    return SupplyMetrics(circulating_ratio=circulating_ratio, is_deflationary=is_deflationary)


def _twitter_band(followers: int) -> int:
    if followers > 1_000_000:
        return 100
    if followers > 500_000:
        return 85
    if followers > 100_000:
        return 70
    if followers > 50_000:
        return 55
    if followers > 10_000:
        return 40
    return 20


def _reddit_band(subscribers: int) -> int:
    if subscribers > 500_000:
        return 100
    if subscribers > 100_000:
        return 80
    if subscribers > 50_000:
        return 60
    if subscribers > 10_000:
        return 40
    return 15


def _watchlist_band(users: int) -> int:
    if users > 1_000_000:
        return 100
    if users > 500_000:
        return 80
    if users > 100_000:
        return 60
    if users > 10_000:
        return 40
    return 15


def calculate_community_score(detail: Optional[DetailMetadata]) -> int:
    """Average of Twitter, Reddit size, Reddit activity and watchlist bands (50 without detail)."""
    if detail is None:
        return NEUTRAL_SCORE

    community = detail.community
    twitter = community.twitter_followers if community else 0
    reddit = community.reddit_subscribers if community else 0
    posts = community.reddit_average_posts_48h if community else 0.0
    comments = community.reddit_average_comments_48h if community else 0.0

    scores = [
        _twitter_band(twitter),
        _reddit_band(reddit),
        min(100, posts * 5 + comments * 2),
        _watchlist_band(detail.watchlist_users),
    ]
    return round_int(sum(scores) / len(scores))


def calculate_developer_score(detail: Optional[DetailMetadata]) -> int:
    """
    Average of GitHub activity bands.

    Returns 50 without detail, 30 when detail exists but has no developer
    section. Issue resolution only counts when there are issues at all.
    """
    if detail is None:
        return NEUTRAL_SCORE

    dev = detail.developer
    if dev is None:
        return MISSING_DEVELOPER_SCORE

    scores = []

    if dev.stars > 10_000:
        scores.append(100)
    elif dev.stars > 5_000:
        scores.append(85)
    elif dev.stars > 1_000:
        scores.append(70)
    elif dev.stars > 500:
        scores.append(50)
    elif dev.stars > 100:
        scores.append(35)
    else:
        scores.append(15)

    if dev.forks > 5_000:
        scores.append(100)
    elif dev.forks > 1_000:
        scores.append(80)
    elif dev.forks > 500:
        scores.append(60)
    elif dev.forks > 100:
        scores.append(40)
    else:
        scores.append(15)

    commits = dev.commit_count_4_weeks
    if commits > 200:
        scores.append(100)
    elif commits > 100:
        scores.append(85)
    elif commits > 50:
        scores.append(70)
    elif commits > 20:
        scores.append(55)
    elif commits > 5:
        scores.append(35)
    else:
        scores.append(10)

    if dev.total_issues > 0:
        scores.append(round_int(dev.closed_issues / dev.total_issues * 100))

    merged = dev.pull_requests_merged
    if merged > 1_000:
        scores.append(100)
    elif merged > 500:
        scores.append(80)
    elif merged > 100:
        scores.append(60)
    elif merged > 50:
        scores.append(40)
    else:
        scores.append(15)

    return round_int(sum(scores) / len(scores))


def calculate_sentiment_score(detail: Optional[DetailMetadata]) -> int:
    """Upvote percentage, rounded (50 when unknown)."""
    if detail is None or detail.sentiment_up_percentage is None:
        return NEUTRAL_SCORE
    return round_int(detail.sentiment_up_percentage)


def calculate_ath_recovery(ath: float, ath_change_percentage: float) -> int:
    """Score (0-100) that grows with the distance below all-time high."""
    if not ath:
        return 0
    distance = abs(ath_change_percentage)
    if distance > 90:
        return 95
    if distance > 80:
        return 85
    if distance > 70:
        return 75
    if distance > 50:
        return 60
    if distance > 30:
        return 45
    if distance > 10:
        return 30
    return 15


def analyze(
    market: MarketSnapshot,
    detail: Optional[DetailMetadata] = None,
) -> FundamentalAnalysis:
    """
    Complete fundamental analysis for one asset.

    Args:
        market: Market snapshot of the asset
        detail: Optional community/developer metadata

    Returns:
        FundamentalAnalysis with a weighted overall score in [0, 100]
    """
    market_cap_score = calculate_market_cap_score(market.market_cap_rank)
    volume_ratio = calculate_volume_to_market_cap(market.total_volume, market.market_cap)
    supply = calculate_supply_metrics(
        market.circulating_supply,
        market.total_supply,
        market.max_supply,
    )
    community_score = calculate_community_score(detail)
    developer_score = calculate_developer_score(detail)
    sentiment_score = calculate_sentiment_score(detail)
    ath_recovery = calculate_ath_recovery(market.ath, market.ath_change_percentage)

    weighted = (
        market_cap_score * 0.20
        + clamp(volume_ratio * 500, 0, 100) * 0.15
        + (80 if supply.is_deflationary else 40) * 0.10
        + community_score * 0.15
        + developer_score * 0.15
        + sentiment_score * 0.10
        + ath_recovery * 0.15
    )
    overall = int(clamp(round_int(weighted), 0, 100))

    return FundamentalAnalysis(
        market_cap_score=market_cap_score,
        volume_to_market_cap_ratio=volume_ratio,
        supply_metrics=supply,
        community_score=community_score,
        developer_score=developer_score,
        sentiment_score=sentiment_score,
        ath_recovery_potential=ath_recovery,
        overall_fundamental_score=overall,
    )
