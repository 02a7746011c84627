"""
Parsing of raw market-data-source payloads into domain records.

The upstream API is loose about types: numbers arrive as null, missing keys
are common for small caps, and sparklines occasionally contain nulls. Every
parser here degrades to documented defaults instead of raising.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..utils import safe_float
from .models import (
    CommunityData,
    DetailMetadata,
    DeveloperData,
    MarketChart,
    MarketSnapshot,
    OHLCBar,
)

logger = logging.getLogger(__name__)


def _optional_float(value: Any) -> Optional[float]:
    return safe_float(value, default=None)


def _int(value: Any) -> int:
    return int(safe_float(value, default=0.0))


def parse_price_series(values: Optional[Iterable[Any]]) -> Tuple[float, ...]:
    """Keep numeric points only, preserving order."""
    if not values:
        return ()
    points = []
    for value in values:
        number = safe_float(value, default=None)
        if number is not None:
            points.append(number)
    return tuple(points)


def parse_market_snapshot(raw: Dict[str, Any]) -> MarketSnapshot:
    """
    Convert one ``/coins/markets`` row into a MarketSnapshot.

    Args:
        raw: JSON object as returned by the API

    Returns:
        MarketSnapshot with required numerics defaulted to 0
    """
    rank = _optional_float(raw.get("market_cap_rank"))
    sparkline = (raw.get("sparkline_in_7d") or {}).get("price")

    return MarketSnapshot(
        id=str(raw.get("id", "")),
        symbol=str(raw.get("symbol", "")),
        name=str(raw.get("name", "")),
        image=str(raw.get("image") or ""),
        current_price=safe_float(raw.get("current_price")),
        market_cap=safe_float(raw.get("market_cap")),
        market_cap_rank=int(rank) if rank else None,
        total_volume=safe_float(raw.get("total_volume")),
        price_change_24h=safe_float(raw.get("price_change_percentage_24h")),
        price_change_7d=_optional_float(raw.get("price_change_percentage_7d_in_currency")),
        price_change_30d=_optional_float(raw.get("price_change_percentage_30d_in_currency")),
        circulating_supply=safe_float(raw.get("circulating_supply")),
        total_supply=_optional_float(raw.get("total_supply")),
        max_supply=_optional_float(raw.get("max_supply")),
        ath=safe_float(raw.get("ath")),
        ath_change_percentage=safe_float(raw.get("ath_change_percentage")),
        sparkline=parse_price_series(sparkline),
        last_updated=str(raw.get("last_updated") or ""),
    )


def parse_market_snapshots(rows: Iterable[Dict[str, Any]]) -> List[MarketSnapshot]:
    """Parse a ``/coins/markets`` page, skipping rows without an id."""
    snapshots = []
    for row in rows:
        if not isinstance(row, dict) or not row.get("id"):
            logger.warning("Skipping market row without id: %r", row)
            continue
        snapshots.append(parse_market_snapshot(row))
    return snapshots


def parse_detail_metadata(raw: Dict[str, Any]) -> DetailMetadata:
    """
    Convert a ``/coins/{id}`` payload into DetailMetadata.

    Sections that are absent or null stay None so scoring can apply the
    neutral defaults for that section.
    """
    community_raw = raw.get("community_data")
    community = None
    if isinstance(community_raw, dict):
        community = CommunityData(
            twitter_followers=_int(community_raw.get("twitter_followers")),
            reddit_subscribers=_int(community_raw.get("reddit_subscribers")),
            reddit_average_posts_48h=safe_float(community_raw.get("reddit_average_posts_48h")),
            reddit_average_comments_48h=safe_float(community_raw.get("reddit_average_comments_48h")),
        )

    developer_raw = raw.get("developer_data")
    developer = None
    if isinstance(developer_raw, dict):
        developer = DeveloperData(
            stars=_int(developer_raw.get("stars")),
            forks=_int(developer_raw.get("forks")),
            commit_count_4_weeks=_int(developer_raw.get("commit_count_4_weeks")),
            total_issues=_int(developer_raw.get("total_issues")),
            closed_issues=_int(developer_raw.get("closed_issues")),
            pull_requests_merged=_int(developer_raw.get("pull_requests_merged")),
        )

    return DetailMetadata(
        community=community,
        developer=developer,
        sentiment_up_percentage=_optional_float(raw.get("sentiment_votes_up_percentage")),
        watchlist_users=_int(raw.get("watchlist_portfolio_users")),
    )


def parse_ohlc(rows: Iterable[Any]) -> List[OHLCBar]:
    """Convert ``[timestamp, open, high, low, close]`` rows, dropping malformed ones."""
    bars = []
    for row in rows or []:
        if not isinstance(row, (list, tuple)) or len(row) < 5:
            continue
        values = [safe_float(v, default=None) for v in row[:5]]
        if any(v is None for v in values):
            continue
        timestamp, open_, high, low, close = values
        bars.append(OHLCBar(timestamp=int(timestamp), open=open_, high=high, low=low, close=close))
    return bars


def _parse_pairs(rows: Any) -> Tuple[Tuple[float, float], ...]:
    pairs = []
    for row in rows or []:
        if not isinstance(row, (list, tuple)) or len(row) < 2:
            continue
        ts = safe_float(row[0], default=None)
        value = safe_float(row[1], default=None)
        if ts is None or value is None:
            continue
        pairs.append((ts, value))
    return tuple(pairs)


def parse_market_chart(raw: Dict[str, Any]) -> MarketChart:
    """Convert a ``/coins/{id}/market_chart`` payload."""
    return MarketChart(
        prices=_parse_pairs(raw.get("prices")),
        volumes=_parse_pairs(raw.get("total_volumes")),
        market_caps=_parse_pairs(raw.get("market_caps")),
    )
