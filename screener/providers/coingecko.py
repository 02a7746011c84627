"""CoinGecko market data provider with throttling, retries and caching."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..cache import InMemoryCache
from ..config import Config
from ..domain.models import DetailMetadata, MarketChart, MarketSnapshot, OHLCBar
from ..domain.parsing import (
    parse_detail_metadata,
    parse_market_chart,
    parse_market_snapshots,
    parse_ohlc,
)
from ..errors import UpstreamFetchError
from .rate_limiter import RequestThrottle

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-cg-demo-api-key"
PRICE_CHANGE_WINDOWS = "1h,24h,7d,14d,30d"
MAX_PER_PAGE = 250


class CoinGeckoProvider:
    """
    CoinGecko REST client returning parsed domain records.

    Features:
    - Markets: price, market cap, supply, ATH and 7-day sparkline per coin
    - Coin detail: community, developer and sentiment metadata
    - OHLC bars and market chart series for a single coin
    - Trending coins and global market data (passed through as JSON)
    - Every response cached per operation with its own TTL
    - Semaphore + minimum-interval throttle on outgoing requests
    - 429 backoff honouring Retry-After, exponential backoff on 5xx/timeouts

    All failures surface as UpstreamFetchError; nothing is swallowed here.
    """

    def __init__(
        self,
        config: Config,
        cache: InMemoryCache,
        http_client: httpx.AsyncClient,
        semaphore: asyncio.Semaphore,
        throttle: Optional[RequestThrottle] = None,
    ):
        """
        Initialize CoinGecko provider.

        Args:
            config: Application config (base URL, key, timeouts, TTLs, retries)
            cache: Cache for parsed upstream responses
            http_client: Shared httpx.AsyncClient
            semaphore: Limits concurrent upstream requests
            throttle: Optional minimum-interval throttle
        """
        self.name = "CoinGecko"
        self.config = config
        self.base_url = config.coingecko_base_url.rstrip("/")
        self.cache = cache
        self.http_client = http_client
        self.semaphore = semaphore
        self.throttle = throttle

        logger.info(
            "Initialized CoinGeckoProvider (base_url=%s, api_key=%s)",
            self.base_url,
            "set" if config.coingecko_api_key else "none",
        )

    def _headers(self, api_key: Optional[str] = None) -> Dict[str, str]:
        headers = {"accept": "application/json"}
        key = api_key or self.config.coingecko_api_key
        if key:
            headers[API_KEY_HEADER] = key
        return headers

    def _backoff(self, attempt: int) -> float:
        return self.config.retry_backoff_factor * (2 ** attempt)

    async def _request(
        self,
        path: str,
        operation: str,
        params: Optional[Dict[str, Any]] = None,
        asset_id: Optional[str] = None,
        api_key: Optional[str] = None,
    ) -> Any:
        """
        GET a CoinGecko endpoint and return the decoded JSON body.

        Retries 429 (waiting Retry-After), 5xx, timeouts and connection
        errors up to ``config.max_retries`` times.

        Raises:
            UpstreamFetchError: on persistent failure, other non-2xx status
                or an undecodable body
        """
        url = f"{self.base_url}{path}"
        max_retries = self.config.max_retries

        for attempt in range(max_retries + 1):
            try:
                async with self.semaphore:
                    if self.throttle is not None:
                        await self.throttle.acquire()
                    logger.debug(
                        "CoinGecko GET %s attempt %d/%d", path, attempt + 1, max_retries + 1
                    )
                    response = await self.http_client.get(
                        url,
                        params=params,
                        headers=self._headers(api_key),
                        timeout=self.config.http_timeout,
                    )
            except httpx.TransportError as exc:
                reason = str(exc) or exc.__class__.__name__
                if attempt < max_retries:
                    wait_time = self._backoff(attempt)
                    logger.warning(
                        "CoinGecko %s transport error (%s). Retrying in %.2fs...",
                        operation, reason, wait_time,
                    )
                    await asyncio.sleep(wait_time)
                    continue
                logger.error("CoinGecko %s failed after %d retries: %s", operation, max_retries, reason)
                raise UpstreamFetchError(operation, reason, asset_id=asset_id) from exc

            status = response.status_code

            if status == 429:
                retry_after = response.headers.get("Retry-After")
                try:
                    wait_time = float(retry_after) if retry_after else self._backoff(attempt)
                except ValueError:
                    wait_time = self._backoff(attempt)
                if attempt < max_retries:
                    logger.warning("Rate limited (429). Waiting %.1fs before retry...", wait_time)
                    await asyncio.sleep(wait_time)
                    continue
                logger.error("Rate limited (429) after %d retries. Giving up.", max_retries)
                raise UpstreamFetchError(
                    operation, "rate limited (429)", asset_id=asset_id, status_code=status
                )

            if status >= 500:
                if attempt < max_retries:
                    wait_time = self._backoff(attempt)
                    logger.warning("Server error (%d). Retrying in %.2fs...", status, wait_time)
                    await asyncio.sleep(wait_time)
                    continue
                logger.error("Server error (%d) after %d retries.", status, max_retries)
                raise UpstreamFetchError(
                    operation, f"server error ({status})", asset_id=asset_id, status_code=status
                )

            if status < 200 or status >= 300:
                logger.warning("CoinGecko %s returned HTTP %d", operation, status)
                raise UpstreamFetchError(
                    operation, f"HTTP {status}", asset_id=asset_id, status_code=status
                )

            try:
                return response.json()
            except ValueError as exc:
                raise UpstreamFetchError(
                    operation, "invalid JSON payload", asset_id=asset_id, status_code=status
                ) from exc

        # Unreachable: every branch of the last attempt returns or raises
        raise UpstreamFetchError(operation, "max retries exceeded", asset_id=asset_id)

    async def get_market_data(
        self,
        page: int = 1,
        per_page: int = 100,
        sparkline: bool = True,
        api_key: Optional[str] = None,
    ) -> List[MarketSnapshot]:
        """
        Fetch one page of coins ordered by market cap.

        Args:
            page: 1-based page number
            per_page: Coins per page (capped at 250)
            sparkline: Include 7-day hourly sparkline
            api_key: Per-call key overriding the configured one

        Returns:
            List of MarketSnapshot
        """
        per_page = max(1, min(per_page, MAX_PER_PAGE))
        cache_key = f"markets:{page}:{per_page}:{sparkline}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        logger.info("Fetching market data page=%d per_page=%d", page, per_page)
        payload = await self._request(
            "/coins/markets",
            "market_data",
            params={
                "vs_currency": "usd",
                "order": "market_cap_desc",
                "per_page": per_page,
                "page": page,
                "sparkline": str(sparkline).lower(),
                "price_change_percentage": PRICE_CHANGE_WINDOWS,
                "locale": "en",
            },
            api_key=api_key,
        )
        if not isinstance(payload, list):
            raise UpstreamFetchError("market_data", "unexpected payload shape")

        snapshots = parse_market_snapshots(payload)
        self.cache.set(cache_key, snapshots, self.config.market_data_cache_ttl)
        logger.info("✓ Market data: %d coins", len(snapshots))
        return snapshots

    async def get_coin_detail(self, coin_id: str, api_key: Optional[str] = None) -> DetailMetadata:
        """Fetch community, developer and sentiment metadata for one coin."""
        cache_key = f"detail:{coin_id}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        payload = await self._request(
            f"/coins/{coin_id}",
            "coin_detail",
            params={
                "localization": "false",
                "tickers": "false",
                "market_data": "false",
                "community_data": "true",
                "developer_data": "true",
                "sparkline": "false",
            },
            asset_id=coin_id,
            api_key=api_key,
        )
        if not isinstance(payload, dict):
            raise UpstreamFetchError("coin_detail", "unexpected payload shape", asset_id=coin_id)

        detail = parse_detail_metadata(payload)
        self.cache.set(cache_key, detail, self.config.detail_cache_ttl)
        return detail

    async def get_ohlc(
        self,
        coin_id: str,
        days: int = 30,
        api_key: Optional[str] = None,
    ) -> List[OHLCBar]:
        """Fetch OHLC bars (granularity chosen by CoinGecko from ``days``)."""
        cache_key = f"ohlc:{coin_id}:{days}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        payload = await self._request(
            f"/coins/{coin_id}/ohlc",
            "ohlc",
            params={"vs_currency": "usd", "days": days},
            asset_id=coin_id,
            api_key=api_key,
        )
        if not isinstance(payload, list):
            raise UpstreamFetchError("ohlc", "unexpected payload shape", asset_id=coin_id)

        bars = parse_ohlc(payload)
        self.cache.set(cache_key, bars, self.config.detail_cache_ttl)
        return bars

    async def get_market_chart(
        self,
        coin_id: str,
        days: int = 30,
        api_key: Optional[str] = None,
    ) -> MarketChart:
        """Fetch price, volume and market cap series for one coin."""
        cache_key = f"chart:{coin_id}:{days}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        payload = await self._request(
            f"/coins/{coin_id}/market_chart",
            "market_chart",
            params={"vs_currency": "usd", "days": days},
            asset_id=coin_id,
            api_key=api_key,
        )
        if not isinstance(payload, dict):
            raise UpstreamFetchError("market_chart", "unexpected payload shape", asset_id=coin_id)

        chart = parse_market_chart(payload)
        self.cache.set(cache_key, chart, self.config.detail_cache_ttl)
        return chart

    async def get_trending(self) -> List[dict]:
        """Trending coins, unwrapped from their ``item`` envelope."""
        cache_key = "trending"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        payload = await self._request("/search/trending", "trending")
        coins = payload.get("coins", []) if isinstance(payload, dict) else []
        trending = [entry.get("item", entry) for entry in coins if isinstance(entry, dict)]

        self.cache.set(cache_key, trending, self.config.detail_cache_ttl)
        return trending

    async def get_global_data(self) -> dict:
        """Global market data (``data`` object of /global)."""
        cache_key = "global"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        payload = await self._request("/global", "global")
        data = payload.get("data", {}) if isinstance(payload, dict) else {}

        self.cache.set(cache_key, data, self.config.global_cache_ttl)
        return data

    def cache_stats(self) -> Dict[str, int]:
        """Upstream cache statistics (keys, hits, misses)."""
        return self.cache.stats()
