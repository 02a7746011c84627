"""Configuration management for the momentum screener."""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    # CoinGecko (demo key is optional)
    coingecko_api_key: Optional[str] = None
    coingecko_base_url: str = COINGECKO_BASE_URL

    # Network settings
    http_timeout: int = 30
    max_concurrent_requests: int = 5
    max_retries: int = 3
    retry_backoff_factor: float = 0.5
    min_request_interval: float = 1.5  # Demo API key tolerates ~1 request / 1.5s

    # Upstream cache TTLs (seconds)
    market_data_cache_ttl: int = 60
    detail_cache_ttl: int = 300  # detail, OHLC, chart, trending
    global_cache_ttl: int = 120

    # Scanner cache TTLs (seconds)
    scan_cache_ttl: int = 120
    detailed_analysis_cache_ttl: int = 180

    # Web server
    host: str = "0.0.0.0"
    port: int = 5000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from environment variables."""
        return cls(
            coingecko_api_key=os.getenv("COINGECKO_API_KEY", "").strip() or None,
            coingecko_base_url=os.getenv("COINGECKO_BASE_URL", "").strip() or COINGECKO_BASE_URL,
            http_timeout=int(os.getenv("HTTP_TIMEOUT", "30")),
            max_concurrent_requests=int(os.getenv("MAX_CONCURRENT_REQUESTS", "5")),
            max_retries=int(os.getenv("MAX_RETRIES", "3")),
            retry_backoff_factor=float(os.getenv("RETRY_BACKOFF_FACTOR", "0.5")),
            min_request_interval=float(os.getenv("MIN_REQUEST_INTERVAL", "1.5")),
            market_data_cache_ttl=int(os.getenv("MARKET_DATA_CACHE_TTL", "60")),
            detail_cache_ttl=int(os.getenv("DETAIL_CACHE_TTL", "300")),
            global_cache_ttl=int(os.getenv("GLOBAL_CACHE_TTL", "120")),
            scan_cache_ttl=int(os.getenv("SCAN_CACHE_TTL", "120")),
            detailed_analysis_cache_ttl=int(os.getenv("DETAILED_ANALYSIS_CACHE_TTL", "180")),
            host=os.getenv("HOST", "0.0.0.0").strip() or "0.0.0.0",
            port=int(os.getenv("PORT", "5000")),
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )
