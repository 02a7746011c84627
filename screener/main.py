"""Main entry point for the momentum screener API server."""

import asyncio
import logging
import sys

import httpx
import uvicorn

from .cache import InMemoryCache
from .config import Config
from .providers.coingecko import CoinGeckoProvider
from .providers.rate_limiter import RequestThrottle
from .services.scan_pipeline import Scanner
from .web_api import configure_api_dependencies, web_api

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


def build_scanner(config: Config, http_client: httpx.AsyncClient) -> Scanner:
    """Wire provider, caches and scanner for one HTTP client."""
    semaphore = asyncio.Semaphore(config.max_concurrent_requests)
    throttle = RequestThrottle(config.min_request_interval)

    market_cache = InMemoryCache(default_ttl=config.market_data_cache_ttl)
    scan_cache = InMemoryCache(default_ttl=config.scan_cache_ttl)

    provider = CoinGeckoProvider(
        config=config,
        cache=market_cache,
        http_client=http_client,
        semaphore=semaphore,
        throttle=throttle,
    )
    return Scanner(provider, scan_cache, config)


async def main() -> None:
    """Main application entry point."""
    config = Config.from_env()
    logging.getLogger().setLevel(config.log_level)

    # Shared HTTP client with connection pooling
    http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(config.http_timeout),
        limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
    )

    scanner = build_scanner(config, http_client)
    configure_api_dependencies(scanner, scanner.provider)

    logger.info("Starting momentum screener on %s:%d", config.host, config.port)
    logger.info(
        "Configuration: max_concurrent_requests=%d, http_timeout=%d, min_request_interval=%.1fs",
        config.max_concurrent_requests,
        config.http_timeout,
        config.min_request_interval,
    )

    server = uvicorn.Server(
        uvicorn.Config(web_api, host=config.host, port=config.port, log_level="warning")
    )
    try:
        await server.serve()
    finally:
        await http_client.aclose()
        logger.info("Shutdown complete")


def run() -> None:
    """Synchronous entry point for running the server."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    run()
