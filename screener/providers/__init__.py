"""Data providers package."""

from .coingecko import CoinGeckoProvider
from .rate_limiter import RequestThrottle

__all__ = ["CoinGeckoProvider", "RequestThrottle"]
