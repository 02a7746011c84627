"""Analytics modules for technical, fundamental and momentum analysis."""

from . import fundamental, momentum, technical
from .portfolio import PROFILES, build_portfolio, get_profile_config
from .technical import analyze_from_ohlc, analyze_from_sparkline, with_volume_analysis

__all__ = [
    "fundamental",
    "momentum",
    "technical",
    "analyze_from_ohlc",
    "analyze_from_sparkline",
    "with_volume_analysis",
    "build_portfolio",
    "get_profile_config",
    "PROFILES",
]
