"""Crypto momentum screener: technical + fundamental scoring and portfolio simulation."""

__version__ = "1.0.0"
