"""
Typed failures raised across the screener.

Only genuine upstream I/O problems are exceptions; short price series, empty
candidate pools and similar degenerate inputs are modelled as data.
"""

from typing import Any, Dict, Optional


class ScreenerError(Exception):
    """Base exception for all screener errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "SCREENER_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class UpstreamFetchError(ScreenerError):
    """Raised when the market-data source is unreachable, rate-limited or returns garbage."""

    def __init__(
        self,
        operation: str,
        reason: str,
        asset_id: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        target = f" for {asset_id}" if asset_id else ""
        super().__init__(
            message=f"Failed to fetch {operation}{target}: {reason}",
            error_code="UPSTREAM_FETCH_FAILED",
            details={
                "operation": operation,
                "asset_id": asset_id,
                "status_code": status_code,
            },
        )
        self.operation = operation
        self.asset_id = asset_id
        self.status_code = status_code


class CoinNotFoundError(ScreenerError):
    """Raised when a detailed analysis is requested for an id absent from the market snapshot."""

    def __init__(self, coin_id: str):
        super().__init__(
            message=f"Coin {coin_id} not found in market data",
            error_code="COIN_NOT_FOUND",
            details={"coin_id": coin_id},
        )
        self.coin_id = coin_id
