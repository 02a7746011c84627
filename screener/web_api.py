"""Web API for the momentum screener - FastAPI application with REST endpoints."""

import dataclasses
import logging
import time
from datetime import datetime, timezone
from typing import Any, List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .domain.models import RiskProfile, ScannerFilters, SortKey, TradeSignal
from .errors import CoinNotFoundError, UpstreamFetchError

logger = logging.getLogger(__name__)

SERVICE_NAME = "Coin Momentum Screener API"

# Dependencies are injected at startup by configure_api_dependencies
_scanner = None
_market_provider = None
_started_at = time.monotonic()


def configure_api_dependencies(scanner, market_provider):
    """Configure API with the scanner and the market-data provider."""
    global _scanner, _market_provider
    _scanner = scanner
    _market_provider = market_provider


# ============== PYDANTIC MODELS ==============

class ScannerQuery(BaseModel):
    """Validated /api/scanner query parameters."""
    min_market_cap: Optional[float] = Field(default=None, ge=0)
    max_market_cap: Optional[float] = Field(default=None, ge=0)
    min_volume: Optional[float] = Field(default=None, ge=0)
    min_momentum_score: Optional[float] = Field(default=None, ge=0, le=100)
    signals: List[TradeSignal] = Field(default_factory=list)
    sort_by: SortKey = SortKey.MOMENTUM
    limit: int = Field(default=50, ge=1, le=250)

    @field_validator("signals", mode="before")
    def split_signals(cls, value):
        if isinstance(value, str):
            return [part.strip().upper() for part in value.split(",") if part.strip()]
        return value

    def to_filters(self) -> ScannerFilters:
        return ScannerFilters(
            min_market_cap=self.min_market_cap,
            max_market_cap=self.max_market_cap,
            min_volume=self.min_volume,
            min_momentum_score=self.min_momentum_score,
            signals=tuple(self.signals),
            sort_by=self.sort_by,
            limit=self.limit,
        )


# ============== FASTAPI APP ==============

web_api = FastAPI(title=SERVICE_NAME, version=__version__)
web_api.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_plain(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, list):
        return [_to_plain(item) for item in value]
    return value


def _ok(data: Any, **extra) -> dict:
    """Success envelope."""
    return {
        "success": True,
        "timestamp": _timestamp(),
        **extra,
        "data": jsonable_encoder(_to_plain(data)),
    }


def _error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[dict] = None,
) -> JSONResponse:
    """Error envelope; ``details`` carries ScreenerError.to_dict() when available."""
    content = {
        "success": False,
        "error": error,
        "message": message,
        "timestamp": _timestamp(),
    }
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def _require_scanner():
    if _scanner is None:
        raise StarletteHTTPException(status_code=503, detail="Scanner not configured")
    return _scanner


def _require_provider():
    if _market_provider is None:
        raise StarletteHTTPException(status_code=503, detail="Market provider not configured")
    return _market_provider


# ============== ERROR HANDLERS ==============

@web_api.exception_handler(UpstreamFetchError)
async def upstream_error_handler(request: Request, exc: UpstreamFetchError):
    logger.error("Upstream failure on %s: %s", request.url.path, exc.message)
    return _error_response(
        502,
        exc.message,
        "Market data source is unavailable. Please try again.",
        details=exc.to_dict(),
    )


@web_api.exception_handler(CoinNotFoundError)
async def coin_not_found_handler(request: Request, exc: CoinNotFoundError):
    logger.info("Coin not found on %s: %s", request.url.path, exc.coin_id)
    return _error_response(404, exc.message, "Coin not found.", details=exc.to_dict())


@web_api.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    logger.warning("Invalid request on %s: %s", request.url.path, exc)
    return _error_response(400, str(exc), "Invalid request parameters.")


@web_api.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning("Invalid query on %s: %s", request.url.path, exc.errors())
    return _error_response(422, "Invalid query parameters", str(exc.errors()))


@web_api.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _error_response(exc.status_code, str(exc.detail), str(exc.detail))


@web_api.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    return _error_response(500, "Internal Server Error", str(exc))


# ============== ENDPOINTS ==============

@web_api.get("/api/health")
async def health():
    """Health check - service status and version."""
    return {
        "status": "running",
        "timestamp": _timestamp(),
        "service": SERVICE_NAME,
        "version": __version__,
    }


@web_api.get("/api/scanner")
async def scanner(
    minMarketCap: Optional[float] = Query(default=None),
    maxMarketCap: Optional[float] = Query(default=None),
    minVolume: Optional[float] = Query(default=None),
    minMomentumScore: Optional[float] = Query(default=None),
    signals: Optional[str] = Query(default=None),
    sortBy: Optional[str] = Query(default=None),
    limit: Optional[int] = Query(default=None),
):
    """
    Scan the market with optional filters.

    ``signals`` is a comma-separated list (e.g. ``STRONG BUY,BUY``).
    """
    query = ScannerQuery(
        min_market_cap=minMarketCap or None,
        max_market_cap=maxMarketCap or None,
        min_volume=minVolume or None,
        min_momentum_score=minMomentumScore or None,
        signals=signals or [],
        sort_by=sortBy or SortKey.MOMENTUM,
        limit=limit or 50,
    )
    results = await _require_scanner().scan_market(query.to_filters())
    return _ok(results, count=len(results))


@web_api.get("/api/coin/{coin_id}")
async def coin_detail(coin_id: str):
    """Detailed analysis of one coin (OHLC + detail metadata)."""
    result = await _require_scanner().detailed_analysis(coin_id)
    return _ok(result)


@web_api.get("/api/portfolio/simulate")
async def portfolio_simulate(
    initial: Optional[float] = Query(default=None),
    target: Optional[float] = Query(default=None),
    risk: str = Query(default="medium"),
):
    """Simulated portfolio for a risk profile (low / medium / high)."""
    risk_profile = RiskProfile(risk.strip().lower())
    result = await _require_scanner().simulate_portfolio(
        initial or 100,
        target or 1000,
        risk_profile,
    )
    return _ok(result)


@web_api.get("/api/trending")
async def trending():
    """Trending coins (pass-through)."""
    return _ok(await _require_provider().get_trending())


@web_api.get("/api/global")
async def global_data():
    """Global market data (pass-through)."""
    return _ok(await _require_provider().get_global_data())


@web_api.get("/api/chart/{coin_id}")
async def chart(coin_id: str, days: Optional[int] = Query(default=None, ge=1, le=365)):
    """Price / volume / market cap series for one coin."""
    return _ok(await _require_provider().get_market_chart(coin_id, days or 30))


@web_api.get("/api/stats")
async def stats():
    """Upstream cache statistics and process uptime."""
    return {
        "success": True,
        "timestamp": _timestamp(),
        "uptime": round(time.monotonic() - _started_at, 3),
        "cache": _require_provider().cache_stats(),
    }
