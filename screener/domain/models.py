"""Domain models for market snapshots, derived indicators and portfolio simulation."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class ZoneSignal(str, Enum):
    """Oscillator zone (RSI, Bollinger %B, Stochastic)."""
    OVERSOLD = "oversold"
    NEUTRAL = "neutral"
    OVERBOUGHT = "overbought"


class TrendSignal(str, Enum):
    """Direction of a cross/trend indicator."""
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class VolumeSignal(str, Enum):
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class Grade(str, Enum):
    A_PLUS = "A+"
    A = "A"
    B_PLUS = "B+"
    B = "B"
    C_PLUS = "C+"
    C = "C"
    D = "D"
    F = "F"


class TradeSignal(str, Enum):
    STRONG_BUY = "STRONG BUY"
    BUY = "BUY"
    HOLD = "HOLD"
    SELL = "SELL"
    STRONG_SELL = "STRONG SELL"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    EXTREME = "EXTREME"


class RiskProfile(str, Enum):
    """Caller-selected bias for portfolio construction."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SortKey(str, Enum):
    MOMENTUM = "momentum"
    PRICE_CHANGE = "price_change"
    VOLUME = "volume"
    MARKET_CAP = "market_cap"


# ============== UPSTREAM RECORDS ==============

@dataclass(frozen=True)
class MarketSnapshot:
    """Per-asset market record as delivered by the market-data source."""
    id: str
    symbol: str
    name: str
    image: str = ""
    current_price: float = 0.0
    market_cap: float = 0.0
    market_cap_rank: Optional[int] = None
    total_volume: float = 0.0
    price_change_24h: float = 0.0
    price_change_7d: Optional[float] = None
    price_change_30d: Optional[float] = None
    circulating_supply: float = 0.0
    total_supply: Optional[float] = None
    max_supply: Optional[float] = None
    ath: float = 0.0
    ath_change_percentage: float = 0.0
    sparkline: Tuple[float, ...] = ()
    last_updated: str = ""


@dataclass(frozen=True)
class OHLCBar:
    """One OHLC candle (timestamp in epoch milliseconds)."""
    timestamp: int
    open: float
    high: float
    low: float
    close: float


@dataclass(frozen=True)
class MarketChart:
    """Time series of [timestamp, value] pairs."""
    prices: Tuple[Tuple[float, float], ...] = ()
    volumes: Tuple[Tuple[float, float], ...] = ()
    market_caps: Tuple[Tuple[float, float], ...] = ()


@dataclass(frozen=True)
class CommunityData:
    twitter_followers: int = 0
    reddit_subscribers: int = 0
    reddit_average_posts_48h: float = 0.0
    reddit_average_comments_48h: float = 0.0


@dataclass(frozen=True)
class DeveloperData:
    stars: int = 0
    forks: int = 0
    commit_count_4_weeks: int = 0
    total_issues: int = 0
    closed_issues: int = 0
    pull_requests_merged: int = 0


@dataclass(frozen=True)
class DetailMetadata:
    """
    Community/developer/sentiment metadata for one asset.

    Missing sections stay None so the scorers can substitute their neutral
    defaults; a wholly missing record is passed around as None.
    """
    community: Optional[CommunityData] = None
    developer: Optional[DeveloperData] = None
    sentiment_up_percentage: Optional[float] = None
    watchlist_users: int = 0


# ============== TECHNICAL INDICATORS ==============

@dataclass(frozen=True)
class MACDResult:
    macd_line: float
    signal_line: float
    histogram: float
    signal: TrendSignal


@dataclass(frozen=True)
class BollingerBands:
    upper: float
    middle: float
    lower: float
    percent_b: float
    bandwidth: float
    signal: ZoneSignal


@dataclass(frozen=True)
class SMABundle:
    sma20: float
    sma50: float
    sma200: float
    golden_cross: bool
    death_cross: bool


@dataclass(frozen=True)
class EMABundle:
    ema12: float
    ema26: float
    signal: TrendSignal  # bullish / bearish only


@dataclass(frozen=True)
class VolumeAnalysis:
    current_volume: float
    average_volume: float
    volume_ratio: float
    signal: VolumeSignal


@dataclass(frozen=True)
class StochasticResult:
    k: float
    d: float
    signal: ZoneSignal


@dataclass(frozen=True)
class TechnicalIndicators:
    """Fixed-shape indicator record; None means "not enough history", never zero."""
    rsi: Optional[float] = None
    rsi_signal: ZoneSignal = ZoneSignal.NEUTRAL
    macd: Optional[MACDResult] = None
    bollinger_bands: Optional[BollingerBands] = None
    sma: Optional[SMABundle] = None
    ema: Optional[EMABundle] = None
    volume_analysis: Optional[VolumeAnalysis] = None
    atr: Optional[float] = None
    stochastic: Optional[StochasticResult] = None
    momentum: Optional[float] = None


# ============== FUNDAMENTALS & SCORE ==============

@dataclass(frozen=True)
class SupplyMetrics:
    circulating_ratio: float
    is_deflationary: bool


@dataclass(frozen=True)
class FundamentalAnalysis:
    market_cap_score: int
    volume_to_market_cap_ratio: float
    supply_metrics: SupplyMetrics
    community_score: int
    developer_score: int
    sentiment_score: int
    ath_recovery_potential: int
    overall_fundamental_score: int


@dataclass(frozen=True)
class MomentumScore:
    technical_score: int
    fundamental_score: int
    overall_score: int
    grade: Grade
    signal: TradeSignal
    risk_level: RiskLevel
    potential_multiplier: float
    confidence: int


# ============== SCANNER ==============

@dataclass(frozen=True)
class ScannedCoin:
    """Terminal per-asset output of a scan."""
    id: str
    symbol: str
    name: str
    image: str
    current_price: float
    market_cap: float
    market_cap_rank: Optional[int]
    volume_24h: float
    price_change_24h: float
    price_change_7d: float
    price_change_30d: float
    sparkline: Tuple[float, ...]
    technical_indicators: TechnicalIndicators
    fundamental_analysis: FundamentalAnalysis
    momentum_score: MomentumScore
    last_updated: str = ""
    degraded: bool = False  # produced by the basic-analysis fallback


@dataclass(frozen=True)
class DetailedAnalysis(ScannedCoin):
    """ScannedCoin enriched with the OHLC bars and chart it was computed from."""
    ohlc: Tuple[OHLCBar, ...] = ()
    chart: MarketChart = field(default_factory=MarketChart)


@dataclass
class ScanResult:
    """Outcome of scoring one asset inside a batch scan."""
    coin: ScannedCoin
    success: bool = True
    error: Optional[str] = None


@dataclass(frozen=True)
class ScannerFilters:
    """Scan parameters; zero/None/empty values disable a filter."""
    min_market_cap: Optional[float] = None
    max_market_cap: Optional[float] = None
    min_volume: Optional[float] = None
    min_momentum_score: Optional[float] = None
    signals: Tuple[TradeSignal, ...] = ()
    sort_by: SortKey = SortKey.MOMENTUM
    limit: int = 50

    def cache_key(self) -> str:
        signals = ",".join(sorted(s.value for s in self.signals))
        return (
            f"scan:{self.min_market_cap}:{self.max_market_cap}:{self.min_volume}:"
            f"{self.min_momentum_score}:{signals}:{self.sort_by.value}:{self.limit}"
        )


# ============== PORTFOLIO ==============

@dataclass(frozen=True)
class PortfolioAllocation:
    coin_id: str
    symbol: str
    name: str
    image: str
    allocation_percent: float
    invested_amount: float
    current_value: float
    return_percent: float


@dataclass(frozen=True)
class PortfolioSimulation:
    initial_investment: float
    target_amount: float
    current_value: float
    total_return: float
    total_return_percent: float
    allocations: List[PortfolioAllocation]
    projected_days: int
    risk_score: int
    risk_profile: RiskProfile
