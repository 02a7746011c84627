"""Domain layer - models and business entities."""

from .models import (
    BollingerBands,
    CommunityData,
    DetailedAnalysis,
    DetailMetadata,
    DeveloperData,
    EMABundle,
    FundamentalAnalysis,
    Grade,
    MACDResult,
    MarketChart,
    MarketSnapshot,
    MomentumScore,
    OHLCBar,
    PortfolioAllocation,
    PortfolioSimulation,
    RiskLevel,
    RiskProfile,
    ScannedCoin,
    ScannerFilters,
    ScanResult,
    SMABundle,
    SortKey,
    StochasticResult,
    SupplyMetrics,
    TechnicalIndicators,
    TradeSignal,
    TrendSignal,
    VolumeAnalysis,
    VolumeSignal,
    ZoneSignal,
)

__all__ = [
    "BollingerBands",
    "CommunityData",
    "DetailedAnalysis",
    "DetailMetadata",
    "DeveloperData",
    "EMABundle",
    "FundamentalAnalysis",
    "Grade",
    "MACDResult",
    "MarketChart",
    "MarketSnapshot",
    "MomentumScore",
    "OHLCBar",
    "PortfolioAllocation",
    "PortfolioSimulation",
    "RiskLevel",
    "RiskProfile",
    "ScannedCoin",
    "ScannerFilters",
    "ScanResult",
    "SMABundle",
    "SortKey",
    "StochasticResult",
    "SupplyMetrics",
    "TechnicalIndicators",
    "TradeSignal",
    "TrendSignal",
    "VolumeAnalysis",
    "VolumeSignal",
    "ZoneSignal",
]
