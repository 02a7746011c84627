"""
Simulated portfolio construction from scanned momentum scores.

Selection and weighting are deterministic: the same scanner output and risk
profile always produce the same allocation.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Sequence, Tuple

from ..domain.models import (
    PortfolioAllocation,
    PortfolioSimulation,
    RiskLevel,
    RiskProfile,
    ScannedCoin,
)
from ..utils import round_half_up, round_int

logger = logging.getLogger(__name__)

PORTFOLIO_SIZE = 5
CANDIDATE_POOL_SIZE = 80
MIN_PROJECTED_DAYS = 7
MIN_BASE_WEIGHT = 22
WEIGHT_OFFSET = 70
NEUTRAL_RISK_SCORE = 50

RISK_RANK: Dict[RiskLevel, int] = {
    RiskLevel.LOW: 1,
    RiskLevel.MEDIUM: 2,
    RiskLevel.HIGH: 3,
    RiskLevel.EXTREME: 4,
}

RISK_SCORE: Dict[RiskLevel, int] = {
    RiskLevel.LOW: 20,
    RiskLevel.MEDIUM: 40,
    RiskLevel.HIGH: 65,
    RiskLevel.EXTREME: 90,
}


@dataclass(frozen=True)
class ProfileScoreCoefficients:
    """Linear coefficients of the per-profile candidate score."""
    overall: float
    confidence: float = 0.0
    potential: float = 0.0
    market_cap_strength: float = 0.0
    risk_bucket: float = 0.0
    weekly_volatility: float = 0.0
    weekly_gain: float = 0.0


@dataclass(frozen=True)
class RiskProfileConfig:
    """All profile-dependent constants of portfolio construction."""
    profile: RiskProfile
    min_momentum_score: int
    allowed_risk_levels: FrozenSet[RiskLevel]
    score: ProfileScoreCoefficients
    allocation_exponent: float
    # weight factor = max(floor, 1 + (risk_bucket - pivot) * step)
    risk_weight_pivot: int
    risk_weight_step: float
    risk_weight_floor: float
    return_adjustment: float
    projection_horizon_days: int
    max_projected_days: int


PROFILES: Dict[RiskProfile, RiskProfileConfig] = {
    RiskProfile.LOW: RiskProfileConfig(
        profile=RiskProfile.LOW,
        min_momentum_score=58,
        allowed_risk_levels=frozenset({RiskLevel.LOW, RiskLevel.MEDIUM}),
        score=ProfileScoreCoefficients(
            overall=0.58,
            confidence=0.26,
            market_cap_strength=3.2,
            risk_bucket=-13,
            weekly_volatility=-0.16,
        ),
        allocation_exponent=0.9,
        risk_weight_pivot=1,
        risk_weight_step=-0.14,
        risk_weight_floor=0.65,
        return_adjustment=0.88,
        projection_horizon_days=60,
        max_projected_days=90,
    ),
    RiskProfile.MEDIUM: RiskProfileConfig(
        profile=RiskProfile.MEDIUM,
        min_momentum_score=55,
        allowed_risk_levels=frozenset({RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH}),
        score=ProfileScoreCoefficients(
            overall=0.57,
            confidence=0.16,
            potential=9,
            risk_bucket=-7,
            weekly_volatility=-0.08,
        ),
        allocation_exponent=1.0,
        risk_weight_pivot=1,
        risk_weight_step=0.0,
        risk_weight_floor=0.0,
        return_adjustment=1.0,
        projection_horizon_days=45,
        max_projected_days=70,
    ),
    RiskProfile.HIGH: RiskProfileConfig(
        profile=RiskProfile.HIGH,
        min_momentum_score=50,
        allowed_risk_levels=frozenset({RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.EXTREME}),
        score=ProfileScoreCoefficients(
            overall=0.45,
            potential=13,
            risk_bucket=-4,
            weekly_volatility=0.18,
            weekly_gain=0.35,
        ),
        allocation_exponent=1.24,
        risk_weight_pivot=2,
        risk_weight_step=0.12,
        risk_weight_floor=0.0,
        return_adjustment=1.12,
        projection_horizon_days=30,
        max_projected_days=50,
    ),
}


def get_profile_config(profile: RiskProfile) -> RiskProfileConfig:
    """Constants for a risk profile."""
    return PROFILES[RiskProfile(profile)]


def profile_score(coin: ScannedCoin, config: RiskProfileConfig) -> float:
    """Rank a candidate under a profile: large-cap/low-risk for low, volatility/potential for high."""
    momentum = coin.momentum_score
    weekly_change = coin.price_change_7d or 0.0
    c = config.score

    return (
        momentum.overall_score * c.overall
        + momentum.confidence * c.confidence
        + momentum.potential_multiplier * c.potential
        + math.log10(max(coin.market_cap, 1)) * c.market_cap_strength
        + RISK_RANK[momentum.risk_level] * c.risk_bucket
        + abs(weekly_change) * c.weekly_volatility
        + max(weekly_change, 0.0) * c.weekly_gain
    )


def select_candidates(
    scanned: Sequence[ScannedCoin],
    config: RiskProfileConfig,
    size: int = PORTFOLIO_SIZE,
) -> List[Tuple[ScannedCoin, float]]:
    """
    Top ``size`` coins by profile score among the profile's allowed risk levels.

    When fewer than ``size`` coins pass the risk filter, the unfiltered pool
    is ranked instead so the portfolio is never under-filled.
    """
    scored = [(coin, profile_score(coin, config)) for coin in scanned]
    allowed = [
        (coin, score) for coin, score in scored
        if coin.momentum_score.risk_level in config.allowed_risk_levels
    ]

    pool = allowed if len(allowed) >= size else scored
    if pool is scored and scored:
        logger.info(
            "Only %d/%d candidates match %s risk levels, using unfiltered pool",
            len(allowed), len(scored), config.profile.value,
        )

    ranked = sorted(pool, key=lambda item: item[1], reverse=True)
    return ranked[:size]


def allocation_weight(score: float, risk_level: RiskLevel, config: RiskProfileConfig) -> float:
    """Raw (unnormalised) allocation weight of one selected coin."""
    base_weight = max(MIN_BASE_WEIGHT, score + WEIGHT_OFFSET) ** config.allocation_exponent
    factor = max(
        config.risk_weight_floor,
        1 + (RISK_RANK[risk_level] - config.risk_weight_pivot) * config.risk_weight_step,
    )
    return base_weight * factor


def apportion_percentages(weights: Sequence[float], digits: int = 1) -> List[float]:
    """
    Convert weights to percentages rounded to ``digits`` that sum to exactly 100.

    Largest-remainder apportionment: floor every share, then hand the missing
    units to the largest fractional parts (earlier entries win ties).
    """
    total = sum(weights)
    if not weights or total <= 0:
        return [0.0 for _ in weights]

    scale = 10 ** digits
    units = [w / total * 100 * scale for w in weights]
    floors = [math.floor(u) for u in units]
    missing = 100 * scale - sum(floors)

    order = sorted(range(len(units)), key=lambda i: units[i] - floors[i], reverse=True)
    for i in order[:missing]:
        floors[i] += 1

    return [f / scale for f in floors]


def estimate_projected_days(
    total_return_percent: float,
    initial_investment: float,
    target_amount: float,
    config: RiskProfileConfig,
) -> int:
    """
    Days to reach the target, compounding the implied daily rate.

    The total return is treated as earned over the profile's horizon; the
    result is clamped to [7, profile max days]. No measurable growth or an
    unbounded target ratio means the target is never reached in the horizon.
    """
    daily_return = total_return_percent / config.projection_horizon_days
    multiplier_needed = target_amount / initial_investment
    growth = math.log(1 + daily_return / 100) if daily_return > 0 else 0.0

    if growth <= 0 or not math.isfinite(multiplier_needed):
        raw_days = config.max_projected_days
    elif multiplier_needed <= 1:
        raw_days = MIN_PROJECTED_DAYS
    else:
        raw_days = math.ceil(math.log(multiplier_needed) / growth)

    return max(MIN_PROJECTED_DAYS, min(raw_days, config.max_projected_days))


def build_portfolio(
    scanned: Sequence[ScannedCoin],
    initial_investment: float = 100,
    target_amount: float = 1000,
    risk_profile: RiskProfile = RiskProfile.MEDIUM,
) -> PortfolioSimulation:
    """
    Select, weight and project a simulated portfolio of up to five coins.

    Args:
        scanned: Scanner output (already filtered by the profile's min momentum)
        initial_investment: Amount invested, must be positive
        target_amount: Goal amount, must be positive
        risk_profile: low / medium / high

    Returns:
        PortfolioSimulation; an empty candidate pool yields a zero-allocation result
    """
    if initial_investment <= 0:
        raise ValueError("initial_investment must be positive")
    if target_amount <= 0:
        raise ValueError("target_amount must be positive")

    config = get_profile_config(risk_profile)
    selected = select_candidates(scanned, config)

    if not selected:
        logger.info("No portfolio candidates for %s profile", config.profile.value)
        return PortfolioSimulation(
            initial_investment=initial_investment,
            target_amount=target_amount,
            current_value=initial_investment,
            total_return=0.0,
            total_return_percent=0.0,
            allocations=[],
            projected_days=config.max_projected_days,
            risk_score=NEUTRAL_RISK_SCORE,
            risk_profile=config.profile,
        )

    weights = [
        allocation_weight(score, coin.momentum_score.risk_level, config)
        for coin, score in selected
    ]
    total_weight = sum(weights)
    display_percents = apportion_percentages(weights)

    allocations = []
    for (coin, _score), weight, display_percent in zip(selected, weights, display_percents):
        invested = weight / total_weight * initial_investment
        projected_multiple = coin.momentum_score.potential_multiplier * config.return_adjustment
        allocations.append(
            PortfolioAllocation(
                coin_id=coin.id,
                symbol=coin.symbol,
                name=coin.name,
                image=coin.image,
                allocation_percent=display_percent,
                invested_amount=round_half_up(invested, 2),
                current_value=round_half_up(invested * projected_multiple, 2),
                return_percent=round_half_up((projected_multiple - 1) * 100, 2),
            )
        )

    current_value = sum(a.current_value for a in allocations)
    total_return = current_value - initial_investment
    total_return_percent = total_return / initial_investment * 100

    projected_days = estimate_projected_days(
        total_return_percent, initial_investment, target_amount, config
    )
    average_risk = sum(RISK_SCORE[coin.momentum_score.risk_level] for coin, _ in selected) / len(selected)

    logger.info(
        "Built %s portfolio: %s, projected %.2f%% in %d days",
        config.profile.value,
        ", ".join(a.symbol for a in allocations),
        total_return_percent,
        projected_days,
    )

    return PortfolioSimulation(
        initial_investment=initial_investment,
        target_amount=target_amount,
        current_value=round_half_up(current_value, 2),
        total_return=round_half_up(total_return, 2),
        total_return_percent=round_half_up(total_return_percent, 2),
        allocations=allocations,
        projected_days=projected_days,
        risk_score=round_int(average_risk),
        risk_profile=config.profile,
    )
