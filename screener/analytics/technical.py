"""Technical analysis functions (pure, no I/O)."""

import logging
from dataclasses import replace
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from ..domain.models import (
    BollingerBands,
    EMABundle,
    MACDResult,
    OHLCBar,
    SMABundle,
    StochasticResult,
    TechnicalIndicators,
    TrendSignal,
    VolumeAnalysis,
    VolumeSignal,
    ZoneSignal,
)

logger = logging.getLogger(__name__)

RSI_OVERSOLD = 30
RSI_OVERBOUGHT = 70
PERCENT_B_OVERSOLD = 0.2
PERCENT_B_OVERBOUGHT = 0.8
STOCHASTIC_OVERSOLD = 20
STOCHASTIC_OVERBOUGHT = 80
VOLUME_HIGH_RATIO = 1.5
VOLUME_LOW_RATIO = 0.5


def classify_rsi(rsi: Optional[float]) -> ZoneSignal:
    """Map RSI to a zone; boundaries (exactly 30 / 70) are neutral."""
    if rsi is None:
        return ZoneSignal.NEUTRAL
    if rsi < RSI_OVERSOLD:
        return ZoneSignal.OVERSOLD
    if rsi > RSI_OVERBOUGHT:
        return ZoneSignal.OVERBOUGHT
    return ZoneSignal.NEUTRAL


def classify_percent_b(percent_b: float) -> ZoneSignal:
    """Map Bollinger %B to a zone; boundaries (exactly 0.2 / 0.8) are neutral."""
    if percent_b < PERCENT_B_OVERSOLD:
        return ZoneSignal.OVERSOLD
    if percent_b > PERCENT_B_OVERBOUGHT:
        return ZoneSignal.OVERBOUGHT
    return ZoneSignal.NEUTRAL


def calculate_rsi(prices: Sequence[float], period: int = 14) -> Optional[float]:
    """
    Calculate RSI (Relative Strength Index) with Wilder's smoothing.

    Args:
        prices: Price series, oldest first
        period: RSI period (default 14)

    Returns:
        RSI value (0-100) or None if fewer than period + 1 points
    """
    values = np.asarray(prices, dtype=float)
    if period <= 0 or len(values) < period + 1:
        return None

    deltas = np.diff(values)
    gains = np.where(deltas > 0, deltas, 0.0)
    losses = np.where(deltas < 0, -deltas, 0.0)

    avg_gain = gains[:period].sum() / period
    avg_loss = losses[:period].sum() / period

    for gain, loss in zip(gains[period:], losses[period:]):
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period

    if avg_loss == 0:
        return 100.0

    rs = avg_gain / avg_loss
    return float(100 - (100 / (1 + rs)))


def calculate_ema_values(prices: Sequence[float], period: int) -> List[float]:
    """
    EMA series seeded with the SMA of the first ``period`` points.

    Returns an empty list when there is not enough history.
    """
    values = [float(p) for p in prices]
    if period <= 0 or len(values) < period:
        return []

    multiplier = 2 / (period + 1)
    ema = sum(values[:period]) / period
    ema_values = [ema]
    for price in values[period:]:
        ema = (price - ema) * multiplier + ema
        ema_values.append(ema)

    return ema_values


def calculate_macd(
    prices: Sequence[float],
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> Optional[MACDResult]:
    """
    Calculate MACD line, signal line and histogram.

    The signal is bullish/bearish on a fresh crossover in the last step,
    otherwise it follows the histogram sign.
    """
    if len(prices) < slow_period + signal_period:
        return None

    fast_ema = calculate_ema_values(prices, fast_period)
    slow_ema = calculate_ema_values(prices, slow_period)
    if not fast_ema or not slow_ema:
        return None

    offset = slow_period - fast_period
    macd_line = [fast_ema[i + offset] - slow_ema[i] for i in range(len(slow_ema))]

    signal_line = calculate_ema_values(macd_line, signal_period)
    if not signal_line:
        return None

    last_macd = macd_line[-1]
    last_signal = signal_line[-1]
    histogram = last_macd - last_signal

    prev_macd = macd_line[-2] if len(macd_line) > 1 else last_macd
    prev_signal = signal_line[-2] if len(signal_line) > 1 else last_signal

    if prev_macd <= prev_signal and last_macd > last_signal:
        signal = TrendSignal.BULLISH
    elif prev_macd >= prev_signal and last_macd < last_signal:
        signal = TrendSignal.BEARISH
    elif histogram > 0:
        signal = TrendSignal.BULLISH
    elif histogram < 0:
        signal = TrendSignal.BEARISH
    else:
        signal = TrendSignal.NEUTRAL

    return MACDResult(
        macd_line=last_macd,
        signal_line=last_signal,
        histogram=histogram,
        signal=signal,
    )


def calculate_bollinger_bands(
    prices: Sequence[float],
    period: int = 20,
    std_dev_multiplier: float = 2,
) -> Optional[BollingerBands]:
    """
    Calculate Bollinger Bands over the last ``period`` prices.

    A flat window has zero width; %B is then reported as 0.5 (mid-band).
    """
    if period <= 0 or len(prices) < period:
        return None

    window = pd.Series(prices, dtype=float).tail(period)
    middle = float(window.mean())
    std_dev = float(window.std(ddof=0))

    upper = middle + std_dev_multiplier * std_dev
    lower = middle - std_dev_multiplier * std_dev
    width = upper - lower

    current_price = float(window.iloc[-1])
    percent_b = (current_price - lower) / width if width != 0 else 0.5
    bandwidth = width / middle if middle != 0 else 0.0

    return BollingerBands(
        upper=upper,
        middle=middle,
        lower=lower,
        percent_b=percent_b,
        bandwidth=bandwidth,
        signal=classify_percent_b(percent_b),
    )


def calculate_sma(prices: Sequence[float], period: int) -> Optional[float]:
    """
    Calculate Simple Moving Average of the last ``period`` points.

    Returns:
        SMA value or None if insufficient data
    """
    if period <= 0 or len(prices) < period:
        return None
    return float(pd.Series(prices, dtype=float).tail(period).mean())


def calculate_stochastic(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    k_period: int = 14,
    d_period: int = 3,
) -> Optional[StochasticResult]:
    """Calculate Stochastic %K/%D; a flat high/low window gives %K = 50."""
    n = len(closes)
    if k_period <= 0 or d_period <= 0 or n < k_period + d_period:
        return None
    if len(highs) < n or len(lows) < n:
        return None

    high = pd.Series(highs[:n], dtype=float)
    low = pd.Series(lows[:n], dtype=float)
    close = pd.Series(closes, dtype=float)

    highest_high = high.rolling(k_period).max()
    lowest_low = low.rolling(k_period).min()
    price_range = highest_high - lowest_low

    with np.errstate(divide="ignore", invalid="ignore"):
        k_values = ((close - lowest_low) / price_range * 100).where(price_range != 0, 50.0)
    k_values = k_values.iloc[k_period - 1:]

    k = float(k_values.iloc[-1])
    d = float(k_values.tail(d_period).sum() / d_period)

    if k < STOCHASTIC_OVERSOLD and d < STOCHASTIC_OVERSOLD:
        signal = ZoneSignal.OVERSOLD
    elif k > STOCHASTIC_OVERBOUGHT and d > STOCHASTIC_OVERBOUGHT:
        signal = ZoneSignal.OVERBOUGHT
    else:
        signal = ZoneSignal.NEUTRAL

    return StochasticResult(k=k, d=d, signal=signal)


def calculate_atr(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = 14,
) -> Optional[float]:
    """Calculate ATR (Average True Range) with Wilder's smoothing."""
    n = len(closes)
    if period <= 0 or n < period + 1:
        return None
    if len(highs) < n or len(lows) < n:
        return None

    high = np.asarray(highs[:n], dtype=float)
    low = np.asarray(lows[:n], dtype=float)
    close = np.asarray(closes, dtype=float)
    prev_close = close[:-1]

    true_ranges = np.maximum.reduce([
        high[1:] - low[1:],
        np.abs(high[1:] - prev_close),
        np.abs(low[1:] - prev_close),
    ])

    atr = float(true_ranges[:period].mean())
    for tr in true_ranges[period:]:
        atr = (atr * (period - 1) + float(tr)) / period

    return atr


def calculate_momentum(prices: Sequence[float], period: int = 10) -> Optional[float]:
    """Last price minus the price ``period`` steps back."""
    if period <= 0 or len(prices) < period + 1:
        return None
    return float(prices[-1]) - float(prices[-1 - period])


def analyze_volume(
    current_volume: Optional[float],
    average_volume: Optional[float],
) -> Optional[VolumeAnalysis]:
    """Volume ratio analysis; only available when both figures are non-zero."""
    if not current_volume or not average_volume:
        return None

    ratio = current_volume / average_volume
    if ratio > VOLUME_HIGH_RATIO:
        signal = VolumeSignal.HIGH
    elif ratio < VOLUME_LOW_RATIO:
        signal = VolumeSignal.LOW
    else:
        signal = VolumeSignal.NORMAL

    return VolumeAnalysis(
        current_volume=current_volume,
        average_volume=average_volume,
        volume_ratio=ratio,
        signal=signal,
    )


def _sma_bundle(
    sma20: Optional[float],
    sma50: Optional[float],
    sma200: Optional[float],
) -> Optional[SMABundle]:
    # Longer averages fall back to SMA20 when the series cannot provide them.
    if sma20 is None:
        return None
    raw50 = sma50 or 0
    raw200 = sma200 or 0
    return SMABundle(
        sma20=sma20,
        sma50=sma50 or sma20,
        sma200=sma200 or sma20,
        golden_cross=raw50 > raw200,
        death_cross=raw50 < raw200 and raw50 != 0,
    )


def _ema_bundle(ema12_values: List[float], ema26_values: List[float]) -> Optional[EMABundle]:
    if not ema12_values or not ema26_values:
        return None
    ema12 = ema12_values[-1]
    ema26 = ema26_values[-1]
    return EMABundle(
        ema12=ema12,
        ema26=ema26,
        signal=TrendSignal.BULLISH if ema12 > ema26 else TrendSignal.BEARISH,
    )


def analyze_from_ohlc(bars: Sequence[OHLCBar]) -> TechnicalIndicators:
    """
    Full technical analysis from daily OHLC bars.

    OHLC carries no volume, so ``volume_analysis`` is always None here; see
    ``with_volume_analysis`` to borrow it from a sparkline analysis.
    """
    closes = [bar.close for bar in bars]
    highs = [bar.high for bar in bars]
    lows = [bar.low for bar in bars]
    n = len(closes)

    rsi = calculate_rsi(closes)

    return TechnicalIndicators(
        rsi=rsi,
        rsi_signal=classify_rsi(rsi),
        macd=calculate_macd(closes),
        bollinger_bands=calculate_bollinger_bands(closes),
        sma=_sma_bundle(
            calculate_sma(closes, 20),
            calculate_sma(closes, min(50, n)),
            calculate_sma(closes, min(200, n)),
        ),
        ema=_ema_bundle(
            calculate_ema_values(closes, 12),
            calculate_ema_values(closes, min(26, n)),
        ),
        volume_analysis=None,
        atr=calculate_atr(highs, lows, closes),
        stochastic=calculate_stochastic(highs, lows, closes),
        momentum=calculate_momentum(closes),
    )


def analyze_from_sparkline(
    prices: Sequence[float],
    volume_24h: Optional[float] = None,
    average_volume: Optional[float] = None,
) -> TechnicalIndicators:
    """
    Technical analysis from a close-only sparkline.

    Without highs/lows ATR and Stochastic are unavailable. Averages clamp their
    window to the available history.
    """
    n = len(prices)
    rsi = calculate_rsi(prices)

    return TechnicalIndicators(
        rsi=rsi,
        rsi_signal=classify_rsi(rsi),
        macd=calculate_macd(prices),
        bollinger_bands=calculate_bollinger_bands(prices),
        sma=_sma_bundle(
            calculate_sma(prices, min(20, n)),
            calculate_sma(prices, min(50, n)),
            calculate_sma(prices, min(200, n)),
        ),
        ema=_ema_bundle(
            calculate_ema_values(prices, min(12, n)),
            calculate_ema_values(prices, min(26, n)),
        ),
        volume_analysis=analyze_volume(volume_24h, average_volume),
        atr=None,
        stochastic=None,
        momentum=calculate_momentum(prices),
    )


def with_volume_analysis(
    primary: TechnicalIndicators,
    donor: TechnicalIndicators,
) -> TechnicalIndicators:
    """Copy of ``primary`` carrying ``donor``'s volume analysis."""
    return replace(primary, volume_analysis=donor.volume_analysis)
