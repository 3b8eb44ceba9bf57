"""
Candle Indicators

Vectorized helpers shared by the analyzers: candle -> numpy/pandas
conversion, true range, Wilder ATR and IST session handling.

All functions return NaN (or empty results) instead of raising
when history is too short.
"""

from datetime import datetime, time
from typing import Sequence, Tuple
from zoneinfo import ZoneInfo

import numpy as np
import pandas as pd

from .models import Candle


def to_arrays(candles: Sequence[Candle]) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Split candles into (opens, highs, lows, closes) float arrays."""
    opens = np.array([c.open for c in candles], dtype=float)
    highs = np.array([c.high for c in candles], dtype=float)
    lows = np.array([c.low for c in candles], dtype=float)
    closes = np.array([c.close for c in candles], dtype=float)
    return opens, highs, lows, closes


def candles_to_frame(candles: Sequence[Candle], tz: str = "Asia/Kolkata") -> pd.DataFrame:
    """
    Build an OHLCV DataFrame indexed by exchange-local timestamps.

    Naive timestamps are taken as exchange-local wall-clock time;
    aware timestamps are converted to it.
    """
    frame = pd.DataFrame(
        {
            "open": [c.open for c in candles],
            "high": [c.high for c in candles],
            "low": [c.low for c in candles],
            "close": [c.close for c in candles],
            "volume": [c.volume for c in candles],
        },
        index=pd.DatetimeIndex([to_local(c.timestamp, tz) for c in candles], name="timestamp"),
    )
    return frame


def to_local(moment: datetime, tz: str = "Asia/Kolkata") -> datetime:
    """Exchange-local naive wall-clock time for a timestamp."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(ZoneInfo(tz)).replace(tzinfo=None)


def local_clock(moment: datetime, tz: str = "Asia/Kolkata") -> time:
    """Exchange-local time-of-day, minute resolution."""
    local = to_local(moment, tz)
    return time(local.hour, local.minute)


def true_range(highs: np.ndarray, lows: np.ndarray, closes: np.ndarray) -> np.ndarray:
    """True range; the first bar falls back to high - low."""
    if len(closes) == 0:
        return np.array([], dtype=float)

    tr = highs - lows
    if len(closes) > 1:
        prev_close = closes[:-1]
        tr[1:] = np.maximum.reduce([
            highs[1:] - lows[1:],
            np.abs(highs[1:] - prev_close),
            np.abs(lows[1:] - prev_close),
        ])
    return tr


def wilder_atr(
    highs: np.ndarray,
    lows: np.ndarray,
    closes: np.ndarray,
    period: int,
) -> np.ndarray:
    """
    Rolling ATR series with Wilder's smoothing.

    Seed is the mean of the first `period` true ranges. Entries before
    the seed are NaN; the whole series is NaN when fewer than
    period + 1 bars exist.
    """
    n = len(closes)
    atr = np.full(n, np.nan)
    if n < period + 1:
        return atr

    tr = true_range(highs, lows, closes)
    atr[period - 1] = np.mean(tr[:period])
    for i in range(period, n):
        atr[i] = (atr[i - 1] * (period - 1) + tr[i]) / period

    return atr


def simple_atr(candles: Sequence[Candle], period: int) -> float:
    """Mean of the last `period` true ranges; 0.0 when too short."""
    if len(candles) < period + 1:
        return 0.0

    _, highs, lows, closes = to_arrays(candles)
    tr = true_range(highs, lows, closes)[1:]
    return float(np.sum(tr[-period:]) / period)


def swing_points(highs: np.ndarray, lows: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Indices of 3-bar pivot highs and pivot lows."""
    if len(highs) < 3:
        return np.array([], dtype=int), np.array([], dtype=int)

    mid_h = highs[1:-1]
    mid_l = lows[1:-1]
    pivot_highs = np.where((mid_h > highs[:-2]) & (mid_h > highs[2:]))[0] + 1
    pivot_lows = np.where((mid_l < lows[:-2]) & (mid_l < lows[2:]))[0] + 1
    return pivot_highs, pivot_lows
