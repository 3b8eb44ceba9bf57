"""
Day Type Classifier

Labels the session's character from 15-minute candles.

TRADEABLE:
- trend            HH/HL or LL/LH swing structure
- trap_resolution  failed move reclaimed with displacement
- range_expansion  compression followed by expansion candle

REJECTED (checked first):
- inside_day, narrow_range, choppy
- unclassified when nothing matches
- insufficient_data below the minimum window
"""

import logging
from typing import Optional, Sequence

import numpy as np

from .config import AnalysisConfig
from .indicators import simple_atr, swing_points, to_arrays
from .models import Candle, DayType, DayTypeKind


class DayTypeClassifier:
    """
    Session classifier for options buying.

    Never raises: every input maps to a DayType.
    """

    NARROW_RANGE_ATR_FRACTION = 0.5
    CHOP_OVERLAP_FRACTION = 0.5
    CHOP_PAIR_FRACTION = 0.7
    TRAP_DISPLACEMENT = 1.5
    EXPANSION_ATR_RATIO = 1.3
    EXPANSION_CANDLE_ATR = 1.5

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or AnalysisConfig()
        self.logger = logger or logging.getLogger(__name__)

    @property
    def min_candles(self) -> int:
        return self.config.day_type_min_candles

    def classify(self, candles_15m: Sequence[Candle]) -> DayType:
        candles = list(candles_15m)
        if len(candles) < self.min_candles:
            self.logger.debug(f"Day type: {len(candles)} candles < {self.min_candles}")
            return DayType.rejected("insufficient_data")

        if self._is_inside_day(candles):
            return DayType.rejected("inside_day")
        if self._is_narrow_range(candles):
            return DayType.rejected("narrow_range")
        if self._is_choppy(candles):
            return DayType.rejected("choppy")

        if self._is_trend(candles):
            return DayType(DayTypeKind.TREND)
        if self._is_trap_resolution(candles):
            return DayType(DayTypeKind.TRAP_RESOLUTION)
        if self._is_range_expansion(candles):
            return DayType(DayTypeKind.RANGE_EXPANSION)

        return DayType.rejected("unclassified")

    def _is_inside_day(self, candles: Sequence[Candle]) -> bool:
        prev, last = candles[-2], candles[-1]
        return last.high < prev.high and last.low > prev.low

    def _is_narrow_range(self, candles: Sequence[Candle]) -> bool:
        atr = simple_atr(candles[-20:], self.config.atr_period)
        if atr <= 0:
            return False

        avg_range = float(np.mean([c.range for c in candles[-5:]]))
        return avg_range < atr * self.NARROW_RANGE_ATR_FRACTION

    def _is_choppy(self, candles: Sequence[Candle]) -> bool:
        recent = candles[-10:]
        overlapping = 0

        for prev, curr in zip(recent[:-1], recent[1:]):
            overlap = min(curr.high, prev.high) - max(curr.low, prev.low)
            widest = max(curr.range, prev.range)
            if overlap > widest * self.CHOP_OVERLAP_FRACTION:
                overlapping += 1

        return overlapping > len(recent) * self.CHOP_PAIR_FRACTION

    def _is_trend(self, candles: Sequence[Candle]) -> bool:
        _, highs, lows, _ = to_arrays(candles[-20:])
        pivot_highs, pivot_lows = swing_points(highs, lows)
        if len(pivot_highs) < 2 or len(pivot_lows) < 2:
            return False

        h1, h2 = highs[pivot_highs[-2]], highs[pivot_highs[-1]]
        l1, l2 = lows[pivot_lows[-2]], lows[pivot_lows[-1]]

        bullish = h2 > h1 and l2 > l1
        bearish = h2 < h1 and l2 < l1
        return bool(bullish or bearish)

    def _is_trap_resolution(self, candles: Sequence[Candle]) -> bool:
        recent = candles[-10:]
        half = len(recent) // 2
        first, second = recent[:half], recent[-half:]

        first_move = first[-1].close - first[0].close
        second_move = second[-1].close - second[0].close

        first_up = first_move > 0
        second_up = second_move > 0
        if first_up == second_up:
            return False

        return abs(second_move) > abs(first_move) * self.TRAP_DISPLACEMENT

    def _is_range_expansion(self, candles: Sequence[Candle]) -> bool:
        half = len(candles) // 2
        first, second = candles[:half], candles[-half:]
        if len(first) < 10 or len(second) < 10:
            return False

        atr_first = simple_atr(first, 10)
        atr_second = simple_atr(second, 10)
        if atr_first <= 0:
            return False

        expanding = atr_second > atr_first * self.EXPANSION_ATR_RATIO
        large_candle = any(c.range > atr_first * self.EXPANSION_CANDLE_ATR for c in second)
        return expanding and large_candle
