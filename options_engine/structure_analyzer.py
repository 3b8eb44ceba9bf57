"""
Structure Analyzer

Detects a qualifying price-structure event on 5-minute candles.

DETECTORS (priority order, quality):
1. Break of structure with displacement  30
2. Trap failure retest                   25
3. Range break with follow-through       20

All detectors run independently; the highest-priority hit wins.
"""

import logging
from typing import Callable, List, Optional, Sequence

import numpy as np

from .config import AnalysisConfig
from .indicators import to_arrays
from .models import Candle, Direction, StructureKind, StructureSignal


class StructureAnalyzer:
    """Price-structure detector for options buying entries."""

    QUALITY = {
        StructureKind.BOS_DISPLACEMENT: 30,
        StructureKind.TRAP_FAILURE_RETEST: 25,
        StructureKind.RANGE_BREAK_FOLLOWTHROUGH: 20,
    }

    BOS_LOOKBACK = 10
    BOS_REFERENCE = 5
    DISPLACEMENT_BODY = 0.6

    TRAP_LOOKBACK = 15
    TRAP_FIRST_PART = 8
    TRAP_RECOVERY = 0.5

    RANGE_LOOKBACK = 20
    RANGE_EXPANSION = 1.2

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or AnalysisConfig()
        self.logger = logger or logging.getLogger(__name__)

    @property
    def detectors(self) -> List[Callable[[Sequence[Candle]], StructureSignal]]:
        """Detectors in priority order."""
        return [
            self.detect_bos_displacement,
            self.detect_trap_failure_retest,
            self.detect_range_break,
        ]

    def analyze(self, candles_5m: Sequence[Candle]) -> StructureSignal:
        candles = list(candles_5m)
        if len(candles) < self.config.structure_min_candles:
            return StructureSignal.none()

        hits = [signal for signal in (d(candles) for d in self.detectors) if signal.detected]
        if not hits:
            return StructureSignal.none()

        if len(hits) > 1:
            self.logger.debug(f"Structure: {len(hits)} detectors fired, taking {hits[0].kind.value}")
        return hits[0]

    def _signal(self, kind: StructureKind, direction: Direction) -> StructureSignal:
        return StructureSignal(kind=kind, quality=self.QUALITY[kind], direction=direction)

    # =========================================================================
    # DETECTORS
    # =========================================================================

    def detect_bos_displacement(self, candles: Sequence[Candle]) -> StructureSignal:
        """Close beyond the reference swing with a >60% body and continuing closes."""
        if len(candles) < self.BOS_LOOKBACK:
            return StructureSignal.none()

        recent = candles[-self.BOS_LOOKBACK:]
        reference = recent[:self.BOS_REFERENCE]
        last = recent[-1]
        closes = np.array([c.close for c in recent[-3:]])

        if last.range <= 0 or last.body / last.range <= self.DISPLACEMENT_BODY:
            return StructureSignal.none()

        if last.close > max(c.high for c in reference) and np.all(np.diff(closes) >= 0):
            return self._signal(StructureKind.BOS_DISPLACEMENT, Direction.BULLISH)

        if last.close < min(c.low for c in reference) and np.all(np.diff(closes) <= 0):
            return self._signal(StructureKind.BOS_DISPLACEMENT, Direction.BEARISH)

        return StructureSignal.none()

    def detect_trap_failure_retest(self, candles: Sequence[Candle]) -> StructureSignal:
        """Fake break beyond the first part's extreme, reclaimed with a strong move."""
        if len(candles) < self.TRAP_LOOKBACK:
            return StructureSignal.none()

        recent = candles[-self.TRAP_LOOKBACK:]
        first = recent[:self.TRAP_FIRST_PART]
        second = recent[self.TRAP_FIRST_PART:]

        first_high = max(c.high for c in first)
        first_low = min(c.low for c in first)
        first_range = first_high - first_low
        start, end = second[0].close, second[-1].close
        recovery = abs(end - start)

        if start < first_low < end and recovery > first_range * self.TRAP_RECOVERY:
            return self._signal(StructureKind.TRAP_FAILURE_RETEST, Direction.BULLISH)

        if start > first_high > end and recovery > first_range * self.TRAP_RECOVERY:
            return self._signal(StructureKind.TRAP_FAILURE_RETEST, Direction.BEARISH)

        return StructureSignal.none()

    def detect_range_break(self, candles: Sequence[Candle]) -> StructureSignal:
        """Second half breaks the first half's range, holds, and shows an expansion bar."""
        if len(candles) < self.RANGE_LOOKBACK:
            return StructureSignal.none()

        recent = candles[-self.RANGE_LOOKBACK:]
        half = self.RANGE_LOOKBACK // 2
        _, highs, lows, closes = to_arrays(recent)

        range_high = highs[:half].max()
        range_low = lows[:half].min()
        range_size = range_high - range_low
        if range_size <= 0:
            return StructureSignal.none()

        second_ranges = highs[half:] - lows[half:]
        has_expansion_bar = bool(np.any(second_ranges > range_size * self.RANGE_EXPANSION))
        if not has_expansion_bar:
            return StructureSignal.none()

        last_closes = closes[-3:]
        if highs[half:].max() > range_high and np.all(last_closes > range_high):
            return self._signal(StructureKind.RANGE_BREAK_FOLLOWTHROUGH, Direction.BULLISH)

        if lows[half:].min() < range_low and np.all(last_closes < range_low):
            return self._signal(StructureKind.RANGE_BREAK_FOLLOWTHROUGH, Direction.BEARISH)

        return StructureSignal.none()
