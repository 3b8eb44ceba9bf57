"""
Expansion Scorer

Weighted 0-100 confidence score for an options buying setup.

COMPONENTS (max points):
- structure_quality       30
- volatility_expansion    20
- momentum_quality        15
- time_advantage          10
- strike_responsiveness   10
- trap_liquidity_context  10
- expected_move_buffer     5
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .config import GateConfig, ScoringConfig
from .indicators import local_clock
from .models import AnalysisContext, MomentumState, StructureKind, StructureSignal, VolatilityState


@dataclass(frozen=True)
class ScoreBreakdown:
    structure_quality: int = 0
    volatility_expansion: int = 0
    momentum_quality: int = 0
    time_advantage: int = 0
    strike_responsiveness: int = 0
    trap_liquidity_context: int = 0
    expected_move_buffer: int = 0

    MAXIMA = {
        "structure_quality": 30,
        "volatility_expansion": 20,
        "momentum_quality": 15,
        "time_advantage": 10,
        "strike_responsiveness": 10,
        "trap_liquidity_context": 10,
        "expected_move_buffer": 5,
    }

    @property
    def total(self) -> int:
        raw = sum(self.components().values())
        return max(0, min(100, raw))

    def components(self) -> dict:
        return {name: getattr(self, name) for name in self.MAXIMA}

    def to_dict(self) -> dict:
        return {**self.components(), "total": self.total}


def _band_points(value: float, bands: Sequence[Tuple[float, int]], inclusive: bool = False) -> int:
    """Points of the first band whose threshold `value` clears."""
    for threshold, points in bands:
        if value > threshold or (inclusive and value == threshold):
            return points
    return 0


def _clamp(value: int, upper: int) -> int:
    return max(0, min(upper, value))


class ExpansionScorer:
    """Deterministic scorer; every component is clamped to its band before summing."""

    def __init__(
        self,
        config: Optional[ScoringConfig] = None,
        gate_config: Optional[GateConfig] = None,
        timezone: str = "Asia/Kolkata",
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or ScoringConfig()
        self.gate_config = gate_config or GateConfig()
        self.timezone = timezone
        self.logger = logger or logging.getLogger(__name__)

    def score(self, context: AnalysisContext) -> ScoreBreakdown:
        maxima = ScoreBreakdown.MAXIMA
        breakdown = ScoreBreakdown(
            structure_quality=_clamp(context.structure.quality, maxima["structure_quality"]),
            volatility_expansion=_clamp(self._volatility(context.volatility), maxima["volatility_expansion"]),
            momentum_quality=_clamp(self._momentum(context.momentum), maxima["momentum_quality"]),
            time_advantage=_clamp(self._time(context), maxima["time_advantage"]),
            strike_responsiveness=_clamp(self._strike(context.strike.delta), maxima["strike_responsiveness"]),
            trap_liquidity_context=_clamp(
                self._trap(context.structure, context.momentum), maxima["trap_liquidity_context"]
            ),
            expected_move_buffer=_clamp(self._buffer(context.momentum), maxima["expected_move_buffer"]),
        )

        self.logger.debug(f"Score: {breakdown.total}/100 {breakdown.components()}")
        return breakdown

    def _volatility(self, volatility: VolatilityState) -> int:
        if not volatility.expanding or volatility.median_atr <= 0:
            return 0

        excess = (volatility.current_atr - volatility.median_atr) / volatility.median_atr
        return (
            _band_points(excess, self.config.expansion_bands)
            + _band_points(volatility.slope, self.config.slope_bands)
        )

    def _momentum(self, momentum: MomentumState) -> int:
        points = _band_points(momentum.body_percent, self.config.body_bands)
        if momentum.follow_through:
            points += self.config.follow_through_bonus
        return points

    def _time(self, context: AnalysisContext) -> int:
        clock = local_clock(context.now, self.timezone)
        minutes = clock.hour * 60 + clock.minute

        for window in self.gate_config.time_windows:
            if not window.contains(clock):
                continue
            half_width = (window.end_minutes - window.start_minutes) / 2.0
            center = window.start_minutes + half_width
            proximity = max(0.0, 1 - abs(minutes - center) / half_width)
            edge = self.config.time_edge_score
            return int(round(edge + (10 - edge) * proximity))

        return 0

    def _strike(self, delta: Optional[float]) -> int:
        if delta is None:
            return 0
        closeness = 1 - abs(delta - self.config.target_delta) / self.config.delta_half_band
        return int(round(10 * max(0.0, closeness)))

    def _trap(self, structure: StructureSignal, momentum: MomentumState) -> int:
        if structure.kind == StructureKind.TRAP_FAILURE_RETEST:
            return 10
        if structure.kind == StructureKind.BOS_DISPLACEMENT:
            return 8 if momentum.body_percent > self.config.clean_break_body_pct else 5
        if structure.kind == StructureKind.RANGE_BREAK_FOLLOWTHROUGH:
            return 6
        return 0

    def _buffer(self, momentum: MomentumState) -> int:
        margin = momentum.expected_premium - self.gate_config.min_expected_premium
        if margin < 0:
            return 0
        return _band_points(margin, self.config.buffer_bands, inclusive=True)
