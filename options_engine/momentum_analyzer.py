"""
Momentum Analyzer

Projects the next underlying move and the resulting option premium move,
and measures how decisively the latest candles closed.
"""

import logging
from typing import Optional, Sequence

import numpy as np

from .config import AnalysisConfig
from .indicators import to_arrays
from .models import Candle, Direction, MomentumState


class MomentumAnalyzer:
    """
    Expected-move and candle-strength estimator.

    expected_index_move = recency-weighted |close-to-close| over the lookback,
    scaled by (1 + max range / spot), capped at a fraction of spot.
    expected_premium = expected_index_move x option delta.
    """

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or AnalysisConfig()
        self.logger = logger or logging.getLogger(__name__)

    def analyze(
        self,
        candles: Sequence[Candle],
        option_delta: float,
        spot_price: Optional[float] = None,
        direction: Optional[Direction] = None,
    ) -> MomentumState:
        candles = list(candles)
        if len(candles) < self.config.momentum_min_candles:
            self.logger.debug(f"Momentum: {len(candles)} candles, returning neutral state")
            return MomentumState.neutral()

        window = candles[-self.config.momentum_lookback:]
        _, highs, lows, closes = to_arrays(window)
        spot = spot_price if spot_price is not None else float(closes[-1])

        move = self.expected_index_move(highs, lows, closes, spot)
        return MomentumState(
            expected_index_move=move,
            expected_premium=move * option_delta,
            body_percent=self.body_percent(window),
            follow_through=self.follow_through(window, direction),
        )

    def expected_index_move(
        self,
        highs: np.ndarray,
        lows: np.ndarray,
        closes: np.ndarray,
        spot: float,
    ) -> float:
        if spot <= 0 or len(closes) < 2:
            return 0.0

        moves = np.abs(np.diff(closes))
        weights = np.arange(1, len(moves) + 1, dtype=float)
        weighted = float(np.average(moves, weights=weights))

        max_range = float(np.max(highs - lows))
        projected = weighted * (1 + max_range / spot)
        return min(projected, spot * self.config.max_move_pct_of_spot)

    def body_percent(self, candles: Sequence[Candle]) -> float:
        """Mean body % (0-100) of the trailing candles."""
        recent = candles[-self.config.body_window:]
        return float(np.mean([c.body_percent for c in recent]))

    def follow_through(
        self,
        candles: Sequence[Candle],
        direction: Optional[Direction] = None,
    ) -> bool:
        """Last closes move strictly one way and cover a meaningful distance."""
        closes = np.array([c.close for c in candles[-3:]])
        if len(closes) < 3:
            return False

        steps = np.diff(closes)
        rising = bool(np.all(steps > 0))
        falling = bool(np.all(steps < 0))

        if direction == Direction.BULLISH:
            directional = rising
        elif direction == Direction.BEARISH:
            directional = falling
        else:
            directional = rising or falling

        if not directional:
            return False

        mean_range = float(np.mean([c.range for c in candles]))
        net = abs(closes[-1] - closes[0])
        return bool(net >= mean_range * self.config.follow_through_min_range_fraction)
