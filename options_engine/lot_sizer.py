"""
Lot Sizer

Maps an expansion score to a discrete lot count, then clips it so the
worst-case loss of the position fits the remaining daily risk budget.

Score bands (default):
    < 50      0 lots (blocked)
    50 - 64   1 lot
    65 - 74   2 lots
    75 - 84   3 lots
    85 - 100  4 lots
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .config import ScoringConfig, SizingConfig


@dataclass(frozen=True)
class SizingDecision:
    score: int
    base_lots: int
    lots: int
    blocked_reason: Optional[str] = None

    @property
    def is_blocked(self) -> bool:
        return self.lots == 0

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "base_lots": self.base_lots,
            "lots": self.lots,
            "blocked_reason": self.blocked_reason,
        }


class LotSizer:
    """Score-to-lots mapping with a daily-loss clip."""

    SCORE_BELOW_MINIMUM = "score_below_minimum"
    DAILY_LOSS_CAP = "daily_loss_cap"

    def __init__(
        self,
        config: Optional[SizingConfig] = None,
        scoring: Optional[ScoringConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or SizingConfig()
        self.min_score = (scoring or ScoringConfig()).min_score
        self.logger = logger or logging.getLogger(__name__)

    def base_lots(self, score: int) -> int:
        if score < self.min_score:
            return 0
        for threshold, lots in self.config.score_bands:
            if score >= threshold:
                return min(lots, self.config.max_lots)
        return 0

    def size_for(
        self,
        score: int,
        remaining_capacity: float,
        max_loss_per_lot: float,
    ) -> SizingDecision:
        base = self.base_lots(score)
        if base == 0:
            return SizingDecision(score, 0, 0, self.SCORE_BELOW_MINIMUM)

        if remaining_capacity <= 0:
            self.logger.info("Sizing blocked: daily loss capacity exhausted")
            return SizingDecision(score, base, 0, self.DAILY_LOSS_CAP)

        lots = base
        while lots > 0 and lots * max_loss_per_lot > remaining_capacity:
            lots -= 1

        if lots == 0:
            self.logger.info(
                f"Sizing blocked: 1 lot risks {max_loss_per_lot:,.0f} "
                f"> remaining {remaining_capacity:,.0f}"
            )
            return SizingDecision(score, base, 0, self.DAILY_LOSS_CAP)

        if lots < base:
            self.logger.info(
                f"Sizing clipped: {base} -> {lots} lots "
                f"(remaining capacity {remaining_capacity:,.0f})"
            )

        return SizingDecision(score, base, lots)
