"""
Pre-Trade Gate - Options Buying Admission Filter

ALL GATES MUST PASS (evaluated in this order, never short-circuited):
A. market_regime      Day type is tradeable
B. time_window        IST time inside an admitted window
C. structure          A structure event was detected
D. volatility         ATR is expanding
E. momentum_timing    Expected premium >= early-move floor
F. strike_quality     Delta band, tight spread, near ATM
G. expected_move      Expected premium >= expected-move floor
H. risk_feasibility   max_loss <= ratio x expected_win

Missing strike metadata fails closed.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from .config import GateConfig
from .indicators import local_clock
from .models import AnalysisContext


@dataclass(frozen=True)
class GateResult:
    """Outcome of one admission check, with the observables it used."""
    name: str
    passed: bool
    detail: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"passed": self.passed, **self.detail}


@dataclass(frozen=True)
class GateReport:
    """Complete, ordered set of gate results."""
    results: Tuple[GateResult, ...]

    @property
    def allowed(self) -> bool:
        return all(r.passed for r in self.results)

    @property
    def is_blocked(self) -> bool:
        return not self.allowed

    @property
    def failed_gates(self) -> List[str]:
        return [r.name for r in self.results if not r.passed]

    def get(self, name: str) -> Optional[GateResult]:
        for result in self.results:
            if result.name == name:
                return result
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary for logging."""
        return {r.name: r.to_dict() for r in self.results}


class PreTradeGate:
    """
    Eight independent admission checks.

    Each check is a pure function of the analysis context; the report
    always contains every gate so blocked decisions stay diagnosable.
    """

    GATE_NAMES = (
        "market_regime",
        "time_window",
        "structure",
        "volatility",
        "momentum_timing",
        "strike_quality",
        "expected_move",
        "risk_feasibility",
    )

    def __init__(
        self,
        config: Optional[GateConfig] = None,
        timezone: str = "Asia/Kolkata",
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or GateConfig()
        self.timezone = timezone
        self.logger = logger or logging.getLogger(__name__)

    @property
    def checks(self) -> List[Callable[[AnalysisContext], GateResult]]:
        return [
            self._check_market_regime,
            self._check_time_window,
            self._check_structure,
            self._check_volatility,
            self._check_momentum_timing,
            self._check_strike_quality,
            self._check_expected_move,
            self._check_risk_feasibility,
        ]

    def run(self, context: AnalysisContext) -> GateReport:
        report = GateReport(results=tuple(check(context) for check in self.checks))

        if report.is_blocked:
            self.logger.info(f"Gate BLOCKED: {', '.join(report.failed_gates)}")
        else:
            self.logger.debug("Gate: all 8 checks passed")

        return report

    # =========================================================================
    # GATES
    # =========================================================================

    def _check_market_regime(self, context: AnalysisContext) -> GateResult:
        day_type = context.day_type
        return GateResult(
            "market_regime",
            day_type.is_tradeable,
            {"day_type": day_type.label},
        )

    def _check_time_window(self, context: AnalysisContext) -> GateResult:
        clock = local_clock(context.now, self.timezone)
        inside = any(w.contains(clock) for w in self.config.time_windows)
        return GateResult(
            "time_window",
            inside,
            {"time": clock.strftime("%H:%M"), "windows": [str(w) for w in self.config.time_windows]},
        )

    def _check_structure(self, context: AnalysisContext) -> GateResult:
        structure = context.structure
        return GateResult(
            "structure",
            structure.detected,
            {"kind": structure.kind.value, "quality": structure.quality},
        )

    def _check_volatility(self, context: AnalysisContext) -> GateResult:
        volatility = context.volatility
        return GateResult("volatility", volatility.expanding, volatility.to_dict())

    def _check_momentum_timing(self, context: AnalysisContext) -> GateResult:
        premium = context.momentum.expected_premium
        return GateResult(
            "momentum_timing",
            premium >= self.config.min_momentum_premium,
            {"expected_premium": round(premium, 2), "minimum": self.config.min_momentum_premium},
        )

    def _check_strike_quality(self, context: AnalysisContext) -> GateResult:
        strike = context.strike
        delta = strike.delta
        spread = strike.effective_spread_pct
        distance = strike.strike_distance_pct

        delta_ok = delta is not None and self.config.min_delta <= delta <= self.config.max_delta
        spread_ok = spread is not None and spread < self.config.max_spread_pct
        distance_ok = distance is not None and distance <= self.config.max_strike_distance_pct

        return GateResult(
            "strike_quality",
            delta_ok and spread_ok and distance_ok,
            {
                "delta": delta,
                "spread_pct": None if spread is None else round(spread, 4),
                "strike_distance_pct": None if distance is None else round(distance, 4),
                "delta_ok": delta_ok,
                "spread_ok": spread_ok,
                "distance_ok": distance_ok,
            },
        )

    def _check_expected_move(self, context: AnalysisContext) -> GateResult:
        premium = context.momentum.expected_premium
        return GateResult(
            "expected_move",
            premium >= self.config.min_expected_premium,
            {"expected_premium": round(premium, 2), "minimum": self.config.min_expected_premium},
        )

    def _check_risk_feasibility(self, context: AnalysisContext) -> GateResult:
        max_loss = context.strike.max_loss
        expected_win = context.strike.expected_win

        feasible = expected_win > 0 and max_loss <= self.config.max_loss_to_win_ratio * expected_win
        ratio = max_loss / expected_win if expected_win > 0 else None
        return GateResult(
            "risk_feasibility",
            feasible,
            {
                "max_loss": max_loss,
                "expected_win": expected_win,
                "loss_to_win": None if ratio is None else round(ratio, 3),
                "max_ratio": self.config.max_loss_to_win_ratio,
            },
        )
