"""
Trade Decision Engine - Options Buying Orchestrator

FLOW (one evaluation):
1. Analyzers: day type, structure, volatility, momentum
2. Pre-trade gate: all 8 checks must pass
3. Expansion score: must reach the minimum
4. Lot sizing: clipped by the daily loss ledger
5. BUY with order levels, or NO_TRADE with the reason

Fail-closed: any failed stage yields NO_TRADE.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from .config import EngineConfig
from .daily_loss_tracker import DailyLossTracker
from .day_type_classifier import DayTypeClassifier
from .expansion_scorer import ExpansionScorer, ScoreBreakdown
from .indicators import to_local
from .lot_sizer import LotSizer, SizingDecision
from .models import AnalysisContext, EvaluationRequest
from .momentum_analyzer import MomentumAnalyzer
from .pre_trade_gate import GateReport, PreTradeGate
from .structure_analyzer import StructureAnalyzer
from .volatility_analyzer import VolatilityAnalyzer


class TradeAction(Enum):
    BUY = "BUY"
    NO_TRADE = "NO_TRADE"


@dataclass(frozen=True)
class TradeDecision:
    """
    Immutable engine output.

    The gate report is always attached, including on rejections.
    """
    action: TradeAction
    timestamp: datetime
    gate_report: GateReport
    side: Optional[str] = None
    security_id: Optional[str] = None
    entry_price: Optional[float] = None
    stop_loss_price: Optional[float] = None
    target_price: Optional[float] = None
    lots: int = 0
    quantity: int = 0
    score: Optional[int] = None
    expected_premium: float = 0.0
    expected_index_move: float = 0.0
    reason: Optional[str] = None
    score_breakdown: Optional[ScoreBreakdown] = None
    sizing: Optional[SizingDecision] = None

    @property
    def is_buy(self) -> bool:
        return self.action == TradeAction.BUY

    @property
    def failed_gates(self) -> List[str]:
        return self.gate_report.failed_gates

    def to_dict(self) -> dict:
        """Convert to dictionary for the caller / audit trail."""
        result = {
            "action": self.action.value,
            "side": self.side,
            "security_id": self.security_id,
            "entry_price": self.entry_price,
            "stop_loss_price": self.stop_loss_price,
            "target_price": self.target_price,
            "quantity": self.quantity,
            "lot_size": self.lots,
            "expansion_score": self.score,
            "expected_premium": round(self.expected_premium, 2),
            "expected_index_move": round(self.expected_index_move, 2),
            "gate_results": self.gate_report.to_dict(),
        }
        if self.reason is not None:
            result["reason"] = self.reason
        if self.failed_gates:
            result["failed_gates"] = self.failed_gates
        if self.score_breakdown is not None:
            result["score_breakdown"] = self.score_breakdown.to_dict()
        return result


class TradeDecisionEngine:
    """
    Orchestrates the decision pipeline.

    Components are injected; from_config wires the defaults. The loss
    tracker is the only shared state and is consulted under its lock.
    """

    def __init__(
        self,
        config: EngineConfig,
        classifier: DayTypeClassifier,
        structure_analyzer: StructureAnalyzer,
        volatility_analyzer: VolatilityAnalyzer,
        momentum_analyzer: MomentumAnalyzer,
        gate: PreTradeGate,
        scorer: ExpansionScorer,
        sizer: LotSizer,
        loss_tracker: DailyLossTracker,
        decision_logger: Optional[Any] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.classifier = classifier
        self.structure_analyzer = structure_analyzer
        self.volatility_analyzer = volatility_analyzer
        self.momentum_analyzer = momentum_analyzer
        self.gate = gate
        self.scorer = scorer
        self.sizer = sizer
        self.loss_tracker = loss_tracker
        self.decision_logger = decision_logger
        self.logger = logger or logging.getLogger(__name__)

        # Optional decision callback (e.g. order router, notifier)
        self.on_decision: Optional[Callable[[TradeDecision], None]] = None

    @classmethod
    def from_config(
        cls,
        config: Optional[EngineConfig] = None,
        loss_tracker: Optional[DailyLossTracker] = None,
        decision_logger: Optional[Any] = None,
        logger: Optional[logging.Logger] = None,
    ) -> 'TradeDecisionEngine':
        """Build an engine with default components for `config`."""
        config = config or EngineConfig()
        tz = config.analysis.timezone

        if loss_tracker is None:
            state_path = config.paths.ledger_file if config.persist_ledger else None
            loss_tracker = DailyLossTracker(
                cap=config.risk.daily_loss_cap,
                state_path=state_path,
                logger=logger,
            )

        return cls(
            config=config,
            classifier=DayTypeClassifier(config.analysis, logger),
            structure_analyzer=StructureAnalyzer(config.analysis, logger),
            volatility_analyzer=VolatilityAnalyzer(config.analysis, logger),
            momentum_analyzer=MomentumAnalyzer(config.analysis, logger),
            gate=PreTradeGate(config.gates, tz, logger),
            scorer=ExpansionScorer(config.scoring, config.gates, tz, logger),
            sizer=LotSizer(config.sizing, config.scoring, logger),
            loss_tracker=loss_tracker,
            decision_logger=decision_logger,
            logger=logger,
        )

    # =========================================================================
    # ENTRY POINTS
    # =========================================================================

    def evaluate(self, payload: Mapping[str, Any]) -> TradeDecision:
        """
        Validate a raw payload and decide.

        Raises:
            RequestValidationError: malformed payload, before any analysis runs.
        """
        return self.recommend(EvaluationRequest.from_dict(payload))

    def recommend(self, request: EvaluationRequest) -> TradeDecision:
        return self.decide(self.build_context(request))

    def build_context(self, request: EvaluationRequest) -> AnalysisContext:
        """Run the four analyzers on a validated request."""
        day_type = self.classifier.classify(request.candles_15m)
        structure = self.structure_analyzer.analyze(request.candles_5m)
        volatility = self.volatility_analyzer.analyze(request.candles_5m, request.now)

        delta = request.strike.delta
        if delta is None:
            delta = self.config.analysis.default_option_delta
        momentum = self.momentum_analyzer.analyze(
            request.candles_5m,
            option_delta=delta,
            direction=structure.direction if structure.detected else None,
        )

        return AnalysisContext(
            day_type=day_type,
            structure=structure,
            volatility=volatility,
            momentum=momentum,
            now=request.now,
            strike=request.strike,
        )

    def decide(self, context: AnalysisContext) -> TradeDecision:
        # Step 1: Gates
        report = self.gate.run(context)
        if not report.allowed:
            reason = f"Failed gates: {', '.join(report.failed_gates)}"
            return self._finalize(self._no_trade(context, report, reason))

        # Step 2: Score
        breakdown = self.scorer.score(context)
        total = breakdown.total
        min_score = self.config.scoring.min_score
        if total < min_score:
            reason = f"Expansion score too low: {total}/100 (minimum: {min_score})"
            return self._finalize(self._no_trade(context, report, reason, breakdown))

        # Step 3: Size against the ledger
        session_day = to_local(context.now, self.config.analysis.timezone).date()
        with self.loss_tracker.lock:
            self.loss_tracker.ensure_session(session_day)
            remaining = self.loss_tracker.remaining_capacity()
            sizing = self.sizer.size_for(total, remaining, context.strike.max_loss)

        if sizing.lots == 0:
            return self._finalize(
                self._no_trade(context, report, sizing.blocked_reason, breakdown, sizing)
            )

        # Step 4: Order levels
        strike = context.strike
        sizing_config = self.config.sizing
        stop = strike.stop_loss_price
        if stop is None:
            stop = round(strike.entry_price * sizing_config.stop_loss_pct, 2)
        target = strike.target_price
        if target is None:
            target = round(strike.entry_price * sizing_config.target_multiple, 2)

        decision = TradeDecision(
            action=TradeAction.BUY,
            timestamp=context.now,
            gate_report=report,
            side=strike.side,
            security_id=strike.security_id,
            entry_price=strike.entry_price,
            stop_loss_price=stop,
            target_price=target,
            lots=sizing.lots,
            quantity=sizing.lots * sizing_config.lot_multiplier,
            score=total,
            expected_premium=context.momentum.expected_premium,
            expected_index_move=context.momentum.expected_index_move,
            score_breakdown=breakdown,
            sizing=sizing,
        )
        return self._finalize(decision)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _no_trade(
        self,
        context: AnalysisContext,
        report: GateReport,
        reason: str,
        breakdown: Optional[ScoreBreakdown] = None,
        sizing: Optional[SizingDecision] = None,
    ) -> TradeDecision:
        return TradeDecision(
            action=TradeAction.NO_TRADE,
            timestamp=context.now,
            gate_report=report,
            side=context.strike.side,
            security_id=context.strike.security_id,
            score=breakdown.total if breakdown is not None else None,
            expected_premium=context.momentum.expected_premium,
            expected_index_move=context.momentum.expected_index_move,
            reason=reason,
            score_breakdown=breakdown,
            sizing=sizing,
        )

    def _finalize(self, decision: TradeDecision) -> TradeDecision:
        if decision.is_buy:
            self.logger.info(
                f"Decision: BUY {decision.side} {decision.security_id or ''} "
                f"{decision.lots} lots @ {decision.entry_price} (score {decision.score})"
            )
        else:
            self.logger.info(f"Decision: NO_TRADE - {decision.reason}")

        if self.decision_logger is not None:
            self.decision_logger.log_decision(decision)

        if self.on_decision is not None:
            self.on_decision(decision)

        return decision

    def get_status_summary(self) -> Dict:
        return {
            "ledger": self.loss_tracker.get_status_summary(),
            "min_score": self.config.scoring.min_score,
            "time_windows": [str(w) for w in self.config.gates.time_windows],
        }
