"""
Options Engine - Intraday Index Options Buying Decisions

PIPELINE:
=========
Day type (15m) + Structure / Volatility / Momentum (5m)
-> 8-gate pre-trade filter
-> 0-100 expansion score
-> Lot sizing clipped by the daily loss ledger
-> BUY / NO_TRADE

COMPONENTS:
1. Analyzers - day type, structure, volatility, momentum
2. PreTradeGate - all 8 admission checks must pass
3. ExpansionScorer - weighted confidence score
4. LotSizer + DailyLossTracker - position size within the daily cap
5. TradeDecisionEngine - orchestrator

SAFETY: The engine only recommends; it never transmits orders.
"""

from .config import (
    EngineConfig,
    AnalysisConfig,
    GateConfig,
    ScoringConfig,
    SizingConfig,
    RiskConfig,
    PathConfig,
    TimeWindow,
    ConfigError,
    DEFAULT_CONFIG,
)

from .models import (
    OptionsEngineError,
    RequestValidationError,
    Candle,
    DayType,
    DayTypeKind,
    Direction,
    StructureKind,
    StructureSignal,
    VolatilityState,
    MomentumState,
    StrikeContext,
    AnalysisContext,
    EvaluationRequest,
)

# Analyzers
from .day_type_classifier import DayTypeClassifier
from .structure_analyzer import StructureAnalyzer
from .volatility_analyzer import VolatilityAnalyzer
from .momentum_analyzer import MomentumAnalyzer

# Gate, score, size
from .pre_trade_gate import PreTradeGate, GateReport, GateResult
from .expansion_scorer import ExpansionScorer, ScoreBreakdown
from .lot_sizer import LotSizer, SizingDecision
from .daily_loss_tracker import DailyLossTracker

# Orchestration
from .decision_engine import TradeDecisionEngine, TradeDecision, TradeAction
from .logging_module import setup_logging, DecisionLogger

__version__ = "1.0.0"

__all__ = [
    # Config
    'EngineConfig',
    'AnalysisConfig',
    'GateConfig',
    'ScoringConfig',
    'SizingConfig',
    'RiskConfig',
    'PathConfig',
    'TimeWindow',
    'ConfigError',
    'DEFAULT_CONFIG',
    # Models
    'OptionsEngineError',
    'RequestValidationError',
    'Candle',
    'DayType',
    'DayTypeKind',
    'Direction',
    'StructureKind',
    'StructureSignal',
    'VolatilityState',
    'MomentumState',
    'StrikeContext',
    'AnalysisContext',
    'EvaluationRequest',
    # Analyzers
    'DayTypeClassifier',
    'StructureAnalyzer',
    'VolatilityAnalyzer',
    'MomentumAnalyzer',
    # Gate, score, size
    'PreTradeGate',
    'GateReport',
    'GateResult',
    'ExpansionScorer',
    'ScoreBreakdown',
    'LotSizer',
    'SizingDecision',
    'DailyLossTracker',
    # Orchestration
    'TradeDecisionEngine',
    'TradeDecision',
    'TradeAction',
    'setup_logging',
    'DecisionLogger',
]
