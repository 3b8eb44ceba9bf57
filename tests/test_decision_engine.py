"""
Tests for the trade decision orchestrator.
"""

import csv
import logging
from datetime import date, datetime, timedelta, timezone

import pytest

from options_engine.config import EngineConfig, PathConfig
from options_engine.daily_loss_tracker import DailyLossTracker
from options_engine.decision_engine import TradeAction, TradeDecisionEngine
from options_engine.logging_module import DecisionLogger, setup_logging
from options_engine.models import (
    EvaluationRequest,
    MomentumState,
    RequestValidationError,
    VolatilityState,
)
from options_engine.pre_trade_gate import PreTradeGate


SESSION_DATE = date(2024, 1, 15)


@pytest.fixture
def tracker():
    return DailyLossTracker(cap=10_000, session_date=SESSION_DATE)


@pytest.fixture
def engine(tracker):
    return TradeDecisionEngine.from_config(EngineConfig(), loss_tracker=tracker)


def candle_payload(count: int, start: datetime, minutes: int):
    return [
        {
            "timestamp": (start + timedelta(minutes=minutes * i)).isoformat(),
            "open": 100.0,
            "high": 105.0,
            "low": 95.0,
            "close": 100.0,
            "volume": 1000,
        }
        for i in range(count)
    ]


@pytest.fixture
def payload():
    return {
        "candles_5m": candle_payload(30, datetime(2024, 1, 15, 9, 15), 5),
        "candles_15m": candle_payload(20, datetime(2024, 1, 15, 9, 15), 15),
        "now": "2024-01-15T11:30:00",
        "strike": {
            "side": "CE",
            "security_id": "NIFTY24JAN22000CE",
            "strike_price": 22000,
            "atm_price": 22000,
            "delta": 0.48,
            "spread_pct": 0.6,
            "entry_price": 100.0,
            "max_loss": 1200,
            "expected_win": 1000,
        },
    }


class TestScenarios:

    def test_strong_setup_buys_four_lots(self, engine, make_context):
        decision = engine.decide(make_context())

        assert decision.action == TradeAction.BUY
        assert decision.gate_report.allowed
        assert decision.score == 85
        assert decision.lots == 4
        assert decision.quantity == 200
        assert decision.entry_price == 100.0
        assert decision.stop_loss_price == 65.0
        assert decision.target_price == 140.0
        assert decision.side == "CE"
        assert decision.security_id == "NIFTY24JAN22000CE"

    def test_late_non_expanding_blocked(self, engine, make_context):
        context = make_context(
            now=datetime(2024, 1, 15, 14, 0),
            volatility=VolatilityState(current_atr=30.0, median_atr=35.2, slope=-2.0, expanding=False),
        )
        decision = engine.decide(context)

        assert decision.action == TradeAction.NO_TRADE
        assert not decision.gate_report.allowed
        assert "time_window" in decision.failed_gates
        assert "volatility" in decision.failed_gates
        assert decision.reason == "Failed gates: time_window, volatility"
        assert decision.score is None
        assert len(decision.gate_report.results) == 8

    def test_low_score_rejected(self, engine, make_context):
        context = make_context(
            now=datetime(2024, 1, 15, 12, 59),
            volatility=VolatilityState(current_atr=36.0, median_atr=35.2, slope=0.5, expanding=True),
            momentum=MomentumState(
                expected_index_move=25.0, expected_premium=12.0, body_percent=30.0, follow_through=False
            ),
            delta=0.40,
        )
        decision = engine.decide(context)

        assert decision.gate_report.allowed
        assert decision.action == TradeAction.NO_TRADE
        assert decision.score == 42
        assert decision.reason == "Expansion score too low: 42/100 (minimum: 50)"

    def test_partial_loss_clips_lots(self, engine, tracker, make_context):
        tracker.record_loss(6_000)
        decision = engine.decide(make_context())

        assert decision.action == TradeAction.BUY
        assert decision.sizing.base_lots == 4
        assert decision.lots == 3
        assert decision.quantity == 150


class TestLossCap:

    def test_exhausted_budget_blocks(self, engine, tracker, make_context):
        tracker.record_loss(9_500)
        decision = engine.decide(make_context())

        assert decision.action == TradeAction.NO_TRADE
        assert decision.reason == "daily_loss_cap"
        assert decision.score == 85

    def test_new_session_restores_budget(self, make_context):
        tracker = DailyLossTracker(cap=10_000, session_date=date(2024, 1, 12))
        tracker.record_loss(10_000)
        engine = TradeDecisionEngine.from_config(loss_tracker=tracker)

        decision = engine.decide(make_context())

        assert decision.lots == 4
        assert tracker.session_date == SESSION_DATE

    def test_stale_request_does_not_reopen_budget(self, engine, tracker, make_context):
        tracker.record_loss(9_500)

        engine.decide(make_context(now=datetime(2024, 1, 12, 11, 30)))
        decision = engine.decide(make_context())

        assert tracker.remaining_capacity() == 500
        assert tracker.session_date == SESSION_DATE
        assert decision.action == TradeAction.NO_TRADE
        assert decision.reason == "daily_loss_cap"

    def test_recommendation_does_not_debit_ledger(self, engine, tracker, make_context):
        engine.decide(make_context())
        engine.decide(make_context())
        assert tracker.remaining_capacity() == 10_000


class TestOrderLevels:

    def test_caller_levels_win(self, engine, make_context):
        decision = engine.decide(make_context(stop_loss_price=70.0, target_price=150.0))
        assert decision.stop_loss_price == 70.0
        assert decision.target_price == 150.0

    def test_lot_multiplier_from_config(self, tracker, make_context):
        config = EngineConfig.from_dict({"sizing": {"lot_multiplier": 25}})
        engine = TradeDecisionEngine.from_config(config, loss_tracker=tracker)
        assert engine.decide(make_context()).quantity == 100


class TestOutputShape:

    def test_buy_to_dict(self, engine, make_context):
        result = engine.decide(make_context()).to_dict()

        assert result["action"] == "BUY"
        assert result["lot_size"] == 4
        assert result["quantity"] == 200
        assert result["expansion_score"] == 85
        assert list(result["gate_results"]) == list(PreTradeGate.GATE_NAMES)
        assert "failed_gates" not in result
        assert result["score_breakdown"]["total"] == 85

    def test_no_trade_to_dict(self, engine, make_context):
        result = engine.decide(make_context(now=datetime(2024, 1, 15, 9, 30))).to_dict()

        assert result["action"] == "NO_TRADE"
        assert result["failed_gates"] == ["time_window"]
        assert result["reason"] == "Failed gates: time_window"
        assert result["quantity"] == 0
        assert len(result["gate_results"]) == 8


class TestEvaluate:

    def test_payload_runs_full_pipeline(self, engine, payload):
        decision = engine.evaluate(payload)

        # Flat candles: choppy day, no structure, no expansion
        assert decision.action == TradeAction.NO_TRADE
        assert decision.failed_gates[:2] == ["market_regime", "structure"]
        assert "volatility" in decision.failed_gates
        assert decision.gate_report.get("market_regime").detail["day_type"] == "rejected(choppy)"

    def test_missing_fields_rejected_before_analysis(self, engine):
        with pytest.raises(RequestValidationError) as excinfo:
            engine.evaluate({})

        errors = excinfo.value.errors
        assert "candles_5m: required" in errors
        assert "candles_15m: required" in errors
        assert "now: required" in errors
        assert "strike: required" in errors

    def test_bad_candle_and_strike(self, engine, payload):
        payload["candles_5m"][3]["high"] = 90.0
        payload["strike"]["delta"] = "high"
        payload["strike"]["side"] = "XX"

        with pytest.raises(RequestValidationError) as excinfo:
            engine.evaluate(payload)

        errors = excinfo.value.errors
        assert "candles_5m[3]: high below low" in errors
        assert any(e.startswith("strike.delta") for e in errors)
        assert any(e.startswith("strike.side") for e in errors)

    def test_epoch_timestamps_are_utc(self, engine, payload):
        def epoch_candles(count, minutes):
            start = datetime(2024, 1, 15, 3, 45, tzinfo=timezone.utc)  # 09:15 IST
            candles = candle_payload(count, start, minutes)
            for candle in candles:
                candle["timestamp"] = datetime.fromisoformat(candle["timestamp"]).timestamp()
            return candles

        payload["candles_5m"] = epoch_candles(30, 5)
        payload["candles_15m"] = epoch_candles(20, 15)
        payload["now"] = datetime(2024, 1, 15, 6, 0, tzinfo=timezone.utc).timestamp()

        request = EvaluationRequest.from_dict(payload)
        assert request.now.tzinfo is not None
        assert request.candles_5m[0].timestamp.tzinfo is not None

        decision = engine.evaluate(payload)
        window = decision.gate_report.get("time_window")
        assert window.passed
        assert window.detail["time"] == "11:30"

    def test_timestamps_must_ascend(self, engine, payload):
        payload["candles_15m"].reverse()
        with pytest.raises(ValueError, match="not ascending"):
            engine.evaluate(payload)


class TestAuditTrail:

    def test_every_decision_logged(self, tracker, make_context, tmp_path):
        log_path = tmp_path / "logs" / "decisions.csv"
        engine = TradeDecisionEngine.from_config(
            loss_tracker=tracker,
            decision_logger=DecisionLogger(log_path),
        )

        engine.decide(make_context())
        engine.decide(make_context(now=datetime(2024, 1, 15, 14, 0)))

        with open(log_path, newline="") as f:
            rows = list(csv.DictReader(f))

        assert [r["action"] for r in rows] == ["BUY", "NO_TRADE"]
        assert rows[0]["lots"] == "4"
        assert rows[1]["failed_gates"] == "time_window"

    def test_on_decision_callback(self, engine, make_context):
        seen = []
        engine.on_decision = seen.append
        decision = engine.decide(make_context())
        assert seen == [decision]

    def test_setup_logging(self, tmp_path):
        paths = PathConfig(base_dir=tmp_path / "data")
        logger = setup_logging(paths, verbose=False)
        try:
            logger.info("engine started")
            assert paths.system_log.exists()
            assert len(logger.handlers) == 2
            assert logger.level == logging.INFO

            # Reconfiguring replaces handlers instead of stacking them
            logger = setup_logging(paths, verbose=True)
            assert len(logger.handlers) == 2
            assert logger.level == logging.DEBUG
        finally:
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                handler.close()
            logger.setLevel(logging.NOTSET)

    def test_component_records_reach_system_log(self, tracker, make_context, tmp_path):
        paths = PathConfig(base_dir=tmp_path / "data")
        logger = setup_logging(paths, verbose=False)
        try:
            engine = TradeDecisionEngine.from_config(loss_tracker=tracker)
            engine.decide(make_context())

            text = paths.system_log.read_text()
            line = next(l for l in text.splitlines() if "Decision: BUY" in l)
            assert "MainThread" in line
            assert "options_engine.decision_engine:" in line
        finally:
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                handler.close()
            logger.setLevel(logging.NOTSET)
