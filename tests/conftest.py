"""
Shared fixtures: candle builders and analysis contexts.
"""

import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from options_engine.models import (
    AnalysisContext,
    Candle,
    DayType,
    DayTypeKind,
    Direction,
    MomentumState,
    StrikeContext,
    StructureKind,
    StructureSignal,
    VolatilityState,
)


SESSION_DAY = datetime(2024, 1, 15)
SESSION_OPEN = SESSION_DAY.replace(hour=9, minute=15)


def build_candles(
    rows: Sequence[Tuple[float, float, float, float]],
    start: datetime = SESSION_OPEN,
    minutes: int = 5,
) -> List[Candle]:
    """Candles from (open, high, low, close) rows at a fixed interval."""
    return [
        Candle(
            timestamp=start + timedelta(minutes=minutes * i),
            open=o,
            high=h,
            low=l,
            close=c,
            volume=1000.0,
        )
        for i, (o, h, l, c) in enumerate(rows)
    ]


def build_path(
    closes: Sequence[float],
    first_open: float,
    pad: float = 1.0,
    start: datetime = SESSION_OPEN,
    minutes: int = 5,
) -> List[Candle]:
    """Candles opening at the previous close, wicks `pad` beyond the body."""
    rows = []
    prev = first_open
    for close in closes:
        rows.append((prev, max(prev, close) + pad, min(prev, close) - pad, close))
        prev = close
    return build_candles(rows, start=start, minutes=minutes)


def flat_rows(count: int, low: float = 95.0, high: float = 105.0) -> List[Tuple[float, float, float, float]]:
    mid = (low + high) / 2
    return [(mid, high, low, mid)] * count


def build_context(
    now: Optional[datetime] = None,
    day_type: Optional[DayType] = None,
    structure: Optional[StructureSignal] = None,
    volatility: Optional[VolatilityState] = None,
    momentum: Optional[MomentumState] = None,
    **strike_overrides,
) -> AnalysisContext:
    """
    Context where every gate passes and the score is 85.

    11:30 IST, trend day, BOS displacement, ATR 45.2 vs 35.2 rising,
    15.2 expected premium, delta 0.48, 0.6% spread, ATM strike.
    """
    strike = dict(
        strike_price=22000.0,
        atm_price=22000.0,
        entry_price=100.0,
        max_loss=1200.0,
        expected_win=1000.0,
        side="CE",
        security_id="NIFTY24JAN22000CE",
        delta=0.48,
        spread_pct=0.6,
    )
    strike.update(strike_overrides)

    return AnalysisContext(
        day_type=day_type or DayType(DayTypeKind.TREND),
        structure=structure or StructureSignal(StructureKind.BOS_DISPLACEMENT, 30, Direction.BULLISH),
        volatility=volatility or VolatilityState(
            current_atr=45.2, median_atr=35.2, slope=5.3, expanding=True
        ),
        momentum=momentum or MomentumState(
            expected_index_move=31.7, expected_premium=15.2, body_percent=65.0, follow_through=True
        ),
        now=now or SESSION_DAY.replace(hour=11, minute=30),
        strike=StrikeContext(**strike),
    )


@pytest.fixture
def make_candles():
    return build_candles


@pytest.fixture
def make_path():
    return build_path


@pytest.fixture
def make_context():
    return build_context


@pytest.fixture
def flat():
    return flat_rows
