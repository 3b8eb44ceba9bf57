"""
Volatility Analyzer

ATR level and trend for the current session.

- current_atr: last Wilder ATR(14) value
- median_atr:  median of the ATR series since session open (09:15 IST)
- slope:       % change across the last 5 ATR samples
- expanding:   current >= median AND slope > 0
"""

import logging
from datetime import datetime
from typing import Optional, Sequence

import pandas as pd

from .config import AnalysisConfig
from .indicators import candles_to_frame, to_arrays, to_local, wilder_atr
from .models import Candle, VolatilityState


class VolatilityAnalyzer:
    """Session ATR expansion detector."""

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or AnalysisConfig()
        self.logger = logger or logging.getLogger(__name__)

    def analyze(
        self,
        session_candles: Sequence[Candle],
        now: Optional[datetime] = None,
    ) -> VolatilityState:
        candles = list(session_candles)
        if len(candles) < self.config.volatility_min_candles:
            self.logger.debug(f"Volatility: {len(candles)} candles, returning neutral state")
            return VolatilityState.neutral()

        atr_series = self.atr_series(candles)
        if atr_series.empty:
            return VolatilityState.neutral()

        current = float(atr_series.iloc[-1])
        moment = now if now is not None else candles[-1].timestamp
        median = self._session_median(atr_series, moment)
        slope = self._slope(atr_series)

        expanding = current > 0 and current >= median and slope > 0
        return VolatilityState(
            current_atr=current,
            median_atr=median,
            slope=slope,
            expanding=bool(expanding),
        )

    def atr_series(self, candles: Sequence[Candle]) -> pd.Series:
        """Wilder ATR indexed by local timestamp, warm-up bars dropped."""
        _, highs, lows, closes = to_arrays(candles)
        atr = wilder_atr(highs, lows, closes, self.config.atr_period)
        frame = candles_to_frame(candles, self.config.timezone)
        return pd.Series(atr, index=frame.index, name="atr").dropna()

    def _session_median(self, atr_series: pd.Series, moment: datetime) -> float:
        local = to_local(moment, self.config.timezone)
        session_start = pd.Timestamp(datetime.combine(local.date(), self.config.session_open))
        mask = (atr_series.index >= session_start) & (atr_series.index <= pd.Timestamp(local))
        session = atr_series[mask]

        if session.empty:
            self.logger.debug("Volatility: no session ATR samples, using full-series median")
            return float(atr_series.median())
        return float(session.median())

    def _slope(self, atr_series: pd.Series) -> float:
        window = self.config.atr_slope_window
        if len(atr_series) < window:
            return 0.0

        tail = atr_series.iloc[-window:]
        base = float(tail.iloc[0])
        if base <= 0:
            return 0.0
        return (float(tail.iloc[-1]) - base) / base * 100
