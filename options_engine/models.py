"""
Pipeline records and the request validation boundary.

Raw payloads (candle dicts, option-chain metadata) are validated ONCE here.
Everything downstream works on these typed, immutable records and never
re-checks field presence or types.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from numbers import Real
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple


class OptionsEngineError(Exception):
    """Base exception for the decision engine."""
    pass


class RequestValidationError(OptionsEngineError, ValueError):
    """Raised when an evaluation payload has the wrong shape."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Invalid evaluation request: " + "; ".join(self.errors))


# =============================================================================
# MARKET DATA
# =============================================================================

@dataclass(frozen=True)
class Candle:
    """Immutable OHLCV bar."""
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    @property
    def range(self) -> float:
        return self.high - self.low

    @property
    def body(self) -> float:
        return abs(self.close - self.open)

    @property
    def body_percent(self) -> float:
        """Body as % of range; a zero-range candle has no body strength."""
        if self.range <= 0:
            return 0.0
        return self.body / self.range * 100


# =============================================================================
# ANALYZER OUTPUTS
# =============================================================================

class DayTypeKind(Enum):
    TREND = "trend"
    TRAP_RESOLUTION = "trap_resolution"
    RANGE_EXPANSION = "range_expansion"
    REJECTED = "rejected"


@dataclass(frozen=True)
class DayType:
    """Session character. REJECTED carries the detected pattern as reason."""
    kind: DayTypeKind
    reason: Optional[str] = None

    @classmethod
    def rejected(cls, reason: str) -> 'DayType':
        return cls(DayTypeKind.REJECTED, reason)

    @property
    def is_tradeable(self) -> bool:
        return self.kind != DayTypeKind.REJECTED

    @property
    def label(self) -> str:
        if self.kind == DayTypeKind.REJECTED:
            return f"rejected({self.reason})"
        return self.kind.value


class StructureKind(Enum):
    BOS_DISPLACEMENT = "bos_displacement"
    TRAP_FAILURE_RETEST = "trap_failure_retest"
    RANGE_BREAK_FOLLOWTHROUGH = "range_break_followthrough"
    NONE = "none"


class Direction(Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NONE = "none"


@dataclass(frozen=True)
class StructureSignal:
    kind: StructureKind = StructureKind.NONE
    quality: int = 0
    direction: Direction = Direction.NONE

    @classmethod
    def none(cls) -> 'StructureSignal':
        return cls()

    @property
    def detected(self) -> bool:
        return self.kind != StructureKind.NONE


@dataclass(frozen=True)
class VolatilityState:
    current_atr: float = 0.0
    median_atr: float = 0.0
    slope: float = 0.0
    expanding: bool = False

    @classmethod
    def neutral(cls) -> 'VolatilityState':
        return cls()

    @property
    def expansion_ratio(self) -> float:
        if self.median_atr <= 0:
            return 0.0
        return self.current_atr / self.median_atr

    def to_dict(self) -> dict:
        return {
            "current_atr": round(self.current_atr, 2),
            "median_atr": round(self.median_atr, 2),
            "slope": round(self.slope, 4),
            "expanding": self.expanding,
            "expansion_ratio": round(self.expansion_ratio, 2),
        }


@dataclass(frozen=True)
class MomentumState:
    expected_index_move: float = 0.0
    expected_premium: float = 0.0
    body_percent: float = 0.0
    follow_through: bool = False

    @classmethod
    def neutral(cls) -> 'MomentumState':
        return cls()

    def to_dict(self) -> dict:
        return {
            "expected_index_move": round(self.expected_index_move, 2),
            "expected_premium": round(self.expected_premium, 2),
            "body_percent": round(self.body_percent, 2),
            "follow_through": self.follow_through,
        }


# =============================================================================
# STRIKE / REQUEST CONTEXT
# =============================================================================

@dataclass(frozen=True)
class StrikeContext:
    """
    Candidate contract metadata supplied by the option-chain collaborator.

    max_loss / expected_win are per-lot currency estimates.
    """
    strike_price: float
    atm_price: float
    entry_price: float
    max_loss: float
    expected_win: float
    side: str = "CE"
    security_id: Optional[str] = None
    delta: Optional[float] = None
    spread_pct: Optional[float] = None
    bid: Optional[float] = None
    ask: Optional[float] = None
    stop_loss_price: Optional[float] = None
    target_price: Optional[float] = None

    @property
    def effective_spread_pct(self) -> Optional[float]:
        """Quoted spread %, else derived from bid/ask; None when unknown."""
        if self.spread_pct is not None:
            return self.spread_pct
        if self.bid is None or self.ask is None:
            return None
        mid = (self.bid + self.ask) / 2.0
        if mid <= 0:
            return None
        return (self.ask - self.bid) / mid * 100

    @property
    def strike_distance_pct(self) -> Optional[float]:
        if self.atm_price <= 0:
            return None
        return abs(self.strike_price - self.atm_price) / self.atm_price * 100

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> 'StrikeContext':
        errors: List[str] = []
        if not isinstance(payload, Mapping):
            raise RequestValidationError(["strike: expected a mapping"])

        values: Dict[str, Any] = {}
        for name in ("strike_price", "atm_price", "entry_price", "max_loss", "expected_win"):
            values[name] = _number(payload, name, errors, prefix="strike")
        for name in ("delta", "spread_pct", "bid", "ask", "stop_loss_price", "target_price"):
            values[name] = _number(payload, name, errors, prefix="strike", required=False)

        side = str(payload.get("side", "CE")).upper()
        if side not in ("CE", "PE"):
            errors.append(f"strike.side: expected CE or PE, got {side!r}")
        values["side"] = side

        security_id = payload.get("security_id")
        values["security_id"] = None if security_id is None else str(security_id)

        for name in ("entry_price", "max_loss", "expected_win"):
            if isinstance(values.get(name), float) and values[name] < 0:
                errors.append(f"strike.{name}: must be non-negative")

        if errors:
            raise RequestValidationError(errors)
        return cls(**values)


@dataclass(frozen=True)
class AnalysisContext:
    """Analyzer outputs plus instrument/time/risk metadata for one evaluation."""
    day_type: DayType
    structure: StructureSignal
    volatility: VolatilityState
    momentum: MomentumState
    now: datetime
    strike: StrikeContext


@dataclass(frozen=True)
class EvaluationRequest:
    candles_5m: Tuple[Candle, ...]
    candles_15m: Tuple[Candle, ...]
    strike: StrikeContext
    now: datetime

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> 'EvaluationRequest':
        """
        Validate a raw payload.

        Raises:
            RequestValidationError listing every problem found.
        """
        if not isinstance(payload, Mapping):
            raise RequestValidationError(["payload: expected a mapping"])

        errors: List[str] = []
        candles_5m = _candles(payload, "candles_5m", errors)
        candles_15m = _candles(payload, "candles_15m", errors)

        now = None
        if "now" not in payload:
            errors.append("now: required")
        else:
            now = _timestamp(payload["now"], "now", errors)

        strike = None
        if "strike" not in payload:
            errors.append("strike: required")
        else:
            try:
                strike = StrikeContext.from_dict(payload["strike"])
            except RequestValidationError as e:
                errors.extend(e.errors)

        if errors:
            raise RequestValidationError(errors)

        return cls(
            candles_5m=candles_5m,
            candles_15m=candles_15m,
            strike=strike,
            now=now,
        )


# =============================================================================
# PAYLOAD HELPERS
# =============================================================================

def _number(
    payload: Mapping[str, Any],
    name: str,
    errors: List[str],
    prefix: str = "",
    required: bool = True,
) -> Optional[float]:
    label = f"{prefix}.{name}" if prefix else name
    value = payload.get(name)
    if value is None:
        if required:
            errors.append(f"{label}: required")
        return None
    if isinstance(value, bool) or not isinstance(value, Real):
        errors.append(f"{label}: expected a number, got {type(value).__name__}")
        return None
    return float(value)


def _timestamp(value: Any, label: str, errors: List[str]) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            errors.append(f"{label}: invalid ISO timestamp {value!r}")
            return None
    if isinstance(value, Real) and not isinstance(value, bool):
        # Epoch seconds are UTC by definition
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    errors.append(f"{label}: expected datetime, ISO string or epoch seconds")
    return None


def _candles(payload: Mapping[str, Any], name: str, errors: List[str]) -> Tuple[Candle, ...]:
    raw = payload.get(name)
    if raw is None:
        errors.append(f"{name}: required")
        return tuple()
    if isinstance(raw, (str, bytes)) or not isinstance(raw, Sequence):
        errors.append(f"{name}: expected a list of candles")
        return tuple()

    candles: List[Candle] = []
    for i, item in enumerate(raw):
        if isinstance(item, Candle):
            candles.append(item)
            continue

        label = f"{name}[{i}]"
        if not isinstance(item, Mapping):
            errors.append(f"{label}: expected a mapping")
            continue

        local: List[str] = []
        timestamp = None
        if "timestamp" not in item:
            local.append(f"{label}.timestamp: required")
        else:
            timestamp = _timestamp(item["timestamp"], f"{label}.timestamp", local)
        ohlc = {k: _number(item, k, local, prefix=label) for k in ("open", "high", "low", "close")}
        volume = _number(item, "volume", local, prefix=label, required=False)

        if not local and ohlc["high"] < ohlc["low"]:
            local.append(f"{label}: high below low")

        if local:
            errors.extend(local)
            continue

        candles.append(Candle(timestamp=timestamp, volume=volume or 0.0, **ohlc))

    try:
        for i in range(1, len(candles)):
            if candles[i].timestamp < candles[i - 1].timestamp:
                errors.append(f"{name}: timestamps not ascending at index {i}")
                break
    except TypeError:
        errors.append(f"{name}: mixes timezone-aware and naive timestamps")

    return tuple(candles)
