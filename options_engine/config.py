"""
Options Decision Engine Configuration

Single source of truth for all pipeline thresholds.
Defaults reproduce the validated intraday options-buying checklist
(NIFTY/BANKNIFTY weekly options, IST session).
"""

from dataclasses import dataclass, field, asdict
from datetime import time
from pathlib import Path
from typing import Dict, List, Tuple

import yaml


class ConfigError(ValueError):
    """Raised when configuration values are inconsistent or unreadable."""
    pass


def _parse_clock(value: str) -> time:
    hour, minute = value.strip().split(":")
    return time(int(hour), int(minute))


@dataclass(frozen=True)
class TimeWindow:
    """Half-open intraday window [start, end) in IST wall-clock time."""
    start: time
    end: time

    def contains(self, moment: time) -> bool:
        return self.start <= moment < self.end

    @property
    def start_minutes(self) -> int:
        return self.start.hour * 60 + self.start.minute

    @property
    def end_minutes(self) -> int:
        return self.end.hour * 60 + self.end.minute

    @classmethod
    def parse(cls, text: str) -> 'TimeWindow':
        """Parse a "HH:MM-HH:MM" window."""
        try:
            start, end = text.split("-")
            return cls(_parse_clock(start), _parse_clock(end))
        except ValueError as e:
            raise ConfigError(f"Invalid time window {text!r}: expected HH:MM-HH:MM") from e

    def __str__(self) -> str:
        return f"{self.start.strftime('%H:%M')}-{self.end.strftime('%H:%M')}"


DEFAULT_TIME_WINDOWS: Tuple[TimeWindow, ...] = (
    TimeWindow(time(10, 30), time(13, 0)),
    TimeWindow(time(13, 45), time(14, 30)),
)


@dataclass(frozen=True)
class AnalysisConfig:
    """Analyzer windows and session parameters."""
    # Session
    timezone: str = "Asia/Kolkata"
    session_open: time = time(9, 15)

    # Minimum history per analyzer
    day_type_min_candles: int = 20
    structure_min_candles: int = 20
    volatility_min_candles: int = 20
    momentum_min_candles: int = 10

    # ATR
    atr_period: int = 14
    atr_slope_window: int = 5

    # Momentum
    momentum_lookback: int = 10
    body_window: int = 3
    follow_through_min_range_fraction: float = 0.25
    max_move_pct_of_spot: float = 0.02
    default_option_delta: float = 0.45


@dataclass(frozen=True)
class GateConfig:
    """Pre-trade gate thresholds - ALL gates must pass."""
    time_windows: Tuple[TimeWindow, ...] = DEFAULT_TIME_WINDOWS

    # E. Momentum timing: early premium move within two candles
    min_momentum_premium: float = 4.0

    # F. Strike quality
    min_delta: float = 0.40
    max_delta: float = 0.55
    max_spread_pct: float = 1.0           # strictly below
    max_strike_distance_pct: float = 1.0  # |strike - ATM| / ATM, inclusive

    # G. Expected move
    min_expected_premium: float = 12.0

    # H. Risk feasibility
    max_loss_to_win_ratio: float = 1.5


@dataclass(frozen=True)
class ScoringConfig:
    """Expansion score parameters."""
    min_score: int = 50
    target_delta: float = 0.475
    delta_half_band: float = 0.075
    time_edge_score: int = 2

    # (threshold, points), checked top-down, strict ">"
    expansion_bands: Tuple[Tuple[float, int], ...] = ((0.5, 12), (0.3, 8), (0.1, 5))
    slope_bands: Tuple[Tuple[float, int], ...] = ((5.0, 8), (2.0, 5), (0.0, 2))
    body_bands: Tuple[Tuple[float, int], ...] = ((70.0, 12), (60.0, 9), (50.0, 6), (40.0, 3))
    follow_through_bonus: int = 3
    clean_break_body_pct: float = 60.0

    # (minimum premium margin above the expected-move floor, points), inclusive
    buffer_bands: Tuple[Tuple[float, int], ...] = ((3.0, 5), (1.5, 4), (0.0, 3))


@dataclass(frozen=True)
class SizingConfig:
    """Score-to-lots mapping and order construction."""
    # (minimum score, lots), checked top-down, inclusive
    score_bands: Tuple[Tuple[int, int], ...] = ((85, 4), (75, 3), (65, 2), (50, 1))
    max_lots: int = 4
    lot_multiplier: int = 50                  # Shares per lot
    stop_loss_pct: float = 0.65               # Stop at 65% of entry premium
    target_multiple: float = 1.4              # Target at 140% of entry premium


@dataclass(frozen=True)
class RiskConfig:
    """Daily loss governor."""
    daily_loss_cap: float = 10_000.0


@dataclass(frozen=True)
class PathConfig:
    """File paths for persistence and logging."""
    base_dir: Path = Path("options_engine_data")

    @property
    def logs_dir(self) -> Path:
        return self.base_dir / "logs"

    @property
    def state_dir(self) -> Path:
        return self.base_dir / "state"

    @property
    def decision_log(self) -> Path:
        return self.logs_dir / "decisions.csv"

    @property
    def system_log(self) -> Path:
        return self.logs_dir / "system.log"

    @property
    def ledger_file(self) -> Path:
        return self.state_dir / "daily_loss_ledger.json"


@dataclass
class EngineConfig:
    """Master configuration - aggregates all configs."""
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    gates: GateConfig = field(default_factory=GateConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    sizing: SizingConfig = field(default_factory=SizingConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)
    paths: PathConfig = field(default_factory=PathConfig)

    persist_ledger: bool = False
    verbose: bool = True

    def ensure_directories(self) -> None:
        """Create required directories."""
        self.paths.logs_dir.mkdir(parents=True, exist_ok=True)
        self.paths.state_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_dict(cls, config: Dict) -> 'EngineConfig':
        """Build configuration from a plain mapping (YAML layout)."""
        try:
            analysis = dict(config.get('analysis', {}))
            if 'session_open' in analysis:
                analysis['session_open'] = _parse_clock(str(analysis['session_open']))

            gates = dict(config.get('gates', {}))
            if 'time_windows' in gates:
                gates['time_windows'] = tuple(TimeWindow.parse(w) for w in gates['time_windows'])

            scoring = {
                k: tuple(tuple(band) for band in v) if k.endswith('_bands') else v
                for k, v in config.get('scoring', {}).items()
            }
            sizing = {
                k: tuple(tuple(band) for band in v) if k == 'score_bands' else v
                for k, v in config.get('sizing', {}).items()
            }
            paths = dict(config.get('paths', {}))
            if 'base_dir' in paths:
                paths['base_dir'] = Path(paths['base_dir'])

            return cls(
                analysis=AnalysisConfig(**analysis),
                gates=GateConfig(**gates),
                scoring=ScoringConfig(**scoring),
                sizing=SizingConfig(**sizing),
                risk=RiskConfig(**config.get('risk', {})),
                paths=PathConfig(**paths),
                persist_ledger=bool(config.get('persist_ledger', False)),
                verbose=bool(config.get('verbose', True)),
            )
        except TypeError as e:
            raise ConfigError(f"Unknown configuration key: {e}") from e

    @classmethod
    def from_yaml(cls, path: str) -> 'EngineConfig':
        """Load configuration from YAML file."""
        with open(path, 'r') as f:
            config = yaml.safe_load(f) or {}

        if not isinstance(config, dict):
            raise ConfigError(f"{path}: top-level YAML value must be a mapping")

        engine_config = cls.from_dict(config)
        ok, errors = engine_config.validate()
        if not ok:
            raise ConfigError(f"{path}: " + "; ".join(errors))
        return engine_config

    def to_dict(self) -> Dict:
        analysis = asdict(self.analysis)
        analysis['session_open'] = self.analysis.session_open.strftime('%H:%M')

        gates = asdict(self.gates)
        gates['time_windows'] = [str(w) for w in self.gates.time_windows]

        scoring = {
            k: [list(band) for band in v] if k.endswith('_bands') else v
            for k, v in asdict(self.scoring).items()
        }
        sizing = asdict(self.sizing)
        sizing['score_bands'] = [list(band) for band in self.sizing.score_bands]

        return {
            'analysis': analysis,
            'gates': gates,
            'scoring': scoring,
            'sizing': sizing,
            'risk': asdict(self.risk),
            'paths': {'base_dir': str(self.paths.base_dir)},
            'persist_ledger': self.persist_ledger,
            'verbose': self.verbose,
        }

    def to_yaml(self, path: str) -> None:
        """Save configuration to YAML file."""
        with open(path, 'w') as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    def validate(self) -> Tuple[bool, List[str]]:
        """Validate configuration."""
        errors = []

        g = self.gates
        if not 0 < g.min_delta <= g.max_delta < 1:
            errors.append("delta band must satisfy 0 < min_delta <= max_delta < 1")

        if g.min_momentum_premium < 0 or g.min_expected_premium < 0:
            errors.append("premium thresholds must be non-negative")

        if g.max_loss_to_win_ratio <= 0:
            errors.append("max_loss_to_win_ratio must be positive")

        for window in g.time_windows:
            if window.start >= window.end:
                errors.append(f"time window {window} is empty")

        a = self.analysis
        if a.atr_period < 2 or a.atr_slope_window < 2:
            errors.append("atr_period and atr_slope_window must be at least 2")

        if a.volatility_min_candles <= a.atr_period:
            errors.append("volatility_min_candles must exceed atr_period")

        s = self.sizing
        lots = [band[1] for band in s.score_bands]
        if lots != sorted(lots, reverse=True) or (lots and max(lots) > s.max_lots):
            errors.append("score_bands must be ordered by descending lots within max_lots")

        if s.lot_multiplier < 1:
            errors.append("lot_multiplier must be at least 1")

        if not 0 < s.stop_loss_pct < 1:
            errors.append("stop_loss_pct must be between 0 and 1")

        if self.risk.daily_loss_cap <= 0:
            errors.append("daily_loss_cap must be positive")

        if not 0 <= self.scoring.min_score <= 100:
            errors.append("min_score must be between 0 and 100")

        return len(errors) == 0, errors

    def get_summary(self) -> str:
        """Get configuration summary string."""
        windows = ", ".join(str(w) for w in self.gates.time_windows)
        return f"""
Options Decision Engine Settings
================================
Time windows (IST): {windows}
Delta band: {self.gates.min_delta:.2f}-{self.gates.max_delta:.2f}
Max spread: {self.gates.max_spread_pct}%
Expected premium floor: {self.gates.min_expected_premium}
Minimum score: {self.scoring.min_score}/100
Lot multiplier: {self.sizing.lot_multiplier}
Daily loss cap: ₹{self.risk.daily_loss_cap:,.0f}
"""


# Default configuration instance
DEFAULT_CONFIG = EngineConfig()


# Default configuration template
DEFAULT_CONFIG_YAML = """
# Options Decision Engine Configuration
# Intraday index options buying, IST session

analysis:
  timezone: Asia/Kolkata
  session_open: "09:15"
  atr_period: 14
  atr_slope_window: 5
  default_option_delta: 0.45

gates:
  time_windows:
    - "10:30-13:00"
    - "13:45-14:30"
  min_momentum_premium: 4.0
  min_delta: 0.40
  max_delta: 0.55
  max_spread_pct: 1.0
  max_strike_distance_pct: 1.0
  min_expected_premium: 12.0
  max_loss_to_win_ratio: 1.5

scoring:
  min_score: 50

sizing:
  lot_multiplier: 50
  stop_loss_pct: 0.65
  target_multiple: 1.4

risk:
  daily_loss_cap: 10000

paths:
  base_dir: options_engine_data

persist_ledger: false
"""
