"""
Daily Loss Tracker

Process-lifetime ledger of realized losses for one trading session.
The only state shared across evaluations.

RULES:
- Only realized losses accumulate; wins never restore capacity
- remaining_capacity = max(cap - realized_loss, 0)
- A later session date resets the ledger; earlier dates never do
- Every mutation is persisted when a state file is configured
"""

import json
import logging
import threading
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Dict, Optional


class DailyLossTracker:
    """
    Thread-safe daily loss ledger.

    `lock` is re-entrant so callers can hold it across a
    read-capacity / size-position sequence while the ledger's own
    methods take it again.
    """

    def __init__(
        self,
        cap: float = 10_000.0,
        state_path: Optional[Path] = None,
        logger: Optional[logging.Logger] = None,
        session_date: Optional[date] = None,
    ):
        if cap <= 0:
            raise ValueError(f"Daily loss cap must be positive, got {cap}")

        self._cap = float(cap)
        self.state_path = Path(state_path) if state_path is not None else None
        self.logger = logger or logging.getLogger(__name__)
        self.lock = threading.RLock()

        self._realized_loss = 0.0
        self._session_date = session_date or date.today()
        self._last_update: Optional[datetime] = None

        if self.state_path is not None and self.state_path.exists():
            self._load_state()

    @property
    def cap(self) -> float:
        return self._cap

    @property
    def session_date(self) -> date:
        with self.lock:
            return self._session_date

    def realized_loss(self) -> float:
        with self.lock:
            return self._realized_loss

    def remaining_capacity(self) -> float:
        with self.lock:
            return max(self._cap - self._realized_loss, 0.0)

    def can_trade(self, max_loss: float) -> bool:
        """True when one lot risking `max_loss` still fits today's budget."""
        with self.lock:
            return max_loss <= self.remaining_capacity()

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def record_loss(self, amount: float) -> float:
        """
        Add a realized loss.

        Returns:
            Remaining capacity after the loss.
        """
        if amount < 0:
            raise ValueError(f"Loss amount must be non-negative, got {amount}")

        with self.lock:
            self._realized_loss += float(amount)
            self._last_update = datetime.now(timezone.utc)
            realized = self._realized_loss
            remaining = self.remaining_capacity()
            self._save_state()

        if remaining <= 0:
            self.logger.warning(
                f"Daily loss cap reached: realized {realized:,.0f} / cap {self._cap:,.0f}"
            )
        else:
            self.logger.info(f"Loss recorded: {amount:,.0f} (remaining capacity {remaining:,.0f})")
        return remaining

    def record_pnl(self, pnl: float) -> float:
        """Record a closed trade's P&L; profits do not offset losses."""
        if pnl < 0:
            return self.record_loss(-pnl)
        return self.remaining_capacity()

    def reset(self, session_date: Optional[date] = None) -> None:
        with self.lock:
            self._realized_loss = 0.0
            self._session_date = session_date or date.today()
            self._last_update = datetime.now(timezone.utc)
            new_session = self._session_date
            self._save_state()

        self.logger.info(f"Daily loss ledger reset for {new_session.isoformat()}")

    def ensure_session(self, day: date) -> None:
        """
        Reset the ledger when `day` starts a later session.

        An earlier `day` (stale or replayed request) leaves the ledger untouched.
        """
        with self.lock:
            if day > self._session_date:
                self.reset(day)
            elif day < self._session_date:
                self.logger.warning(
                    f"Ignoring session rollover to {day.isoformat()}: "
                    f"ledger already at {self._session_date.isoformat()}"
                )

    def get_status_summary(self) -> Dict:
        with self.lock:
            return {
                "session_date": self._session_date.isoformat(),
                "cap": self._cap,
                "realized_loss": self._realized_loss,
                "remaining_capacity": self.remaining_capacity(),
            }

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def _save_state(self) -> None:
        """Persist ledger to disk."""
        if self.state_path is None:
            return

        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        state_dict = {
            "session_date": self._session_date.isoformat(),
            "cap": self._cap,
            "realized_loss": self._realized_loss,
            "last_update": self._last_update.isoformat() if self._last_update else None,
        }

        with open(self.state_path, 'w') as f:
            json.dump(state_dict, f, indent=2)

    def _load_state(self) -> None:
        """Load ledger from disk if it belongs to the current session."""
        with open(self.state_path, 'r') as f:
            state_dict = json.load(f)

        saved_date = date.fromisoformat(state_dict["session_date"])
        if saved_date != self._session_date:
            self.logger.info(f"Ignoring ledger from previous session {saved_date.isoformat()}")
            return

        self._realized_loss = float(state_dict.get("realized_loss", 0.0))
        last_update = state_dict.get("last_update")
        self._last_update = datetime.fromisoformat(last_update) if last_update else None
        self.logger.info(
            f"Loaded daily loss ledger: realized {self._realized_loss:,.0f} / cap {self._cap:,.0f}"
        )
