"""
Logging Module

- System log (console + file)
- Decision audit trail (CSV, one row per evaluation)
"""

import csv
import json
import logging
from pathlib import Path
from typing import Dict

from .config import PathConfig
from .decision_engine import TradeDecision


PACKAGE_LOGGER = "options_engine"
CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s:%(lineno)d | %(message)s"


def setup_logging(paths: PathConfig, verbose: bool = True) -> logging.Logger:
    """
    Configure the package logger.

    Component loggers are named after their modules (`options_engine.*`),
    so handlers attached here receive every analyzer, gate and ledger
    record. The file log adds the thread name so concurrent evaluations
    sharing the loss ledger can be told apart.
    """
    paths.logs_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    # Avoid duplicate handlers when called twice in one process
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter(
        CONSOLE_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S"
    ))

    file_handler = logging.FileHandler(paths.system_log)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        FILE_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S"
    ))

    logger.addHandler(console_handler)
    logger.addHandler(file_handler)

    return logger


class DecisionLogger:
    """
    CSV logger for engine decisions.

    Every evaluation is logged, BUY and NO_TRADE alike.
    """

    HEADERS = [
        "timestamp",
        "action",
        "side",
        "security_id",
        "entry_price",
        "stop_loss_price",
        "target_price",
        "lots",
        "quantity",
        "score",
        "expected_premium",
        "failed_gates",
        "reason",
        "gate_results",
    ]

    def __init__(self, log_path: Path):
        self.log_path = Path(log_path)
        self._ensure_headers()

    def _ensure_headers(self) -> None:
        """Ensure CSV has headers."""
        if not self.log_path.exists():
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, 'w', newline='') as f:
                writer = csv.writer(f)
                writer.writerow(self.HEADERS)

    def log_decision(self, decision: TradeDecision) -> None:
        """Log one decision."""
        row = {
            "timestamp": decision.timestamp.isoformat(),
            "action": decision.action.value,
            "side": decision.side or "",
            "security_id": decision.security_id or "",
            "entry_price": decision.entry_price if decision.entry_price is not None else "",
            "stop_loss_price": decision.stop_loss_price if decision.stop_loss_price is not None else "",
            "target_price": decision.target_price if decision.target_price is not None else "",
            "lots": decision.lots,
            "quantity": decision.quantity,
            "score": decision.score if decision.score is not None else "",
            "expected_premium": f"{decision.expected_premium:.2f}",
            "failed_gates": "|".join(decision.failed_gates),
            "reason": decision.reason or "",
            "gate_results": json.dumps(decision.gate_report.to_dict()),
        }
        self._write_row(row)

    def _write_row(self, row: Dict) -> None:
        with open(self.log_path, 'a', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=self.HEADERS)
            writer.writerow(row)
