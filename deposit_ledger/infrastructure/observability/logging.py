"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = "deposit-ledger"


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_deposit_outcome(
    operation: str,
    caller_id: str,
    outcome: str,
    account_id: Optional[str] = None,
    deposit_id: Optional[str] = None,
    balance_cents: Optional[int] = None,
) -> None:
    """Log structured deposit mutation outcome for analysis"""
    level = logging.INFO if outcome == "success" else logging.WARNING
    logging.log(
        level,
        "Deposit %s %s",
        operation,
        "completed" if outcome == "success" else "rejected",
        extra={
            "step": f"deposit_{operation}",
            "caller_id": caller_id,
            "outcome": outcome,
            "account_id": account_id,
            "deposit_id": deposit_id,
            "balance_cents": balance_cents,
        },
    )
