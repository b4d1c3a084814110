"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger
from starquest_settlement.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_child_settlement(
    family_id: str,
    child_id: str,
    debt: int,
    interest: int,
    credit_limit_before: int,
    credit_limit_after: int,
) -> None:
    """Log one settled child for reconciliation"""
    logging.info(
        "Child settled",
        extra={
            "family_id": family_id,
            "child_id": child_id,
            "step": "child_settled",
            "debt_amount": debt,
            "interest_calculated": interest,
            "credit_limit_before": credit_limit_before,
            "credit_limit_after": credit_limit_after,
        },
    )


def log_batch_completed(
    settlement_date: str,
    processed: int,
    skipped: int,
    error_count: int,
    duration_ms: float,
) -> None:
    """Log structured batch outcome"""
    logging.info(
        "Settlement batch completed",
        extra={
            "step": "batch_complete",
            "settlement_date": settlement_date,
            "processed": processed,
            "skipped": skipped,
            "error_count": error_count,
            "duration_ms": duration_ms,
        },
    )
