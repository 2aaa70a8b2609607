"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from credit_engine.config import settings


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


def log_assessment(
    merchant_id: str,
    credit_score: int,
    risk_category: str,
    eligible: bool,
    rules_version: str,
    duration_ms: float,
    request_id: str = "",
) -> None:
    """Log structured assessment outcome for analysis"""
    logging.getLogger("credit_engine.assessment").info(
        "Assessment completed",
        extra={
            "request_id": request_id,
            "merchant_id": merchant_id,
            "step": "assessment_complete",
            "credit_score": credit_score,
            "risk_category": risk_category,
            "eligibility_outcome": "eligible" if eligible else "ineligible",
            "rules_version": rules_version,
            "duration_ms": duration_ms,
        },
    )
