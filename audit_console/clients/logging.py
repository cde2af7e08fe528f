"""Structured logging utilities."""

import json
import logging
from typing import Any, Dict, Optional


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    RESERVED = {
        "name", "msg", "args", "created", "filename", "funcName",
        "levelname", "levelno", "lineno", "module", "msecs",
        "message", "pathname", "process", "processName", "relativeCreated",
        "thread", "threadName", "exc_info", "exc_text", "stack_info",
        "taskName",
    }

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key in self.RESERVED or key.startswith("_"):
                continue
            log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with JSON formatting configured."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


def log_config_load(
    logger: logging.Logger,
    duration_ms: int,
    config_version: Optional[str] = None,
) -> None:
    """Log config load stage."""
    extra: Dict[str, Any] = {
        "stage": "config_load",
        "duration_ms": duration_ms,
    }
    if config_version:
        extra["config_version"] = config_version
    logger.info("Config loaded", extra=extra)


def log_gateway_call(
    logger: logging.Logger,
    operation: str,
    duration_ms: int,
    status_code: Optional[int] = None,
    error: Optional[str] = None,
) -> None:
    """Log a single audit engine request."""
    extra: Dict[str, Any] = {
        "stage": "gateway",
        "operation": operation,
        "duration_ms": duration_ms,
    }
    if status_code is not None:
        extra["status_code"] = status_code
    if error:
        extra["error"] = error
        logger.warning(f"Gateway {operation} failed", extra=extra)
        return
    logger.info(f"Gateway {operation} completed", extra=extra)


def log_derivation(
    logger: logging.Logger,
    report_id: str,
    issue_count: int,
    indicator_count: int,
    severity_breakdown: Optional[Dict[str, int]] = None,
) -> None:
    """Log issue log / indicator derivation for a report."""
    extra: Dict[str, Any] = {
        "stage": "derive",
        "report_id": report_id,
        "issue_count": issue_count,
        "indicator_count": indicator_count,
    }
    if severity_breakdown:
        extra["severity_breakdown"] = severity_breakdown
    logger.info("Report derived", extra=extra)
