"""
Logging configuration for the fire inspection service.

Provides structured JSON logging for audit trails and debugging.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import List, Optional

from .util import mask_sensitive

# Context variable for request ID tracking
request_id_var: ContextVar[str] = ContextVar('request_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs logs in a consistent JSON format suitable for
    log aggregation systems like ELK, Splunk, or CloudWatch.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class AuditLogger:
    """
    Specialized logger for inspection audit events.

    Records lifecycle transitions, rejected state changes, verification
    verdicts and security-relevant events. Signatures are masked.
    """

    def __init__(self, name: str = "fireinspect.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        """Internal logging method with extra fields."""
        extra = {
            "event_type": event_type,
            "request_id": request_id_var.get(),
            **kwargs
        }

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def inspection_created(self, inspection_id: str, asset_id: str, inspector_id: str) -> None:
        self._log(
            logging.INFO,
            "INSPECTION_CREATED",
            inspection_id=inspection_id,
            asset_id=asset_id,
            inspector_id=inspector_id,
            message=f"Inspection {inspection_id} started for asset {asset_id}"
        )

    def inspection_completed(
        self,
        inspection_id: str,
        asset_id: str,
        content_hash: str,
        previous_hash: Optional[str],
        signature: str,
        computed_result: str,
        chain_seq: int
    ) -> None:
        """Log a completion with its integrity fields."""
        self._log(
            logging.INFO,
            "INSPECTION_COMPLETED",
            inspection_id=inspection_id,
            asset_id=asset_id,
            content_hash=content_hash,
            previous_hash=previous_hash,
            signature=mask_sensitive(signature),
            computed_result=computed_result,
            chain_seq=chain_seq,
            message=f"Inspection {inspection_id} completed: {computed_result}"
        )

    def inspection_deleted(self, inspection_id: str) -> None:
        self._log(
            logging.INFO,
            "INSPECTION_DELETED",
            inspection_id=inspection_id,
            message=f"Inspection {inspection_id} deleted"
        )

    def state_violation(
        self,
        inspection_id: Optional[str],
        operation: str,
        status: Optional[str],
        reason: str
    ) -> None:
        """Log a rejected mutation of an inspection in the wrong state."""
        self._log(
            logging.WARNING,
            "STATE_VIOLATION",
            inspection_id=inspection_id,
            operation=operation,
            status=status,
            reason=reason,
            message=f"{operation} rejected: {reason}"
        )

    def verification_result(
        self,
        inspection_id: str,
        is_valid: bool,
        failed_checks: List[str]
    ) -> None:
        """Log a verification verdict."""
        level = logging.INFO if is_valid else logging.WARNING
        self._log(
            level,
            "VERIFICATION_RESULT",
            inspection_id=inspection_id,
            is_valid=is_valid,
            failed_checks=failed_checks,
            message=f"Verification {'passed' if is_valid else 'FAILED'} for inspection {inspection_id}"
        )

    def chain_conflict(self, asset_id: str, chain_seq: int) -> None:
        self._log(
            logging.WARNING,
            "CHAIN_CONFLICT",
            asset_id=asset_id,
            chain_seq=chain_seq,
            message=f"Concurrent completion rejected for asset {asset_id}"
        )

    def security_event(
        self,
        event: str,
        severity: str = "medium",
        **details
    ) -> None:
        """Log a security-relevant event."""
        level = {
            "low": logging.INFO,
            "medium": logging.WARNING,
            "high": logging.ERROR,
            "critical": logging.CRITICAL
        }.get(severity, logging.WARNING)

        self._log(
            level,
            "SECURITY_EVENT",
            security_event=event,
            severity=severity,
            **details,
            message=f"Security event: {event}"
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting (recommended for production)
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the request ID for the current context.

    Args:
        request_id: Request ID to set, or None to generate one

    Returns:
        The request ID that was set
    """
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


# Global audit logger instance
audit_log = AuditLogger()
