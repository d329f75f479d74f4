"""
Logging configuration for vaxchain.

Provides structured JSON logging and a chain audit logger. Anchors are
logged as short hex prefixes; chain secrets are never logged.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Optional

from . import config
from .util import BytesLike, short_hex

# Context variable for correlating log lines of one verification/session
request_id_var: ContextVar[str] = ContextVar('request_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    One JSON object per record, suitable for log aggregation.
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


def _anchor(value: Optional[BytesLike]) -> Optional[str]:
    if value is None:
        return None
    return short_hex(value, config.ANCHOR_LOG_PREFIX)


class ChainAuditLogger:
    """
    Logger for chain lifecycle and verification events.

    Every event carries an ``event_type`` so failed verifications can be
    routed to alerting separately from routine appends.
    """

    def __init__(self, name: str = "vaxchain.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        if not self._logger.isEnabledFor(level):
            return
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

    def chain_created(self, actor_id: str, genesis_anchor: BytesLike) -> None:
        self._log(
            logging.INFO,
            "CHAIN_CREATED",
            actor_id=actor_id,
            anchor=_anchor(genesis_anchor),
            message=f"Chain created for {actor_id}"
        )

    def action_appended(self, actor_id: str, counter: int, anchor: BytesLike) -> None:
        self._log(
            logging.DEBUG,
            "ACTION_APPENDED",
            actor_id=actor_id,
            counter=counter,
            anchor=_anchor(anchor),
            message=f"Action {counter} appended for {actor_id}"
        )

    def chain_synced(
        self,
        actor_id: str,
        previous_counter: int,
        counter: int,
        anchor: BytesLike
    ) -> None:
        """Log an administrative cursor override."""
        self._log(
            logging.WARNING,
            "CHAIN_SYNCED",
            actor_id=actor_id,
            previous_counter=previous_counter,
            counter=counter,
            anchor=_anchor(anchor),
            message=f"Chain cursor for {actor_id} replaced: {previous_counter} -> {counter}"
        )

    def counter_overflow(self, actor_id: Optional[str], counter: int) -> None:
        self._log(
            logging.ERROR,
            "COUNTER_OVERFLOW",
            actor_id=actor_id,
            counter=counter,
            message="Chain exhausted; rotate the chain secret"
        )

    def verification_passed(self, mode: str, counter: int, anchor: BytesLike) -> None:
        self._log(
            logging.INFO,
            "VERIFICATION_PASSED",
            mode=mode,
            counter=counter,
            anchor=_anchor(anchor),
            message=f"Action {counter} verified"
        )

    def verification_failed(
        self,
        mode: str,
        error: str,
        reason: Optional[str] = None,
        **details
    ) -> None:
        """Log a rejected submission."""
        self._log(
            logging.WARNING,
            "VERIFICATION_FAILED",
            mode=mode,
            error=error,
            reason=reason,
            **details,
            message=f"Verification failed: {error}"
        )


def configure_logging(
    level: Optional[str] = None,
    json_format: Optional[bool] = None,
    log_file: Optional[str] = None
) -> None:
    """
    Configure logging for an application embedding vaxchain.

    Library code never calls this; it only emits records.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL); defaults to VAX_LOG_LEVEL
        json_format: Use JSON formatting; defaults to VAX_LOG_JSON
        log_file: Optional file path for log output; defaults to VAX_LOG_FILE
    """
    level = level or config.LOG_LEVEL
    json_format = config.LOG_JSON if json_format is None else json_format
    log_file = log_file or config.LOG_FILE

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

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the correlation ID for the current context.

    Returns:
        The request ID that was set
    """
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def get_request_id() -> str:
    """Get the current correlation ID."""
    return request_id_var.get()


# Global audit logger instance
audit_log = ChainAuditLogger()
