"""
Logging configuration for the Oriento session client.

This module provides structured logging with an audit trail for session
events (login, renewal, logout) and configurable output formats.
"""

import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional
from enum import Enum

from oriento_shared.exceptions import OrientoError


class LogLevel(Enum):
    """Log level enumeration."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(Enum):
    """Log format enumeration."""
    STANDARD = "standard"
    JSON = "json"
    DETAILED = "detailed"


class AuditEventType(Enum):
    """Types of session events that should be audited."""
    AUTHENTICATION = "authentication"
    REGISTRATION = "registration"
    RENEWAL = "renewal"
    LOGOUT = "logout"


_RESERVED_RECORD_FIELDS = frozenset([
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'taskName', 'message',
    'exc_info', 'exc_text', 'stack_info', 'error_info', 'audit_info'
])


class StructuredFormatter(logging.Formatter):
    """
    Formatter that outputs structured JSON logs with consistent fields.
    """

    def __init__(self, include_extra_fields: bool = True):
        super().__init__()
        self.include_extra_fields = include_extra_fields

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_entry = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
            'process': os.getpid()
        }

        if record.exc_info:
            log_entry['exception'] = {
                'type': record.exc_info[0].__name__ if record.exc_info[0] else None,
                'message': str(record.exc_info[1]) if record.exc_info[1] else None,
                'traceback': self.formatException(record.exc_info)
            }

        error = getattr(record, 'error_info', None)
        if isinstance(error, OrientoError):
            log_entry['error'] = {
                'code': error.error_code.value,
                'severity': error.severity.value,
                'context': error.context,
                'recovery_actions': [action.value for action in error.recovery_actions],
                'user_message': error.user_message
            }

        if hasattr(record, 'audit_info'):
            log_entry['audit'] = record.audit_info

        if self.include_extra_fields:
            extra_fields = {
                key: value for key, value in record.__dict__.items()
                if key not in _RESERVED_RECORD_FIELDS
            }
            if extra_fields:
                log_entry['extra'] = extra_fields

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class DetailedFormatter(logging.Formatter):
    """
    Detailed human-readable formatter with comprehensive information.
    """

    def __init__(self):
        super().__init__(
            fmt='%(asctime)s | %(levelname)-8s | %(name)-28s | %(funcName)-15s:%(lineno)-4d | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)

        error = getattr(record, 'error_info', None)
        if isinstance(error, OrientoError):
            formatted += f"\n  Error Code: {error.error_code.value}"
            formatted += f"\n  Severity: {error.severity.value}"
            if error.context:
                formatted += f"\n  Context: {json.dumps(error.context, indent=2, default=str)}"

        if hasattr(record, 'audit_info'):
            formatted += f"\n  Audit: {json.dumps(record.audit_info, indent=2, default=str)}"

        return formatted


class AuditLogger:
    """
    Specialized logger for session audit events.
    """

    def __init__(self, logger_name: str = "audit"):
        self.logger = logging.getLogger(logger_name)

    def log_event(
        self,
        event_type: AuditEventType,
        message: str,
        user_id: Optional[str] = None,
        result: Optional[str] = None,
        additional_context: Optional[Dict[str, Any]] = None,
        level: int = logging.INFO
    ):
        """
        Log an audit event with structured information.

        Args:
            event_type: Type of audit event
            message: Human-readable message
            user_id: Identifier of the user involved, if known
            result: Result of the operation (success, failure, etc.)
            additional_context: Additional context information
            level: Log level of the record
        """
        audit_info = {
            'event_type': event_type.value,
            'timestamp': datetime.now().isoformat(),
            'user_id': user_id,
            'result': result,
            'context': additional_context or {}
        }
        audit_info = {k: v for k, v in audit_info.items() if v is not None}

        self.logger.log(level, message, extra={'audit_info': audit_info})

    def log_authentication(
        self,
        identifier: str,
        success: bool = True,
        failure_reason: Optional[str] = None
    ):
        """Log login attempts."""
        self.log_event(
            event_type=AuditEventType.AUTHENTICATION,
            message=f"Login {'successful' if success else 'failed'} for: {identifier}",
            user_id=identifier,
            result="success" if success else "failure",
            additional_context={'failure_reason': failure_reason} if failure_reason else None,
            level=logging.INFO if success else logging.WARNING
        )

    def log_registration(self, email: str, success: bool = True, failure_reason: Optional[str] = None):
        """Log registration attempts."""
        self.log_event(
            event_type=AuditEventType.REGISTRATION,
            message=f"Registration {'successful' if success else 'failed'} for: {email}",
            user_id=email,
            result="success" if success else "failure",
            additional_context={'failure_reason': failure_reason} if failure_reason else None
        )

    def log_renewal(
        self,
        success: bool,
        waiters: int = 0,
        failure_reason: Optional[str] = None
    ):
        """Log the outcome of a credential renewal cycle."""
        context: Dict[str, Any] = {'waiters': waiters}
        if failure_reason:
            context['failure_reason'] = failure_reason

        self.log_event(
            event_type=AuditEventType.RENEWAL,
            message=f"Credential renewal {'succeeded' if success else 'failed'} ({waiters} waiting)",
            result="success" if success else "failure",
            additional_context=context,
            level=logging.INFO if success else logging.WARNING
        )

    def log_logout(self, reason: str = "user"):
        """Log a session clear."""
        self.log_event(
            event_type=AuditEventType.LOGOUT,
            message=f"Session cleared ({reason})",
            result="success",
            additional_context={'reason': reason}
        )


def setup_logging(
    log_level: LogLevel = LogLevel.INFO,
    log_format: LogFormat = LogFormat.STANDARD,
    log_file: Optional[str] = None,
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
    enable_console: bool = True,
    enable_audit: bool = True,
    audit_file: Optional[str] = None
) -> Dict[str, logging.Logger]:
    """
    Set up logging configuration.

    Args:
        log_level: Minimum log level to capture
        log_format: Format for log output
        log_file: Path to main log file (optional)
        max_file_size: Maximum size of log files before rotation
        backup_count: Number of backup files to keep
        enable_console: Whether to enable console logging
        enable_audit: Whether to enable audit logging
        audit_file: Path to audit log file (optional)

    Returns:
        Dictionary of configured loggers
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.value))

    if log_format == LogFormat.JSON:
        formatter = StructuredFormatter()
    elif log_format == LogFormat.DETAILED:
        formatter = DetailedFormatter()
    else:
        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    handlers = []

    if enable_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_file_size,
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    for handler in handlers:
        root_logger.addHandler(handler)

    loggers = {
        'root': root_logger,
        'session': logging.getLogger('oriento_client.auth'),
        'transport': logging.getLogger('oriento_client.transport')
    }

    # Audit records go to their own file when one is configured; otherwise
    # they propagate to the root handlers.
    audit_logger = logging.getLogger('audit')
    for handler in audit_logger.handlers[:]:
        audit_logger.removeHandler(handler)
    audit_logger.disabled = not enable_audit

    if enable_audit and audit_file:
        audit_path = Path(audit_file)
        audit_path.parent.mkdir(parents=True, exist_ok=True)

        audit_handler = logging.handlers.RotatingFileHandler(
            audit_file,
            maxBytes=max_file_size,
            backupCount=backup_count,
            encoding='utf-8'
        )
        audit_handler.setFormatter(StructuredFormatter())
        audit_logger.addHandler(audit_handler)
        audit_logger.propagate = False
    else:
        audit_logger.propagate = True

    loggers['audit'] = audit_logger
    return loggers


def log_structured_error(logger: logging.Logger, error: OrientoError):
    """
    Log a structured error with full context information.

    Args:
        logger: Logger instance to use
        error: The structured error to log
    """
    logger.error(error.message, extra={'error_info': error})
