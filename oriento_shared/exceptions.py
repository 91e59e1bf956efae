"""
Exception hierarchy for the Oriento session client.

This module defines structured exceptions with error codes, context information,
and recovery suggestions so that every layer of the client reports failures
the same way.
"""

from datetime import datetime
from typing import Optional, Dict, Any, List
from enum import Enum


class ErrorCode(Enum):
    """Standardized error codes for the Oriento session client."""

    # Authentication Errors (1000-1099)
    AUTH_CREDENTIAL_REJECTED = "AUTH_1001"
    AUTH_REQUEST_REJECTED = "AUTH_1002"
    AUTH_RENEWAL_FAILED = "AUTH_1003"
    AUTH_REGISTRATION_REJECTED = "AUTH_1004"

    # Network and Communication Errors (2000-2099)
    NETWORK_CONNECTION_FAILED = "NETWORK_2001"
    NETWORK_TIMEOUT = "NETWORK_2002"

    # HTTP Response Errors (3000-3099)
    HTTP_FORBIDDEN = "HTTP_3001"
    HTTP_NOT_FOUND = "HTTP_3002"
    HTTP_REQUEST_FAILED = "HTTP_3003"
    HTTP_SERVER_ERROR = "HTTP_3004"

    # Validation Errors (4000-4099)
    VALIDATION_INVALID_INPUT = "VALIDATION_4001"
    VALIDATION_MALFORMED_RESPONSE = "VALIDATION_4002"

    # Configuration Errors (8000-8099)
    CONFIG_FILE_NOT_FOUND = "CONFIG_8001"
    CONFIG_INVALID_VALUE = "CONFIG_8002"

    # Internal Errors (9000-9099)
    INTERNAL_UNEXPECTED_ERROR = "INTERNAL_9001"


class ErrorSeverity(Enum):
    """Error severity levels for logging and handling."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RecoveryAction(Enum):
    """Suggested recovery actions for errors."""
    RETRY = "retry"
    RETRY_WITH_BACKOFF = "retry_with_backoff"
    RENEW_CREDENTIAL = "renew_credential"
    LOGIN_AGAIN = "login_again"
    USER_INTERVENTION = "user_intervention"
    CONTACT_ADMIN = "contact_admin"


class OrientoError(Exception):
    """
    Base exception class for all Oriento session client errors.

    Provides structured error information including error codes, context,
    and recovery suggestions for consistent error handling.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: Optional[Dict[str, Any]] = None,
        recovery_actions: Optional[List[RecoveryAction]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)

        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.context = context or {}
        self.recovery_actions = recovery_actions or []
        self.cause = cause
        self.user_message = user_message or message
        self.timestamp = datetime.now()

        if cause:
            self.context['cause_type'] = type(cause).__name__
            self.context['cause_message'] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary format for serialization."""
        return {
            'error': {
                'code': self.error_code.value,
                'message': self.message,
                'user_message': self.user_message,
                'severity': self.severity.value,
                'timestamp': self.timestamp.isoformat(),
                'context': self.context,
                'recovery_actions': [action.value for action in self.recovery_actions],
                'cause': {
                    'type': self.context.get('cause_type'),
                    'message': self.context.get('cause_message')
                } if self.cause else None
            }
        }


class CredentialRejectedError(OrientoError):
    """Login or registration input was rejected by the server."""

    def __init__(self, message: str, user_message: str,
                 error_code: ErrorCode = ErrorCode.AUTH_CREDENTIAL_REJECTED, **kwargs):
        super().__init__(
            message=message,
            error_code=error_code,
            severity=ErrorSeverity.LOW,
            recovery_actions=[RecoveryAction.USER_INTERVENTION],
            user_message=user_message,
            **kwargs
        )


class AuthenticationError(OrientoError):
    """Terminal authentication failures surfaced to the original caller."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.AUTH_REQUEST_REJECTED, **kwargs):
        kwargs.setdefault('recovery_actions', [RecoveryAction.LOGIN_AGAIN])
        kwargs.setdefault('user_message', "Your session has expired. Please sign in again.")
        super().__init__(
            message=message,
            error_code=error_code,
            severity=ErrorSeverity.HIGH,
            **kwargs
        )


class AuthenticationFailedError(AuthenticationError):
    """A request was rejected again after its single post-renewal retry."""
    pass


class RenewalFailedError(AuthenticationError):
    """The credential renewal call was rejected or errored."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code=ErrorCode.AUTH_RENEWAL_FAILED, **kwargs)


class NetworkError(OrientoError):
    """Network and communication related errors."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.NETWORK_CONNECTION_FAILED, **kwargs):
        kwargs.setdefault('user_message', "Could not reach the server. Check your connection.")
        super().__init__(
            message=message,
            error_code=error_code,
            severity=ErrorSeverity.MEDIUM,
            recovery_actions=[RecoveryAction.RETRY_WITH_BACKOFF],
            **kwargs
        )


class APIClientError(OrientoError):
    """Non-authentication HTTP failures returned by the server."""

    def __init__(self, message: str, status: Optional[int] = None,
                 error_code: ErrorCode = ErrorCode.HTTP_REQUEST_FAILED, **kwargs):
        context = kwargs.pop('context', None) or {}
        if status is not None:
            context['status'] = status
        self.status = status

        kwargs.setdefault('user_message', "Unexpected error while talking to the server.")
        super().__init__(
            message=message,
            error_code=error_code,
            context=context,
            **kwargs
        )


class ServerError(APIClientError):
    """Server-side errors (5xx)."""

    def __init__(self, message: str, status: Optional[int] = None, **kwargs):
        super().__init__(
            message,
            status=status,
            error_code=ErrorCode.HTTP_SERVER_ERROR,
            severity=ErrorSeverity.HIGH,
            recovery_actions=[RecoveryAction.RETRY, RecoveryAction.CONTACT_ADMIN],
            **kwargs
        )


class ValidationError(OrientoError):
    """Input validation related errors."""

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        context = kwargs.pop('context', None) or {}
        if field_name:
            context['field_name'] = field_name

        error_code = kwargs.pop('error_code', ErrorCode.VALIDATION_INVALID_INPUT)
        severity = kwargs.pop('severity', ErrorSeverity.LOW)
        recovery_actions = kwargs.pop('recovery_actions', [RecoveryAction.USER_INTERVENTION])

        super().__init__(
            message=message,
            error_code=error_code,
            severity=severity,
            recovery_actions=recovery_actions,
            context=context,
            **kwargs
        )


class MalformedResponseError(ValidationError):
    """A server payload failed validation at the trust boundary."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            error_code=ErrorCode.VALIDATION_MALFORMED_RESPONSE,
            severity=ErrorSeverity.HIGH,
            recovery_actions=[RecoveryAction.CONTACT_ADMIN],
            **kwargs
        )


class ConfigurationError(OrientoError):
    """Configuration related errors."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.CONFIG_INVALID_VALUE,
                 config_key: Optional[str] = None, **kwargs):
        context = kwargs.pop('context', None) or {}
        if config_key:
            context['config_key'] = config_key

        super().__init__(
            message=message,
            error_code=error_code,
            severity=ErrorSeverity.HIGH,
            recovery_actions=[RecoveryAction.USER_INTERVENTION],
            context=context,
            **kwargs
        )


def handle_exception(
    exception: Exception,
    context: Optional[Dict[str, Any]] = None,
    default_error_code: ErrorCode = ErrorCode.INTERNAL_UNEXPECTED_ERROR
) -> OrientoError:
    """
    Convert a generic exception to a structured OrientoError.

    Args:
        exception: The original exception
        context: Additional context information
        default_error_code: Default error code if specific mapping not found

    Returns:
        Structured OrientoError
    """
    if isinstance(exception, OrientoError):
        return exception

    if isinstance(exception, TimeoutError):
        return NetworkError(str(exception), ErrorCode.NETWORK_TIMEOUT, context=context, cause=exception)
    if isinstance(exception, ConnectionError):
        return NetworkError(str(exception), context=context, cause=exception)
    if isinstance(exception, ValueError):
        return ValidationError(str(exception), context=context, cause=exception)

    return OrientoError(
        message=str(exception),
        error_code=default_error_code,
        context=context,
        cause=exception
    )
