"""
Unified error handling framework for the SharkSEM client.

This module defines the standard error hierarchy used by the transports
and command groups. It keeps three situations apart that callers must be
able to tell from each other:

- the connection is broken (ConnectionError and its subclasses)
- the connected firmware does not support a command (never an exception,
  the command group returns an empty/sentinel result instead)
- a value is temporarily unavailable (NaN or a documented default)

Error Code Ranges:
- 1000-1999: Connection errors
- 2000-2999: Command/protocol errors
- 5000-5999: Operation state errors (cancellation)
- 6000-6999: Configuration errors
- 7000-7999: Validation errors
- 8000-8999: Timeout errors
- 9000-9999: Unknown/System errors
"""

from typing import Optional, Dict, Any, List
from datetime import datetime
import traceback


class SemError(Exception):
    """
    Base exception for all SharkSEM client errors.

    Provides structured error information with context tracking.
    """

    DEFAULT_CODE = 9000

    def __init__(
        self,
        message: str,
        error_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        suggestions: Optional[List[str]] = None
    ):
        """
        Initialize a SEM error.

        Args:
            message: Human-readable error description
            error_code: Numeric error code for categorization
            context: Additional context information (command, host, ...)
            cause: Original exception if this wraps another error
            suggestions: List of possible solutions or next steps
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.DEFAULT_CODE
        self.context = context or {}
        self.cause = cause
        self.suggestions = suggestions or []
        self.timestamp = datetime.now()

        self.stack_trace = traceback.format_exc() if cause else None

        if cause:
            self.context['original_error'] = str(cause)
            self.context['original_type'] = type(cause).__name__

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            'error_type': self.__class__.__name__,
            'message': self.message,
            'code': self.error_code,
            'context': self.context,
            'suggestions': self.suggestions,
            'timestamp': self.timestamp.isoformat(),
            'cause': str(self.cause) if self.cause else None,
        }

    def format_user_message(self) -> str:
        """Format error for user display (without technical details)."""
        msg = f"{self.message}"
        if self.suggestions:
            msg += "\n\nSuggestions:"
            for i, suggestion in enumerate(self.suggestions, 1):
                msg += f"\n  {i}. {suggestion}"
        return msg

    def format_log_message(self) -> str:
        """Format error for logging (with all details)."""
        parts = [
            f"[{self.error_code}] {self.__class__.__name__}: {self.message}"
        ]
        if self.context:
            parts.append(f"Context: {self.context}")
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


def _with_category(kwargs: Dict[str, Any], category: str) -> Dict[str, Any]:
    if kwargs.get('context') is None:
        kwargs['context'] = {}
    kwargs['context']['category'] = category
    return kwargs


class ConnectionError(SemError):
    """Socket could not be opened, or is unusable. Fatal to the session."""
    DEFAULT_CODE = 1001

    def __init__(self, message: str, host: Optional[str] = None,
                 port: Optional[int] = None, **kwargs):
        _with_category(kwargs, 'CONNECTION')
        if host is not None:
            kwargs['context']['host'] = host
        if port is not None:
            kwargs['context']['port'] = port
        super().__init__(message, **kwargs)


class ConnectionLostError(ConnectionError):
    """The peer closed the socket unexpectedly (zero-byte read or reset)."""
    DEFAULT_CODE = 1003

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('suggestions', [
            "Check that the SEM control software is still running",
            "Reconnect before issuing further commands",
        ])
        super().__init__(message, **kwargs)


class ProtocolError(ConnectionError):
    """
    A response could not be decoded as expected.

    The byte stream may be desynchronized, so this is treated like a broken
    connection rather than being masked by a default value.
    """
    DEFAULT_CODE = 2003

    def __init__(self, message: str, command: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.context['category'] = 'PROTOCOL'
        if command:
            self.context['command'] = command


class CommandError(SemError):
    """The device accepted a command but reported a failure result."""
    DEFAULT_CODE = 2001

    def __init__(self, message: str, command: Optional[str] = None,
                 result_code: Optional[int] = None, **kwargs):
        _with_category(kwargs, 'COMMAND')
        if command:
            kwargs['context']['command'] = command
        if result_code is not None:
            kwargs['context']['result_code'] = result_code
        super().__init__(message, **kwargs)


class OperationCancelledError(SemError):
    """A blocking operation observed its cancellation token."""
    DEFAULT_CODE = 5001

    def __init__(self, message: str = "Operation cancelled", **kwargs):
        _with_category(kwargs, 'CANCELLED')
        super().__init__(message, **kwargs)


class ConfigurationError(SemError):
    """Errors related to connection profiles and settings."""
    DEFAULT_CODE = 6001

    def __init__(self, message: str, setting_name: Optional[str] = None, **kwargs):
        _with_category(kwargs, 'CONFIGURATION')
        if setting_name:
            kwargs['context']['setting'] = setting_name
        super().__init__(message, **kwargs)


class ValidationError(SemError):
    """Errors related to input validation and parameter checking."""
    DEFAULT_CODE = 7001

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        _with_category(kwargs, 'VALIDATION')
        if field_name:
            kwargs['context']['field'] = field_name
        super().__init__(message, **kwargs)


class TimeoutError(SemError):
    """
    An operation exceeded its allotted window.

    Fatal to the operation only; the connection stays usable.
    """
    DEFAULT_CODE = 8001

    def __init__(self, message: str, timeout_seconds: Optional[float] = None, **kwargs):
        _with_category(kwargs, 'TIMEOUT')
        if timeout_seconds is not None:
            kwargs['context']['timeout_seconds'] = timeout_seconds
        super().__init__(message, **kwargs)


class ErrorCodes:
    """Standard error codes for common error scenarios."""

    # Connection errors (1000-1999)
    CONNECTION_REFUSED = 1001
    CONNECTION_TIMEOUT = 1002
    CONNECTION_LOST = 1003
    SOCKET_ERROR = 1004
    NOT_CONNECTED = 1005
    DATA_CHANNEL_FAILED = 1006

    # Command errors (2000-2999)
    COMMAND_FAILED = 2001
    SCAN_FAILED = 2002
    PROTOCOL_ERROR = 2003
    RESPONSE_TOO_SHORT = 2004

    # Operation errors (5000-5999)
    CANCELLED = 5001

    # Configuration errors (6000-6999)
    CONFIG_NOT_FOUND = 6001
    CONFIG_INVALID = 6002
    CONFIG_SAVE_ERROR = 6003

    # Validation errors (7000-7999)
    INVALID_PARAMETER = 7001
    OUT_OF_RANGE = 7002

    # Timeout errors (8000-8999)
    OPERATION_TIMEOUT = 8001
    STAGE_MOTION_TIMEOUT = 8002
    ACQUISITION_TIMEOUT = 8003

    # System errors (9000-9999)
    UNKNOWN_ERROR = 9000


def wrap_external_error(e: Exception, message: str, error_class=SemError, **context) -> SemError:
    """
    Wrap an external exception in a SemError.

    Args:
        e: The original exception
        message: Context-specific error message
        error_class: The SemError subclass to use
        **context: Additional context information

    Returns:
        A SemError instance wrapping the original exception
    """
    return error_class(
        message,
        cause=e,
        context=context
    )
