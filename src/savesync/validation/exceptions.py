"""
Exception types and error reporting.

The sync engine reports most failures per item and keeps going; the
helpers here give every such report the same shape ("Error in <context>:
<error>") at a chosen severity, and optionally re-raise.
"""

import logging
import sys
from enum import Enum
from typing import Any, Optional, Sequence, Union

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Severity levels for error handling."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def log_level(self) -> int:
        return _LOG_LEVELS[self]


_LOG_LEVELS = {
    ErrorSeverity.DEBUG: logging.DEBUG,
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


class ValidationError(Exception):
    """
    A configuration value or command line argument was rejected.

    ``field_name`` is the dotted config key (``transfer.remote``,
    ``games[0].name``) or the argument name.
    """

    def __init__(self, message: str, field_name: Optional[str] = None,
                 value: Any = None, severity: ErrorSeverity = ErrorSeverity.ERROR):
        super().__init__(message)
        self.field_name = field_name
        self.value = value
        self.severity = severity


class SaveSyncError(Exception):
    """Base class for runtime errors raised by the sync engine."""


class ManifestStoreError(SaveSyncError):
    """
    Raised when a manifest cannot be written.

    Loading never raises this error: an unreadable manifest degrades to an
    empty one. Writing is fail-closed because a silently lost manifest would
    lead to wrong skip decisions on the next run.
    """

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class TransferError(SaveSyncError):
    """Raised by backends when a transfer call fails in a way worth retrying."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 return_code: Optional[int] = None):
        super().__init__(message)
        self.operation = operation
        self.return_code = return_code


class BackendConfigurationError(SaveSyncError):
    """The transfer tool is missing or its config file cannot be used."""

    def __init__(self, message: str, executable: Optional[str] = None):
        super().__init__(message)
        self.executable = executable


def _as_severity(severity: Union[ErrorSeverity, str]) -> ErrorSeverity:
    if isinstance(severity, ErrorSeverity):
        return severity
    return ErrorSeverity(severity.lower())


def handle_error(
    error: Exception,
    context: str,
    severity: Union[ErrorSeverity, str] = ErrorSeverity.ERROR,
    reraise: bool = True,
    logger: Optional[logging.Logger] = None
) -> None:
    """
    Log an error with its context and optionally re-raise it.

    Args:
        error: The exception that occurred
        context: What was being done, e.g. "reading manifest <path>"
        severity: ErrorSeverity or its name; DEBUG and CRITICAL include
            the traceback
        reraise: Whether to re-raise the exception after logging
        logger: Logger to report through (defaults to this module's)
    """
    level = _as_severity(severity)
    target = logger or globals()['logger']
    with_traceback = level in (ErrorSeverity.DEBUG, ErrorSeverity.CRITICAL)
    target.log(level.log_level, f"Error in {context}: {error}", exc_info=error if with_traceback else None)

    if reraise:
        raise error


def handle_config_error(error: Exception, context: str, **kwargs) -> None:
    """Report a problem with the configuration file."""
    handle_error(error, f"config {context}", **kwargs)


def handle_file_error(error: Exception, action: str, path: str, **kwargs) -> None:
    """Report a failed file operation, e.g. ``("reading manifest", path)``."""
    handle_error(error, f"{action} {path}", **kwargs)


def handle_subprocess_error(error: Exception, command: Union[str, Sequence[str]], **kwargs) -> None:
    """Report a failed external command."""
    if not isinstance(command, str):
        command = " ".join(command)
    handle_error(error, f"command '{command}'", **kwargs)


def handle_cli_error(
    error: Exception,
    context: str,
    exit_code: int = 1,
    include_traceback: bool = False,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Report an error that ends the command, then exit with ``exit_code``."""
    severity = ErrorSeverity.CRITICAL if include_traceback else ErrorSeverity.ERROR
    handle_error(error, f"CLI {context}", severity=severity, reraise=False, logger=logger)
    sys.exit(exit_code)
