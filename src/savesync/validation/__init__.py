"""
Validation and error handling for the savesync package.

This module provides input validation, the error taxonomy and the retry
helpers with consistent error reporting across the application.
"""

# Core exception classes and error handling
from .exceptions import (
    BackendConfigurationError,
    ErrorSeverity,
    ManifestStoreError,
    SaveSyncError,
    TransferError,
    ValidationError,
    handle_cli_error,
    handle_config_error,
    handle_error,
    handle_file_error,
    handle_subprocess_error,
)

# Retry strategies
from .strategies import (
    async_retry,
    retry_delays,
    simple_retry,
    with_simple_retry,
)

# Validation functions
from .validators import (
    validate_enum_choice,
    validate_game_name,
    validate_hash_algorithm,
    validate_positive_float,
    validate_positive_integer,
    validate_remote,
    validate_string_list,
)

__all__ = [
    # Core functionality
    "ErrorSeverity",
    "ValidationError",
    "SaveSyncError",
    "ManifestStoreError",
    "TransferError",
    "BackendConfigurationError",
    "handle_error",
    "handle_config_error",
    "handle_file_error",
    "handle_subprocess_error",
    "handle_cli_error",
    # Strategies
    "simple_retry",
    "with_simple_retry",
    "async_retry",
    "retry_delays",
    # Validators
    "validate_enum_choice",
    "validate_game_name",
    "validate_hash_algorithm",
    "validate_positive_float",
    "validate_positive_integer",
    "validate_remote",
    "validate_string_list",
]
