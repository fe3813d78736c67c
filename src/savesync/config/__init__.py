"""
Configuration management for the savesync package.

Loads ``conf/config.toml`` (or the file given with ``--config`` or
``$SAVESYNC_CONFIG``), validates each section into the configuration
dataclasses and caches the result for the process.
"""

# Main configuration interface
from .manager import (
    build_app_config,
    clear_config_cache,
    current_config_path,
    get_config,
    get_config_info,
    is_config_loaded,
    load_config,
    set_config_path,
)

# Lower-level access to the file and its sections
from .loader import (
    CONFIG_ENV_VAR,
    default_config_path,
    get_games_data,
    get_section,
    load_toml_file,
)
from .validators import (
    validate_classifier_config,
    validate_games_config,
    validate_manifest_config,
    validate_tracker_config,
    validate_transfer_config,
)

__all__ = [
    # Main interface
    "get_config",
    "set_config_path",
    "clear_config_cache",
    "is_config_loaded",
    "get_config_info",
    "current_config_path",
    "load_config",
    "build_app_config",
    # File access
    "CONFIG_ENV_VAR",
    "default_config_path",
    "load_toml_file",
    "get_section",
    "get_games_data",
    # Section validators
    "validate_tracker_config",
    "validate_classifier_config",
    "validate_manifest_config",
    "validate_transfer_config",
    "validate_games_config",
]
