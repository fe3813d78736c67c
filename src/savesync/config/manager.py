"""
Configuration singleton.

The configuration is read once per process and shared; the CLI may point
the manager at another file before first use, and tests reset the cache
between cases.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from ..models.config import AppConfig
from ..validation import ErrorSeverity, handle_config_error
from .loader import default_config_path, get_games_data, get_section, load_toml_file, warn_unknown_sections
from .validators import (
    validate_classifier_config,
    validate_games_config,
    validate_manifest_config,
    validate_tracker_config,
    validate_transfer_config,
)

logger = logging.getLogger(__name__)

_CONFIG: Optional[AppConfig] = None

# None means default_config_path()
_CONFIG_FILE_PATH: Optional[Path] = None


def set_config_path(config_path: Path) -> None:
    """Use ``config_path`` from now on; drops any cached configuration."""
    global _CONFIG_FILE_PATH, _CONFIG
    _CONFIG_FILE_PATH = Path(config_path)
    _CONFIG = None
    logger.debug(f"Configuration path set to: {config_path}")


def clear_config_cache() -> None:
    """Forget the loaded configuration; the next get_config() re-reads it."""
    global _CONFIG
    _CONFIG = None


def current_config_path() -> Path:
    return _CONFIG_FILE_PATH or default_config_path()


def build_app_config(data: Dict[str, Any]) -> AppConfig:
    """
    Validate parsed TOML into an AppConfig.

    Raises:
        ValidationError: Naming the first offending key
    """
    warn_unknown_sections(data)
    return AppConfig(
        tracker=validate_tracker_config(get_section(data, "tracker")),
        classifier=validate_classifier_config(get_section(data, "classifier")),
        manifest=validate_manifest_config(get_section(data, "manifest")),
        transfer=validate_transfer_config(get_section(data, "transfer")),
        games=validate_games_config(get_games_data(data)),
    )


def load_config(config_path: Path) -> AppConfig:
    """
    Read and validate a configuration file without touching the cache.

    Raises:
        FileNotFoundError: If the configuration file is missing
        ValidationError: If configuration validation fails
        tomllib.TOMLDecodeError: If the file is malformed
    """
    try:
        app_config = build_app_config(load_toml_file(config_path))
    except Exception as e:
        handle_config_error(
            error=e,
            context=f"loading {config_path}",
            severity=ErrorSeverity.ERROR,
            reraise=True,
            logger=logger
        )
        raise

    logger.info(
        f"Loaded {config_path}: {len(app_config.games)} games, remote {app_config.transfer.remote}"
    )
    return app_config


def get_config() -> AppConfig:
    """
    The process-wide configuration, loaded on first use.

    Raises:
        FileNotFoundError, ValidationError, tomllib.TOMLDecodeError: As
            load_config()
    """
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = load_config(current_config_path())
    return _CONFIG


def is_config_loaded() -> bool:
    return _CONFIG is not None


def get_config_info() -> Dict[str, Any]:
    """Summary of the configuration state, for diagnostics."""
    return {
        "config_loaded": is_config_loaded(),
        "config_path": str(current_config_path()),
        "games_count": len(_CONFIG.games) if _CONFIG else 0,
        "remote": _CONFIG.transfer.remote if _CONFIG else None,
    }
