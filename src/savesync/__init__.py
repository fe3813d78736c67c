"""
SaveSync: game save tracking and cloud synchronization.

This package watches a running game, works out which files it wrote, and
keeps those files in sync with a cloud remote using portable paths and a
checksum manifest.

The package is organized into specialized modules:
- config: Configuration management and validation
- models: Data structures and type definitions
- validation: Input validation, error handling and retries
- system: Process listing, Wine prefix detection and subprocess helpers
- paths: Portable path encoding
- classification: Ignore rules, path filter and file collection
- manifest: Checksum manifest storage
- tracking: Process tracking and play sessions
- transfer: Upload/download orchestration and the rclone backend
- cli: Command-line interface

Usage:
    From command line:
        savesync track "My Game" --launch ./game.exe

    Programmatically:
        from savesync import SyncRunner, get_config
        config = get_config()
        runner = SyncRunner(config, config.get_game("My Game"))
        runner.run(runner.upload_async)
"""

# Main interfaces
from .config import clear_config_cache, get_config, set_config_path
from .cli import SyncRunner, main_cli

# Model classes for external use
from .models import (
    AppConfig,
    ClassifierConfig,
    GameConfig,
    ManifestConfig,
    TrackerConfig,
    TransferConfig,
)

# Core components
from .classification import FileCollector, PathClassifier, PathFilter
from .manifest import ChecksumManifest, FileChecksumRecord, GameUploadData
from .paths import PathCodec, contract_path, expand_path
from .tracking import ProcessTracker, TrackingSession
from .transfer import RcloneBackend, TransferBackend, TransferOrchestrator

# Validation utilities
from .validation import (
    ValidationError,
    validate_enum_choice,
    validate_remote,
    validate_positive_float,
    validate_positive_integer,
)

__version__ = "1.0.0"

__all__ = [
    # Main interfaces
    "get_config",
    "clear_config_cache",
    "set_config_path",
    "SyncRunner",
    "main_cli",
    # Models
    "AppConfig",
    "ClassifierConfig",
    "GameConfig",
    "ManifestConfig",
    "TrackerConfig",
    "TransferConfig",
    # Components
    "FileCollector",
    "PathClassifier",
    "PathFilter",
    "ChecksumManifest",
    "FileChecksumRecord",
    "GameUploadData",
    "PathCodec",
    "contract_path",
    "expand_path",
    "ProcessTracker",
    "TrackingSession",
    "RcloneBackend",
    "TransferBackend",
    "TransferOrchestrator",
    # Validation
    "ValidationError",
    "validate_enum_choice",
    "validate_remote",
    "validate_positive_float",
    "validate_positive_integer",
]
