"""
Configuration validation utilities.

This module provides validation functions for each configuration section,
turning raw TOML tables into the configuration dataclasses.
"""

import logging
from typing import Any, Dict, List, Optional

from ..classification.rules import default_classifier_config
from ..models.config import (
    ClassifierConfig,
    GameConfig,
    ManifestConfig,
    TrackerConfig,
    TransferConfig,
)
from ..validation import (
    ValidationError,
    validate_enum_choice,
    validate_game_name,
    validate_hash_algorithm,
    validate_positive_float,
    validate_positive_integer,
    validate_remote,
    validate_string_list,
)

logger = logging.getLogger(__name__)


def _optional_string(value: Any, field_name: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a string", field_name=field_name, value=value)
    text = str(value).strip()
    return text or None


def validate_tracker_config(tracker_data: Dict[str, Any]) -> TrackerConfig:
    """
    Validate and create a TrackerConfig from the ``[tracker]`` table.

    Raises:
        ValidationError: If validation fails
    """
    return TrackerConfig(
        scan_interval_seconds=validate_positive_float(
            tracker_data.get("scan_interval_seconds", 2.0),
            min_value=0.05,
            max_value=600.0,
            field_name="tracker.scan_interval_seconds",
        ),
        poll_interval_seconds=validate_positive_float(
            tracker_data.get("poll_interval_seconds", 1.0),
            min_value=0.05,
            max_value=600.0,
            field_name="tracker.poll_interval_seconds",
        ),
        shutdown_grace_seconds=validate_positive_float(
            tracker_data.get("shutdown_grace_seconds", 3.0),
            min_value=0.0,
            max_value=300.0,
            field_name="tracker.shutdown_grace_seconds",
        ),
        process_wait_timeout=validate_positive_float(
            tracker_data.get("process_wait_timeout", 10.0),
            min_value=0.0,
            max_value=600.0,
            field_name="tracker.process_wait_timeout",
        ),
        process_wait_poll_interval=validate_positive_float(
            tracker_data.get("process_wait_poll_interval", 0.4),
            min_value=0.01,
            max_value=60.0,
            field_name="tracker.process_wait_poll_interval",
        ),
    )


def validate_classifier_config(classifier_data: Dict[str, Any]) -> ClassifierConfig:
    """
    Build the classifier tables: defaults plus the ``extra_*`` lists.

    Raises:
        ValidationError: If validation fails
    """
    max_files = validate_positive_integer(
        classifier_data.get("max_tracked_files", 5000),
        min_value=1,
        max_value=1_000_000,
        field_name="classifier.max_tracked_files",
    )
    max_size_mb = validate_positive_integer(
        classifier_data.get("max_total_size_mb", 2048),
        min_value=1,
        max_value=1024 * 1024,
        field_name="classifier.max_total_size_mb",
    )

    extensions = validate_string_list(
        classifier_data.get("extra_ignored_extensions"), "classifier.extra_ignored_extensions"
    )
    return default_classifier_config(
        extra_directories=validate_string_list(
            classifier_data.get("extra_ignored_directories"), "classifier.extra_ignored_directories"
        ),
        extra_extensions=[e if e.startswith(".") else f".{e}" for e in extensions],
        extra_filenames=validate_string_list(
            classifier_data.get("extra_ignored_filenames"), "classifier.extra_ignored_filenames"
        ),
        extra_keywords=validate_string_list(
            classifier_data.get("extra_ignored_keywords"), "classifier.extra_ignored_keywords"
        ),
        max_tracked_files=max_files,
        max_total_size_bytes=max_size_mb * 1024 * 1024,
    )


def validate_manifest_config(manifest_data: Dict[str, Any]) -> ManifestConfig:
    """
    Validate and create a ManifestConfig from the ``[manifest]`` table.

    Raises:
        ValidationError: If validation fails
    """
    algorithm = validate_hash_algorithm(
        manifest_data.get("hash_algorithm", "md5"), field_name="manifest.hash_algorithm"
    )

    hash_workers = manifest_data.get("hash_workers")
    if hash_workers is not None:
        hash_workers = validate_positive_integer(
            hash_workers, min_value=1, max_value=256, field_name="manifest.hash_workers"
        )

    return ManifestConfig(
        hash_algorithm=algorithm,
        io_attempts=validate_positive_integer(
            manifest_data.get("io_attempts", 3),
            min_value=1,
            max_value=20,
            field_name="manifest.io_attempts",
        ),
        io_backoff_seconds=validate_positive_float(
            manifest_data.get("io_backoff_seconds", 0.5),
            min_value=0.0,
            max_value=60.0,
            field_name="manifest.io_backoff_seconds",
        ),
        hash_workers=hash_workers,
    )


def validate_transfer_config(transfer_data: Dict[str, Any]) -> TransferConfig:
    """
    Validate and create a TransferConfig from the ``[transfer]`` table.

    Raises:
        ValidationError: If validation fails
    """
    backend = validate_enum_choice(
        transfer_data.get("backend", "rclone"),
        valid_choices=["rclone"],
        field_name="transfer.backend",
    )

    executable = transfer_data.get("rclone_executable", "rclone")
    if not isinstance(executable, str) or not executable.strip():
        raise ValidationError(
            "transfer.rclone_executable must be a non-empty string",
            field_name="transfer.rclone_executable",
            value=executable,
        )

    rclone_config = transfer_data.get("rclone_config", "")
    if not isinstance(rclone_config, str):
        raise ValidationError(
            "transfer.rclone_config must be a string",
            field_name="transfer.rclone_config",
            value=rclone_config,
        )

    return TransferConfig(
        backend=backend,
        rclone_executable=executable.strip(),
        rclone_config=rclone_config.strip(),
        remote=validate_remote(transfer_data.get("remote", "savesync:SaveTrackerCloudSave"), "transfer.remote"),
        max_parallel_transfers=validate_positive_integer(
            transfer_data.get("max_parallel_transfers", 8),
            min_value=1,
            max_value=64,
            field_name="transfer.max_parallel_transfers",
        ),
        retry_attempts=validate_positive_integer(
            transfer_data.get("retry_attempts", 3),
            min_value=1,
            max_value=20,
            field_name="transfer.retry_attempts",
        ),
        retry_delay_seconds=validate_positive_float(
            transfer_data.get("retry_delay_seconds", 2.0),
            min_value=0.0,
            max_value=300.0,
            field_name="transfer.retry_delay_seconds",
        ),
        smart_sync_threshold_minutes=validate_positive_float(
            transfer_data.get("smart_sync_threshold_minutes", 5.0),
            min_value=0.0,
            max_value=24 * 60.0,
            field_name="transfer.smart_sync_threshold_minutes",
        ),
    )


def validate_games_config(games_data: List[Dict[str, Any]]) -> List[GameConfig]:
    """
    Validate the ``[[games]]`` tables.

    Raises:
        ValidationError: If a game is invalid or a name is duplicated
    """
    games: List[GameConfig] = []
    names: List[str] = []

    for i, game_data in enumerate(games_data):
        prefix = f"games[{i}]"
        if not isinstance(game_data, dict):
            raise ValidationError(f"{prefix} must be a table", field_name=prefix, value=game_data)

        name = validate_game_name(game_data.get("name", ""), names, f"{prefix}.name")
        install_dir = game_data.get("install_dir")
        if not isinstance(install_dir, str) or not install_dir.strip():
            raise ValidationError(
                f"{prefix}.install_dir must be a non-empty string",
                field_name=f"{prefix}.install_dir",
                value=install_dir,
            )

        executable = game_data.get("executable", "")
        if not isinstance(executable, str):
            raise ValidationError(f"{prefix}.executable must be a string", field_name=f"{prefix}.executable")

        games.append(
            GameConfig(
                name=name,
                install_dir=install_dir.strip(),
                executable=executable.strip(),
                profile_id=_optional_string(game_data.get("profile_id"), f"{prefix}.profile_id"),
                blacklist=validate_string_list(game_data.get("blacklist"), f"{prefix}.blacklist"),
                steam_user_id=_optional_string(game_data.get("steam_user_id"), f"{prefix}.steam_user_id"),
                steam_app_id=_optional_string(game_data.get("steam_app_id"), f"{prefix}.steam_app_id"),
                emulation_prefix=_optional_string(game_data.get("emulation_prefix"), f"{prefix}.emulation_prefix"),
            )
        )
        names.append(name)

    logger.debug(f"Validated {len(games)} games")
    return games
