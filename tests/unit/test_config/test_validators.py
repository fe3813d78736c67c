"""
Unit tests for configuration validation functionality.

Tests the validation of the tracker, classifier, manifest, transfer and
games sections, including defaults and error handling.
"""

import pytest

from savesync.config.validators import (
    validate_classifier_config,
    validate_games_config,
    validate_manifest_config,
    validate_tracker_config,
    validate_transfer_config,
)
from savesync.validation import ValidationError


@pytest.mark.unit
class TestTrackerConfigValidation:
    """Test cases for the [tracker] section."""

    def test_defaults(self):
        config = validate_tracker_config({})

        assert config.scan_interval_seconds == 2.0
        assert config.poll_interval_seconds == 1.0
        assert config.shutdown_grace_seconds == 3.0

    def test_custom_values(self):
        config = validate_tracker_config({"poll_interval_seconds": 0.5, "shutdown_grace_seconds": 0})

        assert config.poll_interval_seconds == 0.5
        assert config.shutdown_grace_seconds == 0.0

    def test_interval_too_small(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_tracker_config({"scan_interval_seconds": 0.001})

        assert exc_info.value.field_name == "tracker.scan_interval_seconds"


@pytest.mark.unit
class TestClassifierConfigValidation:
    """Test cases for the [classifier] section."""

    def test_defaults_include_builtin_tables(self):
        config = validate_classifier_config({})

        assert ".tmp" in config.ignored_extensions
        assert config.max_tracked_files == 5000
        assert config.max_total_size_bytes == 2048 * 1024 * 1024

    def test_extra_entries_are_merged(self):
        config = validate_classifier_config(
            {
                "extra_ignored_extensions": ["replay", ".demo"],
                "extra_ignored_keywords": ["telemetry"],
                "max_total_size_mb": 10,
            }
        )

        assert ".replay" in config.ignored_extensions
        assert ".demo" in config.ignored_extensions
        assert "telemetry" in config.ignored_keywords
        assert config.max_total_size_bytes == 10 * 1024 * 1024

    def test_extra_entries_must_be_strings(self):
        with pytest.raises(ValidationError):
            validate_classifier_config({"extra_ignored_filenames": ["ok", 3]})


@pytest.mark.unit
class TestManifestConfigValidation:
    """Test cases for the [manifest] section."""

    def test_defaults(self):
        config = validate_manifest_config({})

        assert config.hash_algorithm == "md5"
        assert config.hash_workers is None

    def test_algorithm_is_case_insensitive(self):
        assert validate_manifest_config({"hash_algorithm": "SHA256"}).hash_algorithm == "sha256"

    def test_unknown_algorithm(self):
        with pytest.raises(ValidationError):
            validate_manifest_config({"hash_algorithm": "crc32"})

    def test_variable_length_digest_rejected(self):
        with pytest.raises(ValidationError):
            validate_manifest_config({"hash_algorithm": "shake_128"})

    def test_hash_workers(self):
        assert validate_manifest_config({"hash_workers": 4}).hash_workers == 4
        with pytest.raises(ValidationError):
            validate_manifest_config({"hash_workers": 0})


@pytest.mark.unit
class TestTransferConfigValidation:
    """Test cases for the [transfer] section."""

    def test_defaults(self):
        config = validate_transfer_config({})

        assert config.backend == "rclone"
        assert config.remote == "savesync:SaveTrackerCloudSave"
        assert config.retry_attempts == 3

    def test_remote_trailing_slash_removed(self):
        assert validate_transfer_config({"remote": "gdrive:Saves/"}).remote == "gdrive:Saves"

    def test_invalid_remote(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_transfer_config({"remote": "no-colon-here"})

        assert exc_info.value.field_name == "transfer.remote"

    def test_unknown_backend(self):
        with pytest.raises(ValidationError):
            validate_transfer_config({"backend": "ftp"})

    def test_empty_executable(self):
        with pytest.raises(ValidationError):
            validate_transfer_config({"rclone_executable": "  "})


@pytest.mark.unit
class TestGamesConfigValidation:
    """Test cases for the [[games]] tables."""

    def test_valid_games(self):
        games = validate_games_config(
            [
                {"name": "Foo", "install_dir": "/games/foo", "executable": "foo.exe", "blacklist": ["%GAMEPATH%/Logs"]},
                {"name": "Bar", "install_dir": "/games/bar", "profile_id": "", "steam_app_id": 1245620},
            ]
        )

        assert [g.name for g in games] == ["Foo", "Bar"]
        assert games[0].blacklist == ["%GAMEPATH%/Logs"]
        assert games[1].profile_id is None
        assert games[1].steam_app_id == "1245620"

    def test_duplicate_names(self):
        with pytest.raises(ValidationError, match="unique"):
            validate_games_config([{"name": "Foo", "install_dir": "/a"}, {"name": "Foo", "install_dir": "/b"}])

    def test_name_with_separator(self):
        with pytest.raises(ValidationError):
            validate_games_config([{"name": "Foo/Bar", "install_dir": "/a"}])

    def test_missing_install_dir(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_games_config([{"name": "Foo"}])

        assert exc_info.value.field_name == "games[0].install_dir"

    def test_game_must_be_table(self):
        with pytest.raises(ValidationError):
            validate_games_config(["Foo"])
