"""
Configuration data models.

This module contains the configuration structures for the tracker, the
path classifier, the manifest store, the transfer layer and the games
themselves, aggregated into AppConfig.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class TrackerConfig:
    """
    Process tracker and file polling settings, loaded from `[tracker]`.
    """

    # Interval between full rescans of processes running from the install dir.
    scan_interval_seconds: float = 2.0
    # Interval between filesystem polls of the watched roots.
    poll_interval_seconds: float = 1.0
    # Time to let the filesystem settle after the last tracked process exits.
    shutdown_grace_seconds: float = 3.0
    # How long to wait for a process to appear in the install dir (launcher case).
    process_wait_timeout: float = 10.0
    # Poll interval used while waiting for that process.
    process_wait_poll_interval: float = 0.4


@dataclass
class ClassifierConfig:
    """
    Lookup tables for the path classifier.

    Directory entries may start with a portable token (for example
    `%LOCALAPPDATA%/Temp`); they are expanded when the classifier is built.
    """

    # Known non-save directories; a path equal to or under one is ignored.
    ignored_directories: List[str] = field(default_factory=list)
    # Junk file names, compared case-insensitively.
    ignored_filenames: List[str] = field(default_factory=list)
    # Extensions including the leading dot, compared case-insensitively.
    ignored_extensions: List[str] = field(default_factory=list)
    # Substrings matched against the file name or a whole path segment.
    ignored_keywords: List[str] = field(default_factory=list)
    # Emergency brake: stop collecting after this many files.
    max_tracked_files: int = 5000
    # Emergency brake: stop collecting after this many bytes.
    max_total_size_bytes: int = 2048 * 1024 * 1024


@dataclass
class ManifestConfig:
    """
    Manifest store settings, loaded from `[manifest]`.
    """

    # Any algorithm name accepted by hashlib.new().
    hash_algorithm: str = "md5"
    # Attempts for manifest reads and writes before giving up.
    io_attempts: int = 3
    # Initial backoff in seconds, doubled after each failed attempt.
    io_backoff_seconds: float = 0.5
    # Worker threads for parallel hashing; None uses the CPU count.
    hash_workers: Optional[int] = None


@dataclass
class TransferConfig:
    """
    Transfer backend and orchestration settings, loaded from `[transfer]`.
    """

    # Backend type; only "rclone" ships with the package.
    backend: str = "rclone"
    # Executable name or path of the rclone binary.
    rclone_executable: str = "rclone"
    # Optional rclone config file; empty uses rclone's default lookup.
    rclone_config: str = ""
    # Remote root, "name:path". Each game is stored under <remote>/<game name>.
    remote: str = "savesync:SaveTrackerCloudSave"
    # Upper bound for concurrent out-of-tree transfers.
    max_parallel_transfers: int = 8
    # Attempts per transfer call.
    retry_attempts: int = 3
    # Fixed delay between attempts in seconds.
    retry_delay_seconds: float = 2.0
    # Play time difference below which local and cloud count as equal.
    smart_sync_threshold_minutes: float = 5.0


@dataclass
class GameConfig:
    """
    Configuration for a single tracked game, loaded from `[[games]]`.
    """

    # Display name; also the remote folder name.
    name: str
    # Root directory of the installed game.
    install_dir: str
    # Executable file name used to find the game process.
    executable: str = ""
    # Save profile; empty or None is the default profile.
    profile_id: Optional[str] = None
    # Paths excluded from sync in addition to the manifest blacklist.
    blacklist: List[str] = field(default_factory=list)
    # Steam identifiers used to allow the Steam cloud folder.
    steam_user_id: Optional[str] = None
    steam_app_id: Optional[str] = None
    # Wine/Proton prefix; detected at launch on Linux when empty.
    emulation_prefix: Optional[str] = None


@dataclass
class AppConfig:
    """
    The root configuration object that aggregates all loaded settings.
    """

    tracker: TrackerConfig
    classifier: ClassifierConfig
    manifest: ManifestConfig
    transfer: TransferConfig
    games: List[GameConfig]

    def get_game(self, name: str) -> Optional[GameConfig]:
        """Return the configured game with the given name, or None."""
        for game in self.games:
            if game.name == name:
                return game
        return None
