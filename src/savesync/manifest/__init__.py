"""
Checksum manifest.

Per-game record of tracked files and their last known content state, used
to skip unchanged files and to drive restores on another machine.
"""

from .checksum import (
    FileSnapshot,
    compute_snapshots,
    get_file_checksum,
    mtime_from_stat,
    take_snapshot,
    timestamps_equal,
)
from .models import (
    CloudProvider,
    FileChecksumRecord,
    GameUploadData,
    format_duration,
    parse_duration,
)
from .store import (
    DEFAULT_PROFILE_ID,
    LEGACY_MANIFEST_NAME,
    ChangeScan,
    ChecksumManifest,
    is_manifest_file,
    manifest_file_name,
    manifest_path,
    record_from_snapshot,
)

__all__ = [
    "FileSnapshot",
    "compute_snapshots",
    "get_file_checksum",
    "mtime_from_stat",
    "take_snapshot",
    "timestamps_equal",
    "CloudProvider",
    "FileChecksumRecord",
    "GameUploadData",
    "format_duration",
    "parse_duration",
    "DEFAULT_PROFILE_ID",
    "LEGACY_MANIFEST_NAME",
    "ChangeScan",
    "ChecksumManifest",
    "is_manifest_file",
    "manifest_file_name",
    "manifest_path",
    "record_from_snapshot",
]
