"""
Data models for the sync engine.

Configuration Models:
- Tracker, classifier, manifest and transfer settings
- Per-game configuration and the aggregating AppConfig

Runtime Models:
- Process listing rows and tracked processes
- Classified candidate files

Result Models:
- Upload and download counters returned from a transfer run

The manifest schema itself lives in savesync.manifest.models because its
field names are a file-format compatibility surface.
"""

# Configuration models
from .config import (
    AppConfig,
    ClassifierConfig,
    GameConfig,
    ManifestConfig,
    TrackerConfig,
    TransferConfig,
)

# Runtime models
from .runtime import CandidateFile, ProcessInfo, TrackedProcess

# Result models
from .results import DownloadResult, UploadStats

__all__ = [
    # Configuration
    "AppConfig",
    "ClassifierConfig",
    "GameConfig",
    "ManifestConfig",
    "TrackerConfig",
    "TransferConfig",
    # Runtime
    "CandidateFile",
    "ProcessInfo",
    "TrackedProcess",
    # Results
    "DownloadResult",
    "UploadStats",
]
