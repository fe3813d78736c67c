"""
Transfer orchestration.

Moves changed save files to and from the cloud remote through a pluggable
backend (rclone by default), tracks batch progress and compares local and
cloud play time.
"""

from .backend import ProgressCallback, TransferBackend
from .orchestrator import SYNC_STATUS_FAILED, SYNC_STATUS_SUCCESS, TransferOrchestrator
from .progress import LoggingProgressSink, ProgressSink, ProgressUpdate, QueueProgressSink
from .rclone import RcloneBackend, create_backend, parse_progress
from .smart_sync import (
    ProgressComparison,
    ProgressStatus,
    compare_progress,
    compare_with_remote,
)
from .state import InvalidTransitionError, TransferRun, TransferState
from .timeouts import TimeoutConstants

__all__ = [
    "ProgressCallback",
    "TransferBackend",
    "SYNC_STATUS_FAILED",
    "SYNC_STATUS_SUCCESS",
    "TransferOrchestrator",
    "LoggingProgressSink",
    "ProgressSink",
    "ProgressUpdate",
    "QueueProgressSink",
    "RcloneBackend",
    "create_backend",
    "parse_progress",
    "ProgressComparison",
    "ProgressStatus",
    "compare_progress",
    "compare_with_remote",
    "InvalidTransitionError",
    "TransferRun",
    "TransferState",
    "TimeoutConstants",
]
