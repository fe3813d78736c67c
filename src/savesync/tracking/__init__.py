"""
Process lifecycle and file change tracking for a running game.
"""

from .file_poller import FilePoller
from .process_tracker import ProcessTracker
from .session import TrackingSession

__all__ = [
    "FilePoller",
    "ProcessTracker",
    "TrackingSession",
]
