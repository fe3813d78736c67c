"""
Candidate file collection.

Collects the save candidates observed during a session. Each observed path
goes through the path filter, the emergency brakes and the classifier.

Games often write through a temporary double-extension file and rename it
afterwards (``slot1.sav.tmp`` -> ``slot1.sav``). When such a file is
observed, the companion without the last extension is tracked as well, even
if the observed file itself is ignored.
"""

import logging
import os
import threading
from typing import Dict, List, Optional

from ..paths import normalize_path
from .classifier import PathClassifier
from .path_filter import PathFilter

logger = logging.getLogger(__name__)


def companion_path(path: str) -> Optional[str]:
    """``a/b.sav.bak`` -> ``a/b.sav``; None unless the name has two extensions."""
    directory, name = os.path.split(normalize_path(path))
    stem, extension = os.path.splitext(name)
    if not extension or not os.path.splitext(stem)[1] or stem.startswith("."):
        return None
    return f"{directory}/{stem}" if directory else stem


class FileCollector:
    """
    Thread-safe set of save candidates for one session.

    Args:
        classifier: Decides whether a path is noise
        path_filter: Optional coarse allow/deny filter applied first
        max_files: Collection stops after this many files
        max_total_bytes: Collection stops once the candidates exceed this size
    """

    def __init__(
        self,
        classifier: PathClassifier,
        path_filter: Optional[PathFilter] = None,
        max_files: Optional[int] = None,
        max_total_bytes: Optional[int] = None,
    ):
        self.classifier = classifier
        self.path_filter = path_filter
        self.max_files = max_files if max_files is not None else classifier.config.max_tracked_files
        self.max_total_bytes = (
            max_total_bytes if max_total_bytes is not None else classifier.config.max_total_size_bytes
        )

        # lower-case key -> path as first observed
        self._files: Dict[str, str] = {}
        self._companions: Dict[str, str] = {}
        self._total_bytes = 0
        self._limit_logged = False
        self._lock = threading.Lock()

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._files)

    @property
    def total_bytes(self) -> int:
        with self._lock:
            return self._total_bytes

    def add_file(self, path: str) -> bool:
        """
        Add a path without classification.

        Returns:
            False if the path was already collected or a brake is engaged
        """
        normalized = normalize_path(path)
        key = normalized.lower()
        try:
            size = os.path.getsize(normalized) if os.path.isfile(normalized) else 0
        except OSError:
            size = 0

        with self._lock:
            if key in self._files:
                return False
            if len(self._files) >= self.max_files:
                self._log_limit(f"exceeded {self.max_files} files")
                return False
            if self._total_bytes + size > self.max_total_bytes:
                self._log_limit(f"exceeded {self.max_total_bytes // (1024 * 1024)} MB")
                return False
            self._files[key] = normalized
            self._total_bytes += size
        logger.debug(f"Tracked: {normalized}")
        return True

    def _log_limit(self, detail: str) -> None:
        # caller holds the lock
        if not self._limit_logged:
            self._limit_logged = True
            logger.error(f"Tracking paused: {detail}")

    def _add_companion(self, path: str) -> None:
        key = path.lower()
        with self._lock:
            if key not in self._files and key not in self._companions:
                self._companions[key] = path
                logger.debug(f"Tracked companion: {path}")

    def handle_file_access(self, path: str) -> bool:
        """
        Process one observed path.

        Returns:
            True if the path itself became a candidate
        """
        if not path:
            return False

        normalized = normalize_path(path)
        if self.path_filter is not None and not self.path_filter.should_track(normalized):
            return False

        companion = companion_path(normalized)

        if self.classifier.should_ignore(normalized):
            if companion and not self.classifier.should_ignore(companion):
                self._add_companion(companion)
            return False

        added = self.add_file(normalized)
        if added and companion and not self.classifier.should_ignore(companion):
            self._add_companion(companion)
        return added

    def get_collected_files(self) -> List[str]:
        """Collected candidates in observation order."""
        with self._lock:
            return list(self._files.values())

    def get_upload_candidates(self) -> List[str]:
        """Collected candidates plus companions that exist on disk."""
        with self._lock:
            files = list(self._files.values())
            companions = [p for k, p in self._companions.items() if k not in self._files]
        return files + [p for p in companions if os.path.isfile(p)]

    def clear(self) -> None:
        with self._lock:
            self._files.clear()
            self._companions.clear()
            self._total_bytes = 0
            self._limit_logged = False
