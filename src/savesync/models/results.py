"""
Transfer result counters.

UploadStats and DownloadResult are returned from one orchestration run and
never persisted. Out-of-tree uploads run concurrently and record into the
same UploadStats instance, so its mutators take a lock.
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class UploadStats:
    """Counters for one upload run."""

    uploaded_count: int = 0
    skipped_count: int = 0
    failed_count: int = 0
    uploaded_size: int = 0
    skipped_size: int = 0
    failed_files: List[str] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_uploaded(self, size: int) -> None:
        with self._lock:
            self.uploaded_count += 1
            self.uploaded_size += size

    def record_skipped(self, size: int) -> None:
        with self._lock:
            self.skipped_count += 1
            self.skipped_size += size

    def record_failed(self, name: str) -> None:
        with self._lock:
            self.failed_count += 1
            self.failed_files.append(name)

    @property
    def total_count(self) -> int:
        return self.uploaded_count + self.skipped_count + self.failed_count

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "uploaded_count": self.uploaded_count,
                "skipped_count": self.skipped_count,
                "failed_count": self.failed_count,
                "uploaded_size": self.uploaded_size,
                "skipped_size": self.skipped_size,
                "failed_files": list(self.failed_files),
            }


@dataclass
class DownloadResult:
    """Counters for one download or restore run."""

    downloaded_count: int = 0
    skipped_count: int = 0
    failed_count: int = 0
    downloaded_size: int = 0
    skipped_size: int = 0
    failed_files: List[str] = field(default_factory=list)

    def record_downloaded(self, size: int) -> None:
        self.downloaded_count += 1
        self.downloaded_size += size

    def record_skipped(self, size: int) -> None:
        self.skipped_count += 1
        self.skipped_size += size

    def record_failed(self, name: str) -> None:
        self.failed_count += 1
        self.failed_files.append(name)

    @property
    def success(self) -> bool:
        return self.failed_count == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "downloaded_count": self.downloaded_count,
            "skipped_count": self.skipped_count,
            "failed_count": self.failed_count,
            "downloaded_size": self.downloaded_size,
            "skipped_size": self.skipped_size,
            "failed_files": list(self.failed_files),
        }
