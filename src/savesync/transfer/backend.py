"""
Transfer backend contract.

The orchestrator moves files through an external transfer tool it does not
know about; anything that implements TransferBackend can be plugged in.
Every operation is async, bounded by a timeout and reports success as a
boolean. Backends raise only for programming errors; transport failures are
reported as False so the orchestrator can retry and keep going.
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Sequence

# Progress callback: (percent or None, speed text or None)
ProgressCallback = Callable[[Optional[int], Optional[str]], None]


class TransferBackend(ABC):
    """Abstract remote storage operations used by the orchestrator."""

    @abstractmethod
    async def exists(self, remote_path: str) -> bool:
        """Whether a remote file exists."""

    @abstractmethod
    async def upload(self, local_path: str, remote_path: str,
                     progress: Optional[ProgressCallback] = None) -> bool:
        """Copy one local file to an exact remote path."""

    @abstractmethod
    async def upload_batch(self, local_root: str, remote_root: str, relative_files: Sequence[str],
                           progress: Optional[ProgressCallback] = None) -> bool:
        """
        Copy many files in one call.

        Each entry of ``relative_files`` is a ``/``-separated path relative to
        ``local_root`` and lands at the same relative path under
        ``remote_root``.
        """

    @abstractmethod
    async def download(self, remote_path: str, local_path: str,
                       progress: Optional[ProgressCallback] = None) -> bool:
        """Copy one remote file to an exact local path."""

    @abstractmethod
    async def download_directory(self, remote_path: str, local_dir: str,
                                 progress: Optional[ProgressCallback] = None) -> bool:
        """Copy a remote directory tree into a local directory."""

    @abstractmethod
    async def list_directories(self, remote_root: str) -> List[str]:
        """Names of the directories directly under ``remote_root``."""

    @abstractmethod
    async def rename(self, old_remote_path: str, new_remote_path: str) -> bool:
        """Move a remote file or directory."""

    async def validate(self) -> bool:
        """Whether the backend is usable on this host."""
        return True
