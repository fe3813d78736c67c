"""
Content fingerprints.

Files are hashed by streaming them in chunks through hashlib. The tracked
game may still be writing a file while it is hashed, so files are opened for
reading only; Python's open() requests shared access on Windows and never
takes an exclusive lock.

A FileSnapshot ties digest, size and modification time to the same read: the
file is stat'ed before and after hashing and the snapshot is discarded if
the two stats differ.
"""

import hashlib
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional

from ..executor import ManagedThreadPoolExecutor

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True)
class FileSnapshot:
    """Digest, size and mtime observed during one complete read of a file."""

    path: str
    checksum: str
    file_size: int
    last_write_time: datetime


def mtime_from_stat(st: os.stat_result) -> datetime:
    """Modification time as an aware UTC datetime truncated to microseconds."""
    seconds, nanos = divmod(st.st_mtime_ns, 1_000_000_000)
    return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(microsecond=nanos // 1000)


def timestamps_equal(first: Optional[datetime], second: Optional[datetime]) -> bool:
    """Single canonical comparison: both in UTC at microsecond precision."""
    if first is None or second is None:
        return False
    if first.tzinfo is None:
        first = first.replace(tzinfo=timezone.utc)
    if second.tzinfo is None:
        second = second.replace(tzinfo=timezone.utc)
    return first.astimezone(timezone.utc) == second.astimezone(timezone.utc)


def get_file_checksum(path: str, algorithm: str = "md5", chunk_size: int = CHUNK_SIZE) -> str:
    """
    Hash a file by streaming its content.

    Args:
        path: File to hash
        algorithm: Any name accepted by hashlib.new()
        chunk_size: Bytes read per iteration

    Returns:
        Lower-case hex digest

    Raises:
        OSError: If the file cannot be opened or read
        ValueError: If the algorithm is unknown
    """
    digest = hashlib.new(algorithm)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


def take_snapshot(path: str, algorithm: str = "md5") -> Optional[FileSnapshot]:
    """
    Hash a file and record its size and mtime from the same read.

    Returns:
        The snapshot, or None if the file changed while it was being hashed

    Raises:
        OSError: If the file cannot be read
    """
    before = os.stat(path)
    checksum = get_file_checksum(path, algorithm)
    after = os.stat(path)

    if before.st_size != after.st_size or before.st_mtime_ns != after.st_mtime_ns:
        logger.debug(f"File changed while hashing, snapshot discarded: {path}")
        return None

    return FileSnapshot(
        path=path,
        checksum=checksum,
        file_size=after.st_size,
        last_write_time=mtime_from_stat(after),
    )


async def compute_snapshots(
    paths: Iterable[str],
    pool: ManagedThreadPoolExecutor,
    algorithm: str = "md5",
) -> Dict[str, FileSnapshot]:
    """
    Snapshot many files in parallel on the thread pool.

    Files that cannot be read or that changed during the read are left out
    of the result; the caller treats them as failures or retries later.
    """
    unique = list(dict.fromkeys(paths))
    if not unique:
        return {}

    snapshots, failures = await pool.map_paths(take_snapshot, unique, algorithm)
    for path, error in failures.items():
        logger.warning(f"Failed to hash {path}: {error}")
    logger.debug(f"Hashed {len(snapshots)}/{len(unique)} files")
    return snapshots
