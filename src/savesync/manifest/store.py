"""
Checksum manifest store.

The manifest of a game lives in its install directory as
``.savetracker_profile_<name>.json``. Every read and write of a given
manifest file is serialized through one asyncio.Lock per resolved path, so
at most one reader or writer touches the file at any time within the
process, including read-modify-write sequences performed through edit().

Failure policy:

- load() never raises for I/O or parse problems: transient errors are
  retried with exponential backoff and an unreadable manifest degrades to
  an empty one (favouring a re-upload over a wrong skip decision).
- save() retries the same way but raises ManifestStoreError on final
  failure; a silently lost manifest would corrupt the backup state.
"""

import asyncio
import logging
import os
import re
import shutil
import threading
import weakref
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Dict, Iterable, List, Optional, Tuple

from ..executor import ManagedThreadPoolExecutor, ThreadPoolConfig
from ..models.config import ManifestConfig
from ..paths import (
    contract_path,
    contract_wine_path,
    expand_path,
    is_legacy_wine_key,
    is_portable,
    is_under,
    normalize_path,
    prefix_from_path,
)
from ..validation import (
    ErrorSeverity,
    ManifestStoreError,
    async_retry,
    handle_file_error,
)
from .checksum import (
    FileSnapshot,
    compute_snapshots,
    get_file_checksum,
    mtime_from_stat,
    take_snapshot,
    timestamps_equal,
)
from .models import FileChecksumRecord, GameUploadData, utc_now

logger = logging.getLogger(__name__)

DEFAULT_PROFILE_ID = "DEFAULT_PROFILE_ID"
MANIFEST_PREFIX = ".savetracker_profile_"
LEGACY_MANIFEST_NAME = ".savetracker_checksums.json"
PROFILE_NAME_MAX_LENGTH = 24

# event loop -> {manifest path -> lock}
_manifest_locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, Dict[str, asyncio.Lock]]" = (
    weakref.WeakKeyDictionary()
)
_manifest_locks_guard = threading.Lock()


def manifest_file_name(profile_id: Optional[str] = None) -> str:
    """
    File name of the manifest for a profile.

    The default profile maps to ``default``; other ids keep their lower-case
    alphanumerics, truncated to 24 characters (``profile`` if none remain).
    """
    if not profile_id or profile_id == DEFAULT_PROFILE_ID:
        name = "default"
    else:
        name = re.sub(r'[^a-z0-9]', '', profile_id.lower())[:PROFILE_NAME_MAX_LENGTH] or "profile"
    return f"{MANIFEST_PREFIX}{name}.json"


def manifest_path(game_dir: str, profile_id: Optional[str] = None) -> str:
    """Absolute path of the manifest file inside the install directory."""
    if not game_dir:
        raise ValueError("game_dir must not be empty")
    return os.path.join(game_dir, manifest_file_name(profile_id))


def is_manifest_file(path: str) -> bool:
    name = os.path.basename(normalize_path(path)).lower()
    return name == LEGACY_MANIFEST_NAME or (
        name.startswith(MANIFEST_PREFIX) and name.endswith(".json")
    )


def _lock_for(path: str) -> asyncio.Lock:
    loop = asyncio.get_running_loop()
    key = os.path.normcase(os.path.abspath(path))
    with _manifest_locks_guard:
        locks = _manifest_locks.setdefault(loop, {})
        lock = locks.get(key)
        if lock is None:
            lock = locks[key] = asyncio.Lock()
        return lock


def record_from_snapshot(
    snapshot: FileSnapshot,
    portable_path: str,
    uploaded_at: Optional[datetime] = None,
) -> FileChecksumRecord:
    return FileChecksumRecord(
        checksum=snapshot.checksum,
        last_upload=uploaded_at or utc_now(),
        path=portable_path,
        file_size=snapshot.file_size,
        last_write_time=snapshot.last_write_time,
    )


@dataclass
class ChangeScan:
    """Result of comparing candidate files against a manifest."""

    # path -> snapshot of files whose content differs from the record
    changed: Dict[str, FileSnapshot] = field(default_factory=dict)
    # (path, size) of files the manifest already describes
    unchanged: List[Tuple[str, int]] = field(default_factory=list)
    # files that could not be read
    failed: List[str] = field(default_factory=list)


class ChecksumManifest:
    """
    Load, save and query per-game manifests.

    One instance can serve any number of games; the lock registry is
    module-wide so separate instances still serialize on the same file.
    """

    def __init__(
        self,
        config: Optional[ManifestConfig] = None,
        pool: Optional[ManagedThreadPoolExecutor] = None,
    ):
        self.config = config or ManifestConfig()
        self._pool = pool
        self._owns_pool = pool is None

    # ------------------------------------------------------------------
    # Pool management
    # ------------------------------------------------------------------

    @property
    def pool(self) -> ManagedThreadPoolExecutor:
        if self._pool is None:
            self._pool = ManagedThreadPoolExecutor(
                ThreadPoolConfig(
                    max_workers=self.config.hash_workers,
                    thread_name_prefix="HashWorker",
                )
            )
        if not self._pool.is_running:
            self._pool.start()
        return self._pool

    def close(self) -> None:
        """Shut down the hashing pool if this instance created it."""
        if self._owns_pool and self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None

    async def __aenter__(self) -> "ChecksumManifest":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Raw file access (run on the default executor)
    # ------------------------------------------------------------------

    def _read_file(self, path: str) -> str:
        with open(path, "r", encoding="utf-8-sig") as f:
            return f.read()

    def _write_file(self, path: str, text: str) -> None:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        temp_path = f"{path}.tmp"
        with open(temp_path, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, path)

    async def _load_unlocked(self, path: str) -> GameUploadData:
        loop = asyncio.get_running_loop()
        if not await loop.run_in_executor(None, os.path.exists, path):
            logger.debug(f"No manifest at {path}, using defaults")
            return GameUploadData()

        try:
            text = await async_retry(
                lambda: loop.run_in_executor(None, self._read_file, path),
                max_attempts=self.config.io_attempts,
                delay=self.config.io_backoff_seconds,
                backoff=2.0,
                retry_on=(OSError,),
                context=f"reading manifest {os.path.basename(path)}",
            )
        except FileNotFoundError:
            return GameUploadData()
        except OSError as e:
            handle_file_error(
                error=e,
                action="reading manifest",
                path=path,
                severity=ErrorSeverity.ERROR,
                reraise=False,
                logger=logger,
            )
            return GameUploadData()

        if not text.strip():
            return GameUploadData()

        try:
            data = GameUploadData.from_json(text)
        except ValueError as e:
            # json.JSONDecodeError is a ValueError
            handle_file_error(
                error=e,
                action="parsing manifest",
                path=path,
                severity=ErrorSeverity.WARNING,
                reraise=False,
                logger=logger,
            )
            return GameUploadData()

        logger.debug(f"Loaded manifest {path} with {len(data.files)} records")
        return data

    async def _save_unlocked(self, data: GameUploadData, path: str) -> None:
        loop = asyncio.get_running_loop()
        data.last_updated = utc_now()
        text = data.to_json()
        try:
            await async_retry(
                lambda: loop.run_in_executor(None, self._write_file, path, text),
                max_attempts=self.config.io_attempts,
                delay=self.config.io_backoff_seconds,
                backoff=2.0,
                retry_on=(OSError,),
                context=f"writing manifest {os.path.basename(path)}",
            )
        except OSError as e:
            raise ManifestStoreError(f"Failed to write manifest {path}: {e}", path=path) from e
        logger.debug(f"Saved manifest {path} with {len(data.files)} records")

    # ------------------------------------------------------------------
    # Public load/save
    # ------------------------------------------------------------------

    async def load(self, game_dir: str, profile_id: Optional[str] = None) -> GameUploadData:
        """
        Load the manifest of a game, or an empty one if there is none.

        Raises:
            ValueError: If game_dir is empty
        """
        path = manifest_path(game_dir, profile_id)
        async with _lock_for(path):
            return await self._load_unlocked(path)

    async def save(self, data: GameUploadData, game_dir: str, profile_id: Optional[str] = None) -> None:
        """
        Persist a manifest.

        Raises:
            ValueError: If data is None or game_dir is empty
            ManifestStoreError: If the file could not be written
        """
        if data is None:
            raise ValueError("data must not be None")
        path = manifest_path(game_dir, profile_id)
        async with _lock_for(path):
            await self._save_unlocked(data, path)

    @asynccontextmanager
    async def edit(self, game_dir: str, profile_id: Optional[str] = None) -> AsyncIterator[GameUploadData]:
        """
        Load, mutate and save a manifest while holding its lock.

        The manifest is written only if the body changed it and did not raise.
        """
        path = manifest_path(game_dir, profile_id)
        async with _lock_for(path):
            data = await self._load_unlocked(path)
            before = data.to_dict()
            yield data
            if data.to_dict() != before:
                await self._save_unlocked(data, path)

    # ------------------------------------------------------------------
    # Change detection
    # ------------------------------------------------------------------

    def get_file_checksum(self, path: str) -> str:
        """Digest of a file with the configured algorithm."""
        return get_file_checksum(path, self.config.hash_algorithm)

    async def compute_checksums(self, paths: Iterable[str]) -> Dict[str, str]:
        """Digest many files in parallel; unreadable files are left out."""
        snapshots = await compute_snapshots(list(dict.fromkeys(paths)), self.pool, self.config.hash_algorithm)
        return {path: snapshot.checksum for path, snapshot in snapshots.items()}

    def _is_fast_path_unchanged(self, record: Optional[FileChecksumRecord], st: os.stat_result) -> bool:
        return (
            record is not None
            and record.file_size == st.st_size
            and timestamps_equal(record.last_write_time, mtime_from_stat(st))
        )

    async def should_upload(
        self,
        path: str,
        game_dir: str,
        profile_id: Optional[str] = None,
        data: Optional[GameUploadData] = None,
    ) -> bool:
        """
        Decide whether a file differs from its manifest record.

        A record with the same size and modification time short-circuits to
        "unchanged" without hashing; any mismatch falls through to a digest
        comparison. Unreadable files are never uploaded.
        """
        loop = asyncio.get_running_loop()
        try:
            st = await loop.run_in_executor(None, os.stat, path)
        except OSError as e:
            logger.warning(f"Cannot stat {path}, not uploading: {e}")
            return False

        if data is None:
            data = await self.load(game_dir, profile_id)
        key = contract_path(path, game_dir, data.detected_prefix)
        record = data.get_record(key)

        if self._is_fast_path_unchanged(record, st):
            logger.debug(f"Unchanged (size and mtime match): {key}")
            return False

        try:
            checksum = await self.pool.run(self.get_file_checksum, path)
        except OSError as e:
            logger.warning(f"Cannot hash {path}, not uploading: {e}")
            return False

        if record is None:
            return True
        return record.checksum.lower() != checksum.lower()

    async def scan_changes(
        self,
        paths: Iterable[str],
        game_dir: str,
        data: GameUploadData,
        force: bool = False,
    ) -> ChangeScan:
        """
        Split candidate files into changed, unchanged and unreadable ones.

        Size and mtime are checked first; only files that fail the fast
        check are hashed, in parallel, before any manifest lock is taken.
        """
        scan = ChangeScan()
        to_hash: List[str] = []
        loop = asyncio.get_running_loop()

        for path in dict.fromkeys(paths):
            try:
                st = await loop.run_in_executor(None, os.stat, path)
            except OSError as e:
                logger.warning(f"Cannot stat {path}: {e}")
                scan.failed.append(path)
                continue
            key = contract_path(path, game_dir, data.detected_prefix)
            if not force and self._is_fast_path_unchanged(data.get_record(key), st):
                scan.unchanged.append((path, st.st_size))
            else:
                to_hash.append(path)

        snapshots = await compute_snapshots(to_hash, self.pool, self.config.hash_algorithm)
        for path in to_hash:
            snapshot = snapshots.get(path)
            if snapshot is None:
                scan.failed.append(path)
                continue
            record = data.get_record(contract_path(path, game_dir, data.detected_prefix))
            if force or record is None or record.checksum.lower() != snapshot.checksum.lower():
                scan.changed[path] = snapshot
            else:
                scan.unchanged.append((path, snapshot.file_size))

        logger.info(
            f"Change scan: {len(scan.changed)} changed, {len(scan.unchanged)} unchanged, "
            f"{len(scan.failed)} unreadable"
        )
        return scan

    # ------------------------------------------------------------------
    # Record updates
    # ------------------------------------------------------------------

    async def snapshot(self, path: str) -> Optional[FileSnapshot]:
        """Snapshot a file on the pool, retrying once if it changed mid-read."""
        for _ in range(2):
            try:
                result = await self.pool.run(take_snapshot, path, self.config.hash_algorithm)
            except OSError as e:
                logger.warning(f"Cannot snapshot {path}: {e}")
                return None
            if result is not None:
                return result
        return None

    async def update_file_checksum_record(
        self,
        path: str,
        game_dir: str,
        profile_id: Optional[str] = None,
        snapshot: Optional[FileSnapshot] = None,
    ) -> bool:
        """
        Record the current state of a file after a confirmed transfer.

        Returns:
            False if the file could not be read consistently
        """
        if snapshot is None:
            snapshot = await self.snapshot(path)
        if snapshot is None:
            logger.warning(f"Checksum record not updated for {path}")
            return False

        async with self.edit(game_dir, profile_id) as data:
            key = contract_path(path, game_dir, data.detected_prefix)
            data.set_record(key, record_from_snapshot(snapshot, key))
        return True

    async def update_batch_checksum_records(
        self,
        records: Dict[str, FileChecksumRecord],
        game_dir: str,
        profile_id: Optional[str] = None,
    ) -> int:
        """Write several records (keyed by portable path) in one locked update."""
        if not records:
            return 0
        async with self.edit(game_dir, profile_id) as data:
            for key, record in records.items():
                record.path = key
                data.set_record(key, record)
        logger.info(f"Updated {len(records)} checksum records")
        return len(records)

    # ------------------------------------------------------------------
    # Migrations and maintenance
    # ------------------------------------------------------------------

    async def migrate_paths_if_needed(self, game_dir: str, profile_id: Optional[str] = None) -> int:
        """
        Rewrite keys stored as raw host paths into portable form.

        Raw Wine paths (``/home/u/.wine/drive_c/...``) and raw paths inside
        the install directory are converted. Running it again is a no-op.

        Returns:
            Number of rewritten keys
        """
        migrated = 0
        async with self.edit(game_dir, profile_id) as data:
            for section in (data.files, data.blacklist):
                for key in list(section):
                    new_key = self._portable_key_for(key, game_dir, data.detected_prefix)
                    if new_key is None or new_key == key:
                        continue
                    record = section.pop(key)
                    record.path = new_key
                    if new_key not in section:
                        section[new_key] = record
                    migrated += 1
                    logger.info(f"Migrated manifest key {key} -> {new_key}")
        return migrated

    @staticmethod
    def _portable_key_for(key: str, game_dir: str, detected_prefix: Optional[str]) -> Optional[str]:
        if is_legacy_wine_key(key):
            prefix = prefix_from_path(key)
            if detected_prefix and is_under(key, detected_prefix):
                prefix = detected_prefix
            if is_under(key, game_dir):
                return contract_path(key, game_dir)
            return contract_wine_path(key, prefix) if prefix else None
        if not is_portable(key) and is_under(key, game_dir):
            return contract_path(key, game_dir)
        return None

    async def migrate_from_legacy_if_needed(self, game_dir: str, profile_id: Optional[str] = None) -> bool:
        """
        Copy the pre-profile manifest to the profile manifest name.

        Returns:
            True if a copy was made
        """
        target = manifest_path(game_dir, profile_id)
        legacy = os.path.join(game_dir, LEGACY_MANIFEST_NAME)
        loop = asyncio.get_running_loop()

        async with _lock_for(target):
            if os.path.exists(target) or not os.path.exists(legacy):
                return False
            try:
                await loop.run_in_executor(None, shutil.copy2, legacy, target)
            except OSError as e:
                handle_file_error(
                    error=e,
                    action="migrating legacy manifest",
                    path=legacy,
                    severity=ErrorSeverity.WARNING,
                    reraise=False,
                    logger=logger,
                )
                return False
        logger.info(f"Migrated legacy manifest to {os.path.basename(target)}")
        return True

    async def cleanup_checksum_records(
        self,
        game_dir: str,
        max_age: timedelta,
        profile_id: Optional[str] = None,
    ) -> int:
        """
        Drop records of deleted files that were last uploaded before ``max_age``.

        Returns:
            Number of removed records
        """
        cutoff = datetime.now(timezone.utc) - max_age
        removed = 0
        async with self.edit(game_dir, profile_id) as data:
            for key in list(data.files):
                record = data.files[key]
                absolute = record.get_absolute_path(game_dir, data.detected_prefix) or expand_path(key, game_dir)
                if os.path.exists(absolute) or record.last_upload >= cutoff:
                    continue
                del data.files[key]
                removed += 1
        if removed:
            logger.info(f"Removed {removed} stale checksum records")
        return removed

    async def count_existing_files(self, game_dir: str, profile_id: Optional[str] = None) -> int:
        data = await self.load(game_dir, profile_id)
        return sum(
            1 for record in data.files.values()
            if os.path.exists(record.get_absolute_path(game_dir, data.detected_prefix))
        )

    async def update_play_time(self, game_dir: str, delta: timedelta, profile_id: Optional[str] = None) -> timedelta:
        """Add a session's duration to the accumulated play time."""
        if delta < timedelta(0):
            raise ValueError("delta must not be negative")
        async with self.edit(game_dir, profile_id) as data:
            data.play_time += delta
            total = data.play_time
        return total

    async def update_sync_status(self, game_dir: str, status: str, profile_id: Optional[str] = None) -> None:
        async with self.edit(game_dir, profile_id) as data:
            data.last_sync_status = status

    async def set_detected_prefix(self, game_dir: str, prefix: Optional[str], profile_id: Optional[str] = None) -> None:
        async with self.edit(game_dir, profile_id) as data:
            data.detected_prefix = normalize_path(prefix) if prefix else None

    async def add_to_blacklist(self, game_dir: str, path: str, profile_id: Optional[str] = None) -> str:
        """
        Permanently exclude a path from sync.

        Returns:
            The portable key stored in the blacklist
        """
        async with self.edit(game_dir, profile_id) as data:
            key = contract_path(path, game_dir, data.detected_prefix)
            existing = data.get_record(key)
            data.remove_record(key)
            data.blacklist[key] = existing or FileChecksumRecord(path=key)
        logger.info(f"Blacklisted {key}")
        return key

    async def remove_from_blacklist(self, game_dir: str, path: str, profile_id: Optional[str] = None) -> bool:
        async with self.edit(game_dir, profile_id) as data:
            key = contract_path(path, game_dir, data.detected_prefix)
            for existing in list(data.blacklist):
                if existing.lower() == key.lower():
                    del data.blacklist[existing]
                    return True
        return False
