"""
Upload and download orchestration.

Remote layout: every file of a game is stored under ``<remote_root>/`` at
its portable key, for example::

    savesync:SaveTrackerCloudSave/MyGame/%GAMEPATH%/Saves/slot1.sav
    savesync:SaveTrackerCloudSave/MyGame/%APPDATA%/MyGame/settings.ini
    savesync:SaveTrackerCloudSave/MyGame/.savetracker_profile_default.json

Files inside the install directory go up in one batch call; files outside
it are uploaded one by one with bounded concurrency. The manifest is always
uploaded last so the remote manifest never references a file that was not
sent. A failing file is counted and logged; it never aborts the others.
"""

import asyncio
import logging
import os
import shutil
import tempfile
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence

from ..classification import PathClassifier
from ..manifest import (
    LEGACY_MANIFEST_NAME,
    ChecksumManifest,
    FileChecksumRecord,
    FileSnapshot,
    GameUploadData,
    is_manifest_file,
    manifest_file_name,
    manifest_path,
    record_from_snapshot,
)
from ..models.config import GameConfig, TransferConfig
from ..models.results import DownloadResult, UploadStats
from ..paths import (
    GAME_PATH_TOKEN,
    contract_path,
    expand_path,
    is_portable,
    is_under,
    normalize_path,
    relative_to,
    set_game_path,
)
from ..validation import TransferError, async_retry, with_simple_retry
from .backend import ProgressCallback, TransferBackend
from .progress import ProgressSink, ProgressUpdate
from .state import TransferRun, TransferState
from .timeouts import TimeoutConstants

logger = logging.getLogger(__name__)

SYNC_STATUS_SUCCESS = "Success"
SYNC_STATUS_FAILED = "Failed"


def _file_size(path: str) -> int:
    try:
        return os.path.getsize(path)
    except OSError:
        return 0


def _same_checksum(path: str, checksum: str, manifest: ChecksumManifest) -> bool:
    if not checksum or not os.path.isfile(path):
        return False
    try:
        return manifest.get_file_checksum(path).lower() == checksum.lower()
    except OSError:
        return False


@with_simple_retry(max_attempts=TimeoutConstants.COPY_ATTEMPTS, delay=TimeoutConstants.COPY_DELAY, context="restoring file")
def _copy_file(source: str, target: str) -> None:
    directory = os.path.dirname(target)
    if directory:
        os.makedirs(directory, exist_ok=True)
    shutil.copy2(source, target)


class TransferOrchestrator:
    """
    Decide what to move and drive the backend.

    Args:
        backend: Remote storage implementation
        manifest: Manifest store shared with the tracker
        config: Retry and concurrency settings
        classifier: Optional classifier; ignored paths are never uploaded
        progress: Optional sink receiving ProgressUpdate events
    """

    def __init__(
        self,
        backend: TransferBackend,
        manifest: ChecksumManifest,
        config: Optional[TransferConfig] = None,
        classifier: Optional[PathClassifier] = None,
        progress: Optional[ProgressSink] = None,
    ):
        if backend is None:
            raise ValueError("backend must not be None")
        if manifest is None:
            raise ValueError("manifest must not be None")
        self.backend = backend
        self.manifest = manifest
        self.config = config or TransferConfig()
        self.classifier = classifier
        self.progress = progress
        self._state = TransferState.IDLE
        self._processed = 0
        self._total = 0

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def remote_root_for(self, game: GameConfig) -> str:
        """``<remote>/<game name>``"""
        return f"{self.config.remote.rstrip('/')}/{game.name}"

    @staticmethod
    def remote_path_for(remote_root: str, portable_path: str) -> str:
        return f"{remote_root.rstrip('/')}/{portable_path}"

    def _publish(self, current_file: str = "", percent: Optional[int] = None, speed: Optional[str] = None) -> None:
        if self.progress is None:
            return
        try:
            self.progress.publish(
                ProgressUpdate(
                    state=self._state,
                    current_file=current_file,
                    processed=self._processed,
                    total=self._total,
                    percent=percent,
                    speed=speed,
                )
            )
        except Exception as e:
            logger.debug(f"Progress sink failed: {e}")

    def _progress_callback(self, current_file: str) -> Optional[ProgressCallback]:
        if self.progress is None:
            return None

        def callback(percent: Optional[int], speed: Optional[str]) -> None:
            self._publish(current_file, percent, speed)

        return callback

    def _enter(self, run: TransferRun, state: TransferState) -> None:
        run.transition(state)
        self._state = state
        self._publish()

    async def _with_retry(self, operation: Callable[[], Awaitable[bool]], context: str) -> bool:
        """
        Run a backend call with a fixed retry delay; False once attempts run out.

        A call that returns False and a call that raises count the same: one
        failed attempt. Cancellation is not an Exception and still propagates.
        """

        async def attempt() -> bool:
            if not await operation():
                raise TransferError(f"{context} failed", operation=context)
            return True

        try:
            return await async_retry(
                attempt,
                max_attempts=self.config.retry_attempts,
                delay=self.config.retry_delay_seconds,
                backoff=1.0,
                retry_on=(Exception,),
                context=context,
            )
        except Exception as e:
            logger.error(f"Giving up on {context}: {e}")
            return False

    def _is_excluded(self, path: str, key: str, data: GameUploadData) -> bool:
        if data.is_blacklisted(key):
            logger.debug(f"Skipping blacklisted file: {key}")
            return True
        if self.classifier is not None and self.classifier.should_ignore(path):
            logger.debug(f"Skipping ignored file: {path}")
            return True
        return False

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def process_file(
        self,
        path: str,
        remote_root: str,
        stats: UploadStats,
        game: GameConfig,
        force: bool = False,
        data: Optional[GameUploadData] = None,
        snapshot: Optional[FileSnapshot] = None,
    ) -> bool:
        """
        Upload one file if it changed and record it in the manifest.

        Args:
            snapshot: Content snapshot from a previous change scan; when
                given, the change check is skipped and the snapshot is
                what gets recorded

        Returns:
            False only when the file failed; skipped files return True
        """
        set_game_path(game.install_dir)
        path = normalize_path(path)
        name = os.path.basename(path)

        if not os.path.isfile(path):
            logger.warning(f"File not found, not uploading: {path}")
            stats.record_failed(name)
            return False

        if data is None:
            data = await self.manifest.load(game.install_dir, game.profile_id)
        key = contract_path(path, game.install_dir, data.detected_prefix)

        if self._is_excluded(path, key, data):
            stats.record_skipped(_file_size(path))
            return True

        if snapshot is None:
            if not force and not await self.manifest.should_upload(path, game.install_dir, game.profile_id, data):
                logger.debug(f"Unchanged, skipping: {key}")
                stats.record_skipped(_file_size(path))
                return True
            snapshot = await self.manifest.snapshot(path)
            if snapshot is None:
                logger.warning(f"Could not read {path} consistently, not uploading")
                stats.record_failed(name)
                return False

        remote = self.remote_path_for(remote_root, key)
        uploaded = await self._with_retry(
            lambda: self.backend.upload(path, remote, self._progress_callback(key)),
            f"upload {key}",
        )
        if not uploaded:
            stats.record_failed(name)
            return False

        await self.manifest.update_file_checksum_record(path, game.install_dir, game.profile_id, snapshot=snapshot)
        stats.record_uploaded(snapshot.file_size)
        self._processed += 1
        self._publish(key)
        logger.info(f"Uploaded {key}")
        return True

    async def process_batch(
        self,
        files: Iterable[str],
        remote_root: str,
        stats: Optional[UploadStats] = None,
        game: Optional[GameConfig] = None,
        force: bool = False,
    ) -> TransferRun:
        """
        Upload the changed files of a session.

        Returns:
            The finished run; its state is DONE or FAILED_PARTIAL
        """
        if game is None:
            raise ValueError("game must not be None")

        set_game_path(game.install_dir)
        run = TransferRun(stats=stats or UploadStats())
        stats = run.stats
        install_dir = normalize_path(game.install_dir)

        self._enter(run, TransferState.SCANNING)
        data = await self.manifest.load(install_dir, game.profile_id)

        candidates: List[str] = []
        for path in dict.fromkeys(normalize_path(f) for f in files if f):
            if is_manifest_file(path):
                continue
            if not os.path.isfile(path):
                logger.warning(f"File not found, not uploading: {path}")
                stats.record_failed(os.path.basename(path))
                run.mark_failure()
                continue
            key = contract_path(path, install_dir, data.detected_prefix)
            if self._is_excluded(path, key, data):
                stats.record_skipped(_file_size(path))
            else:
                candidates.append(path)

        scan = await self.manifest.scan_changes(candidates, install_dir, data, force=force)
        for _path, size in scan.unchanged:
            stats.record_skipped(size)
        for path in scan.failed:
            stats.record_failed(os.path.basename(path))
            run.mark_failure()

        self._enter(run, TransferState.BATCHING)
        internal: Dict[str, FileSnapshot] = {}
        external: Dict[str, FileSnapshot] = {}
        for path, snapshot in scan.changed.items():
            (internal if is_under(path, install_dir) else external)[path] = snapshot
        self._processed = 0
        self._total = len(scan.changed)
        logger.info(f"Uploading {len(internal)} files from the install dir and {len(external)} from elsewhere")

        self._enter(run, TransferState.TRANSFERRING_INTERNAL)
        if internal:
            await self._upload_internal(internal, remote_root, run, game, data)

        self._enter(run, TransferState.TRANSFERRING_EXTERNAL)
        if external:
            await self._upload_external(external, remote_root, run, game, data)

        run.finish()
        self._state = run.state
        self._publish()
        logger.info(
            f"Upload finished ({run.state.value}): {stats.uploaded_count} uploaded, "
            f"{stats.skipped_count} skipped, {stats.failed_count} failed"
        )
        return run

    async def _upload_internal(
        self,
        files: Dict[str, FileSnapshot],
        remote_root: str,
        run: TransferRun,
        game: GameConfig,
        data: GameUploadData,
    ) -> None:
        install_dir = normalize_path(game.install_dir)
        relative = [relative_to(path, install_dir) for path in files]
        remote_game_root = self.remote_path_for(remote_root, GAME_PATH_TOKEN)

        uploaded = await self._with_retry(
            lambda: self.backend.upload_batch(
                install_dir, remote_game_root, relative, self._progress_callback(GAME_PATH_TOKEN)
            ),
            f"batch upload of {len(relative)} files",
        )
        if not uploaded:
            for path in files:
                run.stats.record_failed(os.path.basename(path))
            run.mark_failure()
            return

        records: Dict[str, FileChecksumRecord] = {}
        for path, snapshot in files.items():
            key = contract_path(path, install_dir, data.detected_prefix)
            records[key] = record_from_snapshot(snapshot, key)
            run.stats.record_uploaded(snapshot.file_size)
        self._processed += len(files)
        await self.manifest.update_batch_checksum_records(records, install_dir, game.profile_id)
        self._publish(GAME_PATH_TOKEN)

    async def _upload_external(
        self,
        files: Dict[str, FileSnapshot],
        remote_root: str,
        run: TransferRun,
        game: GameConfig,
        data: GameUploadData,
    ) -> None:
        semaphore = asyncio.Semaphore(self.config.max_parallel_transfers)

        async def upload_one(path: str, snapshot: FileSnapshot) -> bool:
            async with semaphore:
                return await self.process_file(
                    path, remote_root, run.stats, game, force=True, data=data, snapshot=snapshot
                )

        results = await asyncio.gather(
            *(upload_one(path, snapshot) for path, snapshot in files.items()),
            return_exceptions=True,
        )
        for path, result in zip(files, results):
            if isinstance(result, BaseException):
                logger.error(f"Upload of {path} failed: {result}")
                run.stats.record_failed(os.path.basename(path))
                run.mark_failure()
            elif not result:
                run.mark_failure()

    async def upload_manifest(self, remote_root: str, game: GameConfig) -> bool:
        """Upload the manifest file itself, unconditionally."""
        local = manifest_path(game.install_dir, game.profile_id)
        if not os.path.isfile(local):
            logger.warning(f"No manifest to upload at {local}")
            return False
        remote = self.remote_path_for(remote_root, manifest_file_name(game.profile_id))
        uploaded = await self._with_retry(lambda: self.backend.upload(local, remote), "manifest upload")
        if uploaded:
            logger.info(f"Uploaded manifest {os.path.basename(local)}")
        return uploaded

    async def upload_game(
        self,
        files: Iterable[str],
        game: GameConfig,
        remote_root: Optional[str] = None,
        force: bool = False,
    ) -> TransferRun:
        """process_batch, then the sync status, then the manifest (last)."""
        remote_root = remote_root or self.remote_root_for(game)
        run = await self.process_batch(files, remote_root, game=game, force=force)
        status = SYNC_STATUS_SUCCESS if run.state == TransferState.DONE else SYNC_STATUS_FAILED
        await self.manifest.update_sync_status(game.install_dir, status, game.profile_id)
        if not await self.upload_manifest(remote_root, game):
            run.stats.record_failed(manifest_file_name(game.profile_id))
        return run

    # ------------------------------------------------------------------
    # Download
    # ------------------------------------------------------------------

    @staticmethod
    def _find_staged_file(staging_dir: str, key: str) -> Optional[str]:
        """Locate a record's file in a staging folder, with legacy fallbacks."""
        direct = os.path.join(staging_dir, *key.split("/"))
        if os.path.isfile(direct):
            return direct

        # older uploads stored Windows-style keys verbatim
        windows_style = os.path.join(staging_dir, key.replace("/", "\\"))
        if os.path.isfile(windows_style):
            return windows_style

        wanted = key.replace("\\", "/").rsplit("/", 1)[-1].lower()
        for dirpath, _dirnames, filenames in os.walk(staging_dir):
            for filename in filenames:
                if filename.lower() == wanted and not is_manifest_file(filename):
                    return os.path.join(dirpath, filename)
        return None

    @staticmethod
    def _read_staged_manifest(staging_dir: str, profile_id: Optional[str]) -> Optional[GameUploadData]:
        for name in (manifest_file_name(profile_id), LEGACY_MANIFEST_NAME):
            path = os.path.join(staging_dir, name)
            if not os.path.isfile(path):
                continue
            with open(path, "r", encoding="utf-8-sig") as f:
                return GameUploadData.from_json(f.read())
        return None

    async def download_with_checksum(self, remote_root: str, game: GameConfig) -> DownloadResult:
        """
        Restore a game's files from the cloud.

        The remote folder is copied to a staging directory, each manifest
        record is restored to its expanded location on this machine and the
        cloud manifest becomes the local one. Files whose local content
        already matches the record are left untouched.
        """
        set_game_path(game.install_dir)
        result = DownloadResult()
        loop = asyncio.get_running_loop()
        staging = tempfile.mkdtemp(prefix="savesync_download_")

        try:
            downloaded = await self._with_retry(
                lambda: self.backend.download_directory(remote_root, staging, self._progress_callback(remote_root)),
                f"download of {remote_root}",
            )
            if not downloaded:
                result.record_failed(remote_root)
                return result

            try:
                remote_data = await loop.run_in_executor(
                    None, self._read_staged_manifest, staging, game.profile_id
                )
            except (OSError, ValueError) as e:
                logger.error(f"Cloud manifest of {game.name} is unreadable: {e}")
                result.record_failed(manifest_file_name(game.profile_id))
                return result
            if remote_data is None:
                logger.warning(f"No manifest found in the cloud folder of {game.name}")
                return result

            local_data = await self.manifest.load(game.install_dir, game.profile_id)
            prefix = game.emulation_prefix or local_data.detected_prefix

            self._total = len(remote_data.files)
            self._processed = 0
            for key, record in remote_data.files.items():
                await self._restore_record(key, record, staging, game, prefix, result)
                self._processed += 1
                self._publish(key)

            remote_data.detected_prefix = local_data.detected_prefix
            remote_data.play_time = max(remote_data.play_time, local_data.play_time)
            await self.manifest.save(remote_data, game.install_dir, game.profile_id)
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        logger.info(
            f"Download finished: {result.downloaded_count} restored, "
            f"{result.skipped_count} up to date, {result.failed_count} failed"
        )
        return result

    async def _restore_record(
        self,
        key: str,
        record: FileChecksumRecord,
        staging: str,
        game: GameConfig,
        prefix: Optional[str],
        result: DownloadResult,
    ) -> None:
        loop = asyncio.get_running_loop()
        source = await loop.run_in_executor(None, self._find_staged_file, staging, key)
        if source is None:
            logger.warning(f"{key} is listed in the cloud manifest but was not downloaded")
            result.record_failed(key)
            return

        target = record.get_absolute_path(game.install_dir, prefix) or expand_path(key, game.install_dir, prefix)
        if not target or is_portable(target):
            logger.warning(f"Cannot resolve {key} on this machine")
            result.record_failed(key)
            return

        if await loop.run_in_executor(None, _same_checksum, target, record.checksum, self.manifest):
            result.record_skipped(_file_size(target))
            return

        try:
            await loop.run_in_executor(None, _copy_file, source, target)
        except OSError as e:
            logger.error(f"Failed to restore {key} to {target}: {e}")
            result.record_failed(key)
            return
        result.record_downloaded(_file_size(target))
        logger.info(f"Restored {key}")

    async def download_selected_files(
        self,
        remote_root: str,
        game: GameConfig,
        portable_paths: Sequence[str],
        overwrite_existing: bool = True,
    ) -> DownloadResult:
        """Download specific files by portable key and record them locally."""
        set_game_path(game.install_dir)
        result = DownloadResult()
        local_data = await self.manifest.load(game.install_dir, game.profile_id)
        prefix = game.emulation_prefix or local_data.detected_prefix
        records: Dict[str, FileChecksumRecord] = {}

        for key in portable_paths:
            key = normalize_path(key)
            target = expand_path(key, game.install_dir, prefix)
            if not target or is_portable(target):
                result.record_failed(key)
                continue
            if os.path.exists(target) and not overwrite_existing:
                result.record_skipped(_file_size(target))
                continue

            remote = self.remote_path_for(remote_root, key)
            if not await self._with_retry(lambda: self.backend.download(remote, target), f"download {key}"):
                result.record_failed(key)
                continue

            result.record_downloaded(_file_size(target))
            snapshot = await self.manifest.snapshot(target)
            if snapshot is not None:
                records[key] = record_from_snapshot(snapshot, key)

        await self.manifest.update_batch_checksum_records(records, game.install_dir, game.profile_id)
        return result

    async def peek_remote_manifest(self, remote_root: str, game: GameConfig) -> Optional[GameUploadData]:
        """Fetch and parse the cloud manifest without touching local files."""
        temp_dir = tempfile.mkdtemp(prefix="savesync_peek_")
        try:
            for name in (manifest_file_name(game.profile_id), LEGACY_MANIFEST_NAME):
                remote = self.remote_path_for(remote_root, name)
                if not await self.backend.exists(remote):
                    continue
                local = os.path.join(temp_dir, name)
                if not await self._with_retry(lambda: self.backend.download(remote, local), f"download {name}"):
                    return None
                try:
                    with open(local, "r", encoding="utf-8-sig") as f:
                        return GameUploadData.from_json(f.read())
                except (OSError, ValueError) as e:
                    logger.error(f"Cloud manifest {remote} is unreadable: {e}")
                    return None
            logger.info(f"No cloud manifest for {game.name}")
            return None
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)
