"""
Async sync runner for CLI integration.

This module wires the configured components of one game together: the
manifest store, the transfer backend and orchestrator and, for tracked
sessions, the process tracker and file collector.
"""

import asyncio
import logging
import os
import shlex
from datetime import timedelta
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

from ..classification import PathClassifier
from ..manifest import ChecksumManifest
from ..models.config import AppConfig, GameConfig
from ..transfer import (
    LoggingProgressSink,
    ProgressComparison,
    TransferOrchestrator,
    TransferState,
    compare_with_remote,
    create_backend,
)
from ..tracking import TrackingSession
from ..validation import ErrorSeverity, handle_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SyncRunner:
    """
    Run tracking, upload and download for a single configured game.

    Args:
        app_config: Loaded application configuration
        game: The game to operate on
    """

    def __init__(self, app_config: AppConfig, game: GameConfig):
        self.app_config = app_config
        self.game = game
        transfer = app_config.transfer

        self.manifest = ChecksumManifest(app_config.manifest)
        self.backend = create_backend(
            transfer.rclone_executable,
            transfer.rclone_config or None,
            transfer.max_parallel_transfers,
        )
        self.classifier = PathClassifier(
            app_config.classifier,
            install_dir=game.install_dir,
            blacklist=game.blacklist,
            emulation_prefix=game.emulation_prefix,
        )
        self.orchestrator = TransferOrchestrator(
            self.backend,
            self.manifest,
            transfer,
            classifier=self.classifier,
            progress=LoggingProgressSink(),
        )
        self.remote_root = self.orchestrator.remote_root_for(game)

        # Runtime state
        self.session: Optional[TrackingSession] = None
        self.shutdown_requested = False
        self._cancel_event: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def known_files(self) -> List[str]:
        """Absolute paths of manifest records that still exist locally."""
        data = await self.manifest.load(self.game.install_dir, self.game.profile_id)
        prefix = self.game.emulation_prefix or data.detected_prefix
        files = []
        for record in data.files.values():
            absolute = record.get_absolute_path(self.game.install_dir, prefix)
            if absolute and os.path.isfile(absolute):
                files.append(absolute)
        return sorted(files)

    async def upload_async(self, files: Optional[Sequence[str]] = None, force: bool = False) -> bool:
        """
        Upload the given files, or every file the manifest knows about.

        Returns:
            True if every file was uploaded or skipped
        """
        if not await self.backend.validate():
            logger.error("Transfer backend is not usable, nothing uploaded")
            return False

        await self.manifest.migrate_paths_if_needed(self.game.install_dir, self.game.profile_id)
        if files:
            candidates = [os.path.abspath(f) for f in files]
        else:
            candidates = await self.known_files()

        run = await self.orchestrator.upload_game(candidates, self.game, self.remote_root, force=force)
        stats = run.stats
        logger.info(
            f"Upload of {self.game.name} finished in state {run.state.value}: "
            f"{stats.uploaded_count} uploaded, {stats.skipped_count} skipped, {stats.failed_count} failed"
        )
        for name in stats.failed_files:
            logger.warning(f"Failed: {name}")
        return run.state == TransferState.DONE and stats.failed_count == 0

    async def download_async(self, keys: Optional[Sequence[str]] = None, overwrite: bool = True) -> bool:
        """Restore the whole cloud save, or only the given portable keys."""
        if not await self.backend.validate():
            logger.error("Transfer backend is not usable, nothing downloaded")
            return False

        if keys:
            result = await self.orchestrator.download_selected_files(
                self.remote_root, self.game, keys, overwrite_existing=overwrite
            )
        else:
            result = await self.orchestrator.download_with_checksum(self.remote_root, self.game)

        logger.info(
            f"Download of {self.game.name} finished: {result.downloaded_count} downloaded, "
            f"{result.skipped_count} skipped, {result.failed_count} failed"
        )
        return result.success

    async def compare_async(self) -> ProgressComparison:
        threshold = timedelta(minutes=self.app_config.transfer.smart_sync_threshold_minutes)
        return await compare_with_remote(self.orchestrator, self.remote_root, self.game, threshold)

    async def track_async(
        self,
        pid: Optional[int] = None,
        command: Optional[str] = None,
        upload: bool = True,
    ) -> bool:
        """
        Track a play session and upload what it touched.

        Either attaches to a running ``pid`` or launches ``command`` from the
        install directory.

        Returns:
            True if tracking (and the upload, when requested) succeeded
        """
        if pid is None and not command:
            raise ValueError("Either pid or command is required")

        self._loop = asyncio.get_running_loop()
        self._cancel_event = asyncio.Event()
        if self.shutdown_requested:
            self._cancel_event.set()

        process = None
        if pid is None:
            args = shlex.split(command)
            logger.info(f"Launching: {' '.join(args)}")
            process = await asyncio.create_subprocess_exec(*args, cwd=self.game.install_dir)
            pid = process.pid

        self.session = TrackingSession(
            self.game,
            self.manifest,
            tracker_config=self.app_config.tracker,
            classifier_config=self.app_config.classifier,
        )

        try:
            await self.session.start(pid)

            tracker = self.session.tracker
            await self._loop.run_in_executor(None, tracker.prune_exited)
            if not tracker.has_tracked_processes():
                # the launched process was a launcher that already handed over
                logger.info("Launched process exited, waiting for the game process")
                found = await tracker.wait_for_process_in_directory(cancel_event=self._cancel_event)
                if found is None:
                    await self.session.commit_play_time()
                    return False

            candidates = await self.session.run_until_exit(self._cancel_event)
        finally:
            if process is not None and process.returncode is None and self.shutdown_requested:
                process.terminate()
                await process.wait()

        if not upload:
            logger.info(f"Upload skipped, {len(candidates)} candidates collected")
            return True

        # the session classifier also knows the detected prefix and manifest blacklist
        self.orchestrator.classifier = self.session.classifier
        return await self.upload_async(candidates)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def request_shutdown(self) -> None:
        """Request the current tracking session to stop."""
        self.shutdown_requested = True
        if self._loop is not None and self._cancel_event is not None:
            try:
                self._loop.call_soon_threadsafe(self._cancel_event.set)
            except RuntimeError as e:
                logger.warning(f"Error requesting shutdown: {e}")

    def close(self) -> None:
        self.manifest.close()

    def run(self, operation: Callable[[], Awaitable[T]]) -> Optional[T]:
        """
        Run an async operation to completion on a fresh event loop.

        Returns:
            The operation result, or None if it raised
        """
        try:
            return asyncio.run(operation())
        except Exception as e:
            handle_error(
                error=e,
                context=f"running operation for {self.game.name}",
                severity=ErrorSeverity.ERROR,
                reraise=False,
                logger=logger,
            )
            return None
        finally:
            self.close()
