"""
Tracking session for a single play session.

Glues the process tracker, the file poller, the classifier and the manifest
together:

1. track the launched process, its children and anything running from the
   install directory
2. re-add files known from the manifest so unchanged saves are uploaded
   again if the game rewrote them
3. poll the watched roots while any tracked process is alive
4. after the last process exits, wait a grace period for the filesystem to
   settle, take a final poll and accumulate the play time
"""

import asyncio
import logging
import os
import time
from datetime import timedelta
from typing import List, Optional

from ..classification import FileCollector, PathClassifier, PathFilter, default_classifier_config, default_path_filter
from ..manifest import ChecksumManifest
from ..models.config import ClassifierConfig, GameConfig, TrackerConfig
from ..paths import is_under, normalize_path
from ..system.wine_prefix import detect_launcher, detect_wine_prefix
from .file_poller import FilePoller
from .process_tracker import ProcessTracker

logger = logging.getLogger(__name__)


def _outermost_roots(roots: List[str]) -> List[str]:
    """Drop roots nested inside other roots so no directory is walked twice."""
    unique = list(dict.fromkeys(normalize_path(r) for r in roots if r))
    return [r for r in unique if not any(o != r and is_under(r, o) for o in unique)]


class TrackingSession:
    """
    One tracked play session of a game.

    Collaborators not passed in are built from the game config and the
    default tables.
    """

    def __init__(
        self,
        game: GameConfig,
        manifest: ChecksumManifest,
        tracker: Optional[ProcessTracker] = None,
        classifier: Optional[PathClassifier] = None,
        poller: Optional[FilePoller] = None,
        path_filter: Optional[PathFilter] = None,
        tracker_config: Optional[TrackerConfig] = None,
        classifier_config: Optional[ClassifierConfig] = None,
        detect_prefix: bool = True,
    ):
        if game is None:
            raise ValueError("game must not be None")

        self.game = game
        self.manifest = manifest
        self.config = tracker_config or TrackerConfig()
        self.tracker = tracker or ProcessTracker(game.install_dir, config=self.config)
        self.emulation_prefix = game.emulation_prefix
        self.detect_prefix = detect_prefix and not game.emulation_prefix

        self._classifier_config = classifier_config or default_classifier_config()
        self.classifier = classifier
        self.path_filter = path_filter
        self.poller = poller
        self.collector: Optional[FileCollector] = None
        if classifier is not None:
            self._build_collector()

        self.launcher: Optional[str] = None
        self.is_tracking = False
        self._started_at: Optional[float] = None
        self._play_time: Optional[timedelta] = None

    def _build_collector(self) -> None:
        if self.classifier is None:
            self.classifier = PathClassifier(
                self._classifier_config,
                install_dir=self.game.install_dir,
                blacklist=self.game.blacklist,
                emulation_prefix=self.emulation_prefix,
            )
        if self.path_filter is None:
            self.path_filter = default_path_filter(self.game, self.emulation_prefix)
        self.collector = FileCollector(self.classifier, self.path_filter)

    def _build_poller(self) -> FilePoller:
        roots = [self.game.install_dir]
        if self.path_filter is not None:
            roots.extend(self.path_filter.allowed_paths)
        return FilePoller(
            _outermost_roots(roots),
            should_descend=lambda d: not self.classifier.should_ignore(d),
        )

    @property
    def profile_id(self) -> Optional[str]:
        return self.game.profile_id

    async def start(self, root_pid: int) -> None:
        """
        Begin tracking from the launched game process.

        Detects the Wine prefix (persisted in the manifest), loads the
        manifest blacklist and restores previously tracked files.
        """
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.tracker.initialize, root_pid)

        if self.detect_prefix:
            prefix = await loop.run_in_executor(None, detect_wine_prefix, root_pid, self.tracker.lister)
            if prefix:
                self.emulation_prefix = prefix
                await self.manifest.set_detected_prefix(self.game.install_dir, prefix, self.profile_id)
            self.launcher = await loop.run_in_executor(None, detect_launcher, root_pid, self.tracker.lister)
            logger.info(f"Launcher detected: {self.launcher}")

        if self.collector is None:
            self._build_collector()

        await self.manifest.migrate_from_legacy_if_needed(self.game.install_dir, self.profile_id)
        data = await self.manifest.load(self.game.install_dir, self.profile_id)
        for key in data.blacklist:
            self.classifier.add_to_blacklist(key)

        # children spawned right after launch are easy to miss
        await asyncio.sleep(0.25)
        await loop.run_in_executor(None, self.tracker.scan_for_children, root_pid)
        await loop.run_in_executor(None, self.tracker.scan_for_processes_in_directory)
        await asyncio.sleep(0.1)
        await loop.run_in_executor(None, self.tracker.scan_for_children, root_pid)

        restored = await self.restore_previous_files()
        if self.poller is None:
            self.poller = self._build_poller()
        await loop.run_in_executor(None, self.poller.start)

        self.is_tracking = True
        self._started_at = time.monotonic()
        logger.info(
            f"Tracking {self.game.name}: {len(self.tracker.tracked_pids)} processes, "
            f"{restored} previously tracked files"
        )

    async def restore_previous_files(self) -> int:
        """
        Re-add files from the manifest that still exist.

        Returns:
            Number of restored candidates
        """
        if self.collector is None:
            self._build_collector()
        try:
            data = await self.manifest.load(self.game.install_dir, self.profile_id)
        except ValueError as e:
            logger.warning(f"Failed to load previous files: {e}")
            return 0

        restored = 0
        prefix = self.emulation_prefix or data.detected_prefix
        for record in data.files.values():
            absolute = record.get_absolute_path(self.game.install_dir, prefix)
            if absolute and os.path.isfile(absolute) and self.collector.handle_file_access(absolute):
                restored += 1
        logger.info(f"Restored {restored} previously tracked files")
        return restored

    def handle_file_access(self, path: str) -> bool:
        if not self.is_tracking or self.collector is None:
            return False
        return self.collector.handle_file_access(path)

    def _on_paths(self, paths: List[str]) -> None:
        for path in paths:
            self.handle_file_access(path)

    async def run_until_exit(self, cancel_event: Optional[asyncio.Event] = None) -> List[str]:
        """
        Track until every game process has exited or ``cancel_event`` fires.

        Returns:
            The upload candidates collected during the session
        """
        if not self.is_tracking:
            raise RuntimeError("Session not started")

        cancel_event = cancel_event or asyncio.Event()
        stop_event = asyncio.Event()
        tasks = [
            asyncio.create_task(self.tracker.start_periodic_scan(self.config.scan_interval_seconds, stop_event)),
            asyncio.create_task(self.poller.run(self.config.poll_interval_seconds, stop_event, self._on_paths)),
        ]

        try:
            while not cancel_event.is_set():
                if not self.tracker.has_tracked_processes():
                    logger.info("All tracked processes exited")
                    break
                try:
                    await asyncio.wait_for(cancel_event.wait(), timeout=self.config.poll_interval_seconds)
                except asyncio.TimeoutError:
                    await asyncio.get_running_loop().run_in_executor(None, self.tracker.prune_exited)

            if not cancel_event.is_set() and self.config.shutdown_grace_seconds > 0:
                logger.debug(f"Waiting {self.config.shutdown_grace_seconds}s for the filesystem to settle")
                try:
                    await asyncio.wait_for(cancel_event.wait(), timeout=self.config.shutdown_grace_seconds)
                except asyncio.TimeoutError:
                    pass
        finally:
            stop_event.set()
            await asyncio.gather(*tasks, return_exceptions=True)
            self.is_tracking = False

        await self.commit_play_time()
        candidates = self.candidates()
        logger.info(f"Session finished with {len(candidates)} upload candidates")
        return candidates

    async def commit_play_time(self) -> Optional[timedelta]:
        """Add the session duration to the manifest; only done once."""
        if self._started_at is None or self._play_time is not None:
            return self._play_time
        self._play_time = timedelta(seconds=time.monotonic() - self._started_at)
        total = await self.manifest.update_play_time(self.game.install_dir, self._play_time, self.profile_id)
        logger.info(f"Session play time {self._play_time}, total {total}")
        return self._play_time

    def candidates(self) -> List[str]:
        if self.collector is None:
            return []
        return sorted(self.collector.get_upload_candidates())
