"""
Game process tracking.

Keeps the set of OS processes that belong to a running game. A process
belongs to the game when one of these holds:

- its parent is already tracked (inheritance, checked first, so helpers
  launched from outside the install directory are still followed)
- its executable lives under the install directory
- it was added explicitly

The set is guarded by a threading.Lock: the periodic scan runs on the event
loop's executor while explicit notifications may arrive from other threads.
"""

import asyncio
import logging
import threading
import time
from typing import Dict, List, Optional, Set

from ..models.config import TrackerConfig
from ..models.runtime import ProcessInfo, TrackedProcess
from ..paths import is_under, normalize_path
from ..system.processes import ProcessLister, create_process_lister

logger = logging.getLogger(__name__)


class ProcessTracker:
    """
    Track the processes of one game.

    Args:
        install_dir: Game install directory
        lister: Process table source (defaults to psutil with a /proc fallback)
        config: Polling intervals and timeouts
    """

    def __init__(
        self,
        install_dir: str,
        lister: Optional[ProcessLister] = None,
        config: Optional[TrackerConfig] = None,
    ):
        if not install_dir:
            raise ValueError("install_dir must not be empty")

        self.install_dir = normalize_path(install_dir)
        self.lister = lister or create_process_lister()
        self.config = config or TrackerConfig()

        self._tracked: Dict[int, TrackedProcess] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_tracked(self, pid: int) -> bool:
        with self._lock:
            return pid in self._tracked

    @property
    def tracked_pids(self) -> Set[int]:
        with self._lock:
            return set(self._tracked)

    @property
    def tracked_processes(self) -> List[TrackedProcess]:
        with self._lock:
            return list(self._tracked.values())

    def has_tracked_processes(self) -> bool:
        with self._lock:
            return bool(self._tracked)

    def is_in_install_dir(self, executable_path: Optional[str]) -> bool:
        return bool(executable_path) and is_under(executable_path, self.install_dir)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _track_locked(self, pid: int, executable_path: Optional[str], parent_pid: Optional[int],
                      reason: str) -> bool:
        if pid in self._tracked:
            return False
        self._tracked[pid] = TrackedProcess(
            pid=pid,
            executable_path=executable_path,
            parent_pid=parent_pid,
            reason=reason,
        )
        logger.info(f"Tracking PID {pid} ({reason}): {executable_path or '<unknown>'}")
        return True

    def initialize(self, root_pid: int) -> int:
        """
        Start tracking from the launched game process.

        Returns:
            Number of processes tracked after the initial directory scan
        """
        executable = self.lister.get_executable_path(root_pid)
        with self._lock:
            self._track_locked(root_pid, executable, None, "root")
        self.scan_for_processes_in_directory()
        return len(self.tracked_pids)

    def handle_new_process(self, pid: int, parent_pid: Optional[int] = None) -> bool:
        """
        Decide whether a newly started process belongs to the game.

        Returns:
            True if the pid is tracked after the call
        """
        with self._lock:
            if pid in self._tracked:
                return True
            if parent_pid is not None and parent_pid in self._tracked:
                return self._track_locked(pid, None, parent_pid, "parent")

        # the lister may block; query it outside the lock
        executable = self.lister.get_executable_path(pid)

        with self._lock:
            if pid in self._tracked:
                return True
            if parent_pid is not None and parent_pid in self._tracked:
                return self._track_locked(pid, executable, parent_pid, "parent")
            if self.is_in_install_dir(executable):
                return self._track_locked(pid, executable, parent_pid, "directory")
        return False

    def handle_process_exit(self, pid: int) -> bool:
        with self._lock:
            removed = self._tracked.pop(pid, None)
        if removed is not None:
            logger.info(f"Tracked process {pid} exited")
            return True
        return False

    def add_explicitly_tracked_pid(self, pid: int) -> None:
        executable = self.lister.get_executable_path(pid)
        with self._lock:
            self._track_locked(pid, executable, None, "explicit")

    def clear(self) -> None:
        with self._lock:
            self._tracked.clear()

    # ------------------------------------------------------------------
    # Scans
    # ------------------------------------------------------------------

    def _list_processes(self) -> List[ProcessInfo]:
        try:
            return self.lister.list_processes()
        except Exception as e:
            logger.warning(f"Process enumeration failed: {e}")
            return []

    def scan_for_processes_in_directory(self) -> int:
        """
        Track every running process whose executable is under the install dir.

        Returns:
            Number of newly tracked pids
        """
        added = 0
        for info in self._list_processes():
            if not self.is_in_install_dir(info.executable_path):
                continue
            with self._lock:
                if self._track_locked(info.pid, info.executable_path, info.parent_pid, "directory"):
                    added += 1
        if added:
            logger.debug(f"Directory scan added {added} processes")
        return added

    def scan_for_children(self, pid: int) -> int:
        """
        Track all descendants of ``pid``.

        Repeats over one process snapshot until no further process is added,
        so grandchildren are found regardless of listing order.

        Returns:
            Number of newly tracked pids
        """
        processes = self._list_processes()
        family: Set[int] = {pid}
        added = 0
        changed = True
        while changed:
            changed = False
            for info in processes:
                if info.pid in family or info.parent_pid not in family:
                    continue
                family.add(info.pid)
                changed = True
                with self._lock:
                    if self._track_locked(info.pid, info.executable_path, info.parent_pid, "parent"):
                        added += 1
        return added

    def prune_exited(self) -> List[int]:
        """Forget tracked pids that no longer exist."""
        exited = []
        for pid in self.tracked_pids:
            try:
                alive = self.lister.pid_exists(pid)
            except Exception as e:
                logger.debug(f"Liveness check failed for PID {pid}: {e}")
                continue
            if not alive and self.handle_process_exit(pid):
                exited.append(pid)
        return exited

    def _periodic_tick(self) -> None:
        self.scan_for_processes_in_directory()
        for pid in self.tracked_pids:
            self.scan_for_children(pid)
        self.prune_exited()

    async def start_periodic_scan(self, interval: float, cancel_event: asyncio.Event) -> None:
        """
        Rescan until ``cancel_event`` is set.

        Each round adds directory processes and descendants of tracked
        processes, then prunes exited pids. Setting the event wakes the loop
        immediately; calling this with the event already set returns at once.
        """
        if interval <= 0:
            raise ValueError("interval must be positive")

        loop = asyncio.get_running_loop()
        logger.debug(f"Periodic process scan started (every {interval}s)")
        try:
            while not cancel_event.is_set():
                try:
                    await loop.run_in_executor(None, self._periodic_tick)
                except Exception as e:
                    logger.error(f"Error in periodic process scan: {e}", exc_info=True)

                try:
                    await asyncio.wait_for(cancel_event.wait(), timeout=interval)
                except asyncio.TimeoutError:
                    continue
        finally:
            logger.debug("Periodic process scan stopped")

    async def wait_for_process_in_directory(
        self,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Optional[int]:
        """
        Wait for a process started from the install directory.

        Used when the executable that was launched is a launcher that hands
        over to the real game binary.

        Returns:
            The first matching pid (now tracked) or None on timeout
        """
        timeout = self.config.process_wait_timeout if timeout is None else timeout
        poll_interval = self.config.process_wait_poll_interval if poll_interval is None else poll_interval
        deadline = time.monotonic() + timeout
        loop = asyncio.get_running_loop()

        while True:
            processes = await loop.run_in_executor(None, self._list_processes)
            for info in processes:
                if self.is_in_install_dir(info.executable_path):
                    with self._lock:
                        self._track_locked(info.pid, info.executable_path, info.parent_pid, "directory")
                    return info.pid

            remaining = deadline - time.monotonic()
            if remaining <= 0 or (cancel_event is not None and cancel_event.is_set()):
                logger.warning(f"No process started from {self.install_dir} within {timeout}s")
                return None
            await asyncio.sleep(min(poll_interval, remaining))
