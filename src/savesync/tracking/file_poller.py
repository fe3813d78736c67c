"""
Periodic file change polling.

Without a kernel-level file access hook, the paths a game writes are found
by comparing ``(mtime_ns, size)`` snapshots of the watched roots between
polls. Anything created or modified since the previous poll is reported.
"""

import asyncio
import logging
import os
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..paths import normalize_path

logger = logging.getLogger(__name__)

FileState = Tuple[int, int]


class FilePoller:
    """
    Report files created or modified under a set of roots.

    Args:
        roots: Directories to watch; missing ones are skipped
        should_descend: Optional predicate; directories for which it returns
            False are not walked (used to prune caches and system folders)
        max_depth: Maximum directory depth below each root
    """

    def __init__(
        self,
        roots: Iterable[str],
        should_descend: Optional[Callable[[str], bool]] = None,
        max_depth: int = 12,
    ):
        self.roots: List[str] = []
        for root in roots:
            if not root:
                continue
            normalized = normalize_path(root)
            if normalized not in self.roots:
                self.roots.append(normalized)
        self.should_descend = should_descend
        self.max_depth = max_depth
        self._baseline: Optional[Dict[str, FileState]] = None
        self.poll_count = 0

    def _walk_root(self, root: str, states: Dict[str, FileState]) -> None:
        base_depth = root.rstrip("/").count("/")

        def on_error(error: OSError) -> None:
            logger.debug(f"Cannot list {error.filename}: {error.strerror}")

        for dirpath, dirnames, filenames in os.walk(root, onerror=on_error):
            current = normalize_path(dirpath)
            if current.count("/") - base_depth >= self.max_depth:
                dirnames[:] = []
            elif self.should_descend is not None:
                dirnames[:] = [d for d in dirnames if self.should_descend(f"{current}/{d}")]

            for name in filenames:
                path = f"{current}/{name}"
                try:
                    st = os.stat(path)
                except OSError:
                    continue
                states[path] = (st.st_mtime_ns, st.st_size)

    def _scan(self) -> Dict[str, FileState]:
        states: Dict[str, FileState] = {}
        for root in self.roots:
            if os.path.isdir(root):
                self._walk_root(root, states)
        return states

    def start(self) -> int:
        """Take the baseline snapshot; returns the number of files seen."""
        self._baseline = self._scan()
        logger.debug(f"File poller baseline: {len(self._baseline)} files under {len(self.roots)} roots")
        return len(self._baseline)

    def poll(self) -> List[str]:
        """Paths created or modified since the previous poll (or start)."""
        if self._baseline is None:
            self.start()
            return []

        current = self._scan()
        changed = [path for path, state in current.items() if self._baseline.get(path) != state]
        self._baseline = current
        self.poll_count += 1
        if changed:
            logger.debug(f"Poll {self.poll_count}: {len(changed)} changed files")
        return changed

    async def run(
        self,
        interval: float,
        cancel_event: asyncio.Event,
        on_paths: Callable[[List[str]], None],
    ) -> None:
        """
        Poll every ``interval`` seconds until ``cancel_event`` is set.

        A final poll runs after cancellation so writes made just before the
        game exited are not lost.
        """
        if interval <= 0:
            raise ValueError("interval must be positive")

        loop = asyncio.get_running_loop()
        if self._baseline is None:
            await loop.run_in_executor(None, self.start)

        while True:
            stopping = cancel_event.is_set()
            try:
                changed = await loop.run_in_executor(None, self.poll)
                if changed:
                    on_paths(changed)
            except Exception as e:
                logger.error(f"Error while polling files: {e}", exc_info=True)

            if stopping:
                break
            try:
                await asyncio.wait_for(cancel_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
