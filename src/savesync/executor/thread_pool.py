"""
Thread pool for file hashing.

Digesting save files is independent per file and mostly waits on disk
reads, so it runs on a managed pool while the event loop keeps serving
transfers. ``map_paths`` is the entry point used by the manifest: it runs
one callable per path and splits the outcome into results and failures.
"""

import asyncio
import logging
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Set, Tuple

from ..validation import ErrorSeverity, handle_error

logger = logging.getLogger(__name__)


@dataclass
class ThreadPoolConfig:
    """Configuration for the hashing pool."""

    # None sizes the pool to the host's usable CPUs.
    max_workers: Optional[int] = None
    # Worker threads are named <prefix>_<n>.
    thread_name_prefix: str = "HashWorker"


@dataclass
class PoolStats:
    """Counters of work handed to the pool."""

    submitted: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0

    @property
    def pending(self) -> int:
        return self.submitted - self.completed - self.failed - self.cancelled


def default_worker_count() -> int:
    """CPUs this process may run on, at least one."""
    try:
        return max(1, len(os.sched_getaffinity(0)))
    except (AttributeError, OSError):
        return max(1, os.cpu_count() or 1)


class ManagedThreadPoolExecutor:
    """
    A restartable ThreadPoolExecutor that counts its work.

    The pool is created lazily by ``start()`` and torn down by
    ``shutdown()``; after a shutdown it may be started again, which is how
    a long-lived manifest store survives several ``asyncio.run`` calls.
    """

    def __init__(self, config: Optional[ThreadPoolConfig] = None):
        self.config = config or ThreadPoolConfig()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: Set[Future] = set()
        self._stats = PoolStats()
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._executor is not None

    @property
    def stats(self) -> PoolStats:
        with self._lock:
            return PoolStats(**asdict(self._stats))

    def start(self) -> None:
        """
        Create the worker threads.

        Raises:
            RuntimeError: If the pool is already running
        """
        if self._executor is not None:
            raise RuntimeError("Hashing pool already started")

        workers = self.config.max_workers or default_worker_count()
        try:
            self._executor = ThreadPoolExecutor(
                max_workers=workers,
                thread_name_prefix=self.config.thread_name_prefix,
            )
        except Exception as e:
            handle_error(
                error=e,
                context=f"starting hashing pool with {workers} workers",
                severity=ErrorSeverity.ERROR,
                reraise=True,
                logger=logger,
            )
        logger.debug(f"Hashing pool '{self.config.thread_name_prefix}' started with {workers} workers")

    def submit(self, fn: Callable, *args) -> Future:
        """
        Queue ``fn(*args)`` on a worker.

        Raises:
            RuntimeError: If the pool is not running
        """
        if self._executor is None:
            raise RuntimeError("Hashing pool not started")

        future = self._executor.submit(fn, *args)
        with self._lock:
            self._stats.submitted += 1
            self._pending.add(future)
        future.add_done_callback(self._on_done)
        return future

    async def run(self, fn: Callable, *args) -> Any:
        """Await ``fn(*args)`` executed on the pool."""
        return await asyncio.wrap_future(self.submit(fn, *args))

    async def map_paths(
        self,
        fn: Callable,
        paths: Iterable[str],
        *args,
    ) -> Tuple[Dict[str, Any], Dict[str, BaseException]]:
        """
        Run ``fn(path, *args)`` for every distinct path in parallel.

        Returns:
            (results, failures): paths whose call returned a value other
            than None, and paths whose call raised. Paths for which ``fn``
            returned None appear in neither.
        """
        unique = list(dict.fromkeys(paths))
        outcomes = await asyncio.gather(
            *(self.run(fn, path, *args) for path in unique),
            return_exceptions=True,
        )

        results: Dict[str, Any] = {}
        failures: Dict[str, BaseException] = {}
        for path, outcome in zip(unique, outcomes):
            if isinstance(outcome, BaseException):
                failures[path] = outcome
            elif outcome is not None:
                results[path] = outcome
        return results, failures

    def shutdown(self, wait: bool = True, cancel_pending: bool = False) -> None:
        """Stop the workers; a no-op if the pool is not running."""
        executor = self._executor
        if executor is None:
            return
        self._executor = None

        if cancel_pending:
            with self._lock:
                pending = list(self._pending)
            for future in pending:
                future.cancel()
        try:
            executor.shutdown(wait=wait)
        except Exception as e:
            handle_error(
                error=e,
                context="shutting down hashing pool",
                severity=ErrorSeverity.WARNING,
                reraise=False,
                logger=logger,
            )
        logger.debug(f"Hashing pool stopped: {self.stats}")

    def get_stats(self) -> Dict[str, Any]:
        """Counters as a plain dict, for diagnostics output."""
        stats = self.stats
        result: Dict[str, Any] = asdict(stats)
        result["pending"] = stats.pending
        result["running"] = self.is_running
        return result

    def _on_done(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)
            if future.cancelled():
                self._stats.cancelled += 1
            elif future.exception() is not None:
                self._stats.failed += 1
            else:
                self._stats.completed += 1

    def __enter__(self) -> "ManagedThreadPoolExecutor":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown(wait=True)
