"""
rclone transfer backend.

Drives the rclone command line tool:

- ``copyto`` for single files in either direction
- ``copy --files-from`` for batches and ``copy`` for directory downloads
- ``lsjson`` for existence checks and ``lsf --dirs-only`` for listings
- ``moveto`` for renames

Transfer statistics are requested as one-line stats on stderr and parsed
into percent and speed for progress reporting.
"""

import json
import logging
import os
import re
import shutil
import tempfile
from typing import List, Optional, Sequence, Tuple

from ..system.commands import CommandResult, run_command
from ..validation import BackendConfigurationError, ErrorSeverity, handle_subprocess_error
from .backend import ProgressCallback, TransferBackend
from .timeouts import TimeoutConstants

logger = logging.getLogger(__name__)

PERCENT_PATTERN = re.compile(r"(\d+)%")
SPEED_PATTERN = re.compile(r"([\d.]+\s*[a-zA-Z]+/s)")

# rclone exit code for "directory not found"
EXIT_DIRECTORY_NOT_FOUND = 3

_STATS_ARGS = ["--stats=1s", "--stats-one-line", "--stats-log-level", "NOTICE"]


def parse_progress(line: str) -> Tuple[Optional[int], Optional[str]]:
    """Extract (percent, speed) from one rclone stats line."""
    percent_match = PERCENT_PATTERN.search(line)
    speed_match = SPEED_PATTERN.search(line)
    percent = int(percent_match.group(1)) if percent_match else None
    if percent is not None:
        percent = max(0, min(100, percent))
    speed = speed_match.group(1) if speed_match else None
    return percent, speed


class RcloneBackend(TransferBackend):
    """
    TransferBackend implemented on top of the rclone CLI.

    Args:
        executable: rclone binary name or path
        config_path: rclone config file; None uses rclone's own lookup
        transfers: Parallel transfers inside one batch call
        extra_args: Appended to every invocation
    """

    def __init__(
        self,
        executable: str = "rclone",
        config_path: Optional[str] = None,
        transfers: int = 8,
        extra_args: Sequence[str] = (),
    ):
        if transfers < 1:
            raise ValueError("transfers must be >= 1")
        self.executable = executable
        self.config_path = config_path or None
        self.transfers = transfers
        self.extra_args = list(extra_args)

    def _base_args(self) -> List[str]:
        args: List[str] = []
        if self.config_path:
            args += ["--config", self.config_path]
        return args + self.extra_args

    async def _run(
        self,
        subcommand: List[str],
        timeout: float,
        progress: Optional[ProgressCallback] = None,
        stats: bool = False,
    ) -> CommandResult:
        args = [self.executable] + subcommand + self._base_args()
        if stats:
            args += _STATS_ARGS

        on_line = None
        if progress is not None:
            def on_line(line: str) -> None:
                percent, speed = parse_progress(line)
                if percent is not None or speed is not None:
                    progress(percent, speed)

        result = await run_command(args, timeout=timeout, on_stderr_line=on_line)
        if not result.success and not result.timed_out:
            logger.debug(f"rclone {subcommand[0]} exited with {result.return_code}: {result.stderr.strip()[-500:]}")
        return result

    def _log_failure(self, operation: str, target: str, result: CommandResult) -> None:
        if result.timed_out:
            logger.error(f"rclone {operation} timed out: {target}")
        else:
            message = result.stderr.strip().splitlines()[-1] if result.stderr.strip() else "no output"
            logger.error(f"rclone {operation} failed ({result.return_code}) for {target}: {message}")

    # ------------------------------------------------------------------
    # TransferBackend
    # ------------------------------------------------------------------

    async def exists(self, remote_path: str) -> bool:
        result = await self._run(["lsjson", remote_path], TimeoutConstants.EXISTS_TIMEOUT)
        if result.return_code == EXIT_DIRECTORY_NOT_FOUND or not result.success:
            return False
        try:
            entries = json.loads(result.stdout or "[]")
        except ValueError:
            return bool(result.stdout.strip())
        return bool(entries)

    async def upload(self, local_path: str, remote_path: str,
                     progress: Optional[ProgressCallback] = None) -> bool:
        result = await self._run(
            ["copyto", local_path, remote_path],
            TimeoutConstants.UPLOAD_TIMEOUT,
            progress=progress,
            stats=True,
        )
        if not result.success:
            self._log_failure("upload", local_path, result)
        return result.success

    async def upload_batch(self, local_root: str, remote_root: str, relative_files: Sequence[str],
                           progress: Optional[ProgressCallback] = None) -> bool:
        if not relative_files:
            return True

        fd, list_path = tempfile.mkstemp(prefix="savesync_batch_", suffix=".txt")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                for relative in relative_files:
                    f.write(relative.replace("\\", "/") + "\n")

            result = await self._run(
                [
                    "copy", local_root, remote_root,
                    "--files-from", list_path,
                    f"--transfers={self.transfers}",
                    f"--checkers={self.transfers * 2}",
                ],
                TimeoutConstants.BATCH_UPLOAD_TIMEOUT,
                progress=progress,
                stats=True,
            )
        finally:
            try:
                os.remove(list_path)
            except OSError as e:
                logger.debug(f"Could not remove batch list {list_path}: {e}")

        if not result.success:
            self._log_failure("batch upload", f"{len(relative_files)} files from {local_root}", result)
        return result.success

    async def download(self, remote_path: str, local_path: str,
                       progress: Optional[ProgressCallback] = None) -> bool:
        directory = os.path.dirname(local_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        result = await self._run(
            ["copyto", remote_path, local_path],
            TimeoutConstants.DOWNLOAD_TIMEOUT,
            progress=progress,
            stats=True,
        )
        if not result.success:
            self._log_failure("download", remote_path, result)
        return result.success

    async def download_directory(self, remote_path: str, local_dir: str,
                                 progress: Optional[ProgressCallback] = None) -> bool:
        os.makedirs(local_dir, exist_ok=True)
        result = await self._run(
            [
                "copy", remote_path, local_dir,
                f"--transfers={self.transfers}",
                f"--checkers={self.transfers * 2}",
            ],
            TimeoutConstants.DOWNLOAD_DIRECTORY_TIMEOUT,
            progress=progress,
            stats=True,
        )
        if not result.success:
            self._log_failure("directory download", remote_path, result)
        return result.success

    async def list_directories(self, remote_root: str) -> List[str]:
        if not remote_root:
            logger.warning("list_directories called with an empty remote")
            return []
        result = await self._run(["lsf", remote_root, "--dirs-only"], TimeoutConstants.LIST_TIMEOUT)
        if not result.success:
            if result.return_code != EXIT_DIRECTORY_NOT_FOUND:
                self._log_failure("list", remote_root, result)
            return []
        return [line.strip().rstrip("/") for line in result.stdout.splitlines() if line.strip()]

    async def rename(self, old_remote_path: str, new_remote_path: str) -> bool:
        logger.info(f"Renaming {old_remote_path} -> {new_remote_path}")
        result = await self._run(["moveto", old_remote_path, new_remote_path], TimeoutConstants.RENAME_TIMEOUT)
        if not result.success:
            self._log_failure("rename", old_remote_path, result)
        return result.success

    # ------------------------------------------------------------------
    # Configuration checks
    # ------------------------------------------------------------------

    def check_configuration(self) -> None:
        """
        Raise if rclone cannot be used.

        Raises:
            BackendConfigurationError: Missing executable or config file
        """
        if shutil.which(self.executable) is None and not os.path.isfile(self.executable):
            raise BackendConfigurationError(f"rclone executable not found: {self.executable}", self.executable)
        if self.config_path and not os.path.isfile(self.config_path):
            raise BackendConfigurationError(f"rclone config file not found: {self.config_path}", self.executable)

    async def validate(self) -> bool:
        """
        Check the executable and config, then run ``rclone version``.

        Configuration problems are logged and reported as False.
        """
        try:
            self.check_configuration()
        except BackendConfigurationError as e:
            handle_subprocess_error(
                e,
                [self.executable, "version"],
                severity=ErrorSeverity.ERROR,
                reraise=False,
                logger=logger,
            )
            return False

        result = await run_command([self.executable, "version"], timeout=TimeoutConstants.VERSION_TIMEOUT)
        if not result.success:
            logger.error(f"rclone version check failed: {result.stderr.strip() or result.return_code}")
            return False
        first_line = result.stdout.splitlines()[0] if result.stdout else "rclone"
        logger.debug(f"Using {first_line}")
        return True


def create_backend(executable: str = "rclone", config_path: Optional[str] = None,
                   transfers: int = 8) -> RcloneBackend:
    return RcloneBackend(executable=executable, config_path=config_path, transfers=transfers)

