"""
External command execution.

Runs transfer tool invocations as asyncio subprocesses with a hard timeout.
On timeout the process is killed and reaped before returning.
"""

import asyncio
import logging
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """
    Outcome of one external command.
    """

    # -1 when the command could not be started or was killed
    return_code: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.return_code == 0 and not self.timed_out


async def _read_stream(stream: Optional[asyncio.StreamReader], lines: List[str],
                       on_line: Optional[Callable[[str], None]]) -> None:
    if stream is None:
        return
    while True:
        raw = await stream.readline()
        if not raw:
            break
        line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
        lines.append(line)
        if on_line is not None:
            try:
                on_line(line)
            except Exception as e:
                logger.debug(f"Output callback failed: {e}")


async def _kill(process: asyncio.subprocess.Process) -> None:
    try:
        process.kill()
    except ProcessLookupError:
        pass
    await process.wait()


async def run_command(
    args: Sequence[str],
    timeout: float,
    cwd: Optional[Path] = None,
    on_stderr_line: Optional[Callable[[str], None]] = None,
) -> CommandResult:
    """Execute a command and capture its output.

    Args:
        args: Program and arguments; no shell is involved.
        timeout: Seconds before the process is killed.
        cwd: Working directory.
        on_stderr_line: Called with every stderr line as it arrives
            (used for progress parsing).

    Returns:
        CommandResult. Start failures and timeouts are reported through
        return_code -1 rather than raised.
    """
    command_str = shlex.join(args)
    logger.debug(f"Executing command: '{command_str}'" + (f" in '{cwd}'" if cwd else ""))

    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            cwd=str(cwd) if cwd else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        logger.error(f"Command not found: {args[0]}: {type(e).__name__}: {e}")
        return CommandResult(-1, "", f"Error: Command not found '{args[0]}'")
    except OSError as e:
        logger.error(f"Failed to start '{command_str[:80]}': {type(e).__name__}: {e}")
        return CommandResult(-1, "", f"Failed to start command: {e}")

    stdout_lines: List[str] = []
    stderr_lines: List[str] = []

    async def communicate() -> int:
        await asyncio.gather(
            _read_stream(process.stdout, stdout_lines, None),
            _read_stream(process.stderr, stderr_lines, on_stderr_line),
        )
        return await process.wait()

    try:
        return_code = await asyncio.wait_for(communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Command timed out after {timeout}s, killing: '{command_str[:80]}'")
        await _kill(process)
        return CommandResult(-1, "\n".join(stdout_lines), "\n".join(stderr_lines), timed_out=True)
    except asyncio.CancelledError:
        await _kill(process)
        raise

    return CommandResult(return_code, "\n".join(stdout_lines), "\n".join(stderr_lines))
