"""
Process enumeration.

The tracker never talks to psutil directly; it goes through a ProcessLister
so tests can inject a fake process table and hosts without a usable psutil
backend can fall back to walking /proc.
"""

import logging
import os
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import psutil

from ..models.runtime import ProcessInfo

logger = logging.getLogger(__name__)

_SKIPPED_ERRORS = (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess, OSError)


class ProcessLister(ABC):
    """Read-only view of the host process table."""

    @abstractmethod
    def list_processes(self) -> List[ProcessInfo]:
        """Snapshot of all visible processes; unreadable rows are skipped."""

    @abstractmethod
    def get_executable_path(self, pid: int) -> Optional[str]:
        """Executable of a pid, or None if it is gone or not readable."""

    @abstractmethod
    def pid_exists(self, pid: int) -> bool:
        pass

    def get_process_cwd(self, pid: int) -> Optional[str]:
        return None

    def get_process_environ(self, pid: int) -> Dict[str, str]:
        return {}

    def get_process_cmdline(self, pid: int) -> List[str]:
        return []


class PsutilProcessLister(ProcessLister):
    """Process table backed by psutil."""

    def list_processes(self) -> List[ProcessInfo]:
        processes: List[ProcessInfo] = []
        for proc in psutil.process_iter(["pid", "name", "exe", "ppid"]):
            try:
                info = proc.info
                processes.append(
                    ProcessInfo(
                        pid=info["pid"],
                        executable_path=info.get("exe") or None,
                        parent_pid=info.get("ppid"),
                        name=info.get("name") or "",
                    )
                )
            except _SKIPPED_ERRORS:
                continue
        return processes

    def get_executable_path(self, pid: int) -> Optional[str]:
        try:
            return psutil.Process(pid).exe() or None
        except _SKIPPED_ERRORS:
            return None

    def pid_exists(self, pid: int) -> bool:
        try:
            if not psutil.pid_exists(pid):
                return False
            return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
        except _SKIPPED_ERRORS:
            return False

    def get_process_cwd(self, pid: int) -> Optional[str]:
        try:
            return psutil.Process(pid).cwd() or None
        except _SKIPPED_ERRORS:
            return None

    def get_process_environ(self, pid: int) -> Dict[str, str]:
        try:
            return dict(psutil.Process(pid).environ())
        except _SKIPPED_ERRORS:
            return {}

    def get_process_cmdline(self, pid: int) -> List[str]:
        try:
            return list(psutil.Process(pid).cmdline())
        except _SKIPPED_ERRORS:
            return []


class ProcFsProcessLister(ProcessLister):
    """Process table read straight from a procfs mount (Linux)."""

    def __init__(self, proc_root: str = "/proc"):
        self.proc_root = Path(proc_root)

    def _pid_dirs(self) -> List[Path]:
        try:
            return [entry for entry in self.proc_root.iterdir() if entry.name.isdigit()]
        except OSError as e:
            logger.warning(f"Cannot read {self.proc_root}: {e}")
            return []

    @staticmethod
    def _parse_stat(content: str) -> Optional[tuple]:
        """Return (name, state, ppid) from a /proc/<pid>/stat line."""
        # the command name is wrapped in parentheses and may contain spaces
        start = content.find("(")
        end = content.rfind(")")
        if start < 0 or end < start:
            return None
        name = content[start + 1:end]
        fields = content[end + 2:].split()
        if len(fields) < 2:
            return None
        try:
            return name, fields[0], int(fields[1])
        except ValueError:
            return None

    def _read_stat(self, pid: int) -> Optional[tuple]:
        try:
            content = (self.proc_root / str(pid) / "stat").read_text(errors="replace")
        except OSError:
            return None
        return self._parse_stat(content)

    def list_processes(self) -> List[ProcessInfo]:
        processes: List[ProcessInfo] = []
        for entry in self._pid_dirs():
            pid = int(entry.name)
            stat = self._read_stat(pid)
            if stat is None:
                continue
            name, _state, ppid = stat
            processes.append(
                ProcessInfo(
                    pid=pid,
                    executable_path=self.get_executable_path(pid),
                    parent_pid=ppid,
                    name=name,
                )
            )
        return processes

    def get_executable_path(self, pid: int) -> Optional[str]:
        try:
            target = os.readlink(self.proc_root / str(pid) / "exe")
        except OSError:
            return None
        # the kernel appends " (deleted)" when the binary was replaced
        return target[: -len(" (deleted)")] if target.endswith(" (deleted)") else target

    def pid_exists(self, pid: int) -> bool:
        stat = self._read_stat(pid)
        return stat is not None and stat[1] not in ("Z", "X")

    def get_process_cwd(self, pid: int) -> Optional[str]:
        try:
            return os.readlink(self.proc_root / str(pid) / "cwd")
        except OSError:
            return None

    def get_process_environ(self, pid: int) -> Dict[str, str]:
        try:
            raw = (self.proc_root / str(pid) / "environ").read_bytes()
        except OSError:
            return {}
        environ: Dict[str, str] = {}
        for item in raw.split(b"\0"):
            key, sep, value = item.decode(errors="replace").partition("=")
            if sep and key:
                environ[key] = value
        return environ

    def get_process_cmdline(self, pid: int) -> List[str]:
        try:
            raw = (self.proc_root / str(pid) / "cmdline").read_bytes()
        except OSError:
            return []
        return [part.decode(errors="replace") for part in raw.split(b"\0") if part]


class FallbackProcessLister(ProcessLister):
    """
    Chain of listers.

    Each call goes to the first lister; if it raises outright, the call is
    retried on the next one and the failing lister is demoted for the rest
    of the session.
    """

    def __init__(self, listers: Sequence[ProcessLister]):
        if not listers:
            raise ValueError("At least one process lister is required")
        self._listers = list(listers)

    def _call(self, method: str, *args):
        last_error: Optional[Exception] = None
        for lister in list(self._listers):
            try:
                return getattr(lister, method)(*args)
            except Exception as e:
                last_error = e
                if len(self._listers) > 1 and self._listers[0] is lister:
                    logger.warning(
                        f"{type(lister).__name__}.{method} failed ({e}), "
                        f"falling back to {type(self._listers[1]).__name__}"
                    )
                    self._listers.append(self._listers.pop(0))
        raise RuntimeError(f"All process listers failed on {method}") from last_error

    @property
    def active(self) -> ProcessLister:
        return self._listers[0]

    def list_processes(self) -> List[ProcessInfo]:
        return self._call("list_processes")

    def get_executable_path(self, pid: int) -> Optional[str]:
        return self._call("get_executable_path", pid)

    def pid_exists(self, pid: int) -> bool:
        return self._call("pid_exists", pid)

    def get_process_cwd(self, pid: int) -> Optional[str]:
        return self._call("get_process_cwd", pid)

    def get_process_environ(self, pid: int) -> Dict[str, str]:
        return self._call("get_process_environ", pid)

    def get_process_cmdline(self, pid: int) -> List[str]:
        return self._call("get_process_cmdline", pid)


def create_process_lister() -> ProcessLister:
    """psutil first; on Linux with a /proc mount, /proc as the fallback."""
    listers: List[ProcessLister] = [PsutilProcessLister()]
    if sys.platform.startswith("linux") and os.path.isdir("/proc"):
        listers.append(ProcFsProcessLister())
    if len(listers) == 1:
        return listers[0]
    return FallbackProcessLister(listers)
