"""
Pytest configuration and shared fixtures for the SaveSync test suite.

This module provides common fixtures, fake collaborators and configuration
for all test modules in the SaveSync project.
"""

import os
import shutil
import sys
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pytest

# Add src to Python path for testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from savesync.models.config import GameConfig, ManifestConfig, TransferConfig  # noqa: E402
from savesync.models.runtime import ProcessInfo  # noqa: E402
from savesync.system.processes import ProcessLister  # noqa: E402
from savesync.transfer.backend import ProgressCallback, TransferBackend  # noqa: E402


# ============================================================================
# Test Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "e2e: mark test as an end-to-end test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


# ============================================================================
# Core Fixtures
# ============================================================================


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def install_dir(temp_dir):
    """An empty game install directory."""
    path = temp_dir / "Games" / "MyGame"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def game(install_dir):
    """Game configuration pointing at the temporary install directory."""
    return GameConfig(name="MyGame", install_dir=str(install_dir), executable="game.exe")


@pytest.fixture
def manifest_config():
    """Manifest settings with fast retries."""
    return ManifestConfig(io_attempts=2, io_backoff_seconds=0.0, hash_workers=2)


@pytest.fixture
def transfer_config(temp_dir):
    """Transfer settings with a local remote and no retry delay."""
    return TransferConfig(
        remote=f"local:{temp_dir / 'remote'}",
        max_parallel_transfers=4,
        retry_attempts=2,
        retry_delay_seconds=0.0,
    )


@pytest.fixture
def manifest(manifest_config):
    """ChecksumManifest whose hashing pool is shut down after the test."""
    from savesync.manifest import ChecksumManifest

    store = ChecksumManifest(manifest_config)
    yield store
    store.close()


def write_file(path: Path, content: str = "data") -> Path:
    """Create a file (and its parents) with the given text content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


@pytest.fixture
def make_file():
    """Factory fixture wrapping write_file."""
    return write_file


# ============================================================================
# Fakes
# ============================================================================


class FakeProcessLister(ProcessLister):
    """In-memory process table."""

    def __init__(self, processes: Optional[List[ProcessInfo]] = None):
        self.processes: Dict[int, ProcessInfo] = {p.pid: p for p in processes or []}
        self.environ: Dict[int, Dict[str, str]] = {}
        self.cwd: Dict[int, str] = {}
        self.cmdline: Dict[int, List[str]] = {}

    def add(self, pid: int, executable_path: Optional[str] = None, parent_pid: Optional[int] = None,
            name: str = "") -> None:
        self.processes[pid] = ProcessInfo(pid, executable_path, parent_pid, name)

    def remove(self, pid: int) -> None:
        self.processes.pop(pid, None)

    def list_processes(self) -> List[ProcessInfo]:
        return list(self.processes.values())

    def get_executable_path(self, pid: int) -> Optional[str]:
        info = self.processes.get(pid)
        return info.executable_path if info else None

    def pid_exists(self, pid: int) -> bool:
        return pid in self.processes

    def get_process_cwd(self, pid: int) -> Optional[str]:
        return self.cwd.get(pid)

    def get_process_environ(self, pid: int) -> Dict[str, str]:
        return self.environ.get(pid, {})

    def get_process_cmdline(self, pid: int) -> List[str]:
        return self.cmdline.get(pid, [])


class LocalFolderBackend(TransferBackend):
    """
    TransferBackend storing "remote" files in a local directory.

    Remote paths are expected in ``local:<absolute path>`` form. Individual
    paths can be made to fail to exercise retry and partial-failure logic.
    """

    def __init__(self):
        self.calls: List[tuple] = []
        self.fail_uploads: set = set()
        self.fail_batches = False
        # names whose upload raises, and whether batches raise
        self.raise_uploads: set = set()
        self.raise_batches = False

    @staticmethod
    def _local(remote_path: str) -> str:
        return remote_path.split(":", 1)[1] if remote_path.startswith("local:") else remote_path

    @staticmethod
    def _copy(source: str, target: str) -> None:
        os.makedirs(os.path.dirname(target), exist_ok=True)
        shutil.copy2(source, target)

    async def exists(self, remote_path: str) -> bool:
        self.calls.append(("exists", remote_path))
        return os.path.exists(self._local(remote_path))

    async def upload(self, local_path: str, remote_path: str,
                     progress: Optional[ProgressCallback] = None) -> bool:
        self.calls.append(("upload", local_path, remote_path))
        if os.path.basename(local_path) in self.raise_uploads:
            raise RuntimeError(f"backend crashed on {local_path}")
        if os.path.basename(local_path) in self.fail_uploads:
            return False
        self._copy(local_path, self._local(remote_path))
        if progress:
            progress(100, "1 MiB/s")
        return True

    async def upload_batch(self, local_root: str, remote_root: str, relative_files: Sequence[str],
                           progress: Optional[ProgressCallback] = None) -> bool:
        self.calls.append(("upload_batch", local_root, remote_root, list(relative_files)))
        if self.raise_batches:
            raise RuntimeError("backend crashed")
        if self.fail_batches:
            return False
        for relative in relative_files:
            self._copy(os.path.join(local_root, relative), os.path.join(self._local(remote_root), relative))
        return True

    async def download(self, remote_path: str, local_path: str,
                       progress: Optional[ProgressCallback] = None) -> bool:
        self.calls.append(("download", remote_path, local_path))
        source = self._local(remote_path)
        if not os.path.isfile(source):
            return False
        self._copy(source, local_path)
        return True

    async def download_directory(self, remote_path: str, local_dir: str,
                                 progress: Optional[ProgressCallback] = None) -> bool:
        self.calls.append(("download_directory", remote_path, local_dir))
        source = self._local(remote_path)
        if not os.path.isdir(source):
            return False
        shutil.copytree(source, local_dir, dirs_exist_ok=True)
        return True

    async def list_directories(self, remote_root: str) -> List[str]:
        root = self._local(remote_root)
        if not os.path.isdir(root):
            return []
        return sorted(e for e in os.listdir(root) if os.path.isdir(os.path.join(root, e)))

    async def rename(self, old_remote_path: str, new_remote_path: str) -> bool:
        os.replace(self._local(old_remote_path), self._local(new_remote_path))
        return True

    def uploaded_keys(self) -> List[str]:
        """Remote paths of every single-file upload, in call order."""
        return [call[2] for call in self.calls if call[0] == "upload"]


@pytest.fixture
def fake_lister():
    return FakeProcessLister()


@pytest.fixture
def local_backend():
    return LocalFolderBackend()


# ============================================================================
# Global state reset
# ============================================================================


@pytest.fixture(autouse=True)
def reset_global_state():
    """Reset module-level caches and overrides after each test."""
    original_config_path = Path(__file__).parent.parent / "conf" / "config.toml"

    yield

    from savesync.config import clear_config_cache, set_config_path
    from savesync.paths import clear_root_cache, set_game_path

    clear_config_cache()
    set_config_path(original_config_path)
    clear_root_cache()
    set_game_path(None)
