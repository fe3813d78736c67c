"""
Save-file classification.

This module decides whether a path touched by a game is a save candidate or
noise. Checks run from the most specific and cheapest to the most expensive,
and the first match wins:

1. per-game blacklist (exact path or anything under a blacklisted folder)
2. known non-save directories (skipped for paths inside the install dir)
3. junk file names
4. extensions
5. keywords, as a substring of the file name or as a whole path segment
6. file names starting with "~" or "."

Checks 1-4 only do exact or prefix matches. Check 5 is deliberately loose:
ignoring an odd save file is rare, leaking a cache folder into the cloud is
common.

All comparisons are case-insensitive on `/`-normalized paths. The tables
come from an injected ClassifierConfig; there is no module-level state.
"""

import logging
import os
import threading
from typing import Iterable, List, Optional, Set

from ..models.config import ClassifierConfig
from ..models.runtime import CandidateFile
from ..paths import RootTable, expand_path, is_portable, is_under, normalize_path

logger = logging.getLogger(__name__)


def _prepare_directory(entry: str, install_dir: Optional[str], emulation_prefix: Optional[str],
                       roots: Optional[RootTable]) -> Optional[str]:
    """Expand and normalize a table entry; None if its token is unknown on this host."""
    expanded = expand_path(entry, install_dir, emulation_prefix, roots)
    if not expanded or is_portable(expanded):
        return None
    return normalize_path(expanded).lower().rstrip("/")


class PathClassifier:
    """
    Classify paths with a fixed precedence of ignore rules.

    Args:
        config: Lookup tables
        install_dir: Game install directory; resolves %GAMEPATH% blacklist
            entries and exempts the install dir from the directory table
        blacklist: Per-game paths that must never sync; portable or absolute
        emulation_prefix: Wine prefix used to expand portable table entries
        roots: Token table for expansion (defaults to the host)
    """

    def __init__(
        self,
        config: ClassifierConfig,
        install_dir: Optional[str] = None,
        blacklist: Optional[Iterable[str]] = None,
        emulation_prefix: Optional[str] = None,
        roots: Optional[RootTable] = None,
    ):
        if config is None:
            raise ValueError("config must not be None")

        self.config = config
        self.install_dir = normalize_path(install_dir) if install_dir else None
        self.emulation_prefix = emulation_prefix
        self.roots = roots

        self._directories: List[str] = []
        for entry in config.ignored_directories:
            prepared = _prepare_directory(entry, self.install_dir, emulation_prefix, roots)
            if prepared and prepared not in self._directories:
                self._directories.append(prepared)

        self._filenames: Set[str] = {name.lower() for name in config.ignored_filenames}
        self._extensions: Set[str] = {
            ext.lower() if ext.startswith(".") else f".{ext.lower()}"
            for ext in config.ignored_extensions
        }
        self._keywords: List[str] = [kw.lower() for kw in config.ignored_keywords if kw]

        self._blacklist: List[str] = []
        self._logged: Set[str] = set()
        self._log_lock = threading.Lock()
        self.set_blacklist(blacklist or [])

        logger.debug(
            f"PathClassifier ready: {len(self._directories)} directories, "
            f"{len(self._filenames)} filenames, {len(self._extensions)} extensions, "
            f"{len(self._keywords)} keywords, {len(self._blacklist)} blacklisted"
        )

    def set_blacklist(self, entries: Iterable[str]) -> None:
        """Replace the per-game blacklist."""
        self._blacklist = []
        for entry in entries:
            self.add_to_blacklist(entry)

    def add_to_blacklist(self, entry: str) -> None:
        prepared = _prepare_directory(entry, self.install_dir, self.emulation_prefix, self.roots)
        if prepared and prepared not in self._blacklist:
            self._blacklist.append(prepared)

    @staticmethod
    def _matches_directory(path_lower: str, directory: str) -> bool:
        return path_lower == directory or path_lower.startswith(directory + "/")

    def _match(self, path: str) -> Optional[str]:
        normalized = normalize_path(path)
        lower = normalized.lower()
        name = lower.rsplit("/", 1)[-1]

        for entry in self._blacklist:
            if self._matches_directory(lower, entry):
                return f"blacklist:{entry}"

        in_install_dir = bool(self.install_dir) and is_under(normalized, self.install_dir)
        if not in_install_dir:
            for directory in self._directories:
                if self._matches_directory(lower, directory):
                    return f"directory:{directory}"

        if name in self._filenames:
            return f"filename:{name}"

        extension = os.path.splitext(name)[1]
        if extension and extension in self._extensions:
            return f"extension:{extension}"

        for keyword in self._keywords:
            if keyword in name or f"/{keyword}/" in lower:
                return f"keyword:{keyword}"

        if name.startswith("~") or name.startswith("."):
            return "hidden"

        return None

    def classify(self, path: str) -> CandidateFile:
        """
        Classify a path.

        Never raises: empty paths and unexpected errors produce an ignored
        candidate.
        """
        if not path:
            return CandidateFile(path=path, ignored=True, reason="empty")

        try:
            reason = self._match(path)
        except Exception as e:
            logger.warning(f"Classification failed for {path}: {e}")
            return CandidateFile(path=path, ignored=True, reason="error")

        if reason is not None:
            self._log_once(path, reason)
            return CandidateFile(path=path, ignored=True, reason=reason)
        return CandidateFile(path=path, ignored=False, reason="candidate")

    def should_ignore(self, path: str) -> bool:
        return self.classify(path).ignored

    def _log_once(self, path: str, reason: str) -> None:
        with self._log_lock:
            if path in self._logged:
                return
            self._logged.add(path)
        logger.debug(f"Ignored ({reason}): {path}")
