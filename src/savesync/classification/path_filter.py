"""
Allow/deny base-path filter.

A coarse filter applied before the classifier: only paths under known save
locations are considered at all. The install directory always wins, even
when it sits inside a denied location such as Program Files, which is where
most games are installed.
"""

import logging
from typing import Iterable, List, Optional

from ..models.config import GameConfig
from ..paths import RootTable, expand_path, is_portable, is_under, join_portable, normalize_path
from .rules import DEFAULT_DENIED_BASE_PATHS, allowed_base_paths_for

logger = logging.getLogger(__name__)


class PathFilter:
    """
    Decide whether a path lies in a location worth tracking.

    Precedence: install directory -> denied base paths -> allowed base paths
    -> reject. An allowed path nested inside a denied one (the Steam cloud
    folder below Program Files) beats that denied path.
    """

    def __init__(
        self,
        install_dir: Optional[str],
        allowed_paths: Iterable[str] = (),
        denied_paths: Iterable[str] = (),
        emulation_prefix: Optional[str] = None,
        roots: Optional[RootTable] = None,
    ):
        self.install_dir = normalize_path(install_dir) if install_dir else None
        self.allowed_paths = self._prepare(allowed_paths, emulation_prefix, roots)
        self.denied_paths = self._prepare(denied_paths, emulation_prefix, roots)

    def _prepare(self, entries: Iterable[str], prefix: Optional[str], roots: Optional[RootTable]) -> List[str]:
        prepared: List[str] = []
        for entry in entries:
            expanded = expand_path(entry, self.install_dir, prefix, roots)
            if expanded and not is_portable(expanded) and expanded not in prepared:
                prepared.append(expanded)
        return prepared

    def should_track(self, path: str) -> bool:
        if not path:
            return False
        try:
            normalized = normalize_path(path)
            if self.install_dir and is_under(normalized, self.install_dir):
                return True
            denied = [len(d) for d in self.denied_paths if is_under(normalized, d)]
            allowed = [len(a) for a in self.allowed_paths if is_under(normalized, a)]
            if denied:
                return any(length > max(denied) for length in allowed)
            return bool(allowed)
        except Exception as e:
            logger.warning(f"Path filter failed for {path}: {e}")
            return False


def default_path_filter(
    game: GameConfig,
    emulation_prefix: Optional[str] = None,
    roots: Optional[RootTable] = None,
) -> PathFilter:
    """
    Build the default filter for a game.

    Under Wine the emulated user folders are allowed and the emulated
    Windows directory is denied, in addition to the host tables.
    """
    allowed = allowed_base_paths_for(game)
    denied = list(DEFAULT_DENIED_BASE_PATHS)

    prefix = emulation_prefix or game.emulation_prefix
    if prefix:
        allowed.append(join_portable(prefix, "drive_c/users"))
        denied.append(join_portable(prefix, "drive_c/windows"))

    return PathFilter(
        game.install_dir,
        allowed_paths=allowed,
        denied_paths=denied,
        emulation_prefix=prefix,
        roots=roots,
    )
