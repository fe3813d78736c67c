"""
Wine/Proton prefix and launcher detection for a running game.

Windows games on Linux run inside an emulation prefix; the portable path
codec needs that prefix to turn ``<prefix>/drive_c/users/steamuser/AppData``
paths into ``%APPDATA%`` keys. Detection looks at the game process, its
ancestors and its direct children.
"""

import logging
import os
from typing import List, Optional

from ..paths import is_valid_prefix, normalize_path
from .processes import ProcessLister, create_process_lister

logger = logging.getLogger(__name__)

LAUNCHER_STEAM = "Steam/Proton"
LAUNCHER_LUTRIS = "Lutris"
LAUNCHER_HEROIC = "Heroic"
LAUNCHER_BOTTLES = "Bottles"
LAUNCHER_WINE = "Wine"
LAUNCHER_UNKNOWN = "Unknown"

# first match wins, checked against the command line and the executable
_LAUNCHER_MARKERS = [
    ("steam", LAUNCHER_STEAM),
    ("lutris", LAUNCHER_LUTRIS),
    ("heroic", LAUNCHER_HEROIC),
    ("bottles", LAUNCHER_BOTTLES),
    ("wine", LAUNCHER_WINE),
]

_MAX_ANCESTORS = 64


def process_family(pid: int, lister: ProcessLister) -> List[int]:
    """The pid, its ancestors (nearest first) and its direct children."""
    processes = lister.list_processes()
    parents = {p.pid: p.parent_pid for p in processes}

    family = [pid]
    current = pid
    for _ in range(_MAX_ANCESTORS):
        parent = parents.get(current)
        if not parent or parent == current or parent in family:
            break
        family.append(parent)
        current = parent

    family.extend(p.pid for p in processes if p.parent_pid == pid and p.pid not in family)
    return family


def _walk_up_for_prefix(start: str) -> Optional[str]:
    current = normalize_path(start)
    while True:
        if is_valid_prefix(current):
            return current
        parent = normalize_path(os.path.dirname(current))
        if not parent or parent == current:
            return None
        current = parent


def detect_wine_prefix(pid: int, lister: Optional[ProcessLister] = None,
                       home: Optional[str] = None) -> Optional[str]:
    """
    Find the Wine prefix a game process runs in.

    Order: ``WINEPREFIX`` of any family member, ``STEAM_COMPAT_DATA_PATH/pfx``,
    walking up from each member's working directory, ``~/.wine``.

    Returns:
        Normalized prefix path or None for native processes
    """
    lister = lister or create_process_lister()
    family = process_family(pid, lister)
    environments = {member: lister.get_process_environ(member) for member in family}

    for member in family:
        env = environments[member]
        prefix = env.get("WINEPREFIX")
        if prefix and is_valid_prefix(prefix):
            logger.info(f"Found prefix via WINEPREFIX (PID {member}): {prefix}")
            return normalize_path(prefix)

        compat = env.get("STEAM_COMPAT_DATA_PATH")
        if compat:
            candidate = os.path.join(compat, "pfx")
            if is_valid_prefix(candidate):
                logger.info(f"Found prefix via STEAM_COMPAT_DATA_PATH (PID {member}): {candidate}")
                return normalize_path(candidate)

    for member in family:
        cwd = lister.get_process_cwd(member)
        if not cwd:
            continue
        prefix = _walk_up_for_prefix(cwd)
        if prefix:
            logger.info(f"Found prefix via working directory (PID {member}): {prefix}")
            return prefix

    default_prefix = os.path.join(home or os.path.expanduser("~"), ".wine")
    if is_valid_prefix(default_prefix):
        logger.info(f"Using default Wine prefix: {default_prefix}")
        return normalize_path(default_prefix)

    logger.debug(f"No Wine prefix found for PID {pid}")
    return None


def detect_launcher(pid: int, lister: Optional[ProcessLister] = None) -> str:
    """Name the launcher that started the game, from its process family."""
    lister = lister or create_process_lister()
    for member in process_family(pid, lister):
        cmdline = " ".join(lister.get_process_cmdline(member)).lower()
        exe = (lister.get_executable_path(member) or "").lower()
        for marker, launcher in _LAUNCHER_MARKERS:
            if marker in cmdline or marker in exe:
                return launcher
    return LAUNCHER_UNKNOWN
