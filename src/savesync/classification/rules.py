"""
Default classification tables.

These tables describe locations and file names that never hold save data:
OS folders, temp and cache directories, GPU shader caches, platform client
logs and browser profiles. Directory entries may start with a portable
token; they are expanded against the host (and the game's Wine prefix) when
a classifier or path filter is built.
"""

import logging
from typing import List, Optional

from ..models.config import ClassifierConfig, GameConfig

logger = logging.getLogger(__name__)

DEFAULT_IGNORED_DIRECTORIES: List[str] = [
    # Operating system
    "%SYSTEMROOT%",
    "C:/Windows",
    "%PROGRAMFILES%",
    "%PROGRAMFILES(X86)%",
    "%PROGRAMDATA%",
    "C:/$Recycle.Bin",
    "C:/System Volume Information",
    # Temp
    "%TEMP%",
    "%LOCALAPPDATA%/Temp",
    # GPU shader caches
    "%LOCALAPPDATA%/AMD",
    "%LOCALAPPDATA%/NVIDIA",
    "%LOCALAPPDATA%/NVIDIA Corporation",
    "%LOCALAPPDATA%/Intel",
    "%LOCALAPPDATA%/D3DSCache",
    "%USERPROFILE%/AppData/LocalLow/NVIDIA",
    "%USERPROFILE%/AppData/LocalLow/Intel",
    # Platform clients
    "%PROGRAMFILES(X86)%/Steam/htmlcache",
    "%PROGRAMFILES(X86)%/Steam/logs",
    "%PROGRAMFILES(X86)%/Steam/dumps",
    "%PROGRAMFILES(X86)%/Steam/appcache",
    "%PROGRAMFILES(X86)%/Steam/depotcache",
    "%PROGRAMFILES(X86)%/Steam/steamapps/shadercache",
    "%LOCALAPPDATA%/Steam/htmlcache",
    "%LOCALAPPDATA%/EpicGamesLauncher/Saved/Logs",
    "%LOCALAPPDATA%/EpicGamesLauncher/Saved/webcache",
    "%APPDATA%/Origin/Logs",
    "%LOCALAPPDATA%/Origin/Logs",
    "%LOCALAPPDATA%/Ubisoft Game Launcher/logs",
    "%APPDATA%/Battle.net/Logs",
    "%LOCALAPPDATA%/Battle.net/Cache",
    "%LOCALAPPDATA%/GOG.com/Galaxy/logs",
    "%PROGRAMDATA%/GOG.com/Galaxy/logs",
    # Windows caches
    "%LOCALAPPDATA%/Microsoft/Windows/WebCache",
    "%LOCALAPPDATA%/Microsoft/Windows/INetCache",
    "%LOCALAPPDATA%/Microsoft/Windows/Explorer",
    "%LOCALAPPDATA%/Microsoft/Windows/WER",
    "%LOCALAPPDATA%/CrashDumps",
    "%LOCALAPPDATA%/VirtualStore",
    "%APPDATA%/Microsoft",
    # Browsers
    "%LOCALAPPDATA%/Google/Chrome",
    "%LOCALAPPDATA%/Microsoft/Edge",
    "%LOCALAPPDATA%/BraveSoftware",
    "%APPDATA%/Mozilla",
    "%LOCALAPPDATA%/Mozilla",
    # POSIX hosts
    "/proc",
    "/sys",
    "/dev",
    "/tmp",
    "/var/tmp",
    "%USERPROFILE%/.cache",
]

DEFAULT_IGNORED_EXTENSIONS: List[str] = [
    ".tmp", ".log", ".dmp", ".crash", ".old", ".lock", ".pid", ".swp", ".swo",
    ".temp", ".cache", ".etl", ".evtx", ".pdb", ".map", ".symbols", ".debug",
    ".parc", ".exe", ".dll",
]

DEFAULT_IGNORED_FILENAMES: List[str] = [
    "thumbs.db", "desktop.ini", ".ds_store", "hiberfil.sys", "pagefile.sys",
    "swapfile.sys", "bootmgfw.efi", "ntuser.dat", "ntuser.pol",
]

DEFAULT_IGNORED_KEYWORDS: List[str] = [
    "cache", "temp", "log", "crash", "dump", "shader", "debug", "thumbnail",
    "preview", "analytics", "sentry", "sentrynative",
]

# Base paths for the allow/deny path filter
DEFAULT_ALLOWED_BASE_PATHS: List[str] = [
    "%DOCUMENTS%/My Games",
    "%DOCUMENTS%/Saved Games",
    "%SAVEDGAMES%",
    "%APPDATA%",
    "%LOCALAPPDATA%",
    "%USERPROFILE%/AppData/LocalLow",
    "%DOCUMENTS%",
]

DEFAULT_DENIED_BASE_PATHS: List[str] = [
    "C:/Windows",
    "%SYSTEMROOT%",
    "%PROGRAMFILES%",
    "%PROGRAMFILES(X86)%",
    "%PROGRAMDATA%",
    "C:/$Extend",
    "%LOCALAPPDATA%/BraveSoftware",
    "%LOCALAPPDATA%/Google",
    "%LOCALAPPDATA%/Microsoft",
    "%APPDATA%/Microsoft",
    "%LOCALAPPDATA%/Temp",
    "%TEMP%",
]

STEAM_USERDATA_ROOT = "%PROGRAMFILES(X86)%/Steam/userdata"


def _merge(defaults: List[str], extra: Optional[List[str]]) -> List[str]:
    merged = list(defaults)
    for item in extra or []:
        if item not in merged:
            merged.append(item)
    return merged


def default_classifier_config(
    extra_directories: Optional[List[str]] = None,
    extra_extensions: Optional[List[str]] = None,
    extra_filenames: Optional[List[str]] = None,
    extra_keywords: Optional[List[str]] = None,
    max_tracked_files: int = 5000,
    max_total_size_bytes: int = 2048 * 1024 * 1024,
) -> ClassifierConfig:
    """
    Build a ClassifierConfig from the default tables plus user additions.

    Returns:
        A fresh config; callers may mutate it without affecting others
    """
    return ClassifierConfig(
        ignored_directories=_merge(DEFAULT_IGNORED_DIRECTORIES, extra_directories),
        ignored_filenames=_merge(DEFAULT_IGNORED_FILENAMES, extra_filenames),
        ignored_extensions=_merge(DEFAULT_IGNORED_EXTENSIONS, extra_extensions),
        ignored_keywords=_merge(DEFAULT_IGNORED_KEYWORDS, extra_keywords),
        max_tracked_files=max_tracked_files,
        max_total_size_bytes=max_total_size_bytes,
    )


def allowed_base_paths_for(game: Optional[GameConfig] = None) -> List[str]:
    """Allowed base paths, including the game's Steam cloud folder when known."""
    allowed = list(DEFAULT_ALLOWED_BASE_PATHS)
    if game and game.steam_user_id and game.steam_app_id:
        allowed.append(f"{STEAM_USERDATA_ROOT}/{game.steam_user_id}/{game.steam_app_id}/remote")
    return allowed
