"""
Wine/Proton prefix translation.

Games running under Wine see a Windows namespace that lives inside a prefix
directory on the host (``<prefix>/drive_c/users/<name>/...``). Contracting
such a path with the plain host table would produce a `%USERPROFILE%` key
pointing into the prefix, which cannot be replayed on Windows. This module
maps the emulated user folders onto the same tokens a native Windows install
would produce, and maps them back into a prefix on expansion.
"""

import getpass
import logging
import os
from typing import List, Optional, Tuple

from .tokens import (
    APPDATA_TOKEN,
    DOCUMENTS_TOKEN,
    LOCALAPPDATA_TOKEN,
    PROGRAMDATA_TOKEN,
    PROGRAMFILES_TOKEN,
    PROGRAMFILES_X86_TOKEN,
    PUBLIC_TOKEN,
    SAVEDGAMES_TOKEN,
    SYSTEMROOT_TOKEN,
    TEMP_TOKEN,
    USERPROFILE_TOKEN,
    is_under,
    join_portable,
    normalize_path,
    relative_to,
)

logger = logging.getLogger(__name__)

# Sub-folders of drive_c/users/<name>, most specific first
_USER_SUBFOLDERS: List[Tuple[Tuple[str, ...], str]] = [
    (("local settings", "application data"), LOCALAPPDATA_TOKEN),
    (("appdata", "roaming"), APPDATA_TOKEN),
    (("appdata", "local"), LOCALAPPDATA_TOKEN),
    (("application data",), APPDATA_TOKEN),
    (("my documents",), DOCUMENTS_TOKEN),
    (("documents",), DOCUMENTS_TOKEN),
    (("saved games",), SAVEDGAMES_TOKEN),
]

# Token -> location relative to drive_c/users/<name>
_USER_TOKEN_LOCATIONS = {
    USERPROFILE_TOKEN: "",
    APPDATA_TOKEN: "AppData/Roaming",
    LOCALAPPDATA_TOKEN: "AppData/Local",
    TEMP_TOKEN: "AppData/Local/Temp",
    DOCUMENTS_TOKEN: "Documents",
    SAVEDGAMES_TOKEN: "Saved Games",
}

# Token -> location relative to drive_c
_DRIVE_TOKEN_LOCATIONS = {
    PUBLIC_TOKEN: "users/Public",
    PROGRAMDATA_TOKEN: "ProgramData",
    PROGRAMFILES_TOKEN: "Program Files",
    PROGRAMFILES_X86_TOKEN: "Program Files (x86)",
    SYSTEMROOT_TOKEN: "windows",
}

PROTON_USER = "steamuser"


def drive_token(letter: str) -> str:
    """Generic token for a Wine drive, e.g. ``%DRIVE_D%``."""
    return f"%DRIVE_{letter.upper()}%"


def is_legacy_wine_key(key: str) -> bool:
    """
    True for manifest keys stored as raw host paths into a Wine prefix.

    Such keys were written before prefix translation existed and are
    rewritten by the manifest migration.
    """
    if not key:
        return False
    normalized = normalize_path(key)
    return normalized.startswith("/") and "/drive_c/" in normalized.lower()


def prefix_from_path(path: str) -> Optional[str]:
    """Return the prefix directory of a raw Wine path (the part before drive_c)."""
    normalized = normalize_path(path)
    index = normalized.lower().find("/drive_c/")
    if index <= 0:
        return None
    return normalized[:index]


def contract_wine_path(path: str, prefix: str) -> Optional[str]:
    """
    Contract a host path that lies inside a Wine prefix.

    Args:
        path: Absolute host path
        prefix: Wine prefix directory

    Returns:
        Portable path, or None if ``path`` is not under a drive of the prefix
    """
    if not prefix or not is_under(path, prefix):
        return None

    parts = [p for p in relative_to(path, prefix).split("/") if p]
    if not parts or not parts[0].lower().startswith("drive_") or len(parts[0]) != 7:
        return None

    letter = parts[0][-1]
    rest = parts[1:]
    lowered = [p.lower() for p in rest]

    if letter.lower() == "c" and len(rest) >= 2 and lowered[0] == "users":
        user_rest = rest[2:]
        if lowered[1] == "public":
            return join_portable(PUBLIC_TOKEN, "/".join(user_rest))

        user_lowered = [p.lower() for p in user_rest]
        for folders, token in _USER_SUBFOLDERS:
            depth = len(folders)
            if tuple(user_lowered[:depth]) == folders:
                return join_portable(token, "/".join(user_rest[depth:]))
        return join_portable(USERPROFILE_TOKEN, "/".join(user_rest))

    if letter.lower() == "c" and rest and lowered[0] == "programdata":
        return join_portable(PROGRAMDATA_TOKEN, "/".join(rest[1:]))

    return join_portable(drive_token(letter), "/".join(rest))


def find_wine_user(prefix: str) -> str:
    """
    Name of the emulated Windows user inside a prefix.

    Proton prefixes always use ``steamuser``. Otherwise the first user
    folder that is not ``Public`` is used, falling back to the login name.
    """
    users_dir = os.path.join(prefix, "drive_c", "users")
    try:
        entries = sorted(
            entry for entry in os.listdir(users_dir)
            if os.path.isdir(os.path.join(users_dir, entry))
        )
    except OSError:
        entries = []

    if PROTON_USER in entries:
        return PROTON_USER
    for entry in entries:
        if entry.lower() != "public":
            return entry

    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return PROTON_USER


def resolve_wine_token(token: str, prefix: str, user: Optional[str] = None) -> Optional[str]:
    """
    Directory inside ``prefix`` that a token expands to.

    Args:
        token: Upper-case token such as ``%APPDATA%`` or ``%DRIVE_D%``
        prefix: Wine prefix directory
        user: Emulated user name (looked up in the prefix when omitted)

    Returns:
        Host directory, or None if the token has no meaning in a prefix
    """
    prefix = normalize_path(prefix)
    if token.startswith("%DRIVE_") and len(token) == len("%DRIVE_X%"):
        return join_portable(prefix, f"drive_{token[7].lower()}")

    drive_c = join_portable(prefix, "drive_c")
    if token in _DRIVE_TOKEN_LOCATIONS:
        return join_portable(drive_c, _DRIVE_TOKEN_LOCATIONS[token])

    if token in _USER_TOKEN_LOCATIONS:
        user_dir = join_portable(drive_c, f"users/{user or find_wine_user(prefix)}")
        return join_portable(user_dir, _USER_TOKEN_LOCATIONS[token])

    return None


def is_valid_prefix(path: str) -> bool:
    """A Wine prefix holds system.reg plus user.reg or a drive_c folder."""
    if not path or not os.path.isdir(path):
        return False
    if not os.path.isfile(os.path.join(path, "system.reg")):
        return False
    return (
        os.path.isfile(os.path.join(path, "user.reg"))
        or os.path.isdir(os.path.join(path, "drive_c"))
    )
