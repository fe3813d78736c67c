"""
Well-known root tokens.

A portable path starts with one of these tokens followed by `/` and a
relative remainder. The install directory token is resolved per game; the
other tokens resolve to special folders of the host, read from the
environment. On POSIX hosts the Windows folder names are mapped onto their
XDG equivalents so that a manifest written on Windows can be replayed on
Linux and the other way round.
"""

import logging
import os
import re
import tempfile
from typing import Dict, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

GAME_PATH_TOKEN = "%GAMEPATH%"

USERPROFILE_TOKEN = "%USERPROFILE%"
APPDATA_TOKEN = "%APPDATA%"
LOCALAPPDATA_TOKEN = "%LOCALAPPDATA%"
PROGRAMDATA_TOKEN = "%PROGRAMDATA%"
PUBLIC_TOKEN = "%PUBLIC%"
TEMP_TOKEN = "%TEMP%"
PROGRAMFILES_TOKEN = "%PROGRAMFILES%"
PROGRAMFILES_X86_TOKEN = "%PROGRAMFILES(X86)%"
SYSTEMROOT_TOKEN = "%SYSTEMROOT%"
DOCUMENTS_TOKEN = "%DOCUMENTS%"
SAVEDGAMES_TOKEN = "%SAVEDGAMES%"

# %NAME% at the start of a path, optionally followed by "/remainder"
TOKEN_PATTERN = re.compile(r'^(%[A-Za-z0-9_()]+%)(?:/(.*))?$')

# Windows environment variables backing each token
_WINDOWS_ENV_TOKENS: List[Tuple[str, str]] = [
    (USERPROFILE_TOKEN, "USERPROFILE"),
    (APPDATA_TOKEN, "APPDATA"),
    (LOCALAPPDATA_TOKEN, "LOCALAPPDATA"),
    (PROGRAMDATA_TOKEN, "PROGRAMDATA"),
    (PUBLIC_TOKEN, "PUBLIC"),
    (TEMP_TOKEN, "TEMP"),
    (PROGRAMFILES_TOKEN, "PROGRAMFILES"),
    (PROGRAMFILES_X86_TOKEN, "PROGRAMFILES(X86)"),
    (SYSTEMROOT_TOKEN, "SYSTEMROOT"),
]

RootTable = List[Tuple[str, str]]

_default_roots: Optional[RootTable] = None


def normalize_path(path: str) -> str:
    """
    Normalize a path to the stored form.

    Backslashes become `/`, repeated separators collapse (a leading `//` of a
    UNC path is kept) and a trailing separator is removed unless the path is
    a bare root such as `/` or `C:/`.
    """
    if not path:
        return path

    normalized = path.replace("\\", "/")
    unc = normalized.startswith("//")
    normalized = re.sub(r'/{2,}', '/', normalized)
    if unc:
        normalized = "/" + normalized

    if len(normalized) > 1 and normalized.endswith("/"):
        if not re.fullmatch(r'[A-Za-z]:/', normalized):
            normalized = normalized.rstrip("/") or "/"
    return normalized


def is_under(path: str, root: str) -> bool:
    """Case-insensitive "equal to or inside directory" test on normalized paths."""
    if not path or not root:
        return False
    p = normalize_path(path).lower()
    r = normalize_path(root).lower().rstrip("/")
    return p == r or p.startswith(r + "/")


def relative_to(path: str, root: str) -> str:
    """Remainder of ``path`` below ``root``; empty when they are equal."""
    p = normalize_path(path)
    r = normalize_path(root).rstrip("/")
    if len(p) <= len(r):
        return ""
    return p[len(r) + 1:]


def join_portable(base: str, remainder: Optional[str]) -> str:
    """Join a root and a relative remainder with the stored separator."""
    base = normalize_path(base)
    if not remainder:
        return base
    return normalize_path(base.rstrip("/") + "/" + remainder)


def split_token(path: str) -> Tuple[Optional[str], str]:
    """
    Split a portable path into its token and remainder.

    Returns:
        (token in upper case, remainder) or (None, path) if the path does
        not start with a token
    """
    match = TOKEN_PATTERN.match(normalize_path(path) or "")
    if not match:
        return None, path
    return match.group(1).upper(), match.group(2) or ""


def is_portable(path: str) -> bool:
    """True if ``path`` starts with a %TOKEN%."""
    return bool(path) and split_token(path)[0] is not None


def _windows_roots(env: Dict[str, str]) -> Dict[str, str]:
    roots: Dict[str, str] = {}
    for token, var in _WINDOWS_ENV_TOKENS:
        value = env.get(var)
        if value:
            roots[token] = normalize_path(value)

    profile = roots.get(USERPROFILE_TOKEN)
    if profile:
        roots.setdefault(DOCUMENTS_TOKEN, join_portable(profile, "Documents"))
        roots.setdefault(SAVEDGAMES_TOKEN, join_portable(profile, "Saved Games"))
    return roots


def _posix_roots(env: Dict[str, str]) -> Dict[str, str]:
    roots: Dict[str, str] = {}
    home = env.get("HOME")
    if home:
        home = normalize_path(home)
        roots[USERPROFILE_TOKEN] = home
        roots[DOCUMENTS_TOKEN] = join_portable(home, "Documents")
        roots[APPDATA_TOKEN] = normalize_path(
            env.get("XDG_CONFIG_HOME") or join_portable(home, ".config")
        )
        roots[LOCALAPPDATA_TOKEN] = normalize_path(
            env.get("XDG_DATA_HOME") or join_portable(home, ".local/share")
        )
    temp = env.get("TMPDIR") or env.get("TEMP")
    roots[TEMP_TOKEN] = normalize_path(temp or tempfile.gettempdir())
    return roots


def build_root_table(
    environ: Optional[Mapping[str, str]] = None,
    windows: Optional[bool] = None,
) -> RootTable:
    """
    Build the token table for a host.

    Args:
        environ: Environment mapping (defaults to os.environ); keys are
            matched case-insensitively
        windows: Force Windows or POSIX semantics (defaults to the host)

    Returns:
        (token, root) pairs sorted by root length, longest first, so that a
        shorter root never matches inside a longer one
    """
    source = os.environ if environ is None else environ
    env = {str(k).upper(): str(v) for k, v in source.items() if v}
    is_windows = (os.name == "nt") if windows is None else windows

    roots = _windows_roots(env) if is_windows else _posix_roots(env)
    table = sorted(roots.items(), key=lambda item: len(item[1]), reverse=True)
    logger.debug(f"Built root table with {len(table)} entries (windows={is_windows})")
    return table


def get_default_roots() -> RootTable:
    """Return the cached token table of the current host."""
    global _default_roots
    if _default_roots is None:
        _default_roots = build_root_table()
    return _default_roots


def clear_root_cache() -> None:
    """Forget the cached host table, e.g. after the environment changed."""
    global _default_roots
    _default_roots = None


def resolve_token(token: str, roots: Optional[RootTable] = None) -> Optional[str]:
    """Root directory for ``token`` in the table, or None if unknown."""
    wanted = token.upper()
    for candidate, root in (roots if roots is not None else get_default_roots()):
        if candidate == wanted:
            return root
    return None
