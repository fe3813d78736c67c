"""
Portable path codec.

Converts absolute paths to and from the token form stored in manifests so
that a manifest written on one machine can be replayed on another:

    C:/Games/Foo/Saves/slot1.sav  <->  %GAMEPATH%/Saves/slot1.sav

Contraction checks, in order:

1. the install directory (most specific) -> ``%GAMEPATH%``
2. the Wine prefix, when one is given -> emulated user folder tokens
3. the host's well-known roots, longest root first

Paths that match nothing are returned normalized. Neither direction ever
raises; on unexpected input the input itself is returned so that a record
is never silently dropped.

The only mutable state is the process-wide install directory override used
when ``expand_path`` is called without an install directory. It is set
through ``set_game_path``, which the transfer orchestrator owns.
"""

import logging
from typing import Optional

from .tokens import (
    GAME_PATH_TOKEN,
    RootTable,
    get_default_roots,
    is_portable,
    is_under,
    join_portable,
    normalize_path,
    relative_to,
    resolve_token,
    split_token,
)
from .wine import contract_wine_path, resolve_wine_token

logger = logging.getLogger(__name__)

# Process-wide install directory override for %GAMEPATH%
_game_path: Optional[str] = None


def set_game_path(path: Optional[str]) -> None:
    """Set the directory %GAMEPATH% expands to when no install dir is passed."""
    global _game_path
    _game_path = normalize_path(path) if path else None
    logger.debug(f"Game path override set to: {_game_path}")


def get_game_path() -> Optional[str]:
    """Return the current %GAMEPATH% override."""
    return _game_path


def contract_path(
    absolute_path: str,
    install_dir: Optional[str] = None,
    emulation_prefix: Optional[str] = None,
    roots: Optional[RootTable] = None,
) -> str:
    """
    Contract an absolute path into its portable form.

    Args:
        absolute_path: Path to contract; already portable paths are returned
            normalized
        install_dir: Game install directory for the %GAMEPATH% token
        emulation_prefix: Wine/Proton prefix the game runs in, if any
        roots: Token table; defaults to the host table

    Returns:
        Portable path using `/` separators

    Examples:
        >>> contract_path("C:/Games/Foo/Saves/slot1.sav", "C:/Games/Foo")
        '%GAMEPATH%/Saves/slot1.sav'
    """
    if not absolute_path:
        return absolute_path

    try:
        path = normalize_path(absolute_path)
        if is_portable(path):
            return path

        if install_dir and is_under(path, install_dir):
            return join_portable(GAME_PATH_TOKEN, relative_to(path, install_dir))

        if emulation_prefix:
            contracted = contract_wine_path(path, emulation_prefix)
            if contracted is not None:
                return contracted

        table = roots if roots is not None else get_default_roots()
        for token, root in table:
            if is_under(path, root):
                return join_portable(token, relative_to(path, root))

        return path
    except Exception as e:
        logger.warning(f"Could not contract path '{absolute_path}': {e}")
        return absolute_path


def expand_path(
    portable_path: str,
    install_dir: Optional[str] = None,
    emulation_prefix: Optional[str] = None,
    roots: Optional[RootTable] = None,
) -> str:
    """
    Expand a portable path back into an absolute path.

    Args:
        portable_path: Stored path, with or without a leading token
        install_dir: Directory for %GAMEPATH%; the process-wide override
            from set_game_path() is used when omitted
        emulation_prefix: Wine prefix; user folder tokens resolve inside it
        roots: Token table; defaults to the host table

    Returns:
        Absolute path using `/` separators. Paths without a token, and
        tokens that cannot be resolved, are returned normalized.
    """
    if not portable_path:
        return portable_path

    try:
        path = normalize_path(portable_path)
        token, remainder = split_token(path)
        if token is None:
            return path

        base: Optional[str] = None
        if token == GAME_PATH_TOKEN:
            base = install_dir or _game_path
        else:
            if emulation_prefix:
                base = resolve_wine_token(token, emulation_prefix)
            if base is None:
                base = resolve_token(token, roots)

        if not base:
            logger.debug(f"No root known for token {token} in '{portable_path}'")
            return path
        return join_portable(base, remainder)
    except Exception as e:
        logger.warning(f"Could not expand path '{portable_path}': {e}")
        return portable_path


def portable_paths_equal(first: str, second: str) -> bool:
    """Portable paths are equal when token and remainder match ignoring case."""
    if first is None or second is None:
        return first is second
    return normalize_path(first).lower() == normalize_path(second).lower()


class PathCodec:
    """
    Codec bound to one game's install directory and optional Wine prefix.

    The manifest store and the orchestrator use one instance per game so
    callers do not have to thread the install directory through every call.
    """

    def __init__(
        self,
        install_dir: Optional[str],
        emulation_prefix: Optional[str] = None,
        roots: Optional[RootTable] = None,
    ):
        self.install_dir = normalize_path(install_dir) if install_dir else None
        self.emulation_prefix = normalize_path(emulation_prefix) if emulation_prefix else None
        self.roots = roots

    def contract(self, absolute_path: str) -> str:
        return contract_path(absolute_path, self.install_dir, self.emulation_prefix, self.roots)

    def expand(self, portable_path: str) -> str:
        return expand_path(portable_path, self.install_dir, self.emulation_prefix, self.roots)

    def is_in_install_dir(self, path: str) -> bool:
        return bool(self.install_dir) and is_under(path, self.install_dir)

    def relative_to_install_dir(self, path: str) -> str:
        """Install-relative remainder of a path under the install directory."""
        if not self.is_in_install_dir(path):
            raise ValueError(f"{path} is not under {self.install_dir}")
        return relative_to(path, self.install_dir)

    def __repr__(self) -> str:
        return f"PathCodec(install_dir={self.install_dir!r}, emulation_prefix={self.emulation_prefix!r})"
