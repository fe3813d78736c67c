"""
Portable path encoding.

Absolute, OS- and Wine-specific paths are stored in manifests as a token
plus a relative remainder so they can be replayed on another machine.
"""

from .codec import (
    PathCodec,
    contract_path,
    expand_path,
    get_game_path,
    portable_paths_equal,
    set_game_path,
)
from .tokens import (
    GAME_PATH_TOKEN,
    RootTable,
    build_root_table,
    clear_root_cache,
    get_default_roots,
    is_portable,
    is_under,
    join_portable,
    normalize_path,
    relative_to,
    split_token,
)
from .wine import (
    contract_wine_path,
    find_wine_user,
    is_legacy_wine_key,
    is_valid_prefix,
    prefix_from_path,
    resolve_wine_token,
)

__all__ = [
    "PathCodec",
    "contract_path",
    "expand_path",
    "get_game_path",
    "set_game_path",
    "portable_paths_equal",
    "GAME_PATH_TOKEN",
    "RootTable",
    "build_root_table",
    "clear_root_cache",
    "get_default_roots",
    "is_portable",
    "is_under",
    "join_portable",
    "normalize_path",
    "relative_to",
    "split_token",
    "contract_wine_path",
    "find_wine_user",
    "is_legacy_wine_key",
    "is_valid_prefix",
    "prefix_from_path",
    "resolve_wine_token",
]
