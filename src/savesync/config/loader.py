"""
Locating and reading the TOML configuration file.

The file is found, in order, at the path given on the command line, at
``$SAVESYNC_CONFIG``, or at ``conf/config.toml`` next to the package.
"""

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ..validation import ValidationError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "SAVESYNC_CONFIG"

# <repo>/conf/config.toml for a source checkout or an editable install
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[3] / "conf" / "config.toml"

SECTIONS = ("tracker", "classifier", "manifest", "transfer")


def default_config_path(environ: Optional[Mapping[str, str]] = None) -> Path:
    """``$SAVESYNC_CONFIG`` if set, else the bundled ``conf/config.toml``."""
    env = os.environ if environ is None else environ
    override = env.get(CONFIG_ENV_VAR, "").strip()
    return Path(override).expanduser() if override else DEFAULT_CONFIG_PATH


def load_toml_file(file_path: Path, description: str = "configuration file") -> Dict[str, Any]:
    """
    Read and parse a TOML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        tomllib.TOMLDecodeError: If the file is malformed
    """
    file_path = Path(file_path)
    if not file_path.is_file():
        raise FileNotFoundError(f"{description} not found: {file_path}")

    logger.debug(f"Reading {description}: {file_path}")
    with open(file_path, "rb") as f:
        return tomllib.load(f)


def get_section(config_data: Dict[str, Any], name: str) -> Dict[str, Any]:
    """
    Return the ``[name]`` table; a missing section is an empty table.

    Raises:
        ValidationError: If the key holds something other than a table
    """
    section = config_data.get(name, {})
    if not isinstance(section, dict):
        raise ValidationError(f"[{name}] must be a table", field_name=name, value=section)
    return section


def get_games_data(config_data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Return the ``[[games]]`` tables.

    Raises:
        ValidationError: If ``games`` is not an array of tables
    """
    games = config_data.get("games", [])
    if not isinstance(games, list):
        raise ValidationError("'games' must be an array of tables ([[games]])", field_name="games", value=games)
    return games


def warn_unknown_sections(config_data: Dict[str, Any]) -> List[str]:
    """Log top-level keys that nothing reads, usually a typo."""
    unknown = sorted(set(config_data) - set(SECTIONS) - {"games"})
    for key in unknown:
        logger.warning(f"Ignoring unknown configuration key '{key}'")
    return unknown
