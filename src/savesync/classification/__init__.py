"""
Path classification.

Decides which paths touched by a game are save candidates: a coarse
allow/deny path filter, the layered ignore rules and the per-session
candidate collector.
"""

from .classifier import PathClassifier
from .collector import FileCollector, companion_path
from .path_filter import PathFilter, default_path_filter
from .rules import (
    DEFAULT_ALLOWED_BASE_PATHS,
    DEFAULT_DENIED_BASE_PATHS,
    DEFAULT_IGNORED_DIRECTORIES,
    DEFAULT_IGNORED_EXTENSIONS,
    DEFAULT_IGNORED_FILENAMES,
    DEFAULT_IGNORED_KEYWORDS,
    allowed_base_paths_for,
    default_classifier_config,
)

__all__ = [
    "PathClassifier",
    "FileCollector",
    "companion_path",
    "PathFilter",
    "default_path_filter",
    "DEFAULT_ALLOWED_BASE_PATHS",
    "DEFAULT_DENIED_BASE_PATHS",
    "DEFAULT_IGNORED_DIRECTORIES",
    "DEFAULT_IGNORED_EXTENSIONS",
    "DEFAULT_IGNORED_FILENAMES",
    "DEFAULT_IGNORED_KEYWORDS",
    "allowed_base_paths_for",
    "default_classifier_config",
]
