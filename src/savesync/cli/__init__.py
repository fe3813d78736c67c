"""
Command-line interface for the savesync package.

This module provides the main CLI entry point for the sync application.
"""

from .main import main_cli
from .runner import SyncRunner

__all__ = [
    "main_cli",
    "SyncRunner",
]
